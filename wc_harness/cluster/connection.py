"""Cluster connection management and topology discovery.

The router client (mongos) is the single entry point for every command under
test. Direct per-node clients are only used by the topology controller to
toggle fail points and read replication status.

Usage:
    from wc_harness.cluster.connection import ClusterConnections

    cluster = ClusterConnections.from_settings(settings)
    cluster.ping()
    for group in cluster.shard_groups:
        print(group.name, group.secondaries())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import OperationFailure, PyMongoError

from wc_harness.core.config import Settings
from wc_harness.core.exceptions import ClusterUnavailableError, TopologyError
from wc_harness.core.logging import get_logger


logger = get_logger("cluster")

# replSetGetStatus member states
STATE_PRIMARY = 1
STATE_SECONDARY = 2

AUTHENTICATION_FAILED = 18


class GroupRole(str, Enum):
    """Which part of the cluster a replica set belongs to."""

    SHARD = "shard"
    CONFIG = "config"


def parse_replica_set_uri(value: str) -> tuple[str, list[str]]:
    """Split a ``name/host1,host2`` connection string."""
    if "/" not in value:
        raise TopologyError(
            f"Not a replica set connection string: {value!r}",
            details={"value": value},
        )
    name, _, hosts = value.partition("/")
    members = [h.strip() for h in hosts.split(",") if h.strip()]
    if not name or not members:
        raise TopologyError(
            f"Malformed replica set connection string: {value!r}",
            details={"value": value},
        )
    return name, members


@dataclass
class ReplicaSetGroup:
    """One replica set (a shard or the config servers) and its members."""

    shard_id: str
    name: str
    role: GroupRole
    hosts: list[str]
    connect: Callable[[str], MongoClient] = field(repr=False)

    def status(self) -> dict[str, Any]:
        """Read replSetGetStatus from the first member that answers."""
        last_error: Exception | None = None
        for host in self.hosts:
            try:
                return self.connect(host).admin.command("replSetGetStatus")
            except PyMongoError as e:
                last_error = e
        raise TopologyError(
            f"No member of {self.name} returned replica set status",
            details={"group": self.name, "error": str(last_error)},
        )

    def primary(self, status: dict[str, Any] | None = None) -> str:
        status = status or self.status()
        for member in status.get("members", []):
            if member.get("state") == STATE_PRIMARY:
                return member["name"]
        raise TopologyError(
            f"Replica set {self.name} has no primary", details={"group": self.name}
        )

    def secondaries(self, status: dict[str, Any] | None = None) -> list[str]:
        status = status or self.status()
        return [
            member["name"]
            for member in status.get("members", [])
            if member.get("state") == STATE_SECONDARY
        ]


class ClusterConnections:
    """Router client plus lazily discovered replica set groups."""

    def __init__(
        self,
        settings: Settings,
        router: MongoClient,
        client_factory: Callable[..., MongoClient] = MongoClient,
    ):
        self.settings = settings
        self.router = router
        self._client_factory = client_factory
        self._direct: dict[str, MongoClient] = {}
        self._shard_groups: list[ReplicaSetGroup] | None = None
        self._config_group: ReplicaSetGroup | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClusterConnections":
        router = MongoClient(
            settings.mongos_uri,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
            socketTimeoutMS=settings.socket_timeout_ms,
        )
        return cls(settings, router)

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def ping(self) -> None:
        """Raise ClusterUnavailableError unless the router answers."""
        try:
            self.router.admin.command("ping")
        except PyMongoError as e:
            raise ClusterUnavailableError(
                f"Router at {self.settings.mongos_uri} is unreachable: {e}",
                details={"uri": self.settings.mongos_uri},
            ) from e

    def direct(self, host: str) -> MongoClient:
        """Get a cached direct connection to a single node."""
        client = self._direct.get(host)
        if client is None:
            client = self._client_factory(
                host,
                directConnection=True,
                serverSelectionTimeoutMS=self.settings.server_selection_timeout_ms,
                socketTimeoutMS=self.settings.socket_timeout_ms,
            )
            self._direct[host] = client
        return client

    def database(self, name: str) -> Database:
        return self.router[name]

    def database_names(self) -> list[str]:
        return self.router.list_database_names()

    def router_log(self, lines: int = 50) -> list[str]:
        """Tail of the router's in-memory global log, empty if unavailable."""
        if lines <= 0:
            return []
        try:
            log = self.router.admin.command("getLog", "global").get("log", [])
        except PyMongoError as e:
            logger.warning("Could not read router log: %s", e)
            return []
        return [str(line) for line in log[-lines:]]

    def close(self) -> None:
        for client in self._direct.values():
            client.close()
        self._direct.clear()
        self.router.close()

    # -------------------------------------------------------------------------
    # Topology discovery
    # -------------------------------------------------------------------------

    @property
    def shard_groups(self) -> list[ReplicaSetGroup]:
        if self._shard_groups is None:
            self.discover()
        return self._shard_groups or []

    @property
    def config_group(self) -> ReplicaSetGroup:
        if self._config_group is None:
            self.discover()
        assert self._config_group is not None
        return self._config_group

    @property
    def groups(self) -> list[ReplicaSetGroup]:
        return [*self.shard_groups, self.config_group]

    def discover(self) -> None:
        """Resolve shard and config replica sets through the router."""
        admin = self.router.admin
        shards = admin.command("listShards").get("shards", [])
        if not shards:
            raise TopologyError("Cluster reports no shards")

        groups = []
        for shard in shards:
            name, hosts = parse_replica_set_uri(shard["host"])
            groups.append(
                ReplicaSetGroup(
                    shard_id=shard["_id"],
                    name=name,
                    role=GroupRole.SHARD,
                    hosts=hosts,
                    connect=self.direct,
                )
            )

        shard_map = admin.command("getShardMap")
        conn_strings = shard_map.get("connStrings") or shard_map.get("map") or {}
        config_uri = conn_strings.get("config")
        if not config_uri:
            raise TopologyError(
                "getShardMap did not report the config server replica set",
                details={"reply_keys": sorted(shard_map)},
            )
        name, hosts = parse_replica_set_uri(config_uri)

        self._shard_groups = groups
        self._config_group = ReplicaSetGroup(
            shard_id="config",
            name=name,
            role=GroupRole.CONFIG,
            hosts=hosts,
            connect=self.direct,
        )
        logger.info(
            "Discovered %d shard replica sets and config replica set %s",
            len(groups),
            name,
        )

    # -------------------------------------------------------------------------
    # Setup and confirm helpers
    # -------------------------------------------------------------------------

    def authenticates(self, db_name: str, user: str, password: str) -> bool:
        """Check whether the credentials authenticate against db_name."""
        client = self._client_factory(
            self.settings.mongos_uri,
            username=user,
            password=password,
            authSource=db_name,
            serverSelectionTimeoutMS=self.settings.server_selection_timeout_ms,
        )
        try:
            client[db_name].command("ping")
            return True
        except OperationFailure as e:
            if e.code == AUTHENTICATION_FAILED:
                return False
            raise
        finally:
            client.close()

    def shard_collection_with_chunks(
        self, db_name: str, coll_name: str, num_docs: int = 10
    ) -> None:
        """Shard a collection on {x: 1} and spread its chunks over two shards."""
        shards = self.shard_groups
        if len(shards) < 2:
            raise TopologyError("Sharded setups need at least two shards")

        admin = self.router.admin
        ns = f"{db_name}.{coll_name}"

        admin.command("enableSharding", db_name)
        db_entry = self.router.config.databases.find_one({"_id": db_name})
        if db_entry and db_entry.get("primary") != shards[0].shard_id:
            admin.command("movePrimary", db_name, to=shards[0].shard_id)

        admin.command("shardCollection", ns, key={"x": 1})
        self.router[db_name][coll_name].insert_many([{"x": i} for i in range(num_docs)])

        split_point = num_docs // 2
        admin.command("split", ns, middle={"x": split_point})
        admin.command(
            "moveChunk",
            ns,
            find={"x": split_point},
            to=shards[1].shard_id,
            _waitForDelete=True,
        )
        logger.debug("Sharded %s with chunks on %s", ns, [s.shard_id for s in shards[:2]])
