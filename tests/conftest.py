"""Pytest configuration and fixtures.

Unit tests run against an in-memory fake of a sharded cluster: two shard
replica sets and a config replica set of three members each. Fail points
toggled through direct node connections pause the fake's secondaries, and
the router answers the catalogue's commands the way a conforming cluster
should. Tests can swap the router's responder to simulate a defective one.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable

import pytest
from pymongo.errors import AutoReconnect, OperationFailure

from wc_harness.cluster.connection import GroupRole, ReplicaSetGroup
from wc_harness.core.config import Settings


# =============================================================================
# REPLICA SETS AND NODES
# =============================================================================


class FakeReplicaSet:
    """Three members, first one primary, optimes all equal by default."""

    def __init__(self, name: str, size: int = 3):
        self.name = name
        self.hosts = [f"{name}-{i}.local:27017" for i in range(size)]
        self.primary = self.hosts[0]
        self.optimes = {host: 100 for host in self.hosts}
        self.paused: set[str] = set()
        self.unreachable: set[str] = set()
        self.entries: Counter = Counter()

    @property
    def secondaries(self) -> list[str]:
        return [h for h in self.hosts if h != self.primary]

    def status(self) -> dict[str, Any]:
        return {
            "set": self.name,
            "ok": 1.0,
            "members": [
                {
                    "name": host,
                    "state": 1 if host == self.primary else 2,
                    "optime": {"ts": self.optimes[host], "t": 1},
                }
                for host in self.hosts
            ],
        }


class FakeNode:
    """Direct connection to a single member; ``.admin.command`` like pymongo."""

    def __init__(self, replica_set: FakeReplicaSet, host: str):
        self.replica_set = replica_set
        self.host = host
        self.calls: list[tuple[str, tuple, dict]] = []

    @property
    def admin(self) -> "FakeNode":
        return self

    def command(self, name: str, *args: Any, **kwargs: Any) -> dict[str, Any]:
        rs = self.replica_set
        if self.host in rs.unreachable:
            raise AutoReconnect(f"{self.host}: connection refused")
        self.calls.append((name, args, kwargs))

        if name == "configureFailPoint":
            count = rs.entries[self.host]
            if kwargs["mode"] == "alwaysOn":
                rs.paused.add(self.host)
                rs.entries[self.host] += 1
            else:
                rs.paused.discard(self.host)
            return {"ok": 1.0, "count": count}

        if name == "waitForFailPoint":
            if self.host not in rs.paused or rs.entries[self.host] < kwargs["timesEntered"]:
                raise OperationFailure("fail point not entered", code=50)
            return {"ok": 1.0}

        if name == "replSetGetStatus":
            return rs.status()

        raise OperationFailure(f"no such command: {name}", code=59)

    def close(self) -> None:
        pass


# =============================================================================
# ROUTER
# =============================================================================


class FakeCollection:
    def __init__(self, cluster: "FakeCluster", db_name: str, name: str):
        self.cluster = cluster
        self.db_name = db_name
        self.name = name

    @property
    def _docs(self) -> list[dict]:
        return self.cluster.collections.setdefault((self.db_name, self.name), [])

    def insert_one(self, doc: dict) -> None:
        self.cluster.existing.add(self.db_name)
        self._docs.append(dict(doc))

    def insert_many(self, docs: list[dict]) -> None:
        for doc in docs:
            self.insert_one(doc)

    def drop(self) -> None:
        self.cluster.collections.pop((self.db_name, self.name), None)

    def count_documents(self, query: dict) -> int:
        return len(self._docs)


class FakeDatabase:
    def __init__(self, cluster: "FakeCluster", name: str):
        self.cluster = cluster
        self.name = name

    def __getitem__(self, name: str) -> FakeCollection:
        return FakeCollection(self.cluster, self.name, name)

    def __getattr__(self, name: str) -> FakeCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def command(self, command: Any, *args: Any, check: bool = True, **kwargs: Any) -> dict:
        if isinstance(command, str):
            # Setup and reset helpers, always applied directly
            request = {command: args[0] if args else 1, **kwargs}
            return self.cluster.admin_command(self.name, request)
        self.cluster.issued.append((self.name, command))
        return self.cluster.responder(self.cluster, self.name, command)


def conforming_reply(cluster: "FakeCluster", db_name: str, request: dict) -> dict:
    """What a correct router answers for the catalogue's commands."""
    command = next(iter(request))
    wc = request.get("writeConcern", {})
    upconverted = command == "drop"

    if not upconverted and wc.get("w") != "majority":
        return {
            "ok": 0.0,
            "code": 79,
            "codeName": "UnknownReplWriteConcern",
            "errmsg": f"unrecognized write concern {wc}",
        }
    if cluster.config_paused:
        return {"ok": 0.0, "code": 64, "codeName": "WriteConcernFailed", "errmsg": "waiting for replication timed out"}

    cluster.apply_effect(db_name, request)

    if cluster.shards_paused and command in ("dropDatabase", "drop"):
        return {"ok": 0.0, "code": 64, "codeName": "WriteConcernFailed", "errmsg": "shard write concern timed out"}
    return {"ok": 1.0}


class FakeCluster:
    """Stands in for ClusterConnections."""

    def __init__(self, shard_count: int = 2):
        self.shards = [FakeReplicaSet(f"rs{i}") for i in range(shard_count)]
        self.config = FakeReplicaSet("configRS")
        self.nodes = {
            host: FakeNode(rs, host)
            for rs in (*self.shards, self.config)
            for host in rs.hosts
        }
        self.shard_groups = [
            ReplicaSetGroup(rs.name, rs.name, GroupRole.SHARD, rs.hosts, self.direct)
            for rs in self.shards
        ]
        self.config_group = ReplicaSetGroup(
            "config", self.config.name, GroupRole.CONFIG, self.config.hosts, self.direct
        )

        self.responder: Callable[["FakeCluster", str, dict], dict] = conforming_reply
        self.issued: list[tuple[str, dict]] = []
        self.admin_commands: list[tuple[str, dict]] = []
        self.users: dict[tuple[str, str], str] = {}
        self.existing: set[str] = set()
        self.collections: dict[tuple[str, str], list[dict]] = {}
        self.sharded: list[str] = []

    @property
    def groups(self) -> list[ReplicaSetGroup]:
        return [*self.shard_groups, self.config_group]

    @property
    def shards_paused(self) -> bool:
        return any(rs.paused for rs in self.shards)

    @property
    def config_paused(self) -> bool:
        return bool(self.config.paused)

    def ping(self) -> None:
        pass

    def discover(self) -> None:
        pass

    def close(self) -> None:
        pass

    def direct(self, host: str) -> FakeNode:
        return self.nodes[host]

    def database(self, name: str) -> FakeDatabase:
        return FakeDatabase(self, name)

    def database_names(self) -> list[str]:
        return sorted(self.existing)

    def authenticates(self, db_name: str, user: str, password: str) -> bool:
        return self.users.get((db_name, user)) == password

    def router_log(self, lines: int = 50) -> list[str]:
        return ["router log line"][:lines]

    def shard_collection_with_chunks(self, db_name: str, coll_name: str, num_docs: int = 10) -> None:
        self.sharded.append(f"{db_name}.{coll_name}")
        self.database(db_name)[coll_name].insert_many([{"x": i} for i in range(num_docs)])

    def admin_command(self, db_name: str, request: dict) -> dict:
        self.admin_commands.append((db_name, request))
        command = next(iter(request))
        if command == "dropUser" and (db_name, request["dropUser"]) not in self.users:
            raise OperationFailure(f"User {request['dropUser']}@{db_name} not found", code=11)
        self.apply_effect(db_name, request)
        return {"ok": 1.0}

    def apply_effect(self, db_name: str, request: dict) -> None:
        command = next(iter(request))
        if command == "createUser":
            self.users[(db_name, request["createUser"])] = request["pwd"]
        elif command == "updateUser":
            self.users[(db_name, request["updateUser"])] = request["pwd"]
        elif command == "dropUser":
            self.users.pop((db_name, request["dropUser"]), None)
        elif command == "dropDatabase":
            self.existing.discard(db_name)
            for key in [k for k in self.collections if k[0] == db_name]:
                del self.collections[key]
        elif command == "drop":
            self.collections.pop((db_name, request["drop"]), None)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Fast settings: tiny replication timeouts, reports under tmp_path."""
    return Settings(
        replication_timeout_s=0.2,
        replication_poll_interval_s=0.01,
        failpoint_timeout_ms=500,
        report_dir=str(tmp_path / "reports"),
    )


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster()
