"""
Topology fault injection.

Secondary replication is paused with the ``stopReplProducer`` fail point,
which keeps every node up while preventing secondaries from fetching new
oplog entries. Primaries keep accepting writes but cannot gather a majority
of acknowledgements.

Every suspension blocks until the fail point has actually been entered on
the node, and every restoration blocks until the fail points are disabled, so
the caller never races the cluster's asynchronous replication machinery.

Usage:
    controller = TopologyController(cluster, settings)

    with controller.inject(Scenario.SHARD_QUORUM_LOST):
        result = driver.execute(descriptor, write_concern, db_name)
    # replication restored here, on every exit path
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator

from pymongo.errors import PyMongoError

from wc_harness.conformance.domain import Scenario
from wc_harness.core.config import Settings
from wc_harness.core.exceptions import FailPointError, ReplicationTimeoutError
from wc_harness.core.logging import get_context_logger, get_logger

if TYPE_CHECKING:
    from wc_harness.cluster.connection import ClusterConnections, ReplicaSetGroup

logger = get_logger("conformance.topology")

FAIL_POINT = "stopReplProducer"


@dataclass
class TopologyFaultState:
    """Replica set groups whose secondaries are currently paused."""

    suspended: set[str] = field(default_factory=set)

    @property
    def is_clean(self) -> bool:
        return not self.suspended


class FaultHandle:
    """Scoped fault; restores the topology exactly once."""

    def __init__(self, scenario: Scenario, controller: "TopologyController"):
        self.scenario = scenario
        self.controller = controller
        self.restored = False

    def restore(self) -> None:
        if self.restored:
            return
        self.restored = True
        self.controller.restore_all()


class TopologyController:
    """Suspend and resume secondary replication per replica set group."""

    def __init__(self, cluster: "ClusterConnections", settings: Settings):
        self.cluster = cluster
        self.settings = settings
        self.state = TopologyFaultState()

    # -------------------------------------------------------------------------
    # Suspension
    # -------------------------------------------------------------------------

    def suspend_shard_secondaries(self) -> None:
        """Stop replication on the secondaries of every shard replica set."""
        for group in self.cluster.shard_groups:
            self._suspend_group(group)

    def suspend_control_plane_secondaries(self) -> None:
        """Stop replication on the config server secondaries."""
        self._suspend_group(self.cluster.config_group)

    def _suspend_group(self, group: "ReplicaSetGroup") -> None:
        secondaries = group.secondaries()
        # Mark first so a partial failure is still restored
        self.state.suspended.add(group.name)
        for host in secondaries:
            self._enable_fail_point(host)
        logger.info("Paused replication on %s secondaries %s", group.name, secondaries)

    def _enable_fail_point(self, host: str) -> None:
        admin = self.cluster.direct(host).admin
        log = get_context_logger("conformance.topology", host=host, fail_point=FAIL_POINT)
        try:
            reply = admin.command("configureFailPoint", FAIL_POINT, mode="alwaysOn")
            times_entered = int(reply.get("count", 0)) + 1
            admin.command(
                "waitForFailPoint",
                FAIL_POINT,
                timesEntered=times_entered,
                maxTimeMS=self.settings.failpoint_timeout_ms,
            )
            log.debug("Fail point entered %d times", times_entered)
        except PyMongoError as e:
            raise FailPointError(
                f"Could not pause replication on {host}: {e}",
                details={"host": host, "fail_point": FAIL_POINT},
            ) from e

    # -------------------------------------------------------------------------
    # Restoration
    # -------------------------------------------------------------------------

    def restore_all(self) -> None:
        """Resume replication on every node of every group."""
        errors: dict[str, str] = {}
        for group in self.cluster.groups:
            for host in group.hosts:
                try:
                    self.cluster.direct(host).admin.command(
                        "configureFailPoint", FAIL_POINT, mode="off"
                    )
                except PyMongoError as e:
                    errors[host] = str(e)

        if errors:
            raise FailPointError(
                f"Could not resume replication on {sorted(errors)}",
                details={"errors": errors, "suspended": sorted(self.state.suspended)},
            )

        if self.state.suspended:
            logger.info("Resumed replication on %s", sorted(self.state.suspended))
        self.state.suspended.clear()

    # -------------------------------------------------------------------------
    # Replication status
    # -------------------------------------------------------------------------

    def await_full_replication(self, timeout: float | None = None) -> None:
        """Block until every group's secondaries have caught up."""
        for group in self.cluster.groups:
            self.await_replication(group, timeout)

    def await_replication(
        self, group: "ReplicaSetGroup", timeout: float | None = None
    ) -> None:
        """Block until the secondaries of one group match its primary optime."""
        timeout = timeout or self.settings.replication_timeout_s
        poll_interval = self.settings.replication_poll_interval_s
        start = time.monotonic()

        while True:
            lagging = self._lagging_members(group)
            if not lagging:
                return
            if (time.monotonic() - start) >= timeout:
                raise ReplicationTimeoutError(
                    f"{group.name} secondaries did not catch up within {timeout}s",
                    details={"group": group.name, "lagging": lagging},
                )
            time.sleep(poll_interval)

    def _lagging_members(self, group: "ReplicaSetGroup") -> list[str]:
        status = group.status()
        members: list[dict[str, Any]] = status.get("members", [])
        primary_name = group.primary(status)
        secondaries = set(group.secondaries(status))
        primary_optime = next(
            _optime(m) for m in members if m.get("name") == primary_name
        )
        return [
            m["name"]
            for m in members
            if m["name"] in secondaries and _optime(m) != primary_optime
        ]

    # -------------------------------------------------------------------------
    # Scoped faults
    # -------------------------------------------------------------------------

    @contextmanager
    def inject(self, scenario: Scenario) -> Iterator[FaultHandle]:
        """Apply the scenario's fault; restore everything on exit."""
        handle = FaultHandle(scenario, self)
        try:
            if scenario.injects_fault:
                self.suspend_shard_secondaries()
            if scenario == Scenario.CONFIG_QUORUM_LOST:
                # Config secondaries must hold the shard metadata before pausing
                self.await_replication(self.cluster.config_group)
                self.suspend_control_plane_secondaries()
            yield handle
        finally:
            handle.restore()


def _optime(member: dict[str, Any]) -> Any:
    optime = member.get("optime") or {}
    # Protocol version 1 nests the timestamp; older servers report it bare
    return optime.get("ts") if isinstance(optime, dict) else optime
