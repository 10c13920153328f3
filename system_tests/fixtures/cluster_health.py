"""
Cluster Health Checker - Verify the sharded cluster before live runs.

Checks that the router answers, that every replica set group has a primary
and secondaries, and that no fail point is left over from an earlier run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from pymongo.errors import PyMongoError

from wc_harness.cluster.connection import ClusterConnections, ReplicaSetGroup
from wc_harness.conformance.topology import TopologyController
from wc_harness.core.exceptions import HarnessError


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    name: str
    healthy: bool
    message: str
    details: dict | None = None


class ClusterHealthChecker:
    """
    Verify the whole cluster is ready.

    Checks:
    1. Router answers ping
    2. Each replica set group has a primary and at least one secondary
    3. Each group's secondaries have caught up with the primary
    """

    def __init__(self, cluster: ClusterConnections, topology: TopologyController):
        self.cluster = cluster
        self.topology = topology

    def check_all(self) -> list[HealthCheckResult]:
        results = [self._check_router()]
        if not results[0].healthy:
            return results

        try:
            groups = self.cluster.groups
        except (HarnessError, PyMongoError) as e:
            results.append(HealthCheckResult("topology", False, f"Discovery failed: {e}"))
            return results

        for group in groups:
            results.append(self._check_group(group))
        return results

    def assert_healthy(self) -> None:
        """Raise AssertionError listing every failing check."""
        failures = [r for r in self.check_all() if not r.healthy]
        if failures:
            messages = "\n".join(f"  ❌ {r.name}: {r.message}" for r in failures)
            raise AssertionError(
                f"Cluster health check failed:\n{messages}\n\n"
                f"Point WC_MONGOS_URI at a router of a cluster with at least two "
                f"three-member shards and a three-member config replica set."
            )

    def wait_for_healthy(self, timeout: float = 30.0, poll_interval: float = 2.0) -> None:
        start = time.time()
        while (time.time() - start) < timeout:
            try:
                self.assert_healthy()
                return
            except AssertionError:
                time.sleep(poll_interval)

        self.assert_healthy()

    def _check_router(self) -> HealthCheckResult:
        try:
            self.cluster.ping()
        except HarnessError as e:
            return HealthCheckResult("router", False, e.message)
        return HealthCheckResult("router", True, "Router responding")

    def _check_group(self, group: ReplicaSetGroup) -> HealthCheckResult:
        name = f"{group.role.value}:{group.name}"
        try:
            status = group.status()
            primary = group.primary(status)
            secondaries = group.secondaries(status)
            if not secondaries:
                return HealthCheckResult(name, False, "No secondaries to pause")
            self.topology.await_replication(group, timeout=5)
        except HarnessError as e:
            return HealthCheckResult(name, False, e.message, details=e.details)

        return HealthCheckResult(
            name,
            True,
            f"primary {primary}, {len(secondaries)} secondaries caught up",
        )

    def print_status(self) -> None:
        print("\n" + "=" * 60)
        print("CLUSTER HEALTH STATUS")
        print("=" * 60)

        for result in self.check_all():
            icon = "✅" if result.healthy else "❌"
            print(f"  {icon} {result.name}: {result.message}")

        print("=" * 60 + "\n")
