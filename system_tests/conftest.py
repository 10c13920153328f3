"""
System Test Configuration - pytest fixtures for a live sharded cluster.

This conftest runs the conformance harness against a real cluster:
1. Tests talk to the router at WC_MONGOS_URI (no fakes)
2. Topology is discovered once per session
3. Every test must leave replication running on all nodes
4. Case reports land in WC_REPORT_DIR on failure

CRITICAL: This file must be in system_tests/ to apply only to system tests.
The tests/ folder uses its own conftest with an in-memory cluster.
"""

from __future__ import annotations

from typing import Generator

import pytest

from system_tests.fixtures.cluster_health import ClusterHealthChecker
from wc_harness.cluster.connection import ClusterConnections
from wc_harness.conformance.orchestrator import TestOrchestrator
from wc_harness.conformance.topology import TopologyController
from wc_harness.core.config import Settings, get_settings
from wc_harness.core.exceptions import HarnessError
from wc_harness.core.logging import setup_logging


# =============================================================================
# CONFIGURATION
# =============================================================================


@pytest.fixture(scope="session")
def settings() -> Settings:
    """Load harness settings from the environment."""
    settings = get_settings()
    setup_logging(settings)
    return settings


# =============================================================================
# CLUSTER CONNECTIONS
# =============================================================================


@pytest.fixture(scope="session")
def cluster(settings: Settings) -> Generator[ClusterConnections, None, None]:
    """
    Connect to the router and discover the topology.

    Skips the whole session when the router is unreachable.
    """
    connections = ClusterConnections.from_settings(settings)
    try:
        connections.ping()
    except HarnessError as e:
        connections.close()
        pytest.skip(f"No cluster available: {e.message}")

    connections.discover()
    yield connections
    connections.close()


@pytest.fixture(scope="session")
def topology(cluster: ClusterConnections, settings: Settings) -> TopologyController:
    return TopologyController(cluster, settings)


@pytest.fixture(scope="session")
def orchestrator(
    cluster: ClusterConnections,
    settings: Settings,
    topology: TopologyController,
) -> TestOrchestrator:
    """One orchestrator per session so scratch databases are never reused."""
    return TestOrchestrator(cluster, settings, topology=topology)


# =============================================================================
# CLUSTER HEALTH CHECK (Session-scoped)
# =============================================================================


@pytest.fixture(scope="session")
def cluster_health(
    cluster: ClusterConnections,
    topology: TopologyController,
) -> ClusterHealthChecker:
    return ClusterHealthChecker(cluster, topology)


@pytest.fixture(scope="session", autouse=True)
def verify_cluster_healthy(
    cluster_health: ClusterHealthChecker,
    topology: TopologyController,
    settings: Settings,
):
    """
    Verify the cluster is healthy before running any tests.

    Clears fail points a previous, interrupted run may have left behind.
    """
    print("\n" + "=" * 60)
    print("🔍 WRITE CONCERN CONFORMANCE - LIVE CLUSTER")
    print("=" * 60)
    print(f"  Router: {settings.mongos_uri}")
    print(f"  Reports: {settings.report_dir}")
    print("=" * 60)

    try:
        topology.restore_all()
        cluster_health.wait_for_healthy(timeout=30)
        print("\n✅ Cluster healthy, starting system tests...\n")
    except (AssertionError, HarnessError) as e:
        cluster_health.print_status()
        pytest.fail(str(e))


# =============================================================================
# TOPOLOGY GUARD (Per-test, autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def topology_guard(topology: TopologyController) -> Generator[None, None, None]:
    """
    Fail any test that leaves replication paused.

    The topology is restored either way so later tests start clean.
    """
    yield

    if not topology.state.is_clean:
        suspended = sorted(topology.state.suspended)
        topology.restore_all()
        pytest.fail(f"Test left replication paused on {suspended}")


# =============================================================================
# PYTEST HOOKS
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "workflow: Full conformance case against a live cluster",
    )
    config.addinivalue_line(
        "markers",
        "smoke: Quick sanity check against a live cluster",
    )
    config.addinivalue_line(
        "markers",
        "slow: Test that takes more than 10 seconds",
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "/smoke/" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)

        if "/workflows/" in str(item.fspath):
            item.add_marker(pytest.mark.workflow)
            item.add_marker(pytest.mark.slow)
