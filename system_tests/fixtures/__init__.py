"""
System test fixtures package.
"""

from system_tests.fixtures.cluster_health import ClusterHealthChecker, HealthCheckResult

__all__ = [
    "ClusterHealthChecker",
    "HealthCheckResult",
]
