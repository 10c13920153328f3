"""Cluster access: router client, replica set groups, node connections."""

from wc_harness.cluster.connection import (
    ClusterConnections,
    GroupRole,
    ReplicaSetGroup,
    parse_replica_set_uri,
)

__all__ = [
    "ClusterConnections",
    "GroupRole",
    "ReplicaSetGroup",
    "parse_replica_set_uri",
]
