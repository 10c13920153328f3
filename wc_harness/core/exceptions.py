"""Harness exception taxonomy."""

from __future__ import annotations

from typing import Any


class HarnessError(Exception):
    """Base harness exception with a structured error payload."""

    error_code: str = "HARNESS_ERROR"
    message: str = "Conformance harness error"
    server_codes: frozenset[int] = frozenset()  # Server error codes this class covers

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }


class RequestValidationError(HarnessError):
    """The cluster rejected the write concern itself."""

    error_code = "REQUEST_VALIDATION"
    message = "Write concern rejected as invalid"
    # FailedToParse, UnknownReplWriteConcern, UnsatisfiableWriteConcern
    server_codes = frozenset({9, 79, 100})


class QuorumTimeoutError(HarnessError):
    """The requested acknowledgement level was not met in time."""

    error_code = "QUORUM_TIMEOUT"
    message = "Write concern quorum not reached before wtimeout"
    server_codes = frozenset({64})  # WriteConcernFailed


class AssertionMismatch(HarnessError):
    """Observed behaviour contradicts the declared expectation."""

    error_code = "ASSERTION_MISMATCH"
    message = "Command outcome does not match expectation"


class CatalogError(HarnessError):
    """Inconsistent or duplicate command descriptor."""

    error_code = "CATALOG_ERROR"
    message = "Invalid command descriptor"


class TopologyError(HarnessError):
    """Fault injection or topology discovery failed."""

    error_code = "TOPOLOGY_ERROR"
    message = "Topology control failed"


class FailPointError(TopologyError):
    """A fail point could not be toggled or was never entered."""

    error_code = "FAILPOINT_ERROR"
    message = "Fail point was not acknowledged"


class ReplicationTimeoutError(TopologyError):
    """Secondaries did not catch up with their primary in time."""

    error_code = "REPLICATION_TIMEOUT"
    message = "Replica set did not reach full replication"


class ClusterUnavailableError(HarnessError):
    """The cluster router could not be reached."""

    error_code = "CLUSTER_UNAVAILABLE"
    message = "Cluster is not reachable"
