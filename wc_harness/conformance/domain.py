"""
Write-concern conformance domain types.

Write concerns, fault scenarios, outcome classes and the raw command reply
shared by the driver, the verifier and the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


MAJORITY = "majority"


@dataclass(frozen=True)
class WriteConcern:
    """Acknowledgement requirement attached to a command."""

    w: str | int
    wtimeout: int | None = None  # milliseconds

    @property
    def is_majority(self) -> bool:
        return self.w == MAJORITY

    def with_timeout(self, wtimeout: int) -> "WriteConcern":
        return replace(self, wtimeout=wtimeout)

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"w": self.w}
        if self.wtimeout is not None:
            document["wtimeout"] = self.wtimeout
        return document

    def __str__(self) -> str:
        w = f"'{self.w}'" if isinstance(self.w, str) else str(self.w)
        if self.wtimeout is None:
            return f"{{w: {w}}}"
        return f"{{w: {w}, wtimeout: {self.wtimeout}}}"


def majority(wtimeout: int | None = None) -> WriteConcern:
    return WriteConcern(MAJORITY, wtimeout)


# Config server commands must reject both of these
NON_MAJORITY_WRITE_CONCERNS: tuple[WriteConcern, ...] = (
    WriteConcern("invalid"),
    WriteConcern(2),
)


class Scenario(str, Enum):
    """Cluster health in which a command is executed."""

    INVALID_WRITE_CONCERN = "invalid_write_concern"  # Healthy cluster, bad request
    HEALTHY = "healthy"  # Every node replicating
    SHARD_QUORUM_LOST = "shard_quorum_lost"  # All shard secondaries paused
    CONFIG_QUORUM_LOST = "config_quorum_lost"  # Shard and config secondaries paused

    @property
    def injects_fault(self) -> bool:
        return self in (Scenario.SHARD_QUORUM_LOST, Scenario.CONFIG_QUORUM_LOST)


class Outcome(str, Enum):
    """Exactly one of these describes every command execution."""

    HARD_FAILURE = "hard_failure"
    SUCCESS = "success"
    SUCCESS_WITH_SOFT_ERROR = "success_with_soft_error"


@dataclass
class RawResult:
    """Unvalidated command reply as returned by the router."""

    ok: bool
    reply: dict[str, Any] = field(default_factory=dict)
    write_concern_error: dict[str, Any] | None = None
    code: int | None = None
    code_name: str | None = None
    errmsg: str | None = None

    @classmethod
    def from_reply(cls, reply: dict[str, Any]) -> "RawResult":
        return cls(
            ok=bool(reply.get("ok")),
            reply=reply,
            write_concern_error=reply.get("writeConcernError"),
            code=reply.get("code"),
            code_name=reply.get("codeName"),
            errmsg=reply.get("errmsg"),
        )

    @property
    def has_write_concern_error(self) -> bool:
        return self.write_concern_error is not None

    def describe(self) -> str:
        """One-line summary for logs and assertion messages."""
        parts = [f"ok={int(self.ok)}"]
        if self.code is not None:
            parts.append(f"code={self.code}")
        if self.code_name:
            parts.append(f"codeName={self.code_name}")
        if self.errmsg:
            parts.append(f"errmsg={self.errmsg[:120]!r}")
        if self.write_concern_error is not None:
            wce = self.write_concern_error
            parts.append(
                f"writeConcernError={{code: {wce.get('code')}, errmsg: {wce.get('errmsg', '')[:80]!r}}}"
            )
        return " ".join(parts)
