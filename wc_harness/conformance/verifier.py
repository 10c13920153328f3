"""
Outcome verification.

Classifies a raw reply into exactly one outcome class and checks it against
what a descriptor declares for a scenario:

| scenario             | flags                          | expected                |
|----------------------|--------------------------------|-------------------------|
| invalid write concern| any                            | hard failure            |
| healthy              | any                            | success + confirm       |
| shard quorum lost    | runs_on_shards, fails_on_shards| hard failure            |
| shard quorum lost    | runs_on_shards only            | soft error + confirm    |
| shard quorum lost    | config servers only            | success + confirm       |
| config quorum lost   | any                            | hard failure            |
"""

from __future__ import annotations

from dataclasses import dataclass

from wc_harness.conformance.catalog import CommandDescriptor
from wc_harness.conformance.domain import Outcome, RawResult, Scenario
from wc_harness.core.exceptions import (
    AssertionMismatch,
    HarnessError,
    QuorumTimeoutError,
    RequestValidationError,
)
from wc_harness.core.logging import get_logger

logger = get_logger("conformance.verifier")


@dataclass(frozen=True)
class Expectation:
    """Declared result of running a command in a scenario."""

    outcome: Outcome
    confirm: bool
    evidence: type[HarnessError] | None = None  # Failure class the outcome represents


class OutcomeVerifier:
    """Classify replies and hold them to a descriptor's expectations."""

    def classify(self, result: RawResult) -> Outcome:
        if not result.ok:
            if result.has_write_concern_error:
                raise AssertionMismatch(
                    "reply reports both a command failure and a writeConcernError",
                    details={"reply": result.reply},
                )
            return Outcome.HARD_FAILURE
        if result.has_write_concern_error:
            return Outcome.SUCCESS_WITH_SOFT_ERROR
        return Outcome.SUCCESS

    def expectation_for(
        self, descriptor: CommandDescriptor, scenario: Scenario
    ) -> Expectation:
        if scenario == Scenario.INVALID_WRITE_CONCERN:
            return Expectation(Outcome.HARD_FAILURE, False, RequestValidationError)

        if scenario == Scenario.HEALTHY:
            return Expectation(Outcome.SUCCESS, True)

        if scenario == Scenario.SHARD_QUORUM_LOST:
            if not descriptor.runs_on_shards:
                # Config servers alone can satisfy the write concern
                return Expectation(Outcome.SUCCESS, True)
            if descriptor.fails_on_shards:
                return Expectation(Outcome.HARD_FAILURE, False, QuorumTimeoutError)
            return Expectation(Outcome.SUCCESS_WITH_SOFT_ERROR, True, QuorumTimeoutError)

        # Config quorum loss is fatal regardless of the shard flags
        return Expectation(Outcome.HARD_FAILURE, False, QuorumTimeoutError)

    def verify(self, result: RawResult, expectation: Expectation) -> Outcome:
        """Return the observed outcome or raise AssertionMismatch."""
        observed = self.classify(result)
        if observed != expectation.outcome:
            raise AssertionMismatch(
                f"expected {expectation.outcome.value}, got {observed.value}: "
                f"{result.describe()}",
                details={
                    "expected": expectation.outcome.value,
                    "observed": observed.value,
                    "reply": result.reply,
                },
            )
        logger.debug("Outcome %s matches expectation", observed.value)
        return observed

    def matches_evidence(self, result: RawResult, expectation: Expectation) -> bool:
        """True when the reply carries an error code of the expected failure class."""
        if expectation.evidence is None:
            return False
        codes = {result.code}
        if result.write_concern_error is not None:
            codes.add(result.write_concern_error.get("code"))
        return bool(codes & expectation.evidence.server_codes)
