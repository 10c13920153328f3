"""
Conformance orchestration.

Each case moves through:

    Reset -> Setup -> InjectFault? -> Execute -> RestoreTopology -> Verify -> Confirm

and ends either passed or failed. A failed case is logged and reported
immediately; the run continues with the next case unless fail_fast is set.
Cluster commands are never retried: a mismatch is a conformance defect.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from pymongo.errors import OperationFailure, PyMongoError

from wc_harness.conformance.catalog import CaseContext, CommandCatalog, CommandDescriptor
from wc_harness.conformance.commands import STALE_CREDENTIALS
from wc_harness.conformance.domain import (
    NON_MAJORITY_WRITE_CONCERNS,
    Outcome,
    RawResult,
    Scenario,
    WriteConcern,
    majority,
)
from wc_harness.conformance.driver import ClusterDriver
from wc_harness.conformance.topology import TopologyController
from wc_harness.conformance.verifier import Expectation, OutcomeVerifier
from wc_harness.core.config import Settings
from wc_harness.core.exceptions import AssertionMismatch, HarnessError
from wc_harness.core.logging import case_id_var, get_logger, redact_command
from wc_harness.reporters.case_report import CaseReport

if TYPE_CHECKING:
    from wc_harness.cluster.connection import ClusterConnections

logger = get_logger("conformance.orchestrator")

USER_NOT_FOUND = 11

VALID_SCENARIOS = (
    Scenario.HEALTHY,
    Scenario.SHARD_QUORUM_LOST,
    Scenario.CONFIG_QUORUM_LOST,
)


class CaseStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"


@dataclass(frozen=True)
class ConformanceCase:
    """One command, one write concern, one scenario."""

    descriptor: CommandDescriptor
    write_concern: WriteConcern
    scenario: Scenario

    @property
    def case_id(self) -> str:
        return f"{self.descriptor.name}|{self.write_concern}|{self.scenario.value}"


@dataclass
class CaseResult:
    case: ConformanceCase
    status: CaseStatus
    database: str
    expected: Outcome | None = None
    observed: Outcome | None = None
    error: HarnessError | None = None
    duration_s: float = 0.0
    report_path: Path | None = None

    @property
    def passed(self) -> bool:
        return self.status == CaseStatus.PASSED


class ScratchDatabase:
    """Hands out a fresh working database name per case.

    Databases are never reused: a case that drops a database while config
    secondaries are paused can leave its metadata half-removed.
    """

    def __init__(self, prefix: str):
        self.prefix = prefix
        self.counter = 0
        self.current: str | None = None

    def next(self) -> str:
        self.current = f"{self.prefix}{self.counter}"
        self.counter += 1
        return self.current


class TestOrchestrator:
    """Plan and run write-concern conformance cases sequentially."""

    __test__ = False  # not a pytest class

    def __init__(
        self,
        cluster: "ClusterConnections",
        settings: Settings,
        topology: TopologyController | None = None,
        driver: ClusterDriver | None = None,
        verifier: OutcomeVerifier | None = None,
        stale_credentials: list[tuple[str, str]] | None = None,
    ):
        self.cluster = cluster
        self.settings = settings
        self.topology = topology or TopologyController(cluster, settings)
        self.driver = driver or ClusterDriver(cluster)
        self.verifier = verifier or OutcomeVerifier()
        self.stale_credentials = (
            STALE_CREDENTIALS if stale_credentials is None else stale_credentials
        )
        self.scratch = ScratchDatabase(settings.db_prefix)

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def plan(self, catalog: CommandCatalog) -> list[ConformanceCase]:
        """Expand the catalogue into the ordered list of cases to run."""
        return plan_cases(catalog, self.settings.majority_wtimeout_ms)

    def bounded_write_concern(self, case: ConformanceCase) -> WriteConcern:
        """Cap the wait so quorum-loss scenarios fail fast instead of hanging."""
        if case.scenario == Scenario.SHARD_QUORUM_LOST:
            return case.write_concern.with_timeout(self.settings.shard_fault_wtimeout_ms)
        if case.scenario == Scenario.CONFIG_QUORUM_LOST:
            return case.write_concern.with_timeout(self.settings.config_fault_wtimeout_ms)
        return case.write_concern

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def run(self, catalog: CommandCatalog) -> list[CaseResult]:
        cases = self.plan(catalog)
        logger.info("Running %d cases for %d commands", len(cases), len(catalog))

        results = []
        for case in cases:
            result = self.run_case(case)
            results.append(result)
            if not result.passed and self.settings.fail_fast:
                logger.warning("Stopping after first failure (fail_fast)")
                break

        failed = sum(1 for r in results if not r.passed)
        logger.info("Finished: %d passed, %d failed", len(results) - failed, failed)
        return results

    def run_case(self, case: ConformanceCase) -> CaseResult:
        token = case_id_var.set(case.case_id)
        started_at = datetime.now(UTC)
        start = time.monotonic()
        expectation = self.verifier.expectation_for(case.descriptor, case.scenario)
        db_name = self.scratch.current or ""
        raw: RawResult | None = None
        observed: Outcome | None = None
        self.driver.last_request = None

        try:
            logger.info("Testing %s", case.case_id)
            db_name = self.reset()
            ctx = CaseContext(self.cluster, db_name, self.settings.collection_name)
            case.descriptor.setup(ctx)

            write_concern = self.bounded_write_concern(case)
            with self.topology.inject(case.scenario):
                raw = self.driver.execute(case.descriptor, write_concern, db_name)

            observed = self.verifier.verify(raw, expectation)
            if self.verifier.matches_evidence(raw, expectation):
                logger.info(
                    "Observed %s as expected (%s)",
                    expectation.evidence.error_code,
                    raw.code_name or raw.describe(),
                )
            elif expectation.evidence is not None:
                logger.warning(
                    "Outcome matched but no %s error code in reply: %s",
                    expectation.evidence.error_code,
                    raw.describe(),
                )
            if expectation.confirm:
                case.descriptor.confirm(ctx)

        except (HarnessError, PyMongoError) as e:
            error = e if isinstance(e, HarnessError) else _wrap_driver_error(e)
            result = CaseResult(
                case=case,
                status=CaseStatus.FAILED,
                database=db_name,
                expected=expectation.outcome,
                observed=observed or self._safe_classify(raw),
                error=error,
                duration_s=time.monotonic() - start,
            )
            logger.error("FAILED %s: %s", case.case_id, error.message)
            result.report_path = self._report(result, expectation, raw, started_at)
            return result
        else:
            logger.info("Passed %s", case.case_id)
            return CaseResult(
                case=case,
                status=CaseStatus.PASSED,
                database=db_name,
                expected=expectation.outcome,
                observed=observed,
                duration_s=time.monotonic() - start,
            )
        finally:
            case_id_var.reset(token)

    def reset(self) -> str:
        """Restore a clean baseline and move to a fresh working database."""
        if not self.topology.state.is_clean:
            logger.warning("Topology still faulted from a previous case, restoring")
            self.topology.restore_all()
        self.topology.await_full_replication()

        previous = self.scratch.current
        if previous:
            db = self.cluster.database(previous)
            for user in self.settings.scratch_users:
                try:
                    db.command("dropUser", user)
                except OperationFailure as e:
                    if e.code != USER_NOT_FOUND:
                        raise
            for user, password in self.stale_credentials:
                if self.cluster.authenticates(previous, user, password):
                    raise AssertionMismatch(
                        f"user {user} still authenticates after reset",
                        details={"database": previous, "user": user},
                    )

        return self.scratch.next()

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def _safe_classify(self, raw: RawResult | None) -> Outcome | None:
        if raw is None:
            return None
        try:
            return self.verifier.classify(raw)
        except AssertionMismatch:
            return None

    def _report(
        self,
        result: CaseResult,
        expectation: Expectation,
        raw: RawResult | None,
        started_at: datetime,
    ) -> Path | None:
        request = self.driver.last_request
        report = CaseReport(
            case_id=result.case.case_id,
            command=result.case.descriptor.name,
            scenario=result.case.scenario.value,
            write_concern=str(result.case.write_concern),
            database=result.database,
            case_start=started_at,
            case_end=datetime.now(UTC),
            request=redact_command(request) if request else None,
            reply=raw.reply if raw is not None else None,
            expected_outcome=expectation.outcome.value,
            observed_outcome=result.observed.value if result.observed else None,
            error=result.error.to_dict() if result.error else None,
            router_log=self.cluster.router_log(self.settings.report_log_lines),
        )
        try:
            path = report.save(self.settings.report_dir)
            path.with_suffix(".md").write_text(report.to_markdown())
        except OSError as e:
            logger.warning("Could not write report for %s: %s", result.case.case_id, e)
            return None
        logger.info("Report written to %s", path)
        return path


def plan_cases(catalog: CommandCatalog, majority_wtimeout_ms: int) -> list[ConformanceCase]:
    """Expand a catalogue into the ordered list of cases to run."""
    majority_wc = majority(majority_wtimeout_ms)
    cases: list[ConformanceCase] = []

    for descriptor in catalog.strict():
        for wc in NON_MAJORITY_WRITE_CONCERNS:
            # A numeric w is only meaningfully invalid for commands that
            # insist on majority
            if isinstance(wc.w, int) and not descriptor.requires_majority:
                continue
            cases.append(ConformanceCase(descriptor, wc, Scenario.INVALID_WRITE_CONCERN))
        for scenario in VALID_SCENARIOS:
            cases.append(ConformanceCase(descriptor, majority_wc, scenario))

    # The router upconverts these, so every write concern must work
    for descriptor in catalog.upconverted():
        for wc in (*NON_MAJORITY_WRITE_CONCERNS, majority_wc):
            for scenario in VALID_SCENARIOS:
                cases.append(ConformanceCase(descriptor, wc, scenario))

    return cases


def _wrap_driver_error(error: PyMongoError) -> HarnessError:
    return HarnessError(
        f"{type(error).__name__}: {error}",
        error_code="DRIVER_ERROR",
        details={"type": type(error).__name__},
    )
