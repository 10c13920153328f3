"""Write-concern conformance engine: catalogue, faults, driver, verifier, orchestrator."""

from wc_harness.conformance.catalog import (
    CaseContext,
    CommandCatalog,
    CommandDescriptor,
    Partition,
)
from wc_harness.conformance.commands import default_catalog
from wc_harness.conformance.domain import (
    MAJORITY,
    NON_MAJORITY_WRITE_CONCERNS,
    Outcome,
    RawResult,
    Scenario,
    WriteConcern,
    majority,
)
from wc_harness.conformance.driver import ClusterDriver
from wc_harness.conformance.orchestrator import (
    CaseResult,
    CaseStatus,
    ConformanceCase,
    ScratchDatabase,
    TestOrchestrator,
    plan_cases,
)
from wc_harness.conformance.topology import (
    FaultHandle,
    TopologyController,
    TopologyFaultState,
)
from wc_harness.conformance.verifier import Expectation, OutcomeVerifier

__all__ = [
    "MAJORITY",
    "NON_MAJORITY_WRITE_CONCERNS",
    "CaseContext",
    "CaseResult",
    "CaseStatus",
    "ClusterDriver",
    "CommandCatalog",
    "CommandDescriptor",
    "ConformanceCase",
    "Expectation",
    "FaultHandle",
    "Outcome",
    "OutcomeVerifier",
    "Partition",
    "RawResult",
    "Scenario",
    "ScratchDatabase",
    "TestOrchestrator",
    "TopologyController",
    "TopologyFaultState",
    "WriteConcern",
    "default_catalog",
    "majority",
    "plan_cases",
]
