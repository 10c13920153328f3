"""Aggregate case results into a run summary."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from wc_harness.conformance.orchestrator import CaseResult


@dataclass
class RunSummary:
    """Pass/fail totals plus the failing cases."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    by_scenario: dict[str, Counter] = field(default_factory=dict)
    failures: list["CaseResult"] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: list["CaseResult"]) -> "RunSummary":
        summary = cls()
        for result in results:
            summary.total += 1
            scenario = result.case.scenario.value
            counts = summary.by_scenario.setdefault(scenario, Counter())
            if result.passed:
                summary.passed += 1
                counts["passed"] += 1
            else:
                summary.failed += 1
                counts["failed"] += 1
                summary.failures.append(result)
        return summary

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "by_scenario": {k: dict(v) for k, v in self.by_scenario.items()},
            "failures": [
                {
                    "case_id": r.case.case_id,
                    "error": r.error.to_dict() if r.error else None,
                    "report": str(r.report_path) if r.report_path else None,
                }
                for r in self.failures
            ],
        }

    def render(self) -> str:
        """Text table for terminal output."""
        lines = ["=" * 70, "WRITE CONCERN CONFORMANCE", "=" * 70]
        for scenario, counts in self.by_scenario.items():
            lines.append(
                f"  {scenario:<24} passed={counts['passed']:<4} failed={counts['failed']}"
            )
        lines.append("-" * 70)
        lines.append(f"  total={self.total} passed={self.passed} failed={self.failed}")

        if self.failures:
            lines.append("")
            lines.append("Failures:")
            for r in self.failures:
                message = r.error.message if r.error else "unknown error"
                lines.append(f"  ❌ {r.case.case_id}: {message}")
                if r.report_path:
                    lines.append(f"     report: {r.report_path}")

        lines.append("=" * 70)
        return "\n".join(lines)
