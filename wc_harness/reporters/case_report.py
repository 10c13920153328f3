"""
Case Report - Structured failure reports for conformance cases.

Format designed to be:
1. Machine-parseable (JSON)
2. Self-contained: request, reply, expectation and router log tail
3. Renderable as Markdown for human review
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


@dataclass
class CaseReport:
    """Everything needed to diagnose one failed conformance case."""

    # Case identification
    case_id: str  # e.g. createUser|{w: 'invalid'}|invalid_write_concern
    command: str
    scenario: str
    write_concern: str
    database: str
    case_start: datetime
    case_end: datetime

    # Evidence
    request: dict[str, Any] | None = None
    reply: dict[str, Any] | None = None
    expected_outcome: str | None = None
    observed_outcome: str | None = None
    error: dict[str, Any] | None = None
    router_log: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "case_id": self.case_id,
            "command": self.command,
            "scenario": self.scenario,
            "write_concern": self.write_concern,
            "database": self.database,
            "case_start": self.case_start.isoformat(),
            "case_end": self.case_end.isoformat(),
            "duration_seconds": (self.case_end - self.case_start).total_seconds(),
            "summary": self._generate_summary(),
            "request": self.request,
            "reply": self.reply,
            "expected_outcome": self.expected_outcome,
            "observed_outcome": self.observed_outcome,
            "error": self.error,
            "router_log": self.router_log,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)

    def save(self, directory: Path | str = "test-results/wc-reports") -> Path:
        """Save report to a JSON file and return the path."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        safe_name = "".join(
            ch if ch.isalnum() or ch in "-_" else "_" for ch in self.case_id
        )
        timestamp = self.case_start.strftime("%Y%m%d_%H%M%S")
        filepath = directory / f"{safe_name}_{timestamp}.json"
        filepath.write_text(self.to_json())

        return filepath

    def _generate_summary(self) -> str:
        """Generate a one-line summary for quick triage."""
        parts = [f"{self.command} under {self.scenario} with {self.write_concern}"]

        if self.expected_outcome or self.observed_outcome:
            parts.append(
                f"expected {self.expected_outcome or '?'}, "
                f"observed {self.observed_outcome or '?'}"
            )

        if self.error:
            parts.append(f"{self.error.get('error')}: {str(self.error.get('message'))[:80]}")

        return " | ".join(parts)

    def to_markdown(self) -> str:
        """Generate markdown report for human review."""
        duration = (self.case_end - self.case_start).total_seconds()

        md = f"""# Conformance Failure Report

## Case: `{self.case_id}`

**Database:** `{self.database}`
**Duration:** {duration:.2f}s
**Summary:** {self._generate_summary()}

---
"""

        if self.error:
            md += f"\n## Error\n\n```json\n{json.dumps(self.error, indent=2, default=str)}\n```\n"

        if self.request:
            md += f"\n## Request\n\n```json\n{json.dumps(self.request, indent=2, default=str)}\n```\n"

        if self.reply:
            md += f"\n## Reply\n\n```json\n{json.dumps(self.reply, indent=2, default=str)}\n```\n"

        if self.router_log:
            md += "\n## Router Log\n\n```\n"
            md += "\n".join(self.router_log[-20:])
            md += "\n```\n"

        return md
