"""
Conformance reporters package.
"""

from wc_harness.reporters.case_report import CaseReport
from wc_harness.reporters.summary import RunSummary

__all__ = [
    "CaseReport",
    "RunSummary",
]
