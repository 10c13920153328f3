#!/usr/bin/env python
"""Run the config-server write-concern conformance suite against a live cluster.

Usage:
    WC_MONGOS_URI=mongodb://localhost:20000 python run_conformance.py
    python run_conformance.py --command createUser --command dropUser --fail-fast
    python run_conformance.py --list

Exit codes:
    0 - every case passed
    1 - one or more cases failed
    2 - the cluster could not be reached
"""

from __future__ import annotations

import argparse
import json
import sys

from pymongo.errors import PyMongoError

from wc_harness.cluster.connection import ClusterConnections
from wc_harness.conformance.commands import default_catalog
from wc_harness.conformance.orchestrator import TestOrchestrator
from wc_harness.core.config import get_settings
from wc_harness.core.exceptions import HarnessError
from wc_harness.core.logging import get_logger, setup_logging
from wc_harness.reporters.summary import RunSummary

logger = get_logger("cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--command",
        action="append",
        default=[],
        help="Only run the named catalogue entry (repeatable)",
    )
    parser.add_argument("--fail-fast", action="store_true", help="Stop on first failure")
    parser.add_argument("--log-format", choices=["json", "text"], default=None)
    parser.add_argument("--json", action="store_true", help="Print the summary as JSON")
    parser.add_argument("--list", action="store_true", help="List planned cases and exit")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    overrides = {}
    if args.fail_fast:
        overrides["fail_fast"] = True
    if args.log_format:
        overrides["log_format"] = args.log_format
    settings = get_settings().model_copy(update=overrides)
    setup_logging(settings)

    try:
        catalog = default_catalog(settings.collection_name)
        if args.command:
            catalog = catalog.select(args.command)
    except HarnessError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1

    cluster = ClusterConnections.from_settings(settings)
    try:
        orchestrator = TestOrchestrator(cluster, settings)

        if args.list:
            for case in orchestrator.plan(catalog):
                print(case.case_id)
            return 0

        try:
            cluster.ping()
            cluster.discover()
        except (HarnessError, PyMongoError) as e:
            logger.error("Cannot start run: %s", e)
            return 2

        results = orchestrator.run(catalog)
    finally:
        cluster.close()

    summary = RunSummary.from_results(results)
    if args.json:
        print(json.dumps(summary.to_dict(), indent=2, default=str))
    else:
        print(summary.render())
    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
