"""
Live cluster verification.

Runs the conformance cases against a real sharded cluster reachable at
WC_MONGOS_URI. Skipped entirely when no router answers, so the unit suite
in tests/ stays self-contained.

Run with: pytest system_tests/ -v
"""
