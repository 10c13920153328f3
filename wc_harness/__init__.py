"""Write-concern conformance harness for sharded cluster config servers."""

__version__ = "0.1.0"
