"""Core infrastructure: settings, logging, exceptions."""

from .config import Settings, get_settings
from .exceptions import (
    AssertionMismatch,
    CatalogError,
    ClusterUnavailableError,
    FailPointError,
    HarnessError,
    QuorumTimeoutError,
    ReplicationTimeoutError,
    RequestValidationError,
    TopologyError,
)
from .logging import get_logger, setup_logging

__all__ = [
    "AssertionMismatch",
    "CatalogError",
    "ClusterUnavailableError",
    "FailPointError",
    "HarnessError",
    "QuorumTimeoutError",
    "ReplicationTimeoutError",
    "RequestValidationError",
    "Settings",
    "TopologyError",
    "get_logger",
    "get_settings",
    "setup_logging",
]
