"""
Core JobHarvest : configuration, logging, exceptions, retry.

Usage:
    from jobharvest.core import settings, setup_logging, retry_with_fixed_interval
"""

from .settings import Settings, settings
from .logger import setup_logging, get_logger
from .exceptions import (
    JobHarvestError,
    JobNotFoundError,
    RequestValidationError,
    PerTargetError,
    PersistenceError,
    UnknownToolError,
)
from .retry import retry_with_fixed_interval, fixed_interval_retry

__all__ = [
    # Configuration
    "Settings",
    "settings",

    # Logging
    "setup_logging",
    "get_logger",

    # Errors
    "JobHarvestError",
    "JobNotFoundError",
    "RequestValidationError",
    "PerTargetError",
    "PersistenceError",
    "UnknownToolError",

    # Retry
    "retry_with_fixed_interval",
    "fixed_interval_retry",
]
