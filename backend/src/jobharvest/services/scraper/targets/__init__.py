"""Targets de scraping disponibles."""

from typing import Optional

from .base import ProcessResult, Target, TargetRegistry, normalize_target_name
from .jobs_ch import JobsChTarget


def default_registry(timeout: Optional[float] = None) -> TargetRegistry:
    """Registry with every built-in target."""
    return TargetRegistry([JobsChTarget(timeout=timeout)])


__all__ = [
    "JobsChTarget",
    "ProcessResult",
    "Target",
    "TargetRegistry",
    "default_registry",
    "normalize_target_name",
]
