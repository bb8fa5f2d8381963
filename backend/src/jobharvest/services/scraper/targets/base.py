"""
Contrat des targets et registry.

Une target connaît un seul site: elle pagine (target-request) ou extrait
un enregistrement (extraction-request). Aucune logique d'orchestration ici.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


@dataclass
class ProcessResult:
    """Exactly one of record / unique_keys / error is set."""
    record: Optional[Dict[str, Any]] = None
    unique_keys: Optional[List[str]] = None
    error: Optional[str] = None

    @classmethod
    def extracted(cls, record: Dict[str, Any]) -> "ProcessResult":
        return cls(record=record)

    @classmethod
    def enqueued(cls, unique_keys: List[str]) -> "ProcessResult":
        return cls(unique_keys=list(unique_keys))

    @classmethod
    def failed(cls, error: str) -> "ProcessResult":
        return cls(error=error)


class Target(ABC):
    """Pluggable extraction strategy for one data source."""

    name: str = ""

    @abstractmethod
    def process(self, request, user_data, context) -> ProcessResult:
        """
        Args:
            request: The CrawlRequest being handled
            user_data: Its validated RequestUserData
            context: CrawlContext used to enqueue extraction requests

        Returns:
            ProcessResult. Failures should be returned, not raised; the
            orchestrator treats a raised exception as a terminal error.
        """


def normalize_target_name(name: str) -> str:
    """'jobs-ch', 'Jobs CH' and 'jobs_ch' all resolve to 'jobs_ch'."""
    return re.sub(r"[\s\-]+", "_", name.strip().lower())


class TargetRegistry:
    """Targets indexed by normalized name."""

    def __init__(self, targets: Optional[Iterable[Target]] = None):
        self._targets: Dict[str, Target] = {}
        for target in targets or ():
            self.register(target)

    def register(self, target: Target, name: Optional[str] = None) -> None:
        key = normalize_target_name(name or target.name)
        if not key:
            raise ValueError(f"Target {target!r} has no name")
        self._targets[key] = target

    def resolve(self, name: str) -> Optional[Target]:
        return self._targets.get(normalize_target_name(name))

    @property
    def names(self) -> List[str]:
        return sorted(self._targets)
