"""Crawl: requêtes, targets et orchestrateur du tool "scraper"."""

from .crawl_request import PLACEHOLDER_URL, CrawlRequest, RequestLabel, RequestUserData, validate_user_data
from .orchestrator import CrawlContext, CrawlOrchestrator, CrawlRun, TargetState
from .targets import JobsChTarget, ProcessResult, Target, TargetRegistry, default_registry

__all__ = [
    "PLACEHOLDER_URL",
    "CrawlContext",
    "CrawlOrchestrator",
    "CrawlRequest",
    "CrawlRun",
    "JobsChTarget",
    "ProcessResult",
    "RequestLabel",
    "RequestUserData",
    "Target",
    "TargetRegistry",
    "TargetState",
    "default_registry",
    "validate_user_data",
]
