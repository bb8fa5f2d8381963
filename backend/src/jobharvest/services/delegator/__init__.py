"""Délégation des jobs vers leurs tools."""

from .delegator import Delegator
from .models import (
    DelegationPayload,
    ExecutionPayload,
    ExecutionSchedule,
    ResultEntry,
    TargetResult,
    Tool,
    ToolTarget,
)
from .tools import OnTargetFinish, ToolHandler, build_tool_registry

__all__ = [
    "Delegator",
    "DelegationPayload",
    "ExecutionPayload",
    "ExecutionSchedule",
    "ResultEntry",
    "TargetResult",
    "Tool",
    "ToolTarget",
    "OnTargetFinish",
    "ToolHandler",
    "build_tool_registry",
]
