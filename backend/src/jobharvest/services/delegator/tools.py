"""Registry des handlers de tools, résolus par `tool.type`."""

from typing import Callable, Dict, Mapping, Optional, Protocol

from .models import TargetResult, Tool

OnTargetFinish = Callable[[TargetResult], None]


class ToolHandler(Protocol):
    """Exécute un tool; appelle on_target_finish une fois par target terminée."""

    def execute(self, tool: Tool, on_target_finish: OnTargetFinish) -> None:
        ...


def build_tool_registry(scraper: ToolHandler, extra: Optional[Mapping[str, ToolHandler]] = None) -> Dict[str, ToolHandler]:
    """Maps tool types to handlers; the scraper handler is always registered."""
    registry: Dict[str, ToolHandler] = {"scraper": scraper}
    if extra:
        registry.update(extra)
    return registry
