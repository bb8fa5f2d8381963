"""
Modèles Pydantic / contrats partagés entre Delegator et tools.

- ToolTarget, Tool, DelegationPayload : ce que l'API transmet au Delegator
- ExecutionSchedule, ExecutionPayload : ce qui est persisté après une délégation
- ResultEntry, TargetResult : résultats d'une target, remis par le callback de complétion
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ============================================
# PAYLOAD MODELS
# ============================================

class ToolTarget(BaseModel):
    """Une target d'un tool, avec surcharge optionnelle de keywords / max_pages."""
    target_id: str
    target: str
    keywords: Optional[List[str]] = None
    max_pages: Optional[int] = None
    results: Optional[List[Dict[str, Any]]] = None


class Tool(BaseModel):
    """Unité d'exécution typée d'un job ("scraper", ...)."""
    type: str = "scraper"
    keywords: List[str] = Field(default_factory=list)
    max_pages: int = 1
    targets: List[ToolTarget] = Field(default_factory=list)

    def settings_for(self, target: ToolTarget) -> Tuple[List[str], int]:
        """Keywords and max_pages for a target: its own values win when set."""
        keywords = target.keywords if target.keywords else self.keywords
        max_pages = target.max_pages if target.max_pages and target.max_pages > 0 else self.max_pages
        return keywords, max_pages


class DelegationPayload(BaseModel):
    """Job remis au Delegator. Immuable une fois transmis."""
    model_config = ConfigDict(frozen=True)

    job_id: str
    name: str = ""
    tools: List[Tool] = Field(default_factory=list)
    schedule_type: Optional[str] = None


class ExecutionSchedule(BaseModel):
    type: Optional[str] = None
    delegated_at: datetime
    finished_at: datetime


class ExecutionPayload(BaseModel):
    """Enregistrement persisté d'une délégation."""
    job_id: str
    schedule: ExecutionSchedule
    tools: List[Tool]


# ============================================
# RESULT CONTRACTS
# ============================================

@dataclass
class ResultEntry:
    """Un enregistrement extrait ou une erreur, jamais les deux."""
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"result": self.result, "error": self.error}


@dataclass
class TargetResult:
    target_id: str
    results: List[ResultEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"target_id": self.target_id, "results": [entry.to_dict() for entry in self.results]}
