"""Exceptions classifiées de JobHarvest."""

from typing import Any, Dict, Optional


class JobHarvestError(Exception):
    """Base de toutes les erreurs du domaine."""
    pass


class JobNotFoundError(JobHarvestError):
    """Opération sur un cron-job absent de la mémoire du scheduler."""

    def __init__(self, job_id: str):
        super().__init__(f"Cron-job '{job_id}' not found in memory")
        self.job_id = job_id


class RequestValidationError(JobHarvestError):
    """Payload de requête de crawl invalide."""
    pass


class PerTargetError(JobHarvestError):
    """Erreur récupérable, limitée à une seule target. Jamais escaladée."""

    def __init__(self, message: str, target_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.target_id = target_id

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "target_id": self.target_id}


class PersistenceError(JobHarvestError):
    """Écriture durable impossible (après épuisement des retries)."""
    pass


class UnknownToolError(JobHarvestError):
    """Aucun handler enregistré pour ce type de tool."""

    def __init__(self, tool_type: str):
        super().__init__(f"No handler registered for tool type '{tool_type}'")
        self.tool_type = tool_type
