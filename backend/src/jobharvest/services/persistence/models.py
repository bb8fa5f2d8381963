"""
SQLAlchemy Models — Historique des exécutions de jobs.

Une ligne par délégation terminée; les tools (avec résultats par target)
sont stockés tels quels en JSON.
"""

from sqlalchemy import Column, DateTime, Integer, JSON, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class JobExecution(Base):
    """Exécution d'un job (append-only)."""
    __tablename__ = "job_executions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String, index=True, nullable=False)
    schedule_type = Column(String)
    delegated_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=False)
    tools = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "job_id": self.job_id,
            "schedule": {
                "type": self.schedule_type,
                "delegated_at": self.delegated_at,
                "finished_at": self.finished_at,
            },
            "tools": self.tools,
        }
