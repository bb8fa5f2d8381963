"""Persistance des exécutions de jobs."""

from .models import Base, JobExecution
from .store import ExecutionStore

__all__ = ["Base", "ExecutionStore", "JobExecution"]
