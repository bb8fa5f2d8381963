"""
ExecutionStore — Stockage durable des exécutions (SQLAlchemy).

Usage:
    store = ExecutionStore()
    store.init_schema()
    store.add_execution(payload)
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from jobharvest.core.exceptions import PersistenceError
from jobharvest.core.retry import retry_with_fixed_interval
from jobharvest.core.settings import settings
from jobharvest.services.delegator.models import ExecutionPayload
from .models import Base, JobExecution

logger = logging.getLogger(__name__)


class ExecutionStore:
    """Append-only store of job executions, one engine per instance."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self._engine = create_engine(self.database_url, pool_pre_ping=True)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=self._engine)
        logger.info("✅ Execution store engine initialisé.")

    def init_schema(self, max_attempts: Optional[int] = None, delay_seconds: Optional[float] = None) -> None:
        """Creates missing tables; the database may still be starting, hence the retry."""
        retry_with_fixed_interval(
            lambda: Base.metadata.create_all(self._engine),
            max_attempts=max_attempts or settings.MAX_DB_RETRIES,
            delay_seconds=settings.db_retry_delay_seconds if delay_seconds is None else delay_seconds,
            operation_name="initializing execution schema",
            retry_on=(SQLAlchemyError,),
        )

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def add_execution(self, execution: ExecutionPayload) -> int:
        """Appends one execution record and returns its id."""
        try:
            with self.session_scope() as session:
                row = JobExecution(
                    job_id=execution.job_id,
                    schedule_type=execution.schedule.type,
                    delegated_at=execution.schedule.delegated_at,
                    finished_at=execution.schedule.finished_at,
                    tools=[tool.model_dump(mode="json") for tool in execution.tools],
                )
                session.add(row)
                session.flush()
                return row.id
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not store execution of job '{execution.job_id}': {e}") from e

    def list_executions(self, job_id: str) -> List[Dict[str, Any]]:
        with self.session_scope() as session:
            rows = session.scalars(
                select(JobExecution).where(JobExecution.job_id == job_id).order_by(JobExecution.id)
            ).all()
            return [row.to_dict() for row in rows]

    def close(self) -> None:
        self._engine.dispose()
        logger.info("🔒 Execution store engine fermé.")
