"""
Delegator — point d'entrée unique pour exécuter les jobs.

Cycle de vie d'une délégation:
1. Le job entre dans running_jobs
2. Les tools s'exécutent strictement l'un après l'autre
3. Chaque target remonte ses résultats via le callback de complétion
4. L'enregistrement d'exécution est persisté avec retry à intervalle fixe
5. Nettoyage garanti: running_jobs, pending_jobs et résultats transitoires

delegate() ne lève jamais d'exception vers l'appelant.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional, Set

from jobharvest.core.exceptions import UnknownToolError
from jobharvest.core.retry import retry_with_fixed_interval
from jobharvest.core.settings import settings
from .models import DelegationPayload, ExecutionPayload, ExecutionSchedule, TargetResult, Tool
from .tools import ToolHandler

logger = logging.getLogger(__name__)


class Delegator:
    """
    Routes job executions to tool handlers and tracks pending / running jobs.

    One instance per process, built at startup and injected into the
    scheduler (as its task function) and the API layer.

    Args:
        tools: Tool handlers keyed by tool type
        store: Result store exposing ``add_execution(payload)``
        max_attempts: Persistence attempts (default: settings.MAX_DB_RETRIES)
        retry_delay_seconds: Fixed delay between attempts (default: settings.DB_RETRY_DELAY_MS)
        max_workers: Background threads for scheduled delegations
        sleep: Sleep function used between persistence attempts
    """

    def __init__(
        self,
        tools: Mapping[str, ToolHandler],
        store,
        max_attempts: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
        max_workers: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._tools = dict(tools)
        self._store = store
        self._max_attempts = max_attempts or settings.MAX_DB_RETRIES
        self._retry_delay = settings.db_retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
        self._sleep = sleep

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.DELEGATOR_MAX_WORKERS,
            thread_name_prefix="delegator",
        )
        self._lock = threading.Lock()
        self._pending_jobs: Dict[str, DelegationPayload] = {}
        self._running_jobs: Dict[str, DelegationPayload] = {}
        self._target_results: Dict[str, Dict[str, TargetResult]] = {}
        self._inflight: Set[Future] = set()
        self._accepting = True

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def running_jobs(self) -> Mapping[str, DelegationPayload]:
        with self._lock:
            return MappingProxyType(dict(self._running_jobs))

    @property
    def pending_jobs(self) -> Mapping[str, DelegationPayload]:
        with self._lock:
            return MappingProxyType(dict(self._pending_jobs))

    def is_running(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._running_jobs

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def register(self, payload: DelegationPayload) -> None:
        """Stores a job for a future scheduled execution (overwrites the id)."""
        with self._lock:
            self._pending_jobs[payload.job_id] = payload
        logger.info(f"Registered job '{payload.job_id}' for scheduled execution")

    def delegate_scheduled_job(self, job_id: str) -> Optional[Future]:
        """
        Runs a registered job in the background. Called by the scheduler,
        which never waits on the returned future.
        """
        with self._lock:
            payload = self._pending_jobs.get(job_id)

        if payload is None:
            logger.error(f"Could not find scheduled job '{job_id}' in pending jobs", extra={"job_id": job_id})
            return None

        return self.submit(payload)

    def submit(self, payload: DelegationPayload) -> Optional[Future]:
        """Runs delegate(payload) on the background pool."""
        with self._lock:
            if not self._accepting:
                logger.warning(f"Delegator is shutting down, job '{payload.job_id}' not started")
                return None
            future = self._executor.submit(self.delegate, payload)
            self._inflight.add(future)

        future.add_done_callback(self._forget)
        return future

    def delegate(self, payload: DelegationPayload) -> Optional[ExecutionPayload]:
        """
        Executes every tool of the job sequentially and persists the results.

        Returns the persisted execution record, or None when the delegation
        failed, the results could not be persisted or the job was already
        running. Never raises.
        """
        job_id = payload.job_id

        with self._lock:
            if job_id in self._running_jobs:
                logger.warning(f"Job '{job_id}' is already running, delegation skipped", extra={"job_id": job_id})
                return None
            self._running_jobs[job_id] = payload

        logger.info(f"🚀 Delegating job '{job_id}' ({len(payload.tools)} tools)", extra={"job_id": job_id})
        execution = None

        try:
            delegated_at = datetime.now(timezone.utc)

            # Un tool à la fois: ils peuvent partager une ressource externe
            tools_with_results = [self._execute_tool(job_id, tool) for tool in payload.tools]

            execution = ExecutionPayload(
                job_id=job_id,
                schedule=ExecutionSchedule(
                    type=payload.schedule_type,
                    delegated_at=delegated_at,
                    finished_at=datetime.now(timezone.utc),
                ),
                tools=tools_with_results,
            )
        except Exception:
            logger.exception(f"❌ Delegation failed for job '{job_id}'", extra={"job_id": job_id})
        else:
            if not self.persist_result(execution):
                execution = None
        finally:
            with self._lock:
                self._running_jobs.pop(job_id, None)
                self._pending_jobs.pop(job_id, None)
                self._target_results.pop(job_id, None)

        return execution

    def persist_result(self, execution: ExecutionPayload) -> bool:
        """
        Writes the execution record with a fixed-interval retry.
        Exhaustion is logged and swallowed so cleanup always runs.
        """
        job_id = execution.job_id
        try:
            retry_with_fixed_interval(
                lambda: self._store.add_execution(execution),
                max_attempts=self._max_attempts,
                delay_seconds=self._retry_delay,
                operation_name=f"persisting job results for job_id: {job_id}",
                sleep=self._sleep,
            )
        except Exception as e:
            logger.error(
                f"Failed to persist job results after retries for job_id: {job_id}",
                extra={"job_id": job_id, "operation": "persist_result", "error": str(e)},
            )
            return False

        logger.info(f"✅ Successfully persisted job results for job_id: {job_id}")
        return True

    def shutdown(self, wait_for_jobs: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Stops accepting delegations and waits best-effort for in-flight ones.
        Returns False when some delegations were still running at the timeout.
        """
        with self._lock:
            self._accepting = False
            inflight = list(self._inflight)

        self._executor.shutdown(wait=False)

        if wait_for_jobs and inflight:
            _, not_done = wait(inflight, timeout=timeout)
            if not_done:
                logger.warning(f"{len(not_done)} delegations still running at shutdown")
                return False
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _execute_tool(self, job_id: str, tool: Tool) -> Tool:
        """Runs one tool to completion and returns a copy carrying per-target results."""
        handler = self._tools.get(tool.type)
        if handler is None:
            raise UnknownToolError(tool.type)

        known_targets = {target.target_id for target in tool.targets}
        with self._lock:
            self._target_results[job_id] = {}

        def on_target_finish(target_result: TargetResult) -> None:
            if target_result.target_id not in known_targets:
                logger.error(
                    f"Target '{target_result.target_id}' does not belong to tool '{tool.type}' of job '{job_id}'",
                    extra={"job_id": job_id, "target_id": target_result.target_id},
                )
                return
            with self._lock:
                bucket = self._target_results.get(job_id)
                if bucket is not None:
                    bucket[target_result.target_id] = target_result

        handler.execute(tool, on_target_finish)

        with self._lock:
            collected = self._target_results.get(job_id) or {}
            self._target_results[job_id] = {}

        targets = []
        for target in tool.targets:
            target_result = collected.get(target.target_id)
            if target_result is None:
                logger.warning(
                    f"Target '{target.target_id}' of job '{job_id}' reported no results",
                    extra={"job_id": job_id, "target_id": target.target_id},
                )
            results = [entry.to_dict() for entry in target_result.results] if target_result else []
            targets.append(target.model_copy(update={"results": results}))

        return tool.model_copy(update={"targets": targets})

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._inflight.discard(future)
