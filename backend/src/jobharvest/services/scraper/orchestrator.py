"""
CrawlOrchestrator — exécute un tool "scraper" sur toutes ses targets.

Chaque exécution (CrawlRun) possède son pool de threads, où chaque requête
est soumise dès sa mise en file, et sa comptabilité par target. Une target
est terminée quand plus aucune de ses requêtes n'est en cours; on_target_finish
est alors appelé exactement une fois avec tous ses résultats, dans l'ordre
de complétion.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from jobharvest.core.exceptions import PerTargetError, RequestValidationError
from jobharvest.core.settings import settings
from jobharvest.services.delegator.models import ResultEntry, TargetResult, Tool
from jobharvest.services.delegator.tools import OnTargetFinish
from .crawl_request import CrawlRequest, RequestLabel, RequestUserData, validate_user_data
from .targets.base import ProcessResult, TargetRegistry

logger = logging.getLogger(__name__)


@dataclass
class TargetState:
    # Clés des requêtes en file ou en cours, retirées à leur fin
    pending: Set[str] = field(default_factory=set)
    seen: Set[str] = field(default_factory=set)
    results: List[ResultEntry] = field(default_factory=list)
    done: bool = False


class CrawlContext:
    """Handed to a target while it processes one request."""

    def __init__(self, run: "CrawlRun", request: CrawlRequest, user_data: RequestUserData):
        self._run = run
        self.request = request
        self.user_data = user_data

    def extraction_request(self, url: str, unique_key: Optional[str] = None) -> CrawlRequest:
        return self.request.derive(url, RequestLabel.EXTRACTION_REQUEST, unique_key)

    def enqueue(self, requests: Iterable[CrawlRequest]) -> List[str]:
        """Queues requests for this request's target; returns the keys actually accepted."""
        return self._run.enqueue(self.request.target_id, requests)


def _processing_failed(target_id: str) -> str:
    return f"Request processing failed for target with id: {target_id}"


def _is_usable(request: CrawlRequest, outcome) -> bool:
    """An extraction must yield a record or an error; a target-request may also yield keys."""
    if not isinstance(outcome, ProcessResult):
        return False
    if outcome.record is not None or outcome.error is not None:
        return True
    return request.is_target_request and outcome.unique_keys is not None


class CrawlRun:
    """One execution of one tool. Not reusable."""

    def __init__(
        self,
        tool: Tool,
        registry: TargetRegistry,
        on_target_finish: OnTargetFinish,
        max_concurrency: int,
    ):
        self.tool = tool
        self._registry = registry
        self._on_target_finish = on_target_finish
        self._max_concurrency = max_concurrency

        self._lock = threading.Lock()
        # Signalée quand plus aucune requête n'est soumise ou en cours
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._pool: Optional[ThreadPoolExecutor] = None
        self._states: Dict[str, TargetState] = {}

    def run(self) -> None:
        for target in self.tool.targets:
            self._states.setdefault(target.target_id, TargetState())

        with ThreadPoolExecutor(max_workers=self._max_concurrency, thread_name_prefix="crawl") as pool:
            self._pool = pool
            for target in self.tool.targets:
                self.enqueue(target.target_id, [CrawlRequest.for_target(self.tool, target)])
            with self._idle:
                while self._in_flight:
                    self._idle.wait()

        unfinished = [target_id for target_id, state in self._states.items() if not state.done]
        if unfinished:
            logger.warning(f"Targets left unfinished after the crawl: {unfinished}")

    def enqueue(self, target_id: str, requests: Iterable[CrawlRequest]) -> List[str]:
        """Registers and submits requests at once, so workers pick them up while the caller still runs."""
        accepted: List[str] = []
        with self._lock:
            state = self._states.get(target_id)
            if state is None or state.done or self._pool is None:
                return accepted
            for request in requests:
                request.target_id = target_id
                key = request.unique_key
                if key in state.seen:
                    logger.debug(f"Duplicate request skipped: {key}")
                    continue
                state.seen.add(key)
                # Enregistrée avant la soumission: la target ne peut pas finir entre les deux
                state.pending.add(key)
                accepted.append(key)
                self._in_flight += 1
                self._pool.submit(self._work, request)
        return accepted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _work(self, request: CrawlRequest) -> None:
        try:
            self._handle(request)
        except Exception:
            logger.exception(f"Crawl worker crashed on {request.url}")
            self._fail(request, _processing_failed(request.target_id), False)
        finally:
            with self._idle:
                self._in_flight -= 1
                if not self._in_flight:
                    self._idle.notify_all()

    def _is_done(self, target_id: str) -> bool:
        with self._lock:
            state = self._states.get(target_id)
            return state is None or state.done

    def _handle(self, request: CrawlRequest) -> None:
        target_id = request.target_id
        if self._is_done(target_id):
            self._complete(request, None)
            return

        try:
            user_data = validate_user_data(request)
        except RequestValidationError as e:
            logger.warning(f"{e}", extra={"target_id": target_id})
            self._fail(request, str(e), request.is_target_request)
            return

        target = self._registry.resolve(user_data.target)
        if target is None:
            logger.error(f"Target '{user_data.target}' is not registered")
            self._fail(request, f"Target '{user_data.target}' is not registered", request.is_target_request)
            return

        try:
            outcome = target.process(request, user_data, CrawlContext(self, request, user_data))
        except Exception as e:
            logger.exception(f"❌ Unexpected error while processing {request.url}")
            self._fail(request, f"Unexpected error while processing {request.url}: {e}", request.is_target_request)
            return

        if not _is_usable(request, outcome):
            logger.error(f"Target '{user_data.target}' returned nothing usable for {request.url}: {outcome!r}")
            self._fail(request, _processing_failed(target_id), False)
        elif outcome.error is not None:
            self._fail(request, outcome.error, False)
        elif outcome.record is not None:
            self._complete(request, ResultEntry(result=outcome.record))
        else:
            # Les clés retournées ont déjà été enregistrées par context.enqueue
            logger.info(f"Target '{target_id}' enqueued {len(outcome.unique_keys)} extraction requests")
            self._complete(request, None)

    def _fail(self, request: CrawlRequest, message: str, force: bool) -> None:
        entry = ResultEntry(error=PerTargetError(message, request.target_id).to_dict())
        self._complete(request, entry, force=force)

    def _complete(self, request: CrawlRequest, entry: Optional[ResultEntry], force: bool = False) -> None:
        finished: Optional[TargetResult] = None

        with self._lock:
            state = self._states.get(request.target_id)
            if state is None:
                return
            if state.done:
                state.pending.discard(request.unique_key)
                return
            if entry is not None:
                state.results.append(entry)
            state.pending.discard(request.unique_key)
            if force or not state.pending:
                state.done = True
                finished = TargetResult(target_id=request.target_id, results=list(state.results))

        if finished is not None:
            self._notify(finished)

    def _notify(self, target_result: TargetResult) -> None:
        logger.info(f"🏁 Target '{target_result.target_id}' finished with {len(target_result.results)} results")
        try:
            self._on_target_finish(target_result)
        except Exception:
            logger.exception(f"Completion callback failed for target '{target_result.target_id}'")


class CrawlOrchestrator:
    """
    Tool handler for type "scraper".

    Args:
        registry: Targets resolvable by name
        max_concurrency: Worker threads per run (default: settings.CRAWL_MAX_CONCURRENCY)
    """

    def __init__(self, registry: TargetRegistry, max_concurrency: Optional[int] = None):
        self.registry = registry
        self.max_concurrency = max_concurrency or settings.CRAWL_MAX_CONCURRENCY

    def execute(self, tool: Tool, on_target_finish: OnTargetFinish) -> None:
        """Blocks until every target of the tool has finished."""
        logger.info(f"Starting crawl of {len(tool.targets)} targets")
        CrawlRun(tool, self.registry, on_target_finish, self.max_concurrency).run()
