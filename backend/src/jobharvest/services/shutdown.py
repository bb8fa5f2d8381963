"""
ShutdownManager — arrêt propre du processus.

Ordre: cron-jobs arrêtés -> scheduler coupé -> délégations en cours attendues
(best-effort, borné par un timeout) -> store fermé.
"""

import signal
import threading
from typing import Optional

from jobharvest.core.logger import get_logger
from jobharvest.core.settings import settings

logger = get_logger(__name__, {"component": "ShutdownManager"})


class ShutdownManager:

    def __init__(self, scheduler, delegator, store=None, timeout_seconds: Optional[float] = None):
        self._scheduler = scheduler
        self._delegator = delegator
        self._store = store
        self.timeout_seconds = settings.SHUTDOWN_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds

        self._lock = threading.Lock()
        self._shutting_down = False
        self._done = threading.Event()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def register_signal_handlers(self) -> None:
        """Must be called from the main thread."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)
        logger.info("Signal handlers registered (SIGINT, SIGTERM)")

    def initiate_shutdown(self) -> bool:
        """
        Runs the shutdown sequence once.

        Returns:
            True when every in-flight delegation finished in time, False on
            timeout or when a shutdown was already in progress.
        """
        with self._lock:
            if self._shutting_down:
                logger.warning("Shutdown already in progress, ignoring request")
                return False
            self._shutting_down = True

        logger.info("🛑 Initiating graceful shutdown...")

        stopped = self._scheduler.stop_all()
        logger.info(f"Stopped {stopped} cron-jobs")
        self._scheduler.shutdown(wait=False)

        finished = self._delegator.shutdown(wait_for_jobs=True, timeout=self.timeout_seconds)
        if not finished:
            logger.warning(f"Some delegations did not finish within {self.timeout_seconds}s")

        if self._store is not None:
            self._store.close()

        self._done.set()
        logger.info("✅ Shutdown complete")
        return finished

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the shutdown sequence has completed."""
        return self._done.wait(timeout)

    def _handle_signal(self, signum, frame) -> None:
        logger.info(f"Received signal {signal.Signals(signum).name}")
        # Hors du handler: la séquence peut attendre des threads
        threading.Thread(target=self.initiate_shutdown, name="shutdown", daemon=True).start()
