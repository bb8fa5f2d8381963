"""
JobHarvest — point d'entrée du processus.

build_runtime() câble explicitement Scheduler, Delegator, CrawlOrchestrator,
registry des targets, ExecutionStore et ShutdownManager (une instance de
chaque par processus).

Usage:
    jobharvest --job job.json            # délègue le job puis reste actif
    jobharvest --job job.json --run-once # délègue le job puis s'arrête
"""

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from jobharvest.core.logger import setup_logging
from jobharvest.core.settings import Settings, settings as default_settings
from jobharvest.services.delegator import DelegationPayload, Delegator, build_tool_registry
from jobharvest.services.persistence import ExecutionStore
from jobharvest.services.scheduling import Scheduler
from jobharvest.services.scraper import CrawlOrchestrator, TargetRegistry, default_registry
from jobharvest.services.shutdown import ShutdownManager

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    store: ExecutionStore
    registry: TargetRegistry
    orchestrator: CrawlOrchestrator
    delegator: Delegator
    scheduler: Scheduler
    shutdown: ShutdownManager


def build_runtime(config: Optional[Settings] = None, store: Optional[ExecutionStore] = None) -> Runtime:
    config = config or default_settings
    store = store or ExecutionStore(config.DATABASE_URL)

    registry = default_registry(timeout=config.CRAWL_REQUEST_TIMEOUT)
    orchestrator = CrawlOrchestrator(registry, max_concurrency=config.CRAWL_MAX_CONCURRENCY)
    delegator = Delegator(
        build_tool_registry(orchestrator),
        store,
        max_attempts=config.MAX_DB_RETRIES,
        retry_delay_seconds=config.db_retry_delay_seconds,
        max_workers=config.DELEGATOR_MAX_WORKERS,
    )
    scheduler = Scheduler(task_fn=delegator.delegate_scheduled_job, timezone=config.SCHEDULER_TIMEZONE)
    shutdown = ShutdownManager(scheduler, delegator, store, timeout_seconds=config.SHUTDOWN_TIMEOUT_SECONDS)

    return Runtime(
        settings=config,
        store=store,
        registry=registry,
        orchestrator=orchestrator,
        delegator=delegator,
        scheduler=scheduler,
        shutdown=shutdown,
    )


def load_job(path) -> DelegationPayload:
    return DelegationPayload.model_validate_json(Path(path).read_text(encoding="utf-8"))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="jobharvest", description="Job scheduling and crawl delegation service")
    parser.add_argument("--job", type=Path, help="JSON file describing a job to delegate at startup")
    parser.add_argument("--run-once", action="store_true", help="Delegate --job synchronously, then exit")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    args = parser.parse_args(argv)

    config = default_settings
    setup_logging(
        level=args.log_level or config.LOG_LEVEL,
        structured=config.LOG_STRUCTURED,
        log_dir=config.LOG_DIR,
    )
    logger.info(f"🚀 Starting {config.APP_NAME} v{config.APP_VERSION}")

    runtime = build_runtime(config)
    runtime.store.init_schema(max_attempts=config.MAX_DB_RETRIES, delay_seconds=config.db_retry_delay_seconds)

    if args.run_once:
        if args.job is None:
            parser.error("--run-once requires --job")
        execution = runtime.delegator.delegate(load_job(args.job))
        runtime.shutdown.initiate_shutdown()
        return 0 if execution is not None else 1

    runtime.scheduler.start()
    runtime.shutdown.register_signal_handlers()

    if args.job is not None:
        runtime.delegator.submit(load_job(args.job))

    try:
        while not runtime.shutdown.wait(timeout=60):
            pass
    except KeyboardInterrupt:
        runtime.shutdown.initiate_shutdown()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
