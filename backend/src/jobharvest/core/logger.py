"""
Logger centralisé pour JobHarvest.

Usage:
    from jobharvest.core.logger import setup_logging, get_logger
    setup_logging()
    logger = get_logger(__name__, {"component": "Scheduler"})

Le contexte passé via extra= (job_id, target_id, operation...) est regroupé
sous "ctx" en JSON et ajouté en fin de ligne en format humain, pour
retrouver facilement toutes les lignes d'un job ou d'une target.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

_configured = False

# Attributs d'un LogRecord vierge: tout le reste vient de extra=
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Clés affichées en tête de contexte, dans cet ordre
_PRIORITY_KEYS = ("job_id", "target_id", "component", "operation")


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Extrait le contexte ajouté au record, clés prioritaires en premier."""
    extra = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
    ordered = {key: extra.pop(key) for key in _PRIORITY_KEYS if key in extra}
    ordered.update(sorted(extra.items()))
    return ordered


class StructuredFormatter(logging.Formatter):
    """Une ligne JSON par record; la position source n'est ajoutée qu'à partir de WARNING."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }

        context = record_context(record)
        if context:
            entry["ctx"] = context

        if record.levelno >= logging.WARNING:
            entry["where"] = f"{record.module}.{record.funcName}:{record.lineno}"

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    """Format console lisible, suivi du contexte en key=value."""

    def __init__(self):
        super().__init__(
            "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        head, sep, trace = line.partition("\n")
        return f"{head} [{pairs}]{sep}{trace}"


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter qui ajoute un contexte fixe à chaque record.

    Le contexte est posé directement en attributs du record; un extra=
    passé à l'appel l'emporte sur le contexte fixe.

    Usage:
        logger = ContextAdapter(logging.getLogger(__name__), {"component": "ShutdownManager"})
        logger.info("Stopping jobs", extra={"job_id": job_id})
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    structured: bool = False,
    log_dir: Optional[Path] = None,
    console_output: bool = True,
) -> None:
    """Configure le logging une seule fois, appelé au startup.

    Args:
        level: Niveau minimum (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: True = JSON structuré, False = format humain
        log_dir: Répertoire pour les logs fichier (None = pas de fichier)
        console_output: True = logs sur stdout
    """
    global _configured
    if _configured:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    formatter = StructuredFormatter() if structured else HumanFormatter()

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        day = datetime.now().strftime('%Y%m%d')

        file_handler = logging.FileHandler(log_dir / f"jobharvest_{day}.log", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        # Error logs séparés
        error_handler = logging.FileHandler(log_dir / f"jobharvest_errors_{day}.log", encoding="utf-8")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        root_logger.addHandler(error_handler)

    # Reduce noise from libraries
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _configured = True
    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"log_level": level, "structured": structured, "file_logging": log_dir is not None},
    )


def get_logger(name: str, context: Optional[Dict[str, Any]] = None):
    """Retourne un logger nommé par module, avec contexte optionnel."""
    logger = logging.getLogger(name)

    if context:
        return ContextAdapter(logger, context)

    return logger


__all__ = ["setup_logging", "get_logger", "StructuredFormatter", "HumanFormatter", "ContextAdapter", "record_context"]
