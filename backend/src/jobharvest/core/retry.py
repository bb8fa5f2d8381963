"""
Retry à intervalle fixe.

Contrairement à un exponential backoff, le délai entre deux tentatives est
constant : adapté aux écritures base de données où une attente qui s'allonge
retarderait inutilement le nettoyage d'un job.
"""

import logging
import time
from functools import wraps
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def retry_with_fixed_interval(
    fn: Callable[[], T],
    *,
    max_attempts: int,
    delay_seconds: float,
    operation_name: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute ``fn`` until it succeeds or ``max_attempts`` is exhausted.

    Args:
        fn: Zero-argument callable to execute
        max_attempts: Maximum number of attempts (>= 1)
        delay_seconds: Fixed delay between two attempts
        operation_name: Label used in log messages
        retry_on: Exceptions that trigger another attempt
        sleep: Sleep function (injected by tests)

    Returns:
        The result of the first successful call

    Raises:
        The last error once every attempt failed.

    Example:
        retry_with_fixed_interval(
            lambda: store.add_execution(payload),
            max_attempts=3, delay_seconds=5, operation_name="persisting job j1",
        )
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error = None

    for attempt in range(1, max_attempts + 1):
        try:
            logger.info(f"Executing {operation_name} (attempt {attempt}/{max_attempts})")
            result = fn()

            if attempt > 1:
                logger.info(f"{operation_name} succeeded on attempt {attempt}")

            return result

        except retry_on as e:
            last_error = e
            logger.warning(f"{operation_name} failed on attempt {attempt}/{max_attempts}: {e}")

            # Pas d'attente après la dernière tentative
            if attempt < max_attempts:
                logger.info(f"Waiting {delay_seconds}s before retry...")
                sleep(delay_seconds)

    logger.error(
        f"{operation_name} failed after {max_attempts} attempts",
        extra={"operation": operation_name, "attempts": max_attempts, "error": str(last_error)},
    )
    raise last_error


def fixed_interval_retry(
    max_attempts: int = 3,
    delay_seconds: float = 5.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
):
    """
    Decorator form of :func:`retry_with_fixed_interval`.

    Example:
        @fixed_interval_retry(max_attempts=3, delay_seconds=1)
        def connect():
            return engine.connect()
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return retry_with_fixed_interval(
                lambda: func(*args, **kwargs),
                max_attempts=max_attempts,
                delay_seconds=delay_seconds,
                operation_name=func.__name__,
                retry_on=retry_on,
            )
        return wrapper
    return decorator
