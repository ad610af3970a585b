"""Retrying writes of sequence results to the result store."""

import functools
import random
import time
from typing import Callable, Tuple, Type

from sqlalchemy.exc import DisconnectionError, OperationalError

from fhir_conformance.exceptions import ResultPersistenceError
from fhir_conformance.logging_config import get_logger

logger = get_logger("db")

# Errors after which the same write may succeed on a fresh connection
TRANSIENT_STORE_ERRORS: Tuple[Type[Exception], ...] = (
    OperationalError,
    DisconnectionError,
    ConnectionError,
)


def backoff_delay(attempt: int, base_delay: float, backoff_factor: float, max_delay: float, jitter: bool) -> float:
    delay = min(base_delay * (backoff_factor**attempt), max_delay)
    if jitter:
        delay += random.uniform(0, delay * 0.1)
    return delay


def retry_store(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retry_on: Tuple[Type[Exception], ...] = TRANSIENT_STORE_ERRORS,
):
    """
    Decorator for result-store writes of the form ``write(engine, sequence_row, rows)``.

    Transient database errors are retried with exponential backoff. When
    the last attempt fails, the error is re-raised as
    :class:`ResultPersistenceError` carrying the sequence result id and the
    number of attempts made. Any other exception propagates unchanged on
    the first attempt.

    Args:
        max_attempts: Maximum number of attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between attempts
        backoff_factor: Multiplier for delay on each retry
        jitter: Add up to 10% random delay
        retry_on: Exception types treated as transient
    """

    def decorator(write: Callable) -> Callable:
        @functools.wraps(write)
        def wrapper(engine, sequence_row, rows):
            result_id = sequence_row.get("id")
            for attempt in range(max_attempts):
                try:
                    write(engine, sequence_row, rows)
                except retry_on as e:
                    if attempt == max_attempts - 1:
                        logger.error(
                            f"Storing result {result_id} failed after {max_attempts} attempts: {e}",
                            extra={"sequence_result_id": result_id, "attempts": max_attempts},
                            exc_info=True,
                        )
                        raise ResultPersistenceError(
                            f"Could not store result {result_id} for sequence "
                            f"{sequence_row.get('name')} after {max_attempts} attempts: {e}",
                            result_id=result_id,
                            attempts=max_attempts,
                        ) from e

                    delay = backoff_delay(attempt, base_delay, backoff_factor, max_delay, jitter)
                    logger.warning(
                        f"Storing result {result_id} failed (attempt {attempt + 1}/{max_attempts}), "
                        f"retrying in {delay:.2f}s: {e}",
                        extra={
                            "sequence_result_id": result_id,
                            "attempt": attempt + 1,
                            "delay": delay,
                        },
                    )
                    time.sleep(delay)
                else:
                    if attempt > 0:
                        logger.info(
                            f"Stored result {result_id} after {attempt + 1} attempts",
                            extra={"sequence_result_id": result_id, "attempts": attempt + 1},
                        )
                    return

        return wrapper

    return decorator
