"""
Retry with exponential backoff for model calls
"""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .errors import ModelCallError, SchemaValidationError
from ..config import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Malformed output and pipeline errors are final; anything else is transient."""
    return not isinstance(exc, (SchemaValidationError, ModelCallError))


async def call_with_retries(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    operation_name: str,
) -> T:
    """
    Await ``operation`` until it succeeds or the attempt budget is spent.

    SchemaValidationError is re-raised on the first occurrence. Other errors
    are retried with ``policy`` backoff and wrapped in ModelCallError once the
    budget is exhausted.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if attempt >= policy.max_attempts:
                logger.error(f"[{operation_name}] Failed after {attempt} attempts: {exc}")
                raise ModelCallError(
                    f"{operation_name} failed after {attempt} attempts: {exc}",
                    attempts=attempt,
                ) from exc

            delay = policy.delay_for(attempt)
            logger.warning(
                f"[{operation_name}] Retry {attempt}/{policy.max_attempts} in {delay:.2f}s due to: {exc}"
            )
            await asyncio.sleep(delay)

    raise ModelCallError(f"{operation_name} made no attempts", attempts=0)
