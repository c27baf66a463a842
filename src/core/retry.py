import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


def backoff_delay(*, attempt: int, initial_delay: float, growth_factor: float) -> float:
    """Delay to wait after failed attempt number `attempt` (1-based)."""
    return initial_delay * (growth_factor ** (attempt - 1))


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 5,
    initial_delay: float = 1.0,
    growth_factor: float = 2.0,
    sleep: Sleeper = asyncio.sleep,
) -> T:
    """Run `operation` until it succeeds or `max_attempts` is exhausted.

    The last error is re-raised once no attempts remain.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as exc:
            if attempt >= max_attempts:
                logger.error(
                    "retry.exhausted",
                    extra={
                        "extra_fields": {
                            "attempt": attempt,
                            "max_attempts": max_attempts,
                            "error": str(exc),
                        }
                    },
                )
                raise
            wait = backoff_delay(
                attempt=attempt, initial_delay=initial_delay, growth_factor=growth_factor
            )
            logger.warning(
                "retry.scheduled",
                extra={
                    "extra_fields": {
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "delay_seconds": wait,
                        "error": str(exc),
                    }
                },
            )
            await sleep(wait)
