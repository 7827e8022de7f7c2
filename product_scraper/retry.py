"""Bounded retry with exponential backoff for one source pipeline.

Only attempt-level failures are retried. A successful run, including one that
returned an empty product list, is accepted immediately.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterator, List, TypeVar

from product_scraper.errors import ExtractionFault, RetryExhaustedError, ScrapeError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def backoff_delays(max_attempts: int, base_delay: float) -> Iterator[float]:
    """Yield the sleep before each retry: base, 2*base, 4*base, ..."""
    for attempt in range(1, max_attempts):
        yield base_delay * (2 ** (attempt - 1))


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Run ``operation`` up to ``max_attempts`` times.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        max_attempts: Upper bound on invocations.
        base_delay: Sleep before the second attempt, doubled for each later one.
        sleep: Awaitable sleep, injectable for tests.
        label: Name used in log lines.

    Returns:
        The first successful result.

    Raises:
        ScrapeError: A non-retryable failure, raised immediately.
        RetryExhaustedError: If every attempt failed.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    history: List[ScrapeError] = []
    delays = backoff_delays(max_attempts, base_delay)

    for attempt in range(1, max_attempts + 1):
        try:
            result = await operation()
        except ScrapeError as exc:
            if not exc.retryable:
                raise
            error = exc
        except Exception as exc:
            error = ExtractionFault(f"unexpected {type(exc).__name__}: {exc}")
            error.__cause__ = exc
        else:
            if attempt > 1:
                logger.info(f"✅ [{label}] succeeded on attempt {attempt}/{max_attempts}")
            return result

        history.append(error)
        if attempt == max_attempts:
            break

        delay = next(delays)
        logger.warning(
            f"🔁 [{label}] attempt {attempt}/{max_attempts} failed with "
            f"{type(error).__name__}: {error}. Retrying in {delay:.1f}s"
        )
        await sleep(delay)

    logger.error(f"❌ [{label}] all {max_attempts} attempts failed")
    raise RetryExhaustedError(attempts=len(history), last_error=history[-1], history=history,
                              source_id=label)
