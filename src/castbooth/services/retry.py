"""Bounded retry with exponential backoff for transient adapter calls."""

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

_logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


async def call_with_backoff(  # noqa: PLR0913
    func: "Callable[[], Awaitable[T]]",
    *,
    action: str,
    attempts: int = 3,
    base_delay_seconds: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    no_retry_on: tuple[type[BaseException], ...] = (),
    sleep: "Callable[[float], Awaitable[None]]" = asyncio.sleep,
) -> T:
    """Call an async function, doubling the delay between failed attempts.

    The last failure is re-raised once ``attempts`` calls have failed.
    Exceptions outside ``retry_on``, or inside ``no_retry_on``, propagate
    immediately.
    """
    attempt = 0
    delay = base_delay_seconds
    while True:
        try:
            return await func()
        except no_retry_on:
            raise
        except retry_on as exc:
            attempt += 1
            _logger.warning(
                "%s failed (attempt %s/%s): %s", action, attempt, attempts, exc
            )
            if attempt >= attempts:
                raise
            await sleep(delay)
            delay *= 2
