"""Wait and readiness primitives.

Portals render asynchronously and expose no "done" signal, so every wait in
the crawler is a bounded poll built on :func:`poll_until`, and every
"try again a little later" loop goes through :func:`retry_until_found`.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    wait_incrementing,
)

from permits_crawler.scrapers.base import scripts
from permits_crawler.scrapers.base.page_commands import PageCommands


T = TypeVar("T")


def _falsy(value: Any) -> bool:
    return not value


async def poll_until(
    predicate: Callable[[], Awaitable[T]],
    timeout_ms: int,
    interval_ms: int = 250,
    backoff: float = 1.5,
    max_interval_ms: int = 2000,
) -> Optional[T]:
    """Await ``predicate`` until it returns something truthy.

    Parameters
    ----------
    predicate : Callable[[], Awaitable[T]]
        Coroutine factory, called afresh on every attempt; exceptions it
        raises count as "not yet".
    timeout_ms : int
        Overall polling window. ``0`` evaluates the predicate once.
    interval_ms : int, default=250
        Delay after the first failed attempt.
    backoff : float, default=1.5
        Growth factor applied to the delay after every attempt.
    max_interval_ms : int, default=2000
        Upper bound for a single delay.

    Returns
    -------
    Optional[T]
        The first truthy result, or ``None`` when the window elapsed.
    """
    retrying = AsyncRetrying(
        stop=stop_after_delay(max(0, timeout_ms) / 1000),
        wait=wait_exponential(
            multiplier=max(0, interval_ms) / 1000,
            exp_base=backoff,
            max=max(0, max_interval_ms) / 1000,
        ),
        retry=retry_if_result(_falsy) | retry_if_exception_type(Exception),
        retry_error_callback=lambda retry_state: None,
    )

    async def attempt() -> Optional[T]:
        return await predicate()

    return await retrying(attempt)


async def retry_until_found(
    operation: Callable[[], Awaitable[Optional[T]]],
    attempts: int = 3,
    delay_ms: int = 2000,
    growth_ms: Optional[int] = None,
) -> Optional[T]:
    """Repeat ``operation`` with a growing delay until it returns non-``None``.

    Exceptions raised by ``operation`` are not retried; they propagate.

    Parameters
    ----------
    operation : Callable[[], Awaitable[Optional[T]]]
        Coroutine factory returning ``None`` for "not found yet".
    attempts : int, default=3
        Total number of calls.
    delay_ms : int, default=2000
        Delay before the second call.
    growth_ms : Optional[int], default=None
        Added to the delay on every further call (defaults to ``delay_ms``).

    Returns
    -------
    Optional[T]
        First non-``None`` result, or ``None`` after the last attempt.
    """
    step = delay_ms if growth_ms is None else growth_ms
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_incrementing(start=max(0, delay_ms) / 1000, increment=max(0, step) / 1000),
        retry=retry_if_result(lambda value: value is None),
        retry_error_callback=lambda retry_state: None,
    )

    async def attempt() -> Optional[T]:
        return await operation()

    return await retrying(attempt)


async def wait_for_framework_ready(
    commands: PageCommands,
    timeout_ms: int = 10000,
    fallback_ms: int = 2000,
    interval_ms: int = 250,
    backoff: float = 1.5,
) -> bool:
    """Wait until the client framework reports no pending HTTP requests.

    Readiness means the global ``angular`` object exists, its injector
    resolves, and ``$http.pendingRequests`` is empty. On timeout the call
    sleeps ``fallback_ms`` and returns ``False``; it never raises.
    """
    async def ready() -> bool:
        return bool(await commands.evaluate_script(scripts.FRAMEWORK_READY))

    try:
        if await poll_until(ready, timeout_ms, interval_ms, backoff):
            return True
    except Exception as e:
        logging.warning("Framework readiness check failed: %s", e)
    try:
        await commands.pause(fallback_ms)
    except Exception as e:
        logging.warning("Framework readiness fallback sleep failed: %s", e)
    return False


async def wait_for_selector(commands: PageCommands, selector: str, timeout_ms: int) -> bool:
    """Whether ``selector`` is attached to the DOM within ``timeout_ms``."""
    try:
        return await commands.wait_for_selector(selector, timeout_ms)
    except Exception as e:
        logging.warning("Waiting for %s failed: %s", selector, e)
        return False


async def is_element_visible(commands: PageCommands, selector: str) -> bool:
    """Whether ``selector`` is rendered, not ``display:none`` and not ``ng-hide``."""
    try:
        return await commands.is_visible(selector)
    except Exception:
        return False


async def wait_until_visible(
    commands: PageCommands,
    selector: str,
    timeout_ms: int,
    interval_ms: int = 250,
    backoff: float = 1.5,
) -> bool:
    async def visible() -> bool:
        return await is_element_visible(commands, selector)

    return bool(await poll_until(visible, timeout_ms, interval_ms, backoff))
