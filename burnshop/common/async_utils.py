from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, TypeVar

from .logging import log_event

T = TypeVar("T")


async def guarded_call(
    action: Callable[[], Awaitable[T] | T],
    *,
    logger: logging.Logger,
    event: str,
    message: str,
    level: str = "warning",
    **fields: Any,
) -> T | None:
    """Run a side effect whose failure must not abort the caller; log and return None."""
    try:
        result = action()
        return await result if inspect.isawaitable(result) else result
    except asyncio.CancelledError:
        raise
    except Exception as error:
        log_event(
            logger,
            level=level,
            event=event,
            message=message,
            error=str(error),
            error_type=type(error).__name__,
            **fields,
        )
        return None


async def run_periodically(
    action: Callable[[], Awaitable[Any] | Any],
    *,
    interval_seconds: float,
    stop_event: asyncio.Event,
    logger: logging.Logger,
    event: str,
) -> None:
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=max(0.01, interval_seconds))
            return
        except asyncio.TimeoutError:
            pass

        await guarded_call(
            action,
            logger=logger,
            event=f"{event}_failed",
            message="Periodic task failed; will retry on next tick",
        )
