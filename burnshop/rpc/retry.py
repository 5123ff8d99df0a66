from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, TypeVar

import aiohttp

from burnshop.common import log_event
from burnshop.errors import BurnShopError, RpcTransientError

from .connection import ConnectionManager

T = TypeVar("T")

ErrorClass = Literal["fatal", "network", "retryable"]


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    jitter_seconds: float = 1.0

    def delay_for(self, attempt: int, jitter: float) -> float:
        return min(self.base_delay_seconds * (2**attempt) + jitter, self.max_delay_seconds)


def classify_error(error: BaseException) -> ErrorClass:
    if isinstance(error, RpcTransientError):
        return "network" if error.network else "retryable"
    if isinstance(error, BurnShopError):
        return "retryable" if error.retryable else "fatal"
    if isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError)):
        return "network"
    return "retryable"


class RetryExecutor:
    def __init__(
        self,
        *,
        logger: logging.Logger,
        connections: ConnectionManager,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[float], float] | None = None,
    ) -> None:
        self._logger = logger
        self._connections = connections
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._jitter = jitter or (lambda upper: random.uniform(0.0, upper))

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def with_retry(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        max_attempts = max(1, self._policy.max_attempts)
        last_error: BaseException | None = None

        for attempt in range(max_attempts):
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as error:
                last_error = error
                error_class = classify_error(error)
                if error_class == "fatal":
                    raise

                if error_class == "network":
                    self._connections.report_failure()

                log_event(
                    self._logger,
                    level="warning",
                    event="rpc_retry",
                    message=f"{label} failed (attempt {attempt + 1}/{max_attempts})",
                    operation=label,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    error=str(error),
                    error_class=error_class,
                )

                if attempt < max_attempts - 1:
                    delay = self._policy.delay_for(attempt, self._jitter(self._policy.jitter_seconds))
                    await self._sleep(delay)

        log_event(
            self._logger,
            level="error",
            event="rpc_retry_exhausted",
            message=f"{label} failed after {max_attempts} attempts",
            operation=label,
            error=str(last_error),
        )
        if last_error is None:
            raise RuntimeError(f"{label} did not run any attempt.")
        raise last_error
