from __future__ import annotations

import logging
import time
from typing import Callable, Literal

import aiohttp

from burnshop.common import log_event, redact_api_key
from burnshop.errors import RpcFatalError

ConnectionState = Literal["primary_active", "backup_active"]
PRIMARY_ACTIVE: ConnectionState = "primary_active"
BACKUP_ACTIVE: ConnectionState = "backup_active"


class Endpoint:
    def __init__(self, *, name: str, url: str, timeout_seconds: float = 10.0) -> None:
        self.name = name
        self.url = url
        self._timeout_seconds = timeout_seconds
        self._session: aiohttp.ClientSession | None = None

    def __repr__(self) -> str:
        return f"Endpoint(name={self.name!r}, url={redact_api_key(self.url)!r})"

    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


class ConnectionManager:
    def __init__(
        self,
        *,
        logger: logging.Logger,
        primary_url: str,
        backup_url: str | None = None,
        max_failures: int = 3,
        cooldown_seconds: float = 30.0,
        timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._logger = logger
        self._primary_url = (primary_url or "").strip()
        self._backup_url = (backup_url or "").strip() or None
        self._max_failures = max(1, int(max_failures))
        self._cooldown_seconds = max(0.0, float(cooldown_seconds))
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._primary: Endpoint | None = None
        self._backup: Endpoint | None = None
        self._state: ConnectionState = PRIMARY_ACTIVE
        self._failure_count = 0
        self._last_failure = 0.0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def has_backup(self) -> bool:
        return self._backup_url is not None

    def get_active_endpoint(self) -> Endpoint:
        if not self._primary_url:
            raise RpcFatalError("HELIUS_API_KEY not configured")

        if self._primary is None:
            self._primary = Endpoint(name="primary", url=self._primary_url, timeout_seconds=self._timeout_seconds)
        if self._backup is None and self._backup_url:
            self._backup = Endpoint(name="backup", url=self._backup_url, timeout_seconds=self._timeout_seconds)

        if self._state == BACKUP_ACTIVE and self._backup is not None:
            if self._clock() - self._last_failure > self._cooldown_seconds:
                log_event(
                    self._logger,
                    level="info",
                    event="rpc_failback_primary",
                    message="Cooldown elapsed; returning to primary RPC endpoint",
                )
                self._state = PRIMARY_ACTIVE
                self._failure_count = 0

        if self._state == PRIMARY_ACTIVE or self._backup is None:
            return self._primary
        return self._backup

    def report_failure(self) -> None:
        self._failure_count += 1
        self._last_failure = self._clock()

        if self._failure_count < self._max_failures or not self.has_backup:
            return

        if self._state == PRIMARY_ACTIVE:
            log_event(
                self._logger,
                level="warning",
                event="rpc_failover_backup",
                message="Primary RPC failed repeatedly; switching to backup",
                failures=self._failure_count,
            )
            self._state = BACKUP_ACTIVE
            self._failure_count = 0

    async def close(self) -> None:
        for endpoint in (self._primary, self._backup):
            if endpoint is not None:
                await endpoint.close()

    async def reset(self) -> None:
        await self.close()
        self._primary = None
        self._backup = None
        self._state = PRIMARY_ACTIVE
        self._failure_count = 0
        self._last_failure = 0.0
        log_event(
            self._logger,
            level="info",
            event="rpc_pool_reset",
            message="RPC connection pool reset",
        )
