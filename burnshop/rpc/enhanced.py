from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp

from burnshop.common import log_event, redact_api_key
from burnshop.errors import RpcFatalError, RpcTransientError


class EnhancedTransactionsClient:
    def __init__(
        self,
        *,
        logger: logging.Logger,
        api_key: str,
        base_url: str = "https://api.helius.xyz",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._logger = logger
        self._api_key = (api_key or "").strip()
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._session: aiohttp.ClientSession | None = None

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def build_url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def fetch_address_transactions(
        self,
        address: str,
        *,
        params: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        if not self._api_key:
            raise RpcFatalError("HELIUS_API_KEY not configured")

        url = self.build_url(f"/v0/addresses/{address}/transactions")
        query = {"api-key": self._api_key, **(params or {})}

        try:
            async with self._require_session().get(
                url,
                params=query,
                headers={"Accept": "application/json"},
            ) as response:
                status_code = response.status
                raw_text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError) as error:
            raise RpcTransientError(f"Enhanced API network error: {redact_api_key(str(error))}") from error

        if status_code == 429:
            raise RpcTransientError("Helius rate limit exceeded")
        if status_code >= 500:
            raise RpcTransientError(f"Helius API error: {status_code}")
        if status_code >= 400:
            log_event(
                self._logger,
                level="warning",
                event="enhanced_api_rejected",
                message="Enhanced transactions API rejected the request",
                status=status_code,
                url=url,
            )
            raise RpcFatalError(f"Helius API error: {status_code}")

        try:
            parsed = json.loads(raw_text) if raw_text else []
        except json.JSONDecodeError as error:
            raise RpcTransientError("Enhanced API returned invalid JSON", network=False) from error

        if not isinstance(parsed, list):
            raise RpcTransientError("Enhanced API returned an unexpected payload", network=False)
        return [item for item in parsed if isinstance(item, dict)]
