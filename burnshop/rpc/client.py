from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from burnshop.errors import RpcFatalError, RpcTransientError

from .connection import ConnectionManager

TRANSIENT_HTTP_STATUSES = {408, 429, 500, 502, 503, 504}
INVALID_PARAMS_CODE = -32602
ACCOUNT_NOT_FOUND_MARKER = "could not find account"


@dataclass(slots=True, frozen=True)
class LatestBlockhash:
    blockhash: str
    last_valid_block_height: int | None


class SolanaRpcClient:
    def __init__(self, *, logger: logging.Logger, connections: ConnectionManager) -> None:
        self._logger = logger
        self._connections = connections
        self._request_ids = itertools.count(1)

    @property
    def connections(self) -> ConnectionManager:
        return self._connections

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        endpoint = self._connections.get_active_endpoint()
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params or [],
        }

        try:
            async with endpoint.session().post(endpoint.url, json=payload) as response:
                status_code = response.status
                raw_text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError) as error:
            raise RpcTransientError(f"RPC network error for {method}: {error}") from error

        if status_code in TRANSIENT_HTTP_STATUSES:
            raise RpcTransientError(f"RPC call failed: method={method} status={status_code}")
        if status_code >= 400:
            raise RpcFatalError(f"RPC call rejected: method={method} status={status_code}")

        try:
            body = json.loads(raw_text) if raw_text else {}
        except json.JSONDecodeError as error:
            raise RpcTransientError(f"Invalid RPC response for {method}", network=False) from error

        if not isinstance(body, dict):
            raise RpcTransientError(f"Invalid RPC response for {method}: {body}", network=False)

        rpc_error = body.get("error")
        if rpc_error:
            message = rpc_error.get("message") if isinstance(rpc_error, dict) else str(rpc_error)
            code = rpc_error.get("code") if isinstance(rpc_error, dict) else None
            if code == INVALID_PARAMS_CODE:
                raise RpcFatalError(f"RPC error for {method}: {message}")
            raise RpcTransientError(f"RPC error for {method}: {message}", network=False)

        return body.get("result")

    async def fetch_latest_blockhash(self, commitment: str = "confirmed") -> LatestBlockhash:
        result = await self.request("getLatestBlockhash", [{"commitment": commitment}])
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            raise RpcTransientError(f"Unexpected getLatestBlockhash payload: {result}", network=False)

        blockhash = value.get("blockhash")
        if not isinstance(blockhash, str) or not blockhash:
            raise RpcTransientError(f"Missing blockhash in RPC response: {result}", network=False)

        last_valid = value.get("lastValidBlockHeight")
        return LatestBlockhash(
            blockhash=blockhash,
            last_valid_block_height=int(last_valid) if isinstance(last_valid, int) else None,
        )

    async def fetch_parsed_transaction(self, signature: str, commitment: str = "confirmed") -> dict[str, Any] | None:
        result = await self.request(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        return result if isinstance(result, dict) else None

    async def fetch_token_supply(self, mint: str) -> dict[str, Any]:
        result = await self.request("getTokenSupply", [mint])
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            raise RpcTransientError(f"Unexpected getTokenSupply payload: {result}", network=False)
        return value

    async def fetch_token_account_balance(self, token_account: str) -> dict[str, Any] | None:
        try:
            result = await self.request("getTokenAccountBalance", [token_account])
        except RpcFatalError as error:
            if ACCOUNT_NOT_FOUND_MARKER in str(error):
                return None
            raise

        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            raise RpcTransientError(f"Unexpected getTokenAccountBalance payload: {result}", network=False)
        return value

    async def fetch_signature_status(self, signature: str) -> dict[str, Any] | None:
        result = await self.request(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": True}],
        )
        values = result.get("value") if isinstance(result, dict) else None
        if not isinstance(values, list) or not values:
            return None
        status = values[0]
        return status if isinstance(status, dict) else None

    async def fetch_priority_fee_estimate(
        self,
        *,
        account_keys: list[str],
        priority_level: str = "Medium",
    ) -> float | None:
        result = await self.request(
            "getPriorityFeeEstimate",
            [
                {
                    "accountKeys": account_keys,
                    "options": {"priorityLevel": priority_level},
                }
            ],
        )
        if not isinstance(result, dict):
            return None
        estimate = result.get("priorityFeeEstimate")
        if isinstance(estimate, (int, float)) and not isinstance(estimate, bool):
            return float(estimate)
        return None

    async def fetch_slot(self) -> int:
        result = await self.request("getSlot", [{"commitment": "confirmed"}])
        if not isinstance(result, int):
            raise RpcTransientError(f"Unexpected getSlot payload: {result}", network=False)
        return result
