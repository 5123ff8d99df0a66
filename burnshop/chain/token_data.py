from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Callable

from burnshop.common import log_event, short_wallet
from burnshop.errors import RpcFatalError
from burnshop.rpc import (
    CACHE_TTL,
    ConnectionManager,
    EnhancedTransactionsClient,
    ResponseCache,
    RetryExecutor,
    SolanaRpcClient,
)

from .accounts import associated_token_account, parse_pubkey
from .types import BurnHistory, BurnRecord, TokenBalance, TokenSupply

BALANCE_BATCH_SIZE = 5


def balance_cache_key(wallet: str) -> str:
    return f"balance:{wallet}"


class TokenDataService:
    def __init__(
        self,
        *,
        logger: logging.Logger,
        rpc: SolanaRpcClient,
        retry: RetryExecutor,
        cache: ResponseCache,
        token_mint: str,
        token_decimals: int = 6,
        initial_supply: int = 1_000_000_000,
        min_holder_balance: float = 1_000_000.0,
        enhanced: EnhancedTransactionsClient | None = None,
    ) -> None:
        self._logger = logger
        self._rpc = rpc
        self._retry = retry
        self._cache = cache
        self._enhanced = enhanced
        self.token_mint = token_mint
        self.token_decimals = token_decimals
        self.initial_supply = initial_supply
        self.min_holder_balance = min_holder_balance

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def _from_raw(self, raw: Any) -> float:
        return float(Decimal(str(raw or 0)) / (Decimal(10) ** self.token_decimals))

    async def get_token_balance(self, wallet: str) -> TokenBalance:
        cache_key = balance_cache_key(wallet)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        owner = parse_pubkey(wallet, label="wallet")
        mint = parse_pubkey(self.token_mint, label="token mint")
        token_account = str(associated_token_account(owner, mint))

        async def fetch() -> TokenBalance:
            value = await self._rpc.fetch_token_account_balance(token_account)
            if value is None:
                return TokenBalance(balance=0.0, raw_balance="0", is_holder=False)

            ui_amount = value.get("uiAmount")
            balance = float(ui_amount) if isinstance(ui_amount, (int, float)) else self._from_raw(value.get("amount"))
            return TokenBalance(
                balance=balance,
                raw_balance=str(value.get("amount") or "0"),
                is_holder=balance >= self.min_holder_balance,
            )

        result = await self._retry.with_retry(fetch, "getTokenBalance")
        self._cache.set(cache_key, result, CACHE_TTL["token_balance"])
        return result

    async def get_batch_token_balances(self, wallets: list[str]) -> dict[str, TokenBalance]:
        results: dict[str, TokenBalance] = {}
        uncached: list[str] = []
        for wallet in wallets:
            cached = self._cache.get(balance_cache_key(wallet))
            if cached is not None:
                results[wallet] = cached
            else:
                uncached.append(wallet)

        for start in range(0, len(uncached), BALANCE_BATCH_SIZE):
            batch = uncached[start : start + BALANCE_BATCH_SIZE]
            outcomes = await asyncio.gather(
                *(self.get_token_balance(wallet) for wallet in batch),
                return_exceptions=True,
            )
            for wallet, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    results[wallet] = TokenBalance(
                        balance=0.0,
                        raw_balance="0",
                        is_holder=False,
                        error=str(outcome),
                    )
                else:
                    results[wallet] = outcome

        return results

    async def get_token_supply(self) -> TokenSupply:
        cached = self._cache.get("token_supply")
        if cached is not None:
            return cached

        parse_pubkey(self.token_mint, label="token mint")

        async def fetch() -> TokenSupply:
            value = await self._rpc.fetch_token_supply(self.token_mint)
            current_raw = int(str(value.get("amount") or "0"))
            initial_raw = self.initial_supply * (10**self.token_decimals)
            burned_raw = initial_raw - current_raw
            return TokenSupply(
                current=self._from_raw(current_raw),
                current_raw=str(current_raw),
                burned=self._from_raw(burned_raw),
                burned_raw=str(burned_raw),
            )

        result = await self._retry.with_retry(fetch, "getTokenSupply")
        self._cache.set("token_supply", result, CACHE_TTL["token_supply"])
        return result

    def _require_enhanced(self) -> EnhancedTransactionsClient:
        if self._enhanced is None or not self._enhanced.configured:
            raise RpcFatalError("HELIUS_API_KEY not configured")
        return self._enhanced

    async def get_recent_burns(self, limit: int = 20) -> list[BurnRecord]:
        cache_key = f"recent_burns:{limit}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        enhanced = self._require_enhanced()

        async def fetch() -> list[BurnRecord]:
            transactions = await enhanced.fetch_address_transactions(self.token_mint, params={"type": "BURN"})
            records: list[BurnRecord] = []
            for tx in transactions[: max(0, limit)]:
                transfers = tx.get("tokenTransfers") or []
                first = transfers[0] if transfers and isinstance(transfers[0], dict) else {}
                records.append(
                    BurnRecord(
                        signature=str(tx.get("signature") or ""),
                        wallet=tx.get("feePayer"),
                        amount=abs(float(first.get("tokenAmount") or 0)),
                        timestamp=tx.get("timestamp"),
                        slot=tx.get("slot"),
                    )
                )
            return records

        result = await self._retry.with_retry(fetch, "getRecentBurns")
        self._cache.set(cache_key, result, CACHE_TTL["recent_burns"])
        return result

    async def get_wallet_burn_history(self, wallet: str, limit: int = 50) -> BurnHistory:
        cache_key = f"burn_history:{wallet}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        parse_pubkey(wallet, label="wallet")
        enhanced = self._require_enhanced()

        async def fetch() -> BurnHistory:
            transactions = await enhanced.fetch_address_transactions(wallet, params={"type": "BURN"})
            burns: list[BurnRecord] = []
            for tx in transactions:
                transfer = next(
                    (
                        item
                        for item in tx.get("tokenTransfers") or []
                        if isinstance(item, dict) and item.get("mint") == self.token_mint
                    ),
                    None,
                )
                if transfer is None:
                    continue
                burns.append(
                    BurnRecord(
                        signature=str(tx.get("signature") or ""),
                        amount=abs(float(transfer.get("tokenAmount") or 0)),
                        timestamp=tx.get("timestamp"),
                        slot=tx.get("slot"),
                        wallet=wallet,
                    )
                )
                if len(burns) >= limit:
                    break

            return BurnHistory(burns=tuple(burns), total_burned=sum(burn.amount for burn in burns))

        result = await self._retry.with_retry(fetch, "getWalletBurnHistory")
        self._cache.set(cache_key, result, CACHE_TTL["burn_history"])
        return result

    def invalidate_wallet_cache(self, wallet: str) -> None:
        self._cache.delete(balance_cache_key(wallet))

    def clear_all_caches(self) -> None:
        self._cache.clear()
        log_event(
            self._logger,
            level="info",
            event="cache_cleared",
            message="All response caches cleared",
        )

    async def health_check(
        self,
        *,
        connections: ConnectionManager | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> dict[str, Any]:
        started = clock()
        details: dict[str, Any] = {
            "rpc": False,
            "enhanced_api": False,
            "cache_size": len(self._cache),
        }
        if connections is not None:
            details["rpc_state"] = connections.state

        try:
            details["current_slot"] = await self._rpc.fetch_slot()
            details["rpc"] = True
        except Exception as error:
            log_event(
                self._logger,
                level="warning",
                event="health_rpc_failed",
                message="RPC health probe failed",
                error=str(error),
            )
            details["error"] = str(error)

        if self._enhanced is not None and self._enhanced.configured:
            try:
                await self._enhanced.fetch_address_transactions(self.token_mint, params={"limit": "1"})
                details["enhanced_api"] = True
            except Exception as error:
                log_event(
                    self._logger,
                    level="warning",
                    event="health_enhanced_failed",
                    message="Enhanced API health probe failed",
                    error=str(error),
                    mint=short_wallet(self.token_mint),
                )

        return {
            "healthy": details["rpc"],
            "latency_ms": int((clock() - started) * 1000),
            "details": details,
        }
