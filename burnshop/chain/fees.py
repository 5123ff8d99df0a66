from __future__ import annotations

import logging
import math

from burnshop.common import log_event
from burnshop.rpc import CACHE_TTL, ResponseCache, RetryExecutor, SolanaRpcClient

from .types import FeeBreakdown, PriorityLevel, TransactionType

PRIORITY_FEE_CACHE_KEY = "priority_fee"
BASE_FEE_LAMPORTS = 5_000
MICRO_LAMPORTS_PER_LAMPORT = 1_000_000

TX_TYPE_MULTIPLIERS: dict[str, float] = {
    "burn": 1.5,
    "transfer": 1.0,
}

PRIORITY_MULTIPLIERS: dict[str, float] = {
    "low": 0.5,
    "medium": 1.0,
    "high": 2.0,
    "urgent": 3.0,
}

COMPUTE_UNITS: dict[str, int] = {
    "transfer": 200_000,
    "burn": 150_000,
    "default": 300_000,
}
MAX_COMPUTE_UNITS = 1_400_000


def compute_units_for(tx_type: str, requested: int | None = None) -> int:
    units = requested if requested is not None and requested > 0 else COMPUTE_UNITS.get(tx_type, COMPUTE_UNITS["default"])
    return min(int(units), MAX_COMPUTE_UNITS)


def calculate_estimated_fee(compute_units: int, priority_fee: int) -> FeeBreakdown:
    priority_lamports = math.ceil(compute_units * priority_fee / MICRO_LAMPORTS_PER_LAMPORT)
    return FeeBreakdown(
        base_fee_lamports=BASE_FEE_LAMPORTS,
        priority_fee_lamports=priority_lamports,
        total_lamports=BASE_FEE_LAMPORTS + priority_lamports,
    )


class PriorityFeeEstimator:
    """Priority fee in micro-lamports per compute unit.

    The network estimate is shared by every wallet and cached under one key;
    the type and urgency multipliers are applied per call on top of it.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger,
        rpc: SolanaRpcClient,
        retry: RetryExecutor,
        cache: ResponseCache,
        token_mint: str,
        default_fee: int = 50_000,
        min_fee: int = 10_000,
        max_fee: int = 1_000_000,
        network_max_fee: int = 500_000,
    ) -> None:
        self._logger = logger
        self._rpc = rpc
        self._retry = retry
        self._cache = cache
        self._token_mint = token_mint
        self.default_fee = default_fee
        self.min_fee = min_fee
        self.max_fee = max_fee
        self.network_max_fee = network_max_fee

    async def network_estimate(self) -> int:
        cached = self._cache.get(PRIORITY_FEE_CACHE_KEY)
        if cached is not None:
            return int(cached)

        async def fetch() -> float | None:
            return await self._rpc.fetch_priority_fee_estimate(account_keys=[self._token_mint])

        estimate = await self._retry.with_retry(fetch, "getPriorityFeeEstimate")
        if estimate is None:
            value = self.default_fee
        else:
            value = int(max(self.min_fee, min(self.network_max_fee, estimate)))

        self._cache.set(PRIORITY_FEE_CACHE_KEY, value, CACHE_TTL["priority_fee"])
        return value

    async def estimate(
        self,
        tx_type: TransactionType | str = "burn",
        priority_level: PriorityLevel | str = "medium",
    ) -> int:
        try:
            base = await self.network_estimate()
            fee = base * TX_TYPE_MULTIPLIERS.get(tx_type, 1.0) * PRIORITY_MULTIPLIERS.get(priority_level, 1.0)
            return int(max(self.min_fee, min(self.max_fee, math.floor(fee))))
        except Exception as error:
            log_event(
                self._logger,
                level="warning",
                event="priority_fee_fallback",
                message="Priority fee estimate unavailable; using default",
                error=str(error),
                default_fee=self.default_fee,
            )
            return self.default_fee
