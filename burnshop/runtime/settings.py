from __future__ import annotations

import os
from dataclasses import dataclass

from burnshop.common.env import to_float, to_int

DEFAULT_TOKEN_MINT = "9zB5wRarXMj86MymwLumSKA1Dx35zPqqKfcZtK1Spump"
DEFAULT_HELIUS_API_BASE_URL = "https://api.helius.xyz"


@dataclass(slots=True)
class AppSettings:
    helius_api_key: str
    helius_rpc_url: str
    backup_rpc_url: str
    helius_api_base_url: str
    token_mint: str
    token_decimals: int
    initial_supply: int
    min_holder_balance: float
    rpc_timeout_seconds: float
    rpc_max_attempts: int
    rpc_base_delay_seconds: float
    rpc_max_delay_seconds: float
    rpc_jitter_seconds: float
    rpc_max_failures: int
    rpc_failover_cooldown_seconds: float
    priority_fee_default: int
    priority_fee_min: int
    priority_fee_max: int
    priority_fee_network_max: int
    purchase_ttl_seconds: float
    max_pending_purchases_per_wallet: int
    confirmation_max_checks: int
    confirmation_poll_seconds: float
    api_host: str
    api_port: int

    @property
    def primary_rpc_url(self) -> str:
        if self.helius_rpc_url:
            return self.helius_rpc_url
        if self.helius_api_key:
            return f"https://mainnet.helius-rpc.com/?api-key={self.helius_api_key}"
        return ""

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            helius_api_key=os.getenv("HELIUS_API_KEY", "").strip(),
            helius_rpc_url=os.getenv("HELIUS_RPC_URL", "").strip(),
            backup_rpc_url=os.getenv("BACKUP_RPC_URL", "").strip(),
            helius_api_base_url=(
                os.getenv("HELIUS_API_BASE_URL", DEFAULT_HELIUS_API_BASE_URL).strip()
                or DEFAULT_HELIUS_API_BASE_URL
            ),
            token_mint=os.getenv("TOKEN_MINT", DEFAULT_TOKEN_MINT).strip() or DEFAULT_TOKEN_MINT,
            token_decimals=max(0, to_int(os.getenv("TOKEN_DECIMALS"), 6)),
            initial_supply=max(1, to_int(os.getenv("INITIAL_SUPPLY"), 1_000_000_000)),
            min_holder_balance=max(0.0, to_float(os.getenv("MIN_HOLDER_BALANCE"), 1_000_000.0)),
            rpc_timeout_seconds=max(1.0, to_float(os.getenv("RPC_TIMEOUT_SECONDS"), 10.0)),
            rpc_max_attempts=max(1, to_int(os.getenv("RPC_MAX_ATTEMPTS"), 3)),
            rpc_base_delay_seconds=max(0.0, to_float(os.getenv("RPC_BASE_DELAY_SECONDS"), 1.0)),
            rpc_max_delay_seconds=max(0.0, to_float(os.getenv("RPC_MAX_DELAY_SECONDS"), 10.0)),
            rpc_jitter_seconds=max(0.0, to_float(os.getenv("RPC_JITTER_SECONDS"), 1.0)),
            rpc_max_failures=max(1, to_int(os.getenv("RPC_MAX_FAILURES"), 3)),
            rpc_failover_cooldown_seconds=max(
                1.0,
                to_float(os.getenv("RPC_FAILOVER_COOLDOWN_SECONDS"), 30.0),
            ),
            priority_fee_default=max(0, to_int(os.getenv("PRIORITY_FEE_DEFAULT"), 50_000)),
            priority_fee_min=max(0, to_int(os.getenv("PRIORITY_FEE_MIN"), 10_000)),
            priority_fee_max=max(1, to_int(os.getenv("PRIORITY_FEE_MAX"), 1_000_000)),
            priority_fee_network_max=max(1, to_int(os.getenv("PRIORITY_FEE_NETWORK_MAX"), 500_000)),
            purchase_ttl_seconds=max(30.0, to_float(os.getenv("PURCHASE_TTL_SECONDS"), 300.0)),
            max_pending_purchases_per_wallet=max(
                1,
                to_int(os.getenv("MAX_PENDING_PURCHASES_PER_WALLET"), 3),
            ),
            confirmation_max_checks=max(1, to_int(os.getenv("CONFIRMATION_MAX_CHECKS"), 30)),
            confirmation_poll_seconds=max(0.1, to_float(os.getenv("CONFIRMATION_POLL_SECONDS"), 2.0)),
            api_host=os.getenv("API_HOST", "0.0.0.0").strip() or "0.0.0.0",
            api_port=max(1, to_int(os.getenv("API_PORT"), 8080)),
        )
