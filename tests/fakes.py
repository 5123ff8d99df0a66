from __future__ import annotations

import logging
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature

from burnshop.rpc import LatestBlockhash, RetryExecutor, RetryPolicy

LOGGER = logging.getLogger("test.burnshop")


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def new_address() -> str:
    return str(Pubkey.new_unique())


def new_signature() -> str:
    return str(Signature.new_unique())


def make_retry(*, max_attempts: int = 3) -> RetryExecutor:
    return RetryExecutor(
        logger=LOGGER,
        connections=MagicMock(),
        policy=RetryPolicy(max_attempts=max_attempts, base_delay_seconds=0.0, jitter_seconds=0.0),
        sleep=AsyncMock(),
        jitter=lambda _upper: 0.0,
    )


def make_rpc(*, token_mint: str, supply_raw: int = 1_000_000_000 * 10**6, balance_ui: float = 1_000.0) -> MagicMock:
    rpc = MagicMock()
    rpc.fetch_latest_blockhash = AsyncMock(
        return_value=LatestBlockhash(blockhash=str(Hash.new_unique()), last_valid_block_height=1_000)
    )
    rpc.fetch_priority_fee_estimate = AsyncMock(return_value=20_000.0)
    rpc.fetch_token_supply = AsyncMock(return_value={"amount": str(supply_raw), "decimals": 6})
    rpc.fetch_token_account_balance = AsyncMock(
        return_value={"amount": str(int(balance_ui * 10**6)), "uiAmount": balance_ui, "decimals": 6}
    )
    rpc.fetch_signature_status = AsyncMock(
        return_value={"slot": 42, "confirmationStatus": "confirmed", "err": None}
    )
    rpc.fetch_parsed_transaction = AsyncMock(return_value=None)
    rpc.fetch_slot = AsyncMock(return_value=42)
    return rpc


def parsed_burn_transaction(
    *,
    mint: str,
    authority: str,
    raw_amount: int,
    block_time: float | None = None,
    err: Any = None,
    kind: str = "burn",
) -> dict[str, Any]:
    if kind == "burnChecked":
        info: dict[str, Any] = {
            "account": new_address(),
            "mint": mint,
            "authority": authority,
            "tokenAmount": {"amount": str(raw_amount), "decimals": 6},
        }
    else:
        info = {
            "account": new_address(),
            "mint": mint,
            "authority": authority,
            "amount": str(raw_amount),
        }

    return {
        "slot": 42,
        "blockTime": int(block_time) if block_time is not None else None,
        "meta": {"err": err, "innerInstructions": []},
        "transaction": {
            "message": {
                "instructions": [
                    {"programId": "ComputeBudget111111111111111111111111111111", "data": "x"},
                    {
                        "program": "spl-token",
                        "programId": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
                        "parsed": {"type": kind, "info": info},
                    },
                ]
            }
        },
    }
