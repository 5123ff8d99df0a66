from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable

from burnshop.common import log_event, short_signature, short_wallet
from burnshop.errors import TransactionNotIndexedError
from burnshop.rpc import RetryExecutor, SolanaRpcClient

from .builder import TransactionBuilder
from .token_data import TokenDataService
from .types import BurnVerificationResult, ConfirmationStatus

AMOUNT_TOLERANCE = 1e-6
BLOCK_TIME_SKEW_SECONDS = 60
BURN_INSTRUCTION_TYPES = {"burn", "burnChecked"}
CONFIRMED_LEVELS = {"confirmed", "finalized"}


def _iter_parsed_instructions(transaction: dict[str, Any]):
    message = (transaction.get("transaction") or {}).get("message") or {}
    for instruction in message.get("instructions") or []:
        if isinstance(instruction, dict):
            yield instruction
    for inner in (transaction.get("meta") or {}).get("innerInstructions") or []:
        for instruction in (inner or {}).get("instructions") or []:
            if isinstance(instruction, dict):
                yield instruction


def find_burn_instruction(transaction: dict[str, Any]) -> dict[str, Any] | None:
    for instruction in _iter_parsed_instructions(transaction):
        if instruction.get("program") != "spl-token":
            continue
        parsed = instruction.get("parsed")
        if isinstance(parsed, dict) and parsed.get("type") in BURN_INSTRUCTION_TYPES:
            return parsed
    return None


def _raw_amount(parsed: dict[str, Any]) -> str:
    info = parsed.get("info") or {}
    if parsed.get("type") == "burnChecked":
        return str((info.get("tokenAmount") or {}).get("amount") or "0")
    return str(info.get("amount") or "0")


class TransactionVerifier:
    """Checks a submitted signature against on-chain truth.

    Results are never cached; every call reads the confirmed transaction.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger,
        rpc: SolanaRpcClient,
        retry: RetryExecutor,
        token_data: TokenDataService,
        builder: TransactionBuilder | None = None,
        max_checks: int = 30,
        poll_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._logger = logger
        self._rpc = rpc
        self._retry = retry
        self._token_data = token_data
        self._builder = builder
        self._max_checks = max(1, max_checks)
        self._poll_seconds = poll_seconds
        self._sleep = sleep

    async def wait_for_confirmation(self, signature: str) -> ConfirmationStatus:
        for check in range(self._max_checks):
            status = await self._retry.with_retry(
                lambda: self._rpc.fetch_signature_status(signature),
                "getSignatureStatus",
            )
            if status is not None:
                if status.get("err"):
                    return ConfirmationStatus(
                        confirmed=False,
                        slot=status.get("slot"),
                        confirmation_status=status.get("confirmationStatus"),
                        error="Transaction failed on-chain",
                    )
                if status.get("confirmationStatus") in CONFIRMED_LEVELS:
                    return ConfirmationStatus(
                        confirmed=True,
                        slot=status.get("slot"),
                        confirmation_status=status.get("confirmationStatus"),
                    )

            if check < self._max_checks - 1:
                await self._sleep(self._poll_seconds)

        return ConfirmationStatus(confirmed=False, error="Confirmation timeout")

    async def _fetch_confirmed(self, signature: str) -> dict[str, Any]:
        async def fetch() -> dict[str, Any]:
            transaction = await self._rpc.fetch_parsed_transaction(signature)
            if transaction is None:
                raise TransactionNotIndexedError()
            return transaction

        return await self._retry.with_retry(fetch, "getParsedTransaction")

    def _reject(self, signature: str, error: str, **fields: Any) -> BurnVerificationResult:
        log_event(
            self._logger,
            level="warning",
            event="burn_verification_rejected",
            message=error,
            signature=short_signature(signature),
            **fields,
        )
        return BurnVerificationResult(valid=False, error=error, **fields)

    async def verify_burn(
        self,
        signature: str,
        expected_wallet: str,
        expected_amount: float,
        *,
        not_before: float | None = None,
        transaction_id: str | None = None,
        wait_for_confirmation: bool = True,
    ) -> BurnVerificationResult:
        if wait_for_confirmation:
            confirmation = await self.wait_for_confirmation(signature)
            if confirmation.error == "Transaction failed on-chain":
                return self._reject(signature, confirmation.error)

        transaction = await self._fetch_confirmed(signature)

        meta = transaction.get("meta") or {}
        if meta.get("err"):
            return self._reject(signature, "Transaction failed on-chain")

        parsed = find_burn_instruction(transaction)
        if parsed is None:
            return self._reject(signature, "No burn instruction found")

        info = parsed.get("info") or {}
        if info.get("mint") != self._token_data.token_mint:
            return self._reject(signature, "Wrong token mint")
        if info.get("authority") != expected_wallet:
            return self._reject(signature, "Wrong wallet")

        block_time = transaction.get("blockTime")
        if (
            not_before is not None
            and isinstance(block_time, (int, float))
            and block_time < not_before - BLOCK_TIME_SKEW_SECONDS
        ):
            return self._reject(signature, "Transaction predates purchase", block_time=int(block_time))

        scale = Decimal(10) ** self._token_data.token_decimals
        actual_amount = float(Decimal(_raw_amount(parsed)) / scale)
        if abs(actual_amount - expected_amount) > AMOUNT_TOLERANCE:
            return self._reject(
                signature,
                f"Amount mismatch: expected {expected_amount}, got {actual_amount}",
                actual_amount=actual_amount,
                expected_amount=expected_amount,
            )

        self._token_data.invalidate_wallet_cache(expected_wallet)
        slot = transaction.get("slot")

        if self._builder is not None and transaction_id:
            await self._builder.mark_verified(
                transaction_id,
                signature,
                {"slot": slot, "blockTime": block_time},
            )

        log_event(
            self._logger,
            level="info",
            event="burn_verified",
            message="Burn transaction verified",
            signature=short_signature(signature),
            wallet=short_wallet(expected_wallet),
            amount=actual_amount,
            slot=slot,
        )
        return BurnVerificationResult(
            valid=True,
            actual_amount=actual_amount,
            expected_amount=expected_amount,
            slot=slot if isinstance(slot, int) else None,
            block_time=int(block_time) if isinstance(block_time, (int, float)) else None,
        )
