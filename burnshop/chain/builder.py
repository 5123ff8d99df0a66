from __future__ import annotations

import base64
import logging
import secrets
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.hash import Hash
from solders.message import MessageV0
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import burn, transfer_checked
from spl.token.models import BurnParams, TransferCheckedParams

from burnshop.common import guarded_call, log_event, short_signature, short_wallet
from burnshop.errors import ValidationError
from burnshop.rpc import LatestBlockhash, RetryExecutor, SolanaRpcClient

from .accounts import associated_token_account, parse_pubkey
from .fees import PriorityFeeEstimator, calculate_estimated_fee, compute_units_for
from .types import (
    COMPUTE_BUDGET_PROGRAM,
    BuiltTransaction,
    InstructionSpec,
    PendingTransaction,
    TransactionType,
)

PENDING_TRANSACTION_MAX_AGE_SECONDS = 300.0
COMPLETED_RETENTION_SECONDS = 60.0
PENDING_SWEEP_INTERVAL_SECONDS = 60.0
MAX_TRANSACTION_BYTES = 1232


@dataclass(slots=True)
class BuilderMetrics:
    built: int = 0
    verified: int = 0
    completed: int = 0
    failed: int = 0
    swept: int = 0

    def snapshot(self) -> dict[str, int]:
        return {
            "built": self.built,
            "verified": self.verified,
            "completed": self.completed,
            "failed": self.failed,
            "swept": self.swept,
        }


@dataclass(slots=True, frozen=True)
class BuildOptions:
    priority_level: str = "medium"
    compute_units: int | None = None
    destination: str | None = None


def generate_transaction_id(now: float) -> str:
    return f"tx_{int(now * 1000)}_{secrets.token_hex(8)}"


class TransactionBuilder:
    def __init__(
        self,
        *,
        logger: logging.Logger,
        rpc: SolanaRpcClient,
        retry: RetryExecutor,
        fees: PriorityFeeEstimator,
        token_mint: str,
        token_decimals: int = 6,
        audit: Any | None = None,
        max_age_seconds: float = PENDING_TRANSACTION_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._logger = logger
        self._rpc = rpc
        self._retry = retry
        self._fees = fees
        self._audit = audit
        self._clock = clock
        self._pending: dict[str, PendingTransaction] = {}
        self.token_mint = token_mint
        self.token_decimals = token_decimals
        self.max_age_seconds = max_age_seconds
        self.metrics = BuilderMetrics()

    def to_raw_amount(self, amount: float) -> int:
        scaled = Decimal(str(amount)) * (Decimal(10) ** self.token_decimals)
        return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    def _compute_budget_specs(self, compute_units: int, priority_fee: int) -> list[InstructionSpec]:
        return [
            InstructionSpec(
                kind="setComputeUnitLimit",
                program_id=COMPUTE_BUDGET_PROGRAM,
                data={"units": compute_units},
                instruction=set_compute_unit_limit(compute_units),
            ),
            InstructionSpec(
                kind="setComputeUnitPrice",
                program_id=COMPUTE_BUDGET_PROGRAM,
                data={"microLamports": priority_fee},
                instruction=set_compute_unit_price(priority_fee),
            ),
        ]

    def _burn_spec(self, wallet: str, amount: float) -> InstructionSpec:
        owner = parse_pubkey(wallet, label="wallet")
        mint = parse_pubkey(self.token_mint, label="token mint")
        token_account = associated_token_account(owner, mint)
        raw_amount = self.to_raw_amount(amount)
        instruction = burn(
            BurnParams(
                program_id=TOKEN_PROGRAM_ID,
                account=token_account,
                mint=mint,
                owner=owner,
                amount=raw_amount,
                signers=[],
            )
        )
        return InstructionSpec(
            kind="burn",
            program_id=str(TOKEN_PROGRAM_ID),
            data={
                "account": str(token_account),
                "mint": str(mint),
                "authority": wallet,
                "amount": str(raw_amount),
            },
            instruction=instruction,
        )

    def _transfer_spec(self, wallet: str, destination: str, amount: float) -> InstructionSpec:
        owner = parse_pubkey(wallet, label="wallet")
        recipient = parse_pubkey(destination, label="destination")
        mint = parse_pubkey(self.token_mint, label="token mint")
        source_account = associated_token_account(owner, mint)
        dest_account = associated_token_account(recipient, mint)
        raw_amount = self.to_raw_amount(amount)
        instruction = transfer_checked(
            TransferCheckedParams(
                program_id=TOKEN_PROGRAM_ID,
                source=source_account,
                mint=mint,
                dest=dest_account,
                owner=owner,
                amount=raw_amount,
                decimals=self.token_decimals,
                signers=[],
            )
        )
        return InstructionSpec(
            kind="transferChecked",
            program_id=str(TOKEN_PROGRAM_ID),
            data={
                "source": str(source_account),
                "destination": str(dest_account),
                "mint": str(mint),
                "authority": wallet,
                "amount": str(raw_amount),
                "decimals": self.token_decimals,
            },
            instruction=instruction,
        )

    async def build(
        self,
        tx_type: TransactionType,
        wallet: str,
        amount: float,
        options: BuildOptions | None = None,
    ) -> BuiltTransaction:
        options = options or BuildOptions()
        if amount <= 0:
            raise ValidationError("Amount must be positive")

        now = self._clock()
        transaction_id = generate_transaction_id(now)

        if tx_type == "burn":
            core = self._burn_spec(wallet, amount)
        elif tx_type == "transfer":
            if not options.destination:
                raise ValidationError("Transfer requires a destination")
            core = self._transfer_spec(wallet, options.destination, amount)
        else:
            raise ValidationError(f"Unsupported transaction type: {tx_type}")

        priority_fee = await self._fees.estimate(tx_type, options.priority_level)
        compute_units = compute_units_for(tx_type, options.compute_units)
        specs = [*self._compute_budget_specs(compute_units, priority_fee), core]

        latest: LatestBlockhash = await self._retry.with_retry(
            self._rpc.fetch_latest_blockhash,
            "getLatestBlockhash",
        )

        payer = parse_pubkey(wallet, label="wallet")
        message = MessageV0.try_compile(
            payer,
            [spec.instruction for spec in specs],
            [],
            Hash.from_string(latest.blockhash),
        )
        # Unsigned: the fee payer slot holds a placeholder the wallet replaces.
        unsigned_tx = VersionedTransaction.populate(message, [Signature.default()])
        raw_tx = bytes(unsigned_tx)
        if len(raw_tx) > MAX_TRANSACTION_BYTES:
            raise ValidationError(f"Transaction too large: {len(raw_tx)} bytes")

        expires_at = now + self.max_age_seconds
        self._pending[transaction_id] = PendingTransaction(
            id=transaction_id,
            type=tx_type,
            wallet=wallet,
            amount=amount,
            instructions=tuple(specs),
            priority_fee=priority_fee,
            compute_units=compute_units,
            blockhash=latest.blockhash,
            created_at=now,
            expires_at=expires_at,
        )
        self.metrics.built += 1

        estimated_fee = calculate_estimated_fee(compute_units, priority_fee)
        log_event(
            self._logger,
            level="info",
            event="transaction_built",
            message="Unsigned transaction built",
            transaction_id=transaction_id,
            tx_type=tx_type,
            wallet=short_wallet(wallet),
            amount=amount,
            priority_fee=priority_fee,
            compute_units=compute_units,
        )
        await self._log_audit(
            "transaction.built",
            {
                "transactionId": transaction_id,
                "type": tx_type,
                "wallet": short_wallet(wallet),
                "amount": amount,
                "priorityFee": priority_fee,
            },
        )

        return BuiltTransaction(
            transaction_id=transaction_id,
            transaction=base64.b64encode(raw_tx).decode("ascii"),
            serialized_instructions=[spec.describe() for spec in specs],
            message={
                "version": 0,
                "feePayer": wallet,
                "recentBlockhash": latest.blockhash,
                "instructionCount": len(specs),
            },
            priority_fee=priority_fee,
            compute_units=compute_units,
            estimated_fee=estimated_fee,
            blockhash=latest.blockhash,
            last_valid_block_height=latest.last_valid_block_height,
            expires_at=expires_at,
        )

    async def build_burn_transaction(
        self,
        wallet: str,
        amount: float,
        *,
        priority_level: str = "medium",
        compute_units: int | None = None,
    ) -> BuiltTransaction:
        return await self.build(
            "burn",
            wallet,
            amount,
            BuildOptions(priority_level=priority_level, compute_units=compute_units),
        )

    async def build_transfer_transaction(
        self,
        wallet: str,
        destination: str,
        amount: float,
        *,
        priority_level: str = "medium",
        compute_units: int | None = None,
    ) -> BuiltTransaction:
        return await self.build(
            "transfer",
            wallet,
            amount,
            BuildOptions(
                priority_level=priority_level,
                compute_units=compute_units,
                destination=destination,
            ),
        )

    def _lookup(self, transaction_id: str) -> PendingTransaction | None:
        pending = self._pending.get(transaction_id)
        if pending is None:
            return None
        if pending.status == "pending" and self._clock() > pending.expires_at:
            del self._pending[transaction_id]
            return None
        return pending

    def get_pending_transaction(self, transaction_id: str) -> dict[str, Any] | None:
        pending = self._lookup(transaction_id)
        if pending is None:
            return None
        return {
            "id": pending.id,
            "type": pending.type,
            "wallet": short_wallet(pending.wallet),
            "amount": pending.amount,
            "status": pending.status,
            "priorityFee": pending.priority_fee,
            "computeUnits": pending.compute_units,
            "createdAt": pending.created_at,
            "expiresAt": pending.expires_at,
            "signature": short_signature(pending.signature) if pending.signature else None,
        }

    async def mark_verified(
        self,
        transaction_id: str,
        signature: str,
        confirmation: dict[str, Any] | None = None,
    ) -> bool:
        pending = self._lookup(transaction_id)
        if pending is None:
            return False
        pending.status = "verified"
        pending.signature = signature
        pending.verified_at = self._clock()
        pending.confirmation = dict(confirmation or {})
        self.metrics.verified += 1
        await self._log_audit(
            "transaction.verified",
            {
                "transactionId": transaction_id,
                "signature": short_signature(signature),
                "wallet": short_wallet(pending.wallet),
            },
        )
        return True

    async def mark_completed(self, transaction_id: str) -> bool:
        pending = self._lookup(transaction_id)
        if pending is None:
            return False
        pending.status = "completed"
        pending.completed_at = self._clock()
        self.metrics.completed += 1
        await self._log_audit(
            "transaction.completed",
            {
                "transactionId": transaction_id,
                "wallet": short_wallet(pending.wallet),
                "amount": pending.amount,
            },
        )
        return True

    def mark_failed(self, transaction_id: str) -> None:
        if self._pending.pop(transaction_id, None) is not None:
            self.metrics.failed += 1

    def sweep(self) -> int:
        now = self._clock()
        stale = [
            transaction_id
            for transaction_id, pending in self._pending.items()
            if (pending.status == "completed" and pending.completed_at is not None
                and now - pending.completed_at > COMPLETED_RETENTION_SECONDS)
            or (pending.status != "completed" and now > pending.expires_at)
        ]
        for transaction_id in stale:
            del self._pending[transaction_id]
        self.metrics.swept += len(stale)
        if stale:
            log_event(
                self._logger,
                level="debug",
                event="pending_transactions_swept",
                message="Expired pending transactions removed",
                count=len(stale),
            )
        return len(stale)

    def pending_count(self) -> int:
        return len(self._pending)

    async def _log_audit(self, event: str, payload: dict[str, Any]) -> None:
        if self._audit is None:
            return
        await guarded_call(
            lambda: self._audit.log_audit(event, payload),
            logger=self._logger,
            event="audit_write_failed",
            message="Audit write failed",
            audit_event=event,
        )
