from __future__ import annotations

import logging
import re
import secrets
import time
from typing import Any, Callable

from burnshop.chain import TokenDataService, TransactionBuilder, TransactionVerifier, parse_pubkey
from burnshop.common import guarded_call, log_event, short_signature, short_wallet
from burnshop.errors import (
    BurnShopError,
    ExpiredError,
    InsufficientBalanceError,
    NotFoundError,
    PurchaseLockoutError,
    ValidationError,
    VerificationError,
)

from .catalog import all_items, get_item
from .pricing import (
    INITIAL_SUPPLY,
    apply_discount,
    calculate_price,
    can_access_tier,
    clamp_engage_tier,
    purchase_price,
)
from .replay_guard import AntiReplayGuard
from .types import PendingPurchase, PurchaseInitiation, PurchaseReceipt

SIGNATURE_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{64,100}$")
DEFAULT_PURCHASE_TTL_SECONDS = 300.0


class PurchaseOrchestrator:
    """Initiates and confirms burn-paid purchases.

    A confirmation consumes the signature before anything else happens and
    then claims the pending record, which goes back to the store only if
    verification fails. A signature that fails verification stays consumed.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger,
        token_data: TokenDataService,
        builder: TransactionBuilder,
        verifier: TransactionVerifier,
        guard: AntiReplayGuard,
        pending_store: Any,
        inventory: Any | None = None,
        audit: Any | None = None,
        purchase_ttl_seconds: float = DEFAULT_PURCHASE_TTL_SECONDS,
        max_pending_per_wallet: int = 3,
        initial_supply: int = INITIAL_SUPPLY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._logger = logger
        self._token_data = token_data
        self._builder = builder
        self._verifier = verifier
        self._guard = guard
        self._pending = pending_store
        self._inventory = inventory
        self._audit = audit
        self._clock = clock
        self.purchase_ttl_seconds = purchase_ttl_seconds
        self.max_pending_per_wallet = max(1, max_pending_per_wallet)
        self.initial_supply = initial_supply

    async def get_catalog_with_prices(self, engage_tier: int = 0) -> list[dict[str, Any]]:
        engage_tier = clamp_engage_tier(engage_tier)
        supply = await self._token_data.get_token_supply()

        catalog: list[dict[str, Any]] = []
        for item in all_items():
            base_price = calculate_price(item.tier, supply.current, self.initial_supply)
            price = apply_discount(base_price, engage_tier)
            catalog.append(
                {
                    **item.to_dict(),
                    "basePrice": base_price,
                    "price": price,
                    "discount": base_price - price,
                    "accessible": can_access_tier(item.tier, engage_tier),
                }
            )
        return catalog

    async def get_inventory(self, wallet: str) -> list[str]:
        parse_pubkey(wallet, label="wallet")
        if self._inventory is None:
            return []
        return await self._inventory.get_inventory(wallet)

    async def _reserve_slot(self, wallet: str, purchase_id: str, expires_at: float) -> None:
        if await self._pending.reserve(
            wallet,
            purchase_id,
            expires_at=expires_at,
            limit=self.max_pending_per_wallet,
        ):
            return

        open_purchases = await self._pending.list_for_wallet(wallet)
        if open_purchases:
            oldest = min(open_purchases, key=lambda record: float(record.get("createdAt", 0)))
            retry_after = max(0.0, float(oldest.get("expiresAt", 0)) - self._clock())
        else:
            retry_after = self.purchase_ttl_seconds
        raise PurchaseLockoutError(
            "Too many pending purchases; complete or wait for one to expire",
            retry_after=retry_after,
        )

    async def initiate_purchase(
        self,
        wallet: str,
        item_id: str,
        engage_tier: int,
        owned_items: list[str] | None = None,
    ) -> PurchaseInitiation:
        parse_pubkey(wallet, label="wallet")
        engage_tier = clamp_engage_tier(engage_tier)

        item = get_item(item_id)
        if item is None:
            raise ValidationError("Item not found")
        if item.default:
            raise ValidationError("Cannot purchase default items")

        if owned_items is None:
            owned_items = await self.get_inventory(wallet)
        if item.id in owned_items:
            raise ValidationError("Item already owned")
        if not can_access_tier(item.tier, engage_tier):
            raise ValidationError(f"Requires higher engage tier to access {item.name}")

        now = self._clock()
        purchase_id = f"{wallet}-{item.id}-{int(now * 1000)}-{secrets.token_hex(4)}"
        expires_at = now + self.purchase_ttl_seconds
        await self._reserve_slot(wallet, purchase_id, expires_at)

        try:
            supply = await self._token_data.get_token_supply()
            price = purchase_price(item.tier, supply.current, engage_tier, self.initial_supply)

            balance = await self._token_data.get_token_balance(wallet)
            if balance.balance < price:
                raise InsufficientBalanceError(f"Insufficient balance. Need {price}, have {balance.balance}")

            built = await self._builder.build_burn_transaction(wallet, price)

            pending = PendingPurchase(
                purchase_id=purchase_id,
                wallet=wallet,
                item=item,
                price=price,
                blockhash=built.blockhash,
                last_valid_block_height=built.last_valid_block_height,
                transaction_id=built.transaction_id,
                created_at=now,
                expires_at=expires_at,
            )
            await self._pending.save(pending.to_dict(), ttl_seconds=self.purchase_ttl_seconds)
        except BaseException:
            await self._pending.release(wallet, purchase_id)
            raise

        log_event(
            self._logger,
            level="info",
            event="purchase_initiated",
            message="Purchase initiated",
            purchase_id=pending.purchase_id,
            wallet=short_wallet(wallet),
            item_id=item.id,
            price=price,
        )
        await self._log_audit(
            "purchase.initiated",
            {
                "purchaseId": pending.purchase_id,
                "wallet": short_wallet(wallet),
                "itemId": item.id,
                "price": price,
            },
        )

        return PurchaseInitiation(
            transaction=built.transaction,
            price=price,
            purchase_id=pending.purchase_id,
            item=item,
            expires_at=pending.expires_at,
        )

    async def _claim_pending(self, purchase_id: str) -> PendingPurchase:
        # Taking the record out of the store makes this caller its only owner
        # for the rest of the confirmation; sweeps and TTLs no longer apply.
        record = await self._pending.pop(purchase_id)
        if record is None:
            raise NotFoundError("Purchase not found or expired")

        pending = PendingPurchase.from_dict(record)
        if self._clock() > pending.expires_at:
            self._builder.mark_failed(pending.transaction_id)
            raise ExpiredError("Purchase expired")
        return pending

    async def _restore_pending(self, pending: PendingPurchase) -> None:
        remaining = pending.expires_at - self._clock()
        if remaining <= 0:
            return
        await guarded_call(
            lambda: self._pending.save(pending.to_dict(), ttl_seconds=remaining),
            logger=self._logger,
            event="pending_purchase_restore_failed",
            message="Pending purchase could not be returned to the store",
            purchase_id=pending.purchase_id,
        )

    async def confirm_purchase(self, purchase_id: str, signature: str) -> PurchaseReceipt:
        if not isinstance(signature, str) or not SIGNATURE_RE.match(signature):
            raise ValidationError("Invalid transaction signature")
        if not isinstance(purchase_id, str) or not purchase_id:
            raise ValidationError("purchaseId is required")

        try:
            await self._guard.consume(signature, purchase_id=purchase_id)
            pending = await self._claim_pending(purchase_id)
            try:
                verification = await self._verifier.verify_burn(
                    signature,
                    pending.wallet,
                    pending.price,
                    not_before=pending.created_at,
                    transaction_id=pending.transaction_id,
                )
                if not verification.valid:
                    self._builder.mark_failed(pending.transaction_id)
                    raise VerificationError(f"Transaction verification failed: {verification.error}")
            except Exception:
                await self._restore_pending(pending)
                raise
        except BurnShopError as error:
            await self._log_audit(
                "purchase.failed",
                {
                    "purchaseId": purchase_id,
                    "signature": short_signature(signature),
                    "reason": error.message,
                    "code": error.code,
                },
            )
            raise

        xp_gained = pending.price
        if self._inventory is not None:
            await guarded_call(
                lambda: self._inventory.grant_item(
                    pending.wallet,
                    pending.item_id,
                    xp=xp_gained,
                    signature=signature,
                ),
                logger=self._logger,
                event="inventory_grant_failed",
                message="Verified purchase could not be credited; reconcile manually",
                level="error",
                purchase_id=purchase_id,
                item_id=pending.item_id,
                signature=short_signature(signature),
            )

        await self._builder.mark_completed(pending.transaction_id)

        log_event(
            self._logger,
            level="info",
            event="purchase_completed",
            message="Purchase completed",
            purchase_id=purchase_id,
            wallet=short_wallet(pending.wallet),
            item_id=pending.item_id,
            price=pending.price,
            signature=short_signature(signature),
        )
        await self._log_audit(
            "purchase.completed",
            {
                "purchaseId": purchase_id,
                "wallet": short_wallet(pending.wallet),
                "itemId": pending.item_id,
                "price": pending.price,
                "xpGained": xp_gained,
                "signature": short_signature(signature),
            },
        )

        return PurchaseReceipt(
            success=True,
            item=pending.item,
            price=pending.price,
            xp_gained=xp_gained,
            tx_signature=signature,
        )

    async def sweep_expired(self) -> int:
        removed = await self._pending.sweep()
        if removed:
            log_event(
                self._logger,
                level="debug",
                event="pending_purchases_swept",
                message="Expired pending purchases removed",
                count=removed,
            )
        return removed

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
