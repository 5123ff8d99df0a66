from __future__ import annotations

import asyncio
import unittest
from unittest.mock import AsyncMock

from burnshop.chain import PriorityFeeEstimator, TokenDataService, TransactionBuilder, TransactionVerifier
from burnshop.errors import (
    DoubleSpendError,
    ExpiredError,
    InsufficientBalanceError,
    NotFoundError,
    PriceCalculationError,
    PurchaseLockoutError,
    RpcTransientError,
    ValidationError,
    VerificationError,
)
from burnshop.rpc import ResponseCache
from burnshop.shop import AntiReplayGuard, PurchaseOrchestrator
from burnshop.storage import InMemoryInventory, InMemoryPendingPurchaseStore, InMemorySignatureLedger

from tests.fakes import LOGGER, FakeClock, make_retry, make_rpc, new_address, new_signature, parsed_burn_transaction


class PurchaseOrchestratorTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.clock = FakeClock()
        self.mint = new_address()
        self.wallet = new_address()
        self.rpc = make_rpc(token_mint=self.mint)
        self.retry = make_retry()
        cache = ResponseCache(clock=self.clock)
        self.audit = AsyncMock()

        self.token_data = TokenDataService(
            logger=LOGGER,
            rpc=self.rpc,
            retry=self.retry,
            cache=cache,
            token_mint=self.mint,
        )
        fees = PriorityFeeEstimator(logger=LOGGER, rpc=self.rpc, retry=self.retry, cache=cache, token_mint=self.mint)
        self.builder = TransactionBuilder(
            logger=LOGGER,
            rpc=self.rpc,
            retry=self.retry,
            fees=fees,
            token_mint=self.mint,
            clock=self.clock,
        )
        self.ledger = InMemorySignatureLedger(ttl_seconds=86_400, clock=self.clock)
        self.pending = InMemoryPendingPurchaseStore(clock=self.clock)
        self.inventory = InMemoryInventory()
        self.orchestrator = self._orchestrator_with_verifier(max_checks=1, sleep=AsyncMock())

    def _orchestrator_with_verifier(self, *, max_checks: int, sleep) -> PurchaseOrchestrator:
        verifier = TransactionVerifier(
            logger=LOGGER,
            rpc=self.rpc,
            retry=self.retry,
            token_data=self.token_data,
            builder=self.builder,
            max_checks=max_checks,
            sleep=sleep,
        )
        return PurchaseOrchestrator(
            logger=LOGGER,
            token_data=self.token_data,
            builder=self.builder,
            verifier=verifier,
            guard=AntiReplayGuard(ledger=self.ledger, logger=LOGGER),
            pending_store=self.pending,
            inventory=self.inventory,
            audit=self.audit,
            clock=self.clock,
        )

    def _chain_shows_burn(self, *, raw_amount: int = 32_000_000, wallet: str | None = None) -> None:
        self.rpc.fetch_parsed_transaction = AsyncMock(
            return_value=parsed_burn_transaction(
                mint=self.mint,
                authority=wallet or self.wallet,
                raw_amount=raw_amount,
                block_time=self.clock.now + 5,
            )
        )

    def _audit_events(self) -> list[str]:
        return [call.args[0] for call in self.audit.log_audit.await_args_list]

    async def test_initiate_then_confirm_credits_item(self) -> None:
        initiation = await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)

        self.assertEqual(initiation.price, 32)
        self.assertTrue(initiation.purchase_id.startswith(f"{self.wallet}-bg_transcend-"))
        self.assertEqual(initiation.to_dict()["item"], {"id": "bg_transcend", "name": "Transcendence", "tier": 9})
        self.assertTrue(initiation.transaction)

        self._chain_shows_burn()
        self.clock.advance(20)
        signature = new_signature()
        receipt = await self.orchestrator.confirm_purchase(initiation.purchase_id, signature)

        self.assertTrue(receipt.success)
        self.assertEqual(receipt.price, 32)
        self.assertEqual(receipt.xp_gained, 32)
        self.assertEqual(receipt.tx_signature, signature)
        self.assertIn("bg_transcend", await self.inventory.get_inventory(self.wallet))
        self.assertEqual(await self.inventory.get_xp(self.wallet), 32)
        self.assertEqual(len(self.pending), 0)
        self.assertEqual(self.builder.metrics.completed, 1)
        self.assertEqual(self._audit_events(), ["purchase.initiated", "purchase.completed"])

    async def test_reused_signature_is_double_spend_even_for_another_purchase(self) -> None:
        first = await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self.clock.advance(1)
        second = await self.orchestrator.initiate_purchase(self.wallet, "head_nimbus", 4)
        self._chain_shows_burn()
        signature = new_signature()

        await self.orchestrator.confirm_purchase(first.purchase_id, signature)

        with self.assertRaises(DoubleSpendError):
            await self.orchestrator.confirm_purchase(second.purchase_id, signature)
        with self.assertRaises(DoubleSpendError):
            await self.orchestrator.confirm_purchase(first.purchase_id, signature)
        self.assertIsNotNone(await self.pending.get(second.purchase_id))

    async def test_expired_purchase_is_rejected_and_removed(self) -> None:
        initiation = await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self._chain_shows_burn()

        self.clock.advance(301)

        with self.assertRaises(ExpiredError):
            await self.orchestrator.confirm_purchase(initiation.purchase_id, new_signature())
        self.assertIsNone(await self.pending.get(initiation.purchase_id))

    async def test_unknown_purchase_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            await self.orchestrator.confirm_purchase("missing", new_signature())

    async def test_failed_verification_keeps_signature_consumed(self) -> None:
        initiation = await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self._chain_shows_burn(raw_amount=1_000_000)
        signature = new_signature()

        with self.assertRaises(VerificationError) as ctx:
            await self.orchestrator.confirm_purchase(initiation.purchase_id, signature)
        self.assertIn("Amount mismatch", str(ctx.exception))

        self._chain_shows_burn()
        with self.assertRaises(DoubleSpendError):
            await self.orchestrator.confirm_purchase(initiation.purchase_id, signature)

        self.assertIsNotNone(await self.pending.get(initiation.purchase_id))
        self.assertNotIn("bg_transcend", await self.inventory.get_inventory(self.wallet))
        self.assertEqual(self._audit_events()[-2:], ["purchase.failed", "purchase.failed"])

    async def test_concurrent_confirmations_with_different_signatures_credit_once(self) -> None:
        initiation = await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self._chain_shows_burn()

        outcomes = await asyncio.gather(
            self.orchestrator.confirm_purchase(initiation.purchase_id, new_signature()),
            self.orchestrator.confirm_purchase(initiation.purchase_id, new_signature()),
            return_exceptions=True,
        )

        successes = [outcome for outcome in outcomes if not isinstance(outcome, BaseException)]
        failures = [outcome for outcome in outcomes if isinstance(outcome, NotFoundError)]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(failures), 1)
        self.assertEqual(await self.inventory.get_xp(self.wallet), 32)

    async def test_record_swept_during_confirmation_wait_is_still_credited(self) -> None:
        initiation = await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self._chain_shows_burn()
        self.clock.advance(299)

        async def slow_poll(_seconds: float) -> None:
            self.clock.advance(2)
            await self.pending.sweep()

        self.rpc.fetch_signature_status = AsyncMock(
            side_effect=[None, {"slot": 43, "confirmationStatus": "confirmed", "err": None}]
        )
        orchestrator = self._orchestrator_with_verifier(max_checks=3, sleep=slow_poll)

        receipt = await orchestrator.confirm_purchase(initiation.purchase_id, new_signature())

        self.assertTrue(receipt.success)
        self.assertIn("bg_transcend", await self.inventory.get_inventory(self.wallet))
        self.assertEqual(len(self.pending), 0)

    async def test_transient_failure_returns_record_for_retry(self) -> None:
        initiation = await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self.rpc.fetch_parsed_transaction = AsyncMock(side_effect=RpcTransientError("All RPC endpoints failed"))

        with self.assertRaises(RpcTransientError):
            await self.orchestrator.confirm_purchase(initiation.purchase_id, new_signature())

        self.assertIsNotNone(await self.pending.get(initiation.purchase_id))

    async def test_rejected_burn_marks_transaction_failed(self) -> None:
        initiation = await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self._chain_shows_burn(wallet=new_address())

        with self.assertRaises(VerificationError):
            await self.orchestrator.confirm_purchase(initiation.purchase_id, new_signature())

        self.assertEqual(self.builder.metrics.failed, 1)
        self.assertEqual(self.builder.pending_count(), 0)

    async def test_expired_purchase_marks_transaction_failed(self) -> None:
        initiation = await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self.clock.advance(301)

        with self.assertRaises(ExpiredError):
            await self.orchestrator.confirm_purchase(initiation.purchase_id, new_signature())

        self.assertEqual(self.builder.metrics.failed, 1)

    async def test_concurrent_initiations_respect_pending_cap(self) -> None:
        release = asyncio.Event()
        original_build = self.builder.build_burn_transaction

        async def slow_build(wallet: str, amount: float):
            await release.wait()
            return await original_build(wallet, amount)

        self.builder.build_burn_transaction = slow_build
        tasks = [
            asyncio.create_task(self.orchestrator.initiate_purchase(self.wallet, item_id, 4))
            for item_id in ("bg_transcend", "head_nimbus", "skin_cosmic", "outfit_eternal")
        ]
        await asyncio.sleep(0)
        release.set()
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        lockouts = [outcome for outcome in outcomes if isinstance(outcome, PurchaseLockoutError)]
        self.assertEqual(len(lockouts), 1)
        self.assertEqual(len(await self.pending.list_for_wallet(self.wallet)), 3)

    async def test_failed_initiation_releases_its_slot(self) -> None:
        self.rpc.fetch_token_account_balance = AsyncMock(
            return_value={"amount": "10000000", "uiAmount": 10.0, "decimals": 6}
        )
        for _ in range(4):
            with self.assertRaises(InsufficientBalanceError):
                await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)

    async def test_malformed_signature_is_rejected_before_consumption(self) -> None:
        with self.assertRaises(ValidationError):
            await self.orchestrator.confirm_purchase("any", "0OIl-not-base58")
        self.assertEqual(len(self.ledger), 0)

    async def test_initiate_rejections(self) -> None:
        cases = [
            ("no_such_item", 4, "Item not found"),
            ("skin_default", 4, "Cannot purchase default items"),
            ("bg_transcend", 3, "Requires higher engage tier to access Transcendence"),
        ]
        for item_id, engage_tier, message in cases:
            with self.assertRaises(ValidationError) as ctx:
                await self.orchestrator.initiate_purchase(self.wallet, item_id, engage_tier)
            self.assertEqual(str(ctx.exception), message)

        with self.assertRaises(ValidationError) as ctx:
            await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4, ["bg_transcend"])
        self.assertEqual(str(ctx.exception), "Item already owned")

    async def test_gate_only_items_cannot_be_bought(self) -> None:
        with self.assertRaises(PriceCalculationError):
            await self.orchestrator.initiate_purchase(self.wallet, "bg_flames", 0)

    async def test_insufficient_balance(self) -> None:
        self.rpc.fetch_token_account_balance = AsyncMock(
            return_value={"amount": "10000000", "uiAmount": 10.0, "decimals": 6}
        )
        with self.assertRaises(InsufficientBalanceError) as ctx:
            await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self.assertIn("Need 32, have 10.0", str(ctx.exception))

    async def test_missing_token_account_counts_as_zero_balance(self) -> None:
        self.rpc.fetch_token_account_balance = AsyncMock(return_value=None)
        with self.assertRaises(InsufficientBalanceError):
            await self.orchestrator.initiate_purchase(self.wallet, "aura_spark", 0)

    async def test_pending_purchase_cap_locks_out_wallet(self) -> None:
        for item_id in ("bg_transcend", "head_nimbus", "skin_cosmic"):
            await self.orchestrator.initiate_purchase(self.wallet, item_id, 4)
            self.clock.advance(10)

        with self.assertRaises(PurchaseLockoutError) as ctx:
            await self.orchestrator.initiate_purchase(self.wallet, "outfit_eternal", 4)
        self.assertEqual(ctx.exception.retry_after, 270)
        self.assertEqual(ctx.exception.to_dict()["retryAfter"], 270)

        self.clock.advance(271)
        initiation = await self.orchestrator.initiate_purchase(self.wallet, "outfit_eternal", 4)
        self.assertEqual(initiation.price, 32)

    async def test_catalog_with_prices(self) -> None:
        catalog = {item["id"]: item for item in await self.orchestrator.get_catalog_with_prices(4)}

        self.assertEqual(catalog["bg_transcend"]["basePrice"], 34)
        self.assertEqual(catalog["bg_transcend"]["price"], 32)
        self.assertEqual(catalog["bg_transcend"]["discount"], 2)
        self.assertTrue(catalog["bg_transcend"]["accessible"])
        self.assertEqual(catalog["bg_flames"]["price"], 0)

        locked = {item["id"]: item for item in await self.orchestrator.get_catalog_with_prices(0)}
        self.assertFalse(locked["bg_cosmos"]["accessible"])

    async def test_sweep_expired(self) -> None:
        await self.orchestrator.initiate_purchase(self.wallet, "bg_transcend", 4)
        self.clock.advance(301)
        self.assertEqual(await self.orchestrator.sweep_expired(), 1)


if __name__ == "__main__":
    unittest.main()
