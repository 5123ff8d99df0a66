from __future__ import annotations

import base64
import unittest
from unittest.mock import AsyncMock

from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction
from spl.token.constants import TOKEN_PROGRAM_ID

from burnshop.chain import PriorityFeeEstimator, TransactionBuilder
from burnshop.chain.types import COMPUTE_BUDGET_PROGRAM
from burnshop.errors import ValidationError
from burnshop.rpc import ResponseCache

from tests.fakes import LOGGER, FakeClock, make_retry, make_rpc, new_address


def _make_builder(*, clock: FakeClock, audit=None) -> tuple[TransactionBuilder, str]:
    mint = new_address()
    rpc = make_rpc(token_mint=mint)
    retry = make_retry()
    fees = PriorityFeeEstimator(logger=LOGGER, rpc=rpc, retry=retry, cache=ResponseCache(), token_mint=mint)
    builder = TransactionBuilder(
        logger=LOGGER,
        rpc=rpc,
        retry=retry,
        fees=fees,
        token_mint=mint,
        audit=audit,
        clock=clock,
    )
    return builder, mint


class TransactionBuilderTests(unittest.IsolatedAsyncioTestCase):
    async def test_burn_transaction_orders_budget_before_burn(self) -> None:
        clock = FakeClock()
        audit = AsyncMock()
        builder, _mint = _make_builder(clock=clock, audit=audit)
        wallet = new_address()

        built = await builder.build_burn_transaction(wallet, 32)

        tx = VersionedTransaction.from_bytes(base64.b64decode(built.transaction))
        message = tx.message
        program_ids = [str(message.account_keys[ix.program_id_index]) for ix in message.instructions]
        self.assertEqual(
            program_ids,
            [COMPUTE_BUDGET_PROGRAM, COMPUTE_BUDGET_PROGRAM, str(TOKEN_PROGRAM_ID)],
        )
        self.assertEqual(message.account_keys[0], Pubkey.from_string(wallet))
        self.assertEqual(str(message.recent_blockhash), built.blockhash)

        self.assertEqual([item["type"] for item in built.serialized_instructions], [
            "setComputeUnitLimit",
            "setComputeUnitPrice",
            "burn",
        ])
        self.assertEqual(built.serialized_instructions[2]["data"]["amount"], "32000000")
        self.assertEqual(built.compute_units, 150_000)
        self.assertEqual(built.priority_fee, 30_000)
        self.assertEqual(built.expires_at, clock.now + 300)
        self.assertEqual(built.estimated_fee.total_lamports, 5_000 + 4_500)
        audit.log_audit.assert_awaited_once()
        self.assertEqual(audit.log_audit.await_args.args[0], "transaction.built")

    async def test_transfer_transaction_uses_transfer_checked(self) -> None:
        builder, _mint = _make_builder(clock=FakeClock())

        built = await builder.build_transfer_transaction(new_address(), new_address(), 1.5)

        self.assertEqual(built.serialized_instructions[2]["type"], "transferChecked")
        self.assertEqual(built.serialized_instructions[2]["data"]["amount"], "1500000")
        self.assertEqual(built.compute_units, 200_000)

    async def test_invalid_wallet_is_rejected_before_any_rpc(self) -> None:
        builder, _mint = _make_builder(clock=FakeClock())

        with self.assertRaises(ValidationError):
            await builder.build_burn_transaction("not-a-wallet", 10)
        self.assertEqual(builder.pending_count(), 0)

    async def test_non_positive_amount_is_rejected(self) -> None:
        builder, _mint = _make_builder(clock=FakeClock())
        with self.assertRaises(ValidationError):
            await builder.build_burn_transaction(new_address(), 0)

    async def test_pending_lifecycle_and_sweep(self) -> None:
        clock = FakeClock()
        builder, _mint = _make_builder(clock=clock)
        wallet = new_address()
        first = await builder.build_burn_transaction(wallet, 5)
        second = await builder.build_burn_transaction(wallet, 6)

        view = builder.get_pending_transaction(first.transaction_id)
        self.assertEqual(view["status"], "pending")
        self.assertNotEqual(view["wallet"], wallet)

        self.assertTrue(await builder.mark_verified(first.transaction_id, "sig" * 30))
        self.assertTrue(await builder.mark_completed(first.transaction_id))
        self.assertEqual(builder.get_pending_transaction(first.transaction_id)["status"], "completed")

        clock.advance(61)
        self.assertEqual(builder.sweep(), 1)
        self.assertIsNone(builder.get_pending_transaction(first.transaction_id))
        self.assertIsNotNone(builder.get_pending_transaction(second.transaction_id))

        clock.advance(240)
        self.assertIsNone(builder.get_pending_transaction(second.transaction_id))
        self.assertEqual(builder.metrics.snapshot()["built"], 2)

    async def test_transaction_ids_are_unique(self) -> None:
        builder, _mint = _make_builder(clock=FakeClock())
        wallet = new_address()
        ids = {(await builder.build_burn_transaction(wallet, 1)).transaction_id for _ in range(5)}
        self.assertEqual(len(ids), 5)


if __name__ == "__main__":
    unittest.main()
