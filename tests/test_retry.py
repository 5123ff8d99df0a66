from __future__ import annotations

import asyncio
import logging
import unittest
from unittest.mock import AsyncMock, MagicMock

import aiohttp

from burnshop.errors import (
    InsufficientBalanceError,
    RpcFatalError,
    RpcTransientError,
    TransactionNotIndexedError,
    ValidationError,
)
from burnshop.rpc import RetryExecutor, RetryPolicy, classify_error


def _make_executor(*, max_attempts: int = 3) -> tuple[RetryExecutor, MagicMock, AsyncMock]:
    connections = MagicMock()
    sleep = AsyncMock()
    executor = RetryExecutor(
        logger=logging.getLogger("test.retry"),
        connections=connections,
        policy=RetryPolicy(max_attempts=max_attempts, base_delay_seconds=1.0, max_delay_seconds=10.0),
        sleep=sleep,
        jitter=lambda _upper: 0.5,
    )
    return executor, connections, sleep


class RetryExecutorTests(unittest.IsolatedAsyncioTestCase):
    async def test_non_retryable_errors_run_exactly_once(self) -> None:
        for error in (
            InsufficientBalanceError("insufficient funds"),
            ValidationError("Invalid public key"),
            RpcFatalError("HELIUS_API_KEY not configured"),
        ):
            executor, connections, sleep = _make_executor()
            operation = AsyncMock(side_effect=error)

            with self.assertRaises(type(error)):
                await executor.with_retry(operation, "op")

            self.assertEqual(operation.await_count, 1)
            sleep.assert_not_awaited()
            connections.report_failure.assert_not_called()

    async def test_network_errors_are_reported_and_retried(self) -> None:
        executor, connections, sleep = _make_executor()
        operation = AsyncMock(side_effect=[RpcTransientError("503"), aiohttp.ClientError("reset"), "ok"])

        result = await executor.with_retry(operation, "op")

        self.assertEqual(result, "ok")
        self.assertEqual(operation.await_count, 3)
        self.assertEqual(connections.report_failure.call_count, 2)
        self.assertEqual([call.args[0] for call in sleep.await_args_list], [1.5, 2.5])

    async def test_not_indexed_is_retried_without_blaming_endpoint(self) -> None:
        executor, connections, _sleep = _make_executor()
        operation = AsyncMock(side_effect=[TransactionNotIndexedError(), {"slot": 1}])

        self.assertEqual(await executor.with_retry(operation, "op"), {"slot": 1})
        connections.report_failure.assert_not_called()

    async def test_exhausted_attempts_reraise_last_error(self) -> None:
        executor, _connections, sleep = _make_executor(max_attempts=2)
        operation = AsyncMock(side_effect=[RpcTransientError("first"), RpcTransientError("second")])

        with self.assertRaises(RpcTransientError) as ctx:
            await executor.with_retry(operation, "op")

        self.assertEqual(str(ctx.exception), "second")
        self.assertEqual(sleep.await_count, 1)

    async def test_cancellation_is_not_retried(self) -> None:
        executor, _connections, _sleep = _make_executor()
        operation = AsyncMock(side_effect=asyncio.CancelledError())

        with self.assertRaises(asyncio.CancelledError):
            await executor.with_retry(operation, "op")
        self.assertEqual(operation.await_count, 1)

    def test_delay_is_capped(self) -> None:
        policy = RetryPolicy(base_delay_seconds=1.0, max_delay_seconds=10.0)
        self.assertEqual(policy.delay_for(0, 0.0), 1.0)
        self.assertEqual(policy.delay_for(2, 0.5), 4.5)
        self.assertEqual(policy.delay_for(8, 0.0), 10.0)

    def test_classify_error(self) -> None:
        self.assertEqual(classify_error(RpcFatalError("x")), "fatal")
        self.assertEqual(classify_error(RpcTransientError("x")), "network")
        self.assertEqual(classify_error(TransactionNotIndexedError()), "retryable")
        self.assertEqual(classify_error(asyncio.TimeoutError()), "network")
        self.assertEqual(classify_error(KeyError("x")), "retryable")


if __name__ == "__main__":
    unittest.main()
