from __future__ import annotations

from typing import Any


class BurnShopError(Exception):
    code = "error"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.retry_after is not None:
            payload["retryAfter"] = int(max(0.0, self.retry_after) + 0.999)
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BurnShopError):
    code = "validation_error"


class PriceCalculationError(ValidationError):
    code = "price_calculation_error"


class PurchaseLockoutError(ValidationError):
    code = "purchase_lockout"


class InsufficientBalanceError(BurnShopError):
    code = "insufficient_balance"


class RpcTransientError(BurnShopError):
    code = "rpc_unavailable"
    retryable = True

    def __init__(self, message: str, *, network: bool = True, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.network = network


class TransactionNotIndexedError(RpcTransientError):
    code = "transaction_not_indexed"

    def __init__(self, message: str = "Transaction not found - may still be processing") -> None:
        super().__init__(message, network=False)


class RpcFatalError(BurnShopError):
    code = "rpc_fatal"


class NotFoundError(BurnShopError):
    code = "not_found"


class ExpiredError(BurnShopError):
    code = "expired"


class DoubleSpendError(BurnShopError):
    code = "double_spend"


class VerificationError(BurnShopError):
    code = "verification_failed"
