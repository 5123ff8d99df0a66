from .accounts import associated_token_account, parse_pubkey
from .builder import (
    COMPLETED_RETENTION_SECONDS,
    PENDING_SWEEP_INTERVAL_SECONDS,
    PENDING_TRANSACTION_MAX_AGE_SECONDS,
    BuilderMetrics,
    BuildOptions,
    TransactionBuilder,
)
from .fees import (
    COMPUTE_UNITS,
    MAX_COMPUTE_UNITS,
    PriorityFeeEstimator,
    calculate_estimated_fee,
    compute_units_for,
)
from .token_data import TokenDataService, balance_cache_key
from .types import (
    BuiltTransaction,
    BurnHistory,
    BurnRecord,
    BurnVerificationResult,
    ConfirmationStatus,
    FeeBreakdown,
    PendingTransaction,
    TokenBalance,
    TokenSupply,
)
from .verifier import TransactionVerifier, find_burn_instruction

__all__ = [
    "BuildOptions",
    "BuilderMetrics",
    "BuiltTransaction",
    "BurnHistory",
    "BurnRecord",
    "BurnVerificationResult",
    "COMPLETED_RETENTION_SECONDS",
    "COMPUTE_UNITS",
    "ConfirmationStatus",
    "FeeBreakdown",
    "MAX_COMPUTE_UNITS",
    "PENDING_SWEEP_INTERVAL_SECONDS",
    "PENDING_TRANSACTION_MAX_AGE_SECONDS",
    "PendingTransaction",
    "PriorityFeeEstimator",
    "TokenBalance",
    "TokenDataService",
    "TokenSupply",
    "TransactionBuilder",
    "TransactionVerifier",
    "associated_token_account",
    "balance_cache_key",
    "calculate_estimated_fee",
    "compute_units_for",
    "find_burn_instruction",
    "parse_pubkey",
]
