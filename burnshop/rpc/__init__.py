from .cache import CACHE_SWEEP_INTERVAL_SECONDS, CACHE_TTL, CacheEntry, ResponseCache
from .client import LatestBlockhash, SolanaRpcClient
from .connection import BACKUP_ACTIVE, PRIMARY_ACTIVE, ConnectionManager, Endpoint
from .enhanced import EnhancedTransactionsClient
from .retry import RetryExecutor, RetryPolicy, classify_error

__all__ = [
    "BACKUP_ACTIVE",
    "CACHE_SWEEP_INTERVAL_SECONDS",
    "CACHE_TTL",
    "CacheEntry",
    "ConnectionManager",
    "Endpoint",
    "EnhancedTransactionsClient",
    "LatestBlockhash",
    "PRIMARY_ACTIVE",
    "ResponseCache",
    "RetryExecutor",
    "RetryPolicy",
    "SolanaRpcClient",
    "classify_error",
]
