from .audit import AuditSink, FirestoreAuditSink, LoggingAuditSink
from .gateway import StorageGateway
from .memory import InMemoryInventory, InMemoryPendingPurchaseStore, InMemorySignatureLedger
from .redis_ops import RedisInventory, RedisPendingPurchaseStore, RedisSignatureLedger
from .settings import StorageSettings

__all__ = [
    "AuditSink",
    "FirestoreAuditSink",
    "InMemoryInventory",
    "InMemoryPendingPurchaseStore",
    "InMemorySignatureLedger",
    "LoggingAuditSink",
    "RedisInventory",
    "RedisPendingPurchaseStore",
    "RedisSignatureLedger",
    "StorageGateway",
    "StorageSettings",
]
