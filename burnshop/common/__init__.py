from .async_utils import guarded_call, run_periodically
from .logging import log_event, redact_api_key, short_signature, short_wallet

__all__ = [
    "guarded_call",
    "log_event",
    "redact_api_key",
    "run_periodically",
    "short_signature",
    "short_wallet",
]
