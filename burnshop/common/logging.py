from __future__ import annotations

import logging
import re
from typing import Any

# Query strings on RPC URLs carry the Helius key.
URL_QUERY_RE = re.compile(r"(?i)(https?://[^\s\"'<>?#,]+)[?#][^\s\"'<>,]*")
API_KEY_ASSIGNMENT_RE = re.compile(r"(?i)(api[-_]?key\s*[:=]\s*)([^\s,;\"'&]+)")
API_KEY_QUERY_RE = re.compile(r"(?i)([?&]api[-_]?key=)([^&#\s]+)")
SECRET_FIELD_NAMES = {"api_key", "helius_api_key", "private_key", "secret", "password"}

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def redact_api_key(url: str) -> str:
    return API_KEY_QUERY_RE.sub(r"\1REDACTED", url or "")


def short_wallet(wallet: str) -> str:
    value = str(wallet or "")
    if len(value) <= 8:
        return value
    return f"{value[:4]}...{value[-4:]}"


def short_signature(signature: str) -> str:
    value = str(signature or "")
    if len(value) <= 16:
        return value
    return f"{value[:16]}..."


def sanitize_text(value: str) -> str:
    return API_KEY_ASSIGNMENT_RE.sub(r"\1***", URL_QUERY_RE.sub(r"\1", value))


def sanitize_value(value: Any, *, field: str | None = None) -> Any:
    if field is not None and field.lower() in SECRET_FIELD_NAMES and value:
        return "***"
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, dict):
        return {key: sanitize_value(child, field=str(key)) for key, child in value.items()}
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    return value


def log_event(
    logger: logging.Logger,
    *,
    level: str,
    event: str,
    message: str,
    **fields: Any,
) -> None:
    extra = {"event": event}
    extra.update({key: sanitize_value(value, field=key) for key, value in fields.items()})

    if level == "exception":
        logger.exception(sanitize_text(message), extra=extra)
    else:
        logger.log(_LEVELS.get(level, logging.INFO), sanitize_text(message), extra=extra)
