"""Logging setup: JSON lines, redaction of credentials, request correlation.

Every record passes through two handler filters before formatting:
- ``RequestIdFilter`` stamps the request id held in a context variable
- ``SensitiveDataFilter`` masks passwords, tokens and secrets in extras,
  including nested mappings such as logged headers
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "authorization",
        "token",
        "access_token",
        "refresh_token",
        "verification_token",
        "email_verification_token",
        "secret",
        "secret_key",
        "password",
        "password_hash",
        "cookie",
        "set-cookie",
    }
)

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("passlib", "redis", "httpx", "asyncio")

# Attributes every LogRecord has; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    """Request id of the request being handled, if any."""
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def redact(value: Any, sensitive_keys: frozenset[str] = SENSITIVE_KEYS_DEFAULT) -> Any:
    """Recursively mask sensitive keys inside mappings and sequences.

    Examples:
        >>> redact({"email": "a@b.c", "password": "hunter2"})
        {'email': 'a@b.c', 'password': '[REDACTED]'}
    """
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in sensitive_keys else redact(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(v, sensitive_keys) for v in value)
    return value


def record_extras(record: LogRecord) -> dict[str, Any]:
    """Fields attached to ``record`` through ``extra=``."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask sensitive extras on the record before any formatter sees them."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in record_extras(record).items():
            if key.lower() in self.sensitive_keys:
                setattr(record, key, REDACTED)
            else:
                setattr(record, key, redact(value, self.sensitive_keys))
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, extras."""

    def __init__(self, *, ensure_ascii: bool = True) -> None:
        super().__init__()
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({k: v for k, v in record_extras(record).items() if v is not None})

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


class PlainFormatter(logging.Formatter):
    """Human-readable lines for local development."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s")

    def format(self, record: LogRecord) -> str:
        if getattr(record, "request_id", None) is None:
            record.request_id = "-"
        return super().format(record)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output == "file":
        file_path = Path(log_settings.file_path or "logs/app.log")
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if log_settings.max_bytes:
            return RotatingFileHandler(
                file_path,
                maxBytes=log_settings.max_bytes,
                backupCount=log_settings.backup_count,
                encoding="utf-8",
            )
        return logging.FileHandler(file_path, encoding="utf-8")

    return logging.StreamHandler(sys.stdout)


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the handler, filters and formatter on the root logger.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """
    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(PlainFormatter() if cfg.format == "plain" else JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
