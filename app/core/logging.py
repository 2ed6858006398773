"""JSON logging for the report API.

Every line carries the active request id and has platform credentials
(Shopify, Meta and Google Ads tokens) scrubbed before it is written.
"""

from __future__ import annotations

import json
import logging
import re
import sys
import uuid
from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

_request_id: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(value: str | None = None) -> str:
    """Bind value (or a fresh uuid4) as the current request id and return it."""
    rid = value or str(uuid.uuid4())
    _request_id.set(rid)
    return rid


def get_request_id() -> str:
    return _request_id.get()


# Credentials synced stores and ad accounts may leak into messages
_TOKEN_PATTERNS = (
    (re.compile(r"\bshp(?:at|ca|pa|ss)_[A-Fa-f0-9]{16,}\b"), "shp***"),
    (re.compile(r"\bEAA[A-Za-z0-9]{20,}\b"), "EAA***"),
    (re.compile(r"\bya29\.[A-Za-z0-9._-]{20,}\b"), "ya29.***"),
    (re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._-]{10,}\b"), "Bearer ***"),
)

_SECRET_KEYS = frozenset(
    {
        "authorization",
        "token",
        "access_token",
        "refresh_token",
        "shopify_token",
        "developer_token",
        "client_secret",
        "api_key",
        "api-key",
        "apikey",
        "x-api-key",
        "password",
        "secret",
    }
)

# Attributes every LogRecord has; anything else was passed via extra=
_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


def mask_secrets(value: Any) -> Any:
    """Return value with secret-looking keys and token strings replaced.

    Mappings, sequences and dataclasses are walked recursively. Numbers,
    booleans and None pass through untouched.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    if isinstance(value, Mapping):
        return {
            key: "***" if str(key).lower() in _SECRET_KEYS else mask_secrets(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set)):
        return type(value)(mask_secrets(item) for item in value)

    text = str(value)
    for pattern, replacement in _TOKEN_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class JsonFormatter(logging.Formatter):
    """One JSON object per record; extra= fields are nested under "extra"."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": mask_secrets(record.getMessage()),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
            "request_id": get_request_id() or None,
        }

        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extra:
            payload["extra"] = mask_secrets(extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)


_TEXT_FORMAT = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
)


def setup_logging(
    level: str | int = "INFO",
    to_stdout: bool = True,
    json_format: bool = True,
    file_path: str | None = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Replace root handlers with stdout and/or rotating file output.

    Args:
        level: Root log level
        to_stdout: Log to stdout (JSON or plain text, see json_format)
        json_format: JSON lines on stdout instead of plain text
        file_path: Rotating log file, always JSON (None disables it)
        max_bytes: File size that triggers rotation
        backup_count: Rotated files to keep

    """
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if to_stdout:
        stdout = logging.StreamHandler(sys.stdout)
        stdout.setFormatter(JsonFormatter() if json_format else _TEXT_FORMAT)
        root.addHandler(stdout)

    if file_path:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            file_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        rotating.setFormatter(JsonFormatter())
        root.addHandler(rotating)

    # SQL echo and client chatter drown out report events
    for noisy in ("sqlalchemy.engine", "httpx", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = [
    "JsonFormatter",
    "get_logger",
    "get_request_id",
    "mask_secrets",
    "set_request_id",
    "setup_logging",
]
