# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Logging for TLS-DID runs.

Every lifecycle step runs inside :func:`identity_context`, which binds the
record id and DID of the identity being worked on. Both formatters stamp
that identity onto each line, so the interleaved output of a benchmark run
can be split per claim afterwards.

Key material must never reach a log sink in full. Call sites shorten it
with :func:`truncate_secret`; the formatters additionally redact any PEM
private key block that slips into a message.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import TLSDIDSettings

SECRET_PREFIX_LENGTH = 64

# Attributes passed through ``extra=`` that the JSON formatter keeps.
STRUCTURED_FIELDS = ("operation", "domain", "tx_hash", "block_number", "duration_ms", "succeeded")

_PRIVATE_KEY_BLOCK = re.compile(
    r"-----BEGIN ((?:[A-Z]+ )?PRIVATE KEY)-----.*?(?:-----END \1-----|$)",
    re.DOTALL,
)

_NOISY_LOGGERS = ("httpx", "httpcore", "web3", "aiohttp", "urllib3", "asyncio")


@dataclass(frozen=True)
class LogIdentity:
    """The identity a block of log lines belongs to."""

    record_id: str
    did: str | None = None

    @property
    def short_id(self) -> str:
        return self.record_id[:8]


_identity: ContextVar[LogIdentity | None] = ContextVar("tlsdid_log_identity", default=None)


def current_identity() -> LogIdentity | None:
    return _identity.get()


@contextmanager
def identity_context(record_id: str, did: str | None = None) -> Iterator[LogIdentity]:
    """Tag log lines emitted inside the block with ``record_id`` and ``did``."""
    identity = LogIdentity(record_id=record_id, did=did)
    token = _identity.set(identity)
    try:
        yield identity
    finally:
        _identity.reset(token)


def truncate_secret(value: str | None, length: int = SECRET_PREFIX_LENGTH) -> str:
    """Shorten PEM blocks and keys for logging: ``<first 64 chars>...``."""
    if not value:
        return ""
    if len(value) <= length:
        return value
    return f"{value[:length]}..."


def redact_private_keys(text: str) -> str:
    """Replace the body of every PEM private key block in ``text``."""
    return _PRIVATE_KEY_BLOCK.sub(lambda m: f"-----BEGIN {m.group(1)}----- [redacted]", text)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, carrying the bound identity and ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_private_keys(record.getMessage()),
        }

        identity = current_identity()
        if identity is not None:
            entry["record_id"] = identity.record_id
            if identity.did:
                entry["did"] = identity.did

        for name in STRUCTURED_FIELDS:
            if name in record.__dict__:
                entry[name] = record.__dict__[name]

        if record.levelno >= logging.WARNING:
            entry["at"] = f"{record.module}.{record.funcName}:{record.lineno}"
        if record.exc_info:
            entry["error"] = redact_private_keys(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)


class StandardFormatter(logging.Formatter):
    """``time LEVEL logger [did #id] message`` with the level coloured on a TTY."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors and sys.stderr.isatty()

    def _level(self, record: logging.LogRecord) -> str:
        name = f"{record.levelname:<7}"
        if not self.use_colors:
            return name
        return f"{self.LEVEL_COLORS.get(record.levelno, '')}{name}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        parts = [self.formatTime(record, self.datefmt), self._level(record), record.name]
        identity = current_identity()
        if identity is not None:
            parts.append(f"[{identity.did or '-'} #{identity.short_id}]")
        parts.append(redact_private_keys(record.getMessage()))
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{redact_private_keys(self.formatException(record.exc_info))}"
        return line


def _level_number(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)


def _wants_json(settings: TLSDIDSettings | None) -> bool:
    log_format = (settings.log_format if settings is not None else "").lower()
    if log_format in ("json", "text"):
        return log_format == "json"
    return not sys.stderr.isatty()


def configure_logging(
    settings: TLSDIDSettings | None = None,
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install TLS-DID handlers on the root logger.

    Explicit arguments win over ``settings``. Without either, the level is
    INFO and JSON is used whenever stderr is not a terminal. A log file
    always receives JSON.
    """
    if level is None:
        level = settings.log_level if settings is not None else "INFO"
    if json_format is None:
        json_format = _wants_json(settings)
    if log_file is None and settings is not None:
        log_file = settings.log_file

    root = logging.getLogger()
    root.setLevel(_level_number(level))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if json_format else StandardFormatter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
