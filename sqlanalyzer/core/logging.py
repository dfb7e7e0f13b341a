"""Structured logging for worker runs.

- Every generation or evaluation run sets a run id in a context variable;
  worker threads receive a copy of the context so their records carry it.
- Credentials, prompt text and SQL never leave the process: their keys are
  redacted from ``extra`` payloads, nested mappings included.
- Records are rendered as one JSON object per line (or plain text).
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

from sqlanalyzer.core.config import LogSettings, settings

_run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)

REDACTED = "[REDACTED]"

# Keys whose values are secrets or user content
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {"api_key", "credential", "prompt", "answer", "sql"}
)

# Attributes every LogRecord carries; anything else came in through ``extra``
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def set_run_id(run_id: str | None) -> None:
    """Associate subsequent log records of this context with ``run_id``."""
    _run_id_var.set(run_id)


def get_run_id() -> str | None:
    return _run_id_var.get()


def clear_run_id() -> None:
    _run_id_var.set(None)


def _redact(value: Any, sensitive_keys: frozenset[str]) -> Any:
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in sensitive_keys else _redact(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_redact(v, sensitive_keys) for v in value)
    return value


def _extras(record: LogRecord, sensitive_keys: frozenset[str]) -> dict[str, Any]:
    """Return the ``extra`` fields of ``record`` with sensitive values redacted."""
    return {
        key: REDACTED if key.lower() in sensitive_keys else _redact(value, sensitive_keys)
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class RunIdFilter(logging.Filter):
    """Stamp records with the current run id unless they already carry one."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "run_id", None) is None:
            run_id = get_run_id()
            if run_id:
                record.run_id = run_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive extras in place, so every formatter sees clean data."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _extras(record, self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Render a record and its extras as a single JSON line."""

    def __init__(self, *, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        run_id = getattr(record, "run_id", None) or get_run_id()
        if run_id:
            payload["run_id"] = run_id
        payload.update(_extras(record, self.sensitive_keys))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/sqlanalyzer.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install one redacting handler on the root logger.

    Args:
        log_settings: Output settings; the global ``settings.log`` when omitted.
    """
    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RunIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # The SDK's HTTP client logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
