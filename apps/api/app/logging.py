from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from app.context import get_log_context


MAX_ERROR_LENGTH = 500

_BASE_RECORD_KEYS = frozenset(logging.makeLogRecord({}).__dict__)
_CONTEXT_FIELDS = ("correlation_id", "user_id", "role")
_EXTRA_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "account_id",
        "reads",
        "orphaned_count",
        "error",
    }
)


def _stamp_context(record: logging.LogRecord, names: tuple[str, ...] = _CONTEXT_FIELDS) -> None:
    context = get_log_context()
    for name in names:
        if getattr(record, name, None) is None:
            setattr(record, name, context[name])


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        _stamp_context(record)
        return True


_DEFAULT_RECORD_FACTORY = logging.getLogRecordFactory()


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _DEFAULT_RECORD_FACTORY(*args, **kwargs)
    # Only the correlation id here: user_id and role may still arrive via extra=.
    _stamp_context(record, ("correlation_id",))
    return record


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line.

    Request context (correlation id, caller id and role) is promoted to the
    top level; whitelisted ``extra=`` values go under ``fields``. Anything else
    attached to the record is dropped so payloads never leak into logs.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for name in _CONTEXT_FIELDS:
            payload[name] = getattr(record, name, None)

        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key in _EXTRA_FIELDS and key not in _BASE_RECORD_KEYS
        }
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        payload["fields"] = fields
        return json.dumps(payload, default=str)


def configure_logging(level_name: str = "INFO") -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_se_dashboard_configured", False):
        return

    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(RequestContextFilter())

    root_logger.handlers.clear()
    root_logger.filters.clear()
    root_logger.setLevel(level)
    logging.setLogRecordFactory(_record_factory)
    root_logger.addHandler(handler)
    root_logger._se_dashboard_configured = True  # type: ignore[attr-defined]
