"""JSON logging for the service.

Every record is one JSON line on stdout. Request handlers attach a request id
and the caller so log lines of one request can be correlated.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

_request_context_ctx: contextvars.ContextVar[Optional[Dict[str, Any]]] = contextvars.ContextVar(
    "request_context", default=None
)

_REDACTED = "[REDACTED]"
_SENSITIVE_FIELDS = frozenset({"password", "token", "email", "secret_key"})


def get_request_context() -> Dict[str, Any]:
    return dict(_request_context_ctx.get() or {})


def merge_request_context(**kwargs: Any) -> None:
    ctx = get_request_context()
    for key, value in kwargs.items():
        if value is not None:
            ctx[key] = value
    _request_context_ctx.set(ctx)


def clear_request_context() -> None:
    _request_context_ctx.set({})


def redact_sensitive_data(data: Any, fields: Optional[Iterable[str]] = None) -> Any:
    """Replace values of sensitive keys, recursively through dicts and lists."""

    fields_set = {f.lower() for f in (fields or _SENSITIVE_FIELDS)}

    if isinstance(data, Mapping):
        return {
            key: _REDACTED if str(key).lower() in fields_set else redact_sensitive_data(value, fields_set)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple, set)):
        return [redact_sensitive_data(item, fields_set) for item in data]
    return data


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    # LogRecord attributes that are not surfaced as extra context.
    _RESERVED = {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "ts": timestamp.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        for key, value in get_request_context().items():
            payload.setdefault(key, value)

        if record.exc_info:
            payload["error_type"] = record.exc_info[0].__name__
            payload["error"] = str(record.exc_info[1])
            payload["stack"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RESERVED and key not in payload and not key.startswith("_")
        }
        if extra:
            payload["extra_context"] = redact_sensitive_data(extra)

        return json.dumps(payload, default=_json_default, separators=(",", ":"))


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install the JSON handler on the root logger (once per process)."""

    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root.handlers = [handler]
    logging.captureWarnings(True)

    # Request lines are logged by the app itself.
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    _configured = True
