"""
FieldOps Core - Structured Logging

JSON log lines for the aggregator in staging/production, plain text locally.
Every line carries the request id and, once the session is resolved, the
acting user and organisation.
"""

import json
import logging
import os
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_user_id: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
_organisation_id: ContextVar[Optional[str]] = ContextVar("organisation_id", default=None)

_CONTEXT_FIELDS = ("request_id", "user_id", "organisation_id")

# LogRecord attributes that are not caller-supplied extras
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# Never written to a log line even if passed via extra=
REDACTED_KEYS = frozenset([
    "password", "access_token", "refresh_token", "service_role_key",
    "authorization", "phone", "personal_number",
])


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: "[redacted]" if str(k).lower() in REDACTED_KEYS else _redact(v)
            for k, v in value.items()
        }
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per line for the log aggregator."""

    def __init__(self, service_name: str = "fieldops-core"):
        super().__init__()
        self.base = {
            "service": service_name,
            "environment": os.environ.get("ENVIRONMENT", "development"),
            "hostname": os.environ.get("HOSTNAME", "unknown"),
        }

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self.base,
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value:
                entry[field] = value

        if record.exc_info and record.exc_info[0]:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": traceback.format_exception(exc_type, exc, tb),
            }

        extra = {
            key: value for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in _CONTEXT_FIELDS
        }
        if extra:
            entry["extra"] = _redact(extra)

        return json.dumps(entry, default=str, ensure_ascii=False)


class RequestContextFilter(logging.Filter):
    """Copies the current request context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        record.user_id = _user_id.get()
        record.organisation_id = _organisation_id.get()
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "fieldops-core"
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines when True, readable text otherwise
        service_name: Service name stamped on every JSON line
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(RequestContextFilter())
    if json_format:
        handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"
        ))
    root_logger.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_request_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    organisation_id: Optional[str] = None
):
    """Update the logging context of the current request. None leaves a field as is."""
    if request_id is not None:
        _request_id.set(request_id)
    if user_id is not None:
        _user_id.set(user_id)
    if organisation_id is not None:
        _organisation_id.set(organisation_id)


def clear_request_context():
    for var in (_request_id, _user_id, _organisation_id):
        var.set(None)
