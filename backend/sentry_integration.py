"""
FieldOps Core - Sentry Integration

Error tracking, plus operator alerts for failures that leave data behind
(e.g. an auth identity that could not be rolled back).
"""

import os
import logging
from typing import Optional, Dict, Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

# Substrings of keys whose values never leave the process
SENSITIVE_KEYS = (
    "password", "token", "secret", "api_key", "apikey", "authorization",
    "jwt", "cookie", "service_role", "personnummer", "bank_account",
)

REDACTED = "[REDACTED]"


def init_sentry(
    dsn: Optional[str] = None,
    environment: str = "development",
    release: Optional[str] = None,
    traces_sample_rate: float = 0.1,
) -> bool:
    """
    Initialize Sentry. Returns False when no DSN is configured or init fails;
    the API runs without error tracking in that case.
    """
    dsn = dsn or os.environ.get("SENTRY_DSN", "")
    if not dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=release or os.environ.get("GIT_SHA", "unknown"),
            traces_sample_rate=traces_sample_rate,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            send_default_pii=False,
            before_send=filter_sensitive_data,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False

    logger.info(f"Sentry initialized for environment: {environment}")
    return True


def _is_sensitive(key: Any) -> bool:
    key_lower = str(key).lower()
    return any(s in key_lower for s in SENSITIVE_KEYS)


def redact(value: Any) -> Any:
    """Recursively replace values stored under sensitive keys."""
    if isinstance(value, dict):
        return {k: REDACTED if _is_sensitive(k) else redact(v) for k, v in value.items()}
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """before_send hook: scrub request headers/body, extras and breadcrumb data."""
    request = event.get("request")
    if request:
        for part in ("headers", "data", "cookies"):
            if part in request:
                request[part] = redact(request[part])

    if "extra" in event:
        event["extra"] = redact(event["extra"])

    breadcrumbs = event.get("breadcrumbs", {}).get("values", [])
    for crumb in breadcrumbs:
        if "data" in crumb:
            crumb["data"] = redact(crumb["data"])

    return event


def _capture(send, payload, extras: Dict[str, Any], **options) -> Optional[str]:
    try:
        with sentry_sdk.new_scope() as scope:
            for key, value in extras.items():
                scope.set_extra(key, value)
            return send(payload, **options)
    except Exception as e:
        logger.error(f"Failed to send event to Sentry: {e}")
        return None


def capture_exception(exception: Exception, **extras) -> Optional[str]:
    """Report an exception. Returns the event id, or None when nothing was sent."""
    return _capture(sentry_sdk.capture_exception, exception, extras)


def capture_message(message: str, level: str = "info", **extras) -> Optional[str]:
    """Report an operator alert that is not tied to a raised exception."""
    return _capture(sentry_sdk.capture_message, message, extras, level=level)


def set_user(user_id: str, organisation_id: Optional[str] = None, role: Optional[str] = None):
    """Attach the acting user to subsequent events (ids only, no email)."""
    sentry_sdk.set_user({
        "id": user_id,
        "organisation_id": organisation_id,
        "role": role,
    })
