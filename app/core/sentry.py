"""Sentry error tracking integration.

Initializes Sentry SDK if SENTRY_DSN env variable is set.
Does nothing otherwise.

Client errors (4xx AppError) are not reported; provider API keys are
masked in exception values and request headers before sending.
"""

import logging

from app.core.config import settings
from app.core.exceptions import AppError
from app.core.logging import REDACTED, redact_secrets

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key", "x-goog-api-key")

# Transactions not worth tracing
IGNORED_TRANSACTIONS = ("/api/v1/health",)


def before_send(event: dict, hint: dict) -> dict | None:
    """Drop client errors and scrub secrets from an event."""
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        if isinstance(exc_value, AppError) and exc_value.status_code < 500:
            return None

    for exception in (event.get("exception") or {}).get("values") or []:
        if isinstance(exception.get("value"), str):
            exception["value"] = redact_secrets(exception["value"])

    if isinstance(event.get("message"), str):
        event["message"] = redact_secrets(event["message"])

    headers = (event.get("request") or {}).get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in SENSITIVE_HEADERS:
                headers[name] = REDACTED

    return event


def before_send_transaction(event: dict, hint: dict) -> dict | None:
    if event.get("transaction") in IGNORED_TRANSACTIONS:
        return None
    return event


def init_sentry() -> None:
    """Initialize Sentry if SENTRY_DSN is configured."""
    if not settings.sentry_dsn:
        logger.debug("Sentry DSN not configured — skipping")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.httpx import HttpxIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        release="brand-monitor@1.0.0",
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            HttpxIntegration(),
        ],
        before_send=before_send,
        before_send_transaction=before_send_transaction,
    )
    logger.info("Sentry initialized (env=%s)", settings.app_env)
