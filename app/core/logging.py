"""Centralized logging configuration.

Request, run and provider logs carry ``request_id``, ``provider``, ``prompt_id``
and ``analysis_id`` through ``extra=``; both formatters render them. Provider
API keys are masked in every rendered line.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone

from app.core.config import settings

CONTEXT_FIELDS = ("request_id", "provider", "prompt_id", "analysis_id")

# "?key=AIza..." (Google), "Bearer sk-...", "x-api-key: sk-ant-..."
_SECRET_PATTERNS = (
    re.compile(r"([?&]key=)[^&\s'\"]+", re.IGNORECASE),
    re.compile(r"(bearer\s+)[A-Za-z0-9._\-]+", re.IGNORECASE),
    re.compile(r"(x-api-key[\"']?\s*[:=]\s*[\"']?)[A-Za-z0-9._\-]+", re.IGNORECASE),
)

REDACTED = "[redacted]"


def _configured_keys() -> list[str]:
    keys = (
        settings.openai_api_key,
        settings.anthropic_api_key,
        settings.google_api_key,
        settings.perplexity_api_key,
    )
    return [k for k in keys if k and len(k) >= 8]


def redact_secrets(text: str) -> str:
    """Mask provider API keys in a log line or error message."""
    if not text:
        return text
    for key in _configured_keys():
        text = text.replace(key, REDACTED)
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(rf"\g<1>{REDACTED}", text)
    return text


def _context(record: logging.LogRecord) -> dict:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_secrets(record.getMessage()),
        }
        if record.exc_info and record.exc_info[1]:
            log_data["exception"] = redact_secrets(self.formatException(record.exc_info))
        log_data.update(_context(record))
        return json.dumps(log_data, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines with the run context appended, e.g. ``[provider=openai prompt_id=p1]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if context:
            line += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return redact_secrets(line)


def setup_logging() -> None:
    """Configure logging for the entire application."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if settings.log_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            TextFormatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root.addHandler(handler)

    # Provider request URLs carry API keys (Google) at DEBUG level
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING if not settings.app_debug else level)
