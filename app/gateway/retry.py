"""Rate-limit-aware retry around a single provider call.

  - rate-limit failures: wait the provider-advertised delay, retry exactly once
  - any other failure: error result immediately, no retry
  - success: normalized result

The wait is the largest of the ``retry-after`` header, a "retry after N"
hint in the error message and the Anthropic token-bucket reset headers.
Without any hint the default delay applies.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from app.gateway.normalizer import error_result, normalize_response
from app.gateway.types import NormalizedResult, ProviderDescriptor, RunContext
from app.gateway.vendor_adapters import ProviderInvoker

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60.0

_RETRY_AFTER_MESSAGE = re.compile(r"retry[- ]after[:\s]+(\d+)", re.IGNORECASE)

# Token-bucket reset timestamps (ISO-8601) sent by Anthropic
RESET_HEADERS = (
    "anthropic-ratelimit-input-tokens-reset",
    "anthropic-ratelimit-requests-reset",
    "anthropic-ratelimit-tokens-reset",
)


def _status_code(exc: BaseException) -> int | None:
    return getattr(exc, "status_code", None)


def _headers(exc: BaseException) -> dict[str, str]:
    headers = getattr(exc, "response_headers", None) or {}
    return {str(k).lower(): str(v) for k, v in headers.items()}


def is_rate_limit_error(exc: BaseException) -> bool:
    """429 on the error or its cause, or a rate-limit message."""
    if _status_code(exc) == 429:
        return True
    cause = exc.__cause__
    if cause is not None and _status_code(cause) == 429:
        return True
    message = str(exc).lower()
    return "rate limit" in message or "429" in message


def _parse_retry_after_header(value: str, now: datetime) -> float | None:
    value = value.strip()
    if not value:
        return None
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - now).total_seconds(), 0.0)


def _parse_reset(value: str, now: datetime) -> float | None:
    try:
        when = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    seconds = (when - now).total_seconds()
    return seconds if seconds > 0 else None


def compute_retry_after(
    exc: BaseException,
    now: datetime | None = None,
    default: float = DEFAULT_RETRY_AFTER_SECONDS,
) -> float:
    """Seconds to wait before retrying a rate-limited call."""
    now = now or datetime.now(timezone.utc)
    headers = _headers(exc)
    candidates: list[float] = []

    header_value = headers.get("retry-after")
    if header_value:
        parsed = _parse_retry_after_header(header_value, now)
        if parsed is not None:
            candidates.append(parsed)

    match = _RETRY_AFTER_MESSAGE.search(str(exc))
    if match:
        candidates.append(float(match.group(1)))

    for name in RESET_HEADERS:
        if name in headers:
            parsed = _parse_reset(headers[name], now)
            if parsed is not None:
                candidates.append(parsed)

    return max(candidates) if candidates else default


def _failure_message(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


class RateLimitRetry:
    """Calls a provider once, retrying a single time after a rate-limit wait.

    Never raises for provider failures: they come back as error results.
    """

    def __init__(
        self,
        invoker: ProviderInvoker,
        default_retry_after: float = DEFAULT_RETRY_AFTER_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
    ):
        self.invoker = invoker
        self.default_retry_after = default_retry_after
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _invoke(self, provider: ProviderDescriptor, prompt_text: str, context: RunContext) -> NormalizedResult:
        raw = await self.invoker.invoke(
            prompt_text,
            provider.id,
            context.company_name,
            list(context.competitors),
            context.use_web_search,
        )
        return normalize_response(raw, provider.name)

    async def call(self, provider: ProviderDescriptor, prompt_text: str, context: RunContext) -> NormalizedResult:
        try:
            return await self._invoke(provider, prompt_text, context)
        except Exception as e:
            if not is_rate_limit_error(e):
                logger.warning("%s failed: %s", provider.name, _failure_message(e), extra={"provider": provider.id})
                return error_result(provider.name, _failure_message(e))
            wait = compute_retry_after(e, self._clock(), self.default_retry_after)

        logger.info(
            "%s rate limited, retrying once in %.1fs",
            provider.name,
            wait,
            extra={"provider": provider.id},
        )
        await self._sleep(wait)

        try:
            return await self._invoke(provider, prompt_text, context)
        except Exception as e:
            logger.warning(
                "%s failed after rate-limit retry: %s",
                provider.name,
                _failure_message(e),
                extra={"provider": provider.id},
            )
            return error_result(provider.name, _failure_message(e))
