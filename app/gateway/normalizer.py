"""Response Normalizer — maps provider output onto the unified NormalizedResult.

Accepts either the canonical ``RawProviderResponse`` produced by a vendor
adapter or an untyped payload mapping (e.g. a stored or third-party JSON
blob) and always returns a well-formed ``NormalizedResult``:

  - sources:     url|uri, title, snippet|text
  - citations:   url, title, source|domain, mentionedCompanies
  - competitors: bare string → {name}; object → name|company, position, sentimentScore|sentiment
  - sentiment:   explicit score wins, otherwise label → score table
  - empty lists are omitted rather than stored as []

Never raises.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from app.gateway.types import (
    DEFAULT_SENTIMENT_SCORE,
    SENTIMENT_SCORES,
    CitationRef,
    CompetitorMention,
    NormalizedResult,
    RankingEntry,
    RawProviderResponse,
    Sentiment,
    SourceRef,
)

logger = logging.getLogger(__name__)


def sentiment_score_for_label(label: Any) -> float:
    """Map a sentiment label to a 0-100 score (case-insensitive, unknown → 50)."""
    if not isinstance(label, str):
        return DEFAULT_SENTIMENT_SCORE
    return SENTIMENT_SCORES.get(label.strip().lower(), DEFAULT_SENTIMENT_SCORE)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    return None


def _as_int(value: Any) -> int | None:
    number = _as_number(value)
    return int(number) if number is not None else None


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _first(item: Mapping[str, Any], *keys: str) -> Any:
    """First truthy value among ``keys``."""
    for key in keys:
        value = item.get(key)
        if value:
            return value
    return None


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


# ---------------------------------------------------------------------------
# Payload mapping → canonical RawProviderResponse
# ---------------------------------------------------------------------------


def _source_from_payload(item: Any) -> SourceRef | None:
    if isinstance(item, SourceRef):
        return item
    if not isinstance(item, Mapping):
        return None
    return SourceRef(
        url=_as_str(_first(item, "url", "uri")),
        title=_as_str(item.get("title")),
        snippet=_as_str(_first(item, "snippet", "text")),
    )


def _citation_from_payload(item: Any) -> CitationRef | None:
    if isinstance(item, CitationRef):
        return item
    if not isinstance(item, Mapping):
        return None
    return CitationRef(
        url=_as_str(item.get("url")),
        title=_as_str(item.get("title")),
        source=_as_str(_first(item, "source", "domain")),
        snippet=_as_str(item.get("snippet")),
        mentioned_companies=[c for c in _as_list(item.get("mentionedCompanies")) if isinstance(c, str)],
    )


def _competitor_from_payload(item: Any) -> CompetitorMention | None:
    if isinstance(item, CompetitorMention):
        return item
    if isinstance(item, str):
        return CompetitorMention(name=item) if item.strip() else None
    if not isinstance(item, Mapping):
        return None
    name = _as_str(_first(item, "name", "company"))
    if not name:
        return None
    score = item.get("sentimentScore")
    if score is None:
        score = item.get("sentiment")
    if isinstance(score, str):
        score = sentiment_score_for_label(score)
    return CompetitorMention(
        name=name,
        position=_as_int(item.get("position")),
        sentiment_score=_as_number(score),
    )


def _ranking_from_payload(item: Any) -> RankingEntry | None:
    if isinstance(item, RankingEntry):
        return item
    if not isinstance(item, Mapping):
        return None
    position = _as_int(item.get("position"))
    company = _as_str(item.get("company"))
    if position is None or not company:
        return None
    return RankingEntry(
        position=position,
        company=company,
        reason=item.get("reason") if isinstance(item.get("reason"), str) else None,
        sentiment=item.get("sentiment") if isinstance(item.get("sentiment"), str) else None,
    )


def _collect(items: Any, parse) -> tuple:
    parsed = []
    for item in _as_list(items):
        value = parse(item)
        if value is not None:
            parsed.append(value)
    return tuple(parsed)


def raw_from_payload(payload: Mapping[str, Any]) -> RawProviderResponse:
    """Build a RawProviderResponse from an untyped payload, resolving key aliases."""
    text = payload.get("response")
    if not isinstance(text, str) or not text:
        text = _as_str(payload.get("text"))
    confidence = _as_number(payload.get("confidence"))
    return RawProviderResponse(
        text=text,
        sources=_collect(payload.get("sources"), _source_from_payload),
        citations=_collect(payload.get("citations"), _citation_from_payload),
        brand_mentioned=payload.get("brandMentioned") is True,
        brand_position=_as_int(payload.get("brandPosition")),
        sentiment=_as_str(payload.get("sentiment")) or None,
        sentiment_score=_as_number(payload.get("sentimentScore")),
        confidence=confidence,
        competitors=_collect(payload.get("competitors"), _competitor_from_payload),
        rankings=_collect(payload.get("rankings"), _ranking_from_payload),
    )


# ---------------------------------------------------------------------------
# RawProviderResponse → NormalizedResult
# ---------------------------------------------------------------------------


def normalize_response(
    raw: RawProviderResponse | Mapping[str, Any] | None,
    provider_name: str,
) -> NormalizedResult:
    """Normalize one provider response. Total: malformed input yields defaults."""
    if raw is None:
        raw = RawProviderResponse()
    elif isinstance(raw, Mapping):
        raw = raw_from_payload(raw)
    elif not isinstance(raw, RawProviderResponse):
        logger.warning("Unexpected %s payload type %s, treating as empty", provider_name, type(raw).__name__)
        raw = RawProviderResponse()

    sentiment_label = raw.sentiment.strip().lower() if raw.sentiment else None
    try:
        sentiment = Sentiment(sentiment_label) if sentiment_label else None
    except ValueError:
        sentiment = None

    sentiment_score = raw.sentiment_score
    if sentiment_score is None and sentiment_label:
        sentiment_score = sentiment_score_for_label(sentiment_label)

    sources = [s for s in raw.sources if s is not None]
    citations = [c for c in raw.citations if c is not None]
    competitors = [c for c in raw.competitors if c is not None]
    rankings = [r for r in raw.rankings if r is not None]

    return NormalizedResult(
        provider=provider_name,
        response=raw.text or "",
        sources=sources or None,
        citations=citations or None,
        brand_mentioned=bool(raw.brand_mentioned),
        brand_position=raw.brand_position,
        sentiment=sentiment,
        sentiment_score=sentiment_score,
        confidence=raw.confidence,
        competitors=competitors or None,
        rankings=rankings or None,
    )


def error_result(provider_name: str, message: str) -> NormalizedResult:
    """Build the error entry recorded when a provider call fails."""
    return NormalizedResult(provider=provider_name, response="", error=message or "Unknown error")
