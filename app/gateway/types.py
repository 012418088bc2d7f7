"""Core types and DTOs for the provider gateway layer.

Everything that crosses the gateway boundary is a dataclass with a
``to_dict()`` producing the camelCase JSON shape stored on the analysis
record. Optional fields are omitted from that JSON, never emitted as null.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in data.items() if v is not None}


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class PromptCategory(str, Enum):
    """Kind of industry question a prompt asks."""

    RANKING = "ranking"
    COMPARISON = "comparison"
    ALTERNATIVES = "alternatives"
    RECOMMENDATIONS = "recommendations"


class Sentiment(str, Enum):
    """Coarse sentiment bucket reported for a response."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    MIXED = "mixed"


# Label → 0-100 score used when a provider reports a label but no score
SENTIMENT_SCORES: dict[str, int] = {
    Sentiment.POSITIVE.value: 80,
    Sentiment.NEUTRAL.value: 50,
    Sentiment.NEGATIVE.value: 20,
    Sentiment.MIXED.value: 50,
}
DEFAULT_SENTIMENT_SCORE = 50


# ---------------------------------------------------------------------------
# Prompts & providers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Prompt:
    """A question sent to every configured provider."""

    id: str
    text: str
    topic_id: str | None = None
    category: PromptCategory | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Prompt:
        category = data.get("category")
        try:
            category = PromptCategory(category) if category else None
        except ValueError:
            category = None
        return cls(
            id=str(data.get("id", "")),
            text=str(data.get("prompt") or data.get("text") or ""),
            topic_id=data.get("topicId"),
            category=category,
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "prompt": self.text,
                "topicId": self.topic_id,
                "category": self.category.value if self.category else None,
            }
        )


@dataclass(frozen=True)
class ProviderCapabilities:
    web_search: bool = False


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of an AI provider."""

    id: str  # e.g. "openai"
    name: str  # display name stored on results, e.g. "OpenAI"
    model: str = ""
    capabilities: ProviderCapabilities = field(default_factory=ProviderCapabilities)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "model": self.model,
            "capabilities": {"webSearch": self.capabilities.web_search},
        }


@dataclass(frozen=True)
class RunContext:
    """Read-only context shared by every provider call of a run."""

    company_name: str
    competitors: tuple[str, ...] = ()
    use_web_search: bool = True


# ---------------------------------------------------------------------------
# Response parts
# ---------------------------------------------------------------------------


@dataclass
class SourceRef:
    url: str = ""
    title: str = ""
    snippet: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "title": self.title, "snippet": self.snippet}


@dataclass
class CitationRef:
    url: str = ""
    title: str = ""
    source: str = ""
    snippet: str = ""
    mentioned_companies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "source": self.source,
            "mentionedCompanies": list(self.mentioned_companies),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CitationRef:
        return cls(
            url=str(data.get("url") or ""),
            title=str(data.get("title") or ""),
            source=str(data.get("source") or ""),
            mentioned_companies=[str(c) for c in data.get("mentionedCompanies") or []],
        )


@dataclass
class CompetitorMention:
    name: str
    position: int | None = None
    sentiment_score: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({"name": self.name, "position": self.position, "sentimentScore": self.sentiment_score})


@dataclass
class RankingEntry:
    position: int
    company: str
    reason: str | None = None
    sentiment: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {"position": self.position, "company": self.company, "reason": self.reason, "sentiment": self.sentiment}
        )


# ---------------------------------------------------------------------------
# Raw provider response — canonical output of every vendor adapter
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawProviderResponse:
    """What a vendor adapter hands to the normalizer.

    Produced once per (prompt, provider) call and never mutated.
    """

    text: str = ""
    sources: tuple[SourceRef, ...] = ()
    citations: tuple[CitationRef, ...] = ()
    brand_mentioned: bool = False
    brand_position: int | None = None
    sentiment: str | None = None
    sentiment_score: float | None = None
    confidence: float | None = None
    competitors: tuple[CompetitorMention, ...] = ()
    rankings: tuple[RankingEntry, ...] = ()
    model_version: str = ""


# ---------------------------------------------------------------------------
# Normalized result — one per (prompt, provider)
# ---------------------------------------------------------------------------


@dataclass
class NormalizedResult:
    """Unified per-(prompt, provider) record.

    Either ``response`` carries the answer, or ``error`` is set and
    ``response`` is empty.
    """

    provider: str
    response: str = ""
    sources: list[SourceRef] | None = None
    citations: list[CitationRef] | None = None
    brand_mentioned: bool = False
    brand_position: int | None = None
    sentiment: Sentiment | None = None
    sentiment_score: float | None = None
    confidence: float | None = None
    competitors: list[CompetitorMention] | None = None
    rankings: list[RankingEntry] | None = None
    timestamp: str = field(default_factory=_utc_now_iso)
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "provider": self.provider,
                "response": self.response,
                "sources": [s.to_dict() for s in self.sources] if self.sources else None,
                "citations": [c.to_dict() for c in self.citations] if self.citations else None,
                "brandMentioned": None if self.is_error else self.brand_mentioned,
                "brandPosition": self.brand_position,
                "sentiment": self.sentiment.value if self.sentiment else None,
                "sentimentScore": self.sentiment_score,
                "confidence": self.confidence,
                "competitors": [c.to_dict() for c in self.competitors] if self.competitors else None,
                "rankings": [r.to_dict() for r in self.rankings] if self.rankings else None,
                "timestamp": self.timestamp,
                "error": self.error,
            }
        )


@dataclass
class PromptResult:
    """All provider results for one prompt, in configured provider order."""

    prompt_id: str
    prompt: str
    results: list[NormalizedResult] = field(default_factory=list)
    topic_id: str | None = None
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "promptId": self.prompt_id,
                "prompt": self.prompt,
                "topicId": self.topic_id,
                "category": self.category,
                "results": [r.to_dict() for r in self.results],
            }
        )
