"""Core types and DTOs for the analysis layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.gateway.types import CitationRef, CompetitorMention, RankingEntry


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class StructureType(str, Enum):
    """Detected structural format of the response."""

    NUMBERED_LIST = "numbered_list"  # 1. Brand A  2. Brand B ...
    BULLETED_LIST = "bulleted_list"  # - Brand A  - Brand B ...
    NARRATIVE = "narrative"  # Continuous prose
    TABLE = "table"  # Markdown table
    MIXED = "mixed"  # Combination


# ---------------------------------------------------------------------------
# Answer-text analysis
# ---------------------------------------------------------------------------


@dataclass
class TextAnalysis:
    """Brand / competitor signals derived from one answer text."""

    brand_mentioned: bool = False
    brand_position: int | None = None
    competitors: list[CompetitorMention] = field(default_factory=list)
    rankings: list[RankingEntry] = field(default_factory=list)
    sentiment: str = "neutral"
    confidence: float = 0.5


# ---------------------------------------------------------------------------
# Citation analysis
# ---------------------------------------------------------------------------


@dataclass
class SourceFrequency:
    """How often a source was cited, by which providers, mentioning whom."""

    url: str
    domain: str
    title: str | None = None
    frequency: int = 0
    providers: list[str] = field(default_factory=list)
    mentioned_companies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"url": self.url, "domain": self.domain}
        if self.title:
            data["title"] = self.title
        data.update(
            {
                "frequency": self.frequency,
                "providers": list(self.providers),
                "mentionedCompanies": list(self.mentioned_companies),
            }
        )
        return data


@dataclass
class CitationsByCompany:
    total_citations: int = 0
    top_domains: list[str] = field(default_factory=list)
    sources: list[CitationRef] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCitations": self.total_citations,
            "topDomains": list(self.top_domains),
            "sources": [c.to_dict() for c in self.sources],
        }


@dataclass
class CitationAnalysis:
    """Aggregate citation picture for one run. Recomputed in full every run."""

    total_sources: int = 0
    top_sources: list[SourceFrequency] = field(default_factory=list)
    brand_citations: CitationsByCompany = field(default_factory=CitationsByCompany)
    competitor_citations: dict[str, CitationsByCompany] = field(default_factory=dict)
    provider_breakdown: dict[str, list[SourceFrequency]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalSources": self.total_sources,
            "topSources": [s.to_dict() for s in self.top_sources],
            "brandCitations": self.brand_citations.to_dict(),
            "competitorCitations": {name: c.to_dict() for name, c in self.competitor_citations.items()},
            "providerBreakdown": {
                provider: [s.to_dict() for s in sources] for provider, sources in self.provider_breakdown.items()
            },
        }


# ---------------------------------------------------------------------------
# Competitive metrics
# ---------------------------------------------------------------------------


@dataclass
class RankingRow:
    name: str
    citations: int
    share_of_voice: float
    is_brand: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "citations": self.citations,
            "shareOfVoice": self.share_of_voice,
            "isBrand": self.is_brand,
        }


@dataclass
class CitationGap:
    gap: int = 0
    gap_percentage: float = 0.0
    leading_competitor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"gap": self.gap, "gapPercentage": self.gap_percentage}
        if self.leading_competitor is not None:
            data["leadingCompetitor"] = self.leading_competitor
        return data


@dataclass
class CompetitiveMetrics:
    """Brand vs competitor share of voice, citation gap and ranking."""

    brand_name: str
    brand_citations: int = 0
    competitor_citations: dict[str, int] = field(default_factory=dict)
    brand_share_of_voice: float = 0.0
    competitor_share_of_voice: dict[str, float] = field(default_factory=dict)
    citation_gap: CitationGap = field(default_factory=CitationGap)
    ranking: list[RankingRow] = field(default_factory=list)

    @property
    def total_market_mentions(self) -> int:
        return self.brand_citations + sum(self.competitor_citations.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "brandName": self.brand_name,
            "brandCitations": self.brand_citations,
            "competitorCitations": dict(self.competitor_citations),
            "shareOfVoice": {
                "brand": self.brand_share_of_voice,
                "competitors": dict(self.competitor_share_of_voice),
            },
            "citationGap": self.citation_gap.to_dict(),
            "ranking": [r.to_dict() for r in self.ranking],
        }


# ---------------------------------------------------------------------------
# Visibility summary
# ---------------------------------------------------------------------------


@dataclass
class ProviderVisibility:
    results: int = 0
    mentions: int = 0
    positions: list[int] = field(default_factory=list)

    @property
    def mention_rate(self) -> float:
        return round(self.mentions / self.results * 100, 2) if self.results else 0.0

    @property
    def average_position(self) -> float | None:
        return round(sum(self.positions) / len(self.positions), 2) if self.positions else None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "results": self.results,
            "mentions": self.mentions,
            "mentionRate": self.mention_rate,
        }
        if self.average_position is not None:
            data["averagePosition"] = self.average_position
        return data


@dataclass
class VisibilitySummary:
    total_results: int = 0
    successful_results: int = 0
    brand_mention_rate: float = 0.0
    average_brand_position: float | None = None
    average_sentiment_score: float | None = None
    competitor_mention_rates: dict[str, float] = field(default_factory=dict)
    by_provider: dict[str, ProviderVisibility] = field(default_factory=dict)

    @property
    def failed_results(self) -> int:
        return self.total_results - self.successful_results

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "totalResults": self.total_results,
            "successfulResults": self.successful_results,
            "failedResults": self.failed_results,
            "brandMentionRate": self.brand_mention_rate,
        }
        if self.average_brand_position is not None:
            data["averageBrandPosition"] = self.average_brand_position
        if self.average_sentiment_score is not None:
            data["averageSentimentScore"] = self.average_sentiment_score
        data["competitorMentionRates"] = dict(self.competitor_mention_rates)
        data["byProvider"] = {name: p.to_dict() for name, p in self.by_provider.items()}
        return data
