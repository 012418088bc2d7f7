"""Visibility summary over the successful results of a run."""

from __future__ import annotations

from collections.abc import Sequence

from app.analysis.types import ProviderVisibility, VisibilitySummary
from app.gateway.types import NormalizedResult


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _mean(values: list[float]) -> float | None:
    return round(sum(values) / len(values), 2) if values else None


def compute_visibility(results: Sequence[NormalizedResult], competitor_names: Sequence[str]) -> VisibilitySummary:
    successful = [r for r in results if not r.is_error]

    positions: list[float] = []
    sentiment_scores: list[float] = []
    brand_mentions = 0
    competitor_hits = {name: 0 for name in competitor_names}
    by_provider: dict[str, ProviderVisibility] = {}

    for result in successful:
        provider = by_provider.setdefault(result.provider, ProviderVisibility())
        provider.results += 1
        if result.brand_mentioned:
            brand_mentions += 1
            provider.mentions += 1
        if result.brand_position is not None:
            positions.append(result.brand_position)
            provider.positions.append(result.brand_position)
        if result.sentiment_score is not None:
            sentiment_scores.append(result.sentiment_score)

        named = {c.name.strip().lower() for c in result.competitors or []}
        for name in competitor_names:
            if name.strip().lower() in named:
                competitor_hits[name] += 1

    return VisibilitySummary(
        total_results=len(results),
        successful_results=len(successful),
        brand_mention_rate=_rate(brand_mentions, len(successful)),
        average_brand_position=_mean(positions),
        average_sentiment_score=_mean(sentiment_scores),
        competitor_mention_rates={name: _rate(hits, len(successful)) for name, hits in competitor_hits.items()},
        by_provider=by_provider,
    )
