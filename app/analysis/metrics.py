"""Competitive metrics: share of voice, citation gap and ranking.

Mentions are the attributed citation counts from the citation analysis.
"""

from __future__ import annotations

from collections.abc import Sequence

from app.analysis.types import CitationAnalysis, CitationGap, CompetitiveMetrics, RankingRow


def _share(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(count / total * 100, 2)


def compute_competitive_metrics(
    citation_analysis: CitationAnalysis,
    brand_name: str,
    competitor_names: Sequence[str],
) -> CompetitiveMetrics:
    brand_count = citation_analysis.brand_citations.total_citations
    competitor_counts: dict[str, int] = {}
    for name in competitor_names:
        company = citation_analysis.competitor_citations.get(name)
        competitor_counts[name] = company.total_citations if company else 0

    total = brand_count + sum(competitor_counts.values())

    gap = CitationGap()
    if competitor_counts:
        # max() keeps the first competitor on ties
        leader = max(competitor_counts, key=lambda n: competitor_counts[n])
        gap.gap = competitor_counts[leader] - brand_count
        if competitor_counts[leader] > brand_count:
            gap.leading_competitor = leader
        if brand_count > 0:
            gap.gap_percentage = round(gap.gap / brand_count * 100, 2)
        elif gap.gap > 0:
            gap.gap_percentage = 100.0

    rows = [RankingRow(name=brand_name, citations=brand_count, share_of_voice=_share(brand_count, total), is_brand=True)]
    rows.extend(
        RankingRow(name=name, citations=count, share_of_voice=_share(count, total))
        for name, count in competitor_counts.items()
    )
    rows.sort(key=lambda r: r.citations, reverse=True)

    return CompetitiveMetrics(
        brand_name=brand_name,
        brand_citations=brand_count,
        competitor_citations=competitor_counts,
        brand_share_of_voice=_share(brand_count, total),
        competitor_share_of_voice={name: _share(count, total) for name, count in competitor_counts.items()},
        citation_gap=gap,
        ranking=rows,
    )
