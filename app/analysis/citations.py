"""Citation Analyzer.

Aggregates citations across all successful provider results of a run:
  - per-URL source table (frequency, providers, mentioned companies)
  - top sources grouped by domain
  - citations attributed to the brand and to each competitor
  - per-provider URL frequency breakdown

Pure: the same input always yields the same analysis.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from urllib.parse import urlparse

from app.analysis.types import CitationAnalysis, CitationsByCompany, SourceFrequency
from app.gateway.types import CitationRef, PromptResult

logger = logging.getLogger(__name__)

# Grounding redirect hosts that hide the real source URL
SEARCH_PROXY_HOSTS = ("vertexaisearch.cloud.google.com",)

TOP_DOMAINS_PER_COMPANY = 5


def extract_domain(url: str) -> str:
    """Extract domain from URL, stripping www. prefix. Unparseable URLs are returned as-is."""
    try:
        domain = urlparse(url).hostname or ""
    except ValueError:
        return url
    if not domain:
        return url
    if domain.startswith("www."):
        domain = domain[4:]
    return domain.lower()


def is_search_proxy(url: str) -> bool:
    return any(host in url for host in SEARCH_PROXY_HOSTS)


def _merge_unique(target: list[str], values: Sequence[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


def _top_domains(citations: list[CitationRef]) -> list[str]:
    counts: dict[str, int] = {}
    for citation in citations:
        domain = extract_domain(citation.url)
        counts[domain] = counts.get(domain, 0) + 1
    # sorted() is stable, so equal counts keep first-seen order
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [domain for domain, _ in ranked[:TOP_DOMAINS_PER_COMPANY]]


def _group_by_domain(sources: list[SourceFrequency]) -> list[SourceFrequency]:
    grouped: dict[str, SourceFrequency] = {}
    for source in sources:
        existing = grouped.get(source.domain)
        if existing is None:
            grouped[source.domain] = SourceFrequency(
                url=source.url,
                domain=source.domain,
                title=source.title,
                frequency=source.frequency,
                providers=list(source.providers),
                mentioned_companies=list(source.mentioned_companies),
            )
            continue
        existing.frequency += source.frequency
        _merge_unique(existing.providers, source.providers)
        _merge_unique(existing.mentioned_companies, source.mentioned_companies)
    return sorted(grouped.values(), key=lambda s: s.frequency, reverse=True)


def analyze_citations(
    prompt_results: Sequence[PromptResult],
    brand_name: str,
    competitor_names: Sequence[str],
) -> CitationAnalysis:
    """Build the citation analysis for one run over every provider result of every prompt."""
    results = [r for pr in prompt_results for r in pr.results]
    brand_key = brand_name.strip().lower()
    competitor_keys = {name: name.strip().lower() for name in competitor_names}

    source_map: dict[str, SourceFrequency] = {}
    brand_citations: list[CitationRef] = []
    competitor_citations: dict[str, list[CitationRef]] = {name: [] for name in competitor_names}
    provider_breakdown: dict[str, dict[str, SourceFrequency]] = {}

    for result in results:
        if result.is_error or not result.citations:
            continue

        per_provider = provider_breakdown.setdefault(result.provider, {})
        for citation in result.citations:
            if not citation.url:
                continue
            mentioned = citation.mentioned_companies or []
            mentioned_keys = {m.strip().lower() for m in mentioned}

            if brand_key and brand_key in mentioned_keys:
                brand_citations.append(citation)
            for name, key in competitor_keys.items():
                if key and key in mentioned_keys:
                    competitor_citations[name].append(citation)

            if is_search_proxy(citation.url):
                continue

            domain = extract_domain(citation.url)
            existing = source_map.get(citation.url)
            if existing is None:
                source_map[citation.url] = SourceFrequency(
                    url=citation.url,
                    domain=domain,
                    title=citation.title or None,
                    frequency=1,
                    providers=[result.provider],
                    mentioned_companies=list(mentioned),
                )
            else:
                existing.frequency += 1
                _merge_unique(existing.providers, [result.provider])
                _merge_unique(existing.mentioned_companies, mentioned)

            entry = per_provider.get(citation.url)
            if entry is None:
                per_provider[citation.url] = SourceFrequency(
                    url=citation.url,
                    domain=domain,
                    title=citation.title or None,
                    frequency=1,
                    providers=[result.provider],
                    mentioned_companies=list(mentioned),
                )
            else:
                entry.frequency += 1

    analysis = CitationAnalysis(
        total_sources=len(source_map),
        top_sources=_group_by_domain(list(source_map.values())),
        brand_citations=CitationsByCompany(
            total_citations=len(brand_citations),
            top_domains=_top_domains(brand_citations),
            sources=brand_citations,
        ),
        competitor_citations={
            name: CitationsByCompany(
                total_citations=len(citations),
                top_domains=_top_domains(citations),
                sources=citations,
            )
            for name, citations in competitor_citations.items()
        },
        provider_breakdown={
            provider: sorted(entries.values(), key=lambda s: s.frequency, reverse=True)
            for provider, entries in provider_breakdown.items()
            if entries
        },
    )
    logger.debug(
        "Citation analysis: %d sources, brand=%d citations",
        analysis.total_sources,
        analysis.brand_citations.total_citations,
    )
    return analysis
