"""Tests for the Citation Analyzer."""

from app.analysis.citations import analyze_citations, extract_domain, is_search_proxy
from app.gateway.types import CitationRef, NormalizedResult, PromptResult


def _cite(url: str, *companies: str, title: str = "") -> CitationRef:
    return CitationRef(url=url, title=title, source=extract_domain(url), mentioned_companies=list(companies))


def _result(provider: str, *citations: CitationRef) -> NormalizedResult:
    return NormalizedResult(provider=provider, response="answer", citations=list(citations) or None)


def _analyze(results, brand_name, competitor_names):
    """One prompt answered by each of ``results``."""
    run = [PromptResult(prompt_id="p1", prompt="Best CRM tools?", results=list(results))]
    return analyze_citations(run, brand_name, competitor_names)


PROXY = "https://vertexaisearch.cloud.google.com/grounding-api-redirect/abc"


class TestExtractDomain:
    def test_www_stripped(self):
        assert extract_domain("https://www.example.com/page") == "example.com"

    def test_lowercased(self):
        assert extract_domain("https://Docs.Example.COM/x") == "docs.example.com"

    def test_unparseable_returned_as_is(self):
        assert extract_domain("not a url") == "not a url"

    def test_search_proxy(self):
        assert is_search_proxy(PROXY)
        assert not is_search_proxy("https://g2.com/acme")


class TestSourceTable:
    def test_frequency_and_providers(self):
        results = [
            _result("OpenAI", _cite("https://g2.com/acme", "Acme", title="G2")),
            _result("Perplexity", _cite("https://g2.com/acme", "Globex")),
        ]
        analysis = _analyze(results, "Acme", ["Globex"])

        assert analysis.total_sources == 1
        top = analysis.top_sources[0]
        assert top.frequency == 2
        assert top.providers == ["OpenAI", "Perplexity"]
        assert top.mentioned_companies == ["Acme", "Globex"]
        assert top.title == "G2"

    def test_counts_across_prompts(self):
        run = [
            PromptResult(prompt_id="p1", prompt="Best CRM?", results=[_result("OpenAI", _cite("https://g2.com/acme", "Acme"))]),
            PromptResult(prompt_id="p2", prompt="Acme vs Globex?", results=[_result("OpenAI", _cite("https://g2.com/acme", "Acme"))]),
        ]
        analysis = analyze_citations(run, "Acme", ["Globex"])

        assert analysis.top_sources[0].frequency == 2
        assert analysis.top_sources[0].providers == ["OpenAI"]

    def test_domain_grouping(self):
        results = [
            _result(
                "OpenAI",
                _cite("https://www.g2.com/a"),
                _cite("https://g2.com/b"),
                _cite("https://capterra.com/x"),
            ),
        ]
        analysis = _analyze(results, "Acme", [])

        assert analysis.total_sources == 3
        assert [(s.domain, s.frequency) for s in analysis.top_sources] == [("g2.com", 2), ("capterra.com", 1)]
        # the first URL seen stands for the domain
        assert analysis.top_sources[0].url == "https://www.g2.com/a"

    def test_errors_and_missing_urls_skipped(self):
        results = [
            NormalizedResult(provider="Google", error="Google timeout after 90.0s"),
            _result("OpenAI", CitationRef(url=""), _cite("https://a.com")),
            _result("Anthropic"),
        ]
        analysis = _analyze(results, "Acme", [])

        assert analysis.total_sources == 1
        assert list(analysis.provider_breakdown) == ["OpenAI"]

    def test_proxy_excluded_but_attributed(self):
        results = [_result("Google", _cite(PROXY, "Acme"), _cite("https://a.com"))]
        analysis = _analyze(results, "Acme", [])

        assert [s.url for s in analysis.top_sources] == ["https://a.com"]
        assert analysis.brand_citations.total_citations == 1

    def test_idempotent(self):
        results = [
            _result("OpenAI", _cite("https://a.com/1", "Acme"), _cite("https://b.com", "Globex")),
            _result("Perplexity", _cite("https://a.com/2", "Acme", "Globex")),
        ]
        first = _analyze(results, "Acme", ["Globex"]).to_dict()
        second = _analyze(results, "Acme", ["Globex"]).to_dict()
        assert first == second


class TestAttribution:
    def test_dual_attribution(self):
        shared = _cite("https://review.com/acme-vs-globex", "Acme", "Globex")
        analysis = _analyze([_result("OpenAI", shared)], "Acme", ["Globex", "Initech"])

        assert analysis.brand_citations.total_citations == 1
        assert analysis.competitor_citations["Globex"].total_citations == 1
        assert analysis.competitor_citations["Initech"].total_citations == 0

    def test_case_insensitive(self):
        analysis = _analyze([_result("OpenAI", _cite("https://a.com", "ACME"))], "acme", [])
        assert analysis.brand_citations.total_citations == 1

    def test_top_domains(self):
        citations = [
            _cite("https://a.com/1", "Acme"),
            _cite("https://b.com/1", "Acme"),
            _cite("https://b.com/2", "Acme"),
            _cite("https://c.com", "Acme"),
            _cite("https://d.com", "Acme"),
            _cite("https://e.com", "Acme"),
            _cite("https://f.com", "Acme"),
        ]
        analysis = _analyze([_result("OpenAI", *citations)], "Acme", [])

        assert analysis.brand_citations.total_citations == 7
        assert analysis.brand_citations.top_domains == ["b.com", "a.com", "c.com", "d.com", "e.com"]

    def test_every_competitor_has_entry(self):
        analysis = analyze_citations([], "Acme", ["Globex", "Initech"])
        assert set(analysis.competitor_citations) == {"Globex", "Initech"}
        assert analysis.total_sources == 0
        assert analysis.top_sources == []


class TestProviderBreakdown:
    def test_sorted_by_frequency(self):
        results = [
            _result("OpenAI", _cite("https://a.com"), _cite("https://b.com"), _cite("https://b.com")),
            _result("Perplexity", _cite("https://a.com")),
        ]
        breakdown = _analyze(results, "Acme", []).provider_breakdown

        assert [(s.url, s.frequency) for s in breakdown["OpenAI"]] == [("https://b.com", 2), ("https://a.com", 1)]
        assert [s.url for s in breakdown["Perplexity"]] == ["https://a.com"]

    def test_to_dict_shape(self):
        results = [_result("OpenAI", _cite("https://a.com", "Acme", title="A"))]
        data = _analyze(results, "Acme", ["Globex"]).to_dict()

        assert data["totalSources"] == 1
        assert data["topSources"][0] == {
            "url": "https://a.com",
            "domain": "a.com",
            "title": "A",
            "frequency": 1,
            "providers": ["OpenAI"],
            "mentionedCompanies": ["Acme"],
        }
        assert data["brandCitations"]["totalCitations"] == 1
        assert data["competitorCitations"]["Globex"] == {"totalCitations": 0, "topDomains": [], "sources": []}
        assert "OpenAI" in data["providerBreakdown"]
