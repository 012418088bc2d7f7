"""Tests for the Response Normalizer."""

from app.gateway.normalizer import normalize_response, raw_from_payload, sentiment_score_for_label
from app.gateway.types import (
    CitationRef,
    CompetitorMention,
    RawProviderResponse,
    Sentiment,
    SourceRef,
)


class TestSentimentScores:
    def test_label_table(self):
        assert sentiment_score_for_label("positive") == 80
        assert sentiment_score_for_label("Neutral") == 50
        assert sentiment_score_for_label("NEGATIVE") == 20
        assert sentiment_score_for_label("mixed") == 50

    def test_unknown_label(self):
        assert sentiment_score_for_label("ecstatic") == 50
        assert sentiment_score_for_label(None) == 50


class TestNormalizeCanonical:
    def test_full_response(self):
        raw = RawProviderResponse(
            text="Acme is great",
            sources=(SourceRef(url="https://a.com", title="A"),),
            citations=(CitationRef(url="https://a.com", source="a.com", mentioned_companies=["Acme"]),),
            brand_mentioned=True,
            brand_position=1,
            sentiment="positive",
            confidence=0.5,
            competitors=(CompetitorMention(name="Globex", position=2),),
        )
        result = normalize_response(raw, "OpenAI")

        assert result.provider == "OpenAI"
        assert result.response == "Acme is great"
        assert result.brand_mentioned is True
        assert result.brand_position == 1
        assert result.sentiment == Sentiment.POSITIVE
        assert result.sentiment_score == 80
        assert result.citations[0].mentioned_companies == ["Acme"]
        assert result.timestamp

    def test_explicit_score_wins(self):
        result = normalize_response(RawProviderResponse(sentiment="negative", sentiment_score=65), "OpenAI")
        assert result.sentiment_score == 65

    def test_empty_lists_omitted(self):
        data = normalize_response(RawProviderResponse(text="x"), "Google").to_dict()
        for key in ("sources", "citations", "competitors", "rankings", "sentiment", "sentimentScore"):
            assert key not in data
        assert data["brandMentioned"] is False


class TestNormalizePayload:
    def test_none_payload(self):
        result = normalize_response(None, "Perplexity")
        assert result.response == ""
        assert result.brand_mentioned is False
        assert result.sources is None
        assert not result.is_error

    def test_unexpected_type(self):
        result = normalize_response(["not", "a", "payload"], "Perplexity")
        assert result.response == ""

    def test_key_aliases(self):
        payload = {
            "text": "fallback text",
            "sources": [{"uri": "https://u.com", "text": "snip"}, "garbage", None],
            "citations": [{"url": "https://c.com", "domain": "c.com"}],
            "competitors": ["Globex", {"company": "Initech", "position": 3, "sentiment": "negative"}, {"x": 1}],
            "sentiment": "Mixed",
        }
        result = normalize_response(payload, "Anthropic")

        assert result.response == "fallback text"
        assert result.sources == [SourceRef(url="https://u.com", title="", snippet="snip")]
        assert result.citations[0].source == "c.com"
        assert result.citations[0].mentioned_companies == []
        assert result.competitors == [
            CompetitorMention(name="Globex"),
            CompetitorMention(name="Initech", position=3, sentiment_score=20),
        ]
        assert result.sentiment == Sentiment.MIXED
        assert result.sentiment_score == 50

    def test_response_key_preferred(self):
        assert normalize_response({"response": "main", "text": "alt"}, "OpenAI").response == "main"

    def test_malformed_fields_defaulted(self):
        payload = {
            "response": 42,
            "sources": "not-a-list",
            "brandMentioned": "yes",
            "brandPosition": "first",
            "sentimentScore": "high",
            "rankings": [{"position": 1}, {"position": 2, "company": "Acme"}],
        }
        result = normalize_response(payload, "OpenAI")

        assert result.response == ""
        assert result.sources is None
        assert result.brand_mentioned is False
        assert result.brand_position is None
        assert result.sentiment_score is None
        assert [(r.position, r.company) for r in result.rankings] == [(2, "Acme")]

    def test_raw_from_payload_is_frozen_tuples(self):
        raw = raw_from_payload({"citations": [{"url": "https://c.com"}]})
        assert isinstance(raw.citations, tuple)
        assert raw.citations[0].url == "https://c.com"
