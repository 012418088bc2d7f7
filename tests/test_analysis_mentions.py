"""Tests for company mention detection and answer-text analysis."""

from app.analysis.mentions import (
    HEURISTIC_CONFIDENCE,
    analyze_answer_text,
    detect_mentioned_companies,
    enhance_citations_with_mentions,
    is_brand_mentioned,
    is_company_mentioned,
    label_from_score,
    mention_context,
    score_from_words,
)
from app.gateway.types import CitationRef, Sentiment


class TestCompanyMatching:
    def test_full_name(self):
        assert is_company_mentioned("We compared ACME with others.", "Acme")

    def test_core_name_before_legal_suffix(self):
        assert is_company_mentioned("Globex is cheaper.", "Globex Corporation")
        assert is_company_mentioned("Try Initech today", "Initech LLC")

    def test_distinctive_first_word(self):
        assert is_company_mentioned("Salesforce leads the market.", "Salesforce Sales Cloud")

    def test_short_first_word_not_used(self):
        assert not is_company_mentioned("The IBM mainframe", "IBM Watson Health")

    def test_first_word_needs_word_boundary(self):
        assert not is_company_mentioned("Umbrellas are useful", "Umbrella Corp")

    def test_empty_inputs(self):
        assert not is_company_mentioned("", "Acme")
        assert not is_company_mentioned("Acme", "  ")

    def test_detect_keeps_input_order(self):
        text = "Initech and Acme both appear, Acme twice."
        assert detect_mentioned_companies(text, ["Acme", "Globex", "Initech", "Acme"]) == ["Acme", "Initech"]


class TestBrandMention:
    def test_plain(self):
        assert is_brand_mentioned("acme is good", "Acme")

    def test_without_spaces(self):
        assert is_brand_mentioned("Try HubSpot today", "Hub Spot")

    def test_without_punctuation(self):
        assert is_brand_mentioned("Visit acmeio for details", "Acme.io")

    def test_no_match_across_word_boundaries(self):
        assert not is_brand_mentioned("A central hub. Sales teams love it.", "Hubs")
        assert not is_brand_mentioned("Visit acme io for details", "Acme.io")

    def test_absent(self):
        assert not is_brand_mentioned("Globex is popular.", "Acme")


class TestCitationEnhancement:
    def test_matches_title_and_snippet(self):
        citations = [CitationRef(url="https://g2.com", title="Acme vs Globex", snippet="")]
        enhanced = enhance_citations_with_mentions(citations, "Initech rules", ["Acme", "Globex", "Initech"])
        assert enhanced[0].mentioned_companies == ["Acme", "Globex"]

    def test_falls_back_to_answer_text(self):
        citations = [CitationRef(url="https://a.com")]
        enhanced = enhance_citations_with_mentions(citations, "Initech rules", ["Acme", "Initech"])
        assert enhanced[0].mentioned_companies == ["Initech"]

    def test_existing_mentions_kept(self):
        citation = CitationRef(url="https://a.com", title="Globex", mentioned_companies=["Acme"])
        enhanced = enhance_citations_with_mentions([citation], "", ["Acme", "Globex"])
        assert enhanced[0] is citation


class TestSentimentHeuristic:
    def test_score(self):
        assert score_from_words("fast and reliable") == 1.0
        assert score_from_words("slow and expensive") == -1.0
        assert score_from_words("fast but expensive") == 0.0
        assert score_from_words("nothing here") == 0.0

    def test_labels(self):
        assert label_from_score(0.5) == Sentiment.POSITIVE
        assert label_from_score(-0.5) == Sentiment.NEGATIVE
        assert label_from_score(0.05) == Sentiment.NEUTRAL
        assert label_from_score(0.2) == Sentiment.MIXED

    def test_mention_context(self):
        text = "Acme is fast. Globex is slow.\nAcme also has great support."
        assert mention_context(text, "Acme") == "Acme is fast. Acme also has great support."


class TestAnalyzeAnswerText:
    def test_ranked_answer(self):
        text = "Top picks:\n1. Globex - great support\n2. Acme - reliable and fast\n3. Initech - expensive\n"
        analysis = analyze_answer_text(text, "Acme", ["Globex", "Initech", "Umbrella"])

        assert analysis.brand_mentioned is True
        assert analysis.brand_position == 2
        assert analysis.sentiment == "positive"
        assert analysis.confidence == HEURISTIC_CONFIDENCE
        assert [(c.name, c.position, c.sentiment_score) for c in analysis.competitors] == [
            ("Globex", 1, 80),
            ("Initech", 3, 20),
        ]
        assert [(r.position, r.company) for r in analysis.rankings] == [(1, "Globex"), (2, "Acme"), (3, "Initech")]

    def test_brand_absent(self):
        analysis = analyze_answer_text("Globex is popular.", "Acme", ["Globex"])

        assert analysis.brand_mentioned is False
        assert analysis.brand_position is None
        assert analysis.sentiment == "neutral"
        assert analysis.competitors[0].position is None

    def test_brand_split_across_words_is_absent(self):
        analysis = analyze_answer_text("The best pick is Notion. It is fast.", "On It", [])
        assert analysis.brand_mentioned is False

    def test_narrative_has_no_position(self):
        analysis = analyze_answer_text("Acme is a solid choice for small teams.", "Acme", [])
        assert analysis.brand_mentioned is True
        assert analysis.brand_position is None
        assert analysis.rankings == []

    def test_empty_text(self):
        analysis = analyze_answer_text("", "Acme", ["Globex"])
        assert analysis.brand_mentioned is False
        assert analysis.competitors == []
