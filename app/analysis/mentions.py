"""Company mention detection and answer-text analysis.

Rule-based, no LLM call:
  - company matching: full name, core name before a legal suffix,
    or a distinctive first word (word-boundary matched)
  - brand mention: name, name without spaces, or name without punctuation
  - positions and rankings from numbered / bulleted / table content
  - sentiment from a keyword heuristic over the sentences naming the brand
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from app.analysis.ranking_parser import extract_list_items, find_company_rank, parse_rankings
from app.analysis.types import TextAnalysis
from app.gateway.types import SENTIMENT_SCORES, CitationRef, CompetitorMention, Sentiment

logger = logging.getLogger(__name__)

# "Acme Inc", "Acme Corp.", "Acme Company", "Acme LLC", "Acme Ltd"
_LEGAL_SUFFIX = re.compile(r"^(.+?)\s+(?:inc|corp|corporation|company|llc|ltd)\.?$", re.IGNORECASE)

_NON_ALNUM = re.compile(r"[^a-z0-9]")

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")

_POSITIVE_WORDS = {
    "best",
    "excellent",
    "reliable",
    "convenient",
    "fast",
    "recommend",
    "recommended",
    "popular",
    "quality",
    "safe",
    "leader",
    "top",
    "superior",
    "ideal",
    "great",
    "outstanding",
    "trusted",
    "leading",
}

_NEGATIVE_WORDS = {
    "worst",
    "bad",
    "slow",
    "expensive",
    "unreliable",
    "problem",
    "problems",
    "disadvantage",
    "disadvantages",
    "drawback",
    "drawbacks",
    "dangerous",
    "risky",
    "outdated",
    "complex",
    "difficult",
    "poor",
    "issue",
    "issues",
    "worse",
}

# Text analysis is a heuristic, not a judgement
HEURISTIC_CONFIDENCE = 0.5


def _word_pattern(word: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Company matching
# ---------------------------------------------------------------------------


def is_company_mentioned(text: str, company: str) -> bool:
    """Check whether ``company`` is referred to in ``text``."""
    if not text or not company or not company.strip():
        return False
    company = company.strip()
    lowered = text.lower()

    if company.lower() in lowered:
        return True

    suffix_match = _LEGAL_SUFFIX.match(company)
    if suffix_match and _word_pattern(suffix_match.group(1).strip()).search(text):
        return True

    first_word = company.split()[0]
    if first_word != company and len(first_word) > 3 and _word_pattern(first_word).search(text):
        return True

    return False


def detect_mentioned_companies(text: str, companies: Iterable[str]) -> list[str]:
    """Companies from ``companies`` referred to in ``text``, in input order."""
    found: list[str] = []
    for company in companies:
        if company and company not in found and is_company_mentioned(text, company):
            found.append(company)
    return found


def is_brand_mentioned(text: str, brand_name: str) -> bool:
    """Loose brand check: also matches the name with its spaces or punctuation removed ("Acme.io" as "acmeio")."""
    if not text or not brand_name or not brand_name.strip():
        return False
    lowered = text.lower()
    name = brand_name.strip().lower()
    if name in lowered:
        return True
    squashed = name.replace(" ", "")
    if squashed and squashed in lowered:
        return True
    alnum = _NON_ALNUM.sub("", name)
    return bool(alnum) and alnum in lowered


def enhance_citations_with_mentions(
    citations: Sequence[CitationRef],
    answer_text: str,
    companies: Sequence[str],
) -> list[CitationRef]:
    """Fill ``mentioned_companies`` for citations that carry none.

    Matches against the citation title and snippet; a citation without any
    text of its own falls back to the whole answer text.
    """
    enhanced: list[CitationRef] = []
    for citation in citations:
        if citation.mentioned_companies:
            enhanced.append(citation)
            continue
        haystack = " ".join(p for p in (citation.title, citation.snippet) if p) or answer_text
        enhanced.append(
            CitationRef(
                url=citation.url,
                title=citation.title,
                source=citation.source,
                snippet=citation.snippet,
                mentioned_companies=detect_mentioned_companies(haystack, companies),
            )
        )
    return enhanced


# ---------------------------------------------------------------------------
# Sentiment heuristic
# ---------------------------------------------------------------------------


def score_from_words(context: str) -> float:
    """Keyword sentiment score in [-1, 1]."""
    words = set(re.findall(r"[a-zA-Z]+", context.lower()))

    positive_hits = len(words & _POSITIVE_WORDS)
    negative_hits = len(words & _NEGATIVE_WORDS)

    total = positive_hits + negative_hits
    if total == 0:
        return 0.0

    raw_score = (positive_hits - negative_hits) / total
    return round(max(-1.0, min(1.0, raw_score)), 2)


def label_from_score(score: float) -> Sentiment:
    if score > 0.25:
        return Sentiment.POSITIVE
    if score < -0.25:
        return Sentiment.NEGATIVE
    if abs(score) <= 0.1:
        return Sentiment.NEUTRAL
    return Sentiment.MIXED


def mention_context(text: str, company: str) -> str:
    """Sentences of ``text`` that refer to ``company``, joined."""
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    return " ".join(s for s in sentences if is_company_mentioned(s, company))


def sentiment_for(text: str, company: str) -> Sentiment:
    context = mention_context(text, company)
    if not context:
        return Sentiment.NEUTRAL
    return label_from_score(score_from_words(context))


# ---------------------------------------------------------------------------
# Answer analysis
# ---------------------------------------------------------------------------


def analyze_answer_text(text: str, brand_name: str, competitor_names: Sequence[str]) -> TextAnalysis:
    """Derive brand/competitor signals from one answer text."""
    if not text:
        return TextAnalysis(confidence=HEURISTIC_CONFIDENCE)

    items = extract_list_items(text)
    brand_mentioned = is_brand_mentioned(text, brand_name)
    brand_position = None
    if brand_mentioned:
        brand_position = find_company_rank(items, brand_name) or None

    competitors: list[CompetitorMention] = []
    for name in detect_mentioned_companies(text, competitor_names):
        label = sentiment_for(text, name)
        competitors.append(
            CompetitorMention(
                name=name,
                position=find_company_rank(items, name) or None,
                sentiment_score=SENTIMENT_SCORES[label.value],
            )
        )

    rankings = parse_rankings(text, [brand_name, *competitor_names])
    sentiment = sentiment_for(text, brand_name) if brand_mentioned else Sentiment.NEUTRAL

    return TextAnalysis(
        brand_mentioned=brand_mentioned,
        brand_position=brand_position,
        competitors=competitors,
        rankings=rankings,
        sentiment=sentiment.value,
        confidence=HEURISTIC_CONFIDENCE,
    )
