"""Structural & Ranking Parser.

Detects the structural format of an answer and reports the 1-based rank
of each company inside ranked content:

  - Numbered list:  rank = order of the numbered item
  - Bulleted list:  rank = order of the bullet
  - Table:          rank = row order (first column holds the name)
  - Mixed:          numbered items first, bullets as fallback
  - Narrative:      no rank
"""

from __future__ import annotations

import logging
import re

from app.analysis.types import StructureType
from app.gateway.types import RankingEntry

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Structure detection patterns
# ---------------------------------------------------------------------------

# Numbered list: "1. ", "1) ", "1: "
_NUMBERED_PATTERN = re.compile(
    r"^\s*(\d+)\s*[.):\-]\s+(.+)$",
    re.MULTILINE,
)

# Bulleted list: "- ", "* ", "• "
_BULLET_PATTERN = re.compile(
    r"^\s*[-*•]\s+(.+)$",
    re.MULTILINE,
)

# Markdown table: "| col1 | col2 |"
_TABLE_ROW_PATTERN = re.compile(
    r"^\s*\|(.+)\|\s*$",
    re.MULTILINE,
)

# Table separator: "|---|---|" or "| --- | --- |"
_TABLE_SEP_PATTERN = re.compile(
    r"^\s*\|[\s\-:|]+\|\s*$",
    re.MULTILINE,
)

# Markdown emphasis and links stripped from list items before reporting reasons
_MARKDOWN_NOISE = re.compile(r"[*_`#]+")


def detect_structure(text: str) -> StructureType:
    """Detect the dominant structural format of the response text."""
    numbered_matches = _NUMBERED_PATTERN.findall(text)
    bullet_matches = _BULLET_PATTERN.findall(text)
    table_rows = _TABLE_ROW_PATTERN.findall(text)
    table_seps = _TABLE_SEP_PATTERN.findall(text)

    has_table = len(table_rows) >= 2 and len(table_seps) >= 1
    has_numbered = len(numbered_matches) >= 2
    has_bullets = len(bullet_matches) >= 2

    # Priority: table > numbered > bulleted > mixed > narrative
    if has_table and not has_numbered and not has_bullets:
        return StructureType.TABLE
    if has_numbered and not has_bullets:
        return StructureType.NUMBERED_LIST
    if has_bullets and not has_numbered:
        return StructureType.BULLETED_LIST
    if (has_numbered and has_bullets) or (has_table and (has_numbered or has_bullets)):
        return StructureType.MIXED

    return StructureType.NARRATIVE


def extract_list_items(text: str, structure: StructureType | None = None) -> list[str]:
    """Extract ordered list items from text based on detected structure."""
    structure = structure or detect_structure(text)

    if structure == StructureType.NUMBERED_LIST:
        matches = _NUMBERED_PATTERN.findall(text)
        sorted_matches = sorted(matches, key=lambda m: int(m[0]))
        return [m[1].strip() for m in sorted_matches]

    if structure == StructureType.BULLETED_LIST:
        return [m.strip() for m in _BULLET_PATTERN.findall(text)]

    if structure == StructureType.TABLE:
        items = []
        rows = _TABLE_ROW_PATTERN.findall(text)
        for row in rows[1:]:  # first row is the header
            cells = [c.strip() for c in row.split("|") if c.strip()]
            if cells and not all(c.replace("-", "").replace(":", "").strip() == "" for c in cells):
                items.append(cells[0])
        return items

    if structure == StructureType.MIXED:
        items = extract_list_items(text, StructureType.NUMBERED_LIST)
        if not items:
            items = extract_list_items(text, StructureType.BULLETED_LIST)
        return items

    return []


def _name_pattern(name: str) -> re.Pattern:
    return re.compile(rf"(?<![a-zA-Z0-9]){re.escape(name)}(?![a-zA-Z0-9])", re.IGNORECASE)


def find_company_rank(items: list[str], name: str) -> int:
    """Find the rank (1-based) of a company in list items. Returns 0 if not found."""
    if not name:
        return 0
    pattern = _name_pattern(name)
    for idx, item in enumerate(items):
        if pattern.search(item):
            return idx + 1
    return 0


def parse_rankings(text: str, companies: list[str]) -> list[RankingEntry]:
    """Build ranking entries for every tracked company found in ranked content.

    Sorted by position; companies outside the ranked list are left out.
    """
    items = extract_list_items(text)
    if not items:
        return []

    entries: list[RankingEntry] = []
    seen: set[str] = set()
    for company in companies:
        key = company.lower()
        if not company or key in seen:
            continue
        seen.add(key)
        rank = find_company_rank(items, company)
        if rank:
            reason = _MARKDOWN_NOISE.sub("", items[rank - 1]).strip()
            entries.append(RankingEntry(position=rank, company=company, reason=reason[:300] or None))

    entries.sort(key=lambda e: e.position)
    return entries
