"""Pattern detector - scans page text against the catalog.

Output order is catalog order, then left-to-right within a detector.
Overlapping matches from different detectors are kept; reconciliation
happens geometrically in the merger, not here.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence

from models.schemas import BLACK, Match, Page
from redaction.config import config
from redaction.detection.detection_config import CONTEXT_CHARS
from redaction.detection.patterns import PatternDef, select_patterns
from redaction.detection.validators import validate

logger = logging.getLogger(__name__)

SEARCH_TERM_LABEL = "Search Term"
SEARCH_TERM_COLOR = BLACK


def get_context_snippet(text: str, start: int, end: int, context_chars: int = CONTEXT_CHARS) -> str:
    """Extract a text snippet around a match for display."""
    ctx_start = max(0, start - context_chars)
    ctx_end = min(len(text), end + context_chars)
    snippet = text[ctx_start:ctx_end]
    if ctx_start > 0:
        snippet = "..." + snippet
    if ctx_end < len(text):
        snippet = snippet + "..."
    return snippet


def _value_span(m: re.Match) -> tuple[int, int]:
    if "value" in m.re.groupindex and m.group("value") is not None:
        return m.span("value")
    return m.span()


def _iter_pattern(text: str, pattern: PatternDef) -> Iterable[tuple[int, int]]:
    """Yield validated ``(start, end)`` spans for one detector.

    Always advances at least one character, so zero-width matches cannot
    stall the scan.
    """
    pos = 0
    n = len(text)
    while pos <= n:
        m = pattern.regex.search(text, pos)
        if m is None:
            break
        pos = m.end() if m.end() > m.start() else m.start() + 1

        start, end = _value_span(m)
        if end <= start:
            continue
        if not validate(pattern.validator, text[start:end]):
            continue
        yield start, end


def detect(
    text: str,
    enabled_patterns: Optional[Sequence[PatternDef]] = None,
    page_index: int = 0,
    context_chars: Optional[int] = None,
) -> list[Match]:
    """Find every validated occurrence of each enabled detector in *text*.

    Without *enabled_patterns* the configured selection is used
    (``config.enabled_patterns``, catalog defaults when unset).
    """
    patterns = select_patterns(config.enabled_patterns) if enabled_patterns is None else enabled_patterns
    width = config.context_chars if context_chars is None else context_chars
    matches: list[Match] = []

    for pattern in patterns:
        for start, end in _iter_pattern(text, pattern):
            if start < 0 or end > len(text):
                logger.debug(f"Discarding out-of-range match {pattern.key} [{start}:{end}]")
                continue
            matches.append(Match(
                pattern_name=pattern.name,
                value=text[start:end],
                offset=start,
                length=end - start,
                color=pattern.color,
                page_index=page_index,
                context=get_context_snippet(text, start, end, width),
            ))

    return matches


def detect_terms(
    text: str,
    terms: Iterable[str],
    case_sensitive: bool = False,
    page_index: int = 0,
    context_chars: Optional[int] = None,
) -> list[Match]:
    """Literal search terms as matches ("redact every occurrence of ...")."""
    width = config.context_chars if context_chars is None else context_chars
    matches: list[Match] = []
    flags = 0 if case_sensitive else re.IGNORECASE

    for term in terms:
        term = term.strip()
        if not term:
            continue
        for m in re.finditer(re.escape(term), text, flags):
            start, end = m.span()
            matches.append(Match(
                pattern_name=SEARCH_TERM_LABEL,
                value=text[start:end],
                offset=start,
                length=end - start,
                color=SEARCH_TERM_COLOR,
                page_index=page_index,
                context=get_context_snippet(text, start, end, width),
            ))

    return matches


def detect_document(
    pages: Iterable[Page],
    enabled_patterns: Optional[Sequence[PatternDef]] = None,
) -> dict[int, list[Match]]:
    """Run ``detect`` over every page, keyed by page index."""
    return {
        page.index: detect(page.full_text, enabled_patterns, page_index=page.index)
        for page in pages
    }
