"""Geometry mapper - turns detections into candidate cover rectangles.

Strategies are independent and additive; each returns tagged
``Rectangle`` candidates into a common pool that the merger reconciles.

  * direct      - a ``Match``'s offset range mapped through the index
  * rescan      - lightweight shape regexes re-run inside each run,
                  positioned proportionally along the run
  * contextual  - a run ending in a label word ("Phone:") followed by a
                  run that looks like data: the data run is covered whole
  * cross_run   - runs on one visual line joined with a space and
                  re-scanned, catching values split over several runs
  * explicit    - caller-supplied matches, mapped like ``direct``

Runs without usable geometry were already excluded by the index, so no
strategy needs to guard against them.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, NamedTuple, Optional, Sequence

from pydantic import BaseModel, Field

from models.schemas import Match, Page, Rectangle, TextRun
from redaction.detection.detection_config import CROSS_RUN_MAX_RUNS, RUN_SEPARATOR
from redaction.detection.patterns import SENSITIVE_LABELS
from redaction.detection.text_index import TextPositionIndex
from redaction.detection.validators import luhn_check

logger = logging.getLogger(__name__)

SOURCE_PATTERN = "pattern"
SOURCE_CONTEXTUAL = "contextual"
SOURCE_CROSS_RUN = "cross_run"
SOURCE_EXPLICIT = "explicit"


class Shape(NamedTuple):
    kind: str
    regex: re.Pattern
    check: Optional[Callable[[str], bool]] = None


# ═══════════════════════════════════════════════════════════════════════════
# Shape families
# ═══════════════════════════════════════════════════════════════════════════

# Inside a single run: separators are part of the value.
_RUN_SHAPES: tuple[Shape, ...] = (
    Shape("ssn", re.compile(r"(?<!\d)\d{3}-\d{2}-\d{4}(?!\d)")),
    Shape("phone", re.compile(r"(?<![\d+])(?:\(?\d{3}\)?[-.\s]?)?\d{3}[-.]\d{4}(?!\d)")),
    Shape("email", re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")),
    Shape(
        "credit_card",
        re.compile(r"(?<!\d)\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}(?!\d)"),
        luhn_check,
    ),
)

# Across runs: the join inserts whitespace, so separators may repeat.
_CROSS_RUN_SHAPES: tuple[Shape, ...] = (
    Shape("phone", re.compile(r"(?<!\d)\d{3}[-.\s]*\d{3}[-.\s]*\d{4}(?!\d)")),
    Shape("ssn", re.compile(r"(?<!\d)\d{3}[-\s]*\d{2}[-\s]*\d{4}(?!\d)")),
)

# Label word → shape kinds it announces.
_LABEL_KINDS: dict[str, frozenset[str]] = {
    "ssn": frozenset({"ssn"}),
    "social security": frozenset({"ssn"}),
    "phone": frozenset({"phone"}),
    "tel": frozenset({"phone"}),
    "telephone": frozenset({"phone"}),
    "mobile": frozenset({"phone"}),
    "cell": frozenset({"phone"}),
    "email": frozenset({"email"}),
    "e-mail": frozenset({"email"}),
    "contact": frozenset({"phone", "email"}),
    "card": frozenset({"credit_card"}),
    "credit card": frozenset({"credit_card"}),
    "cc": frozenset({"credit_card"}),
}

_LABEL_RE = re.compile(
    r"(?:^|[^a-z])(?P<label>"
    + "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in sorted(SENSITIVE_LABELS, key=len, reverse=True))
    + r")\s*[:=]?\s*$",
    re.IGNORECASE,
)

_DIGITISH_RE = re.compile(r"^[\s(+]*\d[\d\s().\-]*\d[\s.,;]*$")
_EMAILISH_RE = re.compile(r"\S+@\S+")
_TOKEN_RE = re.compile(r"^[\s]*[A-Za-z0-9][A-Za-z0-9\-]{7,}[\s.,;]*$")


def label_kinds(text: str) -> frozenset[str]:
    """Kinds announced by a trailing label word in *text*, if any."""
    m = _LABEL_RE.search(text)
    if m is None:
        return frozenset()
    label = re.sub(r"\s+", " ", m.group("label").lower())
    return _LABEL_KINDS.get(label, frozenset())


def looks_sensitive(text: str) -> bool:
    """Digit groups of phone/SSN length, an address with ``@``, or a single
    alphanumeric token of eight or more characters."""
    stripped = text.strip()
    if not stripped:
        return False
    if _DIGITISH_RE.match(stripped) and sum(ch.isdigit() for ch in stripped) >= 7:
        return True
    if _EMAILISH_RE.search(stripped):
        return True
    return bool(_TOKEN_RE.match(stripped))


class MapperSettings(BaseModel):
    """Which strategies run, and over which shape kinds."""

    intra_run_rescan: bool = True
    contextual: bool = True
    cross_run: bool = True
    cross_run_max_runs: int = Field(default=CROSS_RUN_MAX_RUNS, ge=2)
    kinds: Optional[frozenset[str]] = None        # None = every shape kind

    def allows(self, kind: str) -> bool:
        return self.kinds is None or kind in self.kinds


def _group_runs_by_line(runs: Sequence[TextRun], tolerance_ratio: float) -> list[list[TextRun]]:
    """Split offset-ordered runs wherever the baseline jumps to another line."""
    groups: list[list[TextRun]] = []
    for run in runs:
        if groups:
            prev = groups[-1][-1]
            if abs(run.origin_y - prev.origin_y) <= max(run.height, prev.height) * tolerance_ratio:
                groups[-1].append(run)
                continue
        groups.append([run])
    return groups


class GeometryMapper:
    """Maps matches and page text to candidate rectangles."""

    def __init__(self, settings: Optional[MapperSettings] = None) -> None:
        self.settings = settings or MapperSettings()

    # ------------------------------------------------------------------
    # Match-driven mapping
    # ------------------------------------------------------------------

    def map_match_to_rectangles(
        self,
        page: Page,
        index: TextPositionIndex,
        match: Match,
        source: str = SOURCE_PATTERN,
    ) -> list[Rectangle]:
        """Cover the glyphs of *match*, one rectangle per visual line."""
        start, end = match.offset, match.end
        if start < 0 or end > len(page.full_text) or end <= start:
            logger.debug(
                f"Page {page.index}: discarding out-of-range match "
                f"{match.pattern_name} [{start}:{end}]"
            )
            return []

        runs = index.runs_overlapping(start, end)
        if not runs:
            return []

        labels = frozenset({match.value})
        rects: list[Rectangle] = []
        for line_runs in _group_runs_by_line(runs, index.line_tolerance_ratio):
            lo = max(start, line_runs[0].start_offset)
            hi = min(end, line_runs[-1].end_offset)
            chars = [c for c in index.chars_overlapping(lo, hi) if not c.char.isspace()]
            if not chars:
                continue
            rect = index.chars_box(chars, labels=labels, source=source)
            if rect is not None:
                rects.append(rect)
        return rects

    def map_matches(
        self,
        page: Page,
        index: TextPositionIndex,
        matches: Iterable[Match],
    ) -> list[Rectangle]:
        rects: list[Rectangle] = []
        for match in matches:
            rects.extend(self.map_match_to_rectangles(page, index, match))
        return rects

    def map_explicit(
        self,
        page: Page,
        index: TextPositionIndex,
        matches: Iterable[Match],
    ) -> list[Rectangle]:
        """Caller-confirmed selections, tagged ``explicit``."""
        rects: list[Rectangle] = []
        for match in matches:
            rects.extend(self.map_match_to_rectangles(page, index, match, source=SOURCE_EXPLICIT))
        return rects

    # ------------------------------------------------------------------
    # Text-driven strategies
    # ------------------------------------------------------------------

    def strategies(self) -> list[tuple[str, Callable[[Page, TextPositionIndex], list[Rectangle]]]]:
        """Enabled scan strategies as ``(name, fn)`` pairs."""
        enabled = []
        if self.settings.intra_run_rescan:
            enabled.append(("rescan", self.intra_run_rescan))
        if self.settings.contextual:
            enabled.append(("contextual", self.contextual))
        if self.settings.cross_run:
            enabled.append(("cross_run", self.cross_run))
        return enabled

    def scan_strategies(self, page: Page, index: TextPositionIndex) -> list[Rectangle]:
        """Run every enabled strategy; a failing strategy contributes nothing."""
        rects: list[Rectangle] = []
        for name, strategy in self.strategies():
            try:
                found = strategy(page, index)
            except Exception:
                logger.warning(
                    f"Page {page.index}: strategy {name} failed",
                    exc_info=True,
                    extra={"page_index": page.index, "strategy": name},
                )
                continue
            logger.debug(f"Page {page.index}: strategy {name} produced {len(found)} candidates")
            rects.extend(found)
        return rects

    def intra_run_rescan(self, page: Page, index: TextPositionIndex) -> list[Rectangle]:
        shapes = [s for s in _RUN_SHAPES if self.settings.allows(s.kind)]
        rects: list[Rectangle] = []
        for run in index.runs:
            step = run.width / len(run.text)
            for shape in shapes:
                for m in shape.regex.finditer(run.text):
                    if shape.check is not None and not shape.check(m.group()):
                        continue
                    x0 = run.origin_x + m.start() * step
                    x1 = x0 + (m.end() - m.start()) * step
                    rect = index.box(
                        [(x0, run.origin_y, x1, run.top)],
                        labels=frozenset({m.group()}),
                        source=SOURCE_PATTERN,
                    )
                    if rect is not None:
                        rects.append(rect)
        return rects

    def contextual(self, page: Page, index: TextPositionIndex) -> list[Rectangle]:
        rects: list[Rectangle] = []
        runs = index.runs
        for label_run, data_run in zip(runs, runs[1:]):
            kinds = label_kinds(label_run.text)
            if not kinds or not any(self.settings.allows(k) for k in kinds):
                continue
            if not looks_sensitive(data_run.text):
                continue
            rect = index.runs_box(
                [data_run],
                labels=frozenset({data_run.text.strip()}),
                source=SOURCE_CONTEXTUAL,
            )
            if rect is not None:
                rects.append(rect)
        return rects

    def cross_run(self, page: Page, index: TextPositionIndex) -> list[Rectangle]:
        shapes = [s for s in _CROSS_RUN_SHAPES if self.settings.allows(s.kind)]
        if not shapes:
            return []

        window_size = self.settings.cross_run_max_runs
        rects: list[Rectangle] = []

        for line in index.lines():
            i = 0
            while i < len(line) - 1:
                window = line[i:i + window_size]
                touched = self._straddling_match(window, shapes)
                if touched is None:
                    i += 1
                    continue
                first, last = touched
                covered = window[first:last + 1]
                rect = index.box(
                    [(
                        covered[0].origin_x,
                        min(r.origin_y for r in covered),
                        covered[-1].right,
                        max(r.top for r in covered),
                    )],
                    labels=frozenset({RUN_SEPARATOR.join(r.text for r in covered)}),
                    source=SOURCE_CROSS_RUN,
                )
                if rect is not None:
                    rects.append(rect)
                # Runs already covered are not paired again.
                i += last + 1
        return rects

    @staticmethod
    def _straddling_match(
        window: Sequence[TextRun],
        shapes: Sequence[Shape],
    ) -> Optional[tuple[int, int]]:
        """First shape match in the joined window that spans a join.

        Returns the positions (within *window*) of the first and last run
        the match touches.
        """
        spans: list[tuple[int, int]] = []
        parts: list[str] = []
        cursor = 0
        for run in window:
            if parts:
                parts.append(RUN_SEPARATOR)
                cursor += len(RUN_SEPARATOR)
            spans.append((cursor, cursor + len(run.text)))
            parts.append(run.text)
            cursor += len(run.text)
        joined = "".join(parts)

        for shape in shapes:
            for m in shape.regex.finditer(joined):
                touched = [
                    pos for pos, (s, e) in enumerate(spans)
                    if s < m.end() and e > m.start()
                ]
                if len(touched) >= 2:
                    return touched[0], touched[-1]
        return None
