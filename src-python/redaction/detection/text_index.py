"""Character-offset ↔ page-geometry index.

Maps ranges in a page's full text to the runs and glyph boxes that
render them.  Runs are held in offset order so overlap queries use
binary search (bisect) on the start/end offsets instead of a linear scan.

Offset convention: consecutive runs are separated by exactly one logical
position in the page text, so ``run[i].end_offset == run[i+1].start_offset - 1``.
A match covering the separator overlaps both neighbours.
"""

from __future__ import annotations

import bisect
import logging
import math
from typing import Iterable, Optional, Sequence

from models.schemas import CharBox, Page, Rectangle, TextRun
from redaction.detection.detection_config import (
    CHAR_WIDTH_DEFAULT,
    CHAR_WIDTH_MONOSPACE,
    CHAR_WIDTH_NARROW,
    CHAR_WIDTH_SPACE,
    CHAR_WIDTH_WIDE,
    DEFAULT_PADDING,
    LINE_TOLERANCE_RATIO,
    MAX_PADDING_RATIO,
    NARROW_CHARS,
    RUN_SEPARATOR,
    WIDE_CHARS,
)
from redaction.detection.errors import GeometryUnavailable

logger = logging.getLogger(__name__)

Edges = tuple[float, float, float, float]   # x0, y0, x1, y1


def char_width_estimate(char: str, font_height: float, font_name: str = "") -> float:
    """Approximate advance width of *char* for extractors without glyph widths."""
    if "mono" in font_name.lower() or "courier" in font_name.lower():
        return font_height * CHAR_WIDTH_MONOSPACE
    if char.isspace():
        return font_height * CHAR_WIDTH_SPACE
    if char in NARROW_CHARS:
        return font_height * CHAR_WIDTH_NARROW
    if char in WIDE_CHARS:
        return font_height * CHAR_WIDTH_WIDE
    return font_height * CHAR_WIDTH_DEFAULT


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def check_run(run: TextRun) -> None:
    """Raise ``GeometryUnavailable`` unless *run* can be positioned.

    A run needs text, finite positive geometry and an offset span that
    matches its text length.
    """
    if not run.text:
        raise GeometryUnavailable("empty text")
    if run.end_offset - run.start_offset != len(run.text):
        raise GeometryUnavailable(
            f"offset span {run.end_offset - run.start_offset} != text length {len(run.text)}"
        )
    if not _finite(run.origin_x, run.origin_y, run.width, run.height):
        raise GeometryUnavailable("non-finite position")
    if run.width <= 0 or run.height <= 0:
        raise GeometryUnavailable("zero extent")


def union_edges(edges: Iterable[Edges]) -> Optional[Edges]:
    """Bounding box of a collection of ``(x0, y0, x1, y1)`` boxes."""
    x0 = y0 = math.inf
    x1 = y1 = -math.inf
    for ex0, ey0, ex1, ey1 in edges:
        x0 = min(x0, ex0)
        y0 = min(y0, ey0)
        x1 = max(x1, ex1)
        y1 = max(y1, ey1)
    if x0 == math.inf:
        return None
    return x0, y0, x1, y1


def assemble_page(
    index: int,
    width: float,
    height: float,
    runs: Iterable[TextRun],
) -> Page:
    """Build a ``Page`` from positioned runs, assigning offsets.

    Run texts are joined with a single separator; any offsets already on
    the input runs are replaced.  Empty runs are dropped.
    """
    placed: list[TextRun] = []
    parts: list[str] = []
    cursor = 0

    for run in runs:
        if not run.text:
            continue
        if placed:
            parts.append(RUN_SEPARATOR)
            cursor += len(RUN_SEPARATOR)
        placed.append(run.model_copy(update={
            "start_offset": cursor,
            "end_offset": cursor + len(run.text),
        }))
        parts.append(run.text)
        cursor += len(run.text)

    return Page(
        index=index,
        width=width,
        height=height,
        full_text="".join(parts),
        runs=tuple(placed),
    )


class TextPositionIndex:
    """Read-only offset and geometry queries over one page's runs."""

    def __init__(
        self,
        page: Page,
        padding: float = DEFAULT_PADDING,
        max_padding_ratio: float = MAX_PADDING_RATIO,
        vertical_adjustment_ratio: float = 0.0,
        vertical_adjustment_growth: float = 1.5,
        line_tolerance_ratio: float = LINE_TOLERANCE_RATIO,
    ) -> None:
        self.page = page
        self.padding = padding
        self.max_padding_ratio = max_padding_ratio
        self.vertical_adjustment_ratio = vertical_adjustment_ratio
        self.vertical_adjustment_growth = vertical_adjustment_growth
        self.line_tolerance_ratio = line_tolerance_ratio

        self.runs: list[TextRun] = []
        self.skipped: list[TextRun] = []
        last_end = -1
        for run in page.runs:
            try:
                check_run(run)
                if run.start_offset < last_end:
                    raise GeometryUnavailable(f"overlaps previous run ending at {last_end}")
            except GeometryUnavailable as exc:
                self.skipped.append(run)
                logger.debug(
                    f"Page {page.index}: skipping run {run.text[:20]!r} "
                    f"[{run.start_offset}:{run.end_offset}]: {exc}"
                )
                continue
            self.runs.append(run)
            last_end = run.end_offset

        self._starts = [r.start_offset for r in self.runs]
        self._ends = [r.end_offset for r in self.runs]
        self._char_cache: dict[int, list[CharBox]] = {}

    # ------------------------------------------------------------------
    # Offset queries
    # ------------------------------------------------------------------

    def _run_slice(self, start: int, end: int) -> range:
        lo = bisect.bisect_right(self._ends, start)
        hi = bisect.bisect_left(self._starts, end)
        return range(lo, max(lo, hi))

    def runs_overlapping(self, start: int, end: int) -> list[TextRun]:
        """Runs with ``run.start_offset < end and run.end_offset > start``."""
        if end <= start:
            return []
        return [self.runs[i] for i in self._run_slice(start, end)]

    def chars_of(self, run_pos: int) -> list[CharBox]:
        """Glyph boxes for the run at *run_pos*, estimated if missing."""
        cached = self._char_cache.get(run_pos)
        if cached is not None:
            return cached

        run = self.runs[run_pos]
        chars = list(run.characters)
        if len(chars) != len(run.text) or not all(
            _finite(c.x, c.y, c.width, c.height) for c in chars
        ):
            step = run.width / len(run.text)
            chars = [
                CharBox(
                    char=ch,
                    x=run.origin_x + i * step,
                    y=run.origin_y,
                    width=step,
                    height=run.height,
                )
                for i, ch in enumerate(run.text)
            ]
        self._char_cache[run_pos] = chars
        return chars

    def chars_overlapping(self, start: int, end: int) -> list[CharBox]:
        """Glyph boxes for every character in ``[start, end)``."""
        if end <= start:
            return []
        result: list[CharBox] = []
        for i in self._run_slice(start, end):
            run = self.runs[i]
            lo = max(start, run.start_offset) - run.start_offset
            hi = min(end, run.end_offset) - run.start_offset
            result.extend(self.chars_of(i)[lo:hi])
        return result

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def effective_padding(self, avg_char_height: float) -> float:
        """Configured padding, clamped to a fraction of the glyph height."""
        if avg_char_height <= 0:
            return self.padding
        return min(self.padding, self.max_padding_ratio * avg_char_height)

    def _adjust_vertical(self, edges: Edges) -> Edges:
        ratio = self.vertical_adjustment_ratio
        if ratio <= 0:
            return edges
        x0, y0, x1, y1 = edges
        h = y1 - y0
        shift = h * ratio
        grow = h * ratio * self.vertical_adjustment_growth
        return x0, y0 - shift, x1, y1 - shift + grow

    def box(
        self,
        edges: Sequence[Edges],
        *,
        labels: frozenset[str] = frozenset(),
        source: str = "",
    ) -> Optional[Rectangle]:
        """Padded bounding box of *edges*, or None when empty."""
        bounds = union_edges(edges)
        if bounds is None:
            return None
        avg_h = sum(e[3] - e[1] for e in edges) / len(edges)
        x0, y0, x1, y1 = self._adjust_vertical(bounds)
        rect = Rectangle.from_edges(x0, y0, x1, y1, labels=labels, source=source)
        return rect.expanded(self.effective_padding(avg_h))

    def runs_box(self, runs: Sequence[TextRun], **kwargs) -> Optional[Rectangle]:
        return self.box([(r.origin_x, r.origin_y, r.right, r.top) for r in runs], **kwargs)

    def chars_box(self, chars: Sequence[CharBox], **kwargs) -> Optional[Rectangle]:
        return self.box([(c.x, c.y, c.x + c.width, c.y + c.height) for c in chars], **kwargs)

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def lines(self) -> list[list[TextRun]]:
        """Group runs into visual lines by baseline proximity.

        Lines are ordered top of page first; runs within a line left to right.
        """
        if not self.runs:
            return []

        by_y = sorted(self.runs, key=lambda r: -r.origin_y)

        lines: list[list[TextRun]] = []
        cur_line: list[TextRun] = []
        line_y = 0.0
        line_h = 0.0

        for run in by_y:
            if not cur_line:
                cur_line.append(run)
                line_y = run.origin_y
                line_h = run.height
                continue
            tolerance = max(line_h, run.height) * self.line_tolerance_ratio
            if abs(run.origin_y - line_y) <= tolerance:
                cur_line.append(run)
                line_h = max(line_h, run.height)
                n = len(cur_line)
                line_y = (line_y * (n - 1) + run.origin_y) / n
            else:
                lines.append(sorted(cur_line, key=lambda r: r.origin_x))
                cur_line = [run]
                line_y = run.origin_y
                line_h = run.height

        if cur_line:
            lines.append(sorted(cur_line, key=lambda r: r.origin_x))

        return lines
