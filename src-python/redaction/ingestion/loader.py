"""Text-layout ingestion - turn extractor output into ``Page`` values.

Two sources are supported:

* untyped position items as produced by browser-side extractors
  (pdf.js ``{str, transform, width, height, fontName}`` or flat
  ``{text, x, y, width, height}`` dicts), validated at this boundary so
  nothing untyped reaches the engine;
* PDF files read directly with pypdfium2, one run per word with
  per-character boxes.

All coordinates are PDF page space: origin bottom-left, y upward.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import pypdfium2 as pdfium

from models.schemas import CharBox, Page, TextRun
from redaction.detection.detection_config import FONT_HEIGHT_THINNING
from redaction.detection.text_index import assemble_page, char_width_estimate

logger = logging.getLogger(__name__)


def _number(value: Any) -> Optional[float]:
    """Coerce to a finite float, or None."""
    if isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _estimated_chars(
    text: str,
    x: float,
    y: float,
    width: float,
    height: float,
    font_name: str,
) -> tuple[CharBox, ...]:
    """Per-character boxes from the width heuristic, scaled to the run width."""
    estimates = [char_width_estimate(ch, height, font_name) for ch in text]
    total = sum(estimates)
    scale = width / total if total > 0 else 0.0
    chars: list[CharBox] = []
    cursor = x
    for ch, est in zip(text, estimates):
        w = est * scale
        chars.append(CharBox(char=ch, x=cursor, y=y, width=w, height=height))
        cursor += w
    return tuple(chars)


def run_from_raw(item: Mapping[str, Any]) -> Optional[TextRun]:
    """Validate one raw position item; None when it cannot be used.

    Offsets are left at zero; ``assemble_page`` assigns them.
    """
    if not isinstance(item, Mapping):
        return None

    text = item.get("str", item.get("text"))
    if not isinstance(text, str) or not text:
        return None
    font_name = str(item.get("fontName") or item.get("font_name") or "")

    transform = item.get("transform")
    if transform is not None:
        if not isinstance(transform, (list, tuple)) or len(transform) < 6:
            logger.debug(f"Skipping item {text[:20]!r}: malformed transform")
            return None
        t = [_number(v) for v in transform[:6]]
        if any(v is None for v in t):
            logger.debug(f"Skipping item {text[:20]!r}: non-numeric transform")
            return None
        x, y = t[4], t[5]
        font_height = math.hypot(t[2], t[3]) * FONT_HEIGHT_THINNING
        height = _number(item.get("height")) or font_height
    else:
        x = _number(item.get("x"))
        y = _number(item.get("y"))
        height = _number(item.get("height"))
        if x is None or y is None or height is None:
            logger.debug(f"Skipping item {text[:20]!r}: missing position")
            return None

    if height <= 0:
        logger.debug(f"Skipping item {text[:20]!r}: zero height")
        return None

    width = _number(item.get("width"))
    if width is None or width <= 0:
        width = sum(char_width_estimate(ch, height, font_name) for ch in text)

    return TextRun(
        text=text,
        start_offset=0,
        end_offset=len(text),
        origin_x=x,
        origin_y=y,
        width=width,
        height=height,
        font_name=font_name,
        characters=_estimated_chars(text, x, y, width, height, font_name),
    )


def runs_from_raw(items: Iterable[Mapping[str, Any]]) -> list[TextRun]:
    runs: list[TextRun] = []
    skipped = 0
    for item in items:
        run = run_from_raw(item)
        if run is None:
            skipped += 1
            continue
        runs.append(run)
    if skipped:
        logger.info(f"Skipped {skipped} position item(s) without usable geometry")
    return runs


def page_from_raw(
    index: int,
    width: float,
    height: float,
    items: Iterable[Mapping[str, Any]],
) -> Page:
    return assemble_page(index, width, height, runs_from_raw(items))


# ---------------------------------------------------------------------------
# PDF extraction (pypdfium2)
# ---------------------------------------------------------------------------

def _word_run(chars: list[CharBox]) -> TextRun:
    x0 = min(c.x for c in chars)
    y0 = min(c.y for c in chars)
    x1 = max(c.x + c.width for c in chars)
    y1 = max(c.y + c.height for c in chars)
    text = "".join(c.char for c in chars)
    return TextRun(
        text=text,
        start_offset=0,
        end_offset=len(text),
        origin_x=x0,
        origin_y=y0,
        width=x1 - x0,
        height=y1 - y0,
        characters=tuple(chars),
    )


def _extract_runs_from_page(pdf_page: pdfium.PdfPage) -> list[TextRun]:
    """Word-level runs with per-character boxes from a PDF page."""
    textpage = pdf_page.get_textpage()
    n_chars = textpage.count_chars()

    runs: list[TextRun] = []
    current: list[CharBox] = []

    for i in range(n_chars):
        char = textpage.get_text_range(index=i, count=1)
        if not char or char.strip() == "":
            if current:
                runs.append(_word_run(current))
                current = []
            continue
        # pypdfium2 charbox is (left, bottom, right, top) in PDF coords
        left, bottom, right, top = textpage.get_charbox(i)
        current.append(CharBox(
            char=char[0],
            x=left,
            y=bottom,
            width=max(0.0, right - left),
            height=max(0.0, top - bottom),
        ))

    if current:
        runs.append(_word_run(current))
    return runs


def extract_pages(pdf_path: Path) -> list[Page]:
    """Read every page of *pdf_path* into ``Page`` values.

    PDFium is not thread-safe, so pages are extracted sequentially on a
    single document handle.
    """
    doc = pdfium.PdfDocument(str(pdf_path))
    try:
        pages: list[Page] = []
        for page_index in range(len(doc)):
            pdf_page = doc[page_index]
            runs = _extract_runs_from_page(pdf_page)
            pages.append(assemble_page(
                page_index,
                pdf_page.get_width(),
                pdf_page.get_height(),
                runs,
            ))
            if not runs:
                logger.info(f"Page {page_index + 1}: no embedded text")
        return pages
    finally:
        doc.close()
