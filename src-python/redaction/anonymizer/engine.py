"""Redaction sink - burns planned rectangles into a PDF with PyMuPDF.

Plans are in PDF page space (origin bottom-left); PyMuPDF works top-left,
so every rectangle is flipped against the page height before use.
Redaction annotations remove the covered content, not just paint over it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

import fitz  # PyMuPDF

from models.schemas import Rectangle, RedactionPlan, RedactionResult
from redaction.detection.detector import detect_terms
from redaction.detection.patterns import PatternDef
from redaction.detection.planner import RedactionPlanner
from redaction.ingestion.loader import extract_pages

logger = logging.getLogger(__name__)

REDACTED_METADATA = {
    "title": "Redacted PDF",
    "subject": "Redacted",
    "keywords": "redacted",
    "producer": "pdf-redaction-engine",
    "creator": "pdf-redaction-engine",
}


def to_fitz_rect(rect: Rectangle, page_height: float) -> fitz.Rect:
    """Bottom-left page rectangle → PyMuPDF top-left ``fitz.Rect``."""
    return fitz.Rect(rect.x, page_height - rect.top, rect.right, page_height - rect.y)


def _scrub_metadata(pdf_doc: fitz.Document) -> None:
    """Clear document metadata, XMP, outline and attachments."""
    pdf_doc.set_metadata({})
    pdf_doc.del_xml_metadata()
    pdf_doc.set_toc([])
    try:
        if pdf_doc.embfile_count() > 0:
            names = [pdf_doc.embfile_info(i)["name"] for i in range(pdf_doc.embfile_count())]
            for name in names:
                pdf_doc.embfile_del(name)
    except Exception:
        logger.debug("Could not enumerate/remove embedded files")
    pdf_doc.set_metadata(REDACTED_METADATA)


def apply_plans(
    pdf_path: Path,
    plans: Sequence[RedactionPlan],
    output_path: Path,
    fill: tuple[float, float, float] = (0, 0, 0),
) -> RedactionResult:
    """Apply *plans* to *pdf_path*, writing the redacted copy to *output_path*.

    A plan whose page index is outside the document is skipped with a warning.
    """
    warnings: list[str] = []
    applied = 0

    pdf_doc = fitz.open(str(pdf_path))
    try:
        n_pages = len(pdf_doc)
        for plan in plans:
            warnings.extend(f"Page {plan.page_index + 1}: {w}" for w in plan.warnings)
            if not 0 <= plan.page_index < n_pages:
                warnings.append(f"Page {plan.page_index + 1}: not in document")
                logger.warning(f"Plan for page {plan.page_index} outside document ({n_pages} pages)")
                continue
            if not plan.rectangles:
                continue

            page = pdf_doc[plan.page_index]
            height = page.rect.height
            for rect in plan.rectangles:
                page.add_redact_annot(to_fitz_rect(rect, height), fill=fill)
            page.apply_redactions()
            applied += len(plan.rectangles)

        _scrub_metadata(pdf_doc)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        pdf_doc.save(str(output_path), deflate=True, clean=True, garbage=3)
        logger.info(f"Saved redacted PDF: {output_path} ({applied} rectangles)")
    finally:
        pdf_doc.close()

    return RedactionResult(
        output_path=str(output_path),
        pages=n_pages,
        rectangles_applied=applied,
        warnings=warnings,
    )


def redact_pdf(
    input_path: Path,
    output_path: Path,
    enabled_patterns: Optional[Sequence[PatternDef]] = None,
    search_terms: Iterable[str] = (),
    case_sensitive: bool = False,
    planner: Optional[RedactionPlanner] = None,
    fill: tuple[float, float, float] = (0, 0, 0),
    padding: Optional[float] = None,
) -> RedactionResult:
    """Extract, plan and apply in one call.

    *fill* is the RGB cover colour (0-1 per channel); *padding* overrides
    the planner's padding for every page.
    """
    planner = planner or RedactionPlanner()
    pages = extract_pages(input_path)
    terms = list(search_terms)

    explicit = {
        page.index: detect_terms(page.full_text, terms, case_sensitive, page_index=page.index)
        for page in pages
    } if terms else {}

    plans = planner.plan_document(pages, enabled_patterns, explicit, padding=padding)
    return apply_plans(input_path, plans, output_path, fill=fill)
