"""Detection and planning routes."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Optional

from fastapi import APIRouter, HTTPException

from models.schemas import (
    CustomPatternSpec,
    DetectRequest,
    DetectResponse,
    PatternInfo,
    PlanDocumentRequest,
    PlanDocumentResponse,
    PlanRequest,
    PlanResponse,
    RedactionPlan,
)
from redaction.config import config
from redaction.detection.detector import detect, detect_terms
from redaction.detection.errors import MalformedPatternError
from redaction.detection.patterns import (
    PatternDef,
    compile_pattern,
    pattern_categories,
    select_patterns,
)
from redaction.detection.planner import RedactionPlanner

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["detection"])


def _resolve_patterns(
    keys: Optional[list[str]],
    custom: list[CustomPatternSpec],
) -> list[PatternDef]:
    """Catalog selection plus caller-defined detectors (400 on a bad regex).

    Without explicit *keys* the configured selection applies.
    """
    patterns = select_patterns(config.enabled_patterns if keys is None else keys)
    for entry in custom:
        try:
            patterns.append(compile_pattern(
                entry.name,
                entry.regex,
                key=f"custom:{entry.name}",
                flags=0 if entry.case_sensitive else re.IGNORECASE,
                color=entry.color,
            ))
        except MalformedPatternError as exc:
            raise HTTPException(400, detail=str(exc))
    return patterns


@router.get("/patterns")
async def list_patterns() -> list[dict[str, Any]]:
    """Catalog grouped by category."""
    return [
        {
            "category": category,
            "patterns": [
                PatternInfo(
                    key=p.key,
                    name=p.name,
                    category=p.category,
                    description=p.description,
                    color=p.color.hex,
                    validator=p.validator.value if p.validator else None,
                    default_enabled=p.default_enabled,
                ).model_dump()
                for p in pats
            ],
        }
        for category, pats in pattern_categories()
    ]


@router.post("/detect", response_model=DetectResponse)
async def detect_page(body: DetectRequest) -> DetectResponse:
    """Matches on one page, for display."""
    patterns = _resolve_patterns(body.patterns, body.custom_patterns)
    page = body.page

    def _run():
        matches = detect(page.full_text, patterns, page_index=page.index)
        matches.extend(detect_terms(page.full_text, body.search_terms, body.case_sensitive, page.index))
        return matches

    matches = await asyncio.to_thread(_run)
    return DetectResponse(page_index=page.index, matches=[m.to_display() for m in matches])


@router.post("/plan", response_model=PlanResponse)
async def plan_single_page(body: PlanRequest) -> PlanResponse:
    """Cover rectangles for one page."""
    patterns = _resolve_patterns(body.patterns, body.custom_patterns)
    page = body.page
    planner = RedactionPlanner()

    def _run():
        explicit = list(body.explicit_matches)
        explicit.extend(detect_terms(page.full_text, body.search_terms, body.case_sensitive, page.index))
        return planner.detect_and_plan(
            page,
            patterns,
            explicit,
            padding=body.padding,
            merge_tolerance=body.merge_tolerance,
        )

    try:
        plan, matches = await asyncio.to_thread(_run)
    except Exception as exc:
        # Same isolation as RedactionPlanner.plan: the page comes back empty
        logger.warning(
            f"Planning failed for page {page.index}",
            exc_info=True,
            extra={"page_index": page.index},
        )
        plan = RedactionPlan(page_index=page.index, warnings=(f"Planning failed: {exc}",))
        matches = []

    return PlanResponse(plan=plan, matches=[m.to_display() for m in matches])


@router.post("/plan-document", response_model=PlanDocumentResponse)
async def plan_document(body: PlanDocumentRequest) -> PlanDocumentResponse:
    """Cover rectangles for every page; failing pages come back empty."""
    patterns = select_patterns(config.enabled_patterns if body.patterns is None else body.patterns)
    planner = RedactionPlanner()

    def _run():
        explicit = {
            page.index: detect_terms(page.full_text, body.search_terms, body.case_sensitive, page.index)
            for page in body.pages
        } if body.search_terms else {}
        return planner.plan_document(
            body.pages,
            patterns,
            explicit,
            padding=body.padding,
            merge_tolerance=body.merge_tolerance,
        )

    plans = await asyncio.to_thread(_run)
    return PlanDocumentResponse(
        plans=plans,
        rectangles_total=sum(len(p.rectangles) for p in plans),
    )
