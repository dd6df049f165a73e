"""Redaction planner - per-page orchestration of the detection engine.

detect → map matches → scan strategies → explicit matches → merge → clip.

A failing stage is logged and recorded as a plan warning; the page keeps
whatever candidates the other stages produced.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Mapping, Optional, Sequence

from models.schemas import Match, Page, Rectangle, RedactionPlan
from redaction.config import config
from redaction.detection.detector import detect
from redaction.detection.geometry import GeometryMapper, MapperSettings
from redaction.detection.merge import merge
from redaction.detection.patterns import PatternDef, select_patterns
from redaction.detection.text_index import TextPositionIndex

logger = logging.getLogger(__name__)

NO_TEXT_WARNING = "No extractable text on page"


def clip_rectangle(rect: Rectangle, page_width: float, page_height: float) -> Optional[Rectangle]:
    """Constrain *rect* to the page; None if nothing visible remains."""
    x0 = max(0.0, rect.x)
    y0 = max(0.0, rect.y)
    x1 = min(page_width, rect.right)
    y1 = min(page_height, rect.top)
    if x1 - x0 <= 0 or y1 - y0 <= 0:
        return None
    return Rectangle.from_edges(x0, y0, x1, y1, labels=rect.labels, source=rect.source)


def mapper_settings_from_config() -> MapperSettings:
    return MapperSettings(
        intra_run_rescan=config.intra_run_rescan_enabled,
        contextual=config.contextual_enabled,
        cross_run=config.cross_run_enabled,
        cross_run_max_runs=config.cross_run_max_runs,
    )


class RedactionPlanner:
    """Produces a ``RedactionPlan`` per page.

    Padding and merge defaults are read from ``config`` at construction
    time; per-call ``padding`` / ``merge_tolerance`` override them.  The
    configured pattern selection is read on each call.
    """

    def __init__(
        self,
        mapper_settings: Optional[MapperSettings] = None,
        padding: Optional[float] = None,
        merge_tolerance: Optional[float] = None,
        max_merge_passes: Optional[int] = None,
    ) -> None:
        self.mapper_settings = mapper_settings or mapper_settings_from_config()
        self.padding = config.padding if padding is None else padding
        self.merge_tolerance = config.merge_tolerance if merge_tolerance is None else merge_tolerance
        self.max_merge_passes = max_merge_passes or config.max_merge_passes

    def _index(self, page: Page, padding: float) -> TextPositionIndex:
        return TextPositionIndex(
            page,
            padding=padding,
            max_padding_ratio=config.max_padding_ratio,
            vertical_adjustment_ratio=config.vertical_adjustment_ratio,
            vertical_adjustment_growth=config.vertical_adjustment_growth,
            line_tolerance_ratio=config.line_tolerance_ratio,
        )

    def _mapper(self, patterns: Sequence[PatternDef]) -> GeometryMapper:
        settings = self.mapper_settings
        if settings.kinds is None:
            settings = settings.model_copy(update={"kinds": frozenset(p.kind for p in patterns)})
        return GeometryMapper(settings)

    def detect_and_plan(
        self,
        page: Page,
        enabled_patterns: Optional[Sequence[PatternDef]] = None,
        explicit_matches: Iterable[Match] = (),
        padding: Optional[float] = None,
        merge_tolerance: Optional[float] = None,
    ) -> tuple[RedactionPlan, list[Match]]:
        """Plan one page, also returning the detector matches for display."""
        patterns = (
            select_patterns(config.enabled_patterns) if enabled_patterns is None
            else list(enabled_patterns)
        )
        padding = self.padding if padding is None else padding
        tolerance = self.merge_tolerance if merge_tolerance is None else merge_tolerance
        explicit = list(explicit_matches)

        warnings: list[str] = []
        matches: list[Match] = []
        candidates: list[Rectangle] = []

        index = self._index(page, padding)
        if not index.runs:
            logger.warning(f"Page {page.index}: no usable text runs", extra={"page_index": page.index})
            return RedactionPlan(page_index=page.index, warnings=(NO_TEXT_WARNING,)), matches

        mapper = self._mapper(patterns)

        try:
            matches = detect(page.full_text, patterns, page_index=page.index)
            candidates.extend(mapper.map_matches(page, index, matches))
        except Exception as exc:
            logger.warning(
                f"Page {page.index}: pattern detection failed",
                exc_info=True,
                extra={"page_index": page.index, "strategy": "direct"},
            )
            warnings.append(f"Pattern detection failed: {exc}")

        candidates.extend(mapper.scan_strategies(page, index))

        if explicit:
            try:
                candidates.extend(mapper.map_explicit(page, index, explicit))
            except Exception as exc:
                logger.warning(
                    f"Page {page.index}: explicit match mapping failed",
                    exc_info=True,
                    extra={"page_index": page.index, "strategy": "explicit"},
                )
                warnings.append(f"Explicit match mapping failed: {exc}")

        merged = merge(candidates, tolerance, self.max_merge_passes)
        clipped = [
            r for r in (clip_rectangle(rect, page.width, page.height) for rect in merged)
            if r is not None
        ]

        logger.debug(
            f"Page {page.index}: {len(matches)} matches, {len(candidates)} candidates, "
            f"{len(clipped)} rectangles",
            extra={"page_index": page.index, "rectangles": len(clipped)},
        )
        plan = RedactionPlan(
            page_index=page.index,
            rectangles=tuple(clipped),
            warnings=tuple(warnings),
        )
        return plan, matches

    def plan(
        self,
        page: Page,
        enabled_patterns: Optional[Sequence[PatternDef]] = None,
        explicit_matches: Iterable[Match] = (),
        padding: Optional[float] = None,
        merge_tolerance: Optional[float] = None,
    ) -> RedactionPlan:
        """Final clipped cover rectangles for *page*.

        Never raises for a malformed page: an unexpected failure yields an
        empty plan carrying the error as a warning.
        """
        try:
            plan, _matches = self.detect_and_plan(
                page, enabled_patterns, explicit_matches, padding, merge_tolerance,
            )
            return plan
        except Exception as exc:
            logger.warning(
                f"Page {page.index}: planning failed",
                exc_info=True,
                extra={"page_index": page.index},
            )
            return RedactionPlan(page_index=page.index, warnings=(f"Planning failed: {exc}",))

    def plan_document(
        self,
        pages: Sequence[Page],
        enabled_patterns: Optional[Sequence[PatternDef]] = None,
        explicit_matches: Optional[Mapping[int, Sequence[Match]]] = None,
        padding: Optional[float] = None,
        merge_tolerance: Optional[float] = None,
        max_workers: Optional[int] = None,
    ) -> list[RedactionPlan]:
        """Plan every page; result order follows *pages*.

        Pages are independent, so with ``max_workers > 1`` they are
        planned on a thread pool.
        """
        explicit_matches = explicit_matches or {}
        workers = max_workers or config.max_page_workers

        def _plan_one(page: Page) -> RedactionPlan:
            return self.plan(
                page,
                enabled_patterns,
                explicit_matches.get(page.index, ()),
                padding,
                merge_tolerance,
            )

        if workers <= 1 or len(pages) <= 1:
            plans = [_plan_one(page) for page in pages]
        else:
            with ThreadPoolExecutor(max_workers=min(workers, len(pages))) as pool:
                plans = list(pool.map(_plan_one, pages))

        total = sum(len(p.rectangles) for p in plans)
        logger.info(f"Planned {len(plans)} pages, {total} rectangles")
        return plans


def plan_page(
    page: Page,
    enabled_patterns: Optional[Sequence[PatternDef]] = None,
    explicit_matches: Iterable[Match] = (),
    padding: Optional[float] = None,
    merge_tolerance: Optional[float] = None,
) -> RedactionPlan:
    """Plan one page with a planner built from the current configuration."""
    return RedactionPlanner().plan(page, enabled_patterns, explicit_matches, padding, merge_tolerance)
