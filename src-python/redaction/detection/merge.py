"""Rectangle merger - collapses candidates into a minimal covering set.

Fixed-point pairwise union: any two rectangles whose tolerance-expanded
projections overlap on both axes are replaced by their bounding box,
repeated until a pass makes no change.  Rectangle counts are bounded by
the number of sensitive values on a page, so O(n²) per pass is fine.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from models.schemas import Rectangle
from redaction.detection.detection_config import DEFAULT_MERGE_TOLERANCE, MAX_MERGE_PASSES

logger = logging.getLogger(__name__)


def mergeable(a: Rectangle, b: Rectangle, tolerance: float) -> bool:
    """Projections (expanded by *tolerance*) overlap on both axes."""
    return (
        a.x - tolerance <= b.right
        and b.x - tolerance <= a.right
        and a.y - tolerance <= b.top
        and b.y - tolerance <= a.top
    )


def merge(
    rectangles: Iterable[Rectangle],
    tolerance: float = DEFAULT_MERGE_TOLERANCE,
    max_passes: int = MAX_MERGE_PASSES,
) -> list[Rectangle]:
    """Union mergeable rectangles until no pair is mergeable.

    Stops after *max_passes* passes even if merges are still happening;
    the reduction achieved so far is returned.
    """
    current = list(rectangles)
    if len(current) < 2:
        return current

    for _pass in range(max_passes):
        changed = False
        result: list[Rectangle] = []
        for rect in current:
            for k, existing in enumerate(result):
                if mergeable(existing, rect, tolerance):
                    result[k] = existing.union(rect)
                    changed = True
                    break
            else:
                result.append(rect)
        current = result
        if not changed:
            return current

    logger.warning(
        f"Merge stopped after {max_passes} passes with {len(current)} rectangles",
        extra={"passes": max_passes, "rectangles": len(current)},
    )
    return current


def union_area(rectangles: Sequence[Rectangle]) -> float:
    """Exact area covered by *rectangles* (overlaps counted once)."""
    rects = [r for r in rectangles if r.area > 0]
    if not rects:
        return 0.0

    xs = sorted({r.x for r in rects} | {r.right for r in rects})
    area = 0.0
    for x0, x1 in zip(xs, xs[1:]):
        if x1 <= x0:
            continue
        spans = sorted((r.y, r.top) for r in rects if r.x <= x0 and r.right >= x1)
        covered = 0.0
        cur_lo = cur_hi = None
        for lo, hi in spans:
            if cur_hi is None or lo > cur_hi:
                if cur_hi is not None:
                    covered += cur_hi - cur_lo
                cur_lo, cur_hi = lo, hi
            else:
                cur_hi = max(cur_hi, hi)
        if cur_hi is not None:
            covered += cur_hi - cur_lo
        area += covered * (x1 - x0)
    return area
