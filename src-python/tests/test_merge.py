"""Tests for the rectangle merger."""

from __future__ import annotations

import random

import pytest

from models.schemas import Rectangle
from redaction.detection.merge import mergeable, merge, union_area


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _r(x0: float, y0: float, x1: float, y1: float, source: str = "pattern", label: str = "") -> Rectangle:
    return Rectangle.from_edges(x0, y0, x1, y1, labels=frozenset({label}) if label else frozenset(), source=source)


def _as_set(rects):
    return {(round(r.x, 6), round(r.y, 6), round(r.width, 6), round(r.height, 6)) for r in rects}


def _pairwise_unmergeable(rects, tol):
    return all(
        not mergeable(a, b, tol)
        for i, a in enumerate(rects)
        for b in rects[i + 1:]
    )


# ---------------------------------------------------------------------------
# mergeable
# ---------------------------------------------------------------------------

class TestMergeable:
    def test_overlapping(self):
        assert mergeable(_r(0, 0, 10, 10), _r(5, 5, 15, 15), 0)

    def test_touching_edges(self):
        assert mergeable(_r(0, 0, 10, 10), _r(10, 0, 20, 10), 0)

    def test_gap_within_tolerance(self):
        assert mergeable(_r(0, 0, 10, 10), _r(12, 0, 20, 10), 2)
        assert not mergeable(_r(0, 0, 10, 10), _r(12.5, 0, 20, 10), 2)

    def test_needs_both_axes(self):
        assert not mergeable(_r(0, 0, 10, 10), _r(5, 30, 15, 40), 2)


# ---------------------------------------------------------------------------
# merge
# ---------------------------------------------------------------------------

class TestMerge:
    def test_empty_and_single(self):
        assert merge([], 2) == []
        single = [_r(0, 0, 1, 1)]
        assert merge(single, 2) == single

    def test_overlap_unioned(self):
        out = merge([_r(0, 0, 10, 10), _r(5, 5, 15, 15)], 0)
        assert len(out) == 1
        assert (out[0].x, out[0].y, out[0].right, out[0].top) == (0, 0, 15, 15)

    def test_far_apart_untouched(self):
        rects = [_r(0, 0, 10, 10), _r(50, 50, 60, 60)]
        assert _as_set(merge(rects, 2)) == _as_set(rects)

    def test_bridge_chains_everything(self):
        a, c = _r(0, 0, 10, 10), _r(20, 0, 30, 10)
        bridge = _r(9, 0, 21, 10)
        out = merge([a, c, bridge], 0)
        assert len(out) == 1
        assert (out[0].x, out[0].right) == (0, 30)

    def test_labels_and_sources_combined(self):
        out = merge([
            _r(0, 0, 10, 10, source="pattern", label="555"),
            _r(5, 0, 15, 10, source="contextual", label="555-1234"),
            _r(8, 0, 18, 10, source="pattern", label="1234"),
        ], 0)
        assert len(out) == 1
        assert out[0].labels == frozenset({"555", "555-1234", "1234"})
        assert out[0].source == "pattern+contextual"

    def test_pass_cap_stops_early(self, caplog):
        a, c = _r(0, 0, 10, 10), _r(20, 0, 30, 10)
        # Pass one unions a+bridge, which only then reaches c.
        bridge = _r(9, 0, 21, 10)
        capped = merge([a, c, bridge], 0, max_passes=1)
        assert len(capped) == 2
        assert "Merge stopped after 1 passes" in caplog.text
        assert len(merge([a, c, bridge], 0, max_passes=2)) == 1

    def test_fixed_point(self):
        rng = random.Random(7)
        rects = []
        for _ in range(60):
            x, y = rng.uniform(0, 500), rng.uniform(0, 700)
            rects.append(_r(x, y, x + rng.uniform(1, 40), y + rng.uniform(5, 14)))
        out = merge(rects, 2.0)
        assert _pairwise_unmergeable(out, 2.0)

    def test_idempotent(self):
        rng = random.Random(11)
        rects = []
        for _ in range(40):
            x, y = rng.uniform(0, 300), rng.uniform(0, 300)
            rects.append(_r(x, y, x + rng.uniform(1, 30), y + rng.uniform(1, 30)))
        once = merge(rects, 2.0)
        twice = merge(once, 2.0)
        assert _as_set(once) == _as_set(twice)

    def test_area_never_shrinks(self):
        rng = random.Random(3)
        rects = []
        for _ in range(30):
            x, y = rng.uniform(0, 200), rng.uniform(0, 200)
            rects.append(_r(x, y, x + rng.uniform(1, 25), y + rng.uniform(1, 25)))
        assert union_area(merge(rects, 1.0)) >= union_area(rects) - 1e-6


# ---------------------------------------------------------------------------
# union_area
# ---------------------------------------------------------------------------

class TestUnionArea:
    def test_disjoint(self):
        assert union_area([_r(0, 0, 2, 2), _r(10, 10, 13, 13)]) == pytest.approx(13)

    def test_overlap_counted_once(self):
        assert union_area([_r(0, 0, 10, 10), _r(5, 5, 15, 15)]) == pytest.approx(175)

    def test_contained(self):
        assert union_area([_r(0, 0, 10, 10), _r(2, 2, 3, 3)]) == pytest.approx(100)

    def test_degenerate_ignored(self):
        assert union_area([_r(0, 0, 0, 10)]) == 0.0
