"""Tests for the redaction planner - end-to-end page planning."""

from __future__ import annotations

import pytest

from models.schemas import Match, Page, Rectangle, TextRun
from redaction.config import config
from redaction.detection import planner as planner_mod
from redaction.detection.planner import (
    NO_TEXT_WARNING,
    RedactionPlanner,
    clip_rectangle,
    plan_page,
)
from redaction.detection.patterns import select_patterns
from redaction.detection.text_index import assemble_page


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

CHAR_W = 6.0


def _run(text: str, x: float, y: float, h: float = 12.0) -> TextRun:
    return TextRun(
        text=text,
        start_offset=0,
        end_offset=len(text),
        origin_x=x,
        origin_y=y,
        width=len(text) * CHAR_W,
        height=h,
    )


def _planner(**kw) -> RedactionPlanner:
    kw.setdefault("padding", 2.0)
    kw.setdefault("merge_tolerance", 2.0)
    return RedactionPlanner(**kw)


def _overlaps_x(rect: Rectangle, x0: float, x1: float) -> bool:
    return rect.x < x1 and rect.right > x0


@pytest.fixture
def contact_page() -> Page:
    first = _run("Contact: 555-123-4567", 50, 700)
    second = _run(" or jane@example.com", 50 + 21 * CHAR_W, 700)
    return assemble_page(0, 612, 792, [first, second])


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------

class TestEndToEnd:
    def test_offsets(self, contact_page):
        first, second = contact_page.runs
        assert (first.start_offset, first.end_offset) == (0, 21)
        assert second.start_offset == first.end_offset + 1

    def test_phone_and_email(self, contact_page):
        plan = _planner().plan(contact_page)
        assert plan.page_index == 0
        assert len(plan.rectangles) == 2

        phone, email = sorted(plan.rectangles, key=lambda r: r.x)
        # Phone digits: chars 9..21 of the first run
        assert phone.x == pytest.approx(50 + 9 * CHAR_W - 2)
        assert phone.right == pytest.approx(50 + 21 * CHAR_W + 2)
        # Email: chars 4..20 of the second run
        second_x = 50 + 21 * CHAR_W
        assert email.x == pytest.approx(second_x + 4 * CHAR_W - 2)
        assert email.right == pytest.approx(second_x + 20 * CHAR_W + 2)

        contact_word = (50, 50 + 7 * CHAR_W)
        or_word = (second_x + 1 * CHAR_W, second_x + 3 * CHAR_W)
        for rect in plan.rectangles:
            assert not _overlaps_x(rect, *contact_word)
            assert not _overlaps_x(rect, *or_word)

    def test_detect_and_plan_returns_matches(self, contact_page):
        plan, matches = _planner().detect_and_plan(contact_page)
        assert {m.pattern_name for m in matches} == {"Phone Number", "Email"}
        assert len(plan.rectangles) == 2

    def test_cross_run_split(self):
        page = assemble_page(0, 612, 792, [
            _run("443-", 10, 100), _run("232-", 40, 100), _run("4454", 70, 100),
        ])
        plan = _planner(padding=0.0).plan(page)
        assert len(plan.rectangles) == 1
        r = plan.rectangles[0]
        assert r.x == pytest.approx(10)
        assert r.right == pytest.approx(70 + 4 * CHAR_W)

    def test_disabled_kinds_skip_scan_strategies(self, contact_page):
        plan = _planner().plan(contact_page, select_patterns(["email"]))
        assert len(plan.rectangles) == 1

    def test_explicit_matches(self, contact_page):
        explicit = [Match(pattern_name="Search Term", value="Contact", offset=0, length=7)]
        plan = _planner().plan(contact_page, [], explicit)
        assert len(plan.rectangles) == 1
        assert plan.rectangles[0].source == "explicit"

    def test_plan_page_helper(self, contact_page):
        plan = plan_page(contact_page, padding=2.0, merge_tolerance=2.0)
        assert len(plan.rectangles) == 2

    def test_enabled_patterns_setting_applies(self, monkeypatch, contact_page):
        monkeypatch.setattr(config, "enabled_patterns", ["email"])
        plan, matches = _planner().detect_and_plan(contact_page)
        assert [m.pattern_name for m in matches] == ["Email"]
        assert len(plan.rectangles) == 1
        assert all("555-123-4567" not in r.labels for r in plan.rectangles)


# ---------------------------------------------------------------------------
# Clipping
# ---------------------------------------------------------------------------

class TestClipping:
    def test_clip_rectangle(self):
        r = clip_rectangle(Rectangle(x=-5, y=90, width=20, height=20), 100, 100)
        assert (r.x, r.y, r.right, r.top) == (0, 90, 15, 100)

    def test_fully_outside_dropped(self):
        assert clip_rectangle(Rectangle(x=120, y=10, width=5, height=5), 100, 100) is None
        assert clip_rectangle(Rectangle(x=10, y=-20, width=5, height=20), 100, 100) is None

    def test_planner_output_within_page(self):
        page = assemble_page(0, 100, 100, [
            _run("secret", -10, 95),
            _run("hidden", 200, 50),
        ])
        explicit = [
            Match(pattern_name="Search Term", value="secret", offset=0, length=6),
            Match(pattern_name="Search Term", value="hidden", offset=7, length=6),
        ]
        plan = _planner().plan(page, [], explicit)
        assert len(plan.rectangles) == 1
        r = plan.rectangles[0]
        assert r.x >= 0 and r.right <= page.width
        assert r.y >= 0 and r.top <= page.height


# ---------------------------------------------------------------------------
# Failure isolation
# ---------------------------------------------------------------------------

class TestFailureIsolation:
    def test_no_text(self):
        plan = _planner().plan(Page(index=4, width=612, height=792))
        assert plan.page_index == 4
        assert plan.rectangles == ()
        assert plan.warnings == (NO_TEXT_WARNING,)

    def test_detection_failure_keeps_scan_candidates(self, contact_page, monkeypatch):
        def boom(*_args, **_kwargs):
            raise ValueError("detector exploded")

        monkeypatch.setattr(planner_mod, "detect", boom)
        plan = _planner().plan(contact_page)
        # The intra-run rescan still finds both values
        assert len(plan.rectangles) == 2
        assert any("detector exploded" in w for w in plan.warnings)

    def test_unexpected_failure_gives_empty_plan(self, contact_page, monkeypatch):
        def boom(*_args, **_kwargs):
            raise RuntimeError("merge exploded")

        monkeypatch.setattr(planner_mod, "merge", boom)
        plan = _planner().plan(contact_page)
        assert plan.rectangles == ()
        assert "merge exploded" in plan.warnings[0]

    def test_document_continues_past_bad_page(self, contact_page, monkeypatch):
        bad = contact_page.model_copy(update={"index": 1})
        good = contact_page.model_copy(update={"index": 2})
        original = RedactionPlanner.detect_and_plan

        def flaky(self, page, *args, **kwargs):
            if page.index == 1:
                raise RuntimeError("page 1 is corrupt")
            return original(self, page, *args, **kwargs)

        monkeypatch.setattr(RedactionPlanner, "detect_and_plan", flaky)
        plans = _planner().plan_document([contact_page, bad, good])
        assert [p.page_index for p in plans] == [0, 1, 2]
        assert len(plans[0].rectangles) == 2
        assert plans[1].rectangles == ()
        assert len(plans[2].rectangles) == 2


class TestPlanDocument:
    def test_parallel_preserves_order(self, contact_page):
        pages = [contact_page.model_copy(update={"index": i}) for i in range(6)]
        plans = _planner().plan_document(pages, max_workers=3)
        assert [p.page_index for p in plans] == list(range(6))
        assert all(len(p.rectangles) == 2 for p in plans)

    def test_explicit_per_page(self, contact_page):
        pages = [contact_page, contact_page.model_copy(update={"index": 1})]
        explicit = {1: [Match(pattern_name="Search Term", value="Contact", offset=0, length=7, page_index=1)]}
        plans = _planner().plan_document(pages, explicit_matches=explicit)
        assert len(plans[0].rectangles) == 2
        assert len(plans[1].rectangles) == 3
