"""Tests for text-layout ingestion."""

from __future__ import annotations

from pathlib import Path

import pytest

from redaction.ingestion.loader import page_from_raw, run_from_raw, runs_from_raw


class TestRunFromRaw:
    def test_pdfjs_item(self):
        run = run_from_raw({
            "str": "Hello",
            "transform": [12, 0, 0, 12, 72, 700],
            "width": 30,
            "height": 12,
            "fontName": "g_d0_f1",
        })
        assert run is not None
        assert (run.origin_x, run.origin_y, run.width, run.height) == (72, 700, 30, 12)
        assert run.font_name == "g_d0_f1"
        assert len(run.characters) == 5
        assert run.characters[0].x == pytest.approx(72)
        last = run.characters[-1]
        assert last.x + last.width == pytest.approx(102)

    def test_height_from_transform(self):
        run = run_from_raw({"str": "abc", "transform": [10, 0, 0, 12, 0, 0], "width": 15})
        assert run.height == pytest.approx(12 * 0.75)

    def test_width_estimated_when_missing(self):
        run = run_from_raw({"text": "ab", "x": 0, "y": 0, "height": 10})
        assert run.width == pytest.approx(12.0)

    def test_flat_item(self):
        run = run_from_raw({"text": "555-123-4567", "x": 10, "y": 100, "width": 84, "height": 12})
        assert (run.origin_x, run.right, run.top) == (10, 94, 112)

    @pytest.mark.parametrize("item", [
        None,
        "not a mapping",
        {"str": ""},
        {"str": 42, "transform": [1, 0, 0, 1, 0, 0]},
        {"str": "x", "transform": [1, 0, 0]},
        {"str": "x", "transform": [1, 0, 0, "NaN?", 0, 0]},
        {"str": "x", "transform": [1, 0, 0, 1, float("inf"), 0]},
        {"text": "x", "x": 0, "height": 10},
        {"text": "x", "x": 0, "y": 0, "height": 0},
        {"text": "x", "x": True, "y": 0, "height": 10},
    ])
    def test_malformed_items_rejected(self, item):
        assert run_from_raw(item) is None


class TestRunsFromRaw:
    def test_skips_malformed(self):
        runs = runs_from_raw([
            {"text": "a", "x": 0, "y": 0, "width": 5, "height": 10},
            {"text": "b"},
            {"text": "c", "x": 10, "y": 0, "width": 5, "height": 10},
        ])
        assert [r.text for r in runs] == ["a", "c"]

    def test_page_from_raw(self):
        page = page_from_raw(2, 612, 792, [
            {"str": "SSN:", "transform": [12, 0, 0, 12, 72, 700], "width": 26},
            {"str": "123-45-6789", "transform": [12, 0, 0, 12, 102, 700], "width": 70},
        ])
        assert page.index == 2
        assert page.full_text == "SSN: 123-45-6789"
        assert page.runs[1].start_offset == 5


class TestExtractPages:
    def test_pdf_round_trip(self, tmp_path: Path):
        fitz = pytest.importorskip("fitz")
        pytest.importorskip("pypdfium2")
        from redaction.ingestion.loader import extract_pages

        src = tmp_path / "in.pdf"
        doc = fitz.open()
        page = doc.new_page(width=612, height=792)
        page.insert_text((72, 100), "Call 555-123-4567 now", fontsize=12)
        doc.new_page(width=612, height=792)
        doc.save(str(src))
        doc.close()

        pages = extract_pages(src)
        assert len(pages) == 2
        assert "555-123-4567" in pages[0].full_text
        phone = next(r for r in pages[0].runs if r.text == "555-123-4567")
        # Bottom-left origin: text near the top of the page has a large y
        assert phone.origin_y > 792 / 2
        assert len(phone.characters) == len(phone.text)
        assert pages[1].runs == ()
