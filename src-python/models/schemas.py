"""Pydantic data models for the redaction engine."""

from __future__ import annotations

from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Colour
# ---------------------------------------------------------------------------

class RGBColor(NamedTuple):
    """Display colour for a detector (0-255 per channel)."""
    r: int
    g: int
    b: int

    @classmethod
    def from_hex(cls, value: str) -> "RGBColor":
        value = value.lstrip("#")
        return cls(int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))

    @property
    def hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"


BLACK = RGBColor(0, 0, 0)


# ---------------------------------------------------------------------------
# Text layout (page coordinate space: origin bottom-left, y grows upward)
# ---------------------------------------------------------------------------

class CharBox(BaseModel):
    """Position of a single glyph on the page."""
    model_config = ConfigDict(frozen=True)

    char: str = Field(min_length=1, max_length=1)
    x: float
    y: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)


class TextRun(BaseModel):
    """A positioned span of text reported by the layout extractor."""
    model_config = ConfigDict(frozen=True)

    text: str
    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)
    origin_x: float
    origin_y: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)
    font_name: str = ""
    characters: tuple[CharBox, ...] = ()

    @property
    def right(self) -> float:
        return self.origin_x + self.width

    @property
    def top(self) -> float:
        return self.origin_y + self.height


class Page(BaseModel):
    """Extracted text and geometry for one document page."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    width: float = Field(gt=0)                 # Page width in points
    height: float = Field(gt=0)                # Page height in points
    full_text: str = ""
    runs: tuple[TextRun, ...] = ()


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

class Match(BaseModel):
    """A sensitive substring found in a page's full text."""
    model_config = ConfigDict(frozen=True)

    pattern_name: str
    value: str
    offset: int = Field(ge=0)
    length: int = Field(gt=0)
    color: RGBColor = BLACK
    page_index: int = 0
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    context: str = ""                          # Surrounding text for display

    @property
    def end(self) -> int:
        return self.offset + self.length

    def to_display(self) -> dict:
        """Shape consumed by the UI when listing what was detected."""
        return {
            "type": self.pattern_name,
            "value": self.value,
            "pageIndex": self.page_index,
            "index": self.offset,
            "length": self.length,
            "color": self.color.hex,
        }


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class Rectangle(BaseModel):
    """Axis-aligned cover rectangle in page coordinates."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)
    labels: frozenset[str] = frozenset()       # Fragments/sources subsumed (diagnostics only)
    source: str = ""                           # "pattern" | "contextual" | "explicit" | ...

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def top(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    @classmethod
    def from_edges(
        cls,
        x0: float,
        y0: float,
        x1: float,
        y1: float,
        *,
        labels: frozenset[str] = frozenset(),
        source: str = "",
    ) -> "Rectangle":
        return cls(
            x=x0,
            y=y0,
            width=max(0.0, x1 - x0),
            height=max(0.0, y1 - y0),
            labels=labels,
            source=source,
        )

    def expanded(self, padding: float) -> "Rectangle":
        """Grow the rectangle by *padding* on all four sides."""
        return self.model_copy(update={
            "x": self.x - padding,
            "y": self.y - padding,
            "width": self.width + 2 * padding,
            "height": self.height + 2 * padding,
        })

    def union(self, other: "Rectangle") -> "Rectangle":
        """Bounding box of both rectangles; labels unioned, sources joined."""
        sources = [s for s in self.source.split("+") if s]
        for s in other.source.split("+"):
            if s and s not in sources:
                sources.append(s)
        return Rectangle.from_edges(
            min(self.x, other.x),
            min(self.y, other.y),
            max(self.right, other.right),
            max(self.top, other.top),
            labels=self.labels | other.labels,
            source="+".join(sources),
        )


class RedactionPlan(BaseModel):
    """Final clipped rectangles for one page, handed to the mutation sink."""
    model_config = ConfigDict(frozen=True)

    page_index: int
    rectangles: tuple[Rectangle, ...] = ()
    warnings: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# API Request / Response schemas
# ---------------------------------------------------------------------------

class CustomPatternSpec(BaseModel):
    """A caller-supplied detector definition."""
    name: str
    regex: str
    case_sensitive: bool = False
    color: str = "#f97316"


class PatternInfo(BaseModel):
    key: str
    name: str
    category: str
    description: str
    color: str
    validator: Optional[str] = None
    default_enabled: bool = True


class DetectRequest(BaseModel):
    page: Page
    patterns: Optional[list[str]] = None       # None = catalog defaults
    custom_patterns: list[CustomPatternSpec] = []
    search_terms: list[str] = []
    case_sensitive: bool = False


class DetectResponse(BaseModel):
    page_index: int
    matches: list[dict]


class PlanRequest(DetectRequest):
    explicit_matches: list[Match] = []
    padding: Optional[float] = None            # None = configured default
    merge_tolerance: Optional[float] = None


class PlanResponse(BaseModel):
    plan: RedactionPlan
    matches: list[dict] = []


class PlanDocumentRequest(BaseModel):
    pages: list[Page]
    patterns: Optional[list[str]] = None
    search_terms: list[str] = []
    case_sensitive: bool = False
    padding: Optional[float] = None
    merge_tolerance: Optional[float] = None


class PlanDocumentResponse(BaseModel):
    plans: list[RedactionPlan]
    rectangles_total: int = 0


class RedactionResult(BaseModel):
    """Outcome of applying plans to a document."""
    output_path: str
    pages: int = 0
    rectangles_applied: int = 0
    warnings: list[str] = []
