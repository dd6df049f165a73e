"""Geometry and detection constants.

Centralizes the numeric thresholds used by the detection engine.  Values
that users are expected to tune live in ``redaction.config.AppConfig``;
the constants here are the defaults and the hard limits around them.

Tuning Guide:
- Larger padding → fewer glyph slivers left visible, more risk of
  covering the neighbouring line
- Larger merge tolerance → fewer, bigger cover boxes
"""

from __future__ import annotations

# =============================================================================
# PADDING
# =============================================================================

DEFAULT_PADDING: float = 2.0
"""Symmetric padding (PDF points) added around every mapped box.
Compensates for font-metric estimation error in the layout extractor."""

MAX_PADDING_RATIO: float = 0.4
"""Padding is clamped to this fraction of the average character height
of the covered text.  At 0.4 a 10pt line with normal leading keeps its
neighbours uncovered."""

# =============================================================================
# MERGING
# =============================================================================

DEFAULT_MERGE_TOLERANCE: float = 2.0
"""Maximum gap (points) between two boxes' edges for them to be unioned."""

MAX_MERGE_PASSES: int = 100
"""Hard cap on fixed-point merge passes.  Reaching it is not an error;
the reduction achieved so far is kept."""

# =============================================================================
# LINES AND RUNS
# =============================================================================

LINE_TOLERANCE_RATIO: float = 0.5
"""Two runs share a visual line when their baselines differ by less than
this fraction of the run height."""

CROSS_RUN_MAX_RUNS: int = 3
"""Number of consecutive runs joined when reconstructing a value split
across runs (``"443-" + "232-" + "4454"``)."""

RUN_SEPARATOR: str = " "
"""Logical separator between consecutive runs in a page's full text.
Occupies exactly one offset position."""

# =============================================================================
# FONT METRICS
# =============================================================================
# Used when an extractor reports only a transform matrix and no glyph
# widths.  Factors are fractions of the font height.

FONT_HEIGHT_THINNING: float = 0.75
"""Rendered glyph height as a fraction of the transform's vertical scale."""

CHAR_WIDTH_MONOSPACE: float = 0.6
CHAR_WIDTH_SPACE: float = 0.25
CHAR_WIDTH_NARROW: float = 0.3
CHAR_WIDTH_WIDE: float = 0.9
CHAR_WIDTH_DEFAULT: float = 0.6

NARROW_CHARS: frozenset[str] = frozenset("iIl.,:;'!|")
WIDE_CHARS: frozenset[str] = frozenset("wmWM")

# =============================================================================
# VERTICAL ADJUSTMENT (producer-specific calibration, off by default)
# =============================================================================

VERTICAL_ADJUSTMENT_RATIO: float = 0.05
"""Value observed for one PDF producer whose glyph boxes sat slightly
high.  Boxes move down by ratio × height and grow by ratio × growth ×
height.  Enabled through ``AppConfig.vertical_adjustment_ratio``."""

VERTICAL_ADJUSTMENT_GROWTH: float = 1.5

# =============================================================================
# DISPLAY
# =============================================================================

CONTEXT_CHARS: int = 25
"""Characters of surrounding text kept on each side of a match."""
