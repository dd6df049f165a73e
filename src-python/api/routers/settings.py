"""Engine settings: read the current configuration and persist partial updates."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from redaction.config import config

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["settings"])


# ---------------------------------------------------------------------------
# Settings update schema
# ---------------------------------------------------------------------------

class SettingsUpdate(BaseModel):
    """Validated partial settings update."""
    padding: Optional[float] = Field(default=None, ge=0.0)
    merge_tolerance: Optional[float] = Field(default=None, ge=0.0)
    max_merge_passes: Optional[int] = Field(default=None, ge=1)
    max_padding_ratio: Optional[float] = Field(default=None, ge=0.0)
    vertical_adjustment_ratio: Optional[float] = Field(default=None, ge=0.0, le=0.5)
    vertical_adjustment_growth: Optional[float] = Field(default=None, ge=0.0)
    intra_run_rescan_enabled: Optional[bool] = None
    contextual_enabled: Optional[bool] = None
    cross_run_enabled: Optional[bool] = None
    cross_run_max_runs: Optional[int] = Field(default=None, ge=2, le=8)
    line_tolerance_ratio: Optional[float] = Field(default=None, gt=0.0, le=2.0)
    enabled_patterns: Optional[list[str]] = None
    context_chars: Optional[int] = Field(default=None, ge=0)
    max_page_workers: Optional[int] = Field(default=None, ge=1, le=32)


@router.get("/settings")
async def get_settings() -> dict[str, Any]:
    """Current settings, without the on-disk data directory."""
    data = config.model_dump(mode="json")
    data.pop("data_dir", None)
    return data


@router.patch("/settings")
async def update_settings(body: SettingsUpdate) -> dict[str, Any]:
    """Apply a partial update and persist it to ``settings.json``."""
    applied = body.model_dump(exclude_none=True)
    for key, value in applied.items():
        setattr(config, key, value)

    if applied:
        config.save_user_settings()
        logger.info(f"Settings updated: {sorted(applied)}")

    return {"status": "ok", "applied": applied}
