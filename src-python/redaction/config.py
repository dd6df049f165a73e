"""Global engine configuration."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_ENV_PREFIX = "REDACT_"


def _default_data_dir() -> Path:
    """Return the platform-appropriate data directory."""
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif os.uname().sysname == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "pdf-redaction-engine"


class AppConfig(BaseModel):
    """Application-wide settings - loaded once at startup."""

    data_dir: Path = Field(default_factory=_default_data_dir)

    # Geometry
    padding: float = Field(default=2.0, ge=0.0)
    merge_tolerance: float = Field(default=2.0, ge=0.0)
    max_merge_passes: int = Field(default=100, ge=1)
    max_padding_ratio: float = Field(
        default=0.4, ge=0.0,
        description=(
            "Upper bound on padding as a fraction of the average character "
            "height of the covered text, so padding never reaches the "
            "neighbouring line."
        ),
    )
    # Font-metric calibration (0 = disabled).  Some producers report glyph
    # boxes that sit slightly low; a small ratio nudges boxes downward and
    # grows them by ratio × growth.
    vertical_adjustment_ratio: float = Field(default=0.0, ge=0.0, le=0.5)
    vertical_adjustment_growth: float = Field(default=1.5, ge=0.0)

    # Strategies
    intra_run_rescan_enabled: bool = True
    contextual_enabled: bool = True
    cross_run_enabled: bool = True
    cross_run_max_runs: int = Field(default=3, ge=2, le=8)
    line_tolerance_ratio: float = Field(default=0.5, gt=0.0, le=2.0)

    # Detection
    enabled_patterns: Optional[list[str]] = None   # None = catalog defaults
    context_chars: int = Field(default=25, ge=0)

    # Planning
    max_page_workers: int = Field(default=1, ge=1, le=32)

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8920, ge=0, le=65535)   # 0 = random

    # Logging
    log_format: str = "text"                           # "text" | "json"
    log_level: str = "INFO"

    def model_post_init(self, __context: object) -> None:
        self._load_user_settings()
        self._apply_env_overrides()

    # ------------------------------------------------------------------
    # Persistence - user-editable settings are saved to a JSON sidecar
    # ------------------------------------------------------------------

    _PERSISTABLE_KEYS: set[str] = {
        "padding", "merge_tolerance", "max_merge_passes", "max_padding_ratio",
        "vertical_adjustment_ratio", "vertical_adjustment_growth",
        "intra_run_rescan_enabled", "contextual_enabled", "cross_run_enabled",
        "cross_run_max_runs", "line_tolerance_ratio",
        "enabled_patterns", "context_chars", "max_page_workers",
    }

    @property
    def _settings_path(self) -> Path:
        return self.data_dir / "settings.json"

    def _load_user_settings(self) -> None:
        """Read persisted user settings from disk and apply them."""
        path = self._settings_path
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8-sig"))
            for key, value in data.items():
                if key in self._PERSISTABLE_KEYS and hasattr(self, key):
                    setattr(self, key, value)
            logger.info(f"Loaded user settings from {path}")
        except Exception as exc:
            logger.warning(f"Failed to load settings from {path}: {exc}")

    def _apply_env_overrides(self) -> None:
        """Apply ``REDACT_<FIELD>`` environment variables."""
        for name, field in type(self).model_fields.items():
            raw = os.environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            try:
                if name == "enabled_patterns":
                    value = [p.strip() for p in raw.split(",") if p.strip()] or None
                elif field.annotation is bool:
                    value = raw.strip().lower() in ("1", "true", "yes", "on")
                elif field.annotation is int:
                    value = int(raw)
                elif field.annotation is float:
                    value = float(raw)
                elif field.annotation is Path:
                    value = Path(raw)
                else:
                    value = raw
                setattr(self, name, value)
            except ValueError as exc:
                logger.warning(f"Ignoring {_ENV_PREFIX}{name.upper()}={raw!r}: {exc}")

    def save_user_settings(self) -> None:
        """Persist current user-editable settings to disk."""
        data = {k: getattr(self, k) for k in self._PERSISTABLE_KEYS if hasattr(self, k)}
        try:
            self._settings_path.parent.mkdir(parents=True, exist_ok=True)
            self._settings_path.write_text(
                json.dumps(data, indent=2, default=str),
                encoding="utf-8",
            )
            logger.info(f"Saved user settings to {self._settings_path}")
        except Exception as exc:
            logger.warning(f"Failed to save settings: {exc}")


# Singleton - importable from anywhere
config = AppConfig()
