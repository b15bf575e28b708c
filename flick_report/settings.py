"""Render settings: page geometry and compression constants.

Every number the report engine depends on lives on `RenderSettings` so a
deployment can override it from a JSON file instead of editing code. The
defaults reproduce the landscape layout of the mobile app's reports.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from loguru import logger


@dataclass(frozen=True)
class RenderSettings:
    # Page geometry (points)
    page_width: float = 841.8
    page_height: float = 595.2
    margin: float = 50.0
    header_height: float = 80.0
    footer_height: float = 40.0

    # Photo grid
    cell_width: float = 250.0
    cell_height: float = 400.0
    items_per_page: int = 3
    cell_spacing: float = 30.0
    caption_height: float = 60.0

    # Compression pipeline
    quality_ceiling: float = 0.4
    size_threshold: int = 300_000
    fallback_quality_factor: float = 0.7
    max_dimension: int = 800

    # Text
    font_name: str = "STSong-Light"
    font_path: Optional[str] = None
    timestamp_format: str = "%Y-%m-%d %H:%M"
    app_name: str = "FLICK"

    # ---- derived geometry (PDF coordinates, origin bottom-left) ----
    @property
    def content_bottom(self) -> float:
        return self.footer_height

    @property
    def content_top(self) -> float:
        return self.page_height - self.header_height

    @property
    def content_height(self) -> float:
        return self.content_top - self.content_bottom

    @property
    def row_height(self) -> float:
        return self.cell_height + self.caption_height

    def row_width(self, count: int) -> float:
        """Width of a row of `count` cells including inner spacing."""
        if count <= 0:
            return 0.0
        return count * self.cell_width + (count - 1) * self.cell_spacing

    @property
    def row_bottom(self) -> float:
        """Bottom of the caption band when the row is centered in the content band."""
        return self.content_bottom + (self.content_height - self.row_height) / 2.0


DEFAULT_SETTINGS = RenderSettings()


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings file not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        node: Any = self._data
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node


def _coerce(value: Any, default: Any) -> Any:
    # bool is an int subclass; none of our numeric fields accept it
    if isinstance(value, bool):
        raise TypeError("boolean not accepted")
    if default is None or isinstance(default, str):
        return None if value is None else str(value)
    if isinstance(default, int):
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{value} is not a whole number")
        return int(value)
    return float(value)


def load_settings(settings_path: str | Path | None = None, section: str = "report") -> RenderSettings:
    """Build `RenderSettings` from the `section` object of a JSON settings file.

    Missing file path returns the defaults. Unknown keys are ignored; values that
    cannot be coerced keep the default and are logged.
    """
    if settings_path is None:
        return DEFAULT_SETTINGS
    source = JsonSettings(settings_path)
    overrides: dict[str, Any] = {}
    for f in fields(RenderSettings):
        raw = source.get(f"{section}.{f.name}")
        if raw is None:
            continue
        default = getattr(DEFAULT_SETTINGS, f.name)
        try:
            overrides[f.name] = _coerce(raw, default)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid setting {}={!r}", f.name, raw)
    settings = replace(DEFAULT_SETTINGS, **overrides)
    validate_settings(settings)
    return settings


def validate_settings(settings: RenderSettings) -> None:
    """Reject settings the layout math cannot work with."""
    if settings.items_per_page < 1:
        raise ValueError("items_per_page must be >= 1")
    if not 0 < settings.quality_ceiling <= 1:
        raise ValueError("quality_ceiling must be in (0, 1]")
    if not 0 < settings.fallback_quality_factor <= 1:
        raise ValueError("fallback_quality_factor must be in (0, 1]")
    if settings.max_dimension < 1 or settings.size_threshold < 1:
        raise ValueError("max_dimension and size_threshold must be positive")
    if settings.row_height > settings.content_height:
        raise ValueError("photo row does not fit between header and footer")
    if settings.row_width(settings.items_per_page) > settings.page_width:
        raise ValueError("photo row is wider than the page")
