"""Data models consumed and produced by the report engine."""

from __future__ import annotations

import datetime as dt
import enum
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from reportlab.lib import colors

# Raw bitmap: encoded image bytes or a path to an image file
ImageSource = Union[bytes, Path, str]

NOT_SET = "未设置"
DEFAULT_THEME_COLOR = "#007AFF"

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})$")


class ReportValidationError(ValueError):
    """Raised when a request lacks the names a report cannot be built without."""


class ProjectStatus(enum.Enum):
    PRE_PRODUCTION = "pre_production"
    PRODUCTION = "production"
    POST_PRODUCTION = "post_production"

    @property
    def label(self) -> str:
        return {
            ProjectStatus.PRE_PRODUCTION: "筹备",
            ProjectStatus.PRODUCTION: "拍摄",
            ProjectStatus.POST_PRODUCTION: "后期",
        }[self]


# =========================
# Inputs
# =========================
@dataclass(frozen=True)
class ProjectInfo:
    name: str
    director: str = ""
    producer: str = ""
    start_date: Optional[dt.date] = None
    theme_color: str = DEFAULT_THEME_COLOR
    logo: Optional[ImageSource] = None
    report_title: Optional[str] = None
    status: Optional[ProjectStatus] = None


@dataclass(frozen=True)
class LocationInfo:
    name: str
    address: str = ""
    category: str = ""


@dataclass(frozen=True)
class PhotoRecord:
    identifier: str
    source: ImageSource
    taken_at: dt.datetime
    note: Optional[str] = None


@dataclass(frozen=True)
class SingleLocationReport:
    """Report for one location and its photos."""

    project: ProjectInfo
    location: LocationInfo
    photos: Tuple[PhotoRecord, ...] = ()
    generated_on: Optional[dt.date] = None


@dataclass(frozen=True)
class MultiLocationReport:
    """Report over (location, photo) pairs; the builder groups them by location."""

    project: ProjectInfo
    generated_on: dt.date
    entries: Tuple[Tuple[LocationInfo, PhotoRecord], ...] = ()


ReportRequest = Union[SingleLocationReport, MultiLocationReport]


# =========================
# Outputs
# =========================
@dataclass(frozen=True)
class PageRecord:
    """What one emitted page shows; kept alongside the bytes for callers and tests."""

    kind: str  # cover | summary | grid | placeholder
    header: str = ""
    footer: str = ""
    photo_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RenderedReport:
    data: Optional[bytes]
    file_name: str
    pages: Tuple[PageRecord, ...] = ()

    @property
    def ok(self) -> bool:
        return self.data is not None

    @classmethod
    def failed(cls) -> "RenderedReport":
        return cls(data=None, file_name="")


# =========================
# Normalized drawing context
# =========================
def parse_theme_color(value: Optional[str]) -> colors.Color:
    """Hex `#RRGGBB` to a reportlab color; anything else falls back to system blue."""
    m = _HEX_COLOR.match((value or "").strip())
    return colors.HexColor("#" + (m.group(1) if m else DEFAULT_THEME_COLOR[1:]))


def _text_or_not_set(value: Optional[str]) -> str:
    s = (value or "").strip()
    return s or NOT_SET


def format_cn_date(day: Optional[dt.date]) -> str:
    if day is None:
        return NOT_SET
    return f"{day.year}年{day.month}月{day.day}日"


@dataclass(frozen=True)
class LocationFacts:
    name: str
    address: str
    category: str

    @classmethod
    def from_location(cls, location: LocationInfo) -> "LocationFacts":
        return cls(
            name=_text_or_not_set(location.name),
            address=_text_or_not_set(location.address),
            category=_text_or_not_set(location.category),
        )


@dataclass(frozen=True)
class ReportContext:
    """Display-ready project facts with every optional field filled once."""

    title: str
    project_name: str
    director: str
    producer: str
    start_date: str
    status: str
    generated_on: dt.date
    primary_color: colors.Color
    secondary_color: colors.Color
    logo: Optional[ImageSource] = None
    location: Optional[LocationFacts] = None
    photo_count: int = 0
    keywords: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_project(
        cls,
        project: ProjectInfo,
        title: str,
        generated_on: dt.date,
        location: Optional[LocationInfo] = None,
        photo_count: int = 0,
        keywords: Tuple[str, ...] = (),
    ) -> "ReportContext":
        primary = parse_theme_color(project.theme_color)
        secondary = colors.Color(primary.red, primary.green, primary.blue, alpha=0.6)
        return cls(
            title=title,
            project_name=project.name.strip(),
            director=_text_or_not_set(project.director),
            producer=_text_or_not_set(project.producer),
            start_date=format_cn_date(project.start_date),
            status=project.status.label if project.status else NOT_SET,
            generated_on=generated_on,
            primary_color=primary,
            secondary_color=secondary,
            logo=project.logo,
            location=LocationFacts.from_location(location) if location else None,
            photo_count=photo_count,
            keywords=keywords,
        )
