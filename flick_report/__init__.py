"""Location-scouting photo reports rendered to PDF."""

from flick_report.builder import ReportBuilder, build_file_name, generate_report, sanitize
from flick_report.imaging import CompressedImage, PillowRaster, RasterImage, compress, open_raster
from flick_report.models import (
    LocationInfo,
    MultiLocationReport,
    PageRecord,
    PhotoRecord,
    ProjectInfo,
    ProjectStatus,
    RenderedReport,
    ReportRequest,
    ReportValidationError,
    SingleLocationReport,
)
from flick_report.settings import DEFAULT_SETTINGS, RenderSettings, load_settings

__all__ = [
    "CompressedImage",
    "DEFAULT_SETTINGS",
    "LocationInfo",
    "MultiLocationReport",
    "PageRecord",
    "PhotoRecord",
    "PillowRaster",
    "ProjectInfo",
    "ProjectStatus",
    "RasterImage",
    "RenderSettings",
    "RenderedReport",
    "ReportBuilder",
    "ReportRequest",
    "ReportValidationError",
    "SingleLocationReport",
    "build_file_name",
    "compress",
    "generate_report",
    "load_settings",
    "open_raster",
    "sanitize",
]
