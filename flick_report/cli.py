"""Command line entry point: JSON manifest + photo files -> PDF report.

Manifest layout
---------------
{
  "project": {"name": "...", "director": "...", "producer": "...",
              "start_date": "2026-03-01", "theme_color": "#3366FF",
              "logo": "logo.png", "status": "production", "report_title": null},
  "generated_on": "2026-10-17",
  "locations": [
    {"name": "...", "address": "...", "category": "...",
     "photos": [{"id": "p1", "path": "a.jpg", "taken_at": "2026-10-01T09:30:00",
                 "note": "..."}]}
  ]
}

Relative paths are resolved against the manifest's folder. One location builds
a single-location report unless --multi is given; several locations always
build a multi-location report.
"""

from __future__ import annotations

import argparse
import datetime as dt
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from flick_report.builder import ReportBuilder
from flick_report.log import init_logging
from flick_report.models import (
    LocationInfo,
    MultiLocationReport,
    PhotoRecord,
    ProjectInfo,
    ProjectStatus,
    RenderedReport,
    ReportRequest,
    SingleLocationReport,
)
from flick_report.settings import load_settings


# =========================
# Manifest parsing
# =========================
def _parse_date(value: Any, what: str) -> Optional[dt.date]:
    if value in (None, ""):
        return None
    try:
        return dt.date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValueError(f"{what}: invalid date {value!r} (expected YYYY-MM-DD)") from None


def _parse_datetime(value: Any, what: str) -> dt.datetime:
    try:
        return dt.datetime.fromisoformat(str(value).strip())
    except ValueError:
        raise ValueError(f"{what}: invalid timestamp {value!r} (expected ISO 8601)") from None


def _parse_status(value: Any) -> Optional[ProjectStatus]:
    if value in (None, ""):
        return None
    try:
        return ProjectStatus(str(value).strip().lower())
    except ValueError:
        logger.warning("Unknown project status {!r}; leaving it unset", value)
        return None


def _resolve(base: Path, value: Any) -> Optional[Path]:
    if value in (None, ""):
        return None
    p = Path(str(value))
    return p if p.is_absolute() else base / p


def parse_project(data: Dict[str, Any], base: Path) -> ProjectInfo:
    if not isinstance(data, dict):
        raise ValueError("manifest: 'project' must be an object")
    return ProjectInfo(
        name=str(data.get("name") or ""),
        director=str(data.get("director") or ""),
        producer=str(data.get("producer") or ""),
        start_date=_parse_date(data.get("start_date"), "project.start_date"),
        theme_color=str(data.get("theme_color") or "#007AFF"),
        logo=_resolve(base, data.get("logo")),
        report_title=data.get("report_title") or None,
        status=_parse_status(data.get("status")),
    )


def parse_locations(items: Any, base: Path) -> List[Tuple[LocationInfo, List[PhotoRecord]]]:
    if not isinstance(items, list):
        raise ValueError("manifest: 'locations' must be a list")
    out: List[Tuple[LocationInfo, List[PhotoRecord]]] = []
    for i, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValueError(f"locations[{i}] must be an object")
        location = LocationInfo(
            name=str(item.get("name") or ""),
            address=str(item.get("address") or ""),
            category=str(item.get("category") or ""),
        )
        photos: List[PhotoRecord] = []
        for j, ph in enumerate(item.get("photos") or [], start=1):
            where = f"locations[{i}].photos[{j}]"
            if not isinstance(ph, dict):
                raise ValueError(f"{where} must be an object")
            path = _resolve(base, ph.get("path"))
            if path is None:
                raise ValueError(f"{where}: missing 'path'")
            photos.append(
                PhotoRecord(
                    identifier=str(ph.get("id") or path.stem),
                    source=path,
                    taken_at=_parse_datetime(ph.get("taken_at"), where),
                    note=ph.get("note") or None,
                )
            )
        out.append((location, photos))
    return out


def load_manifest(manifest_path: Path, force_multi: bool = False) -> ReportRequest:
    """Read a manifest file into a single- or multi-location request."""
    if not manifest_path.exists():
        raise FileNotFoundError(f"Manifest not found: {manifest_path}")
    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as ex:
        raise ValueError(f"manifest is not valid JSON: {ex}") from ex
    if not isinstance(data, dict):
        raise ValueError("manifest: top level must be an object")

    base = manifest_path.resolve().parent
    project = parse_project(data.get("project") or {}, base)
    sections = parse_locations(data.get("locations") or [], base)
    generated_on = _parse_date(data.get("generated_on"), "generated_on")

    if len(sections) == 1 and not force_multi:
        location, photos = sections[0]
        return SingleLocationReport(
            project=project,
            location=location,
            photos=tuple(photos),
            generated_on=generated_on,
        )
    return MultiLocationReport(
        project=project,
        generated_on=generated_on or dt.date.today(),
        entries=tuple((loc, ph) for loc, photos in sections for ph in photos),
    )


# =========================
# Run
# =========================
def build_report_file(
    manifest_path: Path,
    out_dir: Path,
    settings_path: Optional[Path] = None,
    force_multi: bool = False,
    log: Optional[Callable[[str], None]] = None,
) -> Optional[Path]:
    """Render the manifest and write the PDF into `out_dir`; None when generation failed."""

    def _log(msg: str) -> None:
        if log:
            log(msg)

    settings = load_settings(settings_path)
    request = load_manifest(manifest_path, force_multi=force_multi)
    _log(f"Loaded manifest: {manifest_path.name}")

    _log("Generating PDF...")
    result: RenderedReport = ReportBuilder(settings).generate(request)
    if not result.ok:
        _log("ERROR: report could not be generated (see log for details)")
        return None

    out_dir.mkdir(parents=True, exist_ok=True)
    pdf_path = out_dir / result.file_name
    pdf_path.write_bytes(result.data)
    _log(f"Saved PDF: {pdf_path.name} ({len(result.pages)} pages)")
    return pdf_path


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Render a location-scouting photo report to PDF.")
    ap.add_argument("--manifest", required=True, help="Path to the report manifest (JSON)")
    ap.add_argument("--out", dest="out_dir", required=True, help="Output folder path")
    ap.add_argument("--settings", dest="settings_path", help="JSON settings overriding layout/compression")
    ap.add_argument("--multi", action="store_true", help="Always build a multi-location report")
    ap.add_argument("--log-dir", dest="log_dir", help="Folder for rotating log files")
    args = ap.parse_args(argv)

    init_logging(args.log_dir)
    try:
        pdf_path = build_report_file(
            Path(args.manifest),
            Path(args.out_dir),
            settings_path=Path(args.settings_path) if args.settings_path else None,
            force_multi=args.multi,
            log=print,
        )
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1
    if pdf_path is None:
        return 1
    print(f"PDF: {pdf_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
