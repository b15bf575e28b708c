"""Report builder: sequences cover, summary and grid pages into one PDF.

A `generate()` call is a pure function of its request. It draws pages strictly
in order on a fresh canvas and either returns the whole document or the
failure output; nothing partially written ever leaves this module.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import io
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, assert_never

from loguru import logger
from reportlab.pdfgen.canvas import Canvas

from flick_report.composers import PageComposer, section_header
from flick_report.imaging import compress_source
from flick_report.layout import Loader, default_loader, layout_page, page_count
from flick_report.models import (
    LocationInfo,
    MultiLocationReport,
    PageRecord,
    PhotoRecord,
    ProjectInfo,
    RenderedReport,
    ReportContext,
    ReportRequest,
    ReportValidationError,
    SingleLocationReport,
)
from flick_report.settings import DEFAULT_SETTINGS, RenderSettings

ALL_LOCATIONS = "All Locations"
SUBJECT = "场景报告"
BASE_KEYWORDS = ("堪景", "照片", "报告")

_UNSAFE = re.compile(r"[^\u3400-\u4dbf\u4e00-\u9fffA-Za-z0-9]")


# =========================
# Naming helpers
# =========================
def sanitize(text: str) -> str:
    """Replace every character outside CJK ideographs, ASCII letters and digits with '_'."""
    return _UNSAFE.sub("_", text or "")


def build_file_name(project_name: str, location_label: str, day: dt.date) -> str:
    return f"{sanitize(project_name)}_{sanitize(location_label)}_{day:%Y%m%d}.pdf"


def single_report_title(project: ProjectInfo) -> str:
    return f"{project.name.strip()} - 堪景报告"


def multi_report_title(project: ProjectInfo) -> str:
    override = (project.report_title or "").strip()
    return override or f"{project.name.strip()} - 场景汇总报告"


def sort_photos(photos: Iterable[PhotoRecord]) -> List[PhotoRecord]:
    """Sorted copy by capture time; equal timestamps keep input order."""
    return sorted(photos, key=lambda p: p.taken_at)


def group_by_location(
    entries: Iterable[Tuple[LocationInfo, PhotoRecord]],
) -> List[Tuple[LocationInfo, List[PhotoRecord]]]:
    """Group pairs by location in first-seen order; photos sorted inside each group."""
    order: List[LocationInfo] = []
    by_location: Dict[LocationInfo, List[PhotoRecord]] = {}
    for location, photo in entries:
        if location not in by_location:
            by_location[location] = []
            order.append(location)
        by_location[location].append(photo)
    return [(loc, sort_photos(by_location[loc])) for loc in order]


def validate(request: ReportRequest) -> None:
    if not (request.project.name or "").strip():
        raise ReportValidationError("project name is empty")
    if isinstance(request, SingleLocationReport) and not (request.location.name or "").strip():
        raise ReportValidationError("location name is empty")


# =========================
# Builder
# =========================
@dataclass
class _Document:
    """Per-call mutable state: the canvas and the page cursor."""

    canvas: Canvas
    buffer: io.BytesIO
    pages: List[PageRecord] = field(default_factory=list)


@dataclass
class _PageDraft:
    kind: str
    header: str = ""
    footer: str = ""
    photo_ids: List[str] = field(default_factory=list)

    def record(self) -> PageRecord:
        return PageRecord(self.kind, self.header, self.footer, tuple(self.photo_ids))


class ReportBuilder:
    def __init__(
        self,
        settings: RenderSettings = DEFAULT_SETTINGS,
        today: Callable[[], dt.date] = dt.date.today,
        loader: Optional[Loader] = None,
    ) -> None:
        self.settings = settings
        self._today = today
        self._loader = loader or default_loader(settings)

    # ---- public API ----
    def generate(self, request: ReportRequest) -> RenderedReport:
        """Render `request`; returns `RenderedReport.failed()` on any error."""
        try:
            validate(request)
        except ReportValidationError as ex:
            logger.warning("Report aborted: {}", ex)
            return RenderedReport.failed()

        try:
            return self._render(request)
        except Exception:
            logger.exception("Report generation failed for project {!r}", request.project.name)
            return RenderedReport.failed()

    async def generate_async(self, request: ReportRequest) -> RenderedReport:
        """Run `generate` in a worker thread; the render itself cannot be interrupted."""
        return await asyncio.to_thread(self.generate, request)

    # ---- orchestration ----
    def _render(self, request: ReportRequest) -> RenderedReport:
        match request:
            case SingleLocationReport():
                day = request.generated_on or self._today()
                photos = sort_photos(request.photos)
                sections = [(request.location, photos)]
                location_label = request.location.name.strip()
                title = single_report_title(request.project)
                context = ReportContext.from_project(
                    request.project,
                    title=title,
                    generated_on=day,
                    location=request.location,
                    photo_count=len(photos),
                    keywords=self._keywords(request.project, [request.location]),
                )
            case MultiLocationReport():
                day = request.generated_on
                sections = group_by_location(request.entries)
                location_label = ALL_LOCATIONS
                title = multi_report_title(request.project)
                context = ReportContext.from_project(
                    request.project,
                    title=title,
                    generated_on=day,
                    photo_count=sum(len(p) for _, p in sections),
                    keywords=self._keywords(request.project, [loc for loc, _ in sections]),
                )
            case _:
                assert_never(request)

        file_name = build_file_name(request.project.name.strip(), location_label, day)
        logger.info("Generating report {} ({} photos)", file_name, context.photo_count)

        doc = self._open_document(file_name, context)
        logo = compress_source(context.logo, self.settings.quality_ceiling, self.settings)
        composer = PageComposer(doc.canvas, self.settings, context, logo=logo)

        with self._page(doc, "cover"):
            composer.draw_cover()

        match request:
            case SingleLocationReport():
                _, photos = sections[0]
                if not photos:
                    self._placeholder(doc, composer, title)
                else:
                    self._grid_pages(doc, composer, title, photos)
            case MultiLocationReport():
                if not sections:
                    self._placeholder(doc, composer, title)
                else:
                    self._summary(doc, composer, title, [(loc, len(p)) for loc, p in sections])
                    for location, photos in sections:
                        self._grid_pages(doc, composer, section_header(title, location), photos)
            case _:
                assert_never(request)

        doc.canvas.save()
        data = doc.buffer.getvalue()
        logger.info("Report {} done: {} pages, {} KB", file_name, len(doc.pages), len(data) // 1024)
        return RenderedReport(data=data, file_name=file_name, pages=tuple(doc.pages))

    def _open_document(self, file_name: str, context: ReportContext) -> _Document:
        buf = io.BytesIO()
        s = self.settings
        # invariant: no timestamps or random ids in the output
        canvas = Canvas(buf, pagesize=(s.page_width, s.page_height), invariant=1)
        canvas.setCreator(s.app_name)
        canvas.setAuthor(s.app_name)
        canvas.setTitle(file_name)
        canvas.setSubject(SUBJECT)
        canvas.setKeywords(",".join(context.keywords))
        return _Document(canvas=canvas, buffer=buf)

    @staticmethod
    def _keywords(project: ProjectInfo, locations: Sequence[LocationInfo]) -> Tuple[str, ...]:
        words = list(BASE_KEYWORDS) + [project.name.strip()]
        for loc in locations:
            name = loc.name.strip()
            if name and name not in words:
                words.append(name)
        return tuple(words)

    @contextmanager
    def _page(self, doc: _Document, kind: str, header: str = "") -> Iterator[_PageDraft]:
        """Scope of one page: finishes it and records it once drawing succeeded."""
        draft = _PageDraft(kind=kind, header=header)
        yield draft
        doc.canvas.showPage()
        doc.pages.append(draft.record())

    def _placeholder(self, doc: _Document, composer: PageComposer, header: str) -> None:
        with self._page(doc, "placeholder", header) as page:
            page.footer = composer.draw_placeholder(header)

    def _summary(
        self,
        doc: _Document,
        composer: PageComposer,
        header: str,
        counts: Sequence[Tuple[LocationInfo, int]],
    ) -> None:
        with self._page(doc, "summary", header) as page:
            page.footer = composer.draw_summary(header, counts)

    def _grid_pages(
        self,
        doc: _Document,
        composer: PageComposer,
        header: str,
        photos: Sequence[PhotoRecord],
    ) -> None:
        total = page_count(len(photos), self.settings.items_per_page)
        for index in range(total):
            with self._page(doc, "grid", header) as page:
                composer.draw_header(header)
                for placed in layout_page(photos, index, self.settings, load=self._loader):
                    composer.draw_photo_cell(placed)
                    page.photo_ids.append(placed.photo.identifier)
                page.footer = composer.draw_footer(index + 1, total)
            logger.debug("Page {}/{} of '{}' drawn", index + 1, total, header)


def generate_report(
    request: ReportRequest,
    settings: RenderSettings = DEFAULT_SETTINGS,
) -> RenderedReport:
    """Convenience wrapper: `ReportBuilder(settings).generate(request)`."""
    return ReportBuilder(settings).generate(request)
