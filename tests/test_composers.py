import datetime as dt
import io

import pytest
from PyPDF2 import PdfReader
from reportlab.pdfgen.canvas import Canvas

from flick_report.composers import PageComposer, footer_label, register_fonts, section_header, summary_line
from flick_report.imaging import CompressedImage, compress_source
from flick_report.layout import layout_page
from flick_report.models import NOT_SET, LocationInfo, ProjectInfo, ReportContext
from flick_report.settings import DEFAULT_SETTINGS


@pytest.fixture
def surface():
    buf = io.BytesIO()
    canvas = Canvas(buf, pagesize=(DEFAULT_SETTINGS.page_width, DEFAULT_SETTINGS.page_height))
    return canvas, buf


def _context(location=None, **project_kwargs) -> ReportContext:
    project = ProjectInfo(name="长夜", **project_kwargs)
    return ReportContext.from_project(
        project, title="长夜 - 堪景报告", generated_on=dt.date(2026, 10, 17), location=location
    )


def _pages(buf: io.BytesIO) -> int:
    return len(PdfReader(io.BytesIO(buf.getvalue())).pages)


def test_footer_label() -> None:
    assert footer_label(1, 1) == "第 1 页，共 1 页"
    assert footer_label(2, 5) == "第 2 页，共 5 页"


def test_section_header() -> None:
    assert section_header("报告") == "报告"
    assert section_header("报告", LocationInfo(name="天台", address="中山路 1 号")) == "报告 - 天台 - 中山路 1 号"
    assert section_header("报告", LocationInfo(name="天台", address="  ")) == "报告 - 天台 - 未设置"
    assert section_header("报告", LocationInfo(name="")) == "报告 - 未设置 - 未设置"


def test_summary_line_fills_missing_address() -> None:
    assert summary_line(1, LocationInfo(name="天台", address="中山路 1 号"), 4) == "1. 天台 - 中山路 1 号 (4 张)"
    assert summary_line(2, LocationInfo(name="天台"), 0) == "2. 天台 - 未设置 (0 张)"


def test_context_fills_missing_fields_with_sentinel() -> None:
    ctx = _context(location=LocationInfo(name="天台"))
    assert ctx.director == ctx.producer == ctx.start_date == ctx.status == NOT_SET
    assert ctx.location is not None
    assert ctx.location.address == ctx.location.category == NOT_SET


def test_invalid_theme_color_falls_back_to_blue() -> None:
    ctx = _context(theme_color="purple-ish")
    assert ctx.primary_color.rgb() == pytest.approx((0.0, 122 / 255, 1.0))
    assert ctx.secondary_color.alpha == pytest.approx(0.6)


def test_register_fonts_is_idempotent() -> None:
    assert register_fonts(DEFAULT_SETTINGS) == register_fonts(DEFAULT_SETTINGS) == "STSong-Light"


def test_cover_pages_draw_with_and_without_location(surface, jpeg_bytes) -> None:
    canvas, buf = surface
    logo = compress_source(jpeg_bytes(300, 120), 0.4)
    PageComposer(canvas, DEFAULT_SETTINGS, _context(), logo=logo).draw_cover()
    canvas.showPage()
    location = LocationInfo(name="老街区", address="很长的地址" * 20, category="街道")
    PageComposer(canvas, DEFAULT_SETTINGS, _context(location=location)).draw_cover()
    canvas.showPage()
    canvas.save()
    assert _pages(buf) == 2


def test_placeholder_and_summary_return_footer(surface) -> None:
    canvas, buf = surface
    composer = PageComposer(canvas, DEFAULT_SETTINGS, _context())
    assert composer.draw_placeholder("长夜 - 堪景报告") == "第 1 页，共 1 页"
    canvas.showPage()
    many = [(LocationInfo(name=f"场地{i}", address="某路"), i) for i in range(60)]
    assert composer.draw_summary("长夜 - 场景汇总报告", many) == "第 1 页，共 1 页"
    canvas.showPage()
    canvas.save()
    assert _pages(buf) == 2


def test_photo_cells_draw_with_and_without_images(surface, make_photo) -> None:
    canvas, buf = surface
    composer = PageComposer(canvas, DEFAULT_SETTINGS, _context())
    photos = [make_photo(1, note="逆光，需反光板" * 10), make_photo(2), make_photo(3)]

    def load(photo):
        if photo.identifier == "p2":
            return None
        return CompressedImage(120, 80, photo.source)

    composer.draw_header("长夜 - 堪景报告")
    for placed in layout_page(photos, 0, load=load):
        composer.draw_photo_cell(placed)
    assert composer.draw_footer(1, 1) == "第 1 页，共 1 页"
    canvas.showPage()
    canvas.save()
    assert _pages(buf) == 1
