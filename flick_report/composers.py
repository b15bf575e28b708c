"""Page composers: cover, content header/footer, placeholder, summary and photo cells.

All drawing goes through a reportlab `Canvas`. Composers never start or finish
pages; the builder owns the page cursor.
"""

from __future__ import annotations

import io
from typing import Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen.canvas import Canvas

from flick_report.imaging import CompressedImage
from flick_report.layout import (
    CAPTION_FONT_SIZE,
    CAPTION_LINE_HEIGHT,
    NOTE_FONT_SIZE,
    NOTE_LINE_HEIGHT,
    PlacedPhoto,
    Rect,
    caption_title,
    fit_rect,
    note_lines,
    truncate_tail,
    wrap_text,
)
from flick_report.models import LocationFacts, LocationInfo, ReportContext, format_cn_date
from flick_report.settings import RenderSettings

NO_PHOTOS_MESSAGE = "暂无堪景照片"

BACKGROUND = colors.Color(0.97, 0.97, 0.97)
INFO_BOX = colors.Color(0.95, 0.95, 0.95)
DARK_GRAY = colors.Color(0.33, 0.33, 0.33)
CELL_BORDER_ALPHA = 0.3

COVER_TOP_BAND = 80.0
COVER_BOTTOM_BAND = 50.0
COVER_LOGO_SIZE = 80.0
HEADER_LOGO_SIZE = 40.0
HEADER_STRIPE = 6.0


def register_fonts(settings: RenderSettings) -> str:
    """Register the text font once per process and return its name.

    Without a TTF path the name must be one of reportlab's built-in CID fonts.
    """
    name = settings.font_name
    if name in pdfmetrics.getRegisteredFontNames():
        return name
    if settings.font_path:
        pdfmetrics.registerFont(TTFont(name, settings.font_path))
    else:
        pdfmetrics.registerFont(UnicodeCIDFont(name))
    return name


def footer_label(page_number: int, page_total: int) -> str:
    return f"第 {page_number} 页，共 {page_total} 页"


def section_header(title: str, location: Optional[LocationInfo] = None) -> str:
    """Report title, suffixed with "- name - address" for per-location sections."""
    if location is None:
        return title
    facts = LocationFacts.from_location(location)
    return f"{title} - {facts.name} - {facts.address}"


def summary_line(number: int, location: LocationInfo, count: int) -> str:
    facts = LocationFacts.from_location(location)
    return f"{number}. {facts.name} - {facts.address} ({count} 张)"


class PageComposer:
    def __init__(
        self,
        canvas: Canvas,
        settings: RenderSettings,
        context: ReportContext,
        logo: Optional[CompressedImage] = None,
    ) -> None:
        self.c = canvas
        self.settings = settings
        self.ctx = context
        self.font = register_fonts(settings)
        self._logo = logo
        self._logo_reader = ImageReader(io.BytesIO(logo.data)) if logo else None

    @property
    def width(self) -> float:
        return self.settings.page_width

    @property
    def height(self) -> float:
        return self.settings.page_height

    # ---- helpers ----
    def _text(self, x: float, y: float, text: str, size: float, color=colors.black) -> None:
        self.c.setFillColor(color)
        self.c.setFont(self.font, size)
        self.c.drawString(x, y, text)

    def _centered(self, y: float, text: str, size: float, color=colors.black) -> None:
        self.c.setFillColor(color)
        self.c.setFont(self.font, size)
        self.c.drawCentredString(self.width / 2.0, y, text)

    def _draw_logo(self, box: Rect) -> None:
        if self._logo is None or self._logo_reader is None:
            return
        r = fit_rect(self._logo.width, self._logo.height, box)
        self.c.drawImage(self._logo_reader, r.x, r.y, width=r.width, height=r.height, mask="auto")

    def _info_box(self, box: Rect, title: str, items: Sequence[Tuple[str, str]]) -> None:
        c = self.c
        c.setFillColor(INFO_BOX)
        c.roundRect(box.x, box.y, box.width, box.height, 10, stroke=0, fill=1)

        pad = 20.0
        y = box.top - pad - 12
        self._text(box.x + pad, y, title, 16, self.ctx.primary_color)
        y -= 28
        max_w = box.width - 2 * pad
        for label, value in items:
            if y < box.y + 10:
                break
            head = f"{label}: "
            head_w = pdfmetrics.stringWidth(head, self.font, 12)
            self._text(box.x + pad, y, head, 12, DARK_GRAY)
            # Long values (addresses) wrap under their label until the box runs out
            for line in wrap_text(value, self.font, 12, max_w - head_w):
                if y < box.y + 10:
                    break
                self._text(box.x + pad + head_w, y, line, 12)
                y -= 18

    # ---- cover ----
    def draw_cover(self) -> None:
        c, w, h, ctx = self.c, self.width, self.height, self.ctx
        margin = self.settings.margin

        c.setFillColor(BACKGROUND)
        c.rect(0, 0, w, h, stroke=0, fill=1)

        # Title band
        c.setFillColor(ctx.primary_color)
        c.rect(0, h - COVER_TOP_BAND, w, COVER_TOP_BAND, stroke=0, fill=1)
        self._text(margin, h - COVER_TOP_BAND / 2.0 - 7, self.settings.app_name, 20, colors.white)

        # Title + underline
        title_y = h - COVER_TOP_BAND - 70
        title = truncate_tail(ctx.title, self.font, 30, w - 2 * margin)
        self._centered(title_y, title, 30)
        title_w = pdfmetrics.stringWidth(title, self.font, 30)
        c.setFillColor(ctx.primary_color)
        c.rect((w - title_w * 0.9) / 2.0, title_y - 14, title_w * 0.9, 2, stroke=0, fill=1)

        self._centered(title_y - 42, f"生成日期: {format_cn_date(ctx.generated_on)}", 14, DARK_GRAY)

        project_items = [
            ("项目名称", ctx.project_name),
            ("导演", ctx.director),
            ("制片", ctx.producer),
            ("开始日期", ctx.start_date),
            ("项目状态", ctx.status),
            ("照片数量", str(ctx.photo_count)),
        ]
        box_w, box_h, gap = 330.0, 190.0, 40.0
        box_top = title_y - 70
        if ctx.location is None:
            box = Rect((w - box_w) / 2.0, box_top - box_h, box_w, box_h)
            self._info_box(box, "项目信息", project_items)
        else:
            x0 = (w - (2 * box_w + gap)) / 2.0
            self._info_box(Rect(x0, box_top - box_h, box_w, box_h), "项目信息", project_items)
            location_items = [
                ("场地名称", ctx.location.name),
                ("场地类型", ctx.location.category),
                ("地址", ctx.location.address),
            ]
            self._info_box(
                Rect(x0 + box_w + gap, box_top - box_h, box_w, box_h), "场地信息", location_items
            )

        c.setFillColor(ctx.primary_color)
        c.rect(0, 0, w, COVER_BOTTOM_BAND, stroke=0, fill=1)

        self._draw_logo(
            Rect(
                w - margin - COVER_LOGO_SIZE,
                COVER_BOTTOM_BAND + 12,
                COVER_LOGO_SIZE,
                COVER_LOGO_SIZE,
            )
        )

    # ---- content page chrome ----
    def draw_header(self, text: str) -> None:
        c, w, h = self.c, self.width, self.height
        margin = self.settings.margin
        band = self.settings.header_height

        c.setFillColor(self.ctx.primary_color)
        c.rect(0, h - HEADER_STRIPE, w, HEADER_STRIPE, stroke=0, fill=1)

        logo_room = HEADER_LOGO_SIZE + 10 if self._logo else 0
        line = truncate_tail(text, self.font, 16, w - 2 * margin - logo_room)
        self._text(margin, h - band / 2.0 - 4, line, 16)

        c.setStrokeColor(self.ctx.primary_color)
        c.setLineWidth(0.5)
        c.line(margin, h - band + 10, w - margin, h - band + 10)

        self._draw_logo(
            Rect(
                w - margin - HEADER_LOGO_SIZE,
                h - band / 2.0 - HEADER_LOGO_SIZE / 2.0,
                HEADER_LOGO_SIZE,
                HEADER_LOGO_SIZE,
            )
        )

    def draw_footer(self, page_number: int, page_total: int) -> str:
        label = footer_label(page_number, page_total)
        baseline = self.settings.footer_height / 2.0 - 4
        self._centered(baseline, label, 10, DARK_GRAY)
        self.c.saveState()
        self._text(
            self.width - self.settings.margin - 30,
            baseline,
            self.settings.app_name,
            10,
            self.ctx.secondary_color,
        )
        self.c.restoreState()
        return label

    # ---- page bodies ----
    def draw_placeholder(self, header: str, message: str = NO_PHOTOS_MESSAGE) -> str:
        """Header, centered message and a "1 of 1" footer; returns the footer text."""
        s = self.settings
        self.draw_header(header)
        self._centered(s.content_bottom + s.content_height / 2.0, message, 16, DARK_GRAY)
        return self.draw_footer(1, 1)

    def draw_summary(self, header: str, sections: Sequence[Tuple[LocationInfo, int]]) -> str:
        """Project totals plus one line per location; returns the footer text."""
        s = self.settings
        margin = s.margin
        self.draw_header(header)

        total_photos = sum(n for _, n in sections)
        y = s.content_top - 40
        self._text(margin, y, "项目汇总", 18, self.ctx.primary_color)
        y -= 30
        self._text(margin, y, f"场地数量: {len(sections)}", 13)
        y -= 20
        self._text(margin, y, f"照片数量: {total_photos}", 13)
        y -= 32

        line_h = 17.0
        floor = s.content_bottom + 10
        max_w = self.width - 2 * margin
        for i, (location, count) in enumerate(sections):
            if y - line_h < floor and i < len(sections) - 1:
                self._text(margin, y, f"… 另有 {len(sections) - i} 个场地", 11, DARK_GRAY)
                break
            line = truncate_tail(summary_line(i + 1, location, count), self.font, 11, max_w)
            self._text(margin, y, line, 11)
            y -= line_h

        return self.draw_footer(1, 1)

    def draw_photo_cell(self, placed: PlacedPhoto) -> None:
        """Cell frame, aspect-fit image (when available) and the caption below it."""
        c = self.c
        cell = placed.cell

        c.saveState()
        c.setFillColor(colors.white)
        c.setStrokeColor(self.ctx.secondary_color)
        c.setStrokeAlpha(CELL_BORDER_ALPHA)
        c.setLineWidth(1)
        c.roundRect(cell.x - 4, cell.y - 4, cell.width + 8, cell.height + 8, 8, stroke=1, fill=1)
        c.restoreState()

        if placed.image is not None and placed.image_rect is not None:
            r = placed.image_rect
            c.drawImage(
                ImageReader(io.BytesIO(placed.image.data)),
                r.x,
                r.y,
                width=r.width,
                height=r.height,
            )

        x, y = placed.caption_anchor
        title = caption_title(placed.number, placed.photo, self.settings.timestamp_format)
        self._text(x, y, truncate_tail(title, self.font, CAPTION_FONT_SIZE, cell.width), CAPTION_FONT_SIZE)

        remaining = self.settings.caption_height - CAPTION_LINE_HEIGHT - 4
        y -= NOTE_LINE_HEIGHT + 2
        for line in note_lines(placed.photo.note, self.font, cell.width, remaining):
            self._text(x, y, line, NOTE_FONT_SIZE, DARK_GRAY)
            y -= NOTE_LINE_HEIGHT
