"""Grid layout: pagination and aspect-fit placement of photos in a single row.

Coordinates are PDF points with the origin at the bottom-left of the page.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from loguru import logger
from reportlab.pdfbase.pdfmetrics import stringWidth

from flick_report.imaging import CompressedImage, compress_source
from flick_report.models import PhotoRecord
from flick_report.settings import DEFAULT_SETTINGS, RenderSettings

ELLIPSIS = "…"
NOTE_PREFIX = "备注: "

CAPTION_FONT_SIZE = 11.0
NOTE_FONT_SIZE = 9.5
CAPTION_LINE_HEIGHT = 16.0
NOTE_LINE_HEIGHT = 12.0


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def top(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0


@dataclass(frozen=True)
class PlacedPhoto:
    number: int  # 1-based position within the section
    photo: PhotoRecord
    cell: Rect
    image_rect: Optional[Rect]
    image: Optional[CompressedImage]
    caption_anchor: Tuple[float, float]  # left x, baseline y of the first caption line


Loader = Callable[[PhotoRecord], Optional[CompressedImage]]


def page_count(total: int, per_page: int) -> int:
    if per_page < 1:
        raise ValueError("per_page must be >= 1")
    if total <= 0:
        return 0
    return math.ceil(total / per_page)


def page_slice(photos: Sequence[PhotoRecord], page_index: int, per_page: int) -> Sequence[PhotoRecord]:
    """Photos at indices [k*per_page, min((k+1)*per_page, n) - 1]."""
    if page_index < 0 or page_index >= page_count(len(photos), per_page):
        raise IndexError(f"page {page_index} out of range for {len(photos)} photos")
    start = page_index * per_page
    return photos[start : min(start + per_page, len(photos))]


def cell_rects(count: int, settings: RenderSettings = DEFAULT_SETTINGS) -> List[Rect]:
    """Image cells for a row of `count` photos, centered horizontally on the page.

    The row (image cell plus caption band) is centered vertically in the band
    between header and footer; captions sit below their cells.
    """
    x = (settings.page_width - settings.row_width(count)) / 2.0
    y = settings.row_bottom + settings.caption_height
    rects = []
    for _ in range(count):
        rects.append(Rect(x, y, settings.cell_width, settings.cell_height))
        x += settings.cell_width + settings.cell_spacing
    return rects


def fit_rect(image_width: float, image_height: float, cell: Rect) -> Rect:
    """Aspect-fit ("contain") the image into `cell`, centered on the free axis."""
    if image_width <= 0 or image_height <= 0:
        raise ValueError("image dimensions must be positive")
    image_aspect = image_width / image_height
    cell_aspect = cell.width / cell.height
    if image_aspect > cell_aspect:
        w = cell.width
        h = w / image_aspect
        return Rect(cell.x, cell.y + (cell.height - h) / 2.0, w, h)
    h = cell.height
    w = h * image_aspect
    return Rect(cell.x + (cell.width - w) / 2.0, cell.y, w, h)


def default_loader(settings: RenderSettings) -> Loader:
    def load(photo: PhotoRecord) -> Optional[CompressedImage]:
        return compress_source(photo.source, settings.quality_ceiling, settings)

    return load


def layout_page(
    photos: Sequence[PhotoRecord],
    page_index: int,
    settings: RenderSettings = DEFAULT_SETTINGS,
    load: Optional[Loader] = None,
) -> Iterator[PlacedPhoto]:
    """Yield the placed photos of one grid page, one slot at a time.

    `photos` is the whole sorted section; slot numbers continue across pages.
    A slot whose image cannot be decoded or encoded is yielded with no image.
    """
    load = load or default_loader(settings)
    per_page = settings.items_per_page
    chunk = page_slice(photos, page_index, per_page)
    cells = cell_rects(len(chunk), settings)
    caption_top = settings.row_bottom + settings.caption_height
    for offset, (photo, cell) in enumerate(zip(chunk, cells)):
        number = page_index * per_page + offset + 1
        try:
            image = load(photo)
        except Exception as ex:  # per-photo failures never abort the page
            logger.warning("Photo {} could not be processed: {}", photo.identifier, ex)
            image = None
        image_rect = fit_rect(image.width, image.height, cell) if image else None
        yield PlacedPhoto(
            number=number,
            photo=photo,
            cell=cell,
            image_rect=image_rect,
            image=image,
            caption_anchor=(cell.x, caption_top - CAPTION_LINE_HEIGHT),
        )


# =========================
# Caption text
# =========================
def caption_title(number: int, photo: PhotoRecord, timestamp_format: str) -> str:
    return f"{number}. {photo.taken_at.strftime(timestamp_format)}"


def truncate_tail(text: str, font_name: str, font_size: float, max_width: float) -> str:
    """Cut `text` from the end, appending an ellipsis, until it fits `max_width`."""
    if stringWidth(text, font_name, font_size) <= max_width:
        return text
    cut = text
    while cut and stringWidth(cut + ELLIPSIS, font_name, font_size) > max_width:
        cut = cut[:-1]
    return cut.rstrip() + ELLIPSIS if cut else ""


def wrap_text(text: str, font_name: str, font_size: float, max_width: float) -> List[str]:
    """Greedy per-character wrap; suits CJK text that has no spaces to break on."""
    lines: List[str] = []
    for paragraph in text.splitlines() or [""]:
        cur = ""
        for ch in paragraph:
            if cur and stringWidth(cur + ch, font_name, font_size) > max_width:
                lines.append(cur)
                cur = ch.lstrip()
            else:
                cur += ch
        lines.append(cur)
    return lines


def note_lines(
    note: Optional[str],
    font_name: str,
    max_width: float,
    available_height: float,
) -> List[str]:
    """Lines of "备注: note" that fit `available_height`; the last one tail-truncated."""
    text = (note or "").strip()
    if not text:
        return []
    max_lines = int(available_height // NOTE_LINE_HEIGHT)
    if max_lines <= 0:
        return []
    lines = wrap_text(NOTE_PREFIX + text, font_name, NOTE_FONT_SIZE, max_width)
    if len(lines) <= max_lines:
        return lines
    kept = lines[:max_lines]
    # Mark the cut even when the kept text would fit
    last = kept[-1]
    while last and stringWidth(last + ELLIPSIS, font_name, NOTE_FONT_SIZE) > max_width:
        last = last[:-1]
    kept[-1] = last + ELLIPSIS
    return kept
