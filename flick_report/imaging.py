"""Image decoding and the size-bounded JPEG compression pipeline."""

from __future__ import annotations

import io
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Protocol

from loguru import logger
from PIL import Image, ImageOps, UnidentifiedImageError

from flick_report.models import ImageSource
from flick_report.settings import DEFAULT_SETTINGS, RenderSettings


class RasterImage(Protocol):
    """Minimal bitmap capability the pipeline and layout depend on."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def resized(self, width: int, height: int) -> "RasterImage": ...

    def reencode(self, quality: float) -> Optional[bytes]: ...


@dataclass(frozen=True)
class CompressedImage:
    width: int
    height: int
    data: bytes


def jpeg_quality(quality: float) -> int:
    """Map a (0, 1] quality to Pillow's JPEG scale, clamped to 1..95."""
    return max(1, min(95, int(round(quality * 100))))


class PillowRaster:
    """`RasterImage` over a decoded Pillow image."""

    def __init__(self, image: Image.Image) -> None:
        self._image = image

    @property
    def width(self) -> int:
        return self._image.width

    @property
    def height(self) -> int:
        return self._image.height

    @property
    def image(self) -> Image.Image:
        return self._image

    def resized(self, width: int, height: int) -> "PillowRaster":
        return PillowRaster(self._image.resize((max(1, width), max(1, height)), Image.LANCZOS))

    def reencode(self, quality: float) -> Optional[bytes]:
        im = self._image
        if im.mode != "RGB":
            im = im.convert("RGB")
        buf = io.BytesIO()
        try:
            im.save(buf, format="JPEG", quality=jpeg_quality(quality), optimize=True)
        except (OSError, ValueError) as ex:
            logger.warning("JPEG encode failed at quality {:.2f}: {}", quality, ex)
            return None
        return buf.getvalue()

    def close(self) -> None:
        self._image.close()


def _open_source(source: ImageSource) -> Image.Image:
    if isinstance(source, (bytes, bytearray)):
        return Image.open(io.BytesIO(source))
    return Image.open(Path(source))


def _flatten_to_rgb(im: Image.Image) -> Image.Image:
    """RGB copy of `im`; transparent areas are composited onto white."""
    if im.mode == "RGBA":
        return _onto_white(im)
    if im.mode == "LA" or (im.mode == "P" and "transparency" in im.info):
        rgba = im.convert("RGBA")
        try:
            return _onto_white(rgba)
        finally:
            rgba.close()
    return im.convert("RGB")


def _onto_white(rgba: Image.Image) -> Image.Image:
    bg = Image.new("RGB", rgba.size, (255, 255, 255))
    bg.paste(rgba, mask=rgba.getchannel("A"))
    return bg


@contextmanager
def open_raster(source: Optional[ImageSource]) -> Iterator[Optional[PillowRaster]]:
    """Decode `source` for the duration of the block; yields None when undecodable.

    Every bitmap opened here is closed on exit.
    """
    if source is None:
        yield None
        return
    opened: list[Image.Image] = []
    raster: Optional[PillowRaster] = None
    try:
        try:
            im = _open_source(source)
            opened.append(im)
            upright = ImageOps.exif_transpose(im)
            if upright is not im:
                opened.append(upright)
            rgb = _flatten_to_rgb(upright)
            opened.append(rgb)
            raster = PillowRaster(rgb)
        except (OSError, ValueError, UnidentifiedImageError, Image.DecompressionBombError) as ex:
            logger.warning("Could not decode image: {}", ex)
            raster = None
        yield raster
    finally:
        for im in opened:
            im.close()


def scaled_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Uniformly scale so the longer side equals `max_dimension`; unchanged if within it."""
    longest = max(width, height)
    if longest <= max_dimension:
        return width, height
    scale = max_dimension / float(longest)
    return max(1, int(round(width * scale))), max(1, int(round(height * scale)))


def compress(
    raster: RasterImage,
    quality_ceiling: float,
    settings: RenderSettings = DEFAULT_SETTINGS,
) -> Optional[CompressedImage]:
    """Downscale, encode at the capped quality, and retry once smaller if over budget.

    Returns None when encoding fails; the source raster is not modified.
    """
    if not 0 < quality_ceiling <= 1:
        raise ValueError(f"quality ceiling must be in (0, 1], got {quality_ceiling}")

    work = raster
    w, h = scaled_size(raster.width, raster.height, settings.max_dimension)
    if (w, h) != (raster.width, raster.height):
        work = raster.resized(w, h)

    try:
        quality = min(quality_ceiling, settings.quality_ceiling)
        data = work.reencode(quality)
        if data is None:
            return None

        if len(data) > settings.size_threshold:
            fallback_quality = quality * settings.fallback_quality_factor
            logger.debug(
                "Encoded {} bytes > {}; re-encoding at {:.2f}",
                len(data),
                settings.size_threshold,
                fallback_quality,
            )
            # Single fallback attempt; its result is used even if still over budget
            data = work.reencode(fallback_quality)
            if data is None:
                return None

        return CompressedImage(width=work.width, height=work.height, data=data)
    finally:
        if work is not raster and isinstance(work, PillowRaster):
            work.close()


def compress_source(
    source: Optional[ImageSource],
    quality_ceiling: float,
    settings: RenderSettings = DEFAULT_SETTINGS,
) -> Optional[CompressedImage]:
    """Decode and compress in one scope; decoded bitmaps are released before returning."""
    with open_raster(source) as raster:
        if raster is None:
            return None
        return compress(raster, quality_ceiling, settings)
