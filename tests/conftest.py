import datetime as dt
import io
from typing import Callable, Optional

import pytest
from PIL import Image

from flick_report.composers import register_fonts
from flick_report.models import LocationInfo, PhotoRecord, ProjectInfo
from flick_report.settings import DEFAULT_SETTINGS

BASE_TIME = dt.datetime(2026, 10, 1, 9, 0)


@pytest.fixture(scope="session", autouse=True)
def registered_font() -> str:
    return register_fonts(DEFAULT_SETTINGS)


def encode_jpeg(width: int, height: int, color=(90, 140, 200)) -> bytes:
    im = Image.new("RGB", (width, height), color=color)
    buf = io.BytesIO()
    try:
        im.save(buf, format="JPEG", quality=85)
    finally:
        im.close()
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes() -> Callable[..., bytes]:
    return encode_jpeg


@pytest.fixture
def make_photo() -> Callable[..., PhotoRecord]:
    def _make(
        index: int,
        minutes: Optional[int] = None,
        note: Optional[str] = None,
        source: Optional[bytes] = None,
    ) -> PhotoRecord:
        return PhotoRecord(
            identifier=f"p{index}",
            source=source if source is not None else encode_jpeg(120, 80),
            taken_at=BASE_TIME + dt.timedelta(minutes=index if minutes is None else minutes),
            note=note,
        )

    return _make


@pytest.fixture
def project() -> ProjectInfo:
    return ProjectInfo(
        name="长夜",
        director="王导",
        producer="李制片",
        start_date=dt.date(2026, 3, 1),
        theme_color="#3366FF",
    )


@pytest.fixture
def old_town() -> LocationInfo:
    return LocationInfo(name="老街区", address="西城区前门大街 12 号", category="街道")
