import json

import pytest

from flick_report.settings import (
    DEFAULT_SETTINGS,
    JsonSettings,
    RenderSettings,
    load_settings,
    validate_settings,
)


def _write(tmp_path, data) -> str:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_defaults_match_report_geometry() -> None:
    s = DEFAULT_SETTINGS
    assert (s.page_width, s.page_height) == (841.8, 595.2)
    assert (s.margin, s.header_height, s.footer_height) == (50, 80, 40)
    assert (s.cell_width, s.cell_height, s.items_per_page) == (250, 400, 3)
    assert (s.cell_spacing, s.caption_height) == (30, 60)
    assert (s.quality_ceiling, s.size_threshold, s.fallback_quality_factor) == (0.4, 300_000, 0.7)
    assert s.max_dimension == 800


def test_derived_geometry() -> None:
    s = DEFAULT_SETTINGS
    assert s.content_height == pytest.approx(475.2)
    assert s.row_width(3) == 810
    assert s.row_width(0) == 0
    assert s.row_bottom == pytest.approx(47.6)


def test_load_settings_without_file_returns_defaults() -> None:
    assert load_settings(None) is DEFAULT_SETTINGS


def test_load_settings_overrides_and_coerces(tmp_path) -> None:
    path = _write(
        tmp_path,
        {"report": {"max_dimension": "1024", "size_threshold": 250000, "quality_ceiling": 0.5, "bogus": 1}},
    )
    s = load_settings(path)
    assert s.max_dimension == 1024
    assert s.size_threshold == 250_000
    assert s.quality_ceiling == 0.5
    assert s.cell_width == DEFAULT_SETTINGS.cell_width


def test_invalid_values_keep_defaults(tmp_path) -> None:
    path = _write(tmp_path, {"report": {"max_dimension": "large", "items_per_page": True}})
    s = load_settings(path)
    assert s.max_dimension == DEFAULT_SETTINGS.max_dimension
    assert s.items_per_page == DEFAULT_SETTINGS.items_per_page


def test_fractional_values_for_whole_number_fields_are_ignored(tmp_path) -> None:
    path = _write(tmp_path, {"report": {"items_per_page": 2.7, "size_threshold": 250000.0, "max_dimension": "640.5"}})
    s = load_settings(path)
    assert s.items_per_page == DEFAULT_SETTINGS.items_per_page
    assert s.max_dimension == DEFAULT_SETTINGS.max_dimension
    assert s.size_threshold == 250_000


def test_unusable_geometry_is_rejected(tmp_path) -> None:
    with pytest.raises(ValueError):
        load_settings(_write(tmp_path, {"report": {"cell_height": 600}}))
    with pytest.raises(ValueError):
        validate_settings(RenderSettings(items_per_page=4))
    with pytest.raises(ValueError):
        validate_settings(RenderSettings(quality_ceiling=0))


def test_json_settings_dotted_keys(tmp_path) -> None:
    settings = JsonSettings(_write(tmp_path, {"report": {"font_name": "STSong-Light"}}))
    assert settings.get("report.font_name") == "STSong-Light"
    assert settings.get("report.missing", 7) == 7
    assert settings.get("nope.deeper") is None


def test_missing_settings_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        JsonSettings(tmp_path / "absent.json")
