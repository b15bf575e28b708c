import json

import pytest
from loguru import logger

from flick_report import cli
from flick_report.log import find_latest_log_file
from flick_report.models import MultiLocationReport, ProjectStatus, SingleLocationReport


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger.remove()


def _manifest(tmp_path, jpeg_bytes, locations=1, **extra) -> str:
    photos_dir = tmp_path / "photos"
    photos_dir.mkdir()
    locs = []
    for i in range(locations):
        shots = []
        for j in range(2):
            name = f"l{i}_{j}.jpg"
            (photos_dir / name).write_bytes(jpeg_bytes(160, 90))
            shots.append({"id": f"l{i}p{j}", "path": f"photos/{name}", "taken_at": f"2026-10-0{j + 1}T08:30:00"})
        locs.append({"name": f"场地{i}", "address": "东港路 3 号", "category": "工业", "photos": shots})
    data = {
        "project": {"name": "长夜", "director": "王导", "start_date": "2026-03-01", "status": "production"},
        "generated_on": "2026-10-17",
        "locations": locs,
    }
    data.update(extra)
    path = tmp_path / "report.json"
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return str(path)


def test_load_manifest_single_location(tmp_path, jpeg_bytes) -> None:
    request = cli.load_manifest(cli.Path(_manifest(tmp_path, jpeg_bytes)))
    assert isinstance(request, SingleLocationReport)
    assert request.project.status is ProjectStatus.PRODUCTION
    assert [p.identifier for p in request.photos] == ["l0p0", "l0p1"]
    assert request.photos[0].source == tmp_path / "photos" / "l0_0.jpg"


def test_load_manifest_multi(tmp_path, jpeg_bytes) -> None:
    request = cli.load_manifest(cli.Path(_manifest(tmp_path, jpeg_bytes, locations=2)))
    assert isinstance(request, MultiLocationReport)
    assert len(request.entries) == 4


def test_load_manifest_rejects_bad_timestamp(tmp_path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(
        json.dumps(
            {
                "project": {"name": "x"},
                "locations": [{"name": "y", "photos": [{"path": "a.jpg", "taken_at": "yesterday"}]}],
            }
        ),
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="invalid timestamp"):
        cli.load_manifest(path)


def test_main_writes_pdf(tmp_path, jpeg_bytes, capsys) -> None:
    manifest = _manifest(tmp_path, jpeg_bytes)
    out = tmp_path / "out"
    code = cli.main(["--manifest", manifest, "--out", str(out), "--log-dir", str(tmp_path / "logs")])
    assert code == 0
    pdf = out / "长夜_场地0_20261017.pdf"
    assert pdf.exists()
    assert pdf.read_bytes().startswith(b"%PDF")
    assert "Saved PDF" in capsys.readouterr().out
    assert find_latest_log_file(tmp_path / "logs") is not None


def test_main_multi_flag(tmp_path, jpeg_bytes) -> None:
    manifest = _manifest(tmp_path, jpeg_bytes)
    out = tmp_path / "out"
    code = cli.main(["--manifest", manifest, "--out", str(out), "--multi", "--log-dir", str(tmp_path / "logs")])
    assert code == 0
    assert (out / "长夜_All_Locations_20261017.pdf").exists()


def test_main_reports_failure_for_unnamed_project(tmp_path, jpeg_bytes) -> None:
    manifest = _manifest(tmp_path, jpeg_bytes, project={"name": ""})
    out = tmp_path / "out"
    assert cli.main(["--manifest", manifest, "--out", str(out), "--log-dir", str(tmp_path / "logs")]) == 1
    assert not out.exists()


def test_main_missing_manifest(tmp_path, capsys) -> None:
    code = cli.main(["--manifest", str(tmp_path / "nope.json"), "--out", str(tmp_path), "--log-dir", str(tmp_path / "logs")])
    assert code == 1
    assert "Manifest not found" in capsys.readouterr().out
