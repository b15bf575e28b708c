"""Logging initialization using loguru."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def get_log_directory() -> Path:
    return Path.home() / ".flick" / "logs"


def init_logging(log_dir: Optional[str | Path] = None, level: str = "INFO") -> Path:
    """Send logs to stderr and a rotating file under `log_dir`; returns the directory."""
    log_path = Path(log_dir) if log_dir is not None else get_log_directory()
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=level)
    logger.add(
        str(log_path / "report_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level=level,
    )
    return log_path


def find_latest_log_file(log_dir: Optional[str | Path] = None) -> Optional[Path]:
    """Most recently modified report log in `log_dir`, if any."""
    log_path = Path(log_dir) if log_dir is not None else get_log_directory()
    try:
        log_files = list(log_path.glob("report_*.log"))
    except OSError:
        return None
    if not log_files:
        return None
    return max(log_files, key=lambda p: p.stat().st_mtime)
