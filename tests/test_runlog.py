from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import pytest

from diskaudit import runlog
from diskaudit.errors import LogBootstrapError
from diskaudit.runlog import close_logging, generate_run_id, setup_logging


def test_setup_creates_both_sinks(tmp_path: Path) -> None:
    logs = setup_logging(tmp_path / "log", "r1", echo=False)
    try:
        logs.logger.info("diagnostic line")
        logs.critical.info("report line")
    finally:
        close_logging(logs)

    assert "diagnostic line" in logs.log_file.read_text()
    critical = logs.critical_file.read_text()
    assert "CRITICALINFO report line" in critical
    assert "diagnostic line" not in critical


def test_failed_critical_sink_closes_diagnostics_handler(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    opened: list[logging.FileHandler] = []
    real_handler = logging.FileHandler

    def handler(path, encoding=None):
        if str(path).endswith(".criticalfile"):
            raise PermissionError(str(path))
        h = real_handler(path, encoding=encoding)
        opened.append(h)
        return h

    monkeypatch.setattr(runlog.logging, "FileHandler", handler)

    with pytest.raises(LogBootstrapError):
        setup_logging(tmp_path / "log", "r2", echo=False)

    assert len(opened) == 1
    assert opened[0].stream is None


def test_generate_run_id() -> None:
    run_id = generate_run_id(datetime(2024, 1, 2, 3, 4, 5))

    stamp, suffix = run_id.split("-")
    assert stamp == "20240102030405"
    assert len(suffix) == 8
