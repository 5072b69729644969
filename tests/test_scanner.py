from __future__ import annotations

from typing import Iterator

import pytest

from diskaudit.classifier import REASON_BACKUP, REASON_INSTALL
from diskaudit.errors import EnumerationError
from diskaudit.models import (
    MODE_LEGACY,
    SIZE_THRESHOLD,
    FileEntry,
    ScanConfig,
    ScanState,
)
from diskaudit.report import NO_MATCHES, render_report
from diskaudit.scanner import Scanner
from diskaudit.sources import MetadataSource

NOW = 1_700_000_000.0
DAY = 24 * 60 * 60
MIB = 1024 * 1024


class ListSource(MetadataSource):
    name = "list"

    def __init__(self, entries: list[FileEntry]) -> None:
        super().__init__()
        self.entries = entries

    def open(self, root: str) -> Iterator[FileEntry]:
        return iter(self.entries)


class BrokenSource(MetadataSource):
    name = "broken"

    def open(self, root: str) -> Iterator[FileEntry]:
        raise EnumerationError("Cannot execute command find: not found")


class FlakySource(MetadataSource):
    """Yields one entry, then the listing breaks."""

    name = "flaky"

    def open(self, root: str) -> Iterator[FileEntry]:
        yield _entry("/data/BKP/a.dat")
        raise OSError("pipe broke")


def _entry(path: str, size: int = SIZE_THRESHOLD, age_days: float = 40) -> FileEntry:
    return FileEntry(path=path, size=size, mtime=NOW - age_days * DAY)


def _scan(entries: list[FileEntry], config: ScanConfig | None = None):
    scanner = Scanner(source=ListSource(entries), config=config, clock=lambda: NOW)
    return scanner, scanner.scan("/data")


def test_end_to_end_scenario() -> None:
    _, outcome = _scan(
        [
            _entry("/data/DSC_old.bak", size=600 * MIB, age_days=40),
            _entry("/data/report_2020.BKP", size=10 * MIB, age_days=40),
            _entry("/data/current.tmp", size=600 * MIB, age_days=2),
        ]
    )

    assert outcome.state is ScanState.DONE
    assert [(r.path, r.reason) for r in outcome.report] == [("/data/DSC_old.bak", REASON_INSTALL)]
    assert outcome.files_processed == 3
    assert outcome.match_count == 1


def test_age_gate_boundary() -> None:
    _, outcome = _scan(
        [
            _entry("/data/BKP/29days.dat", age_days=29),
            _entry("/data/BKP/30days.dat", age_days=30),
        ]
    )

    assert [r.path for r in outcome.report] == ["/data/BKP/30days.dat"]


def test_size_gate_boundary() -> None:
    _, outcome = _scan(
        [
            _entry("/data/BKP/under.dat", size=SIZE_THRESHOLD - 1),
            _entry("/data/BKP/exact.dat", size=SIZE_THRESHOLD),
        ]
    )

    assert [r.path for r in outcome.report] == ["/data/BKP/exact.dat"]
    assert outcome.eligible_count == 1


def test_eligible_count_includes_unmatched_files() -> None:
    _, outcome = _scan(
        [
            _entry("/data/movie.mkv"),
            _entry("/data/BKP/db.dat"),
        ]
    )

    assert outcome.eligible_count == 2
    assert outcome.matched_count == 1


def test_rule_priority_through_scan() -> None:
    _, outcome = _scan([_entry("/srv/MOCA/bin/backup_core.dmp")])

    assert [r.reason for r in outcome.report] == [REASON_BACKUP]


def test_report_is_top_20_descending() -> None:
    entries = [_entry(f"/data/BKP/f{i}.dat", size=SIZE_THRESHOLD + i) for i in range(250)]

    _, outcome = _scan(entries)

    sizes = [r.size for r in outcome.report]
    assert len(sizes) == 20
    assert sizes == sorted(sizes, reverse=True)
    assert sizes[0] == SIZE_THRESHOLD + 249
    assert outcome.matched_count == 250


def test_no_matches() -> None:
    _, outcome = _scan([_entry("/data/movie.mkv", age_days=1)])

    assert outcome.ok
    assert outcome.report.empty
    assert render_report(outcome.report) == [NO_MATCHES]


def test_empty_tree() -> None:
    _, outcome = _scan([])

    assert outcome.report.empty
    assert outcome.files_processed == 0


def test_backend_failure() -> None:
    scanner = Scanner(source=BrokenSource(), clock=lambda: NOW)

    outcome = scanner.scan("/data")

    assert outcome.state is ScanState.FAILED
    assert scanner.state is ScanState.FAILED
    assert outcome.report is None
    assert outcome.match_count == 0
    assert "Cannot execute" in outcome.error


def test_scan_restarts_from_idle() -> None:
    scanner, first = _scan([_entry("/data/BKP/a.dat")])
    second = scanner.scan("/data")

    assert scanner.state is ScanState.DONE
    assert first.report == second.report
    assert first is not second


def test_legacy_mode_has_no_size_gate() -> None:
    entries = [_entry("/data/report_2020.BKP", size=10 * MIB)]

    _, streaming = _scan(entries)
    _, legacy = _scan(entries, ScanConfig(mode=MODE_LEGACY))

    assert streaming.report.empty
    assert [r.path for r in legacy.report] == ["/data/report_2020.BKP"]


def test_custom_thresholds() -> None:
    config = ScanConfig(min_age_days=1, size_threshold=0, top_n=2)
    entries = [_entry(f"/data/BKP/f{i}", size=i, age_days=2) for i in range(5)]

    _, outcome = _scan(entries, config)

    assert [r.size for r in outcome.report] == [4, 3]


def test_progress_callback() -> None:
    calls: list[tuple[str, int, int]] = []
    scanner = Scanner(
        source=ListSource([_entry("/data/BKP/a.dat")]),
        clock=lambda: NOW,
        progress=lambda path, files, eligible: calls.append((path, files, eligible)),
    )

    scanner.scan("/data")

    assert calls == [("/data/BKP/a.dat", 1, 0)]


def test_error_during_enumeration_leaves_failed_state() -> None:
    scanner = Scanner(source=FlakySource(), clock=lambda: NOW)

    with pytest.raises(OSError, match="pipe broke"):
        scanner.scan("/data")

    assert scanner.state is ScanState.FAILED


def test_classifier_error_leaves_failed_state() -> None:
    class BrokenClassifier:
        def classify(self, path: str, parent_dir: str) -> tuple[bool, str]:
            raise ValueError("bad rule")

    scanner = Scanner(source=ListSource([_entry("/data/BKP/a.dat")]), classifier=BrokenClassifier(), clock=lambda: NOW)

    with pytest.raises(ValueError):
        scanner.scan("/data")

    assert scanner.state is ScanState.FAILED
