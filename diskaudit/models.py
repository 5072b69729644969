from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

MIN_AGE_DAYS = 30
SIZE_THRESHOLD = 500 * 1024 * 1024
TOP_N = 20
SLACK = 100

MODE_STREAMING = "streaming"
MODE_LEGACY = "legacy"
MODES = (MODE_STREAMING, MODE_LEGACY)


@dataclass(frozen=True)
class FileEntry:
    path: str
    size: int
    mtime: float


@dataclass(frozen=True)
class MatchRecord:
    path: str
    size: int
    reason: str


@dataclass(frozen=True)
class RankedReport:
    entries: Tuple[MatchRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def empty(self) -> bool:
        return not self.entries


@dataclass(frozen=True)
class ScanConfig:
    min_age_days: float = MIN_AGE_DAYS
    size_threshold: int = SIZE_THRESHOLD
    top_n: int = TOP_N
    slack: int = SLACK
    mode: str = MODE_STREAMING

    def __post_init__(self):
        if self.mode not in MODES:
            raise ValueError(f"unknown scan mode: {self.mode!r}")
        if self.top_n <= 0:
            raise ValueError("top_n must be positive")
        if self.slack <= 0:
            raise ValueError("slack must be positive")

    @property
    def size_gate(self) -> int:
        # legacy whole-tree mode classifies files of any size
        return self.size_threshold if self.mode == MODE_STREAMING else 0

    @property
    def min_age_sec(self) -> float:
        return self.min_age_days * 24 * 60 * 60


class ScanState(enum.Enum):
    IDLE = "idle"
    ENUMERATING = "enumerating"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ScanOutcome:
    root: str
    state: ScanState = ScanState.IDLE
    files_processed: int = 0
    eligible_count: int = 0   # passed size + age gates
    matched_count: int = 0
    skipped: int = 0
    report: Optional[RankedReport] = None
    error: Optional[str] = None
    elapsed_sec: float = 0.0
    backend_exit: Optional[int] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.state is ScanState.DONE

    @property
    def match_count(self) -> int:
        return self.eligible_count

    @property
    def files_per_sec(self) -> float:
        return self.files_processed / (self.elapsed_sec or 1)
