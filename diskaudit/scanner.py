from __future__ import annotations
import logging
import os
import time
from typing import Callable, Optional

from .classifier import Classifier
from .errors import EnumerationError
from .models import MatchRecord, MODE_LEGACY, ScanConfig, ScanOutcome, ScanState
from .ranker import BoundedRanker, UnboundedRanker
from .sources import MetadataSource, default_source

log = logging.getLogger(__name__)

ProgressCb = Callable[[str, int, int], None]  # (current_path, files_processed, eligible)
PROGRESS_INTERVAL = 0.10


class Scanner:
    """Single pass: source -> size/age gate -> classifier -> ranker -> report.

    Everything the scan depends on is handed in at construction; ``scan()``
    can be called again after DONE or FAILED and starts over from IDLE.
    """

    def __init__(self,
                 source: Optional[MetadataSource] = None,
                 classifier: Optional[Classifier] = None,
                 config: Optional[ScanConfig] = None,
                 clock: Callable[[], float] = time.time,
                 progress: Optional[ProgressCb] = None):
        self.config = config or ScanConfig()
        self.source = source if source is not None else default_source(self.config.mode)
        self.classifier = classifier or Classifier()
        self.clock = clock
        self.progress = progress
        self.state = ScanState.IDLE

    def _new_ranker(self):
        cfg = self.config
        if cfg.mode == MODE_LEGACY:
            return UnboundedRanker(cfg.top_n)
        return BoundedRanker(cfg.top_n, cfg.slack)

    def scan(self, root: str) -> ScanOutcome:
        self.state = ScanState.IDLE
        cfg = self.config
        outcome = ScanOutcome(root=root)
        ranker = self._new_ranker()
        t0 = time.time()

        try:
            entries = self.source.open(root)
        except EnumerationError as e:
            self.state = outcome.state = ScanState.FAILED
            outcome.error = str(e)
            outcome.elapsed_sec = time.time() - t0
            log.error("scan of %s failed: %s", root, e)
            return outcome

        self.state = outcome.state = ScanState.ENUMERATING
        log.info("enumerating %s with %s backend (mode=%s)", root, self.source.name, cfg.mode)

        try:
            self._consume(entries, outcome, ranker)
            self.state = outcome.state = ScanState.FINALIZING
            outcome.report = ranker.finalize()
        except Exception:
            self.state = outcome.state = ScanState.FAILED
            log.error("scan of %s aborted after %d files", root, outcome.files_processed)
            raise

        outcome.skipped = self.source.skipped
        outcome.backend_exit = self.source.returncode
        outcome.elapsed_sec = time.time() - t0
        self.state = outcome.state = ScanState.DONE
        log.info("scan of %s done: processed=%d eligible=%d matched=%d skipped=%d elapsed=%.2fs",
                 root, outcome.files_processed, outcome.eligible_count,
                 outcome.matched_count, outcome.skipped, outcome.elapsed_sec)
        return outcome

    def _consume(self, entries, outcome: ScanOutcome, ranker) -> None:
        cfg = self.config
        now = self.clock()
        size_gate = cfg.size_gate
        min_age = cfg.min_age_sec
        last_emit = 0.0

        for entry in entries:
            outcome.files_processed += 1
            if self.progress:
                t = time.time()
                if t - last_emit >= PROGRESS_INTERVAL:
                    last_emit = t
                    self.progress(entry.path, outcome.files_processed, outcome.eligible_count)

            # cheap rejections first
            if entry.size < size_gate:
                continue
            if now - entry.mtime < min_age:
                continue
            outcome.eligible_count += 1

            matched, reason = self.classifier.classify(entry.path, os.path.dirname(entry.path))
            if not matched:
                continue
            outcome.matched_count += 1
            ranker.offer(MatchRecord(path=entry.path, size=entry.size, reason=reason))
