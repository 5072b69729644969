from __future__ import annotations
from typing import List

from .errors import RankerClosedError
from .models import MatchRecord, RankedReport, SLACK, TOP_N


def _by_size(rec: MatchRecord) -> int:
    return rec.size


class UnboundedRanker:
    """Keeps every record and sorts once at finalize.

    Used by the legacy whole-tree scan and as the reference the bounded
    ranker is checked against.
    """

    def __init__(self, top_n: int = TOP_N):
        self.top_n = top_n
        self._buf: List[MatchRecord] = []
        self._closed = False
        self.peak = 0

    def __len__(self) -> int:
        return len(self._buf)

    def offer(self, record: MatchRecord) -> None:
        if self._closed:
            raise RankerClosedError("offer() after finalize()")
        self._buf.append(record)
        if len(self._buf) > self.peak:
            self.peak = len(self._buf)

    def finalize(self) -> RankedReport:
        if self._closed:
            raise RankerClosedError("finalize() called twice")
        self._closed = True
        # list.sort is stable with reverse=True, so equal sizes keep arrival order
        self._buf.sort(key=_by_size, reverse=True)
        del self._buf[self.top_n:]
        return RankedReport(entries=tuple(self._buf))


class BoundedRanker(UnboundedRanker):
    """Top-N by size with at most ``top_n + slack`` records held at once.

    Once the buffer is full, the next offer first sorts it and cuts it back
    to ``top_n + slack - 1``; the kept prefix always contains the true top-N.
    """

    def __init__(self, top_n: int = TOP_N, slack: int = SLACK):
        super().__init__(top_n)
        self.slack = slack
        self.cap = top_n + slack
        self.truncations = 0

    def offer(self, record: MatchRecord) -> None:
        if not self._closed and len(self._buf) >= self.cap:
            self._buf.sort(key=_by_size, reverse=True)
            del self._buf[self.cap - 1:]
            self.truncations += 1
        super().offer(record)
