from __future__ import annotations
import atexit
import logging
import os
from pathlib import Path
from typing import Optional

import psutil

from .errors import LockError

log = logging.getLogger(__name__)


class ExclusiveLock:
    """Pid lock file created with O_EXCL.

    A lock left behind by a process that no longer exists is treated as
    stale and taken over. ``acquire`` registers an atexit hook so the file
    is removed even when the run ends early.
    """

    def __init__(self, path):
        self.path = Path(path)
        self.held = False
        self._hooked = False

    def _owner(self) -> Optional[int]:
        try:
            return int(self.path.read_text().strip() or 0) or None
        except (OSError, ValueError):
            return None

    def _create(self) -> bool:
        try:
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        return True

    def acquire(self) -> bool:
        if self.held:
            return True
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            ok = self._create()
            if not ok:
                pid = self._owner()
                if pid is not None and psutil.pid_exists(pid):
                    log.info("lock %s is held by running pid %s", self.path, pid)
                    return False
                log.warning("removing stale lock %s (pid=%s)", self.path, pid)
                self.path.unlink()
                ok = self._create()
        except OSError as e:
            raise LockError(f"Cannot create lock file {self.path}: {e}") from e
        if not ok:
            return False
        self.held = True
        if not self._hooked:
            atexit.register(self.release)
            self._hooked = True
        log.debug("lock acquired: %s", self.path)
        return True

    def release(self) -> None:
        if not self.held:
            return
        self.held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning("could not remove lock %s: %s", self.path, e)
        log.debug("lock released: %s", self.path)

    def __enter__(self):
        if not self.acquire():
            raise LockError(f"Could not acquire lock {self.path}. Another instance may be running.")
        return self

    def __exit__(self, *exc):
        self.release()
        return False
