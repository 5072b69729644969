from __future__ import annotations
import locale
import logging
import os
import re
import stat as statmod
import subprocess
import sys
from re import Pattern
from typing import Iterator, List, Optional

from .errors import EnumerationError
from .models import FileEntry, MODE_LEGACY, MODE_STREAMING

log = logging.getLogger(__name__)

IS_WINDOWS = sys.platform.startswith("win")

POSIX_DENYLIST = ("/proc", "/sys", "/dev", "/run")
WINDOWS_DENYLIST = ("System Volume Information", "$Recycle.Bin", "$WINDOWS.~BT")

POSIX_DENY_RE = re.compile(r"^(?:%s)(?:/|$)" % "|".join(re.escape(p) for p in POSIX_DENYLIST))
WINDOWS_DENY_RE = re.compile(
    r"[\\/](?:%s)(?:[\\/]|$)" % "|".join(re.escape(p) for p in WINDOWS_DENYLIST),
    re.IGNORECASE,
)


def default_deny() -> Pattern[str]:
    return WINDOWS_DENY_RE if IS_WINDOWS else POSIX_DENY_RE


class MetadataSource:
    """Lazy producer of FileEntry for regular files under a root.

    ``open(root)`` starts enumeration and returns an iterator; it raises
    EnumerationError when the backend cannot be started. Per-entry problems
    are counted in ``skipped`` and never raised.
    """

    name = "base"

    def __init__(self, deny: Optional[Pattern[str]] = None):
        self.deny = deny if deny is not None else default_deny()
        self.skipped = 0
        self.returncode: Optional[int] = None

    def open(self, root: str) -> Iterator[FileEntry]:
        raise NotImplementedError

    def excluded(self, path: str) -> bool:
        return self.deny.search(path) is not None

    def _check_root(self, root: str) -> str:
        root = os.path.abspath(root)
        if not os.path.isdir(root):
            raise EnumerationError(f"Cannot scan {root}: not a directory")
        return root


class CommandSource(MetadataSource):
    """Reads one file per output record from an external listing pipeline.

    Records end with ``separator``; newline-separated output also has a
    trailing ``\\r`` stripped.
    """

    encoding = "utf-8"
    separator = b"\n"
    read_size = 64 * 1024

    def command(self, root: str) -> List[List[str]]:
        raise NotImplementedError

    def parse_line(self, text: str) -> Optional[FileEntry]:
        raise NotImplementedError

    def open(self, root: str) -> Iterator[FileEntry]:
        root = self._check_root(root)
        self.skipped = 0
        self.returncode = None
        procs = self._launch(self.command(root))
        return self._stream(procs)

    def _launch(self, stages: List[List[str]]) -> List[subprocess.Popen]:
        procs: List[subprocess.Popen] = []
        upstream = None
        argv: List[str] = []
        try:
            for argv in stages:
                p = subprocess.Popen(argv, stdin=upstream, stdout=subprocess.PIPE,
                                     stderr=subprocess.DEVNULL)
                if upstream is not None:
                    upstream.close()
                procs.append(p)
                upstream = p.stdout
        except OSError as e:
            for p in procs:
                p.kill()
                p.wait()
            raise EnumerationError(f"Cannot execute command {argv[0] if argv else '?'}: {e}") from e
        log.debug("enumeration backend started: %s", " | ".join(" ".join(s) for s in stages))
        return procs

    def _records(self, out) -> Iterator[bytes]:
        if self.separator == b"\n":
            for raw in out:
                yield raw.rstrip(b"\r\n")
            return
        pending = b""
        for chunk in iter(lambda: out.read1(self.read_size), b""):
            pending += chunk
            *complete, pending = pending.split(self.separator)
            yield from complete
        if pending:
            yield pending

    def _stream(self, procs: List[subprocess.Popen]) -> Iterator[FileEntry]:
        out = procs[-1].stdout
        try:
            for raw in self._records(out):
                if not raw:
                    continue
                try:
                    text = raw.decode(self.encoding)
                except UnicodeDecodeError:
                    self.skipped += 1
                    log.debug("skipping undecodable path: %r", raw)
                    continue
                entry = self.parse_line(text)
                if entry is None:
                    self.skipped += 1
                    continue
                if self.excluded(entry.path):
                    continue
                yield entry
        finally:
            out.close()
            # closed pipe or non-zero exit is end-of-stream, not a scan failure
            codes = [p.wait() for p in procs]
            self.returncode = next((c for c in codes if c), 0)
            if self.returncode:
                log.warning("enumeration backend %s exited with status %s", self.name, self.returncode)


class PosixFindSource(CommandSource):
    """``find -xdev`` piped into ``xargs stat``; one NUL-terminated
    ``<size> <mtime> <path>`` record per file, so names may contain newlines."""

    name = "find+stat"
    separator = b"\0"
    stat_format = "%s %Y %n\\0"

    def command(self, root: str) -> List[List[str]]:
        prune: List[str] = ["("]
        for i, p in enumerate(POSIX_DENYLIST):
            if i:
                prune.append("-o")
            prune += ["-path", p]
        prune.append(")")
        find = ["find", root, "-xdev"] + prune + ["-prune", "-o", "-type", "f", "-print0"]
        return [find, ["xargs", "-0", "-r", "stat", "--printf", self.stat_format]]

    def parse_line(self, text: str) -> Optional[FileEntry]:
        parts = text.split(" ", 2)
        if len(parts) != 3 or not parts[2]:
            return None
        try:
            return FileEntry(path=parts[2], size=int(parts[0]), mtime=float(parts[1]))
        except ValueError:
            return None


def console_encoding() -> str:
    """Code page ``cmd`` uses when its output goes to a pipe (OEM, not ANSI)."""
    if not IS_WINDOWS:
        return locale.getpreferredencoding(False)
    import ctypes
    cp = ctypes.windll.kernel32.GetConsoleOutputCP()
    # 0 when no console is attached; cmd then falls back to the OEM code page
    return f"cp{cp}" if cp else "oem"


class WindowsDirSource(CommandSource):
    """``dir /s /b /a:-d``: bare paths, one per line; size and mtime come from lstat."""

    name = "dir"

    def __init__(self, deny: Optional[Pattern[str]] = None):
        super().__init__(deny if deny is not None else WINDOWS_DENY_RE)
        self.encoding = console_encoding()

    def command(self, root: str) -> List[List[str]]:
        return [["cmd", "/c", "dir", "/s", "/b", "/a:-d", root]]

    def parse_line(self, text: str) -> Optional[FileEntry]:
        path = text.strip()
        if not path:
            return None
        try:
            st = os.lstat(path)
        except OSError as e:
            log.debug("stat failed for %s: %s", path, e)
            return None
        if not statmod.S_ISREG(st.st_mode):
            return None
        return FileEntry(path=path, size=int(st.st_size), mtime=st.st_mtime)


def _decodable(path: str) -> bool:
    try:
        path.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class WalkSource(MetadataSource):
    """In-process ``os.scandir`` walk used by the legacy whole-tree mode.

    Skips symlinks, does not descend into directories on another device.
    """

    name = "scandir"

    def open(self, root: str) -> Iterator[FileEntry]:
        root = self._check_root(root)
        self.skipped = 0
        self.returncode = None
        try:
            dev = os.stat(root).st_dev
        except OSError as e:
            raise EnumerationError(f"Cannot stat {root}: {e}") from e
        return self._walk(root, dev)

    def _walk(self, root: str, dev: int) -> Iterator[FileEntry]:
        stack = [root]
        while stack:
            dir_path = stack.pop()
            try:
                with os.scandir(dir_path) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                self.skipped += 1
                log.debug("cannot access directory %s: %s", dir_path, e)
                continue

            subdirs: List[str] = []
            for entry in entries:
                if not _decodable(entry.path):
                    self.skipped += 1
                    continue
                if self.excluded(entry.path):
                    continue
                try:
                    if entry.is_symlink():
                        continue
                    st = entry.stat(follow_symlinks=False)
                except OSError as e:
                    self.skipped += 1
                    log.debug("stat failed for %s: %s", entry.path, e)
                    continue

                mode = st.st_mode
                if statmod.S_ISDIR(mode):
                    if st.st_dev == dev:
                        subdirs.append(entry.path)
                elif statmod.S_ISREG(mode):
                    yield FileEntry(path=entry.path, size=int(st.st_size), mtime=st.st_mtime)
            stack.extend(reversed(subdirs))
        self.returncode = 0


def default_source(mode: str = MODE_STREAMING) -> MetadataSource:
    if mode == MODE_LEGACY:
        return WalkSource()
    if mode != MODE_STREAMING:
        raise ValueError(f"unknown scan mode: {mode!r}")
    return WindowsDirSource() if IS_WINDOWS else PosixFindSource()
