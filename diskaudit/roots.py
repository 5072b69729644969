from __future__ import annotations
import os
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import psutil

POSIX_CANDIDATES = ("/home", "/data", "/var", "/opt", "/usr", "/root", "/logs", "/rollouts")


@dataclass(frozen=True)
class RootInfo:
    mountpoint: str
    fstype: str = ""
    total: int = 0
    used: int = 0
    free: int = 0
    percent: float = 0.0


def _usage(path: str, fstype: str = "") -> RootInfo:
    try:
        u = psutil.disk_usage(path)
    except OSError:
        return RootInfo(mountpoint=path, fstype=fstype)
    return RootInfo(mountpoint=path, fstype=fstype, total=int(u.total), used=int(u.used),
                    free=int(u.free), percent=float(u.percent))


def list_roots(candidates: Optional[Sequence[str]] = None,
               windows: Optional[bool] = None) -> List[RootInfo]:
    """Scan roots present on this host, computed once per run.

    Windows: mounted drive letters. POSIX: the fixed candidate directories
    that exist.
    """
    if windows is None:
        windows = sys.platform.startswith("win")
    roots: List[RootInfo] = []
    if windows and candidates is None:
        seen = set()
        for p in psutil.disk_partitions(all=False):
            mp = p.mountpoint
            if not mp or not os.path.isdir(mp):
                continue
            mp_norm = os.path.abspath(mp)
            if mp_norm.lower() in seen:
                continue
            seen.add(mp_norm.lower())
            roots.append(_usage(mp_norm, p.fstype))
        roots.sort(key=lambda r: r.mountpoint.lower())
        return roots

    for path in (candidates if candidates is not None else POSIX_CANDIDATES):
        if os.path.isdir(path):
            roots.append(_usage(path))
    return roots


def select_root(roots: Sequence[RootInfo],
                input_fn: Callable[[str], str] = input,
                out: Callable[[str], None] = print) -> str:
    if not roots:
        raise ValueError("no scan roots available on this host")
    last = len(roots) - 1
    out("\nAvailable drives:")
    for i, r in enumerate(roots):
        out(f"[{i}] {r.mountpoint}")
    selection = input_fn("\nPlease select a drive number: ").strip()
    while not selection.isdigit() or int(selection) > last:
        selection = input_fn(f"Invalid selection. Please enter a number between 0 and {last}: ").strip()
    chosen = roots[int(selection)].mountpoint
    out(f"\nYou selected: {chosen}")
    return chosen
