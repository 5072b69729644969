from __future__ import annotations

import argparse
import logging
import socket
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path

from diskaudit import __version__
from diskaudit.errors import LockError, LogBootstrapError
from diskaudit.lockfile import ExclusiveLock
from diskaudit.models import MIN_AGE_DAYS, MODES, MODE_STREAMING, SIZE_THRESHOLD, TOP_N, ScanConfig
from diskaudit.report import emit_report
from diskaudit.roots import list_roots, select_root
from diskaudit.runlog import RunLogs, close_logging, generate_run_id, setup_logging
from diskaudit.scanner import Scanner
from diskaudit.utils import MIB, parse_mib

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_LOG_BOOTSTRAP = 63
EXIT_LOCK = 69

DEFAULT_LOCK_FILE = Path(tempfile.gettempdir()) / "diskaudit.lock"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diskaudit",
        description=(
            "Find the largest old backup, dump and hotfix files under a directory tree. "
            "Read-only: nothing is deleted."
        ),
    )
    parser.add_argument("--root", default=None, help="Directory to scan (prompted when omitted)")
    parser.add_argument(
        "--mode",
        choices=MODES,
        default=MODE_STREAMING,
        help="streaming: bulk listing backend with size gate; legacy: in-process walk, no size gate",
    )
    parser.add_argument(
        "--min-age-days",
        type=float,
        default=MIN_AGE_DAYS,
        help=f"Minimum file age in days (default {MIN_AGE_DAYS})",
    )
    parser.add_argument(
        "--size-threshold-mb",
        type=parse_mib,
        default=SIZE_THRESHOLD,
        help=f"Minimum file size in MiB for streaming mode (default {SIZE_THRESHOLD // MIB})",
    )
    parser.add_argument("--top", type=int, default=TOP_N, help=f"Report size (default {TOP_N})")
    parser.add_argument("--run-id", "--run_id", dest="run_id", default=None, help="Run identifier from a wrapper")
    parser.add_argument("--log-dir", default=None, help="Log directory (default ./log)")
    parser.add_argument("--lock-file", default=str(DEFAULT_LOCK_FILE), help="Exclusive lock file path")
    parser.add_argument("--verbose", action="store_true", help="Log skipped entries and backend details")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Iterable[str] | None = None, input_fn: Callable[[str], str] = input) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        config = ScanConfig(
            min_age_days=args.min_age_days,
            size_threshold=args.size_threshold_mb,
            top_n=args.top,
            mode=args.mode,
        )
    except ValueError as e:
        parser.error(str(e))

    run_id = args.run_id
    if run_id:
        print(f"Captured run_id: {run_id}")
    else:
        run_id = generate_run_id()
        print(f"Not received 'run_id' from wrapper. Generated run id: {run_id}")

    log_dir = Path(args.log_dir) if args.log_dir else Path.cwd() / "log"
    try:
        logs = setup_logging(log_dir, run_id, level=logging.DEBUG if args.verbose else logging.INFO)
    except LogBootstrapError as e:
        print(str(e))
        return EXIT_LOG_BOOTSTRAP

    log = logs.logger
    lock = ExclusiveLock(args.lock_file)
    try:
        log.info("Acquiring the lock before starting the script")
        try:
            acquired = lock.acquire()
        except LockError as e:
            log.error("%s", e)
            acquired = False
        if not acquired:
            log.error("Could not acquire lock. Another instance of the script may be running.")
            print(f"Could not acquire lock {args.lock_file}. Another instance may be running.")
            return EXIT_LOCK
        return _run(args, config, logs, input_fn)
    except Exception as e:
        print(f"Error occurred: {e}")
        log.exception("Script failed: %s", e)
        return EXIT_FAILURE
    finally:
        lock.release()
        close_logging(logs)


def _run(args: argparse.Namespace, config: ScanConfig, logs: RunLogs,
         input_fn: Callable[[str], str]) -> int:
    log = logs.logger
    log.info("Starting diskaudit, version %s", __version__)
    log.info("Running on host: %s", socket.gethostname())

    root = args.root
    if root is None:
        roots = list_roots()
        log.info("Available drives/mount points: %s", ", ".join(r.mountpoint for r in roots))
        root = select_root(roots, input_fn=input_fn)

    print(f"Starting analysis of {root}. This may take several minutes for large drives...")
    log.info("Starting scan of %s", root)
    outcome = Scanner(config=config).scan(root)
    if not outcome.ok:
        print(f"Error occurred: {outcome.error}")
        log.error("Script failed: %s", outcome.error)
        return EXIT_FAILURE

    emit_report(outcome.report, logs.critical)
    log.info(
        "Processed %d files (%d eligible, %d matched) in %.2fs, %.1f files/sec",
        outcome.files_processed,
        outcome.eligible_count,
        outcome.matched_count,
        outcome.elapsed_sec,
        outcome.files_per_sec,
    )
    print("\nAnalysis completed.")
    print(f"Log file path: {logs.log_file}")
    print(f"Critical info file path: {logs.critical_file}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
