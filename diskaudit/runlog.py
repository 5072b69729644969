from __future__ import annotations
import logging
import sys
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .errors import LogBootstrapError

APP_NAME = "diskaudit"
CRITICAL_LOGGER = APP_NAME + ".criticalinfo"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
CRITICAL_FORMAT = "%(asctime)s CRITICALINFO %(message)s"


def generate_run_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{now.strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8]}"


@dataclass
class RunLogs:
    run_id: str
    log_file: Path
    critical_file: Path
    logger: logging.Logger
    critical: logging.Logger


def _reset(logger: logging.Logger) -> None:
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def setup_logging(log_dir: Path, run_id: str, level: int = logging.INFO,
                  echo: bool = True) -> RunLogs:
    """Create the log directory and both per-run sinks.

    Diagnostics go to ``highdiskusage-<run_id>.log`` through the ``diskaudit``
    logger; report lines go to ``criticalinfo-<run_id>.criticalfile`` through
    ``diskaudit.criticalinfo`` (and to stdout when ``echo`` is set).
    """
    log_dir = Path(log_dir)
    log_file = log_dir / f"highdiskusage-{run_id}.log"
    critical_file = log_dir / f"criticalinfo-{run_id}.criticalfile"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file.touch(exist_ok=True)
        critical_file.touch(exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        try:
            ch = logging.FileHandler(critical_file, encoding="utf-8")
        except OSError:
            fh.close()
            raise
    except OSError as e:
        raise LogBootstrapError(f"Could not create log files in {log_dir}: {e}") from e

    logger = logging.getLogger(APP_NAME)
    _reset(logger)
    logger.setLevel(level)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(fh)

    critical = logging.getLogger(CRITICAL_LOGGER)
    _reset(critical)
    critical.setLevel(logging.INFO)
    critical.propagate = False
    ch.setFormatter(logging.Formatter(CRITICAL_FORMAT))
    critical.addHandler(ch)
    if echo:
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(logging.Formatter("%(message)s"))
        critical.addHandler(sh)

    return RunLogs(run_id=run_id, log_file=log_file, critical_file=critical_file,
                   logger=logger, critical=critical)


def close_logging(logs: RunLogs) -> None:
    _reset(logs.logger)
    _reset(logs.critical)
