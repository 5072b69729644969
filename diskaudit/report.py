from __future__ import annotations
import logging
from typing import List

from .models import RankedReport
from .utils import format_mib

NO_MATCHES = "No matching files found during the scan."


def render_report(report: RankedReport) -> List[str]:
    """One message per block: a header, then path/size/reason for each entry."""
    if report.empty:
        return [NO_MATCHES]
    lines = [f"\nTop {len(report)} largest matching files:"]
    for rec in report:
        lines.append(f"File: {rec.path}\nSize: {format_mib(rec.size)} MB\nReason: {rec.reason}\n")
    return lines


def emit_report(report: RankedReport, sink: logging.Logger) -> int:
    lines = render_report(report)
    for line in lines:
        sink.info(line)
    return len(lines)
