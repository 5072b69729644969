from __future__ import annotations

MIB = 1024 * 1024


def format_mib(num: int) -> str:
    return f"{num / MIB:.2f}"


def parse_mib(value: str) -> int:
    """'500' -> 500 MiB in bytes; fractional values are allowed."""
    mib = float(value)
    if mib < 0:
        raise ValueError("size must not be negative")
    return int(mib * MIB)
