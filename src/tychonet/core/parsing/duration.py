from __future__ import annotations

"""
Human-readable durations.

Accepts one or more `<integer><unit>` terms, optionally separated by
whitespace (`2h`, `1h 30m`, `90s`, `1day`), and formats seconds back into
the same compact form.
"""

from typing import Dict, List

from tychonet.domain.errors import ParamsError

_UNITS: Dict[str, int] = {
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "d": 86400, "day": 86400, "days": 86400,
    "w": 604800, "week": 604800, "weeks": 604800,
}

_FORMAT_UNITS = (("d", 86400), ("h", 3600), ("m", 60), ("s", 1))


def parse_duration(text: str) -> int:
    """
    Parse a duration expression into seconds.

    Raises:
        ParamsError: On empty input, missing numbers or unknown units.
    """
    s = (text or "").strip().lower()
    if not s:
        raise ParamsError("empty duration")

    total = 0
    pos = 0
    while pos < len(s):
        if s[pos].isspace():
            pos += 1
            continue

        start = pos
        while pos < len(s) and s[pos].isdigit():
            pos += 1
        if start == pos:
            raise ParamsError(f"expected a number in duration {text!r}")
        number = int(s[start:pos])

        while pos < len(s) and s[pos].isspace():
            pos += 1
        unit_start = pos
        while pos < len(s) and s[pos].isalpha():
            pos += 1
        unit = s[unit_start:pos]
        if not unit:
            raise ParamsError(f"missing unit in duration {text!r}")
        if unit not in _UNITS:
            raise ParamsError(f"unknown duration unit {unit!r}")

        total += number * _UNITS[unit]

    return total


def format_duration(seconds: float) -> str:
    """Format seconds as `1d 2h 3m 4s`, skipping zero components."""
    remaining = max(0, int(seconds))
    if remaining == 0:
        return "0s"

    parts: List[str] = []
    for suffix, size in _FORMAT_UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{suffix}")
    return " ".join(parts)
