"""Parsing of human-friendly duration strings.

Accepts the compact unit-suffixed format used by ops tooling
(``"300ms"``, ``"45s"``, ``"5m"``, ``"1h30m"``) as well as bare numbers,
which are interpreted as seconds.
"""

from __future__ import annotations

import re
from datetime import timedelta

_UNIT_SECONDS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str | int | float | timedelta) -> timedelta:
    """Convert a duration expression into a ``timedelta``.

    Args:
        value: A ``timedelta``, a number of seconds, or a duration string
            such as ``"1m"`` or ``"1h30m"``.

    Returns:
        timedelta: The parsed duration.

    Raises:
        ValueError: If the string is empty or not a valid duration, or the
            value is infinite or too large for a ``timedelta``.

    Examples:
        >>> parse_duration("1m30s")
        datetime.timedelta(seconds=90)
        >>> parse_duration(2)
        datetime.timedelta(seconds=2)
    """
    try:
        return _parse(value)
    except OverflowError as exc:
        raise ValueError(f"invalid duration: {value!r}") from exc


def _parse(value: str | int | float | timedelta) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError("duration must not be a boolean")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    text = value.strip()
    if not text:
        raise ValueError("duration must be a non-empty string")

    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    total = 0.0
    pos = 0
    for match in _COMPONENT_RE.finditer(text):
        if match.start() != pos:
            break
        number, unit = match.groups()
        total += float(number) * _UNIT_SECONDS[unit]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")

    return timedelta(seconds=sign * total)
