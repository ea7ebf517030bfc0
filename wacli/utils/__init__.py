"""Small helpers shared by the CLI and the daemon."""

from __future__ import annotations

import re

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(duration_str: str) -> float:
    """
    Parse a Go-style duration string to seconds.

    Supported formats:
    - "90s", "15m", "8h"
    - compound values such as "1h30m"
    - fractions such as "1.5h"
    - "" → 0 (callers treat zero as "no expiry")

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = (duration_str or "").strip()
    if not text:
        return 0.0

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration {duration_str!r}")

    return sign * total


def truncate(text: str, max_len: int) -> str:
    """Shorten ``text`` to ``max_len`` characters with a trailing ellipsis."""
    if max_len <= 0 or len(text) <= max_len:
        return text
    if max_len <= 1:
        return text[:max_len]
    return text[: max_len - 1] + "…"
