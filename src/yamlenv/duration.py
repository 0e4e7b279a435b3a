"""Human-readable duration literals ("30s", "1h30m", "250ms") for timedelta fields."""

from __future__ import annotations

import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BeforeValidator

_UNIT_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # micro sign
    "μs": 1_000,  # greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_TERM_RE = re.compile(r"(\d*\.?\d*)([a-zµμ]+)")


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration literal such as "300ms", "-1.5h" or "2h45m".

    A literal is an optional sign followed by one or more decimal numbers, each
    with a unit suffix. A bare "0" is accepted. Raises ValueError otherwise.
    """
    raw = text
    if not raw:
        raise ValueError('invalid duration ""')

    sign = 1
    if raw[0] in "+-":
        sign = -1 if raw[0] == "-" else 1
        raw = raw[1:]
    if raw == "0":
        return timedelta(0)
    if not raw:
        raise ValueError(f"invalid duration {text!r}")

    total = Decimal(0)
    pos = 0
    while pos < len(raw):
        match = _TERM_RE.match(raw, pos)
        if match is None or match.end() == pos:
            raise ValueError(f"invalid duration {text!r}")
        number, unit = match.groups()
        if number in ("", "."):
            raise ValueError(f"invalid duration {text!r}")
        if unit not in _UNIT_NANOSECONDS:
            raise ValueError(f"unknown unit {unit!r} in duration {text!r}")
        try:
            total += Decimal(number) * _UNIT_NANOSECONDS[unit]
        except InvalidOperation as exc:
            raise ValueError(f"invalid duration {text!r}") from exc
        pos = match.end()

    try:
        return timedelta(microseconds=float(sign * total / 1000))
    except OverflowError as exc:
        raise ValueError(f"duration {text!r} out of range") from exc


def _format_seconds(microseconds: int) -> str:
    whole, frac = divmod(microseconds, 1_000_000)
    if not frac:
        return str(whole)
    return f"{whole}.{frac:06d}".rstrip("0")


def format_duration(value: timedelta) -> str:
    """Render a timedelta in the compact literal form parse_duration accepts."""
    total_us = value // timedelta(microseconds=1)
    if total_us == 0:
        return "0s"
    sign = "-" if total_us < 0 else ""
    total_us = abs(total_us)

    if total_us < 1_000:
        return f"{sign}{total_us}µs"
    if total_us < 1_000_000:
        ms, us = divmod(total_us, 1_000)
        text = str(ms) if not us else f"{ms}.{us:03d}".rstrip("0")
        return f"{sign}{text}ms"

    hours, rest = divmod(total_us, 3600 * 1_000_000)
    minutes, rest = divmod(rest, 60 * 1_000_000)
    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + f"{_format_seconds(rest)}s"


def coerce_duration(value: Any) -> Any:
    """Pydantic before-validator: turn duration literals into timedelta."""
    if isinstance(value, str):
        stripped = value.strip()
        # Leave ISO 8601 ("PT30S") and plain numbers to pydantic.
        if stripped and not stripped.upper().startswith(("P", "-P", "+P")):
            try:
                return parse_duration(stripped)
            except ValueError:
                return value
    return value


Duration = Annotated[timedelta, BeforeValidator(coerce_duration)]
