"""
Raw value converters.

Every converter accepts whatever a source may hand over (strings from the
command line or the environment, numbers and lists from decoded JSON/YAML)
and returns the typed value, raising ``ValueError`` or ``TypeError`` with a
short reason otherwise. `Opt.parse` turns those into `ParseError`.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List

_TRUE_STRINGS = {"1", "t", "true", "on", "yes", "y"}
_FALSE_STRINGS = {"0", "f", "false", "off", "no", "n", ""}

_LIST_SPLIT = re.compile(r"[,\s]+")

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if _is_number(value):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"invalid boolean string {value!r}")
    raise TypeError(f"cannot convert {type(value).__name__} to bool")


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value!r} is not an integral number")
        return int(value)
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty string")
        try:
            return int(text, 10)
        except ValueError:
            # 0x / 0o / 0b prefixes
            return int(text, 0)
    raise TypeError(f"cannot convert {type(value).__name__} to int")


def to_uint(value: Any) -> int:
    result = to_int(value)
    if result < 0:
        raise ValueError(f"{result} is negative")
    return result


def to_float(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if _is_number(value):
        return float(value)
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return float(value.strip())
    raise TypeError(f"cannot convert {type(value).__name__} to float")


def to_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_number(value):
        return str(value)
    raise TypeError(f"cannot convert {type(value).__name__} to str")


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration string such as ``1h30m``, ``250ms`` or ``-1.5s``.

    A bare number is taken as seconds.
    """
    original = text
    text = text.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    try:
        return timedelta(seconds=sign * float(text))
    except ValueError:
        pass

    pos = 0
    seconds = 0.0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {original!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return timedelta(seconds=sign * seconds)


def to_duration(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise TypeError("cannot convert bool to duration")
    if _is_number(value):
        return timedelta(seconds=value)
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return parse_duration(value)
    raise TypeError(f"cannot convert {type(value).__name__} to duration")


def to_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        raise TypeError("cannot convert bool to time")
    if _is_number(value):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty time string")
        try:
            return datetime.fromtimestamp(float(text), tz=timezone.utc)
        except ValueError:
            pass
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    raise TypeError(f"cannot convert {type(value).__name__} to time")


def split_list(text: str) -> List[str]:
    """Split on commas and whitespace, dropping empty items."""
    return [item for item in _LIST_SPLIT.split(text) if item]


def to_list(value: Any, item: Callable[[Any], Any]) -> List[Any]:
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return [item(part) for part in split_list(value)]
    if isinstance(value, (list, tuple)):
        return [item(part) for part in value]
    if isinstance(value, dict):
        raise TypeError("cannot convert a mapping to a list")
    return [item(value)]


__all__ = [
    "to_bool",
    "to_int",
    "to_uint",
    "to_float",
    "to_str",
    "to_duration",
    "to_time",
    "to_list",
    "split_list",
    "parse_duration",
]
