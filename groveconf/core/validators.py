"""
Validator factories for option values.

Purpose
-------
Build the small callables stored in ``Opt.validators``. A validator receives
the parsed value and raises `ValidationError` when it rejects it; returning
normally means the value is accepted.

Responsibilities
----------------
- String checks: length, non-empty, membership, regular expression
- Network checks: URL, IP address, ``host:port`` address, port, e-mail
- Numeric range checks for integers and floats
- Combinators: `any_of` (first success wins), `each` (apply to list items)
  and `maybe` (accept the empty string)

Non-Responsibilities
--------------------
- Parsing raw input (handled by ``Opt.parse``)
- Attaching group/option context to errors (handled by ``Opt.validate``)

Design Decisions
----------------
- Validators are plain functions, so any ``Callable[[Any], None]`` works as
  well; a validator raising ``ValueError`` is treated like one raising
  `ValidationError`.
- Ready-made instances (``port``, ``ip`` ...) are module-level constants
  for the common no-argument cases.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Any, Callable, Iterable, Sequence, Union
from urllib.parse import urlparse

from groveconf.core.exceptions import ValidationError

Validator = Callable[[Any], None]

_EMAIL_RE = re.compile(r"^[^@\s<>]+@[^@\s<>]+$")


# =============================================================================
# Helpers
# =============================================================================


def _require_str(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"the value is not a string (got {type(value).__name__})")
    return value


def _require_number(value: Any, kind: type) -> Union[int, float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"the value is not {kind.__name__} (got {type(value).__name__})")
    if kind is int and not isinstance(value, int):
        raise ValidationError(f"the value is not int (got {type(value).__name__})")
    return value


# =============================================================================
# String validators
# =============================================================================


def str_len(min_len: int, max_len: int) -> Validator:
    """Length of the string must lie in ``[min_len, max_len]``."""

    def validate(value: Any) -> None:
        text = _require_str(value)
        if not min_len <= len(text) <= max_len:
            raise ValidationError(
                f"the length of '{text}' is {len(text)}, not between {min_len} and {max_len}"
            )

    return validate


def str_not_empty(value: Any) -> None:
    if not _require_str(value):
        raise ValidationError("the string is empty")


def str_empty(value: Any) -> None:
    if _require_str(value):
        raise ValidationError("the string is not empty")


def one_of(choices: Iterable[str]) -> Validator:
    """The string must be one of `choices`."""
    allowed = tuple(choices)

    def validate(value: Any) -> None:
        text = _require_str(value)
        if text not in allowed:
            raise ValidationError(f"the value '{text}' is not in {list(allowed)}")

    return validate


def regexp(pattern: Union[str, "re.Pattern[str]"]) -> Validator:
    """The string must match `pattern` (searched, like ``re.search``)."""
    compiled = re.compile(pattern)

    def validate(value: Any) -> None:
        text = _require_str(value)
        if not compiled.search(text):
            raise ValidationError(f"'{text}' doesn't match the pattern '{compiled.pattern}'")

    return validate


# =============================================================================
# Network validators
# =============================================================================


def url(value: Any) -> None:
    text = _require_str(value)
    parsed = urlparse(text)
    if not parsed.scheme or not (parsed.netloc or parsed.path):
        raise ValidationError(f"the value '{text}' is not a valid url")


def ip(value: Any) -> None:
    text = _require_str(value)
    try:
        ipaddress.ip_address(text)
    except ValueError:
        raise ValidationError(f"the value '{text}' is not a valid ip") from None


def email(value: Any) -> None:
    text = _require_str(value)
    if not _EMAIL_RE.match(text):
        raise ValidationError(f"the value '{text}' is not a valid email")


def split_host_port(text: str) -> tuple:
    """
    Split ``host:port`` (``[v6]:port`` for IPv6 hosts).

    The host may be empty (``:80``); the port must be present.
    """
    if text.startswith("["):
        end = text.find("]")
        if end < 0 or text[end + 1:end + 2] != ":":
            raise ValueError(f"missing port in address '{text}'")
        return text[1:end], text[end + 2:]
    host, sep, port = text.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address '{text}'")
    if ":" in host:
        raise ValueError(f"too many colons in address '{text}'")
    return host, port


def address(value: Any) -> None:
    text = _require_str(value)
    try:
        split_host_port(text)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None


def address_or_ip(value: Any) -> None:
    text = _require_str(value)
    try:
        split_host_port(text)
    except ValueError:
        ip(text)


# =============================================================================
# Numeric validators
# =============================================================================


def int_range(min_value: int, max_value: int) -> Validator:
    """Integer must lie in ``[min_value, max_value]``."""

    def validate(value: Any) -> None:
        number = _require_number(value, int)
        if not min_value <= number <= max_value:
            raise ValidationError(f"the value '{number}' is not between {min_value} and {max_value}")

    return validate


def float_range(min_value: float, max_value: float) -> Validator:
    """Number must lie in ``[min_value, max_value]``."""

    def validate(value: Any) -> None:
        number = _require_number(value, float)
        if not min_value <= number <= max_value:
            raise ValidationError(
                f"the value '{number:f}' is not between {min_value:f} and {max_value:f}"
            )

    return validate


port = int_range(0, 65535)


# =============================================================================
# Combinators
# =============================================================================


def any_of(*validators: Validator) -> Validator:
    """
    Accept the value if any validator accepts it.

    When all reject, the last rejection is raised.
    """
    if not validators:
        raise ValueError("any_of() needs at least one validator")

    def validate(value: Any) -> None:
        last: Exception = ValidationError("no validator accepted the value")
        for validator in validators:
            try:
                validator(value)
                return
            except (ValidationError, ValueError) as exc:
                last = exc
        raise last

    return validate


def each(validator: Validator) -> Validator:
    """Apply `validator` to every item of a list value."""

    def validate(value: Any) -> None:
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"the value is not a list (got {type(value).__name__})")
        for item in value:
            validator(item)

    return validate


def maybe(validator: Validator) -> Validator:
    """Accept the empty string, otherwise delegate to `validator`."""

    def validate(value: Any) -> None:
        if value == "":
            return
        validator(value)

    return validate


def chain(validators: Sequence[Validator]) -> Validator:
    """Run `validators` in order; the first failure propagates."""
    items = tuple(validators)

    def validate(value: Any) -> None:
        for validator in items:
            validator(value)

    return validate


maybe_url = maybe(url)
maybe_ip = maybe(ip)
maybe_email = maybe(email)
maybe_address = maybe(address)
maybe_address_or_ip = maybe(address_or_ip)

url_list = each(url)
ip_list = each(ip)
email_list = each(email)
address_list = each(address)
address_or_ip_list = each(address_or_ip)


__all__ = [
    "Validator",
    "str_len",
    "str_not_empty",
    "str_empty",
    "one_of",
    "regexp",
    "url",
    "ip",
    "email",
    "address",
    "address_or_ip",
    "split_host_port",
    "int_range",
    "float_range",
    "port",
    "any_of",
    "each",
    "maybe",
    "chain",
    "maybe_url",
    "maybe_ip",
    "maybe_email",
    "maybe_address",
    "maybe_address_or_ip",
    "url_list",
    "ip_list",
    "email_list",
    "address_list",
    "address_or_ip_list",
]
