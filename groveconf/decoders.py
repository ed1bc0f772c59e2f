"""
Data decoders.

Purpose
-------
Turn the raw bytes of a DataSet into a mapping that the Registry can
flatten into option paths. Nested mappings become nested groups; keys may
also already contain the group separator.

Built-in formats
----------------
- ``json``
- ``yaml`` (alias ``yml``), via PyYAML's safe loader
- ``ini``: ``[section]`` headers name groups, ``[DEFAULT]`` is the root,
  ``#`` / ``;`` comment lines, a trailing ``\\`` continues the value on the
  next line (joined by a space), empty values are skipped
- ``properties``: ``key=value`` or ``key: value``, ``#`` / ``!`` comments,
  trailing ``\\`` continuation

Lookups are case-insensitive and fall back to registered aliases.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

import yaml

from groveconf.core.exceptions import DecoderNotFoundError
from groveconf.core.logging import get_logger

logger = get_logger(__name__)

DecodeFunc = Callable[[bytes], Dict[str, Any]]


@dataclass(frozen=True)
class Decoder:
    """A named decode function ``bytes -> dict``."""

    format: str
    decode: DecodeFunc

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", self.format.strip().lower())


def _text(data: bytes) -> str:
    if isinstance(data, str):
        return data
    return data.decode("utf-8-sig")


def _require_mapping(result: Any, format: str) -> Dict[str, Any]:
    if result is None:
        return {}
    if not isinstance(result, dict):
        raise ValueError(f"{format} document must be a mapping, got {type(result).__name__}")
    return result


def decode_json(data: bytes) -> Dict[str, Any]:
    if not data.strip():
        return {}
    return _require_mapping(json.loads(_text(data)), "json")


def decode_yaml(data: bytes) -> Dict[str, Any]:
    return _require_mapping(yaml.safe_load(_text(data)), "yaml")


def _continued(lines: List[str], index: int, value: str) -> "tuple[str, int]":
    parts = [value.rstrip("\\").strip()]
    while index < len(lines):
        line = lines[index].strip().rstrip("\\").strip()
        if not line:
            break
        index += 1
        parts.append(line)
        if not lines[index - 1].strip().endswith("\\"):
            break
    return " ".join(parts), index


def make_ini_decoder(default_section: str = "DEFAULT") -> Decoder:
    """Build an INI decoder treating `default_section` as the root group."""

    def decode_ini(data: bytes) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        section = ""
        lines = _text(data).splitlines()
        index = 0
        while index < len(lines):
            line = lines[index].strip()
            index += 1

            if not line or line[0] in "#;":
                continue

            if line[0] == "[" and line[-1] == "]":
                section = line[1:-1].strip()
                if section == default_section:
                    section = ""
                continue

            key, sep, value = line.partition("=")
            if not sep:
                raise ValueError(f"the {index}th line misses the separator '='")
            key = key.strip()
            if not key:
                raise ValueError(f"the {index}th line has an empty key")
            if any(ch.isspace() or not ch.isprintable() for ch in key):
                raise ValueError(f"invalid key '{key}'")

            value = value.strip()
            if not value:
                continue
            if value.endswith("\\"):
                value, index = _continued(lines, index, value)

            target = result.setdefault(section, {}) if section else result
            target[key] = value
        return result

    return Decoder("ini", decode_ini)


def decode_properties(data: bytes) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    lines = _text(data).splitlines()
    index = 0
    while index < len(lines):
        line = lines[index].strip()
        index += 1

        if not line or line[0] in "#!":
            continue

        positions = [pos for pos in (line.find("="), line.find(":")) if pos >= 0]
        if not positions:
            raise ValueError(f"the {index}th line misses the separator '=' or ':'")
        pos = min(positions)

        key = line[:pos].strip()
        if not key:
            raise ValueError(f"the {index}th line has an empty key")
        value = line[pos + 1 :].strip()
        if value.endswith("\\"):
            value, index = _continued(lines, index, value)
        result[key] = value
    return result


class DecoderRegistry:
    """
    Format name -> Decoder table with aliases.

    Examples
    --------
    >>> decoders = DecoderRegistry.with_defaults()
    >>> decoders.get("YML").format
    'yaml'
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._decoders: Dict[str, Decoder] = {}
        self._aliases: Dict[str, str] = {}

    @classmethod
    def with_defaults(cls, default_section: str = "DEFAULT") -> "DecoderRegistry":
        registry = cls()
        registry.add(Decoder("json", decode_json))
        registry.add(Decoder("yaml", decode_yaml))
        registry.add(make_ini_decoder(default_section))
        registry.add(Decoder("properties", decode_properties))
        registry.add_alias("yml", "yaml")
        registry.add_alias("conf", "ini")
        registry.add_alias("cfg", "ini")
        return registry

    def add(self, decoder: Decoder, force: bool = False) -> bool:
        """Add `decoder`; an existing one is kept unless `force` is set."""
        with self._lock:
            if decoder.format in self._decoders and not force:
                return False
            self._decoders[decoder.format] = decoder
        logger.debug("Decoder registered", extra={"format": decoder.format, "force": force})
        return True

    def add_alias(self, alias: str, format: str) -> None:
        with self._lock:
            self._aliases[alias.strip().lower()] = format.strip().lower()

    def get(self, format: str) -> Decoder:
        key = format.strip().lower()
        with self._lock:
            decoder = self._decoders.get(key)
            if decoder is None and key in self._aliases:
                decoder = self._decoders.get(self._aliases[key])
        if decoder is None:
            raise DecoderNotFoundError(format)
        return decoder

    def has(self, format: str) -> bool:
        try:
            self.get(format)
        except DecoderNotFoundError:
            return False
        return True

    def formats(self) -> List[str]:
        with self._lock:
            return sorted(self._decoders)


__all__ = [
    "Decoder",
    "DecoderRegistry",
    "decode_json",
    "decode_yaml",
    "decode_properties",
    "make_ini_decoder",
]
