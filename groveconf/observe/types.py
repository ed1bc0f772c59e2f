"""
Core types for option observation.

Purpose
-------
Type definitions shared by the observer registry, the fan-out bus and the
Registry: the change event record, callback signatures and the immutable
observer record.

Design Decisions
----------------
- **Positional callbacks**: change observers are called as
  ``callback(group_path, option_name, old, new)`` and registration observers
  as ``callback(group_path, opt)``; `ChangeEvent` exists for logging and
  for callers that prefer one object.
- **Identifiers**: every observer has a string identifier used for
  deduplication and removal; one is generated from the callable when not
  given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

ChangeCallback = Callable[[str, str, Any, Any], Any]
RegisterCallback = Callable[[str, Any], Any]
ErrorHandler = Callable[[BaseException, Dict[str, Any]], Any]


@dataclass(frozen=True)
class ChangeEvent:
    """
    One effective change of an option value.

    Attributes
    ----------
    group:
        Full path of the owning group (``""`` for the root).
    option:
        Normalised option name.
    old:
        Previous value, or UNSET.
    new:
        Value now stored.
    origin:
        Who applied the change (source identifier, ``programmatic``, ...).
    """

    group: str
    option: str
    old: Any
    new: Any
    origin: str = ""

    def path(self, separator: str = ".") -> str:
        return f"{self.group}{separator}{self.option}" if self.group else self.option

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group": self.group,
            "option": self.option,
            "old": repr(self.old),
            "new": repr(self.new),
            "origin": self.origin,
        }


@dataclass(frozen=True)
class ObserverRecord:
    """
    A registered observer.

    Attributes
    ----------
    callback:
        The callable invoked on every notification.
    identifier:
        Unique string used for deduplication and removal.
    sequence:
        Registration order; notifications run in ascending sequence.
    """

    callback: Callable[..., Any]
    identifier: str
    sequence: int

    @classmethod
    def from_callback(
        cls,
        callback: Callable[..., Any],
        identifier: Optional[str],
        sequence: int,
    ) -> "ObserverRecord":
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", getattr(callback, "__name__", "callback"))
            identifier = f"{module}.{qualname}#{sequence}"
        return cls(callback=callback, identifier=identifier, sequence=sequence)


__all__ = [
    "ChangeCallback",
    "RegisterCallback",
    "ErrorHandler",
    "ChangeEvent",
    "ObserverRecord",
]
