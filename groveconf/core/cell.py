"""
Per-option value storage.

A `ValueCell` holds the current value of one option together with the lock
that linearises its updates, the freeze reference count and the override
flag. Unrelated options never share a lock.
"""

from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Callable, NamedTuple, Optional


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()
"""Marker for a cell that has never received a value."""

ORIGIN_DEFAULT = "default"
ORIGIN_ZERO = "zero"
ORIGIN_PROGRAMMATIC = "programmatic"
ORIGIN_OVERRIDE = "override"

SKIP_FROZEN = "frozen"
SKIP_OVERRIDDEN = "overridden"

CommitHook = Callable[[Any], None]


class SwapResult(NamedTuple):
    """
    Outcome of a swap.

    `applied` is False when the cell is frozen or overridden; `skipped`
    then names the reason. `changed` is True when the old value was unset
    or differs from the new one.
    """

    applied: bool
    old: Any
    changed: bool
    skipped: str = ""


class ValueCell:
    """
    Thread-safe holder for one option value.

    Attributes
    ----------
    generation:
        Number of effective changes applied to the cell.
    updated_at:
        UTC time of the last effective change, or None.
    origin:
        Who set the current value: ``default``, ``zero``, a source
        identifier, ``override`` or ``programmatic``.
    """

    __slots__ = ("_lock", "_value", "_frozen", "_overridden", "generation", "updated_at", "origin")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Any = UNSET
        self._frozen = 0
        self._overridden = False
        self.generation = 0
        self.updated_at: Optional[datetime] = None
        self.origin: Optional[str] = None

    def __repr__(self) -> str:
        return f"ValueCell(value={self._value!r}, origin={self.origin!r}, frozen={self._frozen})"

    @property
    def is_set(self) -> bool:
        return self._value is not UNSET

    @property
    def frozen(self) -> bool:
        return self._frozen > 0

    @property
    def overridden(self) -> bool:
        return self._overridden

    def get(self) -> Any:
        """Return the current value; lists are copied so callers cannot mutate it."""
        value = self._value
        if isinstance(value, list):
            return copy.copy(value)
        return value

    def freeze(self) -> None:
        with self._lock:
            self._frozen += 1

    def unfreeze(self) -> None:
        with self._lock:
            if self._frozen > 0:
                self._frozen -= 1

    def initialize(self, value: Any, origin: str) -> None:
        """Store a registration-time value without counting it as a change."""
        with self._lock:
            self._value = value
            self.origin = origin

    def _apply(self, value: Any, origin: str, on_commit: Optional[CommitHook]) -> SwapResult:
        old = self._value
        changed = old is UNSET or old != value
        self._value = value
        self.origin = origin
        if changed:
            self.generation += 1
            self.updated_at = datetime.now(timezone.utc)
        if on_commit is not None:
            on_commit(value)
        return SwapResult(True, old, changed)

    def swap(self, value: Any, origin: str, on_commit: Optional[CommitHook] = None) -> SwapResult:
        """
        Replace the value unless the cell is frozen or overridden.

        `on_commit` runs with the new value while the cell lock is still
        held, so whatever it mirrors stays in the same order as the swaps.
        """
        with self._lock:
            if self._frozen > 0:
                return SwapResult(False, self._value, False, SKIP_FROZEN)
            if self._overridden:
                return SwapResult(False, self._value, False, SKIP_OVERRIDDEN)
            return self._apply(value, origin, on_commit)

    def override(self, value: Any, on_commit: Optional[CommitHook] = None) -> SwapResult:
        """Mark the cell overridden and store `value` unless it is frozen."""
        with self._lock:
            self._overridden = True
            if self._frozen > 0:
                return SwapResult(False, self._value, False, SKIP_FROZEN)
            return self._apply(value, ORIGIN_OVERRIDE, on_commit)

    def release_override(self) -> bool:
        """Clear the override flag; returns whether it was set."""
        with self._lock:
            was_overridden = self._overridden
            self._overridden = False
            return was_overridden

    def clear(self) -> Any:
        with self._lock:
            old = self._value
            self._value = UNSET
            self.origin = None
            return old


__all__ = [
    "ValueCell",
    "SwapResult",
    "UNSET",
    "ORIGIN_DEFAULT",
    "ORIGIN_ZERO",
    "ORIGIN_PROGRAMMATIC",
    "ORIGIN_OVERRIDE",
    "SKIP_FROZEN",
    "SKIP_OVERRIDDEN",
]
