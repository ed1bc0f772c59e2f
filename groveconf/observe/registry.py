"""
ObserverRegistry: ordered storage for observers.

Purpose
-------
Store observers in registration order, prevent duplicate identifiers and
hand out immutable snapshots for notification.

Design Decisions
----------------
- **Copy-on-read**: `snapshot()` returns a tuple, so a notification in
  progress is unaffected by observers added or removed concurrently, and
  callbacks never run while the registry lock is held.
- **Deterministic ordering**: observers are kept sorted by registration
  sequence.
"""

from __future__ import annotations

import itertools
import threading
from typing import Any, Callable, List, Optional, Tuple

from groveconf.observe.types import ObserverRecord


class ObserverRegistry:
    """
    Thread-safe, ordered observer storage.

    Examples
    --------
    >>> registry = ObserverRegistry()
    >>> record = registry.add(print, identifier="printer")
    >>> [r.identifier for r in registry.snapshot()]
    ['printer']
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: List[ObserverRecord] = []
        self._sequence = itertools.count()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def add(
        self,
        callback: Callable[..., Any],
        identifier: Optional[str] = None,
    ) -> Optional[ObserverRecord]:
        """
        Register an observer.

        Returns
        -------
        ObserverRecord or None:
            The new record, or None when `identifier` is already registered.
        """
        with self._lock:
            record = ObserverRecord.from_callback(callback, identifier, next(self._sequence))
            if any(r.identifier == record.identifier for r in self._records):
                return None
            self._records.append(record)
            return record

    def remove(self, identifier: str) -> bool:
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.identifier != identifier]
            return len(self._records) != before

    def clear(self) -> int:
        with self._lock:
            count = len(self._records)
            self._records = []
            return count

    def snapshot(self) -> Tuple[ObserverRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def identifiers(self) -> List[str]:
        return [r.identifier for r in self.snapshot()]


__all__ = ["ObserverRegistry"]
