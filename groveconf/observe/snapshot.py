"""
Snapshot mirror of the effective configuration.

A flat ``full path -> value`` map kept in step with every cell, plus a
generation counter that grows on each effective change. The backup file
uses the generation to decide whether a flush is needed.
"""

from __future__ import annotations

import copy
import threading
from typing import Any, Dict


class SnapshotMirror:
    """Thread-safe flat map of option paths to values."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = {}
        self._generation = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return path in self._data

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def set(self, path: str, value: Any) -> bool:
        """Store `value`; returns True and bumps the generation if it changed."""
        with self._lock:
            if path in self._data and self._data[path] == value:
                return False
            self._data[path] = copy.deepcopy(value)
            self._generation += 1
            return True

    def delete(self, path: str) -> bool:
        with self._lock:
            if path not in self._data:
                return False
            del self._data[path]
            self._generation += 1
            return True

    def copy(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data)

    def copy_with_generation(self) -> "tuple[Dict[str, Any], int]":
        with self._lock:
            return copy.deepcopy(self._data), self._generation


__all__ = ["SnapshotMirror"]
