"""
Registry metrics and health monitoring.

Purpose
-------
Thread-safe counters for the update protocol, source loading and watchers,
plus a compact health snapshot for dashboards.

Responsibilities
----------------
- Count updates, effective changes, skips and failures
- Count load passes and watch events
- Produce dictionary snapshots for logging/export

Non-Responsibilities
--------------------
- Storing option values (handled by ValueCell)
- Logging (handled by core.logging)

Architecture Notes
------------------
- Counters live in one dataclass guarded by a single threading.Lock
- Derived values are computed on demand from raw counters
- `reset()` exists for tests and periodic rotation
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, fields
from typing import Any, Dict


@dataclass
class RegistryMetrics:
    """
    Thread-safe counters for one Registry.

    Example
    -------
    >>> metrics = RegistryMetrics()
    >>> metrics.record_update(changed=True)
    >>> metrics.to_dict()["changes"]
    1
    """

    updates: int = 0
    changes: int = 0
    unchanged: int = 0
    frozen_skips: int = 0
    override_skips: int = 0
    parse_errors: int = 0
    validation_errors: int = 0
    observer_errors: int = 0
    loads: int = 0
    load_errors: int = 0
    watch_events: int = 0
    handled_errors: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _incr(self, name: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to a dictionary (the lock is excluded)."""
        with self._lock:
            return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "_lock"}

    def record_update(self, changed: bool) -> None:
        with self._lock:
            self.updates += 1
            if changed:
                self.changes += 1
            else:
                self.unchanged += 1

    def record_frozen_skip(self) -> None:
        self._incr("frozen_skips")

    def record_override_skip(self) -> None:
        self._incr("override_skips")

    def record_parse_error(self) -> None:
        self._incr("parse_errors")

    def record_validation_error(self) -> None:
        self._incr("validation_errors")

    def record_observer_error(self) -> None:
        self._incr("observer_errors")

    def record_load(self, success: bool) -> None:
        with self._lock:
            self.loads += 1
            if not success:
                self.load_errors += 1

    def record_watch_event(self) -> None:
        self._incr("watch_events")

    def record_handled_error(self) -> None:
        self._incr("handled_errors")

    def change_rate(self) -> float:
        """Percentage of updates that changed a value (0.0 - 100.0)."""
        with self._lock:
            if self.updates == 0:
                return 0.0
            return (self.changes / self.updates) * 100.0

    def reset(self) -> None:
        with self._lock:
            for f in fields(self):
                if f.name != "_lock":
                    setattr(self, f.name, 0)


def get_health_snapshot(
    metrics: RegistryMetrics,
    parsed: bool,
    stopped: bool,
    options: int,
    watchers: int,
) -> Dict[str, Any]:
    """
    Generate a compact health snapshot.

    Parameters
    ----------
    metrics:
        The registry's metrics.
    parsed:
        Whether `Registry.parse()` has run.
    stopped:
        Whether a source requested an early stop.
    options:
        Number of registered options.
    watchers:
        Number of live watch threads.
    """
    counters = metrics.to_dict()
    errors = counters["load_errors"] + counters["handled_errors"]

    status = "healthy"
    if not parsed:
        status = "not_parsed"
    elif errors > 0:
        status = "degraded"

    return {
        "parsed": parsed,
        "stopped": stopped,
        "options": options,
        "watchers": watchers,
        "errors": errors,
        "observer_errors": counters["observer_errors"],
        "change_rate": round(metrics.change_rate(), 2),
        "is_healthy": status == "healthy",
        "status": status,
    }


__all__ = ["RegistryMetrics", "get_health_snapshot"]
