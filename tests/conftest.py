"""
Pytest Configuration and Fixtures for groveconf Tests
=====================================================

Purpose
-------
Centralized fixtures shared by the groveconf test suite.

Responsibilities
----------------
- Test environment flags for the library settings
- Fresh Registry per test, closed on teardown
- Observer and error-handler recorders
- In-memory fake source with a scriptable watch loop

Non-Responsibilities
--------------------
- Test implementation (delegated to test files)
- Network or filesystem fixtures beyond ``tmp_path``

Architecture Notes
------------------
- Unit tests never sleep on real poll intervals; watchers are driven by
  ``FakeSource`` which hands over queued datasets immediately.
- ``Settings`` is class-level state, so it is reset around every test.
"""

from __future__ import annotations

import json
import os
import queue
import threading
from typing import Any, Dict, List, Optional, Tuple

import pytest

from groveconf.core.logging import clear_log_context
from groveconf.core.registry import Registry
from groveconf.core.settings import Settings
from groveconf.sources.base import DataSet, Source


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["GROVECONF_LOG_LEVEL"] = "DEBUG"
    os.environ["GROVECONF_LOG_COLORS"] = "false"


@pytest.fixture(autouse=True)
def reset_settings():
    """Restore library settings and log context around every test."""
    Settings.reset()
    clear_log_context()
    yield
    Settings.reset()
    clear_log_context()


# ============================================================================
# REGISTRY FIXTURES
# ============================================================================


class ErrorRecorder:
    """Error handler that stores every routed error with its context."""

    def __init__(self) -> None:
        self.calls: List[Tuple[BaseException, Dict[str, Any]]] = []
        self._lock = threading.Lock()

    def __call__(self, exc: BaseException, context: Dict[str, Any]) -> None:
        with self._lock:
            self.calls.append((exc, dict(context)))

    @property
    def errors(self) -> List[BaseException]:
        return [exc for exc, _ in self.calls]

    @property
    def operations(self) -> List[Any]:
        return [context.get("operation") for _, context in self.calls]


class ChangeRecorder:
    """Change observer that stores ``(group, option, old, new)`` tuples."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Any, Any]] = []
        self._lock = threading.Lock()

    def __call__(self, group: str, option: str, old: Any, new: Any) -> None:
        with self._lock:
            self.events.append((group, option, old, new))


@pytest.fixture
def errors() -> ErrorRecorder:
    return ErrorRecorder()


@pytest.fixture
def changes() -> ChangeRecorder:
    return ChangeRecorder()


@pytest.fixture
def registry(errors: ErrorRecorder):
    """
    Fresh registry whose background errors go to `errors`.

    Scope: function (closed on teardown, stopping any watcher)
    """
    conf = Registry(error_handler=errors)
    yield conf
    conf.close(timeout=2.0)


# ============================================================================
# FAKE SOURCE
# ============================================================================


class FakeSource(Source):
    """
    In-memory source.

    `read()` returns the current payload. `watch()` delivers every dataset
    pushed with `push()` (or raises every exception pushed with
    `push_error()`) until the exit event is set; `results` records what the
    registry's callback returned for each delivered dataset.
    """

    def __init__(
        self,
        data: Optional[Dict[str, Any]] = None,
        name: str = "fake",
        priority: int = 50,
        format: str = "json",
    ) -> None:
        self.name = name
        self.priority = priority
        self.format = format
        self.payload = json.dumps(data or {})
        self.reads = 0
        self.results: List[bool] = []
        self.delivered = threading.Event()
        self._queue: "queue.Queue[Any]" = queue.Queue()

    def __str__(self) -> str:
        return self.name

    def read(self) -> DataSet:
        self.reads += 1
        return DataSet(data=self.payload, format=self.format, source=str(self))

    def push(self, data: Any) -> None:
        payload = data if isinstance(data, str) else json.dumps(data)
        self._queue.put(DataSet(data=payload, format=self.format, source=str(self)))

    def push_error(self, exc: BaseException) -> None:
        self._queue.put(exc)

    def watch(self, exit_event, on_change, on_error=None) -> None:
        while not exit_event.is_set():
            try:
                item = self._queue.get(timeout=0.01)
            except queue.Empty:
                continue
            if isinstance(item, BaseException):
                self._report(on_error, item)
            else:
                self.results.append(on_change(item))
            self.delivered.set()


@pytest.fixture
def fake_source_cls():
    return FakeSource
