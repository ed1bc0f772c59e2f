"""
Unit Tests for Signal-Driven Hot Reload
=======================================

Test Coverage
-------------
- reload_sources applies every source and routes failures
- Reloads keep the priority order used by parse
- The signal handler reloads on a worker thread
- A closed registry ignores the signal
- Installing the handler with and without sources

Testing Strategy
----------------
- The handler is called directly; no real signal is delivered
- ``signal.signal`` is patched so the process handlers are untouched
"""

import signal

import pytest

from groveconf import hot_reload
from groveconf.core.exceptions import NotParsedError, SourceError
from groveconf.core.option import int_opt, str_opt
from groveconf.sources.base import Source
from groveconf.sources.mapping import MappingSource


class _BrokenSource(Source):
    def __str__(self):
        return "broken"

    def read(self):
        raise OSError("unreachable")


@pytest.mark.unit
class TestReloadSources:
    """Test reloading a list of sources."""

    def test_failures_are_routed_and_other_sources_still_load(self, registry, fake_source_cls, errors):
        # Arrange
        registry.register_opts([int_opt("port", 80), str_opt("mode", "a")])
        good = fake_source_cls({"port": 81, "mode": "b"})

        # Act
        changed = hot_reload.reload_sources(registry, _BrokenSource(), good)

        # Assert
        assert changed == 2
        assert registry.get("port") == 81
        assert errors.operations == ["hot_reload"]
        assert errors.calls[0][1]["source"] == "broken"
        assert isinstance(errors.errors[0], SourceError)

    def test_lower_priority_number_wins_regardless_of_order(self, registry):
        # Arrange
        registry.register_opt(str_opt("x", "default"))
        env = MappingSource({"x": "env"}, name="env", priority=20)
        file = MappingSource({"x": "file"}, name="file", priority=30)
        registry.parse(env, file)
        registry.update("x", "edited")

        # Act
        changed = hot_reload.reload_sources(registry, env, file)

        # Assert
        assert changed == 1
        assert registry.get("x") == "env"

    def test_fallback_after_a_failure_keeps_priority_order(self, registry, errors):
        # Arrange
        registry.register_opt(str_opt("x", "default"))
        env = MappingSource({"x": "env"}, name="env", priority=20)
        file = MappingSource({"x": "file"}, name="file", priority=30)

        # Act
        hot_reload.reload_sources(registry, env, _BrokenSource(), file)

        # Assert
        assert registry.get("x") == "env"
        assert errors.operations == ["hot_reload"]


@pytest.mark.unit
class TestReloadHandler:
    """Test the signal handler."""

    def test_handler_reloads_on_worker_thread(self, registry, fake_source_cls):
        # Arrange
        registry.register_opt(int_opt("port", 80))
        source = fake_source_cls({"port": 8080})
        handler = hot_reload.make_reload_handler(registry, source)

        # Act
        thread = handler(signal.SIGTERM, None)
        thread.join(2.0)

        # Assert
        assert thread.name == "groveconf-hot-reload"
        assert not thread.is_alive()
        assert registry.get("port") == 8080
        assert source.reads == 1

    def test_closed_registry_ignores_signal(self, registry, fake_source_cls):
        source = fake_source_cls({"port": 8080})
        handler = hot_reload.make_reload_handler(registry, source)
        registry.close()

        assert handler(signal.SIGTERM, None) is None
        assert source.reads == 0


@pytest.mark.unit
class TestReloadOnSignal:
    """Test installing the handler."""

    def test_without_sources_nothing_is_installed(self, registry, monkeypatch):
        installed = []
        monkeypatch.setattr(hot_reload.signal, "signal", lambda *args: installed.append(args))

        assert hot_reload.reload_on_signal(registry) is None
        assert installed == []

    def test_installs_handler_and_returns_previous(self, registry, fake_source_cls, monkeypatch):
        # Arrange
        installed = []

        def fake_signal(signum, handler):
            installed.append((signum, handler))
            return "previous"

        monkeypatch.setattr(hot_reload.signal, "signal", fake_signal)
        registry.parse()

        # Act
        previous = hot_reload.reload_on_signal(registry, fake_source_cls(), signum=signal.SIGTERM)

        # Assert
        assert previous == "previous"
        assert installed[0][0] == signal.SIGTERM
        assert callable(installed[0][1])

    def test_requires_parsed_registry(self, registry, fake_source_cls, monkeypatch):
        monkeypatch.setattr(hot_reload.signal, "signal", lambda *args: None)

        with pytest.raises(NotParsedError):
            hot_reload.reload_on_signal(registry, fake_source_cls())
