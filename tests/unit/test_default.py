"""
Unit Tests for the Process-Wide Default Registry
================================================

Test Coverage
-------------
- Module functions delegate to ``default.conf`` at call time
- Typed accessors with fallbacks
- Freezing several options at once
- Loading and commands through the module API

Testing Strategy
----------------
- ``default.conf`` is replaced with a fresh Registry per test
"""

import pytest

from groveconf import default
from groveconf.core.option import int_opt, str_list_opt, str_opt
from groveconf.core.registry import Registry
from groveconf.sources.mapping import MappingSource


@pytest.fixture
def conf(monkeypatch, errors):
    fresh = Registry(error_handler=errors)
    monkeypatch.setattr(default, "conf", fresh)
    yield fresh
    fresh.close(timeout=2.0)


@pytest.mark.unit
class TestDefaultRegistry:
    """Test the module-level API."""

    def test_register_and_read(self, conf):
        # Arrange & Act
        default.register_opts([str_opt("addr", ":80"), int_opt("workers", 4)], group="http")

        # Assert
        assert default.get("http.addr") == ":80"
        assert default.get_int("http.workers") == 4
        assert conf.has_opt("http.addr")
        assert [g.full_path for g in default.all_groups()] == ["", "http"]

    def test_typed_accessor_fallback(self, conf):
        default.register_opt(str_list_opt("peers", "a,b"))

        assert default.get_str_list("peers") == ["a", "b"]
        assert default.get_str("missing", "fallback") == "fallback"

    def test_update_observe_and_snapshot(self, conf, changes):
        default.register_opt(int_opt("port", 80))
        default.observe(changes, "recorder")

        assert default.update("port", "81") is True
        assert default.unobserve("recorder") is True
        default.set("port", 82)

        assert changes.events == [("", "port", 80, 81)]
        assert default.snapshot() == {"port": 82}

    def test_freeze_many(self, conf):
        default.register_opts([int_opt("a", 1), int_opt("b", 2)])

        default.freeze_opt("a", "b")
        default.update("a", 10)

        assert default.is_frozen("a") and default.is_frozen("b")
        assert default.get("a") == 1

        default.unfreeze_opt("a", "b")
        default.update("a", 10)
        assert default.get("a") == 10

    def test_parse_with_sources(self, conf):
        default.register_cli_opt(int_opt("port", 80))
        default.register_opt(str_opt("mode").as_required())

        default.parse(MappingSource({"port": 81, "mode": "fast"}))

        assert default.get("port") == 81
        assert conf.parsed

    def test_load_map_only_unset(self, conf):
        default.register_opts([int_opt("a", 1), int_opt("b")])
        default.update("a", 5)

        assert default.load_map({"a": 9, "b": 9}, only_unset=True) == 1
        assert (default.get("a"), default.get("b")) == (5, 9)

    def test_commands_and_action(self, conf):
        serve = default.new_command("serve", help="Run", action=lambda: "served")
        default.set_action(lambda: "root")

        assert default.run_action() == "root"
        conf.set_executed_command(serve)
        assert default.run_action() == "served"

    def test_set_error_handler_replaces_handler(self, conf):
        seen = []
        default.set_error_handler(lambda exc, ctx: seen.append(ctx["operation"]))

        conf.handle_error(RuntimeError("x"), operation="manual")

        assert seen == ["manual"]

    def test_unregister(self, conf):
        default.register_opt(int_opt("a", 1))

        assert default.unregister_opt("a") is True
        assert default.group("").all_opts() == []
