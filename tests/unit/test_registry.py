"""
Unit Tests for the Registry
===========================

Test Coverage
-------------
- Group tree identity and path resolution
- Registration rules (duplicates, zero policy, aliases)
- The update protocol: parse, validate, swap, notify
- Typed accessors and type safety
- Freezing and programmatic overrides
- Required options, cross-option validators and the parse lifecycle
- Observer fan-out, ordering and error routing
- Snapshot, metrics and health
- Concurrent writers against the update protocol

Testing Strategy
----------------
- One fresh registry per test (``registry`` fixture)
- Background errors captured by the ``errors`` fixture
- AAA pattern (Arrange, Act, Assert)
"""

import threading
from datetime import timedelta

import pytest

from groveconf.core.exceptions import (
    DuplicateOptionError,
    NoSuchGroupError,
    NoSuchOptionError,
    OptionTypeError,
    OptionValueError,
    ParsedError,
    ParseError,
    RequiredOptionMissingError,
    StructuralError,
    ValidationError,
)
from groveconf.core.option import (
    bool_opt,
    duration_opt,
    float_opt,
    int_list_opt,
    int_opt,
    str_list_opt,
    str_opt,
)
from groveconf.core.registry import Registry
from groveconf.core.validators import int_range


# ============================================================================
# GROUP TREE
# ============================================================================


@pytest.mark.unit
class TestGroupTree:
    """Test group creation and path resolution."""

    def test_nested_lookup_returns_same_group(self, registry):
        # Arrange & Act
        nested = registry.group("a").group("b").group("c")

        # Assert
        assert nested is registry.group("a.b.c")
        assert nested.full_path == "a.b.c"
        assert nested.name == "c"
        assert nested.parent is registry.group("a.b")

    def test_group_names_are_normalised(self, registry):
        assert registry.group("My-Group") is registry.group("my_group")

    def test_empty_path_is_root(self, registry):
        assert registry.group("") is registry.root
        assert registry.root.is_root
        assert registry.root.full_path == ""

    def test_default_group_name_refers_to_root(self, registry):
        registry.register_opt(str_opt("opt1", "abc"))

        assert registry.get("DEFAULT.opt1") == "abc"

    def test_groups_are_sorted(self, registry):
        registry.group("zeta")
        registry.group("alpha")

        assert [g.name for g in registry.groups()] == ["alpha", "zeta"]
        assert [g.full_path for g in registry.all_groups()] == ["", "alpha", "zeta"]

    def test_missing_group_after_parse_raises(self, registry):
        registry.parse()

        with pytest.raises(NoSuchGroupError):
            registry.group("nope")

    def test_has_group_does_not_create(self, registry):
        assert registry.has_group("x.y") is False
        assert registry.group("x") is not None
        assert registry.has_group("x.y") is False

    def test_custom_separator(self):
        conf = Registry(separator="/")
        conf.group("db/pool").register_opt(int_opt("size", 4))

        assert conf.get("db/pool/size") == 4
        assert conf.group("db").group("pool").full_path == "db/pool"


# ============================================================================
# REGISTRATION
# ============================================================================


@pytest.mark.unit
class TestRegistration:
    """Test option registration rules."""

    def test_duplicate_registration_raises(self, registry):
        registry.register_opt(str_opt("host"))

        with pytest.raises(DuplicateOptionError):
            registry.register_opt(str_opt("HOST"))

    def test_duplicate_ignored_when_configured(self, registry):
        # Arrange
        registry.set_ignore_reregister()
        registry.register_opt(str_opt("host", "a"))

        # Act
        registry.register_opt(str_opt("host", "b"))

        # Assert
        assert registry.get("host") == "a"

    def test_option_without_default_has_no_value(self, registry):
        registry.register_opt(int_opt("port"))

        assert registry.is_set("port") is False
        with pytest.raises(OptionValueError):
            registry.get("port")

    def test_zero_policy_stores_type_zero(self):
        conf = Registry(zero=True)
        conf.register_opts([int_opt("port"), str_list_opt("tags")])

        assert conf.get("port") == 0
        assert conf.get("tags") == []

    def test_invalid_default_is_rejected_by_validators(self, registry):
        with pytest.raises(ValidationError):
            registry.register_opt(int_opt("port", 70000, validators=(int_range(0, 65535),)))

    def test_name_containing_separator_is_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register_opt(str_opt("a.b"))

    def test_register_into_group_by_path(self, registry):
        registry.register_opts([int_opt("opt2", 123)], group="group1")

        assert registry.group("group1").has_opt("opt2")
        assert registry.get("group1.opt2") == 123

    def test_registration_after_parse_fails(self, registry):
        registry.parse()

        with pytest.raises(ParsedError):
            registry.register_opt(str_opt("late"))

    def test_unregister_removes_option_and_snapshot_entry(self, registry):
        registry.register_opt(str_opt("tmp", "x"), group="g")

        assert registry.unregister_opt("g.tmp") is True
        assert registry.has_opt("g.tmp") is False
        assert "g.tmp" not in registry.snapshot()
        assert registry.unregister_opt("g.tmp") is False

    def test_register_observers_are_notified(self, registry):
        seen = []
        registry.on_register(lambda group, opt: seen.append((group, opt.name)))

        registry.register_opt(int_opt("port"), group="http")

        assert seen == [("http", "port")]

    def test_all_opts_lists_full_paths(self, registry):
        registry.register_opts([str_opt("b"), str_opt("a").as_cli()])
        registry.register_opt(int_opt("c"), group="g")

        assert [path for path, _ in registry.all_opts()] == ["a", "b", "g.c"]
        assert [path for path, _ in registry.cli_opts()] == ["a"]
        assert [path for path, _ in registry.non_cli_opts()] == ["b", "g.c"]


# ============================================================================
# UPDATE PROTOCOL
# ============================================================================


@pytest.mark.unit
class TestUpdateProtocol:
    """Test resolve -> parse -> validate -> swap -> notify."""

    def test_scenario_root_option_update_notifies_observer(self, registry, changes):
        # Arrange
        registry.register_opt(str_opt("opt1", "abc"))
        registry.observe(changes)

        # Act
        changed = registry.update("opt1", "xyz")

        # Assert
        assert changed is True
        assert changes.events == [("", "opt1", "abc", "xyz")]
        assert registry.get("opt1") == "xyz"

    def test_scenario_group_option_parsed_from_string(self, registry):
        registry.register_opts([int_opt("opt2", 123)], group="group1")

        registry.update("group1.opt2", "789")

        assert registry.get_int("group1.opt2") == 789
        assert registry.group("group1").get_int("opt2") == 789

    def test_repeated_update_notifies_once(self, registry, changes):
        registry.register_opt(int_opt("n", 1))
        registry.observe(changes)

        assert registry.update("n", 5) is True
        assert registry.update("n", "5") is False

        assert len(changes.events) == 1

    def test_first_value_reports_none_as_old(self, registry, changes):
        registry.register_opt(int_opt("port"))
        registry.observe(changes)

        registry.update("port", 80)

        assert changes.events == [("", "port", None, 80)]

    def test_parse_failure_leaves_value_untouched(self, registry, changes):
        # Arrange
        registry.register_opt(int_opt("n", 1), group="g")
        registry.observe(changes)

        # Act & Assert
        with pytest.raises(ParseError) as exc_info:
            registry.update("g.n", "not-a-number")

        assert exc_info.value.group == "g"
        assert registry.get("g.n") == 1
        assert changes.events == []

    def test_validation_failure_leaves_value_untouched(self, registry):
        registry.register_opt(int_opt("port", 80, validators=(int_range(1, 1024),)), group="http")

        with pytest.raises(ValidationError) as exc_info:
            registry.update("http.port", 8080)

        assert exc_info.value.group == "http"
        assert exc_info.value.option == "port"
        assert exc_info.value.value == 8080
        assert registry.get("http.port") == 80

    def test_unknown_option_raises(self, registry):
        with pytest.raises(NoSuchOptionError):
            registry.update("missing", 1)

    def test_on_update_callback_receives_old_and_new(self, registry):
        seen = []
        registry.register_opt(int_opt("n", 1).with_on_update(lambda old, new: seen.append((old, new))))

        registry.update("n", 2)
        registry.update("n", 2)

        assert seen == [(1, 2)]

    def test_group_update_and_set(self, registry):
        group = registry.group("db")
        group.register_opt(str_opt("host", "localhost"))

        group.update("host", "db1")
        group.set("HOST", "db2")

        assert group.get("host") == "db2"

    def test_parse_value_does_not_store(self, registry):
        registry.register_opt(duration_opt("timeout", "1s"))

        assert registry.parse_value("timeout", "2m") == timedelta(minutes=2)
        assert registry.get("timeout") == timedelta(seconds=1)

    def test_metrics_count_updates(self, registry):
        registry.register_opt(int_opt("n", 1))

        registry.update("n", 2)
        registry.update("n", 2)
        with pytest.raises(ParseError):
            registry.update("n", "x")

        metrics = registry.get_metrics()
        assert metrics["updates"] == 2
        assert metrics["changes"] == 1
        assert metrics["unchanged"] == 1
        assert metrics["parse_errors"] == 1


# ============================================================================
# TYPED ACCESSORS
# ============================================================================


@pytest.mark.unit
class TestTypedAccessors:
    """Test typed getters and type safety."""

    def test_typed_getter_on_wrong_type_raises(self, registry):
        registry.register_opt(str_opt("name", "x"))

        with pytest.raises(OptionTypeError) as exc_info:
            registry.get_int("name")

        assert exc_info.value.expected == "int"
        assert exc_info.value.actual == "str"

    def test_typed_getter_default_covers_missing_and_mismatch(self, registry):
        registry.register_opt(str_opt("name", "x"))

        assert registry.get_int("name", 7) == 7
        assert registry.get_int("missing", 8) == 8

    def test_each_typed_getter(self, registry):
        registry.register_opts(
            [
                bool_opt("b", "true"),
                float_opt("f", "1.5"),
                int_list_opt("il", "1,2"),
                str_list_opt("sl", "a,b"),
            ]
        )

        assert registry.get_bool("b") is True
        assert registry.get_float("f") == 1.5
        assert registry.get_int_list("il") == [1, 2]
        assert registry.get_str_list("sl") == ["a", "b"]

    def test_returned_list_cannot_mutate_stored_value(self, registry):
        registry.register_opt(int_list_opt("ids", [1]))

        registry.get_int_list("ids").append(2)

        assert registry.get("ids") == [1]


# ============================================================================
# FREEZE AND OVERRIDES
# ============================================================================


@pytest.mark.unit
class TestFreezeAndOverrides:
    """Test frozen options and programmatic overrides."""

    def test_frozen_option_keeps_value_and_notifies_nobody(self, registry, changes):
        # Arrange
        registry.register_opt(int_opt("n", 1))
        registry.observe(changes)
        registry.freeze_opt("n")

        # Act
        changed = registry.update("n", 2)

        # Assert
        assert changed is False
        assert registry.get("n") == 1
        assert registry.is_frozen("n")
        assert changes.events == []
        assert registry.get_metrics()["frozen_skips"] == 1

    def test_unfreeze_restores_updates(self, registry):
        registry.register_opt(int_opt("n", 1))
        registry.freeze_opt("n")
        registry.unfreeze_opt("n")

        registry.update("n", 2)

        assert registry.get("n") == 2

    def test_freeze_unknown_option_returns_false(self, registry):
        assert registry.freeze_opt("ghost") is False

    def test_frozen_option_still_validates(self, registry):
        registry.register_opt(int_opt("n", 1))
        registry.freeze_opt("n")

        with pytest.raises(ParseError):
            registry.update("n", "bad")

    def test_override_wins_over_later_updates(self, registry):
        # Arrange
        registry.register_opt(str_opt("mode", "a"))

        # Act
        registry.set_override("mode", "forced")
        registry.update("mode", "b")
        registry.load_map({"mode": "c"})

        # Assert
        assert registry.get("mode") == "forced"
        assert registry.has_override("mode")

    def test_clear_override_allows_updates_again(self, registry):
        registry.register_opt(str_opt("mode", "a"))
        registry.set_override("mode", "forced")

        assert registry.clear_override("mode") is True
        registry.update("mode", "b")

        assert registry.get("mode") == "b"
        assert registry.clear_override("mode") is False


# ============================================================================
# ALIASES
# ============================================================================


@pytest.mark.unit
class TestAliases:
    """Test option aliases."""

    def test_registry_alias_shares_the_cell(self, registry):
        # Arrange
        registry.register_opt(str_opt("newname", "v1"))
        registry.register_alias("oldname", "newname")

        # Act
        registry.update("oldname", "v2")

        # Assert
        assert registry.get("newname") == "v2"
        assert registry.get("oldname") == "v2"

        registry.update("newname", "v3")
        assert registry.get("oldname") == "v3"

    def test_opt_aliases_resolve_within_group(self, registry):
        registry.register_opt(str_opt("host", "a", aliases=("hostname",)), group="db")

        registry.update("db.hostname", "b")

        assert registry.get("db.host") == "b"
        assert registry.group("db").get("hostname") == "b"

    def test_alias_to_missing_option_raises(self, registry):
        with pytest.raises(NoSuchOptionError):
            registry.register_alias("old", "missing")

    def test_alias_clashing_with_option_raises(self, registry):
        registry.register_opts([str_opt("a"), str_opt("b")])

        with pytest.raises(DuplicateOptionError):
            registry.register_alias("a", "b")

    def test_alias_keys_in_loaded_maps(self, registry):
        registry.register_opt(str_opt("newname", "v1"))
        registry.register_alias("oldname", "newname")

        registry.load_map({"oldname": "from-map"})

        assert registry.get("newname") == "from-map"


# ============================================================================
# REQUIRED OPTIONS AND PARSE LIFECYCLE
# ============================================================================


@pytest.mark.unit
class TestRequiredAndParse:
    """Test required options and the parse lifecycle."""

    def test_required_option_check(self, registry):
        # Arrange
        registry.register_opt(int_opt("port").as_required())

        # Act & Assert
        with pytest.raises(RequiredOptionMissingError) as exc_info:
            registry.check_required_options()
        assert exc_info.value.missing == ["port"]

        registry.update("port", 80)
        registry.check_required_options()

    def test_explicit_zero_satisfies_required(self, registry):
        registry.register_opt(int_opt("retries").as_required())

        registry.update("retries", 0)

        registry.check_required_options()

    def test_global_required_policy(self):
        conf = Registry(required=True)
        conf.register_opts([int_opt("a", 1), int_opt("b")], group="g")

        with pytest.raises(RequiredOptionMissingError) as exc_info:
            conf.parse()

        assert exc_info.value.missing == ["g.b"]

    def test_parse_twice_raises(self, registry):
        registry.parse()

        with pytest.raises(ParsedError):
            registry.parse()

    def test_parse_applies_sources_then_runs_validators(self, registry, fake_source_cls):
        # Arrange
        seen = []
        registry.register_opts([int_opt("low", 1), int_opt("high", 10)])

        def ordered(conf):
            seen.append((conf.get("low"), conf.get("high")))
            if conf.get("low") > conf.get("high"):
                raise ValueError("low must not exceed high")

        registry.add_validator(ordered)

        # Act
        registry.parse(fake_source_cls({"low": 3, "high": 5}))

        # Assert
        assert seen == [(3, 5)]
        assert registry.parsed

    def test_cross_validator_failure_propagates(self, registry, fake_source_cls):
        registry.register_opts([int_opt("low", 1), int_opt("high", 10)])

        def ordered(conf):
            if conf.get("low") > conf.get("high"):
                raise ValueError("low must not exceed high")

        registry.add_validator(ordered)

        with pytest.raises(ValueError, match="low must not exceed high"):
            registry.parse(fake_source_cls({"low": 30}))

    def test_stop_skips_required_check(self, registry):
        registry.register_opt(int_opt("port").as_required())
        registry.stop()

        registry.parse()

        assert registry.stopped is True

    def test_structure_settings_locked_after_parse(self, registry):
        registry.parse()

        with pytest.raises(StructuralError):
            registry.set_group_separator("/")
        with pytest.raises(ParsedError):
            registry.set_zero()

    def test_separator_change_rebuilds_snapshot(self, registry):
        registry.register_opt(int_opt("size", 4), group="db.pool")

        registry.set_group_separator("/")

        assert registry.snapshot() == {"db/pool/size": 4}
        assert registry.get("db/pool/size") == 4


# ============================================================================
# OBSERVERS AND ERROR ROUTING
# ============================================================================


@pytest.mark.unit
class TestObservers:
    """Test observer fan-out."""

    def test_observers_run_in_registration_order(self, registry):
        order = []
        registry.register_opt(int_opt("n", 0))
        registry.observe(lambda *args: order.append("first"))
        registry.observe(lambda *args: order.append("second"))

        registry.update("n", 1)

        assert order == ["first", "second"]

    def test_failing_observer_is_routed_and_others_still_run(self, registry, errors, changes):
        # Arrange
        registry.register_opt(int_opt("n", 0))

        def broken(*args):
            raise RuntimeError("observer down")

        registry.observe(broken, identifier="broken")
        registry.observe(changes)

        # Act
        changed = registry.update("n", 1)

        # Assert
        assert changed is True
        assert len(changes.events) == 1
        assert isinstance(errors.errors[0], RuntimeError)
        assert errors.calls[0][1]["observer_id"] == "broken"
        assert registry.get_metrics()["observer_errors"] == 1

    def test_failing_on_update_is_routed(self, registry, errors):
        def explode(old, new):
            raise RuntimeError("boom")

        registry.register_opt(int_opt("n", 0).with_on_update(explode))

        registry.update("n", 1)

        assert registry.get("n") == 1
        assert errors.operations == ["on_update"]

    def test_unobserve_stops_notifications(self, registry, changes):
        registry.register_opt(int_opt("n", 0))
        identifier = registry.observe(changes)

        assert registry.unobserve(identifier) is True
        registry.update("n", 1)

        assert changes.events == []

    def test_duplicate_observer_identifier_rejected(self, registry):
        registry.observe(lambda *a: None, identifier="dup")

        with pytest.raises(ValueError):
            registry.observe(lambda *a: None, identifier="dup")

    def test_failing_error_handler_does_not_escape(self, registry):
        def bad_handler(exc, context):
            raise RuntimeError("handler down")

        registry.set_error_handler(bad_handler)

        registry.handle_error(ValueError("x"), operation="test")

        assert registry.get_metrics()["handled_errors"] == 1


# ============================================================================
# SNAPSHOT AND HEALTH
# ============================================================================


@pytest.mark.unit
class TestSnapshotAndHealth:
    """Test the snapshot mirror and health reporting."""

    def test_snapshot_contains_set_options_only(self, registry):
        registry.register_opts([str_opt("a", "x"), int_opt("b")])
        registry.register_opt(int_opt("c", 3), group="g")

        assert registry.snapshot() == {"a": "x", "g.c": 3}

    def test_snapshot_is_a_copy(self, registry):
        registry.register_opt(int_list_opt("ids", [1]))

        registry.snapshot()["ids"].append(2)

        assert registry.snapshot()["ids"] == [1]

    def test_generation_advances_on_change_only(self, registry):
        registry.register_opt(int_opt("n", 1))
        start = registry.snapshot_generation()

        registry.update("n", 1)
        assert registry.snapshot_generation() == start

        registry.update("n", 2)
        assert registry.snapshot_generation() == start + 1

    def test_health_snapshot_status(self, registry):
        assert registry.health_snapshot()["status"] == "not_parsed"

        registry.parse()
        assert registry.health_snapshot()["status"] == "healthy"

        registry.handle_error(RuntimeError("x"))
        health = registry.health_snapshot()
        assert health["status"] == "degraded"
        assert health["is_healthy"] is False

    def test_observers_cannot_mutate_the_stored_list(self, registry):
        # Arrange
        registry.register_opt(int_list_opt("ids", [1]).with_on_update(lambda old, new: new.append(98)))
        registry.observe(lambda group, option, old, new: new.append(99))

        # Act
        registry.update("ids", [1, 2])

        # Assert
        assert registry.get("ids") == [1, 2]
        assert registry.snapshot()["ids"] == [1, 2]


# ============================================================================
# CONCURRENCY
# ============================================================================


def _run_all(threads):
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10.0)
        assert not thread.is_alive()


@pytest.mark.unit
class TestConcurrentUpdates:
    """Test the update protocol under several writer threads."""

    def test_snapshot_follows_the_last_swap_when_writers_interleave(self, registry):
        # Arrange
        registry.register_opt(int_opt("x", 0))
        first_notified = threading.Event()
        release_first = threading.Event()

        def hold_first_writer(group, option, old, new):
            if new == 1:
                first_notified.set()
                release_first.wait(5.0)

        registry.observe(hold_first_writer)
        first = threading.Thread(target=registry.update, args=("x", 1))
        first.start()
        assert first_notified.wait(5.0)

        # Act
        registry.update("x", 2)
        release_first.set()
        first.join(5.0)

        # Assert
        assert registry.get("x") == 2
        assert registry.snapshot()["x"] == 2

    def test_writers_on_one_option_are_linearised(self, registry, changes):
        # Arrange
        registry.register_opt(int_opt("x", 0))
        registry.observe(changes)
        results = []
        lock = threading.Lock()

        def writer(seed):
            for i in range(50):
                changed = registry.update("x", seed * 1000 + i)
                with lock:
                    results.append(changed)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(1, 9)]

        # Act
        _run_all(threads)

        # Assert
        assert len(results) == 400
        assert len(changes.events) == sum(results)
        assert registry.get_metrics()["changes"] == sum(results)
        assert registry.snapshot()["x"] == registry.get("x")

    def test_writers_on_distinct_options_do_not_interfere(self, registry, changes):
        # Arrange
        names = [f"opt{n}" for n in range(8)]
        registry.register_opts([int_opt(name, 0) for name in names])
        registry.observe(changes)

        def writer(name):
            for i in range(1, 101):
                registry.update(name, i)

        threads = [threading.Thread(target=writer, args=(name,)) for name in names]

        # Act
        _run_all(threads)

        # Assert
        assert len(changes.events) == 800
        assert all(registry.get(name) == 100 for name in names)
        assert registry.snapshot() == {name: 100 for name in names}

    def test_override_survives_concurrent_updates(self, registry):
        # Arrange
        registry.register_opt(int_opt("x", 0))
        started = threading.Event()

        def writer(seed):
            for i in range(300):
                if i == 20:
                    started.set()
                registry.update("x", seed * 1000 + i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(1, 5)]
        for thread in threads:
            thread.start()

        # Act
        assert started.wait(5.0)
        registry.set_override("x", -1)
        for thread in threads:
            thread.join(10.0)

        # Assert
        assert registry.get("x") == -1
        assert registry.snapshot()["x"] == -1
        assert registry.has_override("x")
