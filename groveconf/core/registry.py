"""
The configuration Registry.

Purpose
-------
Own the option tree and every piece of state that must stay consistent with
it: the flat index of option paths, the alias table, programmatic overrides,
observers, the snapshot mirror, decoders and the background watchers.

Responsibilities
----------------
- Register options into groups and index them by full path
- Run the update protocol: resolve -> parse -> validate -> swap -> notify
- Merge sources by priority and load them (once, or watched)
- Check required options and cross-option validators after parsing
- Route background errors to a pluggable error handler

Non-Responsibilities
--------------------
- Producing raw data (handled by sources)
- Turning bytes into mappings (handled by decoders)

Design Decisions
----------------
- Per-cell locks linearise updates of one option. The override flag lives
  on the cell and the snapshot mirror is written under the cell lock, so
  neither can drift from the stored value. The coarse RLock guards only
  the index and alias tables and is never held while callbacks run.
- Load passes parse and validate every known key before applying any of
  them, so a bad value never leaves a half-applied pass behind.
- Observers receive ``None`` as the old value when the option had none.

Dependencies
------------
- groveconf.core.logging (structured logging)
- groveconf.observe (observer fan-out, snapshot mirror)
- groveconf.decoders (decoder table)
"""

from __future__ import annotations

import copy
import dataclasses
import threading
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Set,
    Tuple,
    Union,
)

from groveconf.backup import BackupFile
from groveconf.core.cell import (
    ORIGIN_DEFAULT,
    ORIGIN_OVERRIDE,
    ORIGIN_PROGRAMMATIC,
    ORIGIN_ZERO,
    SKIP_OVERRIDDEN,
    UNSET,
    ValueCell,
)
from groveconf.core.command import Action, Command
from groveconf.core.exceptions import (
    DuplicateOptionError,
    GroveConfError,
    NoSuchOptionError,
    OptionTypeError,
    OptionValueError,
    ParseError,
    ParsedError,
    RequiredOptionMissingError,
    SourceError,
    StructuralError,
    ValidationError,
)
from groveconf.core.group import Group, TypedAccessorMixin
from groveconf.core.logging import LogContext, get_logger
from groveconf.core.metrics import RegistryMetrics, get_health_snapshot
from groveconf.core.option import Opt, iter_opts, normalize_name
from groveconf.core.proxy import OptProxy
from groveconf.core.types import OptType
from groveconf.decoders import Decoder, DecoderRegistry, make_ini_decoder
from groveconf.observe import (
    ChangeCallback,
    ChangeEvent,
    ErrorHandler,
    ObserverBus,
    RegisterCallback,
    SnapshotMirror,
)
from groveconf.sources.base import DataSet, Source

logger = get_logger(__name__)

Key = Tuple[str, ...]
CrossValidator = Callable[["Registry"], Any]


class _Pending(NamedTuple):
    key: Key
    group: Group
    opt: Opt
    cell: ValueCell
    value: Any


def _detach(value: Any) -> Any:
    return copy.copy(value) if isinstance(value, list) else value


def _log_error(exc: BaseException, context: Dict[str, Any]) -> None:
    extra: Dict[str, Any] = {
        **context,
        "error": str(exc),
        "error_type": type(exc).__name__,
    }
    if isinstance(exc, GroveConfError):
        extra["error_code"] = exc.error_code
        extra["error_details"] = exc.details
    logger.error("Configuration error", extra=extra)


class Registry(TypedAccessorMixin):
    """
    Root of a configuration tree.

    Parameters
    ----------
    separator:
        Group path separator.
    default_group_name:
        Name that, as the first path segment, refers to the root group.
    zero:
        Store the type's zero value for options registered without default.
    required:
        Treat every option as required.
    ignore_reregister:
        Drop duplicate registrations with a warning instead of raising.
    error_handler:
        Called as ``handler(exc, context)`` for errors raised in background
        work and callbacks. The default logs them at ERROR.

    Examples
    --------
    >>> conf = Registry()
    >>> conf.register_opts([str_opt("opt1", "abc"), int_opt("port", 80).as_cli()])
    >>> conf.group("db").register_opt(str_opt("host", "localhost"))
    >>> conf.parse(EnvSource(prefix="APP_"))
    >>> conf.get("db.host")
    'localhost'
    """

    def __init__(
        self,
        separator: str = ".",
        default_group_name: str = "DEFAULT",
        zero: bool = False,
        required: bool = False,
        ignore_reregister: bool = False,
        error_handler: Optional[ErrorHandler] = None,
    ) -> None:
        if not separator:
            raise ValueError("the group separator must not be empty")

        self._lock = threading.RLock()
        self._separator = separator
        self._default_group = default_group_name
        self._zero = zero
        self._required = required
        self._ignore_reregister = ignore_reregister
        self._error_handler: ErrorHandler = error_handler or _log_error

        self._root = Group(self)
        self._index: Dict[Key, Tuple[Group, str]] = {}
        self._aliases: Dict[Key, Key] = {}

        self._metrics = RegistryMetrics()
        self._mirror = SnapshotMirror()
        self._observers = ObserverBus("change", self._route_error, self._metrics.record_observer_error)
        self._register_observers = ObserverBus(
            "register", self._route_error, self._metrics.record_observer_error
        )
        self._decoders = DecoderRegistry.with_defaults(default_group_name)
        self._validators: List[CrossValidator] = []

        self._action: Optional[Action] = None
        self._executed: Optional[Command] = None

        self._exit_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self._backups: List[BackupFile] = []

        self._parsed = False
        self._stopped = False
        self._closed = False

    def __repr__(self) -> str:
        return f"Registry(options={len(self._index)}, parsed={self._parsed})"

    # =========================================================================
    # State
    # =========================================================================

    @property
    def root(self) -> Group:
        return self._root

    @property
    def separator(self) -> str:
        return self._separator

    @property
    def default_group_name(self) -> str:
        return self._default_group

    @property
    def parsed(self) -> bool:
        return self._parsed

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exit_event(self) -> threading.Event:
        return self._exit_event

    @property
    def metrics(self) -> RegistryMetrics:
        return self._metrics

    def _check_not_parsed(self, operation: str) -> None:
        if self._parsed:
            raise ParsedError(operation)

    # =========================================================================
    # Structure settings
    # =========================================================================

    def set_group_separator(self, separator: str) -> "Registry":
        self._check_not_parsed("set the group separator")
        if not separator:
            raise ValueError("the group separator must not be empty")
        with self._lock:
            self._separator = separator
            mirror = SnapshotMirror()
            for key, (group, name) in self._index.items():
                cell = group._cells[name]
                if cell.is_set:
                    mirror.set(separator.join(key), cell.get())
            self._mirror = mirror
        return self

    def set_default_group_name(self, name: str) -> "Registry":
        self._check_not_parsed("set the default group name")
        if not name.strip():
            raise ValueError("the default group name must not be empty")
        self._default_group = name.strip()
        self._decoders.add(make_ini_decoder(self._default_group), force=True)
        return self

    def set_zero(self, zero: bool = True) -> "Registry":
        self._check_not_parsed("set the zero policy")
        self._zero = zero
        return self

    def set_required(self, required: bool = True) -> "Registry":
        self._check_not_parsed("set the required policy")
        self._required = required
        return self

    def set_ignore_reregister(self, ignore: bool = True) -> "Registry":
        self._ignore_reregister = ignore
        return self

    def set_error_handler(self, handler: Optional[ErrorHandler]) -> "Registry":
        """Install `handler`; ``None`` restores the logging handler."""
        self._error_handler = handler or _log_error
        return self

    # =========================================================================
    # Paths
    # =========================================================================

    def _split(self, path: str, base: Key = ()) -> Key:
        """Normalise `path` relative to `base` into a tuple of segments."""
        parts = [normalize_name(p) for p in str(path).split(self._separator)]
        parts = [p for p in parts if p]
        if not base and parts and parts[0] == normalize_name(self._default_group):
            parts = parts[1:]
        return base + tuple(parts)

    def _join(self, key: Key) -> str:
        return self._separator.join(key)

    def _canonical(self, key: Key) -> Key:
        with self._lock:
            return self._aliases.get(key, key)

    def _lookup(self, key: Key) -> Tuple[Group, Opt, ValueCell]:
        with self._lock:
            entry = self._index.get(self._aliases.get(key, key))
            if entry is None:
                raise NoSuchOptionError(self._join(key))
            group, name = entry
            return group, group._opts[name], group._cells[name]

    def _has(self, key: Key) -> bool:
        with self._lock:
            return self._aliases.get(key, key) in self._index

    # =========================================================================
    # Groups
    # =========================================================================

    def group(self, path: str) -> Group:
        """Return the group at `path`, creating it before parsing."""
        return self._root.group(path)

    def has_group(self, path: str) -> bool:
        return self._root.has_group(path)

    def groups(self) -> List[Group]:
        return self._root.groups()

    def all_groups(self) -> List[Group]:
        return self._root.all_groups()

    # =========================================================================
    # Registration
    # =========================================================================

    def register_opt(self, opt: Opt, group: str = "") -> "Registry":
        self._register(self.group(group), opt)
        return self

    def register_opts(self, opts: Union[Opt, Iterable[Opt]], group: str = "") -> "Registry":
        target = self.group(group)
        for opt in iter_opts(opts):
            self._register(target, opt)
        return self

    def register_cli_opt(self, opt: Opt, group: str = "") -> "Registry":
        return self.register_opt(opt.as_cli(), group)

    def register_cli_opts(self, opts: Union[Opt, Iterable[Opt]], group: str = "") -> "Registry":
        return self.register_opts([opt.as_cli() for opt in iter_opts(opts)], group)

    def unregister_opt(self, path: str) -> bool:
        key = self._split(path)
        if not key:
            return False
        return self._unregister(self.group(self._join(key[:-1])), key[-1])

    def new_proxy(self, opt: Opt, group: str = "") -> OptProxy:
        """Register `opt` into `group` and return an `OptProxy` bound to it."""
        return self.group(group).new_proxy(opt)

    def _replace_opt(self, group: Group, name: str, structural: bool, **changes: Any) -> Opt:
        if structural:
            self._check_not_parsed("change the command line settings of an option")
        with self._lock:
            current = group._opts.get(name)
            if current is None:
                raise NoSuchOptionError(self._join(group.segments + (name,)))
            opt = dataclasses.replace(current, **changes)
            group._opts[name] = opt
        logger.debug(
            "Option descriptor replaced",
            extra={"group": group.full_path, "option": name, "fields": sorted(changes)},
        )
        return opt

    def register_alias(self, alias: str, target: str) -> "Registry":
        """Make the full path `alias` resolve to the option at `target`."""
        self._check_not_parsed("register an alias")
        alias_key = self._split(alias)
        with self._lock:
            target_key = self._aliases.get(self._split(target), self._split(target))
            if target_key not in self._index:
                raise NoSuchOptionError(target)
            if alias_key in self._index or alias_key in self._aliases:
                raise DuplicateOptionError(self._join(alias_key[:-1]), alias_key[-1])
            self._aliases[alias_key] = target_key
        logger.debug(
            "Alias registered",
            extra={"alias": self._join(alias_key), "target": self._join(target_key)},
        )
        return self

    def _register(self, group: Group, opt: Opt) -> bool:
        self._check_not_parsed("register an option")
        if self._separator in opt.name:
            raise ValueError(f"the option name '{opt.name}' contains the group separator")

        value: Any = UNSET
        origin = ""
        if opt.has_default:
            value, origin = opt.default, ORIGIN_DEFAULT
            try:
                opt.validate(value)
            except ValidationError as exc:
                raise exc.bind(group.full_path, opt.name, value)
        elif self._zero:
            value, origin = opt.zero(), ORIGIN_ZERO

        key = group.segments + (opt.name,)
        alias_keys = [group.segments + (alias,) for alias in opt.aliases]

        with self._lock:
            if opt.name in group._opts or key in self._aliases:
                if self._ignore_reregister:
                    logger.warning(
                        "Duplicate option registration ignored",
                        extra={"group": group.full_path, "option": opt.name},
                    )
                    return False
                raise DuplicateOptionError(group.full_path, opt.name)
            for alias_key in alias_keys:
                if alias_key in self._index or alias_key in self._aliases:
                    raise DuplicateOptionError(group.full_path, alias_key[-1])

            cell = ValueCell()
            if value is not UNSET:
                cell.initialize(value, origin)
            group._opts[opt.name] = opt
            group._cells[opt.name] = cell
            self._index[key] = (group, opt.name)
            for alias_key in alias_keys:
                self._aliases[alias_key] = key

        if value is not UNSET:
            self._mirror.set(self._join(key), value)

        logger.debug(
            "Option registered",
            extra={
                "group": group.full_path,
                "option": opt.name,
                "type": opt.type.value,
                "cli": opt.cli,
                "required": opt.required,
            },
        )
        self._register_observers.publish(group.full_path, opt)
        return True

    def _unregister(self, group: Group, name: str) -> bool:
        self._check_not_parsed("unregister an option")
        key = group.segments + (name,)
        with self._lock:
            if name not in group._opts:
                return False
            del group._opts[name]
            del group._cells[name]
            self._index.pop(key, None)
            for alias_key in [a for a, target in self._aliases.items() if target == key]:
                del self._aliases[alias_key]
        self._mirror.delete(self._join(key))
        logger.debug("Option unregistered", extra={"group": group.full_path, "option": name})
        return True

    # =========================================================================
    # Reads
    # =========================================================================

    def opt(self, path: str) -> Opt:
        return self._lookup(self._split(path))[1]

    def has_opt(self, path: str) -> bool:
        return self._has(self._split(path))

    def is_set(self, path: str) -> bool:
        return self._lookup(self._split(path))[2].is_set

    def get(self, path: str) -> Any:
        """
        Return the current value of the option at `path`.

        Raises
        ------
        NoSuchOptionError
            If no option is registered at `path`.
        OptionValueError
            If the option has no value.
        """
        return self._get(self._split(path))

    def _get(self, key: Key) -> Any:
        group, opt, cell = self._lookup(key)
        if not cell.is_set:
            raise OptionValueError(group.full_path, opt.name)
        return cell.get()

    def _read_typed(self, key: Key, kind: OptType) -> Any:
        group, opt, cell = self._lookup(key)
        if opt.type is not kind:
            raise OptionTypeError(group.full_path, opt.name, kind.value, opt.type.value)
        if not cell.is_set:
            raise OptionValueError(group.full_path, opt.name)
        return cell.get()

    def _typed_lookup(self, name: str, kind: OptType) -> Any:
        return self._read_typed(self._split(name), kind)

    def _iter_opts(self) -> Iterator[Tuple[str, Opt]]:
        with self._lock:
            entries = sorted(self._index.items())
        for key, (group, name) in entries:
            yield self._join(key), group._opts[name]

    def all_opts(self) -> List[Tuple[str, Opt]]:
        """Every registered option as ``(full_path, opt)``, sorted by path."""
        return list(self._iter_opts())

    def cli_opts(self) -> List[Tuple[str, Opt]]:
        return [(path, opt) for path, opt in self._iter_opts() if opt.cli]

    def non_cli_opts(self) -> List[Tuple[str, Opt]]:
        return [(path, opt) for path, opt in self._iter_opts() if not opt.cli]

    # =========================================================================
    # Update protocol
    # =========================================================================

    def _prepare(self, key: Key, raw: Any) -> _Pending:
        group, opt, cell = self._lookup(key)
        try:
            value = opt.parse(raw)
        except ParseError as exc:
            self._metrics.record_parse_error()
            raise ParseError(opt.name, raw, exc.reason, group=group.full_path) from exc
        try:
            opt.validate(value)
        except ValidationError as exc:
            self._metrics.record_validation_error()
            raise exc.bind(group.full_path, opt.name, value)
        return _Pending(group.segments + (opt.name,), group, opt, cell, value)

    def _commit(self, pending: _Pending, origin: str, override: bool = False) -> bool:
        path = self._join(pending.key)
        mirror = self._mirror

        def mirror_value(value: Any) -> None:
            mirror.set(path, value)

        if override:
            result = pending.cell.override(pending.value, mirror_value)
        else:
            result = pending.cell.swap(pending.value, origin, mirror_value)

        if not result.applied:
            if result.skipped == SKIP_OVERRIDDEN:
                self._metrics.record_override_skip()
            else:
                self._metrics.record_frozen_skip()
            logger.debug(
                "Update ignored",
                extra={"option": path, "origin": origin, "reason": result.skipped},
            )
            return False

        self._metrics.record_update(result.changed)
        if result.changed:
            previous = None if result.old is UNSET else result.old
            event = ChangeEvent(pending.group.full_path, pending.opt.name, previous, pending.value, origin)
            logger.debug("Option changed", extra=event.to_dict())
            on_update = pending.opt.on_update
            if on_update is not None:
                try:
                    on_update(previous, _detach(pending.value))
                except Exception as exc:
                    self._metrics.record_observer_error()
                    self._route_error(exc, {"operation": "on_update", "option": path})
            self._observers.publish(
                pending.group.full_path, pending.opt.name, previous, _detach(pending.value)
            )
        return result.changed

    def _update(self, key: Key, raw: Any, origin: str = ORIGIN_PROGRAMMATIC) -> bool:
        return self._commit(self._prepare(key, raw), origin)

    def update(self, path: str, raw: Any) -> bool:
        """
        Parse, validate and store `raw` as the value of the option at `path`.

        Returns
        -------
        bool
            True when the effective value changed (observers were notified).

        Raises
        ------
        NoSuchOptionError, ParseError, ValidationError
            Nothing is modified when any of these is raised.
        """
        return self._update(self._split(path), raw)

    def set(self, path: str, raw: Any) -> bool:
        return self.update(path, raw)

    def parse_value(self, path: str, raw: Any) -> Any:
        """Resolve, parse and validate without storing anything."""
        return self._prepare(self._split(path), raw).value

    # =========================================================================
    # Freezing and overrides
    # =========================================================================

    def _freeze(self, key: Key, freeze: bool) -> bool:
        try:
            cell = self._lookup(key)[2]
        except NoSuchOptionError:
            return False
        if freeze:
            cell.freeze()
        else:
            cell.unfreeze()
        return True

    def freeze_opt(self, path: str) -> bool:
        return self._freeze(self._split(path), True)

    def unfreeze_opt(self, path: str) -> bool:
        return self._freeze(self._split(path), False)

    def is_frozen(self, path: str) -> bool:
        return self._lookup(self._split(path))[2].frozen

    def set_override(self, path: str, raw: Any) -> bool:
        """
        Apply `raw` now and keep it ahead of every source until cleared.

        Returns True when the effective value changed.
        """
        pending = self._prepare(self._split(path), raw)
        return self._commit(pending, ORIGIN_OVERRIDE, override=True)

    def clear_override(self, path: str) -> bool:
        try:
            cell = self._lookup(self._split(path))[2]
        except NoSuchOptionError:
            return False
        return cell.release_override()

    def has_override(self, path: str) -> bool:
        try:
            cell = self._lookup(self._split(path))[2]
        except NoSuchOptionError:
            return False
        return cell.overridden

    # =========================================================================
    # Loading
    # =========================================================================

    def _flatten(self, data: Mapping[str, Any], prefix: Key = ()) -> Dict[Key, Any]:
        result: Dict[Key, Any] = {}
        for raw_key, value in data.items():
            key = self._split(str(raw_key), prefix)
            if isinstance(value, Mapping):
                result.update(self._flatten(value, key))
            elif key:
                result[self._canonical(key)] = value
        return result

    def _load_flat(self, flat: Dict[Key, Tuple[Any, str]], only_unset: bool) -> int:
        pending: List[Tuple[_Pending, str]] = []
        for key, (raw, origin) in flat.items():
            try:
                pending.append((self._prepare(key, raw), origin))
            except NoSuchOptionError:
                logger.debug("Skipping unknown option", extra={"option": self._join(key), "origin": origin})

        changed = 0
        for item, origin in pending:
            if only_unset and item.cell.is_set and item.cell.origin not in (ORIGIN_DEFAULT, ORIGIN_ZERO):
                continue
            if self._commit(item, origin):
                changed += 1
        return changed

    def _read(self, source: Source) -> DataSet:
        try:
            return source.read()
        except GroveConfError:
            raise
        except Exception as exc:
            raise SourceError(str(source), exc) from exc

    def _decode(self, dataset: DataSet) -> Mapping[str, Any]:
        if dataset.is_empty:
            return {}
        decoder = self._decoders.get(dataset.format)
        try:
            return decoder.decode(dataset.data)
        except Exception as exc:
            raise SourceError(dataset.source, exc, dataset.format) from exc

    def load_map(
        self,
        mapping: Mapping[str, Any],
        *,
        only_unset: bool = False,
        origin: str = "map",
    ) -> int:
        """
        Apply a (possibly nested) mapping of option paths to raw values.

        Unknown keys are skipped. Every known key is parsed and validated
        before any is applied. Returns the number of options that changed.
        """
        flat = {key: (value, origin) for key, value in self._flatten(mapping).items()}
        return self._load_flat(flat, only_unset)

    def load_dataset(
        self,
        dataset: DataSet,
        *,
        only_unset: bool = False,
        origin: Optional[str] = None,
    ) -> int:
        return self.load_map(
            self._decode(dataset),
            only_unset=only_unset,
            origin=origin or dataset.source or "dataset",
        )

    def load_source(self, source: Source, *, only_unset: bool = False) -> int:
        """Read, decode and apply one source. Errors propagate to the caller."""
        with LogContext(source=str(source), operation="load"):
            try:
                dataset = self._read(source)
                changed = self.load_dataset(dataset, only_unset=only_unset, origin=str(source))
            except GroveConfError as exc:
                self._metrics.record_load(False)
                logger.warning("Source load failed", extra={"error": str(exc)})
                raise
            self._metrics.record_load(True)
            logger.info(
                "Source loaded",
                extra={"format": dataset.format, "checksum": dataset.checksum, "changed": changed},
            )
            return changed

    def load_sources(self, *sources: Source) -> int:
        """
        Run one load pass over `sources`, lowest priority number winning.

        Every source is read first; their flattened maps are merged from the
        highest priority number to the lowest, and the merged map is applied
        as one pass. The outcome does not depend on argument order.
        """
        if not sources:
            return 0

        with LogContext(operation="load_sources"):
            try:
                datasets = [(source, self._read(source)) for source in sources]
                ordered = sorted(datasets, key=lambda item: (-item[0].priority, str(item[0])))

                merged: Dict[Key, Tuple[Any, str]] = {}
                for source, dataset in ordered:
                    for key, value in self._flatten(self._decode(dataset)).items():
                        merged[key] = (value, str(source))
                changed = self._load_flat(merged, only_unset=False)
            except GroveConfError as exc:
                self._metrics.record_load(False)
                logger.warning("Load pass failed", extra={"error": str(exc)})
                raise

            self._metrics.record_load(True)
            logger.info(
                "Load pass complete",
                extra={"sources": [str(s) for s, _ in ordered], "changed": changed},
            )
            return changed

    def watch_source(self, source: Source) -> threading.Thread:
        """Start a daemon thread running ``source.watch``."""
        origin = str(source)

        def on_change(dataset: DataSet) -> bool:
            if self._closed or self._exit_event.is_set():
                return False
            self._metrics.record_watch_event()
            with LogContext(source=origin, operation="watch"):
                try:
                    changed = self.load_dataset(dataset, origin=origin)
                except Exception as exc:
                    self._route_error(exc, {"operation": "watch", "source": origin})
                    return False
                logger.info("Watched source reloaded", extra={"changed": changed, "checksum": dataset.checksum})
            return True

        def on_error(exc: BaseException) -> None:
            self._route_error(exc, {"operation": "watch", "source": origin})

        def run() -> None:
            try:
                source.watch(self._exit_event, on_change, on_error)
            except Exception as exc:
                on_error(exc)

        thread = threading.Thread(target=run, name=f"groveconf-watch[{origin}]", daemon=True)
        with self._lock:
            self._threads.append(thread)
        thread.start()
        logger.debug("Watching source", extra={"source": origin})
        return thread

    def load_and_watch_source(self, source: Source, *, only_unset: bool = False) -> threading.Thread:
        self.load_source(source, only_unset=only_unset)
        return self.watch_source(source)

    def load_backup_file(self, path: str, interval: Optional[float] = None) -> BackupFile:
        """Load the backup file at `path` and keep it flushed in the background."""
        backup = BackupFile(self, path, interval)
        backup.load()
        backup.start()
        with self._lock:
            self._backups.append(backup)
        return backup

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def add_validator(self, validator: CrossValidator) -> "Registry":
        """Add a check run as ``validator(registry)`` at the end of `parse()`."""
        self._check_not_parsed("add a validator")
        self._validators.append(validator)
        return self

    def parse(self, *sources: Source) -> "Registry":
        """
        Mark the registry parsed and run one load pass over `sources`.

        Unless a source requested an early stop (``--help``), required
        options are checked and cross-option validators run afterwards.
        """
        with self._lock:
            if self._parsed:
                raise ParsedError("parse the registry twice")
            self._parsed = True

        self.load_sources(*sources)

        if self._stopped:
            logger.info("Parsing stopped early")
            return self

        self.check_required_options()
        for validator in list(self._validators):
            validator(self)

        logger.info("Registry parsed", extra={"options": len(self._index)})
        return self

    def stop(self) -> None:
        """Ask the caller to stop after parsing, e.g. after printing ``--help``."""
        self._stopped = True

    def close(self, timeout: float = 5.0) -> None:
        """Stop watchers and backup writers and wait for them to exit."""
        if self._closed:
            return
        self._closed = True
        self._exit_event.set()

        with self._lock:
            threads = list(self._threads)
            backups = list(self._backups)
            self._threads.clear()
            self._backups.clear()

        for thread in threads:
            thread.join(timeout)
        for backup in backups:
            backup.stop(timeout)
        logger.info("Registry closed", extra={"watchers": len(threads), "backups": len(backups)})

    def __enter__(self) -> "Registry":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # =========================================================================
    # Required options
    # =========================================================================

    def _required_groups(self, group: Group, allowed: Set[int]) -> Iterator[Group]:
        if isinstance(group, Command) and id(group) not in allowed:
            return
        yield group
        for child in group.groups():
            yield from self._required_groups(child, allowed)

    def check_required_options(self) -> None:
        """
        Raise `RequiredOptionMissingError` listing every required option
        without a value.

        Commands are only checked when they, or a descendant, were executed.
        """
        allowed: Set[int] = set()
        if self._executed is not None:
            allowed = {id(cmd) for cmd in self._executed.ancestors()}

        missing: List[str] = []
        for group in self._required_groups(self._root, allowed):
            for opt in group.all_opts():
                if (opt.required or self._required) and not group._cells[opt.name].is_set:
                    missing.append(self._join(group.segments + (opt.name,)))

        if missing:
            raise RequiredOptionMissingError(missing)

    # =========================================================================
    # Observation and snapshot
    # =========================================================================

    def observe(self, callback: ChangeCallback, identifier: Optional[str] = None) -> str:
        """
        Call ``callback(group_path, option_name, old, new)`` after every
        effective change. Returns the observer identifier.
        """
        return self._observers.subscribe(callback, identifier)

    def unobserve(self, identifier: str) -> bool:
        return self._observers.unsubscribe(identifier)

    def on_register(self, callback: RegisterCallback, identifier: Optional[str] = None) -> str:
        """Call ``callback(group_path, opt)`` after every registration."""
        return self._register_observers.subscribe(callback, identifier)

    def snapshot(self) -> Dict[str, Any]:
        return self._mirror.copy()

    def snapshot_generation(self) -> int:
        return self._mirror.generation

    def _snapshot_with_generation(self) -> Tuple[Dict[str, Any], int]:
        return self._mirror.copy_with_generation()

    # =========================================================================
    # Errors
    # =========================================================================

    def _route_error(self, exc: BaseException, context: Dict[str, Any]) -> None:
        self._metrics.record_handled_error()
        try:
            self._error_handler(exc, context)
        except Exception:
            logger.exception("Error handler failed", extra={"error": str(exc)})

    def handle_error(self, exc: BaseException, **context: Any) -> None:
        """Route `exc` to the error handler with `context`."""
        self._route_error(exc, context)

    # =========================================================================
    # Decoders
    # =========================================================================

    def add_decoder(self, decoder: Decoder, force: bool = False) -> bool:
        return self._decoders.add(decoder, force)

    def add_decoder_alias(self, alias: str, format: str) -> "Registry":
        self._decoders.add_alias(alias, format)
        return self

    def get_decoder(self, format: str) -> Decoder:
        return self._decoders.get(format)

    # =========================================================================
    # Commands and actions
    # =========================================================================

    def _new_command(
        self,
        parent: Group,
        name: str,
        help: str,
        aliases: Iterable[str],
        action: Optional[Action],
    ) -> Command:
        self._check_not_parsed("create a command")
        segment = normalize_name(name)
        if not segment or self._separator in segment:
            raise ValueError(f"invalid command name '{name}'")

        with self._lock:
            existing = parent._groups.get(segment)
            if existing is not None:
                if not isinstance(existing, Command):
                    raise StructuralError(
                        f"'{self._join(parent.segments + (segment,))}' is already a group"
                    )
                return existing
            command = Command(self, parent.segments + (segment,), parent, help, aliases)
            parent._groups[segment] = command

        if action is not None:
            command.set_action(action)
        logger.debug("Command registered", extra={"command": command.full_path})
        return command

    def new_command(
        self,
        name: str,
        help: str = "",
        aliases: Iterable[str] = (),
        action: Optional[Action] = None,
    ) -> Command:
        """Create (or return the existing) top-level command `name`."""
        return self._new_command(self._root, name, help, aliases, action)

    def command(self, path: str) -> Optional[Command]:
        if not self._root.has_group(path):
            return None
        group = self._root.group(path)
        return group if isinstance(group, Command) else None

    def commands(self) -> List[Command]:
        return [g for g in self._root.groups() if isinstance(g, Command)]

    @property
    def executed_command(self) -> Optional[Command]:
        return self._executed

    def set_executed_command(self, command: Optional[Command]) -> None:
        self._executed = command

    def set_action(self, action: Action) -> "Registry":
        if not callable(action):
            raise TypeError("the action must be callable")
        self._check_not_parsed("set the action")
        self._action = action
        return self

    def run_action(self) -> Any:
        """Run the executed command's action, else the registry action."""
        if self._executed is not None and self._executed.action is not None:
            return self._executed.action()
        if self._action is not None:
            return self._action()
        logger.debug("No action to run")
        return None

    # =========================================================================
    # Metrics
    # =========================================================================

    def get_metrics(self) -> Dict[str, Any]:
        return self._metrics.to_dict()

    def health_snapshot(self) -> Dict[str, Any]:
        with self._lock:
            options = len(self._index)
            watchers = sum(1 for t in self._threads if t.is_alive())
        return get_health_snapshot(self._metrics, self._parsed, self._stopped, options, watchers)


__all__ = ["Registry"]
