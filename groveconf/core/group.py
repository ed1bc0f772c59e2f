"""
Option groups.

Purpose
-------
A `Group` is one node of the configuration tree. It owns the options
registered directly into it (descriptor plus value cell) and its child
groups, and resolves names relative to its own path.

Responsibilities
----------------
- Walk / create descendant groups by dotted path (`group("a.b.c")`)
- Register options into this node
- Read and update options by name relative to this node
- Provide the typed accessors shared with Registry

Non-Responsibilities
--------------------
- The update protocol itself (owned by Registry so the flat index, alias
  table, overrides, observers and snapshot stay consistent)

Architecture Notes
------------------
- Paths are stored as tuples of normalised segments; the dotted string is
  derived from the registry separator on demand.
- Identical paths always resolve to the identical Group instance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from groveconf.core.cell import ValueCell
from groveconf.core.exceptions import GroveConfError, NoSuchGroupError
from groveconf.core.option import Opt, iter_opts, normalize_name
from groveconf.core.proxy import OptProxy
from groveconf.core.types import OptType

if TYPE_CHECKING:
    from groveconf.core.command import Command
    from groveconf.core.registry import Registry

_NO_DEFAULT: Any = object()


class TypedAccessorMixin:
    """
    Typed getters shared by Group and Registry.

    Every getter raises `OptionTypeError` when the option's type differs
    from the requested one and `OptionValueError` when it has no value.
    Passing ``default=`` turns any lookup error into that fallback.
    """

    def _typed_lookup(self, name: str, kind: OptType) -> Any:
        raise NotImplementedError

    def _get_typed(self, name: str, kind: OptType, default: Any) -> Any:
        try:
            return self._typed_lookup(name, kind)
        except GroveConfError:
            if default is _NO_DEFAULT:
                raise
            return default

    def get_bool(self, name: str, default: Any = _NO_DEFAULT) -> bool:
        return self._get_typed(name, OptType.BOOL, default)

    def get_int(self, name: str, default: Any = _NO_DEFAULT) -> int:
        return self._get_typed(name, OptType.INT, default)

    def get_uint(self, name: str, default: Any = _NO_DEFAULT) -> int:
        return self._get_typed(name, OptType.UINT, default)

    def get_float(self, name: str, default: Any = _NO_DEFAULT) -> float:
        return self._get_typed(name, OptType.FLOAT, default)

    def get_str(self, name: str, default: Any = _NO_DEFAULT) -> str:
        return self._get_typed(name, OptType.STR, default)

    def get_duration(self, name: str, default: Any = _NO_DEFAULT):
        return self._get_typed(name, OptType.DURATION, default)

    def get_time(self, name: str, default: Any = _NO_DEFAULT):
        return self._get_typed(name, OptType.TIME, default)

    def get_str_list(self, name: str, default: Any = _NO_DEFAULT) -> List[str]:
        return self._get_typed(name, OptType.STR_LIST, default)

    def get_int_list(self, name: str, default: Any = _NO_DEFAULT) -> List[int]:
        return self._get_typed(name, OptType.INT_LIST, default)

    def get_uint_list(self, name: str, default: Any = _NO_DEFAULT) -> List[int]:
        return self._get_typed(name, OptType.UINT_LIST, default)

    def get_float_list(self, name: str, default: Any = _NO_DEFAULT) -> List[float]:
        return self._get_typed(name, OptType.FLOAT_LIST, default)

    def get_duration_list(self, name: str, default: Any = _NO_DEFAULT) -> list:
        return self._get_typed(name, OptType.DURATION_LIST, default)

    def get_time_list(self, name: str, default: Any = _NO_DEFAULT) -> list:
        return self._get_typed(name, OptType.TIME_LIST, default)


class Group(TypedAccessorMixin):
    """
    One node of the option tree.

    Groups are created through `Registry.group()` or `Group.group()`, never
    directly.

    Examples
    --------
    >>> db = registry.group("db")
    >>> db.register_opts([str_opt("host", "localhost"), int_opt("port", 5432)])
    >>> db.get_int("port")
    5432
    >>> registry.group("db.pool") is db.group("pool")
    True
    """

    def __init__(
        self,
        registry: "Registry",
        segments: Tuple[str, ...] = (),
        parent: Optional["Group"] = None,
        command: Optional["Command"] = None,
    ) -> None:
        self._registry = registry
        self._segments = segments
        self._parent = parent
        self._command = command
        self._opts: Dict[str, Opt] = {}
        self._cells: Dict[str, ValueCell] = {}
        self._groups: Dict[str, "Group"] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.full_path!r})"

    # =========================================================================
    # Identity
    # =========================================================================

    @property
    def registry(self) -> "Registry":
        return self._registry

    @property
    def name(self) -> str:
        return self._segments[-1] if self._segments else ""

    @property
    def segments(self) -> Tuple[str, ...]:
        return self._segments

    @property
    def full_path(self) -> str:
        return self._registry.separator.join(self._segments)

    @property
    def parent(self) -> Optional["Group"]:
        return self._parent

    @property
    def command(self) -> Optional["Command"]:
        """The command this group belongs to, or None for ordinary groups."""
        return self._command

    @property
    def is_root(self) -> bool:
        return not self._segments

    # =========================================================================
    # Tree navigation
    # =========================================================================

    def group(self, path: str) -> "Group":
        """
        Return the descendant group at `path`, creating missing nodes.

        ``group("")`` returns this group. After the registry is parsed,
        missing nodes are no longer created and `NoSuchGroupError` is raised.
        """
        node: Group = self
        for segment in self._registry._split(path, self._segments):
            node = node._child(segment)
        return node

    def _child(self, segment: str) -> "Group":
        child = self._groups.get(segment)
        if child is not None:
            return child
        with self._registry._lock:
            child = self._groups.get(segment)
            if child is None:
                if self._registry.parsed:
                    raise NoSuchGroupError(
                        self._registry.separator.join(self._segments + (segment,))
                    )
                child = Group(self._registry, self._segments + (segment,), self, self._command)
                self._groups[segment] = child
            return child

    def has_group(self, path: str) -> bool:
        node: Group = self
        for segment in self._registry._split(path, self._segments):
            found = node._groups.get(segment)
            if found is None:
                return False
            node = found
        return True

    def groups(self) -> List["Group"]:
        """Direct child groups, sorted by name."""
        return [self._groups[name] for name in sorted(self._groups)]

    def all_groups(self) -> List["Group"]:
        """This group and every descendant, depth-first."""
        return list(self._walk())

    def _walk(self) -> Iterator["Group"]:
        yield self
        for child in self.groups():
            yield from child._walk()

    # =========================================================================
    # Registration
    # =========================================================================

    def register_opt(self, opt: Opt) -> "Group":
        self._registry._register(self, opt)
        return self

    def register_opts(self, opts: Union[Opt, Iterable[Opt]]) -> "Group":
        for opt in iter_opts(opts):
            self._registry._register(self, opt)
        return self

    def register_cli_opt(self, opt: Opt) -> "Group":
        return self.register_opt(opt.as_cli())

    def register_cli_opts(self, opts: Union[Opt, Iterable[Opt]]) -> "Group":
        return self.register_opts(opt.as_cli() for opt in iter_opts(opts))

    def unregister_opt(self, name: str) -> bool:
        return self._registry._unregister(self, normalize_name(name))

    def new_proxy(self, opt: Opt) -> OptProxy:
        """Register `opt` into this group and return a handle to it."""
        self._registry._register(self, opt)
        return OptProxy(self, opt.name)

    # =========================================================================
    # Options
    # =========================================================================

    def _path(self, name: str) -> Tuple[str, ...]:
        return self._registry._split(name, self._segments)

    def opt(self, name: str) -> Opt:
        return self._registry._lookup(self._path(name))[1]

    def has_opt(self, name: str) -> bool:
        return self._registry._has(self._path(name))

    def is_set(self, name: str) -> bool:
        return self._registry._lookup(self._path(name))[2].is_set

    def all_opts(self) -> List[Opt]:
        """Options registered directly into this group, sorted by name."""
        return [self._opts[name] for name in sorted(self._opts)]

    def cli_opts(self) -> List[Opt]:
        return [opt for opt in self.all_opts() if opt.cli]

    def non_cli_opts(self) -> List[Opt]:
        return [opt for opt in self.all_opts() if not opt.cli]

    def get(self, name: str) -> Any:
        return self._registry._get(self._path(name))

    def update(self, name: str, raw: Any) -> bool:
        """Update the option `name` of this group; see `Registry.update`."""
        return self._registry._update(self._path(name), raw)

    def set(self, name: str, raw: Any) -> bool:
        return self.update(name, raw)

    def freeze_opt(self, name: str) -> bool:
        return self._registry._freeze(self._path(name), True)

    def unfreeze_opt(self, name: str) -> bool:
        return self._registry._freeze(self._path(name), False)

    def is_frozen(self, name: str) -> bool:
        return self._registry._lookup(self._path(name))[2].frozen

    def _typed_lookup(self, name: str, kind: OptType) -> Any:
        return self._registry._read_typed(self._path(name), kind)


__all__ = ["Group", "TypedAccessorMixin"]
