"""
Option proxies.

Purpose
-------
Hand application code a handle bound to one registered option, so a
component can read and write its own setting without repeating the full
path, and can attach or replace its update callback after registration.

Responsibilities
----------------
- Register the option once and remember where it lives
- Read and write through the Registry update protocol
- Replace the option descriptor (callback, validators, CLI settings) in place

Non-Responsibilities
--------------------
- Holding a value of its own (the cell in the group stays the only copy)

Design Decisions
----------------
- Builder methods return the proxy itself so they can be chained.
- CLI-facing changes (short name, help, cli flag) are refused once the
  registry is parsed; the callback and validators may change at any time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from groveconf.core.option import Opt, Parser, UpdateCallback, Validator

if TYPE_CHECKING:
    from groveconf.core.group import Group


class OptProxy:
    """
    Handle to one registered option.

    Created by `Registry.new_proxy` or `Group.new_proxy`.

    Examples
    --------
    >>> workers = registry.new_proxy(int_opt("workers", 4), group="http")
    >>> workers.on_update(lambda old, new: pool.resize(new))
    >>> workers.set("8")
    True
    >>> workers.get()
    8
    """

    __slots__ = ("_group", "_name")

    def __init__(self, group: "Group", name: str) -> None:
        self._group = group
        self._name = name

    def __repr__(self) -> str:
        return f"OptProxy({self.path!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def group(self) -> "Group":
        return self._group

    @property
    def path(self) -> str:
        return self._group.registry.separator.join(self._group.segments + (self._name,))

    @property
    def opt(self) -> Opt:
        """The option descriptor as currently registered."""
        return self._group.opt(self._name)

    # =========================================================================
    # Values
    # =========================================================================

    def get(self) -> Any:
        return self._group.get(self._name)

    def set(self, raw: Any) -> bool:
        """Parse, validate and store `raw`; True when the value changed."""
        return self._group.update(self._name, raw)

    def is_set(self) -> bool:
        return self._group.is_set(self._name)

    # =========================================================================
    # Descriptor changes
    # =========================================================================

    def _replace(self, structural: bool, **changes: Any) -> "OptProxy":
        self._group.registry._replace_opt(self._group, self._name, structural, **changes)
        return self

    def on_update(self, callback: UpdateCallback) -> "OptProxy":
        """Replace the ``(old, new)`` callback run after every effective change."""
        return self._replace(False, on_update=callback)

    def with_validators(self, *validators: Validator) -> "OptProxy":
        """Append validators; they apply to the next update."""
        return self._replace(False, validators=self.opt.validators + tuple(validators))

    def with_parser(self, parser: Parser) -> "OptProxy":
        return self._replace(False, parser=parser)

    def with_short(self, short: str) -> "OptProxy":
        return self._replace(True, short=short)

    def with_help(self, help: str) -> "OptProxy":
        return self._replace(True, help=help)

    def as_cli(self, cli: bool = True) -> "OptProxy":
        return self._replace(True, cli=cli)


__all__ = ["OptProxy"]
