"""
CLI sub-commands.

A `Command` is a Group that a CLI source exposes as a sub-command. It is a
path segment like any other group (``serve.http.port``), carries a
description, aliases and an optional action, and may nest further commands.
Options of a command only count for the required check when that command
(or one of its descendants) was executed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Optional, Tuple

from groveconf.core.exceptions import ParsedError
from groveconf.core.group import Group
from groveconf.core.option import normalize_name

if TYPE_CHECKING:
    from groveconf.core.registry import Registry

Action = Callable[[], Any]


class Command(Group):
    """
    Group exposed as a CLI sub-command.

    Examples
    --------
    >>> serve = registry.new_command("serve", help="Run the HTTP server")
    >>> serve.register_cli_opt(int_opt("port", 8080))
    >>> serve.set_action(run_server)
    """

    def __init__(
        self,
        registry: "Registry",
        segments: Tuple[str, ...],
        parent: Group,
        description: str = "",
        aliases: Iterable[str] = (),
    ) -> None:
        super().__init__(registry, segments, parent, command=None)
        self._command = self
        self.description = description
        self.aliases: Tuple[str, ...] = tuple(normalize_name(a) for a in aliases)
        self.action: Optional[Action] = None

    @property
    def parent_command(self) -> Optional["Command"]:
        parent = self.parent
        return parent.command if parent is not None else None

    def ancestors(self) -> List["Command"]:
        """This command followed by every enclosing command, innermost first."""
        chain: List[Command] = []
        current: Optional[Command] = self
        while current is not None:
            chain.append(current)
            current = current.parent_command
        return chain

    def set_action(self, action: Action) -> "Command":
        if not callable(action):
            raise TypeError("the action must be callable")
        if self._registry.parsed:
            raise ParsedError("set a command action")
        self.action = action
        return self

    def set_aliases(self, *aliases: str) -> "Command":
        if self._registry.parsed:
            raise ParsedError("set command aliases")
        self.aliases = tuple(normalize_name(a) for a in aliases)
        return self

    def new_command(
        self,
        name: str,
        help: str = "",
        aliases: Iterable[str] = (),
        action: Optional[Action] = None,
    ) -> "Command":
        """Create (or return the existing) nested sub-command `name`."""
        return self._registry._new_command(self, name, help, aliases, action)

    def commands(self) -> List["Command"]:
        """Direct sub-commands, sorted by name."""
        return [g for g in self.groups() if isinstance(g, Command)]

    def run(self) -> Any:
        if self.action is None:
            return None
        return self.action()


__all__ = ["Command", "Action"]
