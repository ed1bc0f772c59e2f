"""
Command line source.

Purpose
-------
Expose every CLI option of a Registry as an argparse flag and every
registered Command as a sub-command, then hand the parsed flags to the
Registry like any other source.

Flag naming
-----------
- Long name: the option path relative to its command (or the root) with
  ``_`` shown as ``-``: ``--db.max-conns``.
- Short name: ``-x`` when the option defines one.
- Boolean options accept ``--flag`` (true) or ``--flag=false``.
- List options may be repeated; values are joined with commas.

``-h/--help`` prints the usage of the executed (sub-)command and
``--version`` prints the version; both ask the Registry to stop so
`Registry.parse()` skips the required-option check.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, TextIO, Tuple

from groveconf.core.command import Command
from groveconf.core.group import Group
from groveconf.core.logging import get_logger
from groveconf.core.option import Opt
from groveconf.core.types import OptType
from groveconf.sources.base import PRIORITY_CLI, DataSet, Source

if TYPE_CHECKING:
    from groveconf.core.registry import Registry

logger = get_logger(__name__)

_HELP_DEST = "groveconf_help"
_VERSION_DEST = "groveconf_version"
_COMMAND_DEST = "groveconf_command_{}"


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting on usage errors."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise ValueError(f"{self.prog}: {message}")


def _flag_name(relative: Tuple[str, ...]) -> str:
    return "--" + ".".join(relative).replace("_", "-")


def _describe(opt: Opt) -> str:
    text = opt.help
    if opt.has_default:
        default = opt.default
        if isinstance(default, list):
            default = ",".join(str(item) for item in default)
        text = f"{text} (default: {default})" if text else f"(default: {default})"
    return text


class CliSource(Source):
    """
    Parse command line arguments against a Registry's CLI options.

    Parameters
    ----------
    registry:
        Registry whose options and commands define the flags.
    args:
        Argument list; defaults to ``sys.argv[1:]``.
    version:
        Version string enabling ``--version``.
    prog, description:
        Passed to argparse for usage output.
    stdout:
        Stream for help and version output.
    """

    priority = PRIORITY_CLI

    def __init__(
        self,
        registry: "Registry",
        args: Optional[Sequence[str]] = None,
        version: Optional[str] = None,
        prog: Optional[str] = None,
        description: str = "",
        stdout: Optional[TextIO] = None,
    ) -> None:
        self.registry = registry
        self.args = list(args) if args is not None else sys.argv[1:]
        self.version = version
        self.prog = prog
        self.description = description
        self.stdout = stdout
        self.namespace: Optional[argparse.Namespace] = None

    def __str__(self) -> str:
        return "cli"

    # ------------------------------------------------------------------ #
    # Parser construction
    # ------------------------------------------------------------------ #

    def _add_flags(
        self,
        parser: argparse.ArgumentParser,
        base: Group,
        dests: Dict[str, str],
    ) -> None:
        separator = self.registry.separator
        for group in self._option_groups(base):
            relative = group.segments[len(base.segments):]
            for opt in group.cli_opts():
                dest = f"opt_{len(dests)}"
                dests[dest] = separator.join(group.segments + (opt.name,))

                names = [_flag_name(relative + (opt.name,))]
                if opt.short:
                    names.insert(0, f"-{opt.short}")

                kwargs: Dict[str, Any] = {
                    "dest": dest,
                    "default": argparse.SUPPRESS,
                    "help": _describe(opt),
                }
                if opt.type is OptType.BOOL:
                    kwargs.update(nargs="?", const="true", metavar="BOOL")
                elif opt.type.is_list:
                    kwargs.update(action="append", metavar=opt.type.item_type.value.upper())
                else:
                    kwargs.update(metavar=opt.type.value.upper())
                parser.add_argument(*names, **kwargs)

    @staticmethod
    def _option_groups(base: Group) -> List[Group]:
        """`base` and its descendants, not descending into nested commands."""
        result = [base]
        for child in base.groups():
            if not isinstance(child, Command):
                result.extend(CliSource._option_groups(child))
        return result

    def _add_common(self, parser: argparse.ArgumentParser, with_version: bool) -> None:
        parser.add_argument(
            "-h",
            "--help",
            dest=_HELP_DEST,
            action="store_true",
            default=argparse.SUPPRESS,
            help="show this help message and exit",
        )
        if with_version and self.version:
            parser.add_argument(
                "--version",
                dest=_VERSION_DEST,
                action="store_true",
                default=argparse.SUPPRESS,
                help="show the version and exit",
            )

    def _add_commands(
        self,
        parser: argparse.ArgumentParser,
        commands: List[Command],
        depth: int,
        dests: Dict[str, str],
        parsers: Dict[int, argparse.ArgumentParser],
    ) -> None:
        if not commands:
            return
        subparsers = parser.add_subparsers(dest=_COMMAND_DEST.format(depth), metavar="COMMAND")
        for command in commands:
            sub = subparsers.add_parser(
                command.name.replace("_", "-"),
                aliases=[alias.replace("_", "-") for alias in command.aliases],
                help=command.description,
                description=command.description,
                add_help=False,
            )
            parsers[id(command)] = sub
            self._add_common(sub, with_version=False)
            self._add_flags(sub, command, dests)
            self._add_commands(sub, command.commands(), depth + 1, dests, parsers)

    def build_parser(self) -> Tuple[argparse.ArgumentParser, Dict[str, str], Dict[int, argparse.ArgumentParser]]:
        """Return the parser, the dest -> option path map and the command parsers."""
        parser = _ArgumentParser(prog=self.prog, description=self.description or None, add_help=False)
        dests: Dict[str, str] = {}
        parsers: Dict[int, argparse.ArgumentParser] = {}
        self._add_common(parser, with_version=True)
        self._add_flags(parser, self.registry.root, dests)
        self._add_commands(parser, self.registry.commands(), 0, dests, parsers)
        return parser, dests, parsers

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    def _executed(self, namespace: argparse.Namespace) -> Optional[Command]:
        executed: Optional[Command] = None
        candidates = self.registry.commands()
        depth = 0
        while True:
            name = getattr(namespace, _COMMAND_DEST.format(depth), None)
            if not name:
                return executed
            key = name.replace("-", "_")
            match = [c for c in candidates if c.name == key or key in c.aliases]
            if not match:
                return executed
            executed = match[0]
            candidates = executed.commands()
            depth += 1

    def read(self) -> DataSet:
        parser, dests, parsers = self.build_parser()
        try:
            namespace = parser.parse_args(self.args)
        except ValueError as exc:
            raise self._fail(exc, "json") from exc
        self.namespace = namespace

        executed = self._executed(namespace)
        self.registry.set_executed_command(executed)
        out = self.stdout or sys.stdout

        if getattr(namespace, _HELP_DEST, False):
            target = parsers.get(id(executed), parser) if executed is not None else parser
            target.print_help(out)
            self.registry.stop()
            return DataSet(data=b"", format="json", source=str(self))

        if getattr(namespace, _VERSION_DEST, False):
            out.write(f"{self.version}\n")
            self.registry.stop()
            return DataSet(data=b"", format="json", source=str(self))

        values: Dict[str, Any] = {}
        for dest, path in dests.items():
            if not hasattr(namespace, dest):
                continue
            value = getattr(namespace, dest)
            if isinstance(value, list):
                value = ",".join(value)
            values[path] = value

        logger.debug(
            "Command line parsed",
            extra={
                "command": executed.full_path if executed is not None else None,
                "flags": sorted(values),
            },
        )
        return DataSet(data=json.dumps(values).encode("utf-8"), format="json", source=str(self))


__all__ = ["CliSource"]
