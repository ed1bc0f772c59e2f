"""
Process-wide default Registry.

Small programs that need a single configuration can use the module-level
functions here instead of passing a `Registry` around. Every function looks
up ``conf`` at call time, so tests may swap it with ``monkeypatch``.

Example
-------
>>> from groveconf import default, str_opt
>>> default.register_opts([str_opt("addr", ":80")], group="http")
>>> default.get("http.addr")
':80'
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional, Union

from groveconf.backup import BackupFile
from groveconf.core.command import Action, Command
from groveconf.core.group import Group
from groveconf.core.option import Opt
from groveconf.core.proxy import OptProxy
from groveconf.core.registry import Registry
from groveconf.observe import ChangeCallback, ErrorHandler
from groveconf.sources.base import Source

conf = Registry()


# =============================================================================
# Structure
# =============================================================================


def register_opt(opt: Opt, group: str = "") -> Registry:
    return conf.register_opt(opt, group)


def register_opts(opts: Union[Opt, Iterable[Opt]], group: str = "") -> Registry:
    return conf.register_opts(opts, group)


def register_cli_opt(opt: Opt, group: str = "") -> Registry:
    return conf.register_cli_opt(opt, group)


def register_cli_opts(opts: Union[Opt, Iterable[Opt]], group: str = "") -> Registry:
    return conf.register_cli_opts(opts, group)


def unregister_opt(path: str) -> bool:
    return conf.unregister_opt(path)


def new_proxy(opt: Opt, group: str = "") -> OptProxy:
    return conf.new_proxy(opt, group)


def group(path: str) -> Group:
    return conf.group(path)


def all_groups() -> List[Group]:
    return conf.all_groups()


def new_command(name: str, help: str = "", aliases: Iterable[str] = (), action: Optional[Action] = None) -> Command:
    return conf.new_command(name, help, aliases, action)


def set_action(action: Action) -> Registry:
    return conf.set_action(action)


def run_action() -> Any:
    return conf.run_action()


def set_error_handler(handler: Optional[ErrorHandler]) -> Registry:
    return conf.set_error_handler(handler)


# =============================================================================
# Values
# =============================================================================


def get(path: str) -> Any:
    return conf.get(path)


def get_bool(path: str, *default: Any) -> bool:
    return conf.get_bool(path, *default)


def get_int(path: str, *default: Any) -> int:
    return conf.get_int(path, *default)


def get_float(path: str, *default: Any) -> float:
    return conf.get_float(path, *default)


def get_str(path: str, *default: Any) -> str:
    return conf.get_str(path, *default)


def get_duration(path: str, *default: Any):
    return conf.get_duration(path, *default)


def get_str_list(path: str, *default: Any) -> List[str]:
    return conf.get_str_list(path, *default)


def update(path: str, raw: Any) -> bool:
    return conf.update(path, raw)


def set(path: str, raw: Any) -> bool:
    return conf.set(path, raw)


def freeze_opt(*paths: str) -> None:
    for path in paths:
        conf.freeze_opt(path)


def unfreeze_opt(*paths: str) -> None:
    for path in paths:
        conf.unfreeze_opt(path)


def is_frozen(path: str) -> bool:
    return conf.is_frozen(path)


def snapshot() -> Dict[str, Any]:
    return conf.snapshot()


def observe(callback: ChangeCallback, identifier: Optional[str] = None) -> str:
    return conf.observe(callback, identifier)


def unobserve(identifier: str) -> bool:
    return conf.unobserve(identifier)


# =============================================================================
# Loading and lifecycle
# =============================================================================


def parse(*sources: Source) -> Registry:
    return conf.parse(*sources)


def load_map(mapping: Dict[str, Any], only_unset: bool = False) -> int:
    return conf.load_map(mapping, only_unset=only_unset)


def load_source(source: Source, only_unset: bool = False) -> int:
    return conf.load_source(source, only_unset=only_unset)


def load_sources(*sources: Source) -> int:
    return conf.load_sources(*sources)


def load_and_watch_source(source: Source) -> threading.Thread:
    return conf.load_and_watch_source(source)


def load_backup_file(path: str, interval: Optional[float] = None) -> BackupFile:
    return conf.load_backup_file(path, interval)


def close(timeout: float = 5.0) -> None:
    conf.close(timeout)
