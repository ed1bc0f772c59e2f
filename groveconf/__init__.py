"""
groveconf - Runtime Configuration Manager
=========================================

Typed options arranged in hierarchical groups, loaded from command line,
environment, files and URLs, with change observers, hot reload and a
snapshot backup file.

Quick start
-----------
>>> from groveconf import Registry, EnvSource, int_opt, str_opt
>>> conf = Registry()
>>> conf.register_opts([str_opt("addr", ":8080"), int_opt("workers", 4)], group="http")
>>> conf.parse(EnvSource(prefix="APP_"))
>>> conf.get_int("http.workers")
4
"""

from groveconf.backup import BackupFile
from groveconf.core import validators
from groveconf.core.cell import UNSET
from groveconf.core.command import Command
from groveconf.core.exceptions import (
    DecoderNotFoundError,
    DuplicateOptionError,
    ErrorSeverity,
    GroveConfError,
    NoSuchGroupError,
    NoSuchOptionError,
    NotParsedError,
    OptionTypeError,
    OptionValueError,
    ParsedError,
    ParseError,
    RequiredOptionMissingError,
    SourceError,
    StructuralError,
    ValidationError,
)
from groveconf.core.group import Group
from groveconf.core.logging import LogContext, get_logger, setup_logging, shutdown_logging
from groveconf.core.option import (
    Opt,
    bool_opt,
    duration_list_opt,
    duration_opt,
    float_list_opt,
    float_opt,
    int_list_opt,
    int_opt,
    str_list_opt,
    str_opt,
    time_list_opt,
    time_opt,
    uint_list_opt,
    uint_opt,
)
from groveconf.core.proxy import OptProxy
from groveconf.core.registry import Registry
from groveconf.core.settings import Settings
from groveconf.core.types import OptType
from groveconf.decoders import Decoder, DecoderRegistry
from groveconf.hot_reload import reload_on_signal
from groveconf.observe import ChangeEvent
from groveconf.sources import (
    PRIORITY_BACKUP,
    PRIORITY_CLI,
    PRIORITY_ENV,
    PRIORITY_FILE,
    PRIORITY_MAPPING,
    PRIORITY_OVERRIDE,
    PRIORITY_URL,
    CliSource,
    DataSet,
    EnvSource,
    FileSource,
    MappingSource,
    Source,
    URLSource,
)

__version__ = "1.0.0"

__all__ = [
    # Registry and tree
    "Registry",
    "Group",
    "Command",
    "UNSET",
    # Options
    "Opt",
    "OptType",
    "OptProxy",
    "bool_opt",
    "int_opt",
    "uint_opt",
    "float_opt",
    "str_opt",
    "duration_opt",
    "time_opt",
    "str_list_opt",
    "int_list_opt",
    "uint_list_opt",
    "float_list_opt",
    "duration_list_opt",
    "time_list_opt",
    "validators",
    # Sources and decoders
    "Source",
    "DataSet",
    "CliSource",
    "EnvSource",
    "FileSource",
    "URLSource",
    "MappingSource",
    "BackupFile",
    "Decoder",
    "DecoderRegistry",
    "PRIORITY_OVERRIDE",
    "PRIORITY_CLI",
    "PRIORITY_ENV",
    "PRIORITY_FILE",
    "PRIORITY_URL",
    "PRIORITY_MAPPING",
    "PRIORITY_BACKUP",
    # Observation and reload
    "ChangeEvent",
    "reload_on_signal",
    # Errors
    "ErrorSeverity",
    "GroveConfError",
    "ParseError",
    "ValidationError",
    "NoSuchOptionError",
    "NoSuchGroupError",
    "OptionValueError",
    "OptionTypeError",
    "DuplicateOptionError",
    "RequiredOptionMissingError",
    "StructuralError",
    "ParsedError",
    "NotParsedError",
    "SourceError",
    "DecoderNotFoundError",
    # Ambient
    "Settings",
    "LogContext",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
    "__version__",
]
