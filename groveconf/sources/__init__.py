"""
Configuration sources.

Each source produces DataSets for the Registry to decode and apply; the
Registry merges them by priority (lower number wins).
"""

from groveconf.sources.base import (
    PRIORITY_BACKUP,
    PRIORITY_CLI,
    PRIORITY_ENV,
    PRIORITY_FILE,
    PRIORITY_MAPPING,
    PRIORITY_OVERRIDE,
    PRIORITY_URL,
    DataSet,
    OnChange,
    OnError,
    Source,
)
from groveconf.sources.cli import CliSource
from groveconf.sources.env import EnvSource
from groveconf.sources.file import FileSource
from groveconf.sources.mapping import MappingSource
from groveconf.sources.url import URLSource

__all__ = [
    "DataSet",
    "Source",
    "OnChange",
    "OnError",
    "CliSource",
    "EnvSource",
    "FileSource",
    "MappingSource",
    "URLSource",
    "PRIORITY_OVERRIDE",
    "PRIORITY_CLI",
    "PRIORITY_ENV",
    "PRIORITY_FILE",
    "PRIORITY_URL",
    "PRIORITY_MAPPING",
    "PRIORITY_BACKUP",
]
