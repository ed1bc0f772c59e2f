"""In-memory mapping source."""

from __future__ import annotations

import json
from typing import Any, Mapping

from groveconf.sources.base import PRIORITY_MAPPING, DataSet, Source


class MappingSource(Source):
    """
    Serve a fixed (possibly nested) mapping of option paths to raw values.

    Useful for application defaults computed at runtime and for tests.
    Values must be JSON serialisable.
    """

    priority = PRIORITY_MAPPING

    def __init__(self, mapping: Mapping[str, Any], name: str = "mapping", priority: int = PRIORITY_MAPPING) -> None:
        self.mapping = dict(mapping)
        self.name = name
        self.priority = priority

    def __str__(self) -> str:
        return self.name

    def read(self) -> DataSet:
        data = json.dumps(self.mapping, sort_keys=True, default=str)
        return DataSet(data=data.encode("utf-8"), format="json", source=str(self))


__all__ = ["MappingSource"]
