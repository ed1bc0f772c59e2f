"""
Environment variable source.

Variables are matched case-insensitively against `prefix`, the prefix is
stripped, the rest is lower-cased and split on `separator` into nested
groups: with ``prefix="APP_"``, ``APP_DB__HOST=x`` becomes ``db.host``.
Values from an optional ``.env`` file are read with python-dotenv and
overridden by the real environment. Empty values are skipped.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import dotenv_values

from groveconf.core.logging import get_logger
from groveconf.sources.base import PRIORITY_ENV, DataSet, Source

logger = get_logger(__name__)


class EnvSource(Source):
    """
    Read options from environment variables.

    Parameters
    ----------
    prefix:
        Only variables starting with this prefix are used; it is removed
        from the key.
    separator:
        Splits the remaining key into group path segments.
    dotenv_path:
        Optional ``.env`` file whose values apply where the process
        environment has none.
    environ:
        Mapping to read instead of ``os.environ``.
    """

    priority = PRIORITY_ENV

    def __init__(
        self,
        prefix: str = "",
        separator: str = "__",
        dotenv_path: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        if not separator:
            raise ValueError("the env separator must not be empty")
        self.prefix = prefix
        self.separator = separator
        self.dotenv_path = Path(dotenv_path) if dotenv_path is not None else None
        self._environ = environ

    def __str__(self) -> str:
        return f"env:{self.prefix}" if self.prefix else "env"

    def _variables(self) -> Dict[str, str]:
        variables: Dict[str, str] = {}
        if self.dotenv_path is not None:
            if self.dotenv_path.exists():
                variables.update({k: v for k, v in dotenv_values(self.dotenv_path).items() if v is not None})
            else:
                logger.debug("Dotenv file not found", extra={"path": str(self.dotenv_path)})
        variables.update(self._environ if self._environ is not None else os.environ)
        return variables

    def _nest(self, variables: Mapping[str, str]) -> Dict[str, Any]:
        prefix = self.prefix.lower()
        result: Dict[str, Any] = {}
        for raw_key, raw_value in variables.items():
            key = raw_key.strip().lower()
            value = raw_value.strip()
            if not value or not key.startswith(prefix):
                continue

            parts = [p for p in key[len(prefix):].split(self.separator) if p]
            if not parts:
                continue

            node = result
            for part in parts[:-1]:
                child = node.setdefault(part, {})
                if not isinstance(child, dict):
                    break
                node = child
            else:
                if not isinstance(node.get(parts[-1]), dict):
                    node[parts[-1]] = value
        return result

    def read(self) -> DataSet:
        data = json.dumps(self._nest(self._variables()), sort_keys=True)
        return DataSet(data=data.encode("utf-8"), format="json", source=str(self))


__all__ = ["EnvSource"]
