"""
Source contract and the DataSet record.

Purpose
-------
Define what every configuration source provides to the Registry: an
identifier, a priority, a one-shot `read()` returning a DataSet, and an
optional blocking `watch()` that reports new datasets until the exit event
is set.

Design Decisions
----------------
- Sources never touch the Registry's values directly. They hand over bytes
  plus a format; decoding, flattening, validation and application are the
  Registry's job, so every source goes through the same update protocol.
- ``watch`` receives a callback returning True when the Registry applied
  the dataset without error, so a source can remember the last accepted
  checksum and retry rejected data on the next poll.
"""

from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from groveconf.core.exceptions import SourceError
from groveconf.core.logging import get_logger

logger = get_logger(__name__)

PRIORITY_OVERRIDE = 0
PRIORITY_CLI = 10
PRIORITY_ENV = 20
PRIORITY_FILE = 30
PRIORITY_URL = 40
PRIORITY_MAPPING = 50
PRIORITY_BACKUP = 90


@dataclass(frozen=True)
class DataSet:
    """
    Raw data produced by one read of a source.

    Attributes
    ----------
    data:
        Undecoded bytes.
    format:
        Decoder name (``json``, ``yaml``, ``ini``, ...).
    source:
        Identifier of the producing source.
    checksum:
        ``md5:<hex>`` of `data`, computed when not given.
    timestamp:
        When the data was read (UTC).
    """

    data: bytes
    format: str
    source: str = ""
    checksum: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if isinstance(self.data, str):
            object.__setattr__(self, "data", self.data.encode("utf-8"))
        if not self.checksum:
            object.__setattr__(self, "checksum", "md5:" + self.md5())

    def md5(self) -> str:
        return hashlib.md5(self.data).hexdigest()

    def sha256(self) -> str:
        return hashlib.sha256(self.data).hexdigest()

    @property
    def is_empty(self) -> bool:
        return not self.data.strip()


OnChange = Callable[[DataSet], bool]
OnError = Callable[[BaseException], None]


class Source:
    """
    Base class for configuration sources.

    Subclasses implement `read()` and, when they can detect changes,
    `watch()`. `__str__` must return a stable identifier such as
    ``env:APP_`` or ``file:/etc/app.ini``; it is recorded as the origin of
    every value the source sets.
    """

    priority: int = PRIORITY_MAPPING

    def read(self) -> DataSet:
        raise NotImplementedError

    def watch(
        self,
        exit_event: threading.Event,
        on_change: OnChange,
        on_error: Optional[OnError] = None,
    ) -> None:
        """
        Block until `exit_event` is set, reporting new datasets.

        Read failures are passed to `on_error` and watching continues.
        The default implementation does not watch.
        """
        return None

    def with_priority(self, priority: int) -> "Source":
        self.priority = priority
        return self

    def _fail(self, error: BaseException, format: str = "") -> SourceError:
        return SourceError(str(self), error, format)

    def _report(self, on_error: Optional[OnError], error: BaseException) -> None:
        if on_error is not None:
            on_error(error)
        else:
            logger.warning("Source read failed", extra={"source": str(self), "error": str(error)})

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, priority={self.priority})"


__all__ = [
    "DataSet",
    "Source",
    "OnChange",
    "OnError",
    "SourceError",
    "PRIORITY_OVERRIDE",
    "PRIORITY_CLI",
    "PRIORITY_ENV",
    "PRIORITY_FILE",
    "PRIORITY_URL",
    "PRIORITY_MAPPING",
    "PRIORITY_BACKUP",
]
