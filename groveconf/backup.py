"""
Snapshot backup file.

Purpose
-------
Persist the snapshot mirror to a local JSON file so a restarted process can
fall back to the last known configuration when its remote sources are
unreachable.

Responsibilities
----------------
- `load()`: read the flat JSON object and apply it to options that only
  hold a default, zero or no value (priority 90, below every real source)
- `flush()`: write the mirror atomically (temp file + ``os.replace``), only
  when its generation moved since the last write
- `start()` / `stop()`: periodic flushing on a daemon thread

Non-Responsibilities
--------------------
- Durability: a crash between flushes loses the last interval of changes.

Dependencies
------------
- groveconf.core.settings (default flush interval)
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from groveconf.core.exceptions import GroveConfError
from groveconf.core.logging import get_logger
from groveconf.core.settings import Settings
from groveconf.sources.base import PRIORITY_BACKUP, DataSet, Source

if TYPE_CHECKING:
    from groveconf.core.registry import Registry

logger = get_logger(__name__)


def _encode(value: Any) -> Any:
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"cannot encode {type(value).__name__}")


class BackupFile(Source):
    """
    JSON backup of a Registry's snapshot.

    Parameters
    ----------
    registry:
        The registry whose snapshot is backed up.
    path:
        Backup file location.
    interval:
        Seconds between flushes; defaults to ``Settings.BACKUP_INTERVAL``.
    """

    priority = PRIORITY_BACKUP

    def __init__(
        self,
        registry: "Registry",
        path: Union[str, Path],
        interval: Optional[float] = None,
    ) -> None:
        self.registry = registry
        self.path = Path(path)
        self.interval = interval if interval is not None else Settings.BACKUP_INTERVAL
        self._last_generation = -1
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._flush_lock = threading.Lock()

    def __str__(self) -> str:
        return f"backup:{self.path}"

    def read(self) -> DataSet:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            data = b""
        except OSError as exc:
            raise self._fail(exc, "json") from exc
        return DataSet(data=data, format="json", source=str(self))

    def load(self) -> int:
        """
        Apply the backup to options without a source-provided value.

        A missing file is not an error. A corrupt file is reported to the
        registry's error handler and ignored.
        """
        try:
            changed = self.registry.load_source(self, only_unset=True)
        except GroveConfError as exc:
            self.registry.handle_error(exc, operation="backup_load", source=str(self))
            return 0
        logger.info("Backup loaded", extra={"source": str(self), "changed": changed})
        return changed

    def flush(self) -> bool:
        """Write the snapshot if it changed since the last write."""
        with self._flush_lock:
            snapshot, generation = self.registry._snapshot_with_generation()
            if generation == self._last_generation:
                return False

            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(snapshot, default=_encode, sort_keys=True, indent=2)

            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

            self._last_generation = generation
            logger.debug(
                "Backup flushed",
                extra={"source": str(self), "generation": generation, "options": len(snapshot)},
            )
            return True

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            if self.registry.exit_event.is_set():
                break
            try:
                self.flush()
            except Exception as exc:
                self.registry.handle_error(exc, operation="backup_flush", source=str(self))

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"groveconf-backup[{self.path}]", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the flush thread and write any pending change."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        try:
            self.flush()
        except Exception as exc:
            self.registry.handle_error(exc, operation="backup_flush", source=str(self))


__all__ = ["BackupFile"]
