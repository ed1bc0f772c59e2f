"""
Local file source.

The format comes from the file extension (``app.yaml`` -> ``yaml``) unless
given explicitly, defaulting to ``ini``. A missing file reads as an empty
dataset. `watch` polls the file's size and modification time.
"""

from __future__ import annotations

import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union

from groveconf.core.settings import Settings
from groveconf.sources.base import PRIORITY_FILE, DataSet, OnChange, OnError, Source


class FileSource(Source):
    """
    Read options from a local file.

    Parameters
    ----------
    path:
        File to read.
    format:
        Decoder name; inferred from the extension when omitted.
    interval:
        Poll period in seconds for `watch`; defaults to
        ``Settings.WATCH_INTERVAL``.
    """

    priority = PRIORITY_FILE

    def __init__(
        self,
        path: Union[str, Path],
        format: Optional[str] = None,
        interval: Optional[float] = None,
    ) -> None:
        self.path = Path(path)
        self.format = (format or self.path.suffix.lstrip(".") or "ini").lower()
        self.interval = interval if interval is not None else Settings.WATCH_INTERVAL

    def __str__(self) -> str:
        return f"file:{self.path}"

    def read(self) -> DataSet:
        try:
            data = self.path.read_bytes()
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return DataSet(data=b"", format=self.format, source=str(self))
        except OSError as exc:
            raise self._fail(exc, self.format) from exc

        return DataSet(
            data=data,
            format=self.format,
            source=str(self),
            timestamp=datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def _stat(self) -> Optional[Tuple[int, float]]:
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            return None
        return st.st_size, st.st_mtime

    def watch(
        self,
        exit_event: threading.Event,
        on_change: OnChange,
        on_error: Optional[OnError] = None,
    ) -> None:
        last = self._stat()
        while not exit_event.wait(self.interval):
            try:
                current = self._stat()
                if current is None or current == last:
                    continue
                dataset = self.read()
            except Exception as exc:
                self._report(on_error, exc)
                continue
            if on_change(dataset):
                last = current


__all__ = ["FileSource"]
