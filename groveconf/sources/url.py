"""
HTTP(S) URL source.

The document is fetched with requests. Its format is taken from the
``Content-Type`` subtype (``application/json`` -> ``json``) when not given
explicitly. `watch` polls every `interval` seconds and only reports data
whose checksum differs from the last dataset the registry accepted, so a
rejected document is offered again on the next poll.
"""

from __future__ import annotations

import threading
from typing import Optional
from urllib.parse import urlparse

import requests

from groveconf.sources.base import PRIORITY_URL, DataSet, OnChange, OnError, Source

DEFAULT_URL_INTERVAL = 60.0


def format_from_content_type(content_type: str) -> str:
    """Extract the decoder name from a Content-Type header value."""
    media = content_type.split(";", 1)[0].strip()
    subtype = media.rsplit("/", 1)[-1].strip().lower()
    if "+" in subtype:
        subtype = subtype.rsplit("+", 1)[-1]
    if subtype.startswith("x-"):
        subtype = subtype[2:]
    return subtype


class URLSource(Source):
    """
    Read options from a URL.

    Parameters
    ----------
    url:
        Absolute ``http`` or ``https`` URL.
    interval:
        Poll period in seconds for `watch` (default one minute).
    format:
        Decoder name; taken from the response Content-Type when omitted.
    timeout:
        Request timeout in seconds.
    session:
        Optional ``requests.Session`` to reuse.
    """

    priority = PRIORITY_URL

    def __init__(
        self,
        url: str,
        interval: float = DEFAULT_URL_INTERVAL,
        format: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"invalid URL '{url}'")
        self.url = url
        self.interval = interval if interval > 0 else DEFAULT_URL_INTERVAL
        self.format = format.lower() if format else None
        self.timeout = timeout
        self._session = session or requests.Session()

    def __str__(self) -> str:
        return f"url:{self.url}"

    def read(self) -> DataSet:
        try:
            response = self._session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise self._fail(exc, self.format or "") from exc

        format = self.format
        if not format:
            content_type = response.headers.get("Content-Type", "")
            format = format_from_content_type(content_type)
            if not format:
                raise self._fail(ValueError("the response has no Content-Type header"))

        return DataSet(data=response.content, format=format, source=str(self))

    def watch(
        self,
        exit_event: threading.Event,
        on_change: OnChange,
        on_error: Optional[OnError] = None,
    ) -> None:
        last_checksum = ""
        while not exit_event.wait(self.interval):
            try:
                dataset = self.read()
            except Exception as exc:
                self._report(on_error, exc)
                continue
            if dataset.is_empty or dataset.checksum == last_checksum:
                continue
            if on_change(dataset):
                last_checksum = dataset.checksum


__all__ = ["URLSource", "format_from_content_type"]
