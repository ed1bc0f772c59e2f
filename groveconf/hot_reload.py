"""
Reload sources when the process receives a signal.

`reload_on_signal` installs a handler (``SIGHUP`` by default) that re-reads
the given sources into a Registry. The handler itself only starts a short
lived thread; the reload runs there, outside the interrupted frame, so it
never waits on a lock that the main thread was holding when the signal
arrived. A failing source is routed to the registry's error handler and
the remaining sources are still reloaded.
"""

from __future__ import annotations

import signal
import threading
from typing import TYPE_CHECKING, Any, Callable, Optional

from groveconf.core.exceptions import NotParsedError
from groveconf.core.logging import LogContext, get_logger
from groveconf.sources.base import Source

if TYPE_CHECKING:
    from groveconf.core.registry import Registry

logger = get_logger(__name__)

SignalHandler = Callable[[int, Any], Optional[threading.Thread]]


def reload_sources(registry: "Registry", *sources: Source) -> int:
    """
    Reload `sources` as one priority-ordered pass. Returns the number of
    changed options.

    When the pass fails, each source is reloaded on its own, highest
    priority number first so the lowest still wins, and only the failing
    ones are handed to ``registry.handle_error``. Errors never propagate.
    """
    if not sources:
        return 0

    with LogContext(operation="hot_reload"):
        try:
            changed = registry.load_sources(*sources)
        except Exception as exc:
            logger.warning("Reload pass failed, reloading sources one by one", extra={"error": str(exc)})
        else:
            logger.info("Hot reload finished", extra={"sources": len(sources), "changed": changed})
            return changed

    changed = 0
    for source in sorted(sources, key=lambda s: (-s.priority, str(s))):
        with LogContext(source=str(source), operation="hot_reload"):
            logger.debug("Reloading source")
            try:
                changed += registry.load_source(source)
            except Exception as exc:
                registry.handle_error(exc, operation="hot_reload", source=str(source))
    logger.info("Hot reload finished", extra={"sources": len(sources), "changed": changed})
    return changed


def make_reload_handler(registry: "Registry", *sources: Source) -> SignalHandler:
    """Build the signal handler used by `reload_on_signal`."""

    def handler(signum: int, frame: Any) -> Optional[threading.Thread]:
        if registry.closed:
            return None
        logger.info("Reload signal received", extra={"signal": signum})
        thread = threading.Thread(
            target=reload_sources,
            args=(registry, *sources),
            name="groveconf-hot-reload",
            daemon=True,
        )
        thread.start()
        return thread

    return handler


def reload_on_signal(
    registry: "Registry",
    *sources: Source,
    signum: int = getattr(signal, "SIGHUP", signal.SIGTERM),
) -> Any:
    """
    Reload `sources` into `registry` whenever `signum` is received.

    Must be called from the main thread, after `registry` was parsed.
    Returns the previously installed handler so callers can restore it;
    with no sources nothing is installed and ``None`` is returned.
    """
    if not sources:
        return None
    if not registry.parsed:
        raise NotParsedError("install a reload handler")
    previous = signal.signal(signum, make_reload_handler(registry, *sources))
    logger.info(
        "Hot reload installed",
        extra={"signal": signum, "sources": [str(s) for s in sources]},
    )
    return previous


__all__ = ["reload_on_signal", "reload_sources", "make_reload_handler"]
