"""
ObserverBus: synchronous fan-out with error isolation.

Purpose
-------
Deliver notifications to every registered observer, in registration order,
on the calling thread, before `publish()` returns.

Responsibilities
----------------
- Subscribe / unsubscribe observers by identifier
- Invoke each observer with the notification arguments
- Isolate failures: an exception in one observer is routed to the error
  handler and never prevents later observers from running

Design Decisions
----------------
- **Synchronous**: configuration changes must be visible to every observer
  by the time `Registry.update()` returns.
- **Instance-based**: the Registry owns one bus for change observers and
  one for registration observers.
- **Callbacks outside locks**: the bus iterates over an immutable snapshot
  taken from ObserverRegistry.

Dependencies
------------
- groveconf.core.logging (structured logging)
- groveconf.observe.registry (ObserverRegistry)
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from groveconf.core.logging import get_logger
from groveconf.observe.registry import ObserverRegistry
from groveconf.observe.types import ErrorHandler

logger = get_logger(__name__)


class ObserverBus:
    """
    Ordered, synchronous observer fan-out.

    Parameters
    ----------
    name:
        Label used in log records (``change`` or ``register``).
    error_handler:
        Called as ``handler(exc, context)`` for every observer failure.
    on_error:
        Optional hook invoked once per failure, used for metrics.

    Examples
    --------
    >>> bus = ObserverBus("change")
    >>> bus.subscribe(lambda group, opt, old, new: print(opt, new))
    >>> bus.publish("", "opt1", "abc", "xyz")
    opt1 xyz
    0
    """

    def __init__(
        self,
        name: str,
        error_handler: Optional[ErrorHandler] = None,
        on_error: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.name = name
        self._registry = ObserverRegistry()
        self._error_handler = error_handler
        self._on_error = on_error

    def set_error_handler(self, handler: Optional[ErrorHandler]) -> None:
        self._error_handler = handler

    def __len__(self) -> int:
        return len(self._registry)

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(self, callback: Callable[..., Any], identifier: Optional[str] = None) -> str:
        """
        Add an observer.

        Returns
        -------
        str:
            The observer identifier (for unsubscribing later).

        Raises
        ------
        TypeError:
            If `callback` is not callable.
        ValueError:
            If `identifier` is already in use.
        """
        if not callable(callback):
            raise TypeError(f"observer must be callable, got {type(callback).__name__}")

        record = self._registry.add(callback, identifier)
        if record is None:
            logger.warning(
                "ObserverBus: duplicate observer prevented",
                extra={"bus": self.name, "observer_id": identifier},
            )
            raise ValueError(f"observer '{identifier}' is already registered")

        logger.debug(
            "ObserverBus: subscribed observer",
            extra={"bus": self.name, "observer_id": record.identifier},
        )
        return record.identifier

    def unsubscribe(self, identifier: str) -> bool:
        removed = self._registry.remove(identifier)
        if removed:
            logger.debug(
                "ObserverBus: unsubscribed observer",
                extra={"bus": self.name, "observer_id": identifier},
            )
        return removed

    def clear(self) -> None:
        total = self._registry.clear()
        logger.debug(
            "ObserverBus: cleared all observers",
            extra={"bus": self.name, "previous_observer_count": total},
        )

    def identifiers(self):
        return self._registry.identifiers()

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def publish(self, *args: Any) -> int:
        """
        Call every observer with `args`.

        Returns
        -------
        int:
            Number of observers that raised.
        """
        errors = 0
        for record in self._registry.snapshot():
            try:
                record.callback(*args)
            except Exception as exc:
                errors += 1
                self._handle_error(exc, record.identifier, args)
        return errors

    def _handle_error(self, exc: Exception, identifier: str, args: tuple) -> None:
        if self._on_error is not None:
            self._on_error()

        context: Dict[str, Any] = {
            "operation": f"{self.name}_observer",
            "observer_id": identifier,
            "arguments": [repr(a) for a in args],
        }
        if self._error_handler is None:
            logger.error(
                "ObserverBus: observer failed",
                extra={**context, "error": str(exc), "error_type": type(exc).__name__},
                exc_info=exc,
            )
            return
        self._error_handler(exc, context)


__all__ = ["ObserverBus"]
