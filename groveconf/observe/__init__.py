"""
Option observation: ordered observer storage, synchronous fan-out and the
snapshot mirror.
"""

from groveconf.observe.bus import ObserverBus
from groveconf.observe.registry import ObserverRegistry
from groveconf.observe.snapshot import SnapshotMirror
from groveconf.observe.types import (
    ChangeCallback,
    ChangeEvent,
    ErrorHandler,
    ObserverRecord,
    RegisterCallback,
)

__all__ = [
    "ObserverBus",
    "ObserverRegistry",
    "SnapshotMirror",
    "ChangeCallback",
    "ChangeEvent",
    "ErrorHandler",
    "ObserverRecord",
    "RegisterCallback",
]
