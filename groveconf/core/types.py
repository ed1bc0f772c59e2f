"""
Supported option value kinds.

`OptType` is the closed set of types an option can hold. Each member knows
how to convert a raw value and what its zero value is, so accessors never
need to inspect Python types.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict

from groveconf.core import convert


class OptType(Enum):
    """Tagged union of option value kinds."""

    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    STR = "str"
    DURATION = "duration"
    TIME = "time"
    STR_LIST = "str_list"
    INT_LIST = "int_list"
    UINT_LIST = "uint_list"
    FLOAT_LIST = "float_list"
    DURATION_LIST = "duration_list"
    TIME_LIST = "time_list"

    def __str__(self) -> str:
        return self.value

    @property
    def is_list(self) -> bool:
        return self.value.endswith("_list")

    @property
    def item_type(self) -> "OptType":
        """Element type for list kinds, the type itself otherwise."""
        if self.is_list:
            return OptType(self.value[: -len("_list")])
        return self

    def convert(self, raw: Any) -> Any:
        """Convert `raw` to this type; raises ValueError or TypeError."""
        return _CONVERTERS[self](raw)

    def zero(self) -> Any:
        if self.is_list:
            return []
        return _ZEROS[self]()

    @classmethod
    def infer(cls, value: Any) -> "OptType":
        """
        Infer the option type from a default value.

        Raises
        ------
        TypeError
            If the value's type is not supported.
        """
        if isinstance(value, bool):
            return cls.BOOL
        if isinstance(value, int):
            return cls.INT
        if isinstance(value, float):
            return cls.FLOAT
        if isinstance(value, str):
            return cls.STR
        if isinstance(value, timedelta):
            return cls.DURATION
        if isinstance(value, datetime):
            return cls.TIME
        if isinstance(value, (list, tuple)):
            if not value:
                return cls.STR_LIST
            item = cls.infer(value[0])
            if item.is_list:
                raise TypeError("nested lists are not supported")
            return cls(f"{item.value}_list")
        raise TypeError(f"unsupported option value type: {type(value).__name__}")


_SCALAR_CONVERTERS: Dict[OptType, Callable[[Any], Any]] = {
    OptType.BOOL: convert.to_bool,
    OptType.INT: convert.to_int,
    OptType.UINT: convert.to_uint,
    OptType.FLOAT: convert.to_float,
    OptType.STR: convert.to_str,
    OptType.DURATION: convert.to_duration,
    OptType.TIME: convert.to_time,
}

_CONVERTERS: Dict[OptType, Callable[[Any], Any]] = dict(_SCALAR_CONVERTERS)
for _kind in OptType:
    if _kind.is_list:
        _CONVERTERS[_kind] = partial(convert.to_list, item=_SCALAR_CONVERTERS[_kind.item_type])

_ZEROS: Dict[OptType, Callable[[], Any]] = {
    OptType.BOOL: lambda: False,
    OptType.INT: lambda: 0,
    OptType.UINT: lambda: 0,
    OptType.FLOAT: lambda: 0.0,
    OptType.STR: lambda: "",
    OptType.DURATION: timedelta,
    OptType.TIME: lambda: datetime(1, 1, 1),
}


__all__ = ["OptType"]
