"""
Option descriptors.

Purpose
-------
Describe a single configuration option: its normalised name, fixed value
type, parsed default, CLI presentation and validation pipeline.

Responsibilities
----------------
- Normalise option names (``a-b``, ``a_b`` and ``A_B`` are one option)
- Parse raw values into the option's type (`Opt.parse`)
- Run validators in order (`Opt.validate`)
- Provide immutable builder methods and per-type factories

Non-Responsibilities
--------------------
- Storing values (handled by ValueCell)
- Resolving paths or notifying observers (handled by Group / Registry)

Design Decisions
----------------
- `Opt` is a frozen dataclass; every builder returns a modified copy, so a
  descriptor can be shared between groups safely.
- The default is parsed when the descriptor is built, so an invalid default
  fails at definition time rather than at first use.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Tuple, Union

from groveconf.core.exceptions import ParseError, ValidationError
from groveconf.core.types import OptType

Validator = Callable[[Any], None]
Parser = Callable[[Any], Any]
UpdateCallback = Callable[[Any, Any], None]


def normalize_name(name: str) -> str:
    """Trim, replace ``-`` with ``_`` and lower-case an option name."""
    return name.strip().replace("-", "_").lower()


@dataclass(frozen=True)
class Opt:
    """
    Immutable option descriptor.

    Parameters
    ----------
    name:
        Option name, unique within its group. Normalised on construction.
    type:
        Value kind. Accepts an `OptType` member or its string value.
    default:
        Default value, parsed to `type`. ``None`` means no default.
    short:
        Single-character CLI flag, or ``""``.
    help:
        Description shown in CLI usage.
    aliases:
        Alternate names in the same group resolving to this option.
    cli:
        Whether CLI sources expose the option as a flag.
    required:
        Whether a value must be present after loading.
    validators:
        Callables run in order on every parsed value; each raises
        `ValidationError` to reject it.
    parser:
        Custom raw-to-typed conversion run before the type's own converter.
    on_update:
        Called with ``(old, new)`` after every effective change.

    Examples
    --------
    >>> opt = Opt("max-conns", OptType.INT, default="10")
    >>> opt.name, opt.default
    ('max_conns', 10)
    """

    name: str
    type: OptType
    default: Any = None
    short: str = ""
    help: str = ""
    aliases: Tuple[str, ...] = ()
    cli: bool = False
    required: bool = False
    validators: Tuple[Validator, ...] = field(default=(), compare=False)
    parser: Optional[Parser] = field(default=None, compare=False)
    on_update: Optional[UpdateCallback] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        name = normalize_name(self.name)
        if not name:
            raise ValueError("the option name must not be empty")
        object.__setattr__(self, "name", name)

        if not isinstance(self.type, OptType):
            object.__setattr__(self, "type", OptType(self.type))

        if len(self.short) > 1:
            raise ValueError(f"the short name of option '{name}' must be one character")

        aliases = tuple(normalize_name(alias) for alias in self.aliases)
        object.__setattr__(self, "aliases", tuple(a for a in aliases if a and a != name))
        object.__setattr__(self, "validators", tuple(self.validators))

        if self.default is not None:
            object.__setattr__(self, "default", self.parse(self.default))

    # =========================================================================
    # Value pipeline
    # =========================================================================

    def parse(self, raw: Any) -> Any:
        """
        Convert `raw` to the option's type.

        Raises
        ------
        ParseError
            If the custom parser or the type converter rejects the value.
        """
        try:
            value = self.parser(raw) if self.parser is not None else raw
            return self.type.convert(value)
        except ParseError:
            raise
        except Exception as exc:
            raise ParseError(self.name, raw, str(exc) or type(exc).__name__) from exc

    def validate(self, value: Any) -> None:
        """
        Run validators in order; the first failure propagates.

        A validator raising ``ValueError`` is treated like one raising
        `ValidationError` with the same message.
        """
        for validator in self.validators:
            try:
                validator(value)
            except ValidationError as exc:
                raise exc.bind(exc.group, exc.option or self.name, value)
            except ValueError as exc:
                raise ValidationError(str(exc), option=self.name, value=value) from exc

    def zero(self) -> Any:
        return self.type.zero()

    @property
    def has_default(self) -> bool:
        return self.default is not None

    # =========================================================================
    # Builders
    # =========================================================================

    def with_default(self, default: Any) -> "Opt":
        return dataclasses.replace(self, default=default)

    def with_short(self, short: str) -> "Opt":
        return dataclasses.replace(self, short=short)

    def with_help(self, help: str) -> "Opt":
        return dataclasses.replace(self, help=help)

    def with_aliases(self, *aliases: str) -> "Opt":
        return dataclasses.replace(self, aliases=self.aliases + tuple(aliases))

    def with_validators(self, *validators: Validator) -> "Opt":
        return dataclasses.replace(self, validators=self.validators + tuple(validators))

    def with_parser(self, parser: Parser) -> "Opt":
        return dataclasses.replace(self, parser=parser)

    def with_on_update(self, callback: UpdateCallback) -> "Opt":
        return dataclasses.replace(self, on_update=callback)

    def as_cli(self, cli: bool = True) -> "Opt":
        return dataclasses.replace(self, cli=cli)

    def as_required(self, required: bool = True) -> "Opt":
        return dataclasses.replace(self, required=required)

    @classmethod
    def of(
        cls,
        name: str,
        default: Any,
        help: str = "",
        type: Optional[Union[OptType, str]] = None,
        **kwargs: Any,
    ) -> "Opt":
        """Build an option whose type is inferred from `default`."""
        if type is None:
            type = OptType.infer(default)
        return cls(name, type, default=default, help=help, **kwargs)


# ============================================================================
# Factories
# ============================================================================


def _factory(kind: OptType) -> Callable[..., Opt]:
    def build(name: str, default: Any = None, help: str = "", **kwargs: Any) -> Opt:
        return Opt(name, kind, default=default, help=help, **kwargs)

    build.__name__ = f"{kind.value}_opt"
    build.__doc__ = f"Create a {kind.value} option."
    return build


bool_opt = _factory(OptType.BOOL)
int_opt = _factory(OptType.INT)
uint_opt = _factory(OptType.UINT)
float_opt = _factory(OptType.FLOAT)
str_opt = _factory(OptType.STR)
duration_opt = _factory(OptType.DURATION)
time_opt = _factory(OptType.TIME)
str_list_opt = _factory(OptType.STR_LIST)
int_list_opt = _factory(OptType.INT_LIST)
uint_list_opt = _factory(OptType.UINT_LIST)
float_list_opt = _factory(OptType.FLOAT_LIST)
duration_list_opt = _factory(OptType.DURATION_LIST)
time_list_opt = _factory(OptType.TIME_LIST)


def iter_opts(opts: Union[Opt, Iterable[Opt]]) -> Tuple[Opt, ...]:
    if isinstance(opts, Opt):
        return (opts,)
    return tuple(opts)


__all__ = [
    "Opt",
    "normalize_name",
    "bool_opt",
    "int_opt",
    "uint_opt",
    "float_opt",
    "str_opt",
    "duration_opt",
    "time_opt",
    "str_list_opt",
    "int_list_opt",
    "uint_list_opt",
    "float_list_opt",
    "duration_list_opt",
    "time_list_opt",
]
