r"""
argbind identity specifications and dataclass field helpers.

Overview
- Specs
  • Option: named binding reachable as -x (short) and/or --name (long).
  • Argument: positional binding filled by the n-th leftover token.
  • Rest: catch-all binding receiving every leftover token past the arguments.
  The three are mutually exclusive by construction: a binding holds exactly one.

- Field helpers (declarative registration on dataclasses)
  • option(...): dataclasses.field carrying an Option spec.
  • argument(...): dataclasses.field carrying an Argument spec.
  • rest(...): dataclasses.field carrying a Rest spec.
  The spec is stored under the "argbind" metadata key and compiled once when a
  Parser is built from the dataclass.

Metadata (sanitized on construction)
- Shared
  • name: Unset | str, display/lookup name, validated like a long name.
  • descr: Unset | str, short description (None when Unset).
- Option
  • short: Unset | str of exactly one character.
  • long: Unset | None | str. Unset lets bulk registration derive it from the
    field name; None or "" disables the long form; names are lowercased.
  • default: Unset | object, validated later against the destination kind.
- Argument
  • index: Unset | int >= 0. Unset means "next free index" at registration.
  • default: Unset | object; a positional with a default is optional.

Validation highlights
- Names match r"\w[\w-]*": letters, digits and "_" anywhere, "-" not first
  (unicode letters allowed).
- Short names are exactly one such character.

Quick example:
    >>> from dataclasses import dataclass
    >>> from argbind import option, argument, rest
    >>> @dataclass
    ... class Copy:
    ...     source: str = argument()
    ...     force: bool = option("f")
    ...     extra: list[str] = rest()
"""
import dataclasses
import re

from .faults import ConstructionError
from .utils import *

_NAME = re.compile(r"\w[\w-]*")

METADATA = "argbind"


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize the fields shared by every spec.

    - name: optional lookup/display name; when given it must be a valid name.
    - descr: optional description; trimmed, empty strings are rejected.

    Raises
    - TypeError: when a field has the wrong type.
    - ConstructionError: when a string field is empty or malformed.
    """
    if not isinstance(name := metadata["name"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif isinstance(name, str) and not _NAME.fullmatch(name):
        raise ConstructionError(f"{cls.__typename__} 'name' {name!r} is not a valid name")

    if not isinstance(descr := metadata["descr"], str | None | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ConstructionError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)


def _sanitize_named_metadata(cls, metadata, /):
    """
    Internal: validate the short and long names of an Option.

    - short: exactly one name character ("v", "á"); Unset when not used.
    - long: lowercased; None and "" both disable it; Unset is kept so that bulk
      registration can tell "not given" from "disabled".
    """
    if not isinstance(short := metadata["short"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'short' must be a string")
    elif isinstance(short, str):
        if len(short) != 1:
            raise ConstructionError(f"{cls.__typename__} 'short' must be one character: -{short}")
        if not _NAME.fullmatch(short):
            raise ConstructionError(f"{cls.__typename__} 'short' {short!r} is not a valid name")

    if not isinstance(long := metadata["long"], str | None | Unset):
        raise TypeError(f"{cls.__typename__} 'long' must be a string")
    elif isinstance(long, str):
        if not long:
            long = None
        elif not _NAME.fullmatch(long):
            raise ConstructionError(f"{cls.__typename__} 'long' {long!r} is not a valid name")
        else:
            long = long.lower()
    metadata["long"] = long


class Option(metaclass=SpecType):
    """
    Named binding specification.

    An option is matched by its short character (-x, bundled -xyz, glued -xVALUE)
    or by its long name (--name, --name=VALUE, --name VALUE, --name.key VALUE).
    Long names match case-insensitively.
    """
    __introspectable__ = ("short", "long", "name", "default", "descr")

    def __new__(cls, short=Unset, long=Unset, *, name=Unset, default=Unset, descr=Unset):
        metadata = {
            "short": short,
            "long": long,
            "name": name,
            "default": default,
            "descr": descr,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_named_metadata(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    def __replace__(self, **overrides):
        return type(self)(**{name: getattr(self, "_" + name) for name in type(self).__introspectable__} | overrides)


class Argument(metaclass=SpecType):
    """
    Positional binding specification.

    Leftover tokens fill arguments in index order. An argument without a default
    is required; once an argument has a default every later one must have one too.
    """
    __introspectable__ = ("index", "name", "default", "descr")

    def __new__(cls, index=Unset, *, name=Unset, default=Unset, descr=Unset):
        metadata = {
            "index": index,
            "name": name,
            "default": default,
            "descr": descr,
        }
        _sanitize_metadata(cls, metadata)

        if not isinstance(index, int | Unset) or isinstance(index, bool):
            raise TypeError(f"{cls.__typename__} 'index' must be an integer")
        elif isinstance(index, int) and index < 0:
            raise ConstructionError(f"{cls.__typename__} 'index' must be a non-negative integer")

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    def __replace__(self, **overrides):
        return type(self)(
            overrides.pop("index", self._index),
            **{name: getattr(self, "_" + name) for name in ("name", "default", "descr")} | overrides
        )


class Rest(metaclass=SpecType):
    """
    Catch-all binding specification; its destination must be a list of strings.
    """
    __introspectable__ = ("name", "descr")

    def __new__(cls, *, name=Unset, descr=Unset):
        metadata = {
            "name": name,
            "descr": descr,
        }
        _sanitize_metadata(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    @property
    def default(self):
        return Unset

    def __replace__(self, **overrides):
        return type(self)(**{name: getattr(self, "_" + name) for name in type(self).__introspectable__} | overrides)


def _field(spec, factory, /):
    if factory is not Unset:
        if not callable(factory):
            raise TypeError("field 'factory' must be callable")
        return dataclasses.field(default_factory=factory, metadata={METADATA: spec})
    return dataclasses.field(default=Unset, metadata={METADATA: spec})


def option(short=Unset, long=Unset, *, name=Unset, default=Unset, descr=Unset, factory=Unset):
    """
    Declare a dataclass field as an option.

    Usage
        @dataclass
        class Serve:
            port: int = option("p", default=8080)
            hosts: list[str] = option(long="host", default="[localhost]")

    Behavior
    - The long name defaults to the field name (lowercased, "_" becomes "-");
      pass long="" to expose the option by its short name only.
    - default is the value applied at the start of every parse; a string default
      for a non-string field is read with the command-line literal grammar.
    - factory builds the initial field value (needed for capability fields such
      as Count or Append); without it the field starts at the zero value.
    """
    return _field(Option(short, long, name=name, default=default, descr=descr), factory)


def argument(index=Unset, *, name=Unset, default=Unset, descr=Unset, factory=Unset):
    """
    Declare a dataclass field as a positional argument (index defaults to the
    next free one, in field order).
    """
    return _field(Argument(index, name=name, default=default, descr=descr), factory)


def rest(*, name=Unset, descr=Unset):
    """
    Declare a list[str] dataclass field as the catch-all of leftover tokens.
    """
    return dataclasses.field(default_factory=list, metadata={METADATA: Rest(name=name, descr=descr)})


__all__ = (
    "Option",
    "Argument",
    "Rest",
    "option",
    "argument",
    "rest",
)
