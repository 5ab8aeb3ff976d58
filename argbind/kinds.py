r"""
argbind value kinds: the closed set of destination types.

Overview
- Scalars
  • String: any token, verbatim.
  • Boolean: 1/t/T/TRUE/true/True and 0/f/F/FALSE/false/False.
  • Integer(bits, signed): base-10 literal, range-checked to the width.
  • Float(bits): decimal/exponent literal, inf and nan; float32 is rounded.
- Composites
  • Array(element, length): fixed arity, materialized as a tuple.
  • Slice(element): variable length, materialized as a list.
  • Map(key, value): materialized as a dict (keys must be hashable).
  • Struct(cls): a dataclass scanned field by field in declaration order.
- Custom(cls): a class implementing __scan__ owns its own grammar.

Every kind answers the same small protocol:
- zero(): zero value of the kind (fresh object on every call).
- parse(literal): scalars only, raises InvalidLiteralError.
- format(value): inverse of parse for scalars, bracket notation for composites.
- coerce(value): type check for declared defaults; returns a private copy.
- hashable / label: map-key eligibility and a short display name.

resolve(annotation) turns Python annotations into kinds:
    >>> resolve(list[int])
    slice(element=integer(bits=64, signed=True))
    >>> resolve(Annotated[int, UInt8]).label
    'uint8'
"""
import copy
import dataclasses
import math
import re
import struct
import typing
from collections.abc import Iterable, Mapping
from typing import Annotated

from .faults import *
from .utils import *

_BOOLEANS = {
    "1": True, "t": True, "T": True, "TRUE": True, "true": True, "True": True,
    "0": False, "f": False, "F": False, "FALSE": False, "false": False, "False": False,
}

_FLOAT = re.compile(r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)", re.IGNORECASE)


def _invalid(message, hint, /):
    return InvalidLiteralError(
        message,
        title="invalid literal",
        code=FaultCode.INVALID_LITERAL,
        hint=hint,
        docs=getdoc(FaultCode.INVALID_LITERAL)
    )


class Kind(metaclass=SpecType):
    """
    Base of every value kind.

    Kinds compare and hash by their type and introspectable fields, so
    resolve(int) == Integer() and kinds can key caches.
    """
    __introspectable__ = ()

    hashable = True

    def __key__(self):
        return tuple(getattr(self, "_" + name) for name in type(self).__introspectable__)

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self.__key__() == other.__key__()

    def __hash__(self):
        return hash((type(self), self.__key__()))

    @property
    def label(self):
        return type(self).__typename__

    def parse(self, literal, /):
        raise TypeError(f"{type(self).__typename__} has no scalar literal")

    def format(self, value, /):
        return str(value)


class String(Kind):
    def zero(self):
        return ""

    def parse(self, literal, /):
        return literal

    def format(self, value, /):
        return value

    def coerce(self, value, /):
        if not isinstance(value, str):
            raise TypeError(f"expected a string, got {type(value).__name__}")
        return value


class Boolean(Kind):
    @property
    def label(self):
        return "bool"

    def zero(self):
        return False

    def parse(self, literal, /):
        try:
            return _BOOLEANS[literal]
        except KeyError:
            raise _invalid(f"invalid boolean {literal!r}", "use true or false (also t/f, 1/0)") from None

    def format(self, value, /):
        return "true" if value else "false"

    def coerce(self, value, /):
        if not isinstance(value, bool):
            raise TypeError(f"expected a boolean, got {type(value).__name__}")
        return value


class Integer(Kind):
    __introspectable__ = ("bits", "signed")

    def __init__(self, bits=64, signed=True):
        if not isinstance(bits, int) or isinstance(bits, bool):
            raise TypeError(f"{type(self).__typename__} 'bits' must be an integer")
        if bits not in (8, 16, 32, 64):
            raise ValueError(f"{type(self).__typename__} 'bits' must be one of 8, 16, 32 or 64")
        self._bits = bits
        self._signed = bool(signed)

    @property
    def label(self):
        return ("int" if self._signed else "uint") + (str(self._bits) if self._bits != 64 else "")

    @property
    def bounds(self):
        if self._signed:
            return -(1 << (self._bits - 1)), (1 << (self._bits - 1)) - 1
        return 0, (1 << self._bits) - 1

    def zero(self):
        return 0

    def parse(self, literal, /):
        if not re.fullmatch(r"[+-]?[0-9]+" if self._signed else r"\+?[0-9]+", literal):
            if self._signed:
                raise _invalid(f"invalid integer {literal!r}", "use base-10 digits, optionally signed (for example: -42)")
            raise _invalid(f"invalid positive integer {literal!r}", "use base-10 digits without a sign (for example: 42)")
        low, high = self.bounds
        # 64 bits never need more than 20 digits
        if len(literal.lstrip("+-").lstrip("0")) > 20 or not low <= (value := int(literal)) <= high:
            raise _invalid(f"integer {literal!r} out of range for {self.label}", f"use a value between {low} and {high}")
        return value

    def coerce(self, value, /):
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"expected an integer, got {type(value).__name__}")
        low, high = self.bounds
        if not low <= value <= high:
            raise ValueError(f"integer {value} out of range for {self.label}")
        return value


class Float(Kind):
    __introspectable__ = ("bits",)

    def __init__(self, bits=64):
        if bits not in (32, 64) or isinstance(bits, bool):
            raise ValueError(f"{type(self).__typename__} 'bits' must be 32 or 64")
        self._bits = bits

    @property
    def label(self):
        return "float32" if self._bits == 32 else "float"

    def _narrow(self, value, literal, /):
        if self._bits == 32:
            try:
                value = struct.unpack("f", struct.pack("f", value))[0]
            except OverflowError:
                value = math.inf
        if math.isinf(value) and not re.search("inf", literal, re.IGNORECASE):
            raise _invalid(f"number {literal!r} out of range for {self.label}", "use a smaller magnitude")
        return value

    def zero(self):
        return 0.0

    def parse(self, literal, /):
        if not _FLOAT.fullmatch(literal):
            raise _invalid(f"invalid number {literal!r}", "use decimal notation (for example: 3.14 or 1e-3)")
        return self._narrow(float(literal), literal)

    def format(self, value, /):
        return repr(float(value))

    def coerce(self, value, /):
        if not isinstance(value, int | float) or isinstance(value, bool):
            raise TypeError(f"expected a number, got {type(value).__name__}")
        try:
            return self._narrow(float(value), repr(value))
        except InvalidLiteralError as fault:
            raise ValueError(fault.message) from None


class Array(Kind):
    __introspectable__ = ("element", "length")

    def __init__(self, element, length):
        if not isinstance(length, int) or isinstance(length, bool):
            raise TypeError(f"{type(self).__typename__} 'length' must be an integer")
        if length < 1:
            raise ValueError(f"{type(self).__typename__} 'length' must be a positive integer")
        self._element = resolve(element)
        self._length = length

    @property
    def hashable(self):
        return self._element.hashable

    @property
    def label(self):
        return f"[{self._length}]{self._element.label}"

    def zero(self):
        return tuple(self._element.zero() for _ in range(self._length))

    def format(self, value, /):
        return "[" + " ".join(map(self._element.format, value)) + "]"

    def coerce(self, value, /):
        if not isinstance(value, Iterable) or isinstance(value, str | Mapping):
            raise TypeError(f"expected a sequence, got {type(value).__name__}")
        values = tuple(map(self._element.coerce, value))
        if len(values) != self._length:
            raise ValueError(f"expected {self._length} values, got {len(values)}")
        return values


class Slice(Kind):
    __introspectable__ = ("element",)

    hashable = False

    def __init__(self, element):
        self._element = resolve(element)

    @property
    def label(self):
        return f"[]{self._element.label}"

    def zero(self):
        return []

    def format(self, value, /):
        return "[" + " ".join(map(self._element.format, value)) + "]"

    def coerce(self, value, /):
        if not isinstance(value, Iterable) or isinstance(value, str | Mapping):
            raise TypeError(f"expected a sequence, got {type(value).__name__}")
        return list(map(self._element.coerce, value))


class Map(Kind):
    __introspectable__ = ("key", "value")

    hashable = False

    def __init__(self, key, value):
        self._key = resolve(key)
        self._value = resolve(value)
        if not self._key.hashable:
            raise UnsupportedTypeError(f"{type(self).__typename__} key {self._key.label} is not hashable")

    @property
    def label(self):
        return f"map[{self._key.label}]{self._value.label}"

    def zero(self):
        return {}

    def format(self, value, /):
        return "{" + " ".join(f"{self._key.format(key)}:{self._value.format(item)}" for key, item in value.items()) + "}"

    def coerce(self, value, /):
        if not isinstance(value, Mapping):
            raise TypeError(f"expected a mapping, got {type(value).__name__}")
        return {self._key.coerce(key): self._value.coerce(item) for key, item in value.items()}


class Struct(Kind):
    __introspectable__ = ("cls", "fields")

    def __init__(self, cls, /, *, _seen=frozenset()):
        if not isinstance(cls, type) or not dataclasses.is_dataclass(cls):
            raise UnsupportedTypeError(f"{type(self).__typename__} type must be a dataclass")
        if cls in _seen:
            raise UnsupportedTypeError(f"{type(self).__typename__} {cls.__name__!r} cannot contain itself")
        hints = typing.get_type_hints(cls, include_extras=True)
        self._cls = cls
        self._fields = tuple(
            (field.name, _resolve(hints[field.name], _seen | {cls}))
            for field in dataclasses.fields(cls) if field.init
        )

    @property
    def hashable(self):
        return self._cls.__hash__ is not None

    @property
    def label(self):
        return "struct"

    def zero(self):
        return self._cls(**{name: kind.zero() for name, kind in self._fields})

    def format(self, value, /):
        return "{" + " ".join(kind.format(getattr(value, name)) for name, kind in self._fields) + "}"

    def coerce(self, value, /):
        if not isinstance(value, self._cls):
            raise TypeError(f"expected {self._cls.__name__}, got {type(value).__name__}")
        return copy.deepcopy(value)


class Custom(Kind):
    __introspectable__ = ("cls",)

    def __init__(self, cls, /):
        if not isinstance(cls, type) or not callable(getattr(cls, "__scan__", None)):
            raise UnsupportedTypeError(f"{type(self).__typename__} type must implement __scan__")
        self._cls = cls

    @property
    def hashable(self):
        return self._cls.__hash__ is not None

    @property
    def label(self):
        return self._cls.__name__.lower()

    def zero(self):
        return self._cls()

    def coerce(self, value, /):
        if not isinstance(value, self._cls):
            raise TypeError(f"expected {self._cls.__name__}, got {type(value).__name__}")
        return value


Int8 = Integer(8)
Int16 = Integer(16)
Int32 = Integer(32)
Int64 = Integer(64)
UInt8 = Integer(8, signed=False)
UInt16 = Integer(16, signed=False)
UInt32 = Integer(32, signed=False)
UInt64 = UInt = Integer(64, signed=False)
Float32 = Float(32)
Float64 = Float(64)


def _resolve(annotation, seen, /):
    if isinstance(annotation, Kind):
        return annotation

    origin, args = typing.get_origin(annotation), typing.get_args(annotation)

    if origin is Annotated:
        for metadata in annotation.__metadata__:
            if isinstance(metadata, Kind):
                return metadata
        return _resolve(args[0], seen)

    # bool before int: bool is an int subclass but has its own grammar
    if annotation is bool:
        return Boolean()
    if annotation is str:
        return String()
    if annotation is int:
        return Integer()
    if annotation is float:
        return Float()

    if origin is list and len(args) == 1:
        return Slice(_resolve(args[0], seen))
    if origin is tuple and args and Ellipsis not in args:
        if any(arg != args[0] for arg in args):
            raise UnsupportedTypeError(f"tuple {annotation!r} must be homogeneous")
        return Array(_resolve(args[0], seen), len(args))
    if origin is dict and len(args) == 2:
        return Map(_resolve(args[0], seen), _resolve(args[1], seen))

    if isinstance(annotation, type):
        if callable(getattr(annotation, "__scan__", None)):
            return Custom(annotation)
        if dataclasses.is_dataclass(annotation):
            return Struct(annotation, _seen=seen)

    raise UnsupportedTypeError(f"unsupported type {annotation!r}")


def resolve(annotation, /):
    """
    Map a Python annotation (or a kind) to its value kind.

    Supported: str, bool, int, float, list[T], homogeneous tuple[T, ...] of a
    fixed length, dict[K, V], dataclasses, classes implementing __scan__,
    Annotated[T, <kind>] and kind instances. Anything else raises
    UnsupportedTypeError.
    """
    return _resolve(annotation, frozenset())


__all__ = (
    "Kind",
    "String",
    "Boolean",
    "Integer",
    "Float",
    "Array",
    "Slice",
    "Map",
    "Struct",
    "Custom",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "UInt",
    "Float32",
    "Float64",
    "resolve",
)
