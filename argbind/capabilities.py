"""
argbind capabilities: destinations that own their grammar.

A destination takes over scanning by implementing:
- __scan__(tokens) -> int: read as many tokens as it needs and report how many
  whole tokens it consumed (0 is allowed). Faults raised as CommandException
  propagate with the option identity prepended; other exceptions are wrapped into
  DelegatedCommandError.
- __assign__(value) (optional): apply a declared default. Without it a
  capability destination cannot carry a default.

Standard implementations
- Count: counts presences (-vvv gives 3); a following integer sets the count.
- Append: collects one element per presence (-i 1 -i 2 gives [1, 2]).
"""
import re
import shlex
from collections.abc import Iterable

from .faults import *
from .kinds import *
from .scanner import scan
from .utils import *


class Count(metaclass=SpecType):
    """
    Counter incremented on every presence of its option.

    -c, -ccc, --count --count all increment. A token right after the option that
    reads as a base-10 integer replaces the count and is consumed (-c 3 gives 3).
    """
    __introspectable__ = ("value",)

    def __init__(self, value=0):
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"{type(self).__typename__} 'value' must be an integer")
        self._value = value

    def __scan__(self, tokens):
        if tokens and re.fullmatch(r"[+-]?[0-9]+", tokens[0]):
            self._value = int(tokens[0])
            return 1
        self._value += 1
        return 0

    def __assign__(self, value):
        if isinstance(value, str):
            value = Integer().parse(value)
        elif not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"{type(self).__typename__} default must be an integer")
        self._value = value

    def __int__(self):
        return self._value

    def __index__(self):
        return self._value

    def __eq__(self, other):
        if isinstance(other, Count):
            return self._value == other._value
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == other
        return NotImplemented

    def __hash__(self):
        return hash(self._value)


class Append(metaclass=SpecType):
    """
    Accumulator appending one scanned element per presence of its option.

    The element type is any annotation or kind accepted by resolve(); elements
    use the regular scanner so "--point {1 2}" works for a dataclass element.
    """
    __introspectable__ = ("kind", "values")

    def __init__(self, kind=str, values=()):
        self._kind = resolve(kind)
        self._values = []
        self.__assign__(values)

    def __scan__(self, tokens):
        consumed, value = scan(self._kind, tokens)
        self._values.append(value)
        return consumed

    def __assign__(self, value):
        if isinstance(value, str):
            # a string default is a slice literal: "[1 2]" or "1,2"
            tokens = shlex.split(value) or [""]
            consumed, values = scan(Slice(self._kind), tokens)
            if consumed != len(tokens):
                raise ValueError(f"unexpected tokens after {type(self).__typename__} default: {tokens[consumed:]!r}")
        elif isinstance(value, Iterable):
            values = Slice(self._kind).coerce(value)
        else:
            raise TypeError(f"{type(self).__typename__} default must be a string or an iterable")
        self._values = values

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __getitem__(self, index):
        return self._values[index]

    def __eq__(self, other):
        if isinstance(other, Append):
            return self._values == other._values
        if isinstance(other, list | tuple):
            return self._values == list(other)
        return NotImplemented

    __hash__ = None


__all__ = (
    "Count",
    "Append",
)
