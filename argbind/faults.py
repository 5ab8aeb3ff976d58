"""
argbind faults (errors and warnings) and rendering.

Scope
- FaultCode: stable numeric identifiers for every user-facing issue, grouped by
  domain (routing, options, positionals, literals, delegated, warnings).
- CommandException / CommandWarning: base types carrying a message plus keyword
  options; they render themselves through rich and know how to surface.
- ParseError: base of every fault raised while binding tokens.
- ConstructionError / UnsupportedTypeError: programmer errors raised while a
  parser tree is being built, never during parsing.
- trigger(): central entry point to surface a fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

Messages
- Lowercase, one sentence, identity first: "option --int: invalid integer 'x'".
- Nested context is prepended with within(): "argument 0: slice index 1: ...".

Integration
- Scanners raise faults without any runtime context; the parser re-raises them
  through trigger(fault, **ctx) once it knows the option name or argument index.
- In non-shell mode exceptions are raised and warnings go through the warnings
  module; in shell mode both are rendered to stderr via rich.
"""
import inspect
import sys
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - routing (1110x): MISSING_COMMAND
    - options (1111x): UNKNOWN_OPTION, UNEXPECTED_VALUE, MISSING_VALUE
    - positionals (1112x): MISSING_ARGUMENT
    - delegated (1113x): DELEGATED_ERROR
    - leftovers (1114x): UNPARSED_TOKENS
    - literals (1115x): INVALID_LITERAL, ARITY_MISMATCH, MISSING_SEPARATOR,
      MISSING_FIELDS, TOO_MANY_FIELDS, AMBIGUOUS_SPLIT, UNBALANCED_BRACKETS,
      NESTING_TOO_DEEP, INVALID_INDEX
    - warnings (12xxx): EMPTY_INLINE_VALUE
    """
    # --- routing errors ---
    MISSING_COMMAND             = 11103

    # --- option errors ---
    UNKNOWN_OPTION              = 11112
    UNEXPECTED_VALUE            = 11113
    MISSING_VALUE               = 11117

    # --- positional errors ---
    MISSING_ARGUMENT            = 11125

    # --- delegated errors ---
    DELEGATED_ERROR             = 11131

    # --- leftovers ---
    UNPARSED_TOKENS             = 11141

    # --- literal errors ---
    INVALID_LITERAL             = 11151
    ARITY_MISMATCH              = 11152
    MISSING_SEPARATOR           = 11153
    MISSING_FIELDS              = 11154
    TOO_MANY_FIELDS             = 11155
    AMBIGUOUS_SPLIT             = 11156
    UNBALANCED_BRACKETS         = 11157
    NESTING_TOO_DEEP            = 11158
    INVALID_INDEX               = 11159

    # --- warnings ---
    EMPTY_INLINE_VALUE          = 12111

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette, title):
    """
    build the rich renderable shared by exceptions and warnings.
    """
    main = __import__("__main__")
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    colorful = fault.options.get("colorful", False)
    fancy = fault.options.get("fancy", False)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style] if colorful else "")

    tool = fault.options.get("tool")
    prog = getattr(main, "__prog__", tool.root.name if tool is not None else "argbind")
    code = fault.options.get("code")

    header = Text.assemble(
        "[ ",
        text(prog, "prog-name"),
        " — ",
        text(code.normalize() if isinstance(code, FaultCode) else "", "code"),
        " | ",
        text(fault.options.get("title", "").title(), title),
        " ]"
    )
    message = text(fault.message, "message")
    hint = Text.assemble(text(" → ", "hint-arrow"), text(fault.options.get("hint", ""), "hint"))

    if fancy:
        return Panel(Group(message, hint), title=header, title_align="left")
    return Group(header, message, hint)


class CommandException(Exception):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        }, "error-title")

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})

    def within(self, context, /, **overrides):
        """
        return a copy whose message is prefixed with the given context.

        used to add the location of a nested value ("slice index 2") or the
        identity of the offending option/argument ("option --int").
        """
        return type(self)(f"{context}: {self.message}", **{**self.options, **overrides})


class ParseError(CommandException): ...

class UnknownOptionError(ParseError): ...
class UnexpectedValueError(ParseError): ...
class MissingValueError(ParseError): ...
class MissingArgumentError(ParseError): ...
class InvalidLiteralError(ParseError): ...
class ArityMismatchError(ParseError): ...
class MissingSeparatorError(ParseError): ...
class MissingFieldsError(ParseError): ...
class TooManyFieldsError(ParseError): ...
class AmbiguousSplitError(ParseError): ...
class UnbalancedBracketsError(ParseError): ...
class NestingDepthError(ParseError): ...
class InvalidIndexError(ParseError): ...

class UnparsedTokensError(CommandException): ...
class MissingCommandError(CommandException): ...
class DelegatedCommandError(CommandException): ...


class CommandWarning(Warning):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "warning-title": "bold #FFC2E0",
            "message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        }, "warning-title")

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class EmptyOptionValueWarning(CommandWarning): ...


class ConstructionError(ValueError):
    """
    raised while building bindings or parser trees (never while parsing).
    """


class UnsupportedTypeError(ConstructionError, TypeError):
    """
    raised when a destination type has no value kind.
    """


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via rich console; otherwise, exceptions are raised.

    typical options
    - tool, shell, fancy, colorful, title, code, hint, docs, and any other
      context the reporter may want to show (e.g., input/index/suggestions).
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CommandException",
    "ParseError",
    "UnknownOptionError",
    "UnexpectedValueError",
    "MissingValueError",
    "MissingArgumentError",
    "InvalidLiteralError",
    "ArityMismatchError",
    "MissingSeparatorError",
    "MissingFieldsError",
    "TooManyFieldsError",
    "AmbiguousSplitError",
    "UnbalancedBracketsError",
    "NestingDepthError",
    "InvalidIndexError",
    "UnparsedTokensError",
    "MissingCommandError",
    "DelegatedCommandError",
    "CommandWarning",
    "EmptyOptionValueWarning",
    "ConstructionError",
    "UnsupportedTypeError",
    "FaultCode",
    "trigger",
    "getdoc",
)
