"""
argbind command layer: parser nodes, dispatch, and sub-command routing.

What this module provides
- Parser: one node of a command tree. It owns bindings (options, positional
  arguments, a rest list), named children (sub-commands), an optional action and
  the runtime flags shell/fancy/colorful.
  • Imperative registration: parser.option(...), parser.argument(...),
    parser.rest(...), parser.command(...).
  • Declarative registration: Parser(SomeDataclass) compiles every public field
    into a binding and uses its run() method as the action.
- command(...): build a Parser from a dataclass, or a decorator doing so.
- invoke(obj, prompt): parse a prompt and run the selected action.

Token grammar (one parse call)
- The first token may name a child (case-insensitive); routing recurses.
- "--" ends option scanning; every later token is positional, even empty ones.
- "--name", "--name=VALUE", "--name VALUE", "--name.key VALUE" (long options).
- "-x", "-xyz" (bundled booleans), "-xVALUE", "-x=VALUE", "-x VALUE" (short options).
- "-" alone and any other non-empty token is a positional candidate.

Quick start
    from dataclasses import dataclass
    from argbind import command, invoke, option, argument

    @command(shell=True)
    @dataclass
    class Greet:
        who: str = argument(default="world")
        loud: bool = option("l")

        def run(self):
            print(("hello %s" % self.who).upper() if self.loud else "hello %s" % self.who)

    if __name__ == "__main__":
        invoke(Greet)
"""
import dataclasses
import difflib
import functools
import os.path
import re
import shlex
import sys
import typing
from collections import namedtuple
from collections.abc import Iterable

from .arguments import METADATA, Option, Argument, Rest
from .bindings import Attribute, Binding
from .faults import *
from .kinds import Boolean, resolve
from .utils import *

Outcome = namedtuple("Outcome", ("command", "leftovers"))
Outcome.__doc__ = """
Result of Parser.parse().

- command: the active node (the deepest routed child, or the parser itself).
- leftovers: positional candidates claimed by no argument and no rest binding.
"""


def _process_strings(cls, metadata):
    """
    Internal: validate the name and description of a node.

    Child names route tokens, so they must be non-empty, contain no whitespace
    and not start with "-". The root name only labels diagnostics.
    """
    if not isinstance(name := metadata["name"], str):
        if name is Unset:
            raise ConstructionError(f"{cls.__typename__} child needs a name or a dataclass target")
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    if metadata["parent"] and not re.fullmatch(r"[^\s-]\S*", name):
        raise ConstructionError(f"{cls.__typename__} name {name!r} is not a valid command name")

    if not isinstance(descr := metadata["descr"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ConstructionError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)

    if not callable(action := metadata["action"]) and action is not Unset:
        raise TypeError(f"{cls.__typename__} 'action' must be callable")


def _process_target(self, target):
    """
    Internal: compile the fields of a dataclass instance into bindings.

    Rules
    - Fields starting with "_" and fields excluded from __init__ are skipped.
    - A field declared with option()/argument()/rest() keeps its spec; its name
      defaults to the field name.
    - A plain field becomes a long option; its dataclass default (if any) becomes
      the option default.
    - An option without an explicit long name is reachable as --field-name
      (lowercased, "_" replaced by "-"); long="" disables the long form.
    - Positional indices are validated once every field was registered.
    """
    hints = typing.get_type_hints(type(target), include_extras=True)

    for field in dataclasses.fields(target):
        if field.name.startswith("_") or not field.init:
            continue

        spec = field.metadata.get(METADATA, Unset)
        if spec is Unset:
            spec = Option(default=field.default if field.default is not dataclasses.MISSING else Unset)

        overrides = {"name": coalesce(spec.name, field.name)}
        if isinstance(spec, Option) and spec.long is Unset:
            overrides["long"] = coalesce(spec.name, field.name.replace("_", "-")).lower()

        try:
            kind = resolve(hints[field.name])
        except UnsupportedTypeError as exception:
            raise UnsupportedTypeError(f"{type(self).__typename__} field {field.name!r}: {exception}") from None

        self._register(spec.__replace__(**overrides), Attribute(target, field.name, kind), validate=False)

    self._validate_positionals()


def _attach_to_parent(self, parent):
    """
    Register this node under its parent, enforcing unique (case-insensitive) names.
    """
    if getattr(parent, "_children", {}).setdefault(name := self.name.lower(), self) is self:
        return

    typeof = "subcommand" if parent.parent else "command"
    raise ConstructionError(f"{type(self).__typename__} {typeof} name {name!r} is already in use")


@functools.cache
def _ordinal(number):
    """
    Return a human-friendly ordinal label for a 1-based position.
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def _tokenize(prompt, /):
    """
    Normalize a prompt into a fresh list of tokens.

    - Unset: sys.argv[1:]
    - str: split like a POSIX shell would (shlex.split)
    - Iterable[str]: copied as-is; empty strings are kept since "" is a valid value
    """
    if prompt is Unset:
        return sys.argv[1:]
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("prompt must be a string or an iterable of strings")
        return tokens
    raise TypeError("prompt must be a string or an iterable of strings")


class Parser(metaclass=SpecType):
    """
    One node of a command tree.

    Responsibilities
    - Registration: owns the bindings of this node and its children, enforcing
      unique short names, long names, indices and child names at construction.
    - Dispatch: parse() classifies tokens, decodes short bundles and glued values,
      applies defaults and assigns positional arguments.
    - Invocation: __invoke__() parses, surfaces leftovers and runs the action.

    Lifecycle
    - Build the tree once (constructor, option/argument/rest/command).
    - Parse any number of times; each parse re-applies defaults first, so
      repeated parses from the same state give the same result.
    """
    __introspectable__ = (
        "name",
        "descr",
        "target",
        "action",
        "bindings",
        "children",
        "parent",
        "shell",
        "fancy",
        "colorful",
    )

    __displayable__ = (
        "name",
        "descr",
        "bindings",
        "children",
        "shell",
        "fancy",
        "colorful",
    )

    @property
    def root(self):
        """
        Return the topmost node of this tree.
        """
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """
        Return the nodes from the root to this one, as a tuple.
        """
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    def __new__(
            cls,
            target=Unset,
            /,
            parent=Unset,
            name=Unset,
            descr=Unset,
            action=Unset,
            *,
            shell=Unset,
            fancy=Unset,
            colorful=Unset
    ):
        """
        Construct a node, optionally bound to a dataclass.

        Parameters
        - target: Unset | dataclass type | dataclass instance
          When a type is given it is instantiated without arguments. Every public
          field becomes a binding and target.run (if callable) becomes the action.
        - parent: Parser | Unset
          Parent node; the new node is attached as a child (routing name = name).
        - name: str | Unset
          Routing name. Defaults to the lowercased target class name for children
          and to the program name (basename of sys.argv[0]) for the root.
        - descr: str | Unset
          Short description, kept for external help renderers.
        - action: Callable[[], object] | Unset
          Called without arguments by __invoke__ once this node was selected.
        - shell, fancy, colorful: bool | Unset
          Runtime flags. If Unset, values inherit from parent (or default False).

        Raises
        - TypeError on wrongly typed parameters.
        - ConstructionError on invalid or duplicate names and invalid bindings.
        """
        if not isinstance(parent, Parser | Unset):
            raise TypeError(f"{cls.__typename__} 'parent' must be a parser")

        if isinstance(target, type):
            if not dataclasses.is_dataclass(target):
                raise TypeError(f"{cls.__typename__} 'target' must be a dataclass")
            target = target()
        elif target is not Unset and not dataclasses.is_dataclass(target):
            raise TypeError(f"{cls.__typename__} 'target' must be a dataclass")

        if name is Unset:
            if not parent:
                name = os.path.basename(sys.argv[0])
            elif target is not Unset:
                name = type(target).__name__.lower()

        if action is Unset and callable(getattr(target, "run", None)):
            action = target.run

        metadata = {
            "name": name,
            "descr": descr,
            "target": target,
            "action": action,
            "shell": bool(coalesce(shell, getattr(parent, "shell", False))),
            "fancy": bool(coalesce(fancy, getattr(parent, "fancy", False))),
            "colorful": bool(coalesce(colorful, getattr(parent, "colorful", False))),
            "parent": parent,
        }
        _process_strings(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        self._bindings = []
        self._children = {}

        if target is not Unset:
            _process_target(self, target)
        _attach_to_parent(self, parent)
        return self

    def option(self, target, /, short=Unset, long=Unset, *, name=Unset, default=Unset, descr=Unset):
        """
        Register an option writing to target (a Slot or a capability object).

        At least one of short/long is required. Returns the Binding.
        """
        return self._register(Option(short, long, name=name, default=default, descr=descr), target)

    def argument(self, target, /, name=Unset, *, default=Unset, descr=Unset):
        """
        Register the next positional argument (index = previous highest + 1).
        """
        return self._register(Argument(name=name, default=default, descr=descr), target)

    def rest(self, target, /, name=Unset, *, descr=Unset):
        """
        Register the catch-all destination (a Slot of list[str]).
        """
        return self._register(Rest(name=name, descr=descr), target)

    def command(self, target=Unset, /, name=Unset, descr=Unset, action=Unset, **flags):
        """
        Create a child node (a sub-command) under this one and return it.

        Without target and action the child is a pure routing namespace.
        """
        return Parser(target, self, name, descr, action, **flags)

    def _register(self, spec, target, /, *, validate=True):
        match spec:
            case Option():
                short, long = coalesce(spec.short, None), coalesce(spec.long, None)
                if short is None and long is None:
                    raise ConstructionError(f"{type(self).__typename__} option needs a short or a long name")
                if short is not None and any(binding.short == short for binding in self._bindings):
                    raise ConstructionError(f"{type(self).__typename__} option name already exists: -{short}")
                if long is not None and any(binding.long == long for binding in self._bindings):
                    raise ConstructionError(f"{type(self).__typename__} option name already exists: --{long}")
                if spec.long is Unset:
                    spec = spec.__replace__(long=None)
            case Argument():
                if spec.index is Unset:
                    spec = spec.__replace__(index=1 + max(
                        (binding.index for binding in self._bindings if binding.index is not None), default=-1
                    ))
                elif any(binding.index == spec.index for binding in self._bindings):
                    raise ConstructionError(f"{type(self).__typename__} argument index already exists: {spec.index}")
            case Rest():
                if any(isinstance(binding.spec, Rest) for binding in self._bindings):
                    raise ConstructionError(f"{type(self).__typename__} rest argument already exists")

        self._bindings.append(binding := Binding(spec, target))
        if validate:
            try:
                self._validate_positionals()
            except ConstructionError:
                self._bindings.remove(binding)
                raise
        return binding

    def _validate_positionals(self):
        """
        Internal: indices must be contiguous from 0 and a required argument
        cannot follow an optional one.
        """
        arguments = {binding.index: binding for binding in self._bindings if binding.index is not None}
        optional = None
        for index in range(max(arguments, default=-1) + 1):
            if (binding := arguments.get(index)) is None:
                raise ConstructionError(
                    f"{type(self).__typename__} argument indices must be contiguous: index {index} is missing"
                )
            if not binding.required:
                if optional is None:
                    optional = index
            elif optional is not None:
                raise ConstructionError(
                    f"{type(self).__typename__} required arguments cannot follow optional ones: "
                    f"index {index} is required but {optional} is optional"
                )

    def _find_long(self, name):
        name = name.lower()
        for binding in self._bindings:
            if binding.long is not None and binding.long == name:
                return binding
        return None

    def _find_short(self, char):
        for binding in self._bindings:
            if binding.short is not None and binding.short == char:
                return binding
        return None

    def isset(self, name, /):
        """
        Return whether the binding named name was assigned during the last parse.

        name may be a long name ("--count" or "count"), a short name ("-c" or
        "c") or the binding name. Unknown names raise KeyError.
        """
        if not isinstance(name, str):
            raise TypeError("isset() argument must be a string")
        stripped = name.lstrip("-") or name
        for binding in self._bindings:
            if (
                binding.name == stripped or
                binding.long is not None and binding.long == stripped.lower() or
                binding.short is not None and binding.short == stripped
            ):
                return binding.isset
        raise KeyError(name)

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this node's runtime flags (see faults.trigger).
        """
        trigger(fault, **options, tool=self, shell=self.shell, fancy=self.fancy, colorful=self.colorful)

    def _unknown(self, input, position, suggestions):
        route = " ".join(step.name for step in self.path)
        try:
            hint = "did you mean %r? you can also run '%s --help' to see all options" % (suggestions[0], route)
        except IndexError:
            hint = "run '%s --help' to see all available options" % route
        self.trigger(UnknownOptionError(
            "unknown option %s at %s position" % (input, _ordinal(position)),
            title="unknown option",
            code=FaultCode.UNKNOWN_OPTION,
            input=input,
            index=position,
            suggestions=suggestions,
            hint=hint,
            docs=getdoc(FaultCode.UNKNOWN_OPTION)
        ))

    def _parse_long(self, tokens, index, offset):
        """
        Internal: handle "--name[.key...][=value]" at tokens[index].

        Returns the index of the next unprocessed token.
        """
        input, equals, value = tokens[index][2:].partition("=")
        name, *path = input.split(".")

        if (binding := self._find_long(name)) is None:
            suggestions = difflib.get_close_matches(
                "--" + name.lower(), ["--" + binding.long for binding in self._bindings if binding.long], 5
            )
            self._unknown("--" + input, offset + index + 1, suggestions)

        if equals and not value:
            self.trigger(EmptyOptionValueWarning(
                "empty inline value for option --%s at %s position" % (input, _ordinal(offset + index + 1)),
                title="empty inline value",
                code=FaultCode.EMPTY_INLINE_VALUE,
                input="--" + input,
                hint="add a value after '=' (for example: --%s=<value>) or pass it after a space" % input,
                docs=getdoc(FaultCode.EMPTY_INLINE_VALUE)
            ))

        glued = bool(value)
        try:
            consumed = binding.scan([value, *tokens[index + 1:]] if glued else tokens[index + 1:], path, glued=glued)
        except CommandException as fault:
            self.trigger(fault.within(f"option --{input}"), input="--" + input, index=offset + index + 1)

        if glued and not consumed:
            self.trigger(UnexpectedValueError(
                f"option --{input}: unexpected value {value!r}",
                title="unexpected value",
                code=FaultCode.UNEXPECTED_VALUE,
                input="--" + input,
                index=offset + index + 1,
                hint="remove everything from '=' (for example: --%s)" % input,
                docs=getdoc(FaultCode.UNEXPECTED_VALUE)
            ))
        return index + 1 + consumed - glued

    def _parse_short(self, tokens, index, offset):
        """
        Internal: decode the bundle "-xyz..." at tokens[index].

        Booleans consume nothing and let the bundle continue. Any other option
        takes the remainder of the token (after an optional "=") or the next
        tokens, and ends the bundle, unless it consumed nothing (a counter).
        """
        token = tokens[index]
        position = 1
        while position < len(token):
            char = token[position]
            position += 1

            if (binding := self._find_short(char)) is None:
                suggestions = difflib.get_close_matches(
                    "-" + char, ["-" + binding.short for binding in self._bindings if binding.short], 5
                )
                self._unknown("-" + char, offset + index + 1, suggestions)

            if isinstance(binding.kind, Boolean):
                binding.scan([], glued=False)
                continue

            equals = token.startswith("=", position)
            glued = position < len(token)
            try:
                if glued:
                    consumed = binding.scan([token[position + equals:], *tokens[index + 1:]])
                else:
                    consumed = binding.scan(tokens[index + 1:], glued=False)
            except CommandException as fault:
                self.trigger(fault.within(f"option -{char}"), input="-" + char, index=offset + index + 1)

            if not consumed:
                if equals:
                    self.trigger(UnexpectedValueError(
                        f"option -{char}: unexpected value {token[position + 1:]!r}",
                        title="unexpected value",
                        code=FaultCode.UNEXPECTED_VALUE,
                        input="-" + char,
                        index=offset + index + 1,
                        hint="remove everything from '=' (for example: -%s)" % char,
                        docs=getdoc(FaultCode.UNEXPECTED_VALUE)
                    ))
                continue
            return index + consumed + (not glued)
        return index + 1

    def _assign(self, candidates):
        """
        Internal: fill positional arguments in index order, then the rest.

        Returns the candidates nobody claimed.
        """
        arguments = sorted(
            (binding for binding in self._bindings if binding.index is not None), key=lambda binding: binding.index
        )
        filled = 0
        for binding, token in zip(arguments, candidates):
            try:
                binding.scan([token])
            except CommandException as fault:
                self.trigger(fault.within(f"argument {binding.index}"), index=binding.index)
            filled += 1

        for binding in arguments[filled:]:
            if binding.required:
                route = " ".join(step.name for step in self.path)
                self.trigger(MissingArgumentError(
                    f"argument {binding.name} is missing",
                    title="missing argument",
                    code=FaultCode.MISSING_ARGUMENT,
                    index=binding.index,
                    hint="add the missing values in order; run '%s --help' to see the expected usage" % route,
                    docs=getdoc(FaultCode.MISSING_ARGUMENT)
                ))

        leftovers = candidates[filled:]
        for binding in self._bindings:
            if isinstance(binding.spec, Rest):
                binding.assign(leftovers)
                return []
        return leftovers

    def _parseargs(self, tokens, *, offset=0):
        """
        Internal: route, apply defaults, scan options, assign positionals.
        """
        if tokens and (child := self._children.get(tokens[0].lower())) is not None:
            return child._parseargs(tokens[1:], offset=offset + 1)

        for binding in self._bindings:
            try:
                binding.reset()
            except CommandException as fault:
                self.trigger(fault.within(binding.name))

        candidates = []
        index = 0
        while index < len(tokens):
            token = tokens[index]
            if token == "--":
                candidates.extend(tokens[index + 1:])
                break
            if token.startswith("--"):
                index = self._parse_long(tokens, index, offset)
            elif token.startswith("-") and len(token) > 1:
                index = self._parse_short(tokens, index, offset)
            else:
                if token:
                    candidates.append(token)
                index += 1

        return Outcome(self, self._assign(candidates))

    def parse(self, tokens=Unset, /):
        """
        Bind tokens to the registered destinations.

        Parameters
        - tokens: Unset (sys.argv[1:]) | str (shell-split) | Iterable[str]

        Returns
        - Outcome(command, leftovers): the active node and the unclaimed
          positional tokens.

        Raises
        - ParseError subclasses on the first invalid token (destinations already
          written are not rolled back), unless this node runs in shell mode, where
          the fault is rendered to stderr and the process exits with status 1.
        """
        return self._parseargs(_tokenize(tokens))

    def __invoke__(self, prompt=Unset):
        """
        Parse prompt and run the action of the selected node.

        Behavior
        - Leftover positional tokens are an UnparsedTokensError.
        - A selected node without action but with children is a
          MissingCommandError; without children nothing runs.
        - Faults raised by the action are surfaced unchanged; any other exception
          is surfaced as DelegatedCommandError.

        Returns
        - The action's return value.
        """
        command, leftovers = self.parse(prompt)
        route = " ".join(step.name for step in command.path)

        if leftovers:
            command.trigger(UnparsedTokensError(
                "unparsed input remains: %s" % " ".join(leftovers),
                title="unparsed input",
                code=FaultCode.UNPARSED_TOKENS,
                leftover=leftovers,
                hint="remove the extra inputs; run '%s --help' to see valid forms" % route,
                docs=getdoc(FaultCode.UNPARSED_TOKENS)
            ))

        if command.action is Unset:
            if command.children:
                command.trigger(MissingCommandError(
                    "missing command for %s" % route,
                    title="missing command",
                    code=FaultCode.MISSING_COMMAND,
                    hint="choose one of: %s" % ", ".join(sorted(command.children)),
                    docs=getdoc(FaultCode.MISSING_COMMAND)
                ))
            return None

        try:
            return command.action()
        except CommandException as fault:
            command.trigger(fault)
        except Exception as exception:
            command.trigger(DelegatedCommandError(
                str(exception) or type(exception).__name__,
                title="delegated error",
                code=FaultCode.DELEGATED_ERROR,
                exception=exception,
                hint="the command %r failed while running" % route,
                docs=getdoc(FaultCode.DELEGATED_ERROR)
            ))


def command(target=Unset, /, *args, **kwargs):
    """
    Create a Parser or return a decorator to build it later.

    Invocation modes
    - Direct:
        parser = command(Serve, name="serve")
    - Decorator on a dataclass (the class name is rebound to the Parser):
        @command(shell=True)
        @dataclass
        class Serve: ...
    - Decorator on a plain function (it becomes the action of a bare node):
        @command()
        def main(): ...

    Parameters
    - target: Unset | dataclass type | dataclass instance | callable
    - *args, **kwargs: forwarded to Parser(...) (parent, name, descr, action, flags).
    """
    @rename("command")
    def wrapper(target, /):
        if dataclasses.is_dataclass(target):
            return Parser(target, *args, **kwargs)
        if callable(target):
            return Parser(Unset, *args, **{"action": target} | kwargs)
        raise TypeError("@command() must be applied to a dataclass or a callable")

    return wrapper(target) if target is not Unset else wrapper


def invoke(object, prompt=Unset, /):
    """
    Convenience runner.

    - An object implementing __invoke__ (a Parser) is invoked with prompt.
    - A dataclass (type or instance) is wrapped into a Parser first.
    Returns whatever the selected action returns.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(prompt)

    if dataclasses.is_dataclass(object):
        return invoke(command(object), prompt)

    target = "argument" if prompt is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method or be a dataclass")


__all__ = (
    "Outcome",
    "Parser",
    "command",
    "invoke",
)
