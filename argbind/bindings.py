"""
argbind bindings: identity spec + destination + default + isset.

Destinations
- Slot(type, value): a standalone typed cell owned by the caller (the common
  case for imperative registration: parser.option(Slot(int), "n")).
- Attribute(owner, name, kind): a dataclass field, used by bulk registration.
- Any object implementing __scan__ (Count, Append, user classes): wrapped into a
  Slot of kind Custom and scanned in place.

Binding lifecycle
1) construction: the default is validated against the destination kind once; a
   bad default is a ConstructionError, never a parse-time surprise.
2) reset(): at the start of each parse, isset is cleared and a private copy of
   the default (if any) is written to the destination.
3) scan()/assign(): tokens are materialized and written; isset becomes True.
"""
import copy
import shlex

from .arguments import Option, Argument, Rest
from .faults import *
from .kinds import *
from .scanner import scan, scan_indexed
from .utils import *


class Slot[_T](metaclass=SpecType):
    """
    Standalone destination cell.

    The kind is resolved from a Python annotation (or given directly) and the
    initial value is the kind's zero value unless one is passed.

        >>> slot = Slot(list[int])
        >>> slot.value
        []
    """
    __introspectable__ = ("kind",)
    __displayable__ = ("kind", "value")

    def __init__(self, type, /, value=Unset):
        self._kind = resolve(type)
        if value is Unset:
            self._value = self._kind.zero()
        else:
            try:
                self._value = self._kind.coerce(value)
            except (TypeError, ValueError) as exception:
                raise ConstructionError(f"{self.__typename__} value: {exception}") from None

    @property
    def value(self) -> _T:
        return self._value

    def get(self) -> _T:
        return self._value

    def set(self, value, /):
        self._value = value


class Attribute(metaclass=SpecType):
    """
    Destination writing through to an attribute of an owner object.

    An attribute still holding Unset (a field declared with option()/argument()
    and no factory) is initialized to the zero value of its kind.
    """
    __introspectable__ = ("owner", "name", "kind")
    __displayable__ = ("name", "kind")

    def __init__(self, owner, name, kind, /):
        self._owner = owner
        self._name = name
        self._kind = resolve(kind)
        if getattr(owner, name, Unset) is Unset:
            setattr(owner, name, self._kind.zero())

    def get(self):
        return getattr(self._owner, self._name)

    def set(self, value, /):
        setattr(self._owner, self._name, value)


class Binding(metaclass=SpecType):
    """
    Association between one identity spec and one destination.

    Properties
    - spec / kind / default: fixed at construction.
    - short / long / index / name / descr / required: views over the spec.
    - isset: True once the destination was assigned during the current parse.
    """
    __introspectable__ = ("spec", "kind", "default")
    __displayable__ = ("spec", "kind", "isset")

    def __init__(self, spec, target, /):
        if not isinstance(spec, Option | Argument | Rest):
            raise TypeError(f"{type(self).__typename__} 'spec' must be an option, an argument or a rest")

        if not isinstance(target, Slot | Attribute):
            if not callable(getattr(target, "__scan__", None)):
                raise UnsupportedTypeError(
                    f"{type(self).__typename__} destination must be a slot, an attribute or implement __scan__"
                )
            target = Slot(Custom(type(target)), target)

        self._spec = spec
        self._target = target
        self._kind = target._kind
        self._isset = False

        if isinstance(spec, Rest) and self._kind != Slice(String()):
            raise ConstructionError(f"rest {self.name} must be a list of strings, not {self._kind.label}")
        self._default = self._prepare(spec.default)

    def _prepare(self, default, /):
        """
        Validate a declared default against the destination kind.

        - capability destinations keep the raw default, checked through
          __assign__ on a throwaway copy.
        - a string default for a non-string kind is a command-line literal: it is
          split like a shell would and must be consumed entirely.
        - anything else must already have the destination type.
        """
        if default is Unset:
            return Unset

        context = f"{type(self._spec).__typename__} {self.name} default"
        if isinstance(self._kind, Custom):
            if not callable(getattr(self._target.get(), "__assign__", None)):
                raise ConstructionError(f"{context}: {self._kind.label} does not implement __assign__")
            try:
                copy.deepcopy(self._target.get()).__assign__(copy.deepcopy(default))
            except Exception as exception:
                raise ConstructionError(f"{context}: {exception}") from None
            return default

        if isinstance(default, str) and not isinstance(self._kind, String):
            try:
                tokens = shlex.split(default) or [""]
                consumed, value = scan(self._kind, tokens)
            except CommandException as fault:
                raise ConstructionError(f"{context}: {fault.message}") from None
            except ValueError as exception:
                raise ConstructionError(f"{context}: {exception}") from None
            if consumed != len(tokens):
                raise ConstructionError(f"{context}: unexpected tokens {tokens[consumed:]!r}")
            return value

        try:
            return self._kind.coerce(default)
        except (TypeError, ValueError) as exception:
            raise ConstructionError(f"{context}: {exception}") from None

    @property
    def target(self):
        return self._target

    @property
    def value(self):
        return self._target.get()

    @property
    def isset(self):
        return self._isset

    @property
    def short(self):
        return coalesce(getattr(self._spec, "short", Unset), None)

    @property
    def long(self):
        return coalesce(getattr(self._spec, "long", Unset), None)

    @property
    def index(self):
        return coalesce(getattr(self._spec, "index", Unset), None)

    @property
    def name(self):
        if self._spec.name:
            return self._spec.name
        match self._spec:
            case Option():
                return self.long or self.short
            case Argument():
                return str(self.index)
        return "rest"

    @property
    def descr(self):
        return self._spec.descr

    @property
    def required(self):
        return isinstance(self._spec, Argument) and self._default is Unset

    def reset(self):
        """
        Clear isset and write a private copy of the default, if any.
        """
        self._isset = False
        if self._default is Unset:
            return
        if not isinstance(self._kind, Custom):
            return self._target.set(copy.deepcopy(self._default))
        try:
            self._target.get().__assign__(copy.deepcopy(self._default))
        except CommandException:
            raise
        except Exception as exception:
            raise DelegatedCommandError(
                f"default: {exception}",
                title="delegated error",
                code=FaultCode.DELEGATED_ERROR,
                hint=f"check the default declared for {self.name}",
                exception=exception,
                docs=getdoc(FaultCode.DELEGATED_ERROR)
            ) from exception

    def scan(self, tokens, path=(), /, *, glued=True):
        """
        Materialize tokens into the destination (optionally one element of it,
        addressed by path) and return the number of tokens consumed.
        """
        consumed, value = scan_indexed(self._kind, self._target.get(), list(path), tokens, glued=glued)
        self._target.set(value)
        self._isset = True
        return consumed

    def assign(self, values, /):
        """
        Write leftover tokens to a rest destination.
        """
        self._target.set(list(values))
        self._isset = True


__all__ = (
    "Slot",
    "Attribute",
    "Binding",
)
