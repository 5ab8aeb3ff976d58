r"""
argbind composite scanner: tokens in, typed values out.

Grammar
- Scalars take exactly one token (see argbind.kinds for literal grammars).
- Bracket form: "[" ... "]" for arrays/slices, "{" ... "}" for maps/structs.
  The matching closer is searched across tokens, so ["[1", "2", "3]"] and
  ["[", "1", "2", "3", "]"] are both one bracketed region. A closer may land in the middle
  of a token ("[a]b"); the remainder is then reported as a split.
- Comma form (arrays/slices only): "a,b,c", "a ,b", "a, b" spread over tokens.
- Maps hold key:value entries separated by whitespace or commas:
  "{a:1,b:2}", "{a:1", "b:2}", "{", "a", ":", "1", "}".
- Structs hold one value per dataclass field in declaration order.

Every scanning function returns (consumed, value) where consumed is the
number of whole tokens used. Faults raised here carry no option/argument
identity; the parser adds it with CommandException.within().

    >>> scan(Slice(int), ["[1", "2", "3]", "rest"])
    (3, [1, 2, 3])
    >>> scan(Map(str, str), ["{a:1,b:2}"])
    (1, {'a': '1', 'b': '2'})
"""
import dataclasses
import re

from .faults import *
from .kinds import *
from .utils import *

LIMIT = 32  # maximum bracket nesting depth

_CLOSERS = {"[": "]", "{": "}"}


def _missing():
    return MissingValueError(
        "missing value",
        title="missing value",
        code=FaultCode.MISSING_VALUE,
        hint="pass a value after the option (for example: --name VALUE)",
        docs=getdoc(FaultCode.MISSING_VALUE)
    )


def _unbalanced(kind, /):
    return UnbalancedBracketsError(
        f"invalid {kind.__typename__}: unbalanced brackets",
        title="unbalanced brackets",
        code=FaultCode.UNBALANCED_BRACKETS,
        hint="close every '[' with ']' and every '{' with '}'",
        docs=getdoc(FaultCode.UNBALANCED_BRACKETS)
    )


def _ambiguous(kind, /):
    return AmbiguousSplitError(
        f"invalid {kind.__typename__}: text follows the closing bracket",
        title="ambiguous split",
        code=FaultCode.AMBIGUOUS_SPLIT,
        hint="put a space after the closing bracket",
        docs=getdoc(FaultCode.AMBIGUOUS_SPLIT)
    )


def _opening(kind, token, bracket, /):
    return InvalidLiteralError(
        f"invalid {kind.__typename__}: expected {bracket!r} but got {token!r}",
        title="invalid literal",
        code=FaultCode.INVALID_LITERAL,
        hint=f"wrap the {kind.__typename__} in braces (for example: {bracket}a:1 b:2{_CLOSERS[bracket]})",
        docs=getdoc(FaultCode.INVALID_LITERAL)
    )


def truncate(tokens, /):
    """
    Locate the closer matching the bracket that opens tokens[0].

    Returns (head, tail, split):
    - head: the tokens of the bracketed region, the last one ending with the closer.
    - tail: the tokens after the region.
    - split: True when the closer landed mid-token; tail[0] then holds the rest
      of that token.
    head is None when a closer does not match or no closer is found.
    Raises NestingDepthError past LIMIT levels.
    """
    levels = []
    for index, token in enumerate(tokens):
        for offset, char in enumerate(token):
            if char in _CLOSERS:
                levels.append(_CLOSERS[char])
                if len(levels) > LIMIT:
                    raise NestingDepthError(
                        f"brackets nested deeper than {LIMIT} levels",
                        title="nesting too deep",
                        code=FaultCode.NESTING_TOO_DEEP,
                        hint=f"flatten the value to at most {LIMIT} levels",
                        docs=getdoc(FaultCode.NESTING_TOO_DEEP)
                    )
            elif char in "]}":
                if not levels or levels.pop() != char:
                    return None, list(tokens), False
                if levels:
                    continue
                if offset + 1 == len(token):
                    return list(tokens[:index + 1]), list(tokens[index + 1:]), False
                return (
                    [*tokens[:index], token[:offset + 1]],
                    [token[offset + 1:], *tokens[index + 1:]],
                    True
                )
    return None, list(tokens), False


def _strip(head, /):
    """
    Remove the opening bracket of the first token and the closer of the last
    one; tokens that held nothing else are dropped.
    """
    region = list(head)
    if len(region[0]) == 1:
        del region[0]
    else:
        region[0] = region[0][1:]
    if len(region[-1]) == 1:
        del region[-1]
    else:
        region[-1] = region[-1][:-1]
    return region


def _bracketed(kind, tokens, bracket, /):
    """
    Shared prologue of bracket-only kinds: returns (consumed, region).
    """
    if not tokens or not tokens[0]:
        raise _missing()
    if tokens[0][0] != bracket:
        raise _opening(kind, tokens[0], bracket)
    head, _, split = truncate(tokens)
    if head is None:
        raise _unbalanced(kind)
    if split:
        raise _ambiguous(kind)
    return len(head), _strip(head)


def delegate(capability, tokens, /):
    """
    Hand tokens to a destination implementing __scan__.

    Faults raised by the capability propagate unchanged; any other exception is
    wrapped into DelegatedCommandError. The returned count is validated.
    """
    try:
        consumed = capability.__scan__(list(tokens))
    except CommandException:
        raise
    except Exception as exception:
        raise DelegatedCommandError(
            str(exception) or type(exception).__name__,
            title="delegated error",
            code=FaultCode.DELEGATED_ERROR,
            hint=f"check the value given to {type(capability).__name__}",
            exception=exception,
            docs=getdoc(FaultCode.DELEGATED_ERROR)
        ) from exception
    if not isinstance(consumed, int) or isinstance(consumed, bool) or not 0 <= consumed <= len(tokens):
        raise DelegatedCommandError(
            f"{type(capability).__name__} reported {consumed!r} consumed tokens out of {len(tokens)}",
            title="delegated error",
            code=FaultCode.DELEGATED_ERROR,
            hint=f"{type(capability).__name__}.__scan__ must return a count between 0 and the number of tokens",
            docs=getdoc(FaultCode.DELEGATED_ERROR)
        )
    return consumed


def scan(kind, tokens, /):
    """
    Materialize one value of the given kind from the start of tokens.

    Returns (consumed, value). The token list is never modified.
    """
    tokens = list(tokens)
    match kind:
        case Custom():
            capability = kind.zero()
            return delegate(capability, tokens), capability
        case String():
            if not tokens:
                raise _missing()
            return 1, tokens[0]
        case Boolean() | Integer() | Float():
            if not tokens or not tokens[0]:
                raise _missing()
            return 1, kind.parse(tokens[0])
        case Array() | Slice():
            return _scan_sequence(kind, tokens)
        case Map():
            return _scan_map(kind, tokens)
        case Struct():
            return _scan_struct(kind, tokens)
    raise TypeError("scan() first argument must be a value kind")


def _scan_sequence(kind, tokens):
    if not tokens or not tokens[0]:
        raise _missing()

    comma = not tokens[0].startswith("[")
    if comma:
        region = tokens
    else:
        head, _, split = truncate(tokens)
        if head is None:
            raise _unbalanced(kind)
        if split:
            raise _ambiguous(kind)
        consumed, region = len(head), _strip(head)

    total = len(region)
    values = []
    while True:
        if comma and values:
            # the next value must be introduced by a comma, possibly after empty tokens
            position = next((index for index, token in enumerate(region) if token), len(region))
            if position == len(region) or not region[position].startswith(","):
                break
            del region[:position]
            if region[0] == ",":
                del region[0]
            else:
                region[0] = region[0][1:]

        if not region:
            if not comma or not values:
                break
            chunk = [""]
        elif region[0][:1] in _CLOSERS:
            if comma:
                raise InvalidLiteralError(
                    f"{kind.__typename__} index {len(values)}: nested value {region[0]!r} needs brackets around the {kind.__typename__}",
                    title="invalid literal",
                    code=FaultCode.INVALID_LITERAL,
                    hint="write the whole value in brackets (for example: [[a b] [c]])",
                    docs=getdoc(FaultCode.INVALID_LITERAL)
                )
            chunk, region, split = truncate(region)
            if chunk is None:
                raise _unbalanced(kind.element)
            if split:
                raise _ambiguous(kind.element).within(f"{kind.__typename__} index {len(values)}")
        elif comma and "," in region[0]:
            position = region[0].index(",")
            chunk, region[0] = [region[0][:position]], region[0][position:]
        else:
            chunk = [region.pop(0)]

        try:
            _, value = scan(kind.element, chunk)
        except CommandException as fault:
            raise fault.within(f"{kind.__typename__} index {len(values)}") from None
        values.append(value)

    if comma:
        consumed = total - len(region)

    if isinstance(kind, Array):
        if len(values) != kind.length:
            raise ArityMismatchError(
                f"expected {kind.length} values for {kind.label}, got {len(values)}",
                title="arity mismatch",
                code=FaultCode.ARITY_MISMATCH,
                hint=f"pass exactly {kind.length} values (for example: [{' '.join(['x'] * kind.length)}])",
                docs=getdoc(FaultCode.ARITY_MISMATCH)
            )
        return consumed, tuple(values)
    return consumed, values


def _separator(label, /):
    return MissingSeparatorError(
        f"map key {label}: missing separator",
        title="missing separator",
        code=FaultCode.MISSING_SEPARATOR,
        hint="separate keys from values with ':' (for example: {key:value})",
        docs=getdoc(FaultCode.MISSING_SEPARATOR)
    )


def _scan_map(kind, tokens):
    consumed, region = _bracketed(kind, tokens, "{")

    mapping = {}
    while region:
        token = region[0]
        if token[:1] in _CLOSERS:
            # a bracketed key is usually glued to its ':' so a split is expected here
            chunk, region, _ = truncate(region)
            if chunk is None:
                raise _unbalanced(kind.key)
            label = " ".join(chunk)
            if not region or not region[0].startswith(":"):
                raise _separator(label)
            region[0] = region[0][1:]
            if not region[0]:
                del region[0]
        elif ":" not in token:
            chunk, label = [region.pop(0)], token
            while region and not region[0]:
                del region[0]
            if not region or not region[0].startswith(":"):
                raise _separator(label)
            region[0] = region[0][1:]
            if not region[0]:
                del region[0]
        else:
            position = token.index(":")
            chunk, label = [token[:position]], token[:position]
            # an empty remainder stays behind as the zero value
            region[0] = token[position + 1:]

        try:
            _, key = scan(kind.key, chunk)

            if not region or not region[0]:
                region = region[1:]
                value = kind.value.zero()
            elif region[0][0] in _CLOSERS:
                chunk, region, split = truncate(region)
                if chunk is None:
                    raise _unbalanced(kind.value)
                if split:
                    if not region[0].startswith(","):
                        raise _ambiguous(kind.value)
                    region[0] = region[0][1:]
                    if not region[0]:
                        del region[0]
                _, value = scan(kind.value, chunk)
            else:
                token = region.pop(0)
                if "," in token:
                    token, remainder = token.split(",", 1)
                    if remainder:
                        region.insert(0, remainder)
                value = scan(kind.value, [token])[1] if token else kind.value.zero()
        except CommandException as fault:
            raise fault.within(f"map key {label}") from None

        mapping[key] = value
    return consumed, mapping


def _scan_struct(kind, tokens):
    consumed, region = _bracketed(kind, tokens, "{")

    values = {}
    for name, field in kind.fields:
        while region and not region[0]:
            del region[0]
        if not region:
            break
        if region[0][0] in _CLOSERS:
            chunk, region, split = truncate(region)
            if chunk is None:
                raise _unbalanced(field)
            if split:
                raise _ambiguous(field).within(f"struct field {name}")
        else:
            chunk = [region.pop(0)]
        try:
            _, values[name] = scan(field, chunk)
        except CommandException as fault:
            raise fault.within(f"struct field {name}") from None

    if len(values) < len(kind.fields):
        raise MissingFieldsError(
            f"missing struct fields ({len(values)} of {len(kind.fields)} given)",
            title="missing fields",
            code=FaultCode.MISSING_FIELDS,
            hint="give one value per field: {%s}" % " ".join(name for name, _ in kind.fields),
            docs=getdoc(FaultCode.MISSING_FIELDS)
        )
    if any(region):
        raise TooManyFieldsError(
            f"too many struct fields (expected {len(kind.fields)})",
            title="too many fields",
            code=FaultCode.TOO_MANY_FIELDS,
            hint="give one value per field: {%s}" % " ".join(name for name, _ in kind.fields),
            docs=getdoc(FaultCode.TOO_MANY_FIELDS)
        )
    try:
        return consumed, kind.cls(**values)
    except (TypeError, ValueError) as exception:
        raise InvalidLiteralError(
            f"invalid struct: {exception}",
            title="invalid literal",
            code=FaultCode.INVALID_LITERAL,
            hint=f"check the values given to {kind.cls.__name__}",
            docs=getdoc(FaultCode.INVALID_LITERAL)
        ) from None


def _index(kind, step, message, /):
    return InvalidIndexError(
        f"index {step!r}: {message}",
        title="invalid index",
        code=FaultCode.INVALID_INDEX,
        hint=f"{kind.label} values are addressed as name.KEY (for example: --name.0 or --name.field)",
        docs=getdoc(FaultCode.INVALID_INDEX)
    )


def scan_indexed(kind, current, path, tokens, /, *, glued=True):
    """
    Update one element of a composite value addressed by a dotted path.

    path holds the segments after the option name ("--map.key.0" gives
    ["key", "0"]). With an empty path the whole value is scanned, except that a
    boolean without a glued value becomes True and a capability scans in place.

    Returns (consumed, new_value); current is never modified.
    """
    if not path:
        if isinstance(kind, Boolean) and not glued:
            return 0, True
        if isinstance(kind, Custom):
            return delegate(current, tokens), current
        return scan(kind, tokens)

    step, *path = path
    match kind:
        case Array() | Slice():
            if not re.fullmatch(r"[0-9]+", step) or int(step) >= len(current):
                raise _index(kind, step, f"out of range for {kind.label} of length {len(current)}")
            position = int(step)
            try:
                consumed, value = scan_indexed(kind.element, current[position], path, tokens, glued=glued)
            except CommandException as fault:
                raise fault.within(f"{kind.__typename__} index {position}") from None
            values = list(current)
            values[position] = value
            return consumed, tuple(values) if isinstance(kind, Array) else values
        case Map():
            try:
                _, key = scan(kind.key, [step])
                consumed, value = scan_indexed(
                    kind.value, current[key] if key in current else kind.value.zero(), path, tokens, glued=glued
                )
            except CommandException as fault:
                raise fault.within(f"map key {step}") from None
            return consumed, current | {key: value}
        case Struct():
            for name, field in kind.fields:
                if name.lower() == step.lower():
                    break
            else:
                raise _index(kind, step, f"no such field in {kind.cls.__name__}")
            try:
                consumed, value = scan_indexed(field, getattr(current, name), path, tokens, glued=glued)
            except CommandException as fault:
                raise fault.within(f"struct field {name}") from None
            return consumed, dataclasses.replace(current, **{name: value})
    raise _index(kind, step, f"{kind.label} cannot be indexed")


__all__ = (
    "LIMIT",
    "truncate",
    "delegate",
    "scan",
    "scan_indexed",
)
