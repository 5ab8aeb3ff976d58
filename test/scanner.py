# python
"""
Scanner module behavioral tests.

Scope
- Validate bracket matching (truncate) including mid-token closers and depth limits.
- Validate sequence scanning in bracket form and comma form, flat and nested.
- Validate map and struct scanning, including struct keys and composite fields.
- Validate fault messages and their nested context prefixes.
- Validate indexed updates (--name.key forms) and delegation to capabilities.

Conventions
- Test method names follow CamelCase per project convention.
- Token lists are written exactly as a shell would deliver them.
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass, field
from unittest import TestCase

from argbind import (
    AmbiguousSplitError,
    Array,
    ArityMismatchError,
    Boolean,
    CommandException,
    Custom,
    DelegatedCommandError,
    Float,
    Integer,
    InvalidIndexError,
    InvalidLiteralError,
    LIMIT,
    Map,
    MissingFieldsError,
    MissingSeparatorError,
    MissingValueError,
    NestingDepthError,
    Slice,
    String,
    Struct,
    TooManyFieldsError,
    UnbalancedBracketsError,
    delegate,
    scan,
    scan_indexed,
    truncate,
)


@dataclass
class Inner:
    value: float = 0.0


@dataclass
class Record:
    flag: bool = False
    inner: Inner = field(default_factory=Inner)


@dataclass(frozen=True)
class MapKey:
    number: float
    flag: bool


@dataclass
class Composite:
    numbers: list[int]
    table: dict[int, int]


@dataclass
class Positive:
    amount: int

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError("amount must be positive")


class Fraction:
    """Reads "1/2" or "1", "/", "2"."""

    def __init__(self):
        self.num = self.div = 0.0

    def __scan__(self, tokens):
        if len(tokens) >= 3 and tokens[1] == "/":
            num, div, consumed = tokens[0], tokens[2], 3
        elif tokens and "/" in tokens[0]:
            (num, _, div), consumed = tokens[0].partition("/"), 1
        else:
            raise ValueError("missing fraction")
        self.num, self.div = float(num), float(div)
        return consumed


class Greedy:
    def __scan__(self, tokens):
        return len(tokens) + 1


class TestTruncate(TestCase):
    """Bracket matching across tokens."""

    def testClosesAtTokenEnd(self):
        self.assertEqual(truncate(["[a", "b]", "c"]), (["[a", "b]"], ["c"], False))

    def testClosesMidToken(self):
        self.assertEqual(truncate(["[a]b"]), (["[a]"], ["b"], True))

    def testNestedBrackets(self):
        self.assertEqual(truncate(["[[a]", "{b}]", "c"]), (["[[a]", "{b}]"], ["c"], False))

    def testMismatchedCloser(self):
        head, tail, split = truncate(["[a}"])
        self.assertIsNone(head)
        self.assertEqual(tail, ["[a}"])
        self.assertFalse(split)

    def testUnclosed(self):
        self.assertIsNone(truncate(["[a", "b"])[0])

    def testDepthLimit(self):
        self.assertEqual(truncate(["[" * LIMIT + "]" * LIMIT])[0], ["[" * LIMIT + "]" * LIMIT])
        with self.assertRaises(NestingDepthError):
            truncate(["[" * (LIMIT + 1) + "]" * (LIMIT + 1)])


class TestScalars(TestCase):
    """One token per scalar."""

    def testString(self):
        self.assertEqual(scan(String(), ["val", "rest"]), (1, "val"))
        self.assertEqual(scan(String(), [""]), (1, ""))

    def testMissingValue(self):
        for kind in (String(), Integer(), Boolean(), Float()):
            with self.subTest(kind=kind):
                with self.assertRaises(MissingValueError):
                    scan(kind, [])

    def testEmptyTokenIsMissingForNumbers(self):
        with self.assertRaises(MissingValueError):
            scan(Integer(), [""])

    def testTokensAreNotModified(self):
        tokens = ["[1", "2]"]
        scan(Slice(int), tokens)
        self.assertEqual(tokens, ["[1", "2]"])


class TestSequences(TestCase):
    """Arrays and slices in bracket and comma forms."""

    def testBracketForms(self):
        for tokens, consumed, expected in (
                (["[foo", "bar]"], 2, ["foo", "bar"]),
                (["[foo", "", "]"], 3, ["foo", ""]),
                (["[", "foo", "bar", "]"], 4, ["foo", "bar"]),
                (["[foo bar]"], 1, ["foo bar"]),
                (["[", "foo bar", "]"], 3, ["foo bar"]),
                (["[]"], 1, []),
                (["[foo]", "bar"], 1, ["foo"]),
        ):
            with self.subTest(tokens=tokens):
                self.assertEqual(scan(Slice(str), tokens), (consumed, expected))

    def testCommaForms(self):
        for tokens, consumed, expected in (
                (["foo,bar"], 1, ["foo", "bar"]),
                (["foo,,"], 1, ["foo", "", ""]),
                (["foo", ",", "bar"], 3, ["foo", "bar"]),
                (["foo,", "bar"], 2, ["foo", "bar"]),
                (["foo", ",bar"], 2, ["foo", "bar"]),
                (["foo bar,zim"], 1, ["foo bar", "zim"]),
                (["foo", "rest"], 1, ["foo"]),
        ):
            with self.subTest(tokens=tokens):
                self.assertEqual(scan(Slice(str), tokens), (consumed, expected))

    def testNestedSlices(self):
        for tokens, expected in (
                (["foo,bar,zim"], [["foo"], ["bar"], ["zim"]]),
                (["[foo", "bar", "zim]"], [["foo"], ["bar"], ["zim"]]),
                (["[[foo", "bar", "zim]]"], [["foo", "bar", "zim"]]),
                (["[[foo]", "[bar zim]]"], [["foo"], ["bar zim"]]),
        ):
            with self.subTest(tokens=tokens):
                self.assertEqual(scan(Slice(list[str]), tokens), (len(tokens), expected))

    def testTokenBoundariesSeparateElements(self):
        self.assertEqual(scan(Slice(str), ["[a", "b]"])[1], scan(Slice(str), ["[", "a", "b", "]"])[1])
        self.assertEqual(scan(Slice(str), ["[a b]"])[1], ["a b"])

    def testTypedElements(self):
        self.assertEqual(scan(Slice(int), ["[1", "2", "3]", "4"]), (3, [1, 2, 3]))
        self.assertEqual(scan(Slice(float), ["1.5,2"]), (1, [1.5, 2.0]))

    def testArray(self):
        self.assertEqual(scan(Array(int, 3), ["[1", "2", "3]"]), (3, (1, 2, 3)))
        self.assertEqual(scan(Array(int, 2), ["1,2"]), (1, (1, 2)))

    def testArrayArity(self):
        with self.assertRaises(ArityMismatchError) as cm:
            scan(Array(int, 3), ["[1]"])
        self.assertEqual(cm.exception.message, "expected 3 values for [3]int, got 1")

    def testElementFaultCarriesIndex(self):
        with self.assertRaises(InvalidLiteralError) as cm:
            scan(Array(int, 3), ["[1", "2", "s]"])
        self.assertEqual(cm.exception.message, "array index 2: invalid integer 's'")
        with self.assertRaises(InvalidLiteralError) as cm:
            scan(Slice(int), ["5,s"])
        self.assertEqual(cm.exception.message, "slice index 1: invalid integer 's'")

    def testUnbalanced(self):
        with self.assertRaises(UnbalancedBracketsError) as cm:
            scan(Array(int, 3), ["[1"])
        self.assertEqual(cm.exception.message, "invalid array: unbalanced brackets")
        with self.assertRaises(UnbalancedBracketsError) as cm:
            scan(Slice(str), ["[s"])
        self.assertEqual(cm.exception.message, "invalid slice: unbalanced brackets")

    def testTextAfterCloserIsAmbiguous(self):
        with self.assertRaises(AmbiguousSplitError):
            scan(Slice(str), ["[a]b"])

    def testNestedValueInCommaFormNeedsBrackets(self):
        with self.assertRaises(InvalidLiteralError):
            scan(Slice(list[int]), ["1,[2]"])

    def testEmptyTokenIsMissing(self):
        with self.assertRaises(MissingValueError):
            scan(Slice(str), [""])

    def testDepthLimit(self):
        with self.assertRaises(NestingDepthError):
            scan(Slice(str), ["[" * (LIMIT + 1) + "]" * (LIMIT + 1)])


class TestMaps(TestCase):
    """Brace-delimited key:value entries."""

    def testForms(self):
        for tokens, consumed, expected in (
                (["{foo:2 bar:3}"], 1, {"foo": "2 bar:3"}),
                (["{foo:2,bar:3}"], 1, {"foo": "2", "bar": "3"}),
                (["{foo:2", "bar:3}"], 2, {"foo": "2", "bar": "3"}),
                (["{", "foo", ":", "2", "", ":", "", "}"], 8, {"foo": "2", "": ""}),
                (["{}"], 1, {}),
                (["{a:}"], 1, {"a": ""}),
                (["{a:", "b:1}"], 2, {"a": "", "b": "1"}),
        ):
            with self.subTest(tokens=tokens):
                self.assertEqual(scan(Map(str, str), tokens), (consumed, expected))

    def testTypedEntries(self):
        self.assertEqual(scan(Map(int, float), ["{1:2.5", "3:4}"]), (2, {1: 2.5, 3: 4.0}))

    def testEmptyValueIsZeroNotNextEntry(self):
        self.assertEqual(scan(Map(str, int), ["{a:", "b:1}"]), (2, {"a": 0, "b": 1}))
        self.assertEqual(scan(Map(str, int), ["{a:,b:1}"]), (1, {"a": 0, "b": 1}))

    def testCompositeValues(self):
        self.assertEqual(
            scan(Map(str, list[int]), ["{a:[1", "2]", "b:[3]}"]),
            (3, {"a": [1, 2], "b": [3]})
        )

    def testStructKeys(self):
        tokens = ["{{5.0", "true}:", "[foo", "bar]", "{6.0", "false}:", "[zim]}"]
        self.assertEqual(scan(Map(MapKey, list[str]), tokens), (7, {
            MapKey(5.0, True): ["foo", "bar"],
            MapKey(6.0, False): ["zim"],
        }))

    def testUnbalanced(self):
        with self.assertRaises(UnbalancedBracketsError) as cm:
            scan(Map(str, str), ["{foo:2"])
        self.assertEqual(cm.exception.message, "invalid map: unbalanced brackets")

    def testMissingSeparator(self):
        with self.assertRaises(MissingSeparatorError) as cm:
            scan(Map(str, str), ["{foo", "2}"])
        self.assertEqual(cm.exception.message, "map key foo: missing separator")

    def testEntryFaultsCarryKey(self):
        with self.assertRaises(InvalidLiteralError) as cm:
            scan(Map(int, int), ["{s:5}"])
        self.assertEqual(cm.exception.message, "map key s: invalid integer 's'")
        with self.assertRaises(InvalidLiteralError) as cm:
            scan(Map(int, int), ["{5:s}"])
        self.assertEqual(cm.exception.message, "map key 5: invalid integer 's'")

    def testRequiresBraces(self):
        with self.assertRaises(InvalidLiteralError):
            scan(Map(str, str), ["foo:2"])


class TestStructs(TestCase):
    """One value per dataclass field, in declaration order."""

    def testNested(self):
        self.assertEqual(scan(Struct(Record), ["{true", "{5.0}}"]), (2, Record(True, Inner(5.0))))

    def testCompositeFields(self):
        self.assertEqual(
            scan(Struct(Composite), ["{[5", "6]", "{7:8", "9:10}}"]),
            (4, Composite([5, 6], {7: 8, 9: 10}))
        )

    def testUnbalanced(self):
        with self.assertRaises(UnbalancedBracketsError) as cm:
            scan(Struct(Record), ["{true"])
        self.assertEqual(cm.exception.message, "invalid struct: unbalanced brackets")

    def testMissingFields(self):
        with self.assertRaises(MissingFieldsError) as cm:
            scan(Struct(Record), ["{true}"])
        self.assertEqual(cm.exception.message, "missing struct fields (1 of 2 given)")

    def testTooManyFields(self):
        with self.assertRaises(TooManyFieldsError):
            scan(Struct(Record), ["{true", "{1}", "extra}"])

    def testFieldFaultsCarryPath(self):
        with self.assertRaises(InvalidLiteralError) as cm:
            scan(Struct(Record), ["{5}"])
        self.assertEqual(cm.exception.message, "struct field flag: invalid boolean '5'")
        with self.assertRaises(InvalidLiteralError) as cm:
            scan(Struct(Record), ["{true", "{x}}"])
        self.assertEqual(cm.exception.message, "struct field inner: struct field value: invalid number 'x'")

    def testConstructorFailureIsInvalidLiteral(self):
        with self.assertRaises(InvalidLiteralError):
            scan(Struct(Positive), ["{-1}"])


class TestScanIndexed(TestCase):
    """Dotted-path updates of one element."""

    def testArrayElement(self):
        self.assertEqual(scan_indexed(Array(int, 3), (0, 0, 0), ["1"], ["2"]), (1, (0, 2, 0)))

    def testSliceOutOfRange(self):
        with self.assertRaises(InvalidIndexError):
            scan_indexed(Slice(int), [1], ["3"], ["2"])
        with self.assertRaises(InvalidIndexError):
            scan_indexed(Slice(int), [1], ["x"], ["2"])

    def testMapEntry(self):
        current = {"bar": "1"}
        self.assertEqual(scan_indexed(Map(str, str), current, ["foo"], ["2"]), (1, {"bar": "1", "foo": "2"}))
        self.assertEqual(current, {"bar": "1"})

    def testMapKeyFault(self):
        with self.assertRaises(InvalidLiteralError) as cm:
            scan_indexed(Map(int, int), {}, ["s"], ["6"])
        self.assertEqual(cm.exception.message, "map key s: invalid integer 's'")

    def testStructField(self):
        current = Record()
        self.assertEqual(
            scan_indexed(Struct(Record), current, ["FLAG"], [], glued=False),
            (0, Record(True, Inner(0.0)))
        )
        self.assertEqual(
            scan_indexed(Struct(Record), current, ["inner", "value"], ["5.0"]),
            (1, Record(False, Inner(5.0)))
        )
        self.assertEqual(current, Record())

    def testUnknownStructField(self):
        with self.assertRaises(InvalidIndexError):
            scan_indexed(Struct(Record), Record(), ["nope"], ["1"])

    def testScalarCannotBeIndexed(self):
        with self.assertRaises(InvalidIndexError):
            scan_indexed(Integer(), 0, ["0"], ["1"])

    def testBooleanWithoutGluedValue(self):
        self.assertEqual(scan_indexed(Boolean(), False, [], ["false"], glued=False), (0, True))
        self.assertEqual(scan_indexed(Boolean(), True, [], ["false"]), (1, False))


class TestDelegation(TestCase):
    """Capabilities owning their grammar."""

    def testCustomKind(self):
        consumed, fraction = scan(Custom(Fraction), ["1", "/", "2", "rest"])
        self.assertEqual(consumed, 3)
        self.assertEqual((fraction.num, fraction.div), (1.0, 2.0))
        consumed, fraction = scan(Custom(Fraction), ["3/4"])
        self.assertEqual(consumed, 1)
        self.assertEqual((fraction.num, fraction.div), (3.0, 4.0))

    def testForeignExceptionIsWrapped(self):
        with self.assertRaises(DelegatedCommandError) as cm:
            scan(Custom(Fraction), ["x"])
        self.assertEqual(cm.exception.message, "missing fraction")
        self.assertIsInstance(cm.exception.options["exception"], ValueError)

    def testCommandExceptionPropagates(self):
        class Strict:
            def __scan__(self, tokens):
                raise MissingValueError("missing value")

        with self.assertRaises(MissingValueError):
            delegate(Strict(), [])

    def testConsumedCountIsValidated(self):
        with self.assertRaises(DelegatedCommandError):
            delegate(Greedy(), ["a"])

    def testDelegatedErrorIsACommandException(self):
        self.assertTrue(issubclass(DelegatedCommandError, CommandException))


if __name__ == "__main__":
    unittest.main()
