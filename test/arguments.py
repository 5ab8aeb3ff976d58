# python
"""
Arguments module behavioral tests.

Scope
- Validate identity specs (Option, Argument, Rest): construction, normalization, rejection.
- Validate __replace__ used by bulk registration to fill derived names and indices.
- Validate dataclass field helpers (option/argument/rest): metadata and defaults.

Conventions
- Test method names follow CamelCase per project convention.
- Value errors surface as ConstructionError, wrongly typed parameters as TypeError.
"""

from __future__ import annotations

import dataclasses
import unittest
from unittest import TestCase

from argbind import Argument, ConstructionError, Option, Rest, argument, option, rest
from argbind.arguments import METADATA
from argbind.utils import Unset


class TestOption(TestCase):
    """Named specs."""

    def testShortAndLong(self):
        spec = Option("v", "Verbose")
        self.assertEqual(spec.short, "v")
        self.assertEqual(spec.long, "verbose")

    def testUnicodeNames(self):
        self.assertEqual(Option("á").short, "á")
        self.assertEqual(Option(long="n-A_më").long, "n-a_më")

    def testEmptyLongDisablesIt(self):
        self.assertIsNone(Option("v", "").long)
        self.assertIsNone(Option("v", None).long)

    def testLongStaysUnsetWhenOmitted(self):
        self.assertIs(Option("v").long, Unset)

    def testShortMustBeOneCharacter(self):
        with self.assertRaises(ConstructionError):
            Option("vv")
        with self.assertRaises(ConstructionError):
            Option("")

    def testNamesMustBeValid(self):
        for short, long in (("-", Unset), (" ", Unset), (Unset, "-x"), (Unset, "a b"), (Unset, "a=b")):
            with self.subTest(short=short, long=long):
                with self.assertRaises(ConstructionError):
                    Option(short, long)

    def testWrongTypesRejected(self):
        with self.assertRaises(TypeError):
            Option(5)
        with self.assertRaises(TypeError):
            Option(long=5)
        with self.assertRaises(TypeError):
            Option("v", name=5)

    def testDescrIsStripped(self):
        self.assertEqual(Option("v", descr="  be loud ").descr, "be loud")
        self.assertIsNone(Option("v").descr)
        with self.assertRaises(ConstructionError):
            Option("v", descr="   ")

    def testDefaultIsKeptVerbatim(self):
        self.assertEqual(Option("n", default="[1 2]").default, "[1 2]")
        self.assertIs(Option("n").default, Unset)

    def testReplace(self):
        spec = Option("v", descr="loud").__replace__(long="verbose", name="verbosity")
        self.assertEqual((spec.short, spec.long, spec.name, spec.descr), ("v", "verbose", "verbosity", "loud"))

    def testRepr(self):
        self.assertEqual(
            repr(Option("v", "verbose")),
            "option(short='v', long='verbose', name=Unset, default=Unset, descr=None)"
        )


class TestArgument(TestCase):
    """Positional specs."""

    def testIndexDefaultsToUnset(self):
        self.assertIs(Argument().index, Unset)
        self.assertEqual(Argument(2).index, 2)

    def testNegativeIndexRejected(self):
        with self.assertRaises(ConstructionError):
            Argument(-1)

    def testIndexMustBeAnInteger(self):
        for index in (True, "0", 1.0):
            with self.subTest(index=index):
                with self.assertRaises(TypeError):
                    Argument(index)

    def testReplaceKeepsFields(self):
        spec = Argument(name="src", default="a.txt").__replace__(index=2)
        self.assertEqual((spec.index, spec.name, spec.default), (2, "src", "a.txt"))


class TestRest(TestCase):
    """Catch-all spec."""

    def testHasNoDefault(self):
        self.assertIs(Rest().default, Unset)

    def testNameValidated(self):
        self.assertEqual(Rest(name="files").name, "files")
        with self.assertRaises(ConstructionError):
            Rest(name="-files")


class TestFieldHelpers(TestCase):
    """dataclasses.field wrappers."""

    def testOptionField(self):
        field = option("f", default=3)
        spec = field.metadata[METADATA]
        self.assertIsInstance(spec, Option)
        self.assertEqual((spec.short, spec.default), ("f", 3))
        self.assertIs(field.default, Unset)

    def testFactory(self):
        field = option("f", factory=list)
        self.assertIs(field.default_factory, list)
        self.assertIs(field.default, dataclasses.MISSING)

    def testFactoryMustBeCallable(self):
        with self.assertRaises(TypeError):
            argument(factory=5)

    def testArgumentField(self):
        spec = argument(1, name="dst").metadata[METADATA]
        self.assertIsInstance(spec, Argument)
        self.assertEqual((spec.index, spec.name), (1, "dst"))

    def testRestField(self):
        field = rest(name="files")
        self.assertIsInstance(field.metadata[METADATA], Rest)
        self.assertIs(field.default_factory, list)

    def testInvalidSpecFailsAtDeclaration(self):
        with self.assertRaises(ConstructionError):
            option("xy")


if __name__ == "__main__":
    unittest.main()
