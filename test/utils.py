"""
Tests for the internal utilities.

This module verifies the guarantees the other layers rely on:
- `Unset` is a falsy, final singleton usable in PEP 604 unions.
- `coalesce` only replaces `Unset`.
- `rename` renames in place, directly or as a decorator.
- `mirror` exposes detached copies of container state.
- `typename` derives hyphenated labels from class names.
"""
import unittest
from unittest import TestCase

from argtree.utils import *


class UnsetTest(TestCase):
    """
    Test suite for the `UnsetType` singleton.
    """

    def testSingleton(self) -> None:
        """
        The constructor returns the module-level instance on every call.
        """
        self.assertIs(UnsetType(), Unset)

    def testFalsyButDistinct(self) -> None:
        """
        Unset is falsy, yet neither None nor False.
        """
        self.assertFalse(Unset)
        self.assertIsNot(Unset, None)
        self.assertNotEqual(Unset, False)

    def testRepr(self) -> None:
        self.assertEqual(repr(Unset), "Unset")

    def testUnionWithTypes(self) -> None:
        """
        `str | Unset` builds a union usable with isinstance.
        """
        self.assertIsInstance("x", str | Unset)
        self.assertIsInstance(Unset, str | Unset)
        self.assertNotIsInstance(3, str | Unset)

    def testFinalClass(self) -> None:
        with self.assertRaises(TypeError):
            type("Derived", (UnsetType,), {})


class HelpersTest(TestCase):
    """
    Test suite for coalesce, rename, mirror and typename.
    """

    def testCoalescePreservesFalsyValues(self) -> None:
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(Unset))
        for value in (None, 0, "", []):
            self.assertIs(coalesce(value, "fallback"), value)

    def testRenameDirectForm(self) -> None:
        def function():
            pass

        self.assertIs(rename(function, "renamed"), function)
        self.assertEqual(function.__name__, "renamed")
        self.assertEqual(function.__qualname__, "renamed")

    def testRenameDecoratorForm(self) -> None:
        @rename("renamed")
        def function():
            pass

        self.assertEqual(function.__name__, "renamed")

    def testRenameValidation(self) -> None:
        with self.assertRaises(TypeError):
            rename(3, "name")
        with self.assertRaises(TypeError):
            rename(print, 3)
        with self.assertRaises(TypeError):
            rename()

    def testMirrorReturnsDetachedCopies(self) -> None:
        class Holder:
            items = mirror("items")
            mapping = mirror("mapping")

            def __init__(self):
                self._items = [1, 2]
                self._mapping = {"a": 1}

        holder = Holder()
        self.assertEqual(holder.items, (1, 2))
        holder.mapping["b"] = 2
        self.assertEqual(holder._mapping, {"a": 1})
        with self.assertRaises(AttributeError):
            holder.items = ()

    def testTypename(self) -> None:
        self.assertEqual(typename("OptionTable"), "option-table")
        self.assertEqual(typename("Flag"), "flag")
        self.assertEqual(typename("FlagRegistry"), "flag-registry")


if __name__ == "__main__":
    unittest.main()
