"""Unit tests for the word-level diff."""
from __future__ import annotations

import unittest

from polycorrect.diff import CachedDiff, DELETE, EQUAL, INSERT, compute_diff, tokenize


def _rebuild(changes, keep):
    return "".join(change.text for change in changes if change.tag in keep)


class TestComputeDiff(unittest.TestCase):
    """compute_diff on typical corrections."""

    def test_no_changes(self):
        changes = compute_diff("Hello world", "Hello world")
        self.assertTrue(changes)
        self.assertTrue(all(change.tag == EQUAL for change in changes))

    def test_insertion(self):
        changes = compute_diff("Hello world", "Hello beautiful world")
        self.assertIn(INSERT, [change.tag for change in changes])
        self.assertNotIn(DELETE, [change.tag for change in changes])

    def test_deletion(self):
        changes = compute_diff("Hello beautiful world", "Hello world")
        self.assertIn(DELETE, [change.tag for change in changes])

    def test_replacement(self):
        """A replaced word shows up as a deletion followed by an insertion."""
        changes = compute_diff("Hello world", "Hello universe")
        tags = [change.tag for change in changes]
        self.assertIn(DELETE, tags)
        self.assertIn(INSERT, tags)
        self.assertLess(tags.index(DELETE), tags.index(INSERT))

    def test_rebuilds_both_sides(self):
        """Equal+delete gives the original, equal+insert gives the correction."""
        original = "Ala ma  kota,\na kot ma ale."
        corrected = "Ala ma kota,\na kot ma Alę."
        changes = compute_diff(original, corrected)
        self.assertEqual(_rebuild(changes, (EQUAL, DELETE)), original)
        self.assertEqual(_rebuild(changes, (EQUAL, INSERT)), corrected)

    def test_empty_inputs(self):
        self.assertEqual(compute_diff("", ""), [])
        changes = compute_diff("", "new text")
        self.assertEqual(_rebuild(changes, (INSERT,)), "new text")

    def test_tokenize_keeps_whitespace(self):
        self.assertEqual(tokenize("a  b\nc"), ["a", "  ", "b", "\n", "c"])


class TestCachedDiff(unittest.TestCase):
    """CachedDiff recomputes only when the inputs change."""

    def test_same_inputs_return_cached_list(self):
        cached = CachedDiff("Hello world", "Hello universe")
        first = cached.get_or_update("Hello world", "Hello universe")
        second = cached.get_or_update("Hello world", "Hello universe")
        self.assertIs(first, second)

    def test_update_on_change(self):
        cached = CachedDiff("Hello world", "Hello universe")
        cached.get_or_update("Hello world", "Hello universe")
        changes = cached.get_or_update("Completely different text", "Completely new text")
        self.assertEqual(cached.original, "Completely different text")
        self.assertEqual(cached.corrected, "Completely new text")
        self.assertEqual(_rebuild(changes, (EQUAL, INSERT)), "Completely new text")

    def test_changes_property_computes_lazily(self):
        cached = CachedDiff("a b", "a c")
        self.assertTrue(any(change.tag == INSERT for change in cached.changes))


if __name__ == "__main__":
    unittest.main()
