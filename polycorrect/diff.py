"""Word-level diff between the original text and a correction.

Used by the GUI to highlight what a provider changed: inserted words are
shown in green and removed words in red.
"""
from __future__ import annotations

import difflib
import re
from dataclasses import dataclass
from typing import List, Optional

EQUAL = "equal"
INSERT = "insert"
DELETE = "delete"

_TOKEN_PATTERN = re.compile(r"\s+|\S+")


@dataclass(frozen=True)
class DiffChange:
    tag: str
    text: str


def tokenize(text: str) -> List[str]:
    """Split into alternating word and whitespace tokens, losslessly."""
    return _TOKEN_PATTERN.findall(text)


def compute_diff(original: str, corrected: str) -> List[DiffChange]:
    """Return the changes turning ``original`` into ``corrected``.

    Joining the text of all ``equal`` and ``delete`` changes rebuilds the
    original; joining ``equal`` and ``insert`` rebuilds the correction.
    """
    before = tokenize(original)
    after = tokenize(corrected)
    matcher = difflib.SequenceMatcher(None, before, after, autojunk=False)

    changes: List[DiffChange] = []
    for opcode, i1, i2, j1, j2 in matcher.get_opcodes():
        if opcode == "equal":
            changes.append(DiffChange(EQUAL, "".join(before[i1:i2])))
            continue
        if i2 > i1:
            changes.append(DiffChange(DELETE, "".join(before[i1:i2])))
        if j2 > j1:
            changes.append(DiffChange(INSERT, "".join(after[j1:j2])))
    return changes


class CachedDiff:
    """Keeps the last diff and recomputes only when either text changes."""

    def __init__(self, original: str = "", corrected: str = ""):
        self.original = original
        self.corrected = corrected
        self._changes: Optional[List[DiffChange]] = None

    def get_or_update(self, original: str, corrected: str) -> List[DiffChange]:
        if self._changes is None or original != self.original or corrected != self.corrected:
            self.original = original
            self.corrected = corrected
            self._changes = compute_diff(original, corrected)
        return self._changes

    @property
    def changes(self) -> List[DiffChange]:
        if self._changes is None:
            self._changes = compute_diff(self.original, self.corrected)
        return self._changes
