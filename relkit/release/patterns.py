"""Capture-group extraction used by every text-parsing step.

Matching is case-insensitive and ``.`` matches newlines, so a single pattern
can capture a multi-line changelog block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

__all__ = ["Span", "capture_spans", "splice"]

_FLAGS = re.IGNORECASE | re.DOTALL


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open ``[start, end)`` range over the searched text."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def slice(self, text: str) -> str:
        return text[self.start : self.end]


@lru_cache(maxsize=32)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, _FLAGS)


def capture_spans(text: str, pattern: str) -> tuple[Span, ...] | None:
    """Return the capture-group spans of the first match of ``pattern``.

    The whole-match span is not included. Returns None when nothing matches,
    when the pattern has no capturing groups, or when a group did not take
    part in the match; callers decide whether that is fatal.
    """
    compiled = _compile(pattern)
    if compiled.groups == 0:
        return None

    m = compiled.search(text)
    if m is None:
        return None

    spans: list[Span] = []
    for index in range(1, compiled.groups + 1):
        start, end = m.span(index)
        if start < 0:
            return None
        spans.append(Span(start, end))
    return tuple(spans)


def splice(text: str, at: int, insert: str) -> str:
    """Return ``text`` with ``insert`` placed at offset ``at``."""
    return text[:at] + insert + text[at:]
