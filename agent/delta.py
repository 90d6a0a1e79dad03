"""
goal: computes the text difference between two successive content snapshots and attaches it to the event
that caused it (the pending keystroke/paste/cut, or a generic edit when nothing was pending).

two derivations:
- fast path: when one snapshot is a prefix of the other the edit happened at the end of the text, so the
  removed text is simply the last abs(delta) characters of the previous snapshot
- full diff: anything else (edits in the middle, several edit boundaries, replaced selections) goes through
  difflib.SequenceMatcher, and the inserted/deleted spans are collected into "added" and "removed" text.
  a single unchanged character between two replaced spans counts as part of the replacement on both sides;
  nothing else that stayed in place ever lands in "removed"

scoring only cares about added/removed text, not which derivation produced it.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

from dataclasses import dataclass, replace  # for the diff result and probe copies
from difflib import SequenceMatcher  # real text diff for the non-trivial cases
from typing import Any  # type hint for snapshot arguments that might be garbage

from agent.events import EMPTY_CONTEXT, EditEvent, EventKind, PendingKeyContext

# equal runs shorter than this between two replaced spans are folded into the replacement
MIN_EQUAL_RUN = 2


class MalformedSnapshotError(ValueError):
    """raised when a snapshot is missing or not text."""


@dataclass(frozen=True)
class DeltaResult:
    delta: int  # len(current) - len(previous)
    added: str  # text present in current but not in previous
    removed: str  # text present in previous but not in current

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


def _check(snapshot: Any, label: str) -> str:
    if not isinstance(snapshot, str):
        raise MalformedSnapshotError(f"{label} snapshot must be text, got {type(snapshot).__name__}")
    return snapshot


def _tail_edit(previous: str, current: str) -> DeltaResult:
    delta = len(current) - len(previous)
    if delta < 0:
        return DeltaResult(delta=delta, added="", removed=previous[-abs(delta):])
    if delta > 0:
        return DeltaResult(delta=delta, added=current[len(previous):], removed="")
    # slicing with -0 would hand back the whole string
    return DeltaResult(delta=0, added="", removed="")


def _full_diff(previous: str, current: str) -> DeltaResult:
    matcher = SequenceMatcher(None, previous, current, autojunk=False)
    opcodes = matcher.get_opcodes()

    added_parts: list[str] = []
    removed_parts: list[str] = []
    for idx, (tag, i1, i2, j1, j2) in enumerate(opcodes):
        if tag == "equal":
            # a one-character coincidence inside a rewritten selection belongs to the rewrite. only folded
            # between two replaced spans, so pure deletions or insertions never pick up untouched text
            between_rewrites = (
                0 < idx < len(opcodes) - 1
                and opcodes[idx - 1][0] == "replace"
                and opcodes[idx + 1][0] == "replace"
            )
            if between_rewrites and (i2 - i1) < MIN_EQUAL_RUN:
                removed_parts.append(previous[i1:i2])
                added_parts.append(current[j1:j2])
            continue
        if tag in ("delete", "replace"):
            removed_parts.append(previous[i1:i2])
        if tag in ("insert", "replace"):
            added_parts.append(current[j1:j2])

    return DeltaResult(
        delta=len(current) - len(previous),
        added="".join(p for p in added_parts if p),
        removed="".join(p for p in removed_parts if p),
    )


class DeltaAnalyzer:
    """stateless, so one instance can serve every session."""

    def diff(self, previous: Any, current: Any) -> DeltaResult:
        prev = _check(previous, "previous")
        cur = _check(current, "current")
        if prev == cur:
            return DeltaResult(delta=0, added="", removed="")
        if cur.startswith(prev) or prev.startswith(cur):
            return _tail_edit(prev, cur)  # single caret-local edit at the end
        return _full_diff(prev, cur)

    def analyze(
        self,
        previous: Any,
        current: Any,
        pending: PendingKeyContext = EMPTY_CONTEXT,
        fallback: EditEvent | None = None,
    ) -> EditEvent:
        """
        attach the measured change to the pending event, or to ``fallback`` (a generic edit) when nothing is
        pending. returns the populated event; the inputs are left untouched.
        """
        event = pending.event if not pending.is_empty else fallback
        if event is None:
            raise ValueError("analyze() needs a pending event or a fallback event")

        result = self.diff(previous, current)
        delta = result.delta

        if event.kind is EventKind.KEYSTROKE:
            if delta < 0:
                return event.with_delta(delta, result.removed)  # what the deleting key removed
            if delta == 0:
                return event.with_delta(0, "")
            return event.with_delta(delta, None)

        if event.kind is EventKind.CUT:
            if delta == 0:
                return event.with_delta(0, "")
            return event.with_delta(delta, result.removed or event.snippet or "")

        if event.kind is EventKind.PASTE:
            # clipboard text from classification time is the snippet, not anything derived here
            return event.with_delta(delta, event.snippet if event.snippet is not None else "")

        populated = event.with_delta(delta, None)
        if populated.probe and result.changed:
            # a probe that found a change is an ordinary generic edit
            populated = replace(populated, probe=False)
        return populated
