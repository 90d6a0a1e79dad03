# ruff: noqa: E501
"""
goal: inspect a finished batch of edit events and count the ones whose text most likely came from outside the
editor. returns a SuspicionSummary with the flagged events, how many there were, and how many events the batch held.

what this engine does
the editor logs every keystroke, paste, cut and content change. most of that is ordinary typing. two patterns are
not: a single key press that changes the length of the text by more than one character, and a paste of text that
the user never cut or deleted in this session. the engine walks the batch in order and flags both.

how it decides
1. it keeps a set of "known fragments": text the user demonstrably removed in this session, kept exactly as it was
   removed, either with a cut or with a deleting keystroke (backspace/delete, or any keystroke whose delta went
   negative and left a snippet). only the paste side is trimmed
2. keystroke with abs(delta) > keystroke_max_delta (1 by default): flagged. one physical key press should not
   change the length by more than one character, a bigger jump means autocomplete, injected text or automation
3. paste: the pasted text is trimmed and compared against every known fragment. if the paste contains a fragment,
   or a fragment contains the paste, the paste is accounted for. otherwise, and if the paste is non-empty, flagged
4. fragments only count from the point they are seen: a cut that appears later in the batch never exonerates an
   earlier paste

known limitation
copy without cut leaves no fragment behind, so pasting text copied from the same document is always flagged.
only cut/delete fragments are tracked.

inputs it expects
• an ordered sequence of EditEvent (capture order)

outputs you get (always)
SuspicionSummary(relevant_events=(...flagged...), suspicious_count=int, total_count=int)

config
• weights JSON is optional. every knob has a default so the engine runs out of the box.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import json  # for loading the weights config
import logging  # for reporting a broken weights file
from collections.abc import Iterable  # type hint for the event batch
from typing import Any  # type hint for flexible dictionary values

from agent.events import EditEvent, EventKind, SuspicionSummary

log = logging.getLogger("quillsentry.scorer")


def _normalize(text: str | None) -> str:
    # trim surrounding whitespace off a paste, a missing paste counts as empty
    return (text or "").strip()


class SuspicionScorer:
    """
    rule engine over one batch. pure: scoring the same batch twice gives the same summary.

    Output schema:
        SuspicionSummary(
          relevant_events: tuple[EditEvent, ...],  # flagged events only, in capture order
          suspicious_count: int,
          total_count: int,
        )
    """

    def __init__(self, weights_path: str | None = None) -> None:
        self.weights_path = weights_path  # where to find the weights JSON config, None for defaults only
        self.weights = self._load_weights()  # dictionary of all the scoring knobs

    # config

    def _load_weights(self) -> dict[str, Any]:
        defaults: dict[str, Any] = {
            "keystroke_max_delta": 1,  # largest length change one key press may cause before it is flagged
        }
        if not self.weights_path:
            return defaults
        try:
            with open(self.weights_path, encoding="utf-8") as f:  # try to load the weights config file
                overrides = json.load(f) or {}  # parse JSON, use empty dict if file is empty
            if isinstance(overrides, dict):  # make sure we got a dictionary
                defaults.update({k: v for k, v in overrides.items() if k in defaults})
        except FileNotFoundError:
            pass  # no file is fine, defaults apply
        except (OSError, ValueError) as exc:
            log.warning("ignoring unreadable scorer weights %s: %s", self.weights_path, exc)
        return defaults

    @property
    def keystroke_max_delta(self) -> int:
        try:
            return int(self.weights.get("keystroke_max_delta", 1))
        except (TypeError, ValueError):
            return 1

    # rules

    def _is_unusual_keystroke(self, ev: EditEvent) -> bool:
        return abs(ev.delta) > self.keystroke_max_delta

    @staticmethod
    def _removed_fragment(ev: EditEvent) -> str | None:
        # text the user removed with this event, kept exactly as removed
        if ev.kind is EventKind.CUT or (ev.kind is EventKind.KEYSTROKE and ev.delta < 0):
            return ev.snippet or None
        return None

    @staticmethod
    def _paste_is_known(pasted: str, fragments: list[str]) -> bool:
        # containment in either direction counts as a match
        return any(frag in pasted or pasted in frag for frag in fragments)

    def score(self, events: Iterable[EditEvent]) -> SuspicionSummary:
        fragments: list[str] = []  # known removed/cut text seen so far, in discovery order
        seen_fragments: set[str] = set()  # to skip duplicates in the list above
        relevant: list[EditEvent] = []  # flagged events
        total = 0

        for ev in events:
            total += 1

            if ev.kind is EventKind.KEYSTROKE and self._is_unusual_keystroke(ev):
                relevant.append(ev)

            elif ev.kind is EventKind.PASTE:
                pasted = _normalize(ev.snippet)
                if pasted and not self._paste_is_known(pasted, fragments):
                    relevant.append(ev)

            # record after evaluating so an event never exonerates itself
            frag = self._removed_fragment(ev)
            if frag is not None and frag not in seen_fragments:
                seen_fragments.add(frag)
                fragments.append(frag)

        return SuspicionSummary(
            relevant_events=tuple(relevant),
            suspicious_count=len(relevant),
            total_count=total,
        )
