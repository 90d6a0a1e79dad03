"""
goal: turns raw input notifications from the editor surface (key press, paste, cut, content change, pointer
click) into typed EditEvent records. every notification yields exactly one event with a capture sequence
number and a timestamp that never goes backwards inside a session.

the classifier only builds records. it does not touch the pending buffer, and it leaves delta and snippet
for keystrokes empty, because the length change is only visible once the content notification arrives.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import time  # default clock for event timestamps
from collections.abc import Callable  # type hint for the injectable clock
from typing import Any  # type hint for flexible dictionary values

from agent.events import EditEvent, EventKind, KeyInfo

ClockFn = Callable[[], float]

# notification type -> event kind
_KIND_BY_TYPE: dict[str, EventKind] = {
    "key": EventKind.KEYSTROKE,
    "keydown": EventKind.KEYSTROKE,
    "paste": EventKind.PASTE,
    "cut": EventKind.CUT,
    "content": EventKind.GENERIC_EDIT,
    "pointer": EventKind.GENERIC_EDIT,
    "click": EventKind.GENERIC_EDIT,
}


class MalformedNotificationError(ValueError):
    """raised for a notification that cannot be classified."""


class EventClassifier:
    """classifies raw notifications for a single session."""

    def __init__(self, clock: ClockFn | None = None) -> None:
        self._clock = clock or time.time  # where timestamps come from when the notification has none
        self._seq = 0  # next capture sequence number
        self._last_ts = 0.0  # last timestamp handed out, used to clamp

    def _stamp(self, raw_ts: Any) -> tuple[int, float]:
        # pick the notification's own timestamp if it has a usable one, else ask the clock
        ts: float
        try:
            ts = float(raw_ts) if raw_ts is not None else float(self._clock())
        except (TypeError, ValueError):
            ts = float(self._clock())
        ts = max(ts, self._last_ts)  # never go backwards, ties keep arrival order through seq
        seq = self._seq
        self._seq += 1
        self._last_ts = ts
        return seq, ts

    def classify(self, notification: dict[str, Any]) -> EditEvent:
        if not isinstance(notification, dict):
            raise MalformedNotificationError(f"notification must be a dict, got {type(notification).__name__}")
        ntype = str(notification.get("type") or "").lower()
        if not ntype:
            # no discernible key or content, same as a pointer probe
            ntype = "pointer"
        kind = _KIND_BY_TYPE.get(ntype)
        if kind is None:
            raise MalformedNotificationError(f"unknown notification type: {ntype!r}")

        if kind is EventKind.KEYSTROKE:
            name = notification.get("key")
            if not name:
                raise MalformedNotificationError("key notification without a key")
            key = KeyInfo(
                name=str(name),
                ctrl=bool(notification.get("ctrl") or notification.get("meta")),  # cmd counts as ctrl
                alt=bool(notification.get("alt", False)),
                shift=bool(notification.get("shift", False)),
            )
            seq, ts = self._stamp(notification.get("ts"))
            return EditEvent(kind=kind, seq=seq, timestamp=ts, key=key)

        if kind in (EventKind.PASTE, EventKind.CUT):
            # clipboard text is captured here; it may legitimately be empty
            text = notification.get("text")
            seq, ts = self._stamp(notification.get("ts"))
            return EditEvent(kind=kind, seq=seq, timestamp=ts, snippet=str(text) if text is not None else "")

        seq, ts = self._stamp(notification.get("ts"))
        return EditEvent(kind=kind, seq=seq, timestamp=ts, probe=ntype in ("pointer", "click"))

    def probe(self, notification: dict[str, Any] | None = None) -> EditEvent:
        """zero-length generic edit used to check for content changes not tied to the keyboard."""
        payload = dict(notification or {})
        payload["type"] = "pointer"
        return self.classify(payload)
