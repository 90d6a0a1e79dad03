"""
goal: core data structures for edit telemetry. an EditEvent is one classified unit of user interaction
(keystroke, paste, cut, or a generic content mutation) with its measured length delta. a SuspicionSummary is
the derived scoring result for one flushed batch, and the only thing that ends up in durable storage.

these records are the contract between the capture side (classifier, delta analyzer, buffer) and the scoring
side (scorer, aggregator), so keep the dict shapes stable.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

from dataclasses import dataclass, field, replace  # for the immutable record types
from enum import Enum  # for the event kind
from typing import Any  # type hint for flexible dictionary values


class EventKind(str, Enum):
    KEYSTROKE = "keystroke"
    PASTE = "paste"
    CUT = "cut"
    GENERIC_EDIT = "generic_edit"


@dataclass(frozen=True)
class KeyInfo:
    """which key was pressed and whether a modifier was held."""

    name: str  # key identity as reported by the surface ("a", "Backspace", "Enter")
    ctrl: bool = False  # control or meta/command held
    alt: bool = False
    shift: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "ctrl": self.ctrl, "alt": self.alt, "shift": self.shift}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyInfo:
        return cls(
            name=str(data.get("name", "")),
            ctrl=bool(data.get("ctrl", False)),
            alt=bool(data.get("alt", False)),
            shift=bool(data.get("shift", False)),
        )


@dataclass(frozen=True)
class EditEvent:
    """one observed change, ordered by capture sequence within its session."""

    kind: EventKind
    seq: int  # capture sequence number, the authoritative order
    timestamp: float  # epoch seconds, never decreasing within a session
    delta: int = 0  # len(new_snapshot) - len(old_snapshot) at capture time
    snippet: str | None = None  # pasted text, cut text, or text removed by a deleting keystroke
    key: KeyInfo | None = None  # keystrokes only
    probe: bool = False  # zero-length generic edit emitted by a pointer probe with no change

    def with_delta(self, delta: int, snippet: str | None) -> EditEvent:
        # events are immutable, so the analyzer hands back a populated copy
        return replace(self, delta=delta, snippet=snippet)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "kind": self.kind.value,
            "seq": self.seq,
            "timestamp": self.timestamp,
            "delta": self.delta,
        }
        if self.snippet is not None:  # only keep the fragment when there is one
            out["snippet"] = self.snippet
        if self.key is not None:
            out["key"] = self.key.to_dict()
        if self.probe:
            out["probe"] = True
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EditEvent:
        key = data.get("key")
        return cls(
            kind=EventKind(data["kind"]),
            seq=int(data.get("seq", 0)),
            timestamp=float(data.get("timestamp", 0.0)),
            delta=int(data.get("delta", 0)),
            snippet=data.get("snippet"),
            key=KeyInfo.from_dict(key) if isinstance(key, dict) else None,
            probe=bool(data.get("probe", False)),
        )


@dataclass(frozen=True)
class PendingKeyContext:
    """
    the classified key/paste/cut notification that is waiting for the content change that follows it.
    passed explicitly between the session and the delta analyzer instead of living in a shared slot.
    """

    event: EditEvent | None = None

    @property
    def is_empty(self) -> bool:
        return self.event is None


EMPTY_CONTEXT = PendingKeyContext()


@dataclass(frozen=True)
class SuspicionSummary:
    relevant_events: tuple[EditEvent, ...] = field(default_factory=tuple)
    suspicious_count: int = 0
    total_count: int = 0

    @property
    def suspicious_chars(self) -> int:
        # characters that arrived through a flagged event
        total = 0
        for ev in self.relevant_events:
            if ev.kind is EventKind.PASTE and ev.snippet:
                total += len(ev.snippet)
            else:
                total += abs(ev.delta)
        return total

    def to_record(
        self, document_id: str, timestamp: str, session_id: str | None = None
    ) -> dict[str, Any]:
        """persisted row shape, one per flushed batch."""
        return {
            "document_id": document_id,
            "session_id": session_id,
            "logdata": [ev.to_dict() for ev in self.relevant_events],
            "suspicious_log_count": self.suspicious_count,
            "total_log_count": self.total_count,
            "suspicious_chars": self.suspicious_chars,
            "timestamp": timestamp,
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> SuspicionSummary:
        logdata = row.get("logdata") or []
        return cls(
            relevant_events=tuple(EditEvent.from_dict(ev) for ev in logdata),
            suspicious_count=int(row.get("suspicious_log_count", 0)),
            total_count=int(row.get("total_log_count", 0)),
        )
