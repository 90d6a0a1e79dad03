from __future__ import annotations

from typing import Any

import pytest

from agent.events import EditEvent, EventKind, KeyInfo
from agent.sinks import SinkError
from dashboard.store import DocumentStore


class RecordingSink:
    """in-memory sink that can be told to fail the next N submissions."""

    def __init__(self) -> None:
        self.summaries: list[tuple[str, dict[str, Any]]] = []
        self.documents: dict[str, dict[str, Any]] = {}
        self.fail_next = 0
        self.attempts = 0

    def append_summary(self, document_id: str, record: dict[str, Any]) -> None:
        self.attempts += 1
        if self.fail_next > 0:
            self.fail_next -= 1
            raise SinkError("ingest unavailable")
        self.summaries.append((document_id, record))

    def update_document(self, document_id: str, content: str | None = None, title: str | None = None) -> None:
        doc = self.documents.setdefault(document_id, {})
        if content is not None:
            doc["content"] = content
        if title is not None:
            doc["title"] = title


class StepClock:
    """clock that advances one second per call."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        value = self.now
        self.now += 1.0
        return value


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


@pytest.fixture()
def store(tmp_path) -> DocumentStore:
    return DocumentStore(tmp_path / "summaries.jsonl", tmp_path / "documents.json")


def keystroke(seq: int, name: str, delta: int, snippet: str | None = None) -> EditEvent:
    return EditEvent(kind=EventKind.KEYSTROKE, seq=seq, timestamp=float(seq), delta=delta, snippet=snippet, key=KeyInfo(name))


def paste(seq: int, text: str, delta: int | None = None) -> EditEvent:
    return EditEvent(
        kind=EventKind.PASTE, seq=seq, timestamp=float(seq), delta=len(text) if delta is None else delta, snippet=text
    )


def cut(seq: int, text: str) -> EditEvent:
    return EditEvent(kind=EventKind.CUT, seq=seq, timestamp=float(seq), delta=-len(text), snippet=text)


def generic(seq: int, delta: int) -> EditEvent:
    return EditEvent(kind=EventKind.GENERIC_EDIT, seq=seq, timestamp=float(seq), delta=delta)


def assert_has_keys(obj: dict[str, Any], required: tuple[str, ...]) -> None:
    missing = [k for k in required if k not in obj]
    assert not missing, f"Missing keys: {missing} in {obj}"
