"""
goal: one editing session on one document. this is the capture surface the editor widget talks to: it receives
raw notifications (key, paste, cut, content changed, pointer), runs them through the classifier and the delta
analyzer, appends the finished events to the flush manager, and handles save and teardown.

the key/paste/cut notification that precedes a content change is kept as an explicit PendingKeyContext value
on the session and handed to the analyzer, then cleared. events are appended strictly in capture order.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from agent.classifier import ClockFn, EventClassifier, MalformedNotificationError
from agent.delta import DeltaAnalyzer, MalformedSnapshotError
from agent.events import EMPTY_CONTEXT, EditEvent, PendingKeyContext, SuspicionSummary
from agent.flush import FlushManager, FlushResult
from agent.sinks import Sink, SinkError
from algorithm.suspicion_engine import SuspicionScorer

log = logging.getLogger("quillsentry.session")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class EditSession:
    def __init__(
        self,
        document_id: str,
        sink: Sink,
        scorer: SuspicionScorer | None = None,
        initial_text: str = "",
        title: str = "",
        interval_sec: float = 5.0,
        termination_timeout_sec: float = 0.5,
        session_id: str | None = None,
        clock: ClockFn | None = None,
    ) -> None:
        self.document_id = str(document_id)
        self.session_id = session_id or uuid.uuid4().hex
        self.sink = sink
        self.termination_timeout = termination_timeout_sec
        self._classifier = EventClassifier(clock=clock)
        self._analyzer = DeltaAnalyzer()
        self._pending: PendingKeyContext = EMPTY_CONTEXT
        self._text = initial_text
        self._title = title
        self._content_dirty = False
        self.flush_manager = FlushManager(
            scorer=scorer or SuspicionScorer(),
            submit=self._submit,
            interval_sec=interval_sec,
            termination_timeout_sec=termination_timeout_sec,
            name=self.session_id[:8],
        )

    # ---------------- lifecycle ----------------

    def start(self) -> EditSession:
        self.flush_manager.start()
        return self

    def load(self, text: str, title: str = "") -> None:
        """replace the baseline snapshot with stored content, nothing is logged."""
        self._text = text
        self._title = title
        self._pending = EMPTY_CONTEXT
        self._content_dirty = False

    @property
    def text(self) -> str:
        return self._text

    @property
    def pending(self) -> PendingKeyContext:
        return self._pending

    @property
    def has_unflushed_state(self) -> bool:
        """read-only check for the host UI before destructive navigation."""
        return self._content_dirty or not self._pending.is_empty or self.flush_manager.has_unflushed_state

    # ---------------- capture surface ----------------

    def on_key(
        self, key: str, ctrl: bool = False, alt: bool = False, shift: bool = False, meta: bool = False, ts: float | None = None
    ) -> EditEvent | None:
        return self.notify({"type": "key", "key": key, "ctrl": ctrl, "alt": alt, "shift": shift, "meta": meta, "ts": ts})

    def on_paste(self, text: str | None, ts: float | None = None) -> EditEvent | None:
        return self.notify({"type": "paste", "text": text, "ts": ts})

    def on_cut(self, text: str | None, ts: float | None = None) -> EditEvent | None:
        return self.notify({"type": "cut", "text": text, "ts": ts})

    def on_content_changed(self, text: str, ts: float | None = None) -> EditEvent | None:
        return self.notify({"type": "content", "text": text, "ts": ts})

    def on_pointer(self, text: str | None = None, ts: float | None = None) -> EditEvent | None:
        return self.notify({"type": "pointer", "text": text, "ts": ts})

    def set_title(self, title: str) -> None:
        self._title = title
        self._content_dirty = True

    def notify(self, notification: dict[str, Any]) -> EditEvent | None:
        """
        route one raw notification. returns the event that was appended to the log, or None when the
        notification only became pending or was dropped as malformed.
        """
        ntype = str(notification.get("type") or "pointer").lower() if isinstance(notification, dict) else ""
        try:
            if ntype in ("key", "keydown", "paste", "cut"):
                committed = self._commit_pending()
                self._pending = PendingKeyContext(self._classifier.classify(notification))
                return committed
            if ntype == "content":
                return self._content_changed(notification)
            if ntype in ("pointer", "click"):
                return self._probe(notification)
            # unknown types still go through the classifier so they fail the same way
            self._classifier.classify(notification)
        except (MalformedNotificationError, MalformedSnapshotError) as exc:
            self._pending = EMPTY_CONTEXT
            log.warning("[%s] dropped malformed %s notification: %s", self.session_id[:8], ntype or "?", exc)
        return None

    def _append(self, event: EditEvent) -> EditEvent:
        self.flush_manager.append(event)
        return event

    def _commit_pending(self) -> EditEvent | None:
        # a key/paste/cut with no content change after it is logged as a zero-delta event of its own kind
        if self._pending.is_empty:
            return None
        event = self._analyzer.analyze(self._text, self._text, self._pending)
        self._pending = EMPTY_CONTEXT
        return self._append(event)

    def _content_changed(self, notification: dict[str, Any]) -> EditEvent:
        current = notification.get("text")
        fallback = None
        if self._pending.is_empty:
            fallback = self._classifier.classify(notification)  # generic edit
        event = self._analyzer.analyze(self._text, current, self._pending, fallback=fallback)
        self._pending = EMPTY_CONTEXT
        self._text = current
        self._content_dirty = True
        return self._append(event)

    def _probe(self, notification: dict[str, Any]) -> EditEvent:
        current = notification.get("text")
        if current is None or current == self._text:
            # nothing moved: log the probe itself, after anything still pending
            self._commit_pending()
            return self._append(self._classifier.probe(notification))
        # content changed behind our back, same path as a content notification
        return self._content_changed({**notification, "type": "pointer"})

    # ---------------- save / teardown ----------------

    def _submit(self, summary: SuspicionSummary) -> None:
        record = summary.to_record(self.document_id, _utc_now_iso(), session_id=self.session_id)
        self.sink.append_summary(self.document_id, record)

    def _save_content(self) -> None:
        if not self._content_dirty:
            return
        self.sink.update_document(self.document_id, content=self._text, title=self._title)
        self._content_dirty = False

    def save(self) -> FlushResult:
        """
        explicit user save: document content first, then the edit log. both failures are raised
        (SinkError for content, FlushError for the log) because the user asked for it.
        """
        self._save_content()
        return self.flush_manager.save()

    def close(self) -> None:
        """
        session teardown. the final content save and log flush are started on daemon threads and waited on
        for at most the termination timeout. failures are logged and otherwise dropped.
        """
        try:
            self._commit_pending()
        except MalformedSnapshotError as exc:
            log.warning("[%s] dropped pending event at close: %s", self.session_id[:8], exc)

        content_thread: threading.Thread | None = None
        if self._content_dirty:
            content_thread = threading.Thread(
                target=self._final_content_save, name=f"final-save-{self.session_id[:8]}", daemon=True
            )
            content_thread.start()

        self.flush_manager.close()

        if content_thread is not None:
            content_thread.join(timeout=self.termination_timeout)

    def _final_content_save(self) -> None:
        try:
            self._save_content()
        except SinkError as exc:
            log.warning("[%s] final content save failed: %s", self.session_id[:8], exc)

    def __enter__(self) -> EditSession:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.close()
