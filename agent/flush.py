"""
goal: accumulates classified edit events for one session and flushes them to durable storage. a flush swaps
the pending buffer for an empty one in a single step, scores the batch, and submits the summary.

when we flush:
- timer: a per-session worker thread ticks every interval_sec. a tick that finds another flush still in flight
  is skipped, not queued
- save: an explicit user action. runs on the worker and the caller waits for the outcome, so a failure is
  raised back to the user as FlushError
- termination: best effort, on a detached thread. close() waits at most termination_timeout_sec for it and
  nothing is retried afterwards

delivery is at-least-once. a failed timer or save flush keeps its events and the next flush submits them again,
in front of whatever accumulated meanwhile, so capture order survives flush boundaries.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import logging  # for flush outcome messages
import queue  # command channel between the session and its worker
import threading  # for the worker thread and the buffer lock
import time  # for tick deadlines
from collections.abc import Callable  # type hint for the submit callback
from concurrent.futures import Future  # reply slot for save commands
from dataclasses import dataclass  # for results and commands
from enum import Enum  # for states and triggers

from agent.events import EditEvent, SuspicionSummary
from algorithm.suspicion_engine import SuspicionScorer

log = logging.getLogger("quillsentry.flush")

# persists one summary or raises
SubmitFn = Callable[[SuspicionSummary], None]


class FlushState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


class FlushTrigger(str, Enum):
    TIMER = "timer"
    SAVE = "save"
    TERMINATION = "termination"


class FlushError(RuntimeError):
    """a manual save could not be delivered."""


@dataclass(frozen=True)
class FlushResult:
    trigger: FlushTrigger
    event_count: int = 0  # events in the batch that was attempted
    submitted: bool = False
    skipped: bool = False  # another flush was in flight
    error: str | None = None
    summary: SuspicionSummary | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _Command:
    kind: str  # "save" or "stop"
    reply: Future | None = None


class PendingBuffer:
    """append-only list of events with an atomic swap."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[EditEvent] = []

    def append(self, event: EditEvent) -> None:
        with self._lock:
            self._events.append(event)

    def swap(self) -> list[EditEvent]:
        # hand back everything and start a fresh list in one step
        with self._lock:
            batch, self._events = self._events, []
        return batch

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class FlushManager:
    def __init__(
        self,
        scorer: SuspicionScorer,
        submit: SubmitFn,
        interval_sec: float = 5.0,
        termination_timeout_sec: float = 0.5,
        name: str = "session",
    ) -> None:
        self.scorer = scorer  # turns a batch into a summary
        self.submit = submit  # writes a summary to the sink, raises on failure
        self.interval = interval_sec  # seconds between timer ticks
        self.termination_timeout = termination_timeout_sec  # how long close() waits for the final flush
        self.name = name  # used in thread names and log lines
        self._buffer = PendingBuffer()  # events since the last swap
        self._retry: list[EditEvent] = []  # batch that failed and goes out again next time
        self._flush_lock = threading.Lock()  # one flush in flight at a time
        self._flushing = False
        self._commands: queue.Queue[_Command] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._closed = False

    # state

    @property
    def state(self) -> FlushState:
        if self._flushing:
            return FlushState.FLUSHING
        if self.pending_count:
            return FlushState.ACCUMULATING
        return FlushState.IDLE

    @property
    def pending_count(self) -> int:
        return len(self._buffer) + len(self._retry)

    @property
    def has_unflushed_state(self) -> bool:
        return self._flushing or self.pending_count > 0

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    # capture side

    def append(self, event: EditEvent) -> None:
        if self._closed:
            log.warning("[%s] event %d arrived after close, it will not be flushed", self.name, event.seq)
        self._buffer.append(event)

    # flushing

    def flush(self, trigger: FlushTrigger) -> FlushResult:
        # timer ticks never wait behind another flush, explicit ones do
        if not self._flush_lock.acquire(blocking=trigger is not FlushTrigger.TIMER):
            log.debug("[%s] %s flush skipped, another flush is in flight", self.name, trigger.value)
            return FlushResult(trigger=trigger, skipped=True)
        # in flight before the swap, the batch is in neither the buffer nor the retry list until submit returns
        self._flushing = True
        try:
            batch = self._retry + self._buffer.swap()
            self._retry = []
            if not batch:
                return FlushResult(trigger=trigger)  # never flush an empty buffer

            summary = self.scorer.score(batch)
            try:
                self.submit(summary)
            except Exception as exc:  # the sink can fail in many ways (network, disk, server)
                if trigger is FlushTrigger.TERMINATION:
                    log.warning("[%s] final flush of %d events failed, dropping them: %s", self.name, len(batch), exc)
                else:
                    self._retry = batch  # resubmitted ahead of newer events on the next flush
                    log.warning("[%s] %s flush of %d events failed, will retry: %s", self.name, trigger.value, len(batch), exc)
                return FlushResult(trigger=trigger, event_count=len(batch), error=str(exc) or type(exc).__name__)

            log.info(
                "[%s] flushed %d events (%d suspicious) on %s",
                self.name,
                summary.total_count,
                summary.suspicious_count,
                trigger.value,
            )
            return FlushResult(trigger=trigger, event_count=len(batch), submitted=True, summary=summary)
        finally:
            self._flushing = False
            self._flush_lock.release()

    def save(self) -> FlushResult:
        """manual save. raises FlushError when the batch could not be delivered."""
        if self.running:
            reply: Future = Future()
            self._commands.put(_Command("save", reply))
            result: FlushResult = reply.result()
        else:
            result = self.flush(FlushTrigger.SAVE)
        if not result.ok:
            raise FlushError(f"could not save edit log: {result.error}")
        return result

    # lifecycle

    def start(self) -> None:
        if self.running:
            return
        self._closed = False
        self._worker = threading.Thread(target=self._run, name=f"flush-{self.name}", daemon=True)
        self._worker.start()

    def _run(self) -> None:
        next_tick = time.monotonic() + self.interval  # when the timer fires next
        while True:
            timeout = max(0.0, next_tick - time.monotonic())
            try:
                cmd = self._commands.get(timeout=timeout)
            except queue.Empty:
                self.flush(FlushTrigger.TIMER)
                next_tick = time.monotonic() + self.interval
                continue

            if cmd.kind == "stop":
                break
            if cmd.kind == "save" and cmd.reply is not None:
                try:
                    cmd.reply.set_result(self.flush(FlushTrigger.SAVE))
                except Exception as exc:  # scorer bugs should reach the caller, not kill the worker
                    cmd.reply.set_exception(exc)

    def close(self) -> threading.Thread | None:
        """
        stop ticking and start the final flush without blocking on it for longer than the termination timeout.
        returns the detached flush thread, or None if there was nothing to flush.
        """
        if self._closed:
            return None
        self._closed = True
        if self.running:
            self._commands.put(_Command("stop"))
        self._worker = None

        if not self.has_unflushed_state:
            return None

        final = threading.Thread(
            target=self.flush,
            args=(FlushTrigger.TERMINATION,),
            name=f"final-flush-{self.name}",
            daemon=True,
        )
        final.start()
        final.join(timeout=self.termination_timeout)
        if final.is_alive():
            log.warning("[%s] final flush still running after %.2fs, not waiting", self.name, self.termination_timeout)
        return final
