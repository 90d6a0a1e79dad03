# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: where flushed summaries and saved document content go. two sinks share one small interface:
- LocalSink writes straight into a DocumentStore on disk
- HttpSink posts to the ingest service (dashboard.app) with requests

both raise SinkError on failure so the flush manager can decide whether to retry.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

from typing import Any, Protocol  # type hints for the sink interface

import requests  # HTTP client for the ingest service

from dashboard.store import DocumentStore


class SinkError(RuntimeError):
    """the sink could not persist what it was given."""


class Sink(Protocol):
    def append_summary(self, document_id: str, record: dict[str, Any]) -> None: ...

    def update_document(self, document_id: str, content: str | None = None, title: str | None = None) -> None: ...


class LocalSink:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store  # on-disk store shared with the ingest service

    def append_summary(self, document_id: str, record: dict[str, Any]) -> None:
        try:
            self.store.append_summary(document_id, record)
        except OSError as exc:  # disk full, permissions, path gone
            raise SinkError(f"could not append summary for {document_id}: {exc}") from exc

    def update_document(self, document_id: str, content: str | None = None, title: str | None = None) -> None:
        try:
            self.store.update_document(document_id, content=content, title=title)
        except OSError as exc:
            raise SinkError(f"could not update document {document_id}: {exc}") from exc


class HttpSink:
    def __init__(self, base_url: str, timeout: float = 5.0, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")  # ingest service root, like http://127.0.0.1:8766
        self.timeout = timeout  # seconds per request
        self.http = session or requests.Session()  # reuse connections between flushes

    def _send(self, method: str, path: str, payload: dict[str, Any]) -> None:
        url = f"{self.base_url}{path}"
        try:
            r = self.http.request(method, url, json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as exc:  # connection errors, timeouts, 4xx/5xx
            raise SinkError(f"{method} {url} failed: {exc}") from exc

    def append_summary(self, document_id: str, record: dict[str, Any]) -> None:
        payload = dict(record)
        payload["document_id"] = document_id
        self._send("POST", "/api/logs", payload)

    def update_document(self, document_id: str, content: str | None = None, title: str | None = None) -> None:
        payload: dict[str, Any] = {}
        if content is not None:
            payload["content"] = content
        if title is not None:
            payload["title"] = title
        self._send("PUT", f"/api/documents/{document_id}", payload)
