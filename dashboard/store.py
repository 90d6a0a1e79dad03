# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: durable storage for suspicion summaries and documents. summaries are append-only JSON lines, one row per
flushed batch. documents ({id, title, content, owner}) live in a single JSON file that is rewritten atomically.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any

log = logging.getLogger("quillsentry.store")


class DocumentStore:
    def __init__(self, summaries_path: str | Path, documents_path: str | Path) -> None:
        self.summaries_path = Path(summaries_path)
        self.documents_path = Path(documents_path)
        self._lock = threading.Lock()  # one writer at a time for both files

    # summaries

    def append_summary(self, document_id: str, record: dict[str, Any]) -> None:
        row = dict(record)
        row["document_id"] = str(document_id)
        line = json.dumps(row, ensure_ascii=False, sort_keys=True)
        with self._lock:
            self.summaries_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.summaries_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
                f.flush()
                os.fsync(f.fileno())

    def summaries_for(self, document_id: str) -> list[dict[str, Any]]:
        """every readable row for the document, in append order. broken lines are skipped."""
        if not self.summaries_path.exists():
            return []
        rows: list[dict[str, Any]] = []
        with self._lock:
            with open(self.summaries_path, encoding="utf-8") as f:
                lines = f.readlines()
        for lineno, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as exc:
                log.warning("skipping broken summary line %d in %s: %s", lineno, self.summaries_path, exc)
                continue
            if isinstance(row, dict) and str(row.get("document_id")) == str(document_id):
                rows.append(row)
        return rows

    # documents

    def _load_documents(self) -> dict[str, dict[str, Any]] | None:
        # None when the file exists but cannot be used as a documents table
        if not self.documents_path.exists():
            return {}
        try:
            data = json.loads(self.documents_path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            log.warning("documents file %s is unreadable: %s", self.documents_path, exc)
            return None
        if not isinstance(data, dict):
            log.warning("documents file %s does not hold a JSON object", self.documents_path)
            return None
        return data

    def _read_documents(self) -> dict[str, dict[str, Any]]:
        docs = self._load_documents()
        return {} if docs is None else docs

    def _read_documents_for_write(self) -> dict[str, dict[str, Any]]:
        docs = self._load_documents()
        if docs is not None:
            return docs
        # keep the unreadable file instead of overwriting every document in it
        backup = self.documents_path.with_name(f"{self.documents_path.name}.{int(time.time())}.bad")
        os.replace(self.documents_path, backup)
        log.warning("moved unreadable documents file to %s before writing", backup)
        return {}

    def _write_documents(self, docs: dict[str, dict[str, Any]]) -> None:
        self.documents_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.documents_path.with_suffix(self.documents_path.suffix + ".tmp")
        tmp.write_text(json.dumps(docs, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.documents_path)  # atomic on the same filesystem

    def update_document(
        self,
        document_id: str,
        content: str | None = None,
        title: str | None = None,
        owner: str | None = None,
    ) -> dict[str, Any]:
        """upsert: fields left as None keep their stored value, a missing document is created."""
        with self._lock:
            docs = self._read_documents_for_write()
            doc = docs.get(str(document_id)) or {
                "id": str(document_id),
                "title": "Untitled Document",
                "content": "",
                "owner": None,
            }
            if content is not None:
                doc["content"] = content
            if title is not None:
                doc["title"] = title
            if owner is not None:
                doc["owner"] = owner
            docs[str(document_id)] = doc
            self._write_documents(docs)
        return doc

    def get_document(self, document_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._read_documents().get(str(document_id))

    def list_documents(self, owner: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            docs = list(self._read_documents().values())
        if owner is not None:
            docs = [d for d in docs if d.get("owner") == owner]
        return docs
