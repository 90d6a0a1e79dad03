"""
goal: flask ingest and listing service for QuillSentry. editor sessions post one suspicion summary per
flushed batch and save document content here; the document list reads back a suspicion percentage per
document. runs entirely locally on top of the JSON-file DocumentStore.

how data flows through the app:
1. an editor session flushes a batch and POSTs its summary to /api/logs (or writes through LocalSink)
2. manual save / teardown PUTs content and title to /api/documents/<id>
3. the document list GETs /api/documents, which aggregates every stored summary of each document together
   with the document's current content length into score_percent

routes:
- GET  /api/ping
- POST /api/logs
- GET  /api/logs/<document_id>
- PUT  /api/documents/<document_id>
- GET  /api/documents/<document_id>/score
- GET  /api/documents?owner=<owner>
"""

from __future__ import annotations

# --- standard library ---
import logging
from typing import Any

# --- third-party ---
from flask import Flask, jsonify, request

# --- local/project imports ---
from algorithm.aggregate import aggregate_document_score, score_percent_for
from dashboard.config import Config, load_config
from dashboard.store import DocumentStore

log = logging.getLogger("quillsentry.ingest")

# single waitress optional block
try:
    from waitress import serve as _serve  # type: ignore[import-untyped]

    HAVE_WAITRESS = True
except Exception:
    HAVE_WAITRESS = False
    _serve = None  # type: ignore


def _bad_request(message: str):
    return jsonify({"ok": False, "error": message}), 400


def _score_for(store: DocumentStore, doc: dict[str, Any]) -> dict[str, Any]:
    content = doc.get("content") or ""
    score = aggregate_document_score(store.summaries_for(doc["id"]), len(content))
    return score.to_dict()


def store_from_config(cfg: Config) -> DocumentStore:
    return DocumentStore(cfg.summaries_path, cfg.documents_path)


def build_app(store: DocumentStore | None = None) -> Flask:
    if store is None:
        store = store_from_config(load_config())

    app = Flask(__name__)
    app.config["STORE"] = store

    @app.get("/api/ping")
    def api_ping():
        return jsonify({"ok": True})

    @app.post("/api/logs")
    def api_logs_append():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return _bad_request("expected a JSON object")
        document_id = payload.get("document_id")
        if not document_id:
            return _bad_request("document_id is required")
        if not isinstance(payload.get("logdata", []), list):
            return _bad_request("logdata must be a list")
        for key in ("suspicious_log_count", "total_log_count"):
            value = payload.get(key, 0)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                return _bad_request(f"{key} must be a non-negative integer")

        store.append_summary(str(document_id), payload)
        log.info(
            "[LOG] document %s: %s of %s events suspicious",
            document_id,
            payload.get("suspicious_log_count", 0),
            payload.get("total_log_count", 0),
        )
        return jsonify({"ok": True}), 201

    @app.get("/api/logs/<document_id>")
    def api_logs_list(document_id: str):
        return jsonify(store.summaries_for(document_id))

    @app.put("/api/documents/<document_id>")
    def api_document_update(document_id: str):
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return _bad_request("expected a JSON object")
        fields = {}
        for key in ("content", "title", "owner"):
            value = payload.get(key)
            if value is not None and not isinstance(value, str):
                return _bad_request(f"{key} must be a string")
            fields[key] = value
        doc = store.update_document(document_id, **fields)
        return jsonify({"ok": True, "id": doc["id"]})

    @app.get("/api/documents/<document_id>/score")
    def api_document_score(document_id: str):
        doc = store.get_document(document_id)
        if doc is None:
            return jsonify({"ok": False, "error": "document not found"}), 404
        return jsonify(_score_for(store, doc))

    @app.get("/api/documents")
    def api_documents():
        owner = request.args.get("owner")
        rows = []
        for doc in store.list_documents(owner=owner):
            content = doc.get("content") or ""
            percent = score_percent_for(doc["id"], store.summaries_for(doc["id"]), len(content))
            rows.append(
                {
                    "id": doc["id"],
                    "title": doc.get("title") or "Untitled",
                    "owner": doc.get("owner"),
                    "score_percent": percent,
                }
            )
        return jsonify(rows)

    return app


# run the ingest service: start the Flask app with optional Waitress server
def run_dashboard(cfg: Config | None = None) -> None:
    cfg = cfg or load_config()
    app = build_app(store_from_config(cfg))
    if HAVE_WAITRESS:
        try:
            _serve(app, host=cfg.host, port=cfg.port)
        except KeyboardInterrupt:
            pass  # expected when shutting down
    else:
        try:
            app.run(host=cfg.host, port=cfg.port, debug=False)
        except KeyboardInterrupt:
            pass  # expected when shutting down


if __name__ == "__main__":
    run_dashboard()
