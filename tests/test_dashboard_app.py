"""
Tests for dashboard.app - ingest and listing routes
Tests summary ingest validation, document updates, and the per-document score.
"""

from __future__ import annotations

import pytest
from conftest import assert_has_keys

from dashboard.app import build_app


class TestDashboardRoutes:
    """Tests for the ingest service Flask routes"""

    @pytest.fixture
    def app(self, store):
        """Create Flask app on a temporary store"""
        app = build_app(store)
        app.config["TESTING"] = True
        return app

    @pytest.fixture
    def client(self, app):
        """Create test client"""
        return app.test_client()

    def _summary(self, document_id="doc-1", suspicious=1, total=4, chars=5):
        return {
            "document_id": document_id,
            "session_id": "s1",
            "logdata": [{"kind": "paste", "seq": 3, "timestamp": 1.0, "delta": chars, "snippet": "x" * chars}],
            "suspicious_log_count": suspicious,
            "total_log_count": total,
            "suspicious_chars": chars,
            "timestamp": "2024-01-01T00:00:00Z",
        }

    def test_ping(self, client):
        r = client.get("/api/ping")
        assert r.status_code == 200
        assert r.get_json() == {"ok": True}

    def test_post_summary_is_stored(self, client, store):
        r = client.post("/api/logs", json=self._summary())
        assert r.status_code == 201
        rows = store.summaries_for("doc-1")
        assert len(rows) == 1
        assert rows[0]["suspicious_log_count"] == 1

    def test_list_summaries(self, client):
        client.post("/api/logs", json=self._summary())
        client.post("/api/logs", json=self._summary(suspicious=0, total=2, chars=0))
        r = client.get("/api/logs/doc-1")
        assert r.status_code == 200
        assert [row["total_log_count"] for row in r.get_json()] == [4, 2]

    @pytest.mark.parametrize(
        "payload",
        [
            {"logdata": []},
            {"document_id": "d", "logdata": "not a list"},
            {"document_id": "d", "suspicious_log_count": -1},
            {"document_id": "d", "total_log_count": "7"},
            {"document_id": "d", "total_log_count": True},
        ],
    )
    def test_bad_summary_is_rejected(self, client, store, payload):
        r = client.post("/api/logs", json=payload)
        assert r.status_code == 400
        assert r.get_json()["ok"] is False
        assert store.summaries_for("d") == []

    def test_non_json_body_is_rejected(self, client):
        r = client.post("/api/logs", data="plain text", content_type="text/plain")
        assert r.status_code == 400

    def test_put_document(self, client, store):
        r = client.put("/api/documents/doc-1", json={"content": "hello", "title": "Essay"})
        assert r.status_code == 200
        assert r.get_json() == {"ok": True, "id": "doc-1"}
        assert store.get_document("doc-1")["content"] == "hello"

    def test_put_document_rejects_non_string_content(self, client):
        r = client.put("/api/documents/doc-1", json={"content": 12})
        assert r.status_code == 400

    def test_score_for_missing_document(self, client):
        r = client.get("/api/documents/nope/score")
        assert r.status_code == 404

    def test_score_for_document(self, client):
        client.put("/api/documents/doc-1", json={"content": "x" * 10})
        client.post("/api/logs", json=self._summary(suspicious=1, total=4, chars=5))
        r = client.get("/api/documents/doc-1/score")
        assert r.status_code == 200
        data = r.get_json()
        assert_has_keys(data, ("log_ratio", "char_ratio", "score_percent"))
        # (0.25 + 0.5) / 2 -> 37.5 -> 38
        assert data["score_percent"] == 38

    def test_put_document_sets_owner(self, client, store):
        r = client.put("/api/documents/doc-1", json={"title": "Essay", "owner": "u1"})
        assert r.status_code == 200
        assert store.get_document("doc-1")["owner"] == "u1"

    def test_put_document_rejects_non_string_owner(self, client):
        r = client.put("/api/documents/doc-1", json={"owner": 7})
        assert r.status_code == 400

    def test_documents_listing_with_owner(self, client):
        client.put("/api/documents/mine", json={"title": "Mine", "owner": "u1"})
        client.put("/api/documents/theirs", json={"title": "Theirs", "owner": "u2"})
        client.post("/api/logs", json=self._summary(document_id="mine", suspicious=2, total=2, chars=0))
        r = client.get("/api/documents?owner=u1")
        assert r.status_code == 200
        rows = r.get_json()
        assert len(rows) == 1
        assert rows[0]["title"] == "Mine"
        # log ratio 1.0, empty content -> 50
        assert rows[0]["score_percent"] == 50

    def test_listing_matches_score_route(self, client):
        client.put("/api/documents/doc-1", json={"content": "x" * 10, "owner": "u1"})
        client.post("/api/logs", json=self._summary(suspicious=1, total=4, chars=5))
        listed = client.get("/api/documents?owner=u1").get_json()[0]["score_percent"]
        assert listed == client.get("/api/documents/doc-1/score").get_json()["score_percent"] == 38

    def test_new_document_scores_zero(self, client):
        client.put("/api/documents/doc-9", json={"owner": "u1"})
        rows = client.get("/api/documents").get_json()
        assert rows[0]["score_percent"] == 0
