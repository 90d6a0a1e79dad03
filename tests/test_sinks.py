"""
Tests for agent.sinks - LocalSink and HttpSink
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from agent.sinks import HttpSink, LocalSink, SinkError


class TestLocalSink:
    def test_writes_through_to_store(self, store):
        sink = LocalSink(store)
        sink.append_summary("d", {"suspicious_log_count": 0, "total_log_count": 3, "logdata": []})
        sink.update_document("d", content="text", title="T")
        assert store.summaries_for("d")[0]["total_log_count"] == 3
        assert store.get_document("d")["content"] == "text"

    def test_disk_errors_become_sink_errors(self, store):
        sink = LocalSink(store)
        with patch.object(store, "append_summary", side_effect=OSError("disk full")):
            with pytest.raises(SinkError):
                sink.append_summary("d", {})


class TestHttpSink:
    @pytest.fixture
    def http(self):
        session = MagicMock(spec=requests.Session)
        response = MagicMock()
        response.raise_for_status.return_value = None
        session.request.return_value = response
        return session

    def test_append_summary_posts_record(self, http):
        sink = HttpSink("http://ingest.local/", timeout=2.0, session=http)
        sink.append_summary("doc-9", {"total_log_count": 1})
        method, url = http.request.call_args.args
        assert method == "POST"
        assert url == "http://ingest.local/api/logs"
        assert http.request.call_args.kwargs["json"] == {"total_log_count": 1, "document_id": "doc-9"}
        assert http.request.call_args.kwargs["timeout"] == 2.0

    def test_update_document_puts_only_given_fields(self, http):
        sink = HttpSink("http://ingest.local", session=http)
        sink.update_document("doc-9", title="New")
        method, url = http.request.call_args.args
        assert method == "PUT"
        assert url == "http://ingest.local/api/documents/doc-9"
        assert http.request.call_args.kwargs["json"] == {"title": "New"}

    def test_connection_error_becomes_sink_error(self, http):
        http.request.side_effect = requests.ConnectionError("refused")
        sink = HttpSink("http://ingest.local", session=http)
        with pytest.raises(SinkError):
            sink.append_summary("d", {})

    def test_http_error_status_becomes_sink_error(self, http):
        http.request.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        sink = HttpSink("http://ingest.local", session=http)
        with pytest.raises(SinkError):
            sink.update_document("d", content="x")
