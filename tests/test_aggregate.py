"""
Tests for algorithm.aggregate - document-level suspicion score
"""

from __future__ import annotations

import pytest
from conftest import paste

from agent.events import SuspicionSummary
from algorithm.aggregate import aggregate_document_score, score_percent_for


def _row(suspicious: int, total: int, chars: int | None = None) -> dict:
    row = {"document_id": "d", "logdata": [], "suspicious_log_count": suspicious, "total_log_count": total}
    if chars is not None:
        row["suspicious_chars"] = chars
    return row


class TestAggregate:
    def test_zero_denominators_score_zero(self):
        """No summaries and an empty document give 0, not an error"""
        score = aggregate_document_score([], 0)
        assert score.score_percent == 0
        assert score.log_ratio == 0.0
        assert score.char_ratio == 0.0

    def test_none_summaries(self):
        assert aggregate_document_score(None, 10).score_percent == 0

    def test_ratios_are_combined(self):
        # log ratio 2/8 = 0.25, char ratio 50/100 = 0.5, mean 0.375 -> 38
        score = aggregate_document_score([_row(1, 4, 20), _row(1, 4, 30)], 100)
        assert score.log_ratio == pytest.approx(0.25)
        assert score.char_ratio == pytest.approx(0.5)
        assert score.score_percent == 38

    def test_rounds_half_up(self):
        # log ratio 1/4 = 0.25, char ratio 0 -> 12.5 -> 13
        assert aggregate_document_score([_row(1, 4, 0)], 0).score_percent == 13

    def test_char_ratio_is_capped(self):
        """Pasted text that was later deleted cannot push the score past 100"""
        score = aggregate_document_score([_row(3, 3, 500)], 10)
        assert score.char_ratio == 1.0
        assert score.score_percent == 100

    @pytest.mark.parametrize(
        "rows,length",
        [
            ([], 0),
            ([_row(0, 10, 0)], 5),
            ([_row(10, 10, 10)], 10),
            ([_row(7, 3, 1000)], 1),
            ([_row(1, 1, 0)] * 50, 0),
        ],
    )
    def test_score_always_in_range(self, rows, length):
        assert 0 <= aggregate_document_score(rows, length).score_percent <= 100

    def test_summary_objects_are_accepted(self):
        summary = SuspicionSummary(relevant_events=(paste(0, "abcd"),), suspicious_count=1, total_count=2)
        score = aggregate_document_score([summary], 8)
        assert score.log_ratio == pytest.approx(0.5)
        assert score.char_ratio == pytest.approx(0.5)
        assert score.score_percent == 50

    def test_missing_char_count_is_derived_from_logdata(self):
        row = _row(1, 1)
        row["logdata"] = [paste(0, "abcde").to_dict()]
        score = aggregate_document_score([row], 10)
        assert score.char_ratio == pytest.approx(0.5)

    def test_unreadable_rows_are_skipped(self):
        """A broken row degrades to the partial score instead of failing"""
        rows = [_row(1, 2, 0), {"suspicious_log_count": "lots"}, "garbage", _row(-1, 2, 0)]
        score = aggregate_document_score(rows, 0)
        assert score.rows_used == 1
        assert score.rows_skipped == 3
        assert score.log_ratio == pytest.approx(0.5)

    def test_duplicate_summary_stays_within_tolerance(self):
        """At-least-once delivery: a duplicated row keeps the same ratios"""
        once = aggregate_document_score([_row(1, 4, 5)], 20)
        twice = aggregate_document_score([_row(1, 4, 5), _row(1, 4, 5)], 20)
        assert once.log_ratio == pytest.approx(twice.log_ratio)
        assert abs(once.score_percent - twice.score_percent) <= 15

    def test_score_percent_for(self):
        assert score_percent_for("d", [_row(2, 2, 0)], 0) == 50
