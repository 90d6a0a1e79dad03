"""
goal: combine every stored suspicion summary of a document with the document's current length into one
suspicion percentage for the document list.

    log_ratio     = suspicious events / logged events        (0 when nothing was logged)
    char_ratio    = suspicious characters / content length   (0 for an empty document)
    score_percent = round(((log_ratio + char_ratio) / 2) * 100)

pure and cheap, recomputed on every read. rows that cannot be read are skipped so one bad row only makes the
score a little less complete instead of breaking the listing. duplicate rows (at-least-once delivery) are
counted twice; that slight inflation is accepted.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from agent.events import SuspicionSummary

log = logging.getLogger("quillsentry.aggregate")

SummaryRow = SuspicionSummary | dict[str, Any]


@dataclass(frozen=True)
class DocumentSuspicionScore:
    log_ratio: float
    char_ratio: float
    score_percent: int
    rows_used: int = 0  # summaries that made it into the score
    rows_skipped: int = 0  # summaries that could not be read

    def to_dict(self) -> dict[str, Any]:
        return {
            "log_ratio": self.log_ratio,
            "char_ratio": self.char_ratio,
            "score_percent": self.score_percent,
            "rows_used": self.rows_used,
            "rows_skipped": self.rows_skipped,
        }


def _row_counts(row: SummaryRow) -> tuple[int, int, int]:
    # (suspicious, total, suspicious_chars) for one row, raises on garbage
    if isinstance(row, SuspicionSummary):
        return row.suspicious_count, row.total_count, row.suspicious_chars
    if not isinstance(row, dict):
        raise TypeError(f"unsupported summary row: {type(row).__name__}")
    suspicious = int(row.get("suspicious_log_count", 0))
    total = int(row.get("total_log_count", 0))
    if "suspicious_chars" in row:
        chars = int(row["suspicious_chars"])
    else:
        # older rows without the precomputed count
        chars = SuspicionSummary.from_record(row).suspicious_chars
    if suspicious < 0 or total < 0 or chars < 0:
        raise ValueError("negative counts in summary row")
    return suspicious, total, chars


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def _round_half_up(x: float) -> int:
    # round() is banker's rounding, 12.5 must become 13
    return int(math.floor(x + 0.5))


def aggregate_document_score(
    summaries: Iterable[SummaryRow] | None, content_length: int
) -> DocumentSuspicionScore:
    suspicious_total = 0
    logged_total = 0
    chars_total = 0
    used = 0
    skipped = 0

    for row in summaries or ():
        try:
            suspicious, total, chars = _row_counts(row)
        except (TypeError, ValueError, KeyError) as exc:
            skipped += 1
            log.warning("skipping unreadable summary row: %s", exc)
            continue
        suspicious_total += suspicious
        logged_total += total
        chars_total += chars
        used += 1

    log_ratio = _clamp01(suspicious_total / logged_total) if logged_total > 0 else 0.0
    try:
        length = max(0, int(content_length))
    except (TypeError, ValueError):
        length = 0
    # text can be deleted after it was pasted, so characters can outnumber the document
    char_ratio = _clamp01(chars_total / length) if length > 0 else 0.0

    return DocumentSuspicionScore(
        log_ratio=log_ratio,
        char_ratio=char_ratio,
        score_percent=_round_half_up(((log_ratio + char_ratio) / 2) * 100),
        rows_used=used,
        rows_skipped=skipped,
    )


def score_percent_for(document_id: str, summaries: Iterable[SummaryRow] | None, content_length: int) -> int:
    """read-path entry point for the document listing."""
    score = aggregate_document_score(summaries, content_length)
    log.debug("document %s scored %d%%", document_id, score.score_percent)
    return score.score_percent
