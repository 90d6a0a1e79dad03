# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: command line launcher for QuillSentry. starts the ingest/listing service, replays recorded editor
notifications through a real edit session, or prints the suspicion score of a stored document.

    quillsentry serve
    quillsentry replay notifications.jsonl --document <id>
    quillsentry score <id>
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import argparse  # for parsing command line arguments
import json  # for reading recorded notifications
import logging  # for console logging setup
import sys  # for exit codes
from pathlib import Path  # for working with file paths
from typing import Any  # type hint for flexible dictionary values

from agent.flush import FlushError  # raised when a manual save fails
from agent.session import EditSession  # capture surface for one document
from agent.sinks import HttpSink, LocalSink, Sink, SinkError  # where summaries go
from algorithm.aggregate import aggregate_document_score  # document-level score
from algorithm.suspicion_engine import SuspicionScorer  # per-batch scoring
from dashboard.config import Config, load_config  # settings from env/JSON
from dashboard.store import DocumentStore  # on-disk summaries and documents

# set root logging level high enough so library warnings do not spam the console
logging.basicConfig(level=logging.ERROR)  # only show errors, suppress warnings and info

# silence waitress web server log messages so the console stays clean
logging.getLogger("waitress.queue").setLevel(logging.CRITICAL)  # suppress waitress queue messages
logging.getLogger("waitress").setLevel(logging.CRITICAL)  # suppress all waitress messages


def _colors() -> dict[str, str]:
    # ANSI codes if colorama can enable them (Windows terminals), plain text otherwise
    try:
        from colorama import init as _colorama_init

        _colorama_init()  # enable ANSI color codes on Windows terminals
        return {
            "cyan": "\x1b[36m",
            "green": "\x1b[32m",
            "yellow": "\x1b[33m",
            "red": "\x1b[31m",
            "dim": "\x1b[2m",
            "bold": "\x1b[1m",
            "reset": "\x1b[0m",
        }
    except Exception:  # colorama missing or the terminal refused
        return dict.fromkeys(("cyan", "green", "yellow", "red", "dim", "bold", "reset"), "")


C = _colors()


def print_banner() -> None:
    print(
        f"{C['dim']}┌──────────────────────────────────────────────┐{C['reset']}\n"
        f"{C['dim']}│{C['reset']}{C['cyan']}{C['bold']}        Q u i l l S e n t r y                 {C['reset']}{C['dim']}│{C['reset']}\n"
        f"{C['dim']}│{C['reset']}   provenance checks for typed documents      {C['dim']}│{C['reset']}\n"
        f"{C['dim']}└──────────────────────────────────────────────┘{C['reset']}"
    )


def setup_logging(verbose: bool) -> None:
    # our own loggers get a short console handler, everything else stays at ERROR
    logger = logging.getLogger("quillsentry")
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.propagate = False  # prevent duplicate messages through the root logger


def _score_color(percent: int) -> str:
    if percent >= 50:
        return C["red"]
    if percent >= 20:
        return C["yellow"]
    return C["green"]


def _make_store(cfg: Config) -> DocumentStore:
    return DocumentStore(cfg.summaries_path, cfg.documents_path)


def _make_sink(cfg: Config, store: DocumentStore) -> Sink:
    if cfg.sink == "http":
        return HttpSink(cfg.ingest_url, timeout=cfg.http_timeout_sec)
    return LocalSink(store)


def _read_notifications(path: Path) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError as exc:
                logging.getLogger("quillsentry.replay").warning("skipping unreadable notification line: %s", exc)
    return rows


def cmd_serve(cfg: Config) -> int:
    from dashboard.app import run_dashboard

    print(f"  ingest service on {C['cyan']}http://{cfg.host}:{cfg.port}{C['reset']}  (Ctrl+C to quit)")
    run_dashboard(cfg)
    return 0


def cmd_replay(cfg: Config, path: Path, document_id: str) -> int:
    store = _make_store(cfg)
    doc = store.get_document(document_id)
    session = EditSession(
        document_id=document_id,
        sink=_make_sink(cfg, store),
        scorer=SuspicionScorer(str(cfg.scorer_weights_path)),
        initial_text=(doc or {}).get("content") or "",
        title=(doc or {}).get("title") or "",
        interval_sec=cfg.flush_interval_sec,
        termination_timeout_sec=cfg.termination_timeout_sec,
    )
    notifications = _read_notifications(path)
    with session:
        for n in notifications:
            session.notify(n)
        try:
            result = session.save()
        except (FlushError, SinkError) as exc:
            print(f"{C['red']}save failed: {exc}{C['reset']}")
            return 1

    print(f"  replayed {len(notifications)} notifications, flushed {result.event_count} events")
    return cmd_score(cfg, document_id, store=store)


def cmd_score(cfg: Config, document_id: str, store: DocumentStore | None = None) -> int:
    store = store or _make_store(cfg)
    doc = store.get_document(document_id)
    if doc is None:
        print(f"{C['red']}no such document: {document_id}{C['reset']}")
        return 1
    score = aggregate_document_score(store.summaries_for(document_id), len(doc.get("content") or ""))
    color = _score_color(score.score_percent)
    print(
        f"  {doc.get('title') or 'Untitled'}: {color}{C['bold']}{score.score_percent}%{C['reset']} suspicious "
        f"{C['dim']}(log ratio {score.log_ratio:.2f}, char ratio {score.char_ratio:.2f}){C['reset']}"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quillsentry", description="Edit provenance telemetry and scoring")
    parser.add_argument("-v", "--verbose", action="store_true", help="log flushes and soft failures")
    parser.add_argument("--no-banner", action="store_true", help="skip the banner")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("serve", help="Run the ingest and listing service")

    replay = sub.add_parser("replay", help="Replay recorded editor notifications into a document")
    replay.add_argument("input", help="JSONL file with one raw notification per line")
    replay.add_argument("--document", required=True, help="Document id the session edits")

    score = sub.add_parser("score", help="Print a document's suspicion score")
    score.add_argument("document", help="Document id")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    if not args.no_banner:
        print_banner()

    cfg = load_config()
    if args.command == "serve":
        return cmd_serve(cfg)
    if args.command == "replay":
        return cmd_replay(cfg, Path(args.input), args.document)
    if args.command == "score":
        return cmd_score(cfg, args.document)
    return 2


if __name__ == "__main__":
    sys.exit(main())
