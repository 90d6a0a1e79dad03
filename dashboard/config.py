"""
goal: settings for QuillSentry sessions, the ingest service and the launcher. values come from QUILLSENTRY_*
environment variables first, then data/config.json under the base directory, then the built-in defaults.
a PyInstaller build looks for its data next to the executable.
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# pick up a local .env before any QUILLSENTRY_* lookup
try:
    from dotenv import load_dotenv

    load_dotenv()
except ImportError:
    pass  # python-dotenv is optional, plain environment variables still work

ENV_PREFIX = "QUILLSENTRY_"


def _resolve_base_dir() -> Path:
    # bundled executable: data sits beside the .exe
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    # source checkout: the directory holding dashboard/
    return Path(__file__).resolve().parents[1]


@dataclass(frozen=True)
class Config:
    base_dir: Path  # everything relative below is resolved against this
    summaries_path: Path  # append-only JSON lines of suspicion summaries
    documents_path: Path  # documents JSON file
    scorer_weights_path: Path  # optional weights for the suspicion scorer
    flush_interval_sec: float  # seconds between periodic flushes
    termination_timeout_sec: float  # max seconds to wait for the final flush on close
    sink: str  # "local" writes to the store directly, "http" posts to the ingest service
    ingest_url: str  # ingest service root used by the http sink
    http_timeout_sec: float  # per-request timeout for the http sink
    host: str  # ingest service bind address
    port: int  # ingest service port


def _coerce(raw: str, default: Any) -> Any:
    # env values are strings; numeric settings keep their type or fall back to the default
    if isinstance(default, (int, float)) and not isinstance(default, bool):
        try:
            return type(default)(raw)
        except ValueError:
            return default
    return raw


def _get(obj: dict, key: str, default):
    """QUILLSENTRY_<KEY> wins over the JSON value, which wins over the default."""
    raw = os.getenv(f"{ENV_PREFIX}{key.upper()}")
    if raw is not None:
        return _coerce(raw, default)
    return obj.get(key, default)


def _read_json_settings(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, ValueError):
        return {}  # a broken file means defaults, not a crash at startup
    return data if isinstance(data, dict) else {}


def load_config() -> Config:
    base = Path(os.getenv(f"{ENV_PREFIX}BASE_DIR") or _resolve_base_dir())
    settings = _read_json_settings(base / "data" / "config.json")

    host = _get(settings, "host", "127.0.0.1")
    port = _get(settings, "port", 8766)
    sink = str(_get(settings, "sink", "local")).lower()
    if sink not in ("local", "http"):
        sink = "local"

    return Config(
        base_dir=base,
        summaries_path=base / _get(settings, "summaries_path", "data/summaries.jsonl"),
        documents_path=base / _get(settings, "documents_path", "data/documents.json"),
        scorer_weights_path=base / _get(settings, "scorer_weights_path", "data/scorer_weights.json"),
        flush_interval_sec=_get(settings, "flush_interval_sec", 5.0),
        termination_timeout_sec=_get(settings, "termination_timeout_sec", 0.5),
        sink=sink,
        ingest_url=_get(settings, "ingest_url", f"http://{host}:{port}"),
        http_timeout_sec=_get(settings, "http_timeout_sec", 5.0),
        host=host,
        port=port,
    )
