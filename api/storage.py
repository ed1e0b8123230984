"""JSON-file persistence for graded submissions.

A submission is graded once; later requests for the same submission id must
get the stored result back unchanged. A database-backed store can replace
this module as long as it keeps that contract.
"""

from __future__ import annotations

import json
import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
RESULTS_DIR = DATA_ROOT / "results"
RESULT_INDEX_PATH = DATA_ROOT / "results_index.json"

_LOCK = threading.Lock()
SUBMISSION_ID_PATTERN = r"^[A-Za-z0-9_.-]{1,128}$"
_SAFE_ID_RX = re.compile(SUBMISSION_ID_PATTERN)


def _ensure_dirs() -> None:
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _result_path(submission_id: str) -> Path:
    # ids map to file names one-to-one; anything else is refused, not rewritten
    if not _SAFE_ID_RX.fullmatch(submission_id):
        raise ValueError(f"unsafe submission id: {submission_id!r}")
    return RESULTS_DIR / f"{submission_id}.json"


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def load_result(submission_id: str) -> Optional[Dict[str, Any]]:
    path = _result_path(submission_id)
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


def save_result_once(submission_id: str, result: Dict[str, Any], metadata: Dict[str, Any]) -> Dict[str, Any]:
    """
    Store ``result`` unless one already exists; return whichever is stored.
    The first writer wins so concurrent duplicate submissions agree.
    """
    _ensure_dirs()
    with _LOCK:
        existing = load_result(submission_id)
        if existing is not None:
            return existing
        _write_json(_result_path(submission_id), result)
        index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
        index[submission_id] = metadata
        _write_json(RESULT_INDEX_PATH, index)
        stored = load_result(submission_id)
    # read back so first and repeat responses serialize identically
    return stored if stored is not None else result


def list_results_for_case(case_id: str) -> list[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
    out = [{"id": sid, **meta} for sid, meta in index.items() if meta.get("caseId") == case_id]
    out.sort(key=lambda r: r.get("gradedAt", ""), reverse=True)
    return out
