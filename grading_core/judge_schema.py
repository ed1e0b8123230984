"""Validation of judge output before it can affect a grade.

The judge payload is treated as untrusted input: structure is checked, ids we
did not ask about are dropped, statuses are normalized, strings are capped and
earned points are recomputed from the status. A structurally invalid payload
yields ``ok=False`` and no results at all.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional
import math

from .config import EVIDENCE_MAX_ITEMS, EVIDENCE_MAX_LEN, RATIONALE_MAX_LEN
from .text import normalize_text, round_to
from .types import Criterion, JudgeStatus, JudgeValidation, Judgment, RawJudgment

_STATUS_ALIASES: Dict[str, JudgeStatus] = {
    "met": JudgeStatus.MET,
    "yes": JudgeStatus.MET,
    "missed": JudgeStatus.NOT_MET,
    "not met": JudgeStatus.NOT_MET,
    "no": JudgeStatus.NOT_MET,
    "partial": JudgeStatus.PARTIALLY_MET,
    "partially met": JudgeStatus.PARTIALLY_MET,
}


def normalize_status(raw: Any) -> Optional[JudgeStatus]:
    # normalize_text turns "not_met" into "not met"
    return _STATUS_ALIASES.get(normalize_text(raw))


def _finite(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _string_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [s for s in (str(v if v is not None else "").strip() for v in value) if s]
    s = str(value).strip()
    return [s] if s else []


def cap_strings(items: Iterable[str], max_items: int = EVIDENCE_MAX_ITEMS, max_len: int = EVIDENCE_MAX_LEN) -> List[str]:
    out = []
    for s in list(items)[:max_items]:
        s = str(s or "").strip()
        if s:
            out.append(s[:max_len])
    return out


def cap_string(value: Any, max_len: int = RATIONALE_MAX_LEN) -> str:
    return str(value if value is not None else "").strip()[:max_len]


def consistent_points(status: JudgeStatus, proposed: Any, max_points: float) -> float:
    """
    Earned points implied by the status; the judge's number only matters
    for partial credit, which is kept strictly inside (0, max).
    """
    if status is JudgeStatus.MET:
        earned = max_points
    elif status is JudgeStatus.NOT_MET:
        earned = 0.0
    elif status is JudgeStatus.PARTIALLY_MET:
        num = _finite(proposed)
        earned = num if num is not None else (max_points / 2 if max_points > 0 else 0.0)
        earned = _clamp(earned, 0.0, max_points)
        if max_points > 0 and (earned == 0 or earned == max_points):
            earned = max_points / 2
    else:
        raise ValueError(f"unhandled judge status: {status!r}")
    return round_to(_clamp(earned, 0.0, max_points), 2)


def validate_judge_output(raw: RawJudgment | None, criteria: Iterable[Criterion]) -> JudgeValidation:
    errors: List[str] = []
    results: Dict[str, Judgment] = {}
    max_by_id = {c.id: c.points for c in criteria if c.id}

    payload = raw.payload if isinstance(raw, RawJudgment) else None
    if not isinstance(payload, Mapping):
        return JudgeValidation(False, {}, ["judge output is not a JSON object"])
    rows = payload.get("results")
    if not isinstance(rows, list):
        return JudgeValidation(False, {}, ["judge output missing results[] array"])

    for row in rows:
        if not isinstance(row, Mapping):
            errors.append("non-object result row ignored")
            continue
        cid = str(row.get("id") or "").strip()
        if not cid:
            continue
        if cid not in max_by_id:
            errors.append(f"unknown criterion id ignored: {cid}")
            continue

        status = normalize_status(row.get("status"))
        if status is None:
            errors.append(f"invalid status for {cid}")
            continue

        if cid in results:
            errors.append(f"duplicate result for {cid}; last row wins")

        max_points = float(max_by_id[cid])
        results[cid] = Judgment(
            status=status,
            earned_points=consistent_points(status, row.get("earned_points"), max_points),
            evidence=tuple(cap_strings(_string_list(row.get("evidence")))),
            rationale=cap_string(row.get("rationale")),
        )

    return JudgeValidation(ok=len(results) > 0, results=results, errors=errors)
