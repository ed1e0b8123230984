from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from . import config
from .rubrics import expand_criteria_dicts
from .text import normalize_tag, round_to

log = logging.getLogger(__name__)


@dataclass
class RubricAudit:
    warnings: List[str] = field(default_factory=list)
    section_summary: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    disabled_criteria: List[Dict[str, Any]] = field(default_factory=list)
    totals: Dict[str, float] = field(default_factory=dict)


def _num(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _blank_section(label: str, max_points: float = 0.0) -> Dict[str, Any]:
    return {
        "label": label,
        "max_points": max_points,
        "enabled_points": 0.0,
        "omitted_points": 0.0,
        "total_points": 0.0,
        "criteria_count": 0,
        "enabled_count": 0,
        "omitted_count": 0,
    }


def audit_rubric(grading: Mapping[str, Any] | None) -> RubricAudit:
    """Static checks over a grading config; nothing here blocks grading."""
    rubric = (grading or {}).get("rubric") or {}
    sections = rubric.get("sections") if isinstance(rubric.get("sections"), list) else []

    audit = RubricAudit()
    summary = audit.section_summary
    for s in sections:
        if isinstance(s, Mapping) and s.get("id"):
            sid = str(s["id"])
            summary[sid] = _blank_section(str(s.get("label") or sid), _num(s.get("max_points")))
    known = set(summary)

    seen_ids: set[str] = set()
    for c in expand_criteria_dicts(rubric):
        cid = str(c.get("id") or "").strip()
        section = str(c.get("section") or "").strip()
        points = _num(c.get("points"))
        enabled = c.get("enabled") is not False

        if not cid:
            audit.warnings.append("A criterion is missing id.")
            continue
        if cid in seen_ids:
            audit.warnings.append(f'Criterion "{cid}" is declared more than once.')
        seen_ids.add(cid)
        if not section:
            audit.warnings.append(f'Criterion "{cid}" is missing section.')
            continue
        if points < 0:
            audit.warnings.append(f'Criterion "{cid}" has negative points ({points:g}).')
        if section not in known:
            audit.warnings.append(f'Criterion "{cid}" uses unknown section "{section}".')
        for tag in c.get("tags") or []:
            if normalize_tag(tag) not in config.KNOWN_TAGS:
                audit.warnings.append(f'Criterion "{cid}" has unrecognized tag "{tag}".')

        bucket = summary.setdefault(section, _blank_section(section))
        bucket["criteria_count"] += 1
        bucket["total_points"] += points
        if enabled:
            bucket["enabled_count"] += 1
            bucket["enabled_points"] += points
        else:
            bucket["omitted_count"] += 1
            bucket["omitted_points"] += points
            reason = str(c.get("omit_reason") or "").strip()
            audit.disabled_criteria.append({"id": cid, "section": section, "points": points, "omit_reason": reason})
            if not reason:
                audit.warnings.append(f'Disabled criterion "{cid}" is missing omit_reason.')

    for sid, stats in summary.items():
        smax = stats["max_points"]
        if smax > 0 and abs(stats["enabled_points"] - smax) > 1e-4:
            audit.warnings.append(
                f'Section "{sid}" enabled points ({round_to(stats["enabled_points"]):g}) '
                f'do not match max_points ({round_to(smax):g}).'
            )

    totals = {"max_points": 0.0, "enabled_points": 0.0, "omitted_points": 0.0, "total_points": 0.0}
    for stats in summary.values():
        for k in totals:
            totals[k] += stats[k]
        for k in ("max_points", "enabled_points", "omitted_points", "total_points"):
            stats[k] = round_to(stats[k])
    audit.totals = {k: round_to(v) for k, v in totals.items()}
    return audit


def log_rubric_warnings(grading: Mapping[str, Any] | None, case_id: str = "unknown") -> RubricAudit:
    audit = audit_rubric(grading)
    for w in audit.warnings:
        log.warning("rubric %s: %s", case_id, w)
    return audit


__all__ = ["RubricAudit", "audit_rubric", "log_rubric_warnings"]
