from __future__ import annotations
from typing import Dict, List, Sequence

from .text import normalize_tag, round_to
from .types import CriterionResult, CriterionStatus, Section, SectionScore

_TAG_MISS_STATUSES = (CriterionStatus.MISSED, CriterionStatus.PARTIALLY_MET)


def summarize_sections(sections: Sequence[Section], results: Sequence[CriterionResult]) -> List[SectionScore]:
    """Declared sections first (in rubric order), then ad-hoc ids found on criteria."""
    by_id: Dict[str, SectionScore] = {}
    for s in sections:
        if s.id and s.id not in by_id:
            by_id[s.id] = SectionScore(section=s.id, label=s.label or s.id)

    for r in results:
        key = r.section or "other"
        if key not in by_id:
            by_id[key] = SectionScore(section=key, label=key)
        bucket = by_id[key]
        bucket.total_points += r.points
        if r.status is not CriterionStatus.OMITTED:
            bucket.available_points += r.points
            bucket.earned_points += r.earned_points

    return [
        SectionScore(
            section=s.section,
            label=s.label,
            earned_points=round_to(s.earned_points),
            available_points=round_to(s.available_points),
            total_points=round_to(s.total_points),
        )
        for s in by_id.values()
    ]


def missed_by_tag(results: Sequence[CriterionResult], tag: str) -> List[str]:
    # partial credit still counts as missed for the tag lists
    t = normalize_tag(tag)
    return [r.label for r in results if r.status in _TAG_MISS_STATUSES and t in r.tags]


def point_totals(results: Sequence[CriterionResult]) -> Dict[str, float]:
    total = sum(r.points for r in results)
    available = sum(r.points for r in results if r.status is not CriterionStatus.OMITTED)
    earned = sum(r.earned_points for r in results)
    return {
        "earned_points": earned,
        "available_points": available,
        "total_points": total,
        "omitted_points": total - available,
    }
