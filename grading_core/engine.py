# grading_core/engine.py
from __future__ import annotations
from typing import Any, List, Mapping, Optional, Sequence
import logging

from . import config
from .aggregate import missed_by_tag, point_totals, summarize_sections
from .audit_rubric import log_rubric_warnings
from .criteria import evaluate_criterion
from .legacy import grade_without_rubric
from .llm_bridge import JudgeFn, request_judgments
from .rubrics import expand_criteria
from .sources import normalize_supplemental_inputs
from .text import as_number, round_to
from .types import CriterionResult, CriterionStatus, GradingResult, Message, Section

log = logging.getLogger(__name__)


def has_rubric(grading: Mapping[str, Any] | None) -> bool:
    rubric = (grading or {}).get("rubric") or {}
    return bool(rubric.get("criteria")) or bool(rubric.get("common_criteria"))


def _passing_score(grading: Mapping[str, Any]) -> float:
    """Rubric value, then the legacy scoring block, then the configured default."""
    rubric = grading.get("rubric") or {}
    scoring = grading.get("scoring") or {}
    for candidate in (rubric.get("passing_score"), scoring.get("passing_score")):
        if candidate is None or isinstance(candidate, bool):
            continue
        try:
            return as_number(float(candidate))
        except (TypeError, ValueError):
            log.warning("ignoring non-numeric passing_score %r", candidate)
    return as_number(config.DEFAULT_PASSING_SCORE)


def _score(earned: float, available: float) -> int:
    if available <= 0:
        return 0
    return int(round_to(100.0 * earned / available, 0))


def _feedback(score: int, passing: float, totals: Mapping[str, float], results: Sequence[CriterionResult],
              missed_required: List[str], missed_red: List[str], critical: List[str]) -> str:
    parts = [
        f"Rubric score: {score}% ({totals['earned_points']:g}/{totals['available_points']:g} available points).",
        f"Passing threshold: {passing:g}%.",
    ]
    if totals["omitted_points"] > 0:
        parts.append(f"Omitted criteria points removed from denominator: {totals['omitted_points']:g}.")
    scored = [r for r in results if r.status is not CriterionStatus.OMITTED]
    met = sum(1 for r in scored if r.status is not CriterionStatus.MISSED)
    parts.append(f"Criteria met: {met}/{len(scored)}.")
    if missed_required:
        parts.append(f"Missed required history items: {', '.join(missed_required)}.")
    if missed_red:
        parts.append(f"Missed red flags: {', '.join(missed_red)}.")
    if critical:
        parts.append(f"Critical fails: {', '.join(critical)}.")
    return " ".join(parts)


def grade_with_rubric(
    case_data: Mapping[str, Any] | None,
    grading: Mapping[str, Any],
    conversation: Sequence[Message],
    supplemental: Mapping[str, str],
    judge: Optional[JudgeFn] = None,
) -> GradingResult:
    case_id = str((case_data or {}).get("case_id") or "unknown")
    rubric = grading.get("rubric") or {}
    log_rubric_warnings(grading, case_id)

    criteria = expand_criteria(rubric)
    raw_sections = rubric.get("sections") if isinstance(rubric.get("sections"), list) else []
    sections = [Section.from_dict(s) for s in raw_sections if isinstance(s, Mapping)]

    judgments = request_judgments(case_data, criteria, conversation, supplemental, judge=judge)
    results = [evaluate_criterion(conversation, c, judgments, supplemental) for c in criteria]

    raw_totals = point_totals(results)
    total = round_to(raw_totals["total_points"])
    available = round_to(raw_totals["available_points"])
    totals = {
        "earned_points": round_to(raw_totals["earned_points"]),
        "available_points": available,
        "total_points": total,
        "omitted_points": round_to(total - available),
    }

    score = _score(raw_totals["earned_points"], raw_totals["available_points"])
    passing = _passing_score(grading)
    missed_required = missed_by_tag(results, config.TAG_REQUIRED_HISTORY)
    missed_red = missed_by_tag(results, config.TAG_RED_FLAG)
    critical = missed_by_tag(results, config.TAG_CRITICAL_FAIL)

    log.info("graded case %s: score=%s earned=%s/%s judged=%d/%d",
             case_id, score, totals["earned_points"], totals["available_points"],
             len(judgments), sum(1 for c in criteria if c.judge_eligible))

    return GradingResult(
        score=score,
        passing_score=passing,
        passed=score >= passing,
        earned_points=totals["earned_points"],
        available_points=totals["available_points"],
        total_points=totals["total_points"],
        omitted_points=totals["omitted_points"],
        section_scores=summarize_sections(sections, results),
        criteria_results=results,
        missed_required_questions=missed_required,
        missed_red_flags=missed_red,
        critical_fails_triggered=critical,
        feedback=_feedback(score, passing, totals, results, missed_required, missed_red, critical),
    )


def grade_conversation(
    case_data: Mapping[str, Any] | None,
    grading: Mapping[str, Any] | None,
    conversation: Any,
    supplemental_inputs: Any = None,
    judge: Optional[JudgeFn] = None,
) -> GradingResult:
    """
    Grade one frozen conversation.

    Uses the structured rubric when the grading config declares criteria or
    common criteria, otherwise the legacy keyword checklist. ``judge`` is an
    optional ``(system_prompt, user_prompt) -> str`` transport; by default
    the configured backend is used. Judge problems never raise: they degrade
    to rule fallback or ``missed``.
    """
    grading = grading or {}
    messages = Message.coerce_all(conversation)
    supplemental = normalize_supplemental_inputs(supplemental_inputs)

    if has_rubric(grading):
        return grade_with_rubric(case_data, grading, messages, supplemental, judge=judge)
    return grade_without_rubric(case_data, grading, messages)
