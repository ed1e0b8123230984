from __future__ import annotations
from typing import Any, Dict, List, Mapping, Sequence

from . import config
from .sources import collect_text
from .text import as_number, includes_any, keywords_from_phrase, normalize_keywords, normalize_text
from .types import GradingResult, Message


def _override_map(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, Mapping):
        return {}
    return {normalize_text(k): v for k, v in raw.items()}


def matches_item(text: str, item: Any, overrides: Mapping[str, Any]) -> bool:
    """Case keywords win over words pulled from the item phrase itself."""
    custom = normalize_keywords(overrides.get(normalize_text(item)))
    keywords = custom or keywords_from_phrase(item)
    return bool(keywords) and includes_any(text, keywords)


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _str_list(value: Any) -> List[str]:
    return [str(v) for v in value if v] if isinstance(value, (list, tuple)) else []


def grade_without_rubric(
    case_data: Mapping[str, Any] | None,
    grading: Mapping[str, Any],
    conversation: Sequence[Message],
) -> GradingResult:
    overrides = grading.get("keyword_overrides") or {}
    history_ov = _override_map(overrides.get("history_topics"))
    action_ov = _override_map(overrides.get("actions"))
    red_flag_ov = _override_map(overrides.get("red_flags"))
    critical_ov = _override_map(overrides.get("critical_fails"))

    topics = _str_list(grading.get("required_history_topics"))
    actions = _str_list(grading.get("required_actions"))
    critical_fails = _str_list(grading.get("critical_fails"))
    hidden = (case_data or {}).get("hidden_truth") or {}
    red_flags = _str_list(hidden.get("red_flags") if isinstance(hidden, Mapping) else None)

    text = collect_text(conversation, "user")

    missed_topics = [t for t in topics if not matches_item(text, t, history_ov)]
    covered_topics = len(topics) - len(missed_topics)
    covered_actions = sum(1 for a in actions if matches_item(text, a, action_ov))
    missed_red_flags = [f for f in red_flags if not matches_item(text, f, red_flag_ov)]
    # a critical-fail item is something the student had to do; not doing it triggers it
    triggered = [c for c in critical_fails if not matches_item(text, c, critical_ov)]

    scoring = grading.get("scoring") or {}
    score = (covered_topics * _num(scoring.get("history_topic_points"))
             + covered_actions * _num(scoring.get("action_points"))
             - len(triggered) * _num(scoring.get("critical_fail_penalty")))
    score = as_number(max(0.0, min(100.0, score)))

    passing = as_number(_num(scoring.get("passing_score")) or config.DEFAULT_PASSING_SCORE)
    passed = score >= passing

    parts = [
        f"Legacy checklist score: {score:g}%",
        f"Passing threshold: {passing:g}%.",
        f"History topics covered: {covered_topics}/{len(topics)}.",
        f"Actions covered: {covered_actions}/{len(actions)}.",
    ]
    if missed_topics:
        parts.append(f"Missed history topics: {', '.join(missed_topics)}.")
    if missed_red_flags:
        parts.append(f"Missed red flags: {', '.join(missed_red_flags)}.")
    if triggered:
        parts.append(f"Critical fails: {', '.join(triggered)}.")

    return GradingResult(
        score=score,
        passing_score=passing,
        passed=passed,
        earned_points=None,
        available_points=None,
        total_points=None,
        omitted_points=0,
        missed_required_questions=missed_topics,
        missed_red_flags=missed_red_flags,
        critical_fails_triggered=triggered,
        feedback=" ".join(parts),
    )
