from __future__ import annotations
from typing import Mapping, Optional, Sequence
import logging

from .config import DEFAULT_OMIT_REASON
from .evidence import check_evidence
from .rules import evaluate_rule
from .sources import SourceText, collect_source
from .types import (
    Criterion, CriterionResult, CriterionStatus, EvalMode, JudgeStatus, Judgment, Message,
)

log = logging.getLogger(__name__)

_JUDGE_TO_CRITERION = {
    JudgeStatus.MET: CriterionStatus.MET,
    JudgeStatus.PARTIALLY_MET: CriterionStatus.PARTIALLY_MET,
    JudgeStatus.NOT_MET: CriterionStatus.MISSED,
}


def _result(c: Criterion, status: CriterionStatus, earned: float, evidence=None, rationale=None, omit_reason=None) -> CriterionResult:
    return CriterionResult(
        id=c.id,
        section=c.section,
        label=c.label,
        tags=list(c.tags),
        points=c.points,
        earned_points=earned,
        status=status,
        omit_reason=omit_reason,
        evidence=list(evidence or []),
        rationale=rationale,
    )


def _rule_result(c: Criterion, source: SourceText, rationale: Optional[str] = None) -> CriterionResult:
    m = evaluate_rule(source.normalized, c.effective_rule)
    if m.matched:
        return _result(c, CriterionStatus.MET, c.points, m.evidence, rationale)
    return _result(c, CriterionStatus.MISSED, 0.0, m.evidence, rationale)


def evaluate_criterion(
    conversation: Sequence[Message],
    criterion: Criterion,
    judgments: Mapping[str, Judgment],
    supplemental: Mapping[str, str] | None = None,
) -> CriterionResult:
    """Resolve one criterion according to its evaluation mode."""
    c = criterion
    if not c.enabled:
        return _result(c, CriterionStatus.OMITTED, 0.0, omit_reason=c.omit_reason or DEFAULT_OMIT_REASON)

    source = collect_source(conversation, c.source, supplemental)

    if c.mode is EvalMode.RULE:
        return _rule_result(c, source)

    if c.mode is EvalMode.LLM or c.mode is EvalMode.LLM_OR_RULE:
        discard_reason: Optional[str] = None
        judgment = judgments.get(c.id)
        if judgment is not None:
            check = check_evidence(source.raw, judgment)
            if check.ok:
                return _result(
                    c,
                    _JUDGE_TO_CRITERION[judgment.status],
                    judgment.earned_points,
                    check.matched_evidence,
                    judgment.rationale or None,
                )
            discard_reason = check.reason or "evidence/source mismatch"
            log.info("discarding judge result for %s: %s (source %r, kept %s)",
                     c.id, discard_reason, c.source, check.matched_evidence)

        if c.mode is EvalMode.LLM_OR_RULE:
            why = discard_reason or "judge missing result"
            return _rule_result(c, source, f"Fallback rule used ({why}).")
        return _result(c, CriterionStatus.MISSED, 0.0, rationale=discard_reason or "Judge missing result.")

    raise ValueError(f"unhandled evaluation mode: {c.mode!r}")
