from __future__ import annotations

from grading_core.criteria import evaluate_criterion
from grading_core.types import (
    Criterion, CriterionStatus, EvalMode, JudgeStatus, Judgment, Message, Rule,
)

from tests.conftest import convo

MESSAGES = Message.coerce_all(convo(
    ("user", "Do you have a fever or chills?"),
    ("assistant", "No, the patient denies fever."),
))


def _crit(mode: EvalMode, **kw) -> Criterion:
    base = dict(id="c1", section="history", label="Asks about fever", points=2, mode=mode,
                fallback_rule=Rule(any=["fever"]), tags=["required_history"])
    base.update(kw)
    return Criterion(**base)


def _met(*evidence: str, status=JudgeStatus.MET, earned=2.0) -> dict:
    return {"c1": Judgment(status=status, earned_points=earned, evidence=tuple(evidence), rationale="ok")}


def test_disabled_criterion_is_omitted():
    r = evaluate_criterion(MESSAGES, _crit(EvalMode.LLM, enabled=False), _met("do you have a fever"))
    assert r.status is CriterionStatus.OMITTED
    assert r.earned_points == 0
    assert r.omit_reason == "Marked not applicable for this case"


def test_rule_mode_uses_fallback_rule_first():
    c = _crit(EvalMode.RULE, rule=Rule(any=["headache"]), fallback_rule=Rule(any=["chills"]))
    r = evaluate_criterion(MESSAGES, c, {})
    assert r.status is CriterionStatus.MET and r.earned_points == 2
    assert r.evidence == ["chills"]

    r = evaluate_criterion(MESSAGES, _crit(EvalMode.RULE, fallback_rule=None, rule=Rule(any=["headache"])), {})
    assert r.status is CriterionStatus.MISSED and r.earned_points == 0


def test_llm_mode_accepts_verified_judgment():
    r = evaluate_criterion(MESSAGES, _crit(EvalMode.LLM), _met("Do you have a fever"))
    assert r.status is CriterionStatus.MET
    assert r.earned_points == 2
    assert r.evidence == ["Do you have a fever"]
    assert r.rationale == "ok"


def test_llm_mode_partial_and_not_met_pass_through():
    r = evaluate_criterion(MESSAGES, _crit(EvalMode.LLM), _met("fever or chills", status=JudgeStatus.PARTIALLY_MET, earned=1))
    assert r.status is CriterionStatus.PARTIALLY_MET and r.earned_points == 1

    r = evaluate_criterion(MESSAGES, _crit(EvalMode.LLM), _met(status=JudgeStatus.NOT_MET, earned=0))
    assert r.status is CriterionStatus.MISSED and r.earned_points == 0


def test_llm_mode_missing_result_is_missed():
    r = evaluate_criterion(MESSAGES, _crit(EvalMode.LLM), {})
    assert r.status is CriterionStatus.MISSED
    assert r.rationale == "Judge missing result."


def test_patient_quote_on_student_criterion_is_rejected():
    judged = _met("patient denies fever")
    r = evaluate_criterion(MESSAGES, _crit(EvalMode.LLM), judged)
    assert r.status is CriterionStatus.MISSED and r.earned_points == 0
    assert r.rationale == "no evidence quotes found in criterion source text"

    r = evaluate_criterion(MESSAGES, _crit(EvalMode.LLM_OR_RULE), judged)
    assert r.status is CriterionStatus.MET and r.earned_points == 2
    assert r.rationale == "Fallback rule used (no evidence quotes found in criterion source text)."


def test_llm_or_rule_falls_back_when_judge_is_silent():
    r = evaluate_criterion(MESSAGES, _crit(EvalMode.LLM_OR_RULE, fallback_rule=Rule(all=["headache"])), {})
    assert r.status is CriterionStatus.MISSED
    assert r.rationale == "Fallback rule used (judge missing result)."


def test_assistant_scoped_criterion_reads_patient_text():
    c = _crit(EvalMode.LLM, source="assistant")
    r = evaluate_criterion(MESSAGES, c, _met("the patient denies fever"))
    assert r.status is CriterionStatus.MET


def test_supplemental_source_is_used_for_named_inputs():
    c = _crit(EvalMode.RULE, source="hpi", fallback_rule=Rule(all=["fever", "three days"]))
    r = evaluate_criterion(MESSAGES, c, {}, {"hpi": "Fever for three days."})
    assert r.status is CriterionStatus.MET
