from __future__ import annotations

from grading_core.rules import evaluate_rule
from grading_core.text import normalize_tag, normalize_text, round_to
from grading_core.types import Rule


def test_normalize_text_strips_punctuation_and_collapses_whitespace():
    assert normalize_text("  Fever,   CHILLS!\n\tnight-sweats ") == "fever chills night sweats"
    assert normalize_text(None) == ""
    assert normalize_text(42) == "42"
    assert normalize_tag("Red Flag") == "red_flag"
    assert normalize_tag("required_history") == "required_history"


def test_round_to_is_half_up():
    assert round_to(0.125, 2) == 0.13
    assert round_to(2.5, 0) == 3.0
    assert round_to(1 / 3, 2) == 0.33


def test_all_rule_requires_every_keyword():
    rule = Rule(all=["fever", "chills"])
    hit = evaluate_rule(normalize_text("Patient reports fever and chills"), rule)
    assert hit.matched and hit.evidence == ["fever", "chills"]

    miss = evaluate_rule(normalize_text("Patient reports fever"), rule)
    assert not miss.matched and miss.evidence == []


def test_any_rule_keeps_at_most_three_hits_as_evidence():
    text = normalize_text("cough, fever, chills, nausea and rash")
    m = evaluate_rule(text, Rule(any=["cough", "fever", "chills", "nausea", "rash"]))
    assert m.matched
    assert m.evidence == ["cough", "fever", "chills"]
    assert not evaluate_rule(text, Rule(any=["headache"])).matched


def test_keywords_are_matched_case_and_punctuation_insensitive():
    m = evaluate_rule(normalize_text("WHEN did it START?"), Rule(any=["When did it start?"]))
    assert m.matched and m.evidence == ["when did it start"]


def test_groups_require_every_group_without_threshold():
    rule = Rule(groups=[["when did", "onset"], ["how severe", "scale of"]])
    assert evaluate_rule(normalize_text("When did the pain begin? How severe is it?"), rule).matched
    assert not evaluate_rule(normalize_text("When did the pain begin?"), rule).matched


def test_groups_threshold_counts_matched_groups():
    rule = Rule(groups=[["onset"], ["severity"], ["radiate"]], min_groups_matched=2)
    m = evaluate_rule("onset and severity", rule)
    assert m.matched and m.evidence == ["onset", "severity"]
    assert not evaluate_rule("onset only", rule).matched


def test_empty_rule_fails_closed():
    assert not evaluate_rule("anything at all", Rule()).matched
    assert not evaluate_rule("anything at all", None).matched
    assert not evaluate_rule("anything", Rule(any=["", "  !! "])).matched


def test_evidence_is_deduplicated_and_capped_at_five():
    text = "a1 b2 c3 d4 e5 f6"
    rule = Rule(all=["a1", "b2"], any=["a1", "c3", "d4"], groups=[["e5"], ["f6"]])
    m = evaluate_rule(text, rule)
    assert m.matched
    assert m.evidence == ["a1", "b2", "c3", "d4", "e5"]


def test_bare_string_groups_are_single_keyword_groups():
    rule = Rule.from_dict({"groups": ["fever", ["chills", "rigors"]]})
    assert rule.groups == [["fever"], ["chills", "rigors"]]
    assert evaluate_rule(normalize_text("Any fever or rigors?"), rule).matched
    assert not evaluate_rule(normalize_text("Any fever?"), rule).matched
