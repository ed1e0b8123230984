from __future__ import annotations

import json

from tools import calibrate_rubric

from tests.conftest import build_rubric, convo


def _fixture(lo: float, hi: float) -> dict:
    return {
        "case_id": "fever_case",
        "grading": build_rubric(
            sections=[{"id": "history", "label": "History", "max_points": 2}],
            criteria=[
                {"id": "fever", "section": "history", "label": "Asks about fever", "points": 1,
                 "rule": {"any": ["fever"]}, "tags": ["required_history"]},
                {"id": "travel", "section": "history", "label": "Asks about travel", "points": 1,
                 "rule": {"any": ["travel"]}, "tags": ["required_history"]},
            ],
        ),
        "conversation": convo(("user", "Any fever?"), ("assistant", "Yes.")),
        "expected_min_score": lo,
        "expected_max_score": hi,
    }


def _write(tmp_path, name: str, payload: dict) -> None:
    (tmp_path / f"{name}.json").write_text(json.dumps(payload), encoding="utf-8")


def test_fixtures_in_range_pass(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("GRADING_LLM_DISABLED", "true")
    _write(tmp_path, "partial", _fixture(40, 60))
    assert calibrate_rubric.main([str(tmp_path)]) == 0
    captured = capsys.readouterr()
    assert "Result: ALL PASSED" in captured.out
    assert "Missed history: Asks about travel" in captured.out
    assert "GRADING_LLM_DISABLED" not in captured.err


def test_fixture_out_of_range_fails(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("GRADING_LLM_DISABLED", raising=False)
    _write(tmp_path, "a_ok", _fixture(0, 100))
    _write(tmp_path, "b_too_low", _fixture(90, 100))
    assert calibrate_rubric.main([str(tmp_path)]) == 2
    captured = capsys.readouterr()
    assert "FAIL !!" in captured.out
    assert "GRADING_LLM_DISABLED is not set" in captured.err


def test_fixture_loading_and_empty_dir(tmp_path):
    assert calibrate_rubric.main([str(tmp_path)]) == 1
    _write(tmp_path, "one", _fixture(0, 100))
    fixtures = calibrate_rubric.load_fixtures(tmp_path)
    assert [f["name"] for f in fixtures] == ["one"]
    assert calibrate_rubric.run_fixture(fixtures[0]).score == 50
