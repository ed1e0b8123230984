from __future__ import annotations

import json

import pytest

from grading_core import config


def build_rubric(
    *,
    criteria: list[dict] | None = None,
    common: list | None = None,
    sections: list[dict] | None = None,
    passing_score: float | None = 50,
) -> dict:
    """Create a grading config with a structured rubric for tests."""

    rubric: dict = {
        "sections": sections if sections is not None else [
            {"id": "history", "label": "History", "max_points": 4},
            {"id": "professional", "label": "Professionalism", "max_points": 4},
        ],
        "criteria": criteria or [],
    }
    if common is not None:
        rubric["common_criteria"] = common
    if passing_score is not None:
        rubric["passing_score"] = passing_score
    return {"rubric": rubric}


def convo(*turns: tuple[str, str]) -> list[dict]:
    return [{"role": role, "content": content} for role, content in turns]


class FakeJudge:
    """Stands in for the external judge; records every prompt it receives."""

    def __init__(self, payload=None, *, raw: str | None = None, error: Exception | None = None):
        self.payload = payload
        self.raw = raw
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def __call__(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        if self.raw is not None:
            return self.raw
        return json.dumps(self.payload)


@pytest.fixture(autouse=True)
def _offline_judge(monkeypatch):
    # no test may reach a real backend
    monkeypatch.setattr(config, "GRADING_LLM_DISABLED", True)
    monkeypatch.setattr(config, "JUDGE_LOG_PATH", None)
    monkeypatch.delenv("LLM_BACKEND", raising=False)


@pytest.fixture
def history_conversation() -> list[dict]:
    return convo(
        ("user", "Hi, my name is Sam and I am a nurse practitioner student."),
        ("assistant", "Hello."),
        ("user", "What brings you in today?"),
        ("assistant", "I have had a fever and chills since Monday."),
        ("user", "Do you have any fever? When did it start and how severe is the pain?"),
        ("assistant", "It started three days ago. I deny any chest pain."),
    )
