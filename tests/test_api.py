from __future__ import annotations

import importlib
import sys

import pytest
from fastapi.testclient import TestClient

from tests.conftest import build_rubric, convo


def _reload_app(tmp_path, monkeypatch) -> tuple[object, object]:
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    if "api.storage" in sys.modules:
        importlib.reload(sys.modules["api.storage"])
    else:
        import api.storage  # noqa: F401
    storage = sys.modules["api.storage"]
    if "api.app" in sys.modules:
        importlib.reload(sys.modules["api.app"])
    else:
        import api.app  # noqa: F401
    app_module = sys.modules["api.app"]
    return storage, app_module


def _request(submission_id: str = "sub-1") -> dict:
    return {
        "submission_id": submission_id,
        "case": {"case_id": "fever_case"},
        "grading": build_rubric(
            sections=[{"id": "history", "label": "History", "max_points": 2}],
            criteria=[{"id": "fever", "section": "history", "label": "Asks about fever", "points": 2,
                       "rule": {"all": ["fever"]}, "tags": ["required_history"]}],
        ),
        "conversation": convo(("user", "Have you had a fever?"), ("assistant", "Yes.")),
    }


def test_grade_is_idempotent_per_submission(tmp_path, monkeypatch):
    storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    first = client.post("/grade", json=_request())
    assert first.status_code == 200
    body = first.json()
    assert body["already_graded"] is False
    assert body["result"]["score"] == 100
    assert body["result"]["can_unlock_next_case"] is True
    assert (storage.RESULTS_DIR / "sub-1.json").exists()

    def _must_not_regrade(*args, **kwargs):
        raise AssertionError("submission graded twice")

    monkeypatch.setattr(app_module, "grade_conversation", _must_not_regrade)
    again = _request()
    again["conversation"] = convo(("user", "Hello."))
    second = client.post("/grade", json=again)
    assert second.status_code == 200
    assert second.json()["already_graded"] is True
    assert second.json()["result"] == body["result"]

    fetched = client.get("/grade/sub-1")
    assert fetched.status_code == 200
    assert fetched.json()["result"] == body["result"]


def test_case_index_and_missing_results(tmp_path, monkeypatch):
    _, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    assert client.get("/grade/nope").status_code == 404
    client.post("/grade", json=_request("sub-a"))
    client.post("/grade", json=_request("sub-b"))
    rows = client.get("/cases/fever_case/results").json()["results"]
    assert {r["id"] for r in rows} == {"sub-a", "sub-b"}
    assert all(r["score"] == 100 and r["passed"] is True for r in rows)


def test_grade_requires_grading_config(tmp_path, monkeypatch):
    _, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)
    req = _request("sub-empty")
    req["grading"] = {}
    assert client.post("/grade", json=req).status_code == 400
    assert client.get("/").json()["status"] == "ok"


def test_ids_that_would_share_a_file_are_refused(tmp_path, monkeypatch):
    storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    unsafe = _request("student a/1")
    assert client.post("/grade", json=unsafe).status_code == 422
    assert client.post("/grade", json=_request("sub-1\n")).status_code == 422

    fresh = _request("student_a_1")
    fresh["conversation"] = convo(("user", "Hello."))
    resp = client.post("/grade", json=fresh)
    assert resp.status_code == 200
    assert resp.json()["already_graded"] is False
    assert resp.json()["result"]["score"] == 0

    with pytest.raises(ValueError):
        storage.load_result("student a/1")
