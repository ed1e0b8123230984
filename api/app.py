from __future__ import annotations
from fastapi import FastAPI, HTTPException, Path
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import logging, os, typing as t

from grading_core.engine import grade_conversation
from .storage import SUBMISSION_ID_PATTERN, list_results_for_case, load_result, save_result_once, utcnow_iso

log = logging.getLogger(__name__)

app = FastAPI(title="OSCE Rubric Grader API")


@app.get("/")
def root():
    return {"status": "ok", "service": "osce-rubric-grader"}


ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# ---- Schemas ----
class ChatMessage(BaseModel):
    role: str = Field(..., min_length=1)
    content: str = ""

class GradeReq(BaseModel):
    submission_id: str = Field(..., pattern=SUBMISSION_ID_PATTERN)
    case: dict[str, t.Any] = Field(default_factory=dict)
    grading: dict[str, t.Any]
    conversation: list[ChatMessage]
    supplemental_inputs: dict[str, str] = Field(default_factory=dict)

class GradeResp(BaseModel):
    submission_id: str
    already_graded: bool
    result: dict[str, t.Any]

# ---- Routes ----
@app.post("/grade", response_model=GradeResp)
def grade(req: GradeReq):
    stored = load_result(req.submission_id)
    if stored is not None:
        log.info("submission %s already graded; returning stored result", req.submission_id)
        return GradeResp(submission_id=req.submission_id, already_graded=True, result=stored)

    if not req.grading:
        raise HTTPException(status_code=400, detail="grading config is required")

    result = grade_conversation(
        req.case,
        req.grading,
        [m.model_dump() for m in req.conversation],
        req.supplemental_inputs,
    )
    meta = {
        "caseId": req.case.get("case_id"),
        "score": result.score,
        "passed": result.passed,
        "gradedAt": utcnow_iso(),
    }
    saved = save_result_once(req.submission_id, result.to_dict(), meta)
    return GradeResp(submission_id=req.submission_id, already_graded=False, result=saved)


@app.get("/grade/{submission_id}", response_model=GradeResp)
def get_grade(submission_id: str = Path(..., pattern=SUBMISSION_ID_PATTERN)):
    stored = load_result(submission_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Result not found")
    return GradeResp(submission_id=submission_id, already_graded=True, result=stored)


@app.get("/cases/{case_id}/results")
def results_for_case(case_id: str):
    return {"results": list_results_for_case(case_id)}
