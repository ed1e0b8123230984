from __future__ import annotations
import json, time, logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from . import config
from .judge_cfg import client as judge_client, settings as judge_settings
from .judge_schema import validate_judge_output
from .sources import build_transcript, collect_raw_text
from .text import normalize_keywords, normalize_keyword_groups
from .types import Criterion, Judgment, Message, RawJudgment, Rule, eligible_criteria

log = logging.getLogger(__name__)

JudgeFn = Callable[[str, str], str]

SYSTEM_PROMPT = """
You are a strict clinical OSCE rubric grader.

Evaluate each criterion using ONLY the provided transcript and supplemental inputs.
Do NOT infer missing information.
If not explicitly stated, mark as "not_met".

Source handling:
- If criterion source is user/assistant/all, use the Transcript section.
- If criterion source is a custom source (example: hpi), use matching text from Supplemental Inputs.

Return STRICT JSON only.
No markdown.
No commentary.
No extra keys.

You MUST return this exact schema:

{
  "results": [
    {
      "id": "criterion_id",
      "status": "met | partially_met | not_met",
      "earned_points": number,
      "evidence": ["exact quote from source text"],
      "rationale": "brief reason"
    }
  ]
}

Rules:
- Include ALL criteria listed.
- Do NOT invent ids.
- Respect each criterion's source strictly:
  - source=user -> use student/user text only.
  - source=assistant -> use patient/assistant text only.
  - source=all -> use full transcript.
  - custom sources (e.g., hpi) -> use matching Supplemental Inputs text only.
- Evidence quotes must come from that criterion's source text only.
- For status met/partially_met, include 1-2 short exact quotes from source text.
- If you cannot quote source text for that criterion, mark not_met.
- earned_points must be 0 if status is not_met.
- earned_points must equal full points if status is met.
- partially_met must be between 0 and full points.
""".strip()


def backend_in_use() -> str:
    b = config.get_backend(config.load_config())
    return b or "none"


def describe_rule(rule: Optional[Rule]) -> str:
    if rule is None:
        return ""
    all_kw = normalize_keywords(rule.all)
    any_kw = normalize_keywords(rule.any)
    groups = normalize_keyword_groups(rule.groups)
    parts = []
    if all_kw:
        parts.append(f"Must include all concepts: {', '.join(all_kw)}")
    if any_kw:
        parts.append(f"Can match any of: {', '.join(any_kw)}")
    if groups:
        summary = " + ".join(f"[{', '.join(g)}]" for g in groups)
        parts.append(f"For each group, mention at least one concept: {summary}")
    return " ".join(parts)


def _source_label(source: Any) -> str:
    return ", ".join(source) if isinstance(source, list) else str(source)


def build_prompts(
    case_data: Mapping[str, Any] | None,
    criteria: Sequence[Criterion],
    conversation: Sequence[Message],
    supplemental: Mapping[str, str],
) -> tuple[str, str]:
    lines: List[str] = []
    for c in criteria:
        guidance = c.prompt_hint or c.description or describe_rule(c.rule or c.fallback_rule)
        entry = (f"- id: {c.id}\n  label: {c.label or c.id}\n  points: {c.points:g}\n"
                 f"  source: {_source_label(c.source)}")
        if guidance:
            entry += f"\n  guidance: {guidance}"
        lines.append(entry)

    views = {name: collect_raw_text(conversation, name, supplemental) for name in ("user", "assistant", "all")}
    view_block = "\n".join(f"- source: {k}\n  text: {v.strip() or '(none)'}" for k, v in views.items())
    supp_block = "\n".join(f"- source: {k}\n  text: {str(v).strip()}" for k, v in supplemental.items())

    case_id = (case_data or {}).get("case_id") or "unknown"
    user_prompt = "\n\n".join([
        f"Case ID: {case_id}",
        "Criteria:",
        "\n".join(lines),
        "Source Views:",
        view_block,
        "Transcript:",
        build_transcript(conversation),
        "Supplemental Inputs:",
        supp_block or "- none",
    ])
    return SYSTEM_PROMPT, user_prompt


def extract_json_object(text: str | None) -> Any:
    if not isinstance(text, str) or not text:
        return None
    cleaned = text.replace("```json", "").replace("```JSON", "").replace("```", "").strip()
    try:
        return json.loads(cleaned)
    except (ValueError, RecursionError) as e:
        log.error("judge response is not valid JSON")
        log.debug("json parse error: %s", e)
        return None


def complete_rubric_eval(system_prompt: str, user_prompt: str) -> str:
    """Default transport: one chat completion against the configured backend."""
    backend = backend_in_use()
    if backend == "none":
        raise RuntimeError("no judge backend configured")
    s = judge_settings(backend); cli = judge_client(s)
    resp = cli.chat.completions.create(
        model=s.model,
        messages=[{"role": "system", "content": system_prompt}, {"role": "user", "content": user_prompt}],
        temperature=config.JUDGE_TEMPERATURE,
        max_tokens=config.JUDGE_MAX_TOKENS,
        top_p=1.0,
    )
    content = resp.choices[0].message.content
    if not content:
        raise RuntimeError("judge returned no message")
    return content.strip()


def _write_judge_log(entry: Dict[str, Any]) -> None:
    path = config.JUDGE_LOG_PATH
    if not path:
        return
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
    except OSError as e:
        log.warning("could not write judge log %s: %s", path, e)


def request_judgments(
    case_data: Mapping[str, Any] | None,
    criteria: Sequence[Criterion],
    conversation: Sequence[Message],
    supplemental: Mapping[str, str],
    judge: Optional[JudgeFn] = None,
) -> Dict[str, Judgment]:
    """
    Ask the judge about every judge-eligible criterion in a single request.

    Returns validated judgments keyed by criterion id. Every failure
    (disabled backend, transport error, bad JSON, failed validation) yields
    an empty dict so callers fall back per criterion.
    """
    eligible = eligible_criteria(criteria)
    case_id = (case_data or {}).get("case_id") or "unknown"
    if not eligible:
        log.debug("no judge-eligible criteria for case %s; skipping judge", case_id)
        return {}

    backend = "injected" if judge is not None else backend_in_use()
    if judge is None:
        if backend == "none":
            log.info("judge disabled; %d criteria will use fallback for case %s", len(eligible), case_id)
            return {}
        judge = complete_rubric_eval

    system_prompt, user_prompt = build_prompts(case_data, eligible, conversation, supplemental)
    t0 = time.time()
    text = ""
    try:
        text = judge(system_prompt, user_prompt)
    except Exception as e:
        log.error("judge request failed for case %s: %s", case_id, e)
        _write_judge_log({"ts": round(time.time(), 3), "case_id": case_id, "backend": backend,
                          "criteria": len(eligible), "ok": False, "errors": [str(e)], "rt_ms": int((time.time() - t0) * 1000)})
        return {}

    parsed = extract_json_object(text)
    if config.GRADING_DEBUG:
        log.debug("judge payload for case %s: %s", case_id, parsed if parsed is not None else text)

    validation = validate_judge_output(RawJudgment(payload=parsed, text=text if isinstance(text, str) else ""), eligible)
    for err in validation.errors:
        log.info("judge output for case %s: %s", case_id, err)
    _write_judge_log({
        "ts": round(time.time(), 3),
        "case_id": case_id,
        "backend": backend,
        "criteria": len(eligible),
        "ok": validation.ok,
        "accepted": sorted(validation.results),
        "errors": validation.errors,
        "rt_ms": int((time.time() - t0) * 1000),
    })
    if not validation.ok:
        log.error("judge output failed validation for case %s; falling back", case_id)
        return {}
    return validation.results
