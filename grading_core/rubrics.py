from __future__ import annotations
from types import MappingProxyType
from typing import Any, Dict, List, Mapping
import copy, logging

from .types import Criterion

log = logging.getLogger(__name__)

_COMMON = {
    "professional_intro_name_title": {
        "id": "professional_intro_name_title",
        "section": "professional",
        "label": "Introduces self with name and title",
        "prompt_hint": "Student introduces self and clearly states a professional clinical role/title.",
        "points": 1,
        "source": "user",
        "tags": ["professional"],
        "mode": "llm",
        "fallback_rule": {
            "groups": [
                ["my name is", "my name", "i am", "i'm", "im", "this is"],
                ["dnp student", "np student", "nurse practitioner student", "nurse practitioner",
                 "family nurse practitioner", "fnp", "aprn", "provider", "md", "doctor", "physician"],
            ]
        },
    },
    "professional_preferred_name": {
        "id": "professional_preferred_name",
        "section": "professional",
        "label": "Asks preferred name",
        "prompt_hint": "Student asks how the patient prefers to be addressed.",
        "points": 1,
        "source": "user",
        "tags": ["professional"],
        "mode": "rule",
        "rule": {"any": ["may i call you", "preferred name", "what name do you prefer", "can i call you"]},
    },
    "professional_opening_question": {
        "id": "professional_opening_question",
        "section": "professional",
        "label": "Asks opening question",
        "prompt_hint": "Student invites the chief complaint (for example, what brings you in today).",
        "points": 1,
        "source": "user",
        "tags": ["professional"],
        "mode": "llm",
        "fallback_rule": {
            "any": ["how can i help you today", "what brings you in today",
                    "what brings you today", "what brings you in"]
        },
    },
    "professional_identity_two_identifiers": {
        "id": "professional_identity_two_identifiers",
        "section": "professional",
        "label": "Confirms patient identity using two identifiers",
        "prompt_hint": "Student verifies identity with at least two identifiers, including name and date of birth.",
        "points": 1,
        "source": "user",
        "mode": "llm_or_rule",
        "tags": ["professional"],
        "fallback_rule": {
            "groups": [
                ["full name", "name and date of birth", "your name", "confirm your name", "verify your name"],
                ["date of birth", "dob", "birth date", "birthday", "month and day of birth", "identifier"],
            ]
        },
    },
}

# shared templates keyed by id; read-only, entries are deep-copied before use
COMMON_CRITERIA: Mapping[str, Mapping[str, Any]] = MappingProxyType(
    {k: MappingProxyType(v) for k, v in _COMMON.items()}
)


def _template(cid: str) -> Dict[str, Any] | None:
    base = COMMON_CRITERIA.get(cid)
    return copy.deepcopy(dict(base)) if base is not None else None


def merge_override(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Shallow merge; rule and fallback_rule merge key-by-key."""
    merged = {**base, **copy.deepcopy(dict(override))}
    for key in ("rule", "fallback_rule"):
        b, o = base.get(key), override.get(key)
        if b or o:
            merged[key] = {**(b if isinstance(b, Mapping) else {}), **copy.deepcopy(dict(o) if isinstance(o, Mapping) else {})}
    return merged


def expand_criteria_dicts(rubric: Mapping[str, Any] | None) -> List[Dict[str, Any]]:
    rubric = rubric or {}
    entries = rubric.get("common_criteria")
    expanded: List[Dict[str, Any]] = []
    for entry in entries if isinstance(entries, list) else []:
        if not entry:
            continue
        cid = entry if isinstance(entry, str) else (entry.get("id") if isinstance(entry, Mapping) else None)
        base = _template(str(cid)) if cid else None
        if base is None:
            log.warning("unknown common criterion %r skipped", cid)
            continue
        expanded.append(base if isinstance(entry, str) else merge_override(base, entry))

    case_specific = rubric.get("criteria")
    for raw in case_specific if isinstance(case_specific, list) else []:
        if isinstance(raw, Mapping):
            expanded.append(copy.deepcopy(dict(raw)))
    return expanded


def expand_criteria(rubric: Mapping[str, Any] | None) -> List[Criterion]:
    """
    Common criteria (declared order) followed by case criteria (declared order).
    A repeated id keeps its first declaration; later ones are dropped.
    """
    out: List[Criterion] = []
    seen: set[str] = set()
    for c in (Criterion.from_dict(d) for d in expand_criteria_dicts(rubric)):
        if c.id and c.id in seen:
            log.warning("duplicate criterion id %r dropped", c.id)
            continue
        seen.add(c.id)
        out.append(c)
    return out
