from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Sequence

from .config import DEFAULT_SOURCE
from .text import normalize_text
from .types import Message, Source


@dataclass(frozen=True)
class SourceText:
    raw: str
    normalized: str


def normalize_supplemental_inputs(inputs: Any) -> Dict[str, str]:
    """Lowercase keys, drop blank keys and blank values."""
    if not isinstance(inputs, Mapping):
        return {}
    out: Dict[str, str] = {}
    for k, v in inputs.items():
        key = str(k or "").strip().lower()
        if not key:
            continue
        text = str(v or "").strip()
        if text:
            out[key] = text
    return out


def collect_raw_text(
    conversation: Sequence[Message],
    source: Source | None,
    supplemental: Mapping[str, str] | None = None,
) -> str:
    target = source or DEFAULT_SOURCE
    supplemental = supplemental or {}

    if isinstance(target, str):
        key = target.strip().lower()
        if key and key != "all" and key in supplemental:
            return str(supplemental[key] or "").strip()
        if key == "all":
            return " ".join(c for c in (m.content.strip() for m in conversation) if c)

    roles = [target] if isinstance(target, str) else list(target)
    role_set = {str(r).strip().lower() for r in roles}
    parts = [m.content.strip() for m in conversation if (m.role or "").lower() in role_set]
    return " ".join(p for p in parts if p)


def collect_text(conversation: Sequence[Message], source: Source | None, supplemental: Mapping[str, str] | None = None) -> str:
    return normalize_text(collect_raw_text(conversation, source, supplemental))


def collect_source(conversation: Sequence[Message], source: Source | None, supplemental: Mapping[str, str] | None = None) -> SourceText:
    raw = collect_raw_text(conversation, source, supplemental)
    return SourceText(raw=raw, normalized=normalize_text(raw))


def build_transcript(conversation: Sequence[Message]) -> str:
    lines = []
    for idx, m in enumerate(conversation, start=1):
        role = (m.role or "unknown").upper()
        lines.append(f"{idx}. {role}: {m.content.strip()}")
    return "\n".join(lines)
