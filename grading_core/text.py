# grading_core/text.py
from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List
import re

_NON_ALNUM_RX = re.compile(r"[^a-z0-9\s]")
_WS_RX = re.compile(r"\s+")


def normalize_text(value: Any) -> str:
    """Lowercase, replace punctuation with spaces, collapse whitespace."""
    if value is None:
        return ""
    t = _NON_ALNUM_RX.sub(" ", str(value).lower())
    return _WS_RX.sub(" ", t).strip()


def normalize_keywords(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [k for k in (normalize_text(v) for v in value) if k]
    k = normalize_text(value)
    return [k] if k else []


def normalize_keyword_groups(value: Any) -> List[List[str]]:
    if not isinstance(value, (list, tuple)):
        return []
    groups = [normalize_keywords(g) for g in value]
    return [g for g in groups if g]


def normalize_tag(value: Any) -> str:
    return normalize_text(value).replace(" ", "_")


def keywords_from_phrase(phrase: Any) -> List[str]:
    return [w for w in normalize_text(phrase).split() if len(w) >= 4]


def includes_any(text: str, keywords: List[str]) -> bool:
    return any(k in text for k in keywords)


def round_to(value: Any, decimals: int = 2) -> float:
    # half-up, so .5 ties do not depend on float banker's rounding
    q = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(float(value))).quantize(q, rounding=ROUND_HALF_UP))


def as_number(value: float) -> float | int:
    """Whole floats become ints so results serialize as 84, not 84.0."""
    return int(value) if float(value).is_integer() else value
