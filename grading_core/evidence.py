from __future__ import annotations
from typing import Iterable, List, Tuple

from .config import EVIDENCE_MIN_CHARS
from .text import normalize_text
from .types import EvidenceCheck, Judgment

REASON_NONE_MATCHED = "no evidence quotes found in criterion source text"
REASON_OUT_OF_SCOPE = "some evidence quotes were outside the criterion source text"


def _clean(evidence: Iterable[str]) -> List[str]:
    return [s for s in (str(e or "").strip() for e in evidence) if s]


def split_evidence(source_text: str, evidence: Iterable[str]) -> Tuple[List[str], List[str]]:
    """(matched, unmatched); quotes shorter than EVIDENCE_MIN_CHARS count as neither."""
    source = normalize_text(source_text)
    quotes = _clean(evidence)
    if not source or not quotes:
        return [], quotes
    matched: List[str] = []
    unmatched: List[str] = []
    for q in quotes:
        nq = normalize_text(q)
        if len(nq) < EVIDENCE_MIN_CHARS:
            continue
        (matched if nq in source else unmatched).append(q)
    return matched, unmatched


def check_evidence(source_text: str, judgment: Judgment) -> EvidenceCheck:
    if not judgment.status.needs_evidence:
        return EvidenceCheck(True, _clean(judgment.evidence), None)

    matched, unmatched = split_evidence(source_text, judgment.evidence)
    if not matched:
        return EvidenceCheck(False, [], REASON_NONE_MATCHED)
    if unmatched:
        return EvidenceCheck(False, matched, REASON_OUT_OF_SCOPE)
    return EvidenceCheck(True, matched, None)
