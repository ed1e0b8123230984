from __future__ import annotations
from typing import List, Optional

from .config import RULE_ANY_EVIDENCE, RULE_EVIDENCE_CAP
from .text import normalize_keywords, normalize_keyword_groups
from .types import Rule, RuleMatch


def evaluate_rule(text: str, rule: Optional[Rule]) -> RuleMatch:
    """
    Deterministic keyword predicate over already-normalized text.

      - all:    every keyword must appear
      - any:    at least one keyword must appear (first 3 kept as evidence)
      - groups: one keyword per group; every group unless min_groups_matched

    A rule with nothing configured never matches.
    """
    if rule is None:
        return RuleMatch(False, [])
    any_kw = normalize_keywords(rule.any)
    all_kw = normalize_keywords(rule.all)
    groups = normalize_keyword_groups(rule.groups)

    if not any_kw and not all_kw and not groups:
        return RuleMatch(False, [])

    evidence: List[str] = []

    for kw in all_kw:
        if kw not in text:
            return RuleMatch(False, [])
        evidence.append(kw)

    if any_kw:
        hits = [kw for kw in any_kw if kw in text]
        if not hits:
            return RuleMatch(False, [])
        evidence.extend(hits[:RULE_ANY_EVIDENCE])

    if groups:
        threshold = rule.min_groups_matched
        matched_groups = 0
        for group in groups:
            hit = next((kw for kw in group if kw in text), None)
            if hit is not None:
                matched_groups += 1
                evidence.append(hit)
            elif threshold is None:
                return RuleMatch(False, [])
        if threshold is not None and matched_groups < threshold:
            return RuleMatch(False, [])

    return RuleMatch(True, list(dict.fromkeys(evidence))[:RULE_EVIDENCE_CAP])
