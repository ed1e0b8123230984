from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
import logging, math

from .config import DEFAULT_SOURCE, DEFAULT_OMIT_REASON
from .text import normalize_tag

log = logging.getLogger(__name__)

Source = Union[str, List[str]]


class EvalMode(str, Enum):
    RULE = "rule"
    LLM = "llm"
    LLM_OR_RULE = "llm_or_rule"

    @property
    def uses_judge(self) -> bool:
        return self is not EvalMode.RULE


class JudgeStatus(str, Enum):
    MET = "met"
    PARTIALLY_MET = "partially_met"
    NOT_MET = "not_met"

    @property
    def needs_evidence(self) -> bool:
        return self is not JudgeStatus.NOT_MET


class CriterionStatus(str, Enum):
    MET = "met"
    PARTIALLY_MET = "partially_met"
    MISSED = "missed"
    OMITTED = "omitted"


def _to_points(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    return num if math.isfinite(num) else 0.0


@dataclass
class Rule:
    any: List[str] = field(default_factory=list)
    all: List[str] = field(default_factory=list)
    groups: List[List[str]] = field(default_factory=list)
    min_groups_matched: Optional[int] = None

    @staticmethod
    def from_dict(raw: Mapping[str, Any] | None) -> "Rule":
        if not isinstance(raw, Mapping):
            return Rule()

        def _phrases(v: Any) -> List[str]:
            if v is None:
                return []
            if isinstance(v, (list, tuple)):
                return [str(x) for x in v if x is not None]
            return [str(v)]

        groups = raw.get("groups")
        threshold = raw.get("min_groups_matched")
        try:
            min_groups = int(threshold) if threshold is not None and not isinstance(threshold, bool) else None
        except (TypeError, ValueError):
            min_groups = None
        return Rule(
            any=_phrases(raw.get("any")),
            all=_phrases(raw.get("all")),
            # a bare string entry is a one-keyword group
            groups=[_phrases(g) for g in groups if g is not None] if isinstance(groups, (list, tuple)) else [],
            min_groups_matched=min_groups,
        )


@dataclass
class Section:
    id: str; label: str; max_points: float = 0.0

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> "Section":
        sid = str(raw.get("id") or "").strip()
        return Section(id=sid, label=str(raw.get("label") or sid), max_points=_to_points(raw.get("max_points")))


@dataclass
class Criterion:
    id: str
    section: str
    label: str
    points: float = 0.0
    source: Source = DEFAULT_SOURCE
    mode: EvalMode = EvalMode.RULE
    rule: Optional[Rule] = None
    fallback_rule: Optional[Rule] = None
    tags: List[str] = field(default_factory=list)
    enabled: bool = True
    omit_reason: Optional[str] = None
    prompt_hint: Optional[str] = None
    description: Optional[str] = None

    @property
    def judge_eligible(self) -> bool:
        return self.enabled and self.mode.uses_judge

    @property
    def effective_rule(self) -> Rule:
        return self.fallback_rule or self.rule or Rule()

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> "Criterion":
        """
        Build a criterion from rubric config. Bad values are logged and
        replaced with best-effort defaults rather than raised.
        """
        cid = str(raw.get("id") or "").strip()
        points = _to_points(raw.get("points"))
        if points < 0:
            log.warning("criterion %s has negative points (%s); using 0", cid, points)
            points = 0.0

        mode_raw = str(raw.get("mode") or EvalMode.RULE.value).strip().lower()
        try:
            mode = EvalMode(mode_raw)
        except ValueError:
            log.warning("criterion %s has unknown mode %r; using rule", cid, mode_raw)
            mode = EvalMode.RULE

        src = raw.get("source") or DEFAULT_SOURCE
        if isinstance(src, (list, tuple)):
            source: Source = [str(s) for s in src if s]
            if not source:
                source = DEFAULT_SOURCE
        else:
            source = str(src)

        tags_raw = raw.get("tags")
        tags = [t for t in (normalize_tag(x) for x in tags_raw) if t] if isinstance(tags_raw, (list, tuple)) else []

        enabled = raw.get("enabled")
        return Criterion(
            id=cid,
            section=str(raw.get("section") or "").strip(),
            label=str(raw.get("label") or cid),
            points=points,
            source=source,
            mode=mode,
            rule=Rule.from_dict(raw["rule"]) if isinstance(raw.get("rule"), Mapping) else None,
            fallback_rule=Rule.from_dict(raw["fallback_rule"]) if isinstance(raw.get("fallback_rule"), Mapping) else None,
            tags=tags,
            enabled=enabled is not False,
            omit_reason=raw.get("omit_reason") or None,
            prompt_hint=raw.get("prompt_hint") or None,
            description=raw.get("description") or None,
        )


@dataclass
class Message:
    role: str; content: str

    @staticmethod
    def coerce_all(conversation: Any) -> List["Message"]:
        if not isinstance(conversation, (list, tuple)):
            return []
        out: List[Message] = []
        for m in conversation:
            if isinstance(m, Message):
                out.append(m)
            elif isinstance(m, Mapping):
                out.append(Message(role=str(m.get("role") or ""), content=str(m.get("content") or "")))
        return out


@dataclass(frozen=True)
class RawJudgment:
    """Unvalidated judge output. Never scored directly."""
    payload: Any
    text: str = ""


@dataclass(frozen=True)
class Judgment:
    status: JudgeStatus
    earned_points: float
    evidence: tuple[str, ...] = ()
    rationale: str = ""


@dataclass
class JudgeValidation:
    ok: bool
    results: Dict[str, Judgment] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)


@dataclass
class RuleMatch:
    matched: bool; evidence: List[str] = field(default_factory=list)


@dataclass
class EvidenceCheck:
    ok: bool
    matched_evidence: List[str] = field(default_factory=list)
    reason: Optional[str] = None


@dataclass
class CriterionResult:
    id: str
    section: str
    label: str
    tags: List[str]
    points: float
    earned_points: float
    status: CriterionStatus
    omit_reason: Optional[str] = None
    evidence: List[str] = field(default_factory=list)
    rationale: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "section": self.section,
            "label": self.label,
            "tags": list(self.tags),
            "points": self.points,
            "earned_points": self.earned_points,
            "status": self.status.value,
            "omit_reason": self.omit_reason,
            "evidence": list(self.evidence),
            "rationale": self.rationale,
        }


@dataclass
class SectionScore:
    section: str
    label: str
    earned_points: float = 0.0
    available_points: float = 0.0
    total_points: float = 0.0


@dataclass
class GradingResult:
    score: float
    passing_score: float
    passed: bool
    earned_points: Optional[float]
    available_points: Optional[float]
    total_points: Optional[float]
    omitted_points: float
    section_scores: List[SectionScore] = field(default_factory=list)
    criteria_results: List[CriterionResult] = field(default_factory=list)
    missed_required_questions: List[str] = field(default_factory=list)
    missed_red_flags: List[str] = field(default_factory=list)
    critical_fails_triggered: List[str] = field(default_factory=list)
    feedback: str = ""

    @property
    def can_unlock_next_case(self) -> bool:
        return self.passed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "passing_score": self.passing_score,
            "passed": self.passed,
            "can_unlock_next_case": self.can_unlock_next_case,
            "earned_points": self.earned_points,
            "available_points": self.available_points,
            "total_points": self.total_points,
            "omitted_points": self.omitted_points,
            "section_scores": [vars(s).copy() for s in self.section_scores],
            "criteria_results": [c.to_dict() for c in self.criteria_results],
            "missed_required_questions": list(self.missed_required_questions),
            "missed_red_flags": list(self.missed_red_flags),
            "critical_fails_triggered": list(self.critical_fails_triggered),
            "feedback": self.feedback,
        }


def eligible_criteria(criteria: Sequence[Criterion]) -> List[Criterion]:
    return [c for c in criteria if c.judge_eligible]
