from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


DEFAULT_PASSING_SCORE: float = 84.0

# judge request
JUDGE_TIMEOUT_SEC: float = 60.0
JUDGE_TEMPERATURE: float = 0.0
JUDGE_MAX_TOKENS: int = 2000

# judge output caps
EVIDENCE_MAX_ITEMS: int = 3
EVIDENCE_MAX_LEN: int = 180
RATIONALE_MAX_LEN: int = 320
EVIDENCE_MIN_CHARS: int = 6

# keyword rules
RULE_ANY_EVIDENCE: int = 3
RULE_EVIDENCE_CAP: int = 5

DEFAULT_SOURCE: str = "user"
DEFAULT_OMIT_REASON: str = "Marked not applicable for this case"

TAG_REQUIRED_HISTORY: str = "required_history"
TAG_RED_FLAG: str = "red_flag"
TAG_CRITICAL_FAIL: str = "critical_fail"

KNOWN_TAGS: frozenset[str] = frozenset({
    TAG_REQUIRED_HISTORY,
    TAG_RED_FLAG,
    TAG_CRITICAL_FAIL,
    "professional",
    "communication",
    "hpi",
    "ros",
    "pmh",
    "social_history",
    "family_history",
    "medications",
    "allergies",
    "physical_exam",
    "assessment",
    "plan",
    "education",
    "safety",
})

GRADING_DEBUG: bool = False
GRADING_LLM_DISABLED: bool = False
JUDGE_LOG_PATH: str | None = None

# // env overrides for staging/ops
DEFAULT_PASSING_SCORE = _env_float("DEFAULT_PASSING_SCORE", DEFAULT_PASSING_SCORE)
JUDGE_TIMEOUT_SEC = _env_float("JUDGE_TIMEOUT_SEC", JUDGE_TIMEOUT_SEC)
JUDGE_TEMPERATURE = _env_float("JUDGE_TEMPERATURE", JUDGE_TEMPERATURE)
JUDGE_MAX_TOKENS = _env_int("JUDGE_MAX_TOKENS", JUDGE_MAX_TOKENS)
GRADING_DEBUG = _env_bool("GRADING_DEBUG", GRADING_DEBUG)
GRADING_LLM_DISABLED = _env_bool("GRADING_LLM_DISABLED", GRADING_LLM_DISABLED)
JUDGE_LOG_PATH = os.getenv("JUDGE_LOG_PATH") or None


def _env_true(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1","true","yes","on")
def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    e = os.environ
    if e.get("GRADING_LLM_DISABLED"): cfg["GRADING_LLM_DISABLED"] = _env_true("GRADING_LLM_DISABLED")
    if e.get("LLM_BACKEND"): cfg["LLM_BACKEND"] = e.get("LLM_BACKEND")
    for k in ("JUDGE_BASE_URL","JUDGE_API_KEY","JUDGE_MODEL",
              "AZURE_OPENAI_ENDPOINT","AZURE_OPENAI_API_KEY","AZURE_OPENAI_API_VERSION","AZURE_OPENAI_DEPLOYMENT"):
        if e.get(k): cfg[k] = e.get(k)
    return cfg
def get_backend(cfg: dict) -> str|None:
    if cfg.get("GRADING_LLM_DISABLED", GRADING_LLM_DISABLED): return None
    b = (cfg.get("LLM_BACKEND") or "").lower().strip()
    return b if b in ("azure","openai") else None
