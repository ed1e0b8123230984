# grading_core/judge_cfg.py
from __future__ import annotations
import os, json, pathlib
from dataclasses import dataclass
from openai import AzureOpenAI, OpenAI

from . import config

@dataclass(frozen=True)
class JudgeSettings:
    backend: str
    endpoint: str
    api_key: str
    model: str
    api_version: str
    timeout: float

_REQUIRED = {
    "azure":  ("endpoint", "api_key", "model", "api_version"),
    "openai": ("endpoint", "api_key", "model"),
}

def _from_env(backend: str) -> dict[str, str]:
    if backend == "azure":
        return {
            "endpoint":   os.getenv("AZURE_OPENAI_ENDPOINT", ""),
            "api_key":    os.getenv("AZURE_OPENAI_API_KEY", ""),
            "api_version":os.getenv("AZURE_OPENAI_API_VERSION", ""),
            "model":      os.getenv("AZURE_OPENAI_DEPLOYMENT", ""),
        }
    return {
        "endpoint":   os.getenv("JUDGE_BASE_URL", ""),
        "api_key":    os.getenv("JUDGE_API_KEY", ""),
        "api_version":"",
        "model":      os.getenv("JUDGE_MODEL", ""),
    }

def _from_json(path: str = ".judge_config.json") -> dict[str, str]:
    p = pathlib.Path(path)
    if not p.exists(): return {}
    try:
        j = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return {k: str(j.get(k, "")) for k in ("endpoint", "api_key", "api_version", "model")}

def settings(backend: str) -> JudgeSettings:
    if backend not in _REQUIRED:
        raise RuntimeError(f"Unsupported judge backend: {backend!r}")
    cfg = _from_env(backend)
    if not all(cfg[k] for k in _REQUIRED[backend]):
        for k, v in _from_json().items():
            if not cfg.get(k): cfg[k] = v
    missing = [k for k in _REQUIRED[backend] if not cfg.get(k)]
    if missing:
        raise RuntimeError(f"Judge backend '{backend}' not configured. Missing: {', '.join(missing)}")
    return JudgeSettings(
        backend=backend,
        endpoint=cfg["endpoint"],
        api_key=cfg["api_key"],
        model=cfg["model"],
        api_version=cfg.get("api_version", ""),
        timeout=float(config.JUDGE_TIMEOUT_SEC),
    )

def client(s: JudgeSettings) -> OpenAI:
    # the grading call itself never retries; one request per submission
    if s.backend == "azure":
        return AzureOpenAI(
            azure_endpoint=s.endpoint,
            api_key=s.api_key,
            api_version=s.api_version,
            timeout=s.timeout,
            max_retries=0,
        )
    return OpenAI(base_url=s.endpoint, api_key=s.api_key, timeout=s.timeout, max_retries=0)
