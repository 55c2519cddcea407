"""
Configuration and environment loading for LLM Chess Play.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (store path, provider endpoints, retry bounds).
"""
from dataclasses import dataclass
import os
from typing import Any, Callable

from dotenv import load_dotenv
import yaml

load_dotenv()


def _repo_root() -> str:
    # this file: src/llmchess_play/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.environ.get("LLMCHESS_SETTINGS_FILE") or os.path.join(_repo_root(), "settings.yml"))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


def _as_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in ("1", "true", "yes", "on")


def _optional_int(val: Any) -> int | None:
    # 0 or empty means "no bound"
    if val in (None, ""):
        return None
    n = int(val)
    return n if n > 0 else None


@dataclass(frozen=True)
class Settings:
    # Persistence
    store_path: str

    # Provider transport
    request_timeout_s: float
    provider_retries: int
    gemini_base_url: str
    gemini_model: str
    openai_base_url: str
    openai_model: str
    cohere_base_url: str
    cohere_model: str

    # Move resolution knobs
    max_attempts: int
    negotiation_max_rounds: int | None
    negotiation_delay_s: float
    agent_reply_delay_s: float
    correction_assist: bool

    log_level: str


SETTINGS = Settings(
    store_path=_get("LLMCHESS_STORE_PATH", os.path.join(_repo_root(), "saved_games.json")),
    request_timeout_s=float(_get("LLMCHESS_REQUEST_TIMEOUT_S", 120.0, cast=float)),
    provider_retries=int(_get("LLMCHESS_PROVIDER_RETRIES", 0, cast=int)),
    gemini_base_url=_get("LLMCHESS_GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/"),
    gemini_model=_get("LLMCHESS_GEMINI_MODEL", "gemini-2.0-flash"),
    openai_base_url=_get("LLMCHESS_OPENAI_BASE_URL", "https://api.openai.com/v1"),
    openai_model=_get("LLMCHESS_OPENAI_MODEL", "gpt-4o-mini"),
    cohere_base_url=_get("LLMCHESS_COHERE_BASE_URL", "https://api.cohere.ai/compatibility/v1"),
    cohere_model=_get("LLMCHESS_COHERE_MODEL", "command-r-plus"),
    max_attempts=int(_get("LLMCHESS_MAX_ATTEMPTS", 10, cast=int)),
    negotiation_max_rounds=_get("LLMCHESS_NEGOTIATION_MAX_ROUNDS", 10, cast=_optional_int),
    negotiation_delay_s=float(_get("LLMCHESS_NEGOTIATION_DELAY_S", 1.0, cast=float)),
    agent_reply_delay_s=float(_get("LLMCHESS_AGENT_REPLY_DELAY_S", 0.5, cast=float)),
    correction_assist=bool(_get("LLMCHESS_CORRECTION_ASSIST", True, cast=_as_bool)),
    log_level=str(_get("LLMCHESS_LOG_LEVEL", "INFO")).upper(),
)
