"""Load settings from defaults, an optional YAML file, and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from autoapply.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
CONFIG_PATH: Path = CONFIG_DIR / "autoapply.yaml"
DATA_DIR: Path = ROOT_DIR / "data"

MAX_RESULT_COUNT = 100
SCHEDULED_BATCH_SIZE = 30
BOOTSTRAP_BATCH_SIZE = 5
CLASSIFIER_EXCERPT_CHARS = 4000
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    search_interval_ms: int = 7_200_000
    daily_limit: int = 30
    default_result_count: int = MAX_RESULT_COUNT
    serpapi_key: str = ""
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"
    uploads_path: Path = Path("./uploads")
    db_path: Path = DATA_DIR / "autoapply.db"
    provider_timeout: float = 20.0
    log_dir: Path = ROOT_DIR / "logs"
    log_level: str = "INFO"

    @property
    def search_interval_sec(self) -> float:
        return self.search_interval_ms / 1000.0


# env var -> (yaml key, caster)
_KEYS: dict[str, tuple[str, Any]] = {
    "AUTO_SEARCH_INTERVAL": ("search_interval_ms", int),
    "RATE_LIMIT_MAX": ("daily_limit", int),
    "JOBS_DEFAULT_NUM": ("default_result_count", int),
    "SERPAPI_KEY": ("serpapi_key", str),
    "GROQ_API_KEY": ("groq_api_key", str),
    "GROQ_LLM_MODEL": ("groq_model", str),
    "UPLOADS_PATH": ("uploads_path", Path),
    "AUTOAPPLY_DB": ("db_path", Path),
    "PROVIDER_TIMEOUT": ("provider_timeout", float),
    "AUTOAPPLY_LOG_DIR": ("log_dir", Path),
    "LOG_LEVEL": ("log_level", str),
}


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def clamp_result_count(value: int | None, default: int = MAX_RESULT_COUNT) -> int:
    if not value or value < 1:
        value = default
    return max(1, min(int(value), MAX_RESULT_COUNT))


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        log.warning("Ignoring %s: top level is not a mapping", path.name)
        return {}
    return data


def _cast(name: str, caster: Any, raw: Any, fallback: Any) -> Any:
    try:
        return caster(raw)
    except (TypeError, ValueError):
        log.warning("Invalid value for %s (%r), using default %r", name, raw, fallback)
        return fallback


def load_settings(config_path: Path | None = None) -> Settings:
    """Build Settings. Precedence: environment > YAML file > defaults."""
    path = config_path or Path(get_env("AUTOAPPLY_CONFIG") or CONFIG_PATH)
    file_values = _load_yaml(path)
    defaults = Settings()
    values: dict[str, Any] = {}

    for env_key, (field_name, caster) in _KEYS.items():
        fallback = getattr(defaults, field_name)
        if field_name in file_values and file_values[field_name] is not None:
            values[field_name] = _cast(field_name, caster, file_values[field_name], fallback)
        env_value = get_env(env_key)
        if env_value:
            values[field_name] = _cast(env_key, caster, env_value, values.get(field_name, fallback))

    settings = replace(defaults, **values)
    if settings.daily_limit < 0:
        log.warning("Negative daily limit %d, using 0", settings.daily_limit)
        settings = replace(settings, daily_limit=0)
    if settings.search_interval_ms <= 0:
        log.warning("Non-positive search interval, using default")
        settings = replace(settings, search_interval_ms=defaults.search_interval_ms)
    return replace(
        settings,
        default_result_count=clamp_result_count(settings.default_result_count),
    )


def ensure_dirs(settings: Settings) -> None:
    for d in (settings.uploads_path, settings.db_path.parent):
        Path(d).mkdir(parents=True, exist_ok=True)
