from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/tasks.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - ENABLE_BASIC_AUTH: 'true' to take the owner from HTTP Basic credentials (default: false)
    - BASIC_AUTH_USERNAME: username for basic auth (required when ENABLE_BASIC_AUTH=true)
    - BASIC_AUTH_PASSWORD: password for basic auth (required when ENABLE_BASIC_AUTH=true)
    - DEFAULT_OWNER_ID: owner used when basic auth is disabled; empty means unauthenticated
    - LOG_LEVEL: console log level (default INFO)
    - LOG_FILE: optional path of a debug log file
    - ASSISTANT_API_KEY: API key of the OpenAI-compatible generation endpoint
    - ASSISTANT_BASE_URL: base URL of the generation endpoint
    - ASSISTANT_MODELS: comma/space separated model names, tried in order
    - ASSISTANT_TIMEOUT_SECONDS: HTTP timeout for generation calls (default 30)
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    enable_basic_auth: bool
    basic_auth_username: Optional[str]
    basic_auth_password: Optional[str]
    default_owner_id: Optional[str]
    log_level: str
    log_file: Optional[str]
    assistant_api_key: Optional[str]
    assistant_base_url: str
    assistant_models: List[str]
    assistant_timeout_seconds: float


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_float(value: str, default: float) -> float:
    try:
        return float(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        # Star will be handled in main via allow_origins=["*"]
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_list(value: str) -> List[str]:
    return [p.strip() for p in value.replace(",", " ").split() if p.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/tasks.db").strip()
    cors_raw = _get_env("CORS_ALLOW_ORIGINS", "*")
    origins = _parse_origins(cors_raw)

    enable_basic_auth = _parse_bool(_get_env("ENABLE_BASIC_AUTH", "false"), False)
    basic_user = os.getenv("BASIC_AUTH_USERNAME") if enable_basic_auth else None
    basic_pass = os.getenv("BASIC_AUTH_PASSWORD") if enable_basic_auth else None

    # An explicitly empty DEFAULT_OWNER_ID disables the anonymous owner
    default_owner = os.getenv("DEFAULT_OWNER_ID", "local").strip() or None

    log_file = os.getenv("LOG_FILE", "").strip() or None
    api_key = os.getenv("ASSISTANT_API_KEY", "").strip() or None

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        enable_basic_auth=enable_basic_auth,
        basic_auth_username=basic_user,
        basic_auth_password=basic_pass,
        default_owner_id=default_owner,
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        log_file=log_file,
        assistant_api_key=api_key,
        assistant_base_url=_get_env("ASSISTANT_BASE_URL", "https://api.openai.com/v1").strip(),
        assistant_models=_parse_list(_get_env("ASSISTANT_MODELS", "gpt-4o-mini")),
        assistant_timeout_seconds=_parse_float(_get_env("ASSISTANT_TIMEOUT_SECONDS", "30"), 30.0),
    )
