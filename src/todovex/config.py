# src/todovex/config.py

"""Settings loaded from environment variables (+ optional .env).

- One Settings object for the whole app, built once at process start by
  ``Settings.from_env()`` and passed explicitly to the composition root.
- No secrets are read at import time; ``validate()`` is the fail-fast gate.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationError

ENV_PREFIX = "TODOVEX"

# System label attached to every AI-generated todo.
DEFAULT_AI_LABEL_ID = "k17fvzswh0s2mmee1fvg83bp297ehwk1"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str = "todovex"
    log_level: str = "INFO"

    # ---- Local data paths (ignored by git) ----
    data_dir: Path = Path(".local/todovex")
    identity_db_path: Path = Path(".local/todovex/identity.sqlite3")
    tasks_db_path: Path = Path(".local/todovex/tasks.sqlite3")

    # ---- Identity store ----
    # Remote deployment URL; when empty the local SQLite store serves the same functions.
    store_url: str = ""
    auth_adapter_secret: str | None = None

    # ---- Model provider ----
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-3.5-turbo"
    embedding_model: str = "text-embedding-ada-002"
    embedding_dimensions: int = 1536
    http_connect_timeout: float = 5.0
    http_read_timeout: float = 60.0

    # ---- Suggestions ----
    ai_label_id: str = DEFAULT_AI_LABEL_ID
    suggest_concurrency: int = 4

    @staticmethod
    def from_env(env_file: str | Path | None = None) -> "Settings":
        load_dotenv(env_file or find_dotenv(usecwd=True), override=False)

        app_name = _env(_k("APP_NAME"), "todovex") or "todovex"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/todovex"))
        identity_db_path = _env_path(_k("IDENTITY_DB_PATH"), data_dir / "identity.sqlite3")
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        store_url = (_first_env(_k("STORE_URL"), "CONVEX_URL", default="") or "").strip()
        auth_adapter_secret = _first_env(
            _k("AUTH_ADAPTER_SECRET"),
            "AUTH_ADAPTER_SECRET",
            "CONVEX_AUTH_ADAPTER_SECRET",
            default=None,
        )

        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            identity_db_path=identity_db_path,
            tasks_db_path=tasks_db_path,
            store_url=store_url,
            auth_adapter_secret=auth_adapter_secret,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url.rstrip("/"),
            chat_model=_env(_k("CHAT_MODEL"), "gpt-3.5-turbo"),
            embedding_model=_env(_k("EMBEDDING_MODEL"), "text-embedding-ada-002"),
            embedding_dimensions=_env_int(_k("EMBEDDING_DIMENSIONS"), 1536),
            http_connect_timeout=_env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0),
            http_read_timeout=_env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 60.0),
            ai_label_id=_env(_k("AI_LABEL_ID"), DEFAULT_AI_LABEL_ID) or DEFAULT_AI_LABEL_ID,
            suggest_concurrency=max(1, _env_int(_k("SUGGEST_CONCURRENCY"), 4)),
        )

    def validate(self) -> "Settings":
        """Raise ConfigurationError unless every required secret is present."""
        missing: list[str] = []
        if not (self.auth_adapter_secret or "").strip():
            missing.append(_k("AUTH_ADAPTER_SECRET"))
        if not (self.openai_api_key or "").strip():
            missing.append(_k("OPENAI_API_KEY"))
        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing) + ". Set it in your .env."
            )
        return self
