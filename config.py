import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        session_secret: str,
        session_max_age_hours: int,
        scheduler_key: str,
        scheduler_enabled: bool,
        cors_origins: list[str],
        pwned_api_url: str,
        pwned_timeout_secs: float,
        llm_api_url: str,
        llm_api_key: Optional[str],
        llm_model: str,
        llm_timeout_secs: float,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.session_secret = session_secret
        self.session_max_age_hours = session_max_age_hours
        self.scheduler_key = scheduler_key
        self.scheduler_enabled = scheduler_enabled
        self.cors_origins = cors_origins
        self.pwned_api_url = pwned_api_url
        self.pwned_timeout_secs = pwned_timeout_secs
        self.llm_api_url = llm_api_url
        self.llm_api_key = llm_api_key
        self.llm_model = llm_model
        self.llm_timeout_secs = llm_timeout_secs


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "ledger.db"
    cors_raw = os.getenv("LEDGER_CORS_ORIGINS", "http://localhost:5173")
    return Settings(
        database_url=os.getenv("LEDGER_DATABASE_URL", f"sqlite:///{default_db}"),
        timezone=os.getenv("LEDGER_TIMEZONE", "UTC"),
        session_secret=os.getenv(
            "LEDGER_SESSION_SECRET",
            "3f0c1d5e8a9b47d2a6c1e0f9b8d7c6a5e4f3a2b1c0d9e8f7a6b5c4d3e2f1a0b9",
        ),
        session_max_age_hours=int(os.getenv("LEDGER_SESSION_MAX_AGE_HOURS", "24")),
        scheduler_key=os.getenv("LEDGER_SCHEDULER_KEY", ""),
        scheduler_enabled=_env_flag("LEDGER_SCHEDULER_ENABLED", True),
        cors_origins=[o.strip() for o in cors_raw.split(",") if o.strip()],
        pwned_api_url=os.getenv(
            "LEDGER_PWNED_API_URL", "https://api.pwnedpasswords.com"
        ).rstrip("/"),
        pwned_timeout_secs=float(os.getenv("LEDGER_PWNED_TIMEOUT_SECS", "5")),
        llm_api_url=os.getenv(
            "LEDGER_LLM_API_URL", "https://api.openai.com/v1/chat/completions"
        ),
        llm_api_key=os.getenv("LEDGER_LLM_API_KEY") or None,
        llm_model=os.getenv("LEDGER_LLM_MODEL", "gpt-4o-mini"),
        llm_timeout_secs=float(os.getenv("LEDGER_LLM_TIMEOUT_SECS", "10")),
    )
