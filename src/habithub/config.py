# src/habithub/config.py
import os
import logging
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CORS_ORIGINS = "http://localhost:8501,http://127.0.0.1:8501"


def _split(value: str):
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass(frozen=True)
class Settings:
    supabase_url: str = ""
    supabase_key: str = ""
    store: str = "supabase"
    timezone: str = "UTC"
    api_url: str = "http://127.0.0.1:8000"
    log_level: str = "INFO"
    cors_origins: list = field(default_factory=lambda: _split(DEFAULT_CORS_ORIGINS))


def load_settings() -> Settings:
    """Read settings from the environment (and .env, loaded at import)."""
    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", ""),
        supabase_key=os.getenv("SUPABASE_KEY", ""),
        store=os.getenv("HABITHUB_STORE", "supabase").strip().lower(),
        timezone=os.getenv("HABITHUB_TIMEZONE", "UTC"),
        api_url=os.getenv("HABITHUB_API_URL", "http://127.0.0.1:8000"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        cors_origins=_split(os.getenv("HABITHUB_CORS_ORIGINS", DEFAULT_CORS_ORIGINS)),
    )


def setup_logging(settings: Settings = None) -> logging.Logger:
    """Configure the root logger once for the API or the dashboard."""
    settings = settings or load_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("habithub")
