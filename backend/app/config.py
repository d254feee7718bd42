from pydantic_settings import BaseSettings
from functools import lru_cache
import os


class ConfigurationError(RuntimeError):
    """Raised when a required credential or setting is missing."""


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    supabase_url: str = ""
    supabase_key: str = ""
    google_maps_api_key: str = ""

    # Claude models
    default_model: str = "claude-sonnet-4-5-20250929"
    classifier_model: str = "claude-haiku-4-5-20251001"
    vision_model: str = "claude-sonnet-4-5-20250929"

    # Browser defaults
    headless: bool = True
    page_load_timeout: int = 20000  # milliseconds
    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    )

    # Scrape pipeline
    scrape_max_retries: int = 2
    scrape_min_content_length: int = 200
    scrape_timeout: int = 120  # seconds, whole website scrape
    scrape_job_timeout: int = 300  # seconds before an in-flight job is considered stale
    classification_cache_ttl: int = 300  # seconds

    class Config:
        # Look for .env in the repo root (two levels up from backend/app/)
        # In production, env vars are injected directly and .env is optional
        _env_path = os.path.join(os.path.dirname(__file__), "..", "..", ".env")
        env_file = _env_path if os.path.exists(_env_path) else None
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()


def require_setting(name: str) -> str:
    """Return a non-empty setting value or raise ConfigurationError."""
    value = os.getenv(name.upper()) or getattr(get_settings(), name, "")
    if not value:
        raise ConfigurationError(f"{name.upper()} must be set in the environment or .env")
    return value
