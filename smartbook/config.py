"""
Configuration management using environment variables.
"""
import os
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./smartbook.db")

    # Redis Configuration (sessions + job queue)
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Application Configuration
    app_base_url: str = os.getenv("APP_BASE_URL", "http://localhost:5000")
    timezone_default: str = os.getenv("TIMEZONE_DEFAULT", "America/New_York")
    seed_demo_data: bool = _env_flag("SEED_DEMO_DATA")

    # Sessions
    session_secret: str = os.getenv("SESSION_SECRET", "smartbook-ai-secret")
    session_cookie_name: str = os.getenv("SESSION_COOKIE_NAME", "smartbook_session")
    session_expiry_seconds: int = int(os.getenv("SESSION_EXPIRY_SECONDS", "86400"))

    # Slot recommendations
    business_start_hour: int = int(os.getenv("BUSINESS_START_HOUR", "8"))
    business_end_hour: int = int(os.getenv("BUSINESS_END_HOUR", "18"))
    recommendation_seed: Optional[int] = (
        int(os.getenv("RECOMMENDATION_SEED")) if os.getenv("RECOMMENDATION_SEED") else None
    )

    # OpenAI-compatible assistant
    ai_enabled: bool = _env_flag("AI_ENABLED")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    ai_timeout_seconds: float = float(os.getenv("AI_TIMEOUT_SECONDS", "10"))

    # Background jobs
    job_queue_enabled: bool = _env_flag("JOB_QUEUE_ENABLED", "true")
    reminders_enabled: bool = _env_flag("REMINDERS_ENABLED", "true")
    reminder_interval_minutes: int = int(os.getenv("REMINDER_INTERVAL_MINUTES", "15"))

    # Development/Debug
    debug: bool = _env_flag("DEBUG")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
