"""
Application configuration settings
FILE: practice_api/core/config.py
"""
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    environment: str = "development"

    # MongoDB Configuration
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "practice_app"

    # Redis Configuration (rate-limit counters + explanation cache)
    redis_url: str = "redis://localhost:6379/0"

    # Completion provider
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4-turbo"
    openai_timeout: float = 60.0

    # AI explanations
    explanation_ttl_seconds: int = 60 * 60 * 24 * 7
    explanation_cents_per_token: float = 0.002
    explanation_audit_required: bool = False

    # AI explanation quota (fixed windows)
    ai_quota_minute_limit: int = 5
    ai_quota_minute_window: int = 60
    ai_quota_day_limit: int = 50
    ai_quota_day_window: int = 86400

    # Generic per-IP API throttle
    api_rate_limit: int = 120
    api_rate_window: int = 60

    # Server-backed practice sessions
    session_question_limit: int = 24

    # Sample (offline) practice sessions
    sample_question_limit: int = 24
    snapshot_dir: str = "snapshots"

    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:4000",
    ]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "allow"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def get_settings() -> Settings:
    """Build settings from the current environment"""
    return Settings()
