"""
Service configuration, read from the environment and an optional .env file
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Club events service settings"""

    # Storage backends
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./clubhub.db")
    USE_FIREBASE: bool = os.getenv("USE_FIREBASE", "false").lower() in ("1", "true", "yes")
    FIREBASE_CREDENTIALS_JSON: str | None = os.getenv("FIREBASE_CREDENTIALS_JSON")
    FIREBASE_CREDENTIALS_FILE: str | None = os.getenv("FIREBASE_CREDENTIALS_FILE")
    FIREBASE_CREDENTIALS_B64: str | None = os.getenv("FIREBASE_CREDENTIALS_B64")

    # Shared secret of the upstream identity gateway
    GATEWAY_TOKEN: str = os.getenv("GATEWAY_TOKEN", "gateway_token_123")

    # Roster writes: compare-and-swap attempts before reporting the event busy
    ROSTER_MAX_RETRIES: int = int(os.getenv("ROSTER_MAX_RETRIES", "10"))

    # Feedback listings and analytics windows
    FEEDBACK_PAGE_SIZE: int = 10
    ANALYTICS_TIMEFRAME_DAYS: int = 30

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]

    # Requests per identity per minute on registration and feedback submission
    RATE_LIMIT_PER_MINUTE: int = 30

    class Config:
        env_file = ".env"

settings = Settings()
