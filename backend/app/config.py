"""
backend/app/config.py

Purpose:
    Central settings loading for the tip feed backend.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str
    MONGO_DB: str = "tipfeed"
    JWT_SECRET: str
    JWT_SECRET_OLD: str = ""  # Set during rotation; cleared after 7 days
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"
    COOKIE_SECURE: bool = False  # Set True in production (HTTPS)
    LOG_LEVEL: str = "INFO"

    # JWT settings
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Seed admin user (leave empty to skip seeding)
    SEED_ADMIN_EMAIL: str = ""
    SEED_ADMIN_PASSWORD: str = ""
    SEED_ADMIN_USERNAME: str = "admin"

    # Feed and ranking
    LEADERBOARD_SIZE: int = 10
    TIPS_FEED_LIMIT: int = 200

    # WebSocket change feed
    WS_EVENTS_ENABLED: bool = True
    WS_HEARTBEAT_SECONDS: int = 30
    WS_MAX_CONNECTIONS: int = 500

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
