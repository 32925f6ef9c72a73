"""
Application configuration.

Settings are read from environment variables once and cached. Tests swap
them out through ``get_settings.cache_clear()`` or FastAPI dependency
overrides.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Runtime settings for the dashboard API."""

    data_dir: Path = Field(default=Path("data"), description="Directory holding the JSON collections")
    jwt_secret: str = Field(default="dev-secret-change-me")
    jwt_algorithm: str = "HS256"
    access_token_expire_days: int = 30
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    openweather_api_key: Optional[str] = None
    news_api_key: Optional[str] = None
    translate_api_url: str = "https://libretranslate.com/translate"
    translate_api_key: Optional[str] = None
    http_timeout: float = 10.0

    otp_ttl_minutes: int = 5
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None

    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            data_dir=Path(os.getenv("DATA_DIR", "data")),
            jwt_secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
            access_token_expire_days=int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "30")),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            openweather_api_key=os.getenv("OPENWEATHER_API_KEY") or None,
            news_api_key=os.getenv("NEWS_API_KEY") or None,
            translate_api_url=os.getenv("TRANSLATE_API_URL", "https://libretranslate.com/translate"),
            translate_api_key=os.getenv("TRANSLATE_API_KEY") or None,
            http_timeout=float(os.getenv("HTTP_TIMEOUT", "10")),
            otp_ttl_minutes=int(os.getenv("OTP_TTL_MINUTES", "5")),
            admin_email=os.getenv("ADMIN_EMAIL") or None,
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=int(os.getenv("PORT", "8000")),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
