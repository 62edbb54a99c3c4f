"""
Application configuration loaded from environment variables.

Uses Pydantic Settings to:
1. Read from .env file automatically
2. Validate all required values exist at startup
3. Provide type-safe access throughout the app

Usage:
    from app.config import settings
    print(settings.S3_BUCKET)

Note: We use a validator that prefers .env values over empty shell
environment variables, so an exported-but-empty JWT_SECRET doesn't
shadow the real value in the .env file.
"""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All application configuration in one place."""

    model_config = SettingsConfigDict(
        env_file=".env",        # Load from .env file
        env_file_encoding="utf-8",
        case_sensitive=True,     # ENV_VAR must match exactly
    )

    @model_validator(mode="before")
    @classmethod
    def prefer_dotenv_over_empty_env(cls, data):
        """If an env var is empty but .env has a value, use the .env value.

        Pydantic Settings prioritizes real env vars over .env file values,
        even when the env var is an empty string.
        """
        from dotenv import dotenv_values

        dotenv_vals = dotenv_values(".env")
        for key, dotenv_value in dotenv_vals.items():
            # If the field is missing or empty, use the .env value
            if dotenv_value and (key not in data or not data.get(key)):
                data[key] = dotenv_value
        return data

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./tubely.db"

    # --- Security ---
    JWT_SECRET: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 60

    # --- Assets (thumbnails) ---
    ASSETS_ROOT: str = "assets"
    BASE_URL: str = "http://localhost:8091"
    THUMBNAIL_STORAGE: Literal["inline", "disk"] = "disk"
    MAX_THUMBNAIL_BYTES: int = 10 << 20  # 10 MB

    # --- Videos (object storage) ---
    MAX_VIDEO_BYTES: int = 1 << 30  # 1 GB
    S3_BUCKET: str = "tubely-videos"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""  # Set for MinIO / LocalStack
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    PRESIGNED_URL_EXPIRE_SECONDS: int = 5 * 60

    # --- Media tools ---
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"

    # --- Application ---
    PLATFORM: str = "dev"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    CORS_ORIGINS: str = "http://localhost:8091"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


# Singleton instance - import this everywhere
settings = Settings()
