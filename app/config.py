"""Application configuration using Pydantic Settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "hours"

    # Local time used for day boundaries
    timezone: str = "Europe/Helsinki"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


settings = Settings()
