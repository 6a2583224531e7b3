from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Registry server configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Configuration store (SQLite file, created on first start)
    database_path: str = "data/photon.db"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # List / ListResults caps
    default_list_limit: int = 10
    max_list_limit: int = 1000

    # Logging
    log_level: str = "INFO"


settings = Settings()
