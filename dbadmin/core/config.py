"""
Configuration Management

Centralized configuration using Pydantic Settings.

Every field can be set from the environment with the DBADMIN_ prefix
(e.g. DBADMIN_TYPE_MAPPING_PATH) or from a .env file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="DBADMIN_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "dbadmin"
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Type mapping rules (falls back to ~/.dbadmin then the packaged file)
    type_mapping_path: Optional[Path] = Field(default=None)

    # Connection registry persistence and credential encryption
    data_dir: Optional[Path] = Field(default=None)
    secret_key: Optional[str] = Field(default=None)

    # Query / export defaults
    default_page_size: int = Field(default=1000, ge=1)
    export_batch_size: int = Field(default=100, ge=1)
    csv_null_value: str = Field(default="NULL")

    # Driver defaults, applied when a descriptor does not override them
    connect_timeout: int = Field(default=10, ge=1)


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
