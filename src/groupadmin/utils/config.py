"""Configuration management using Pydantic settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime tunables loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GROUPADMIN_",
        extra="ignore",
    )

    # Exchange Online PowerShell
    pwsh_path: str = Field(default="pwsh", description="PowerShell 7 executable")
    powershell_timeout: int = Field(
        default=120, gt=0, description="Seconds before a PowerShell call is abandoned"
    )

    # Microsoft Graph
    graph_page_size: int = Field(
        default=999, gt=0, le=999, description="$top for paged directory queries"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
