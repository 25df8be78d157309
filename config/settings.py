"""
Personal CRM Configuration Settings
"""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Data directory holding contacts.json, interactions.json,
    # contact-summaries.json and config.json
    data_path: Path = Field(
        default=Path("./data"),
        alias="CRM_DATA_PATH"
    )

    # Server
    port: int = Field(default=8000, alias="CRM_PORT")
    host: str = Field(default="0.0.0.0", alias="CRM_HOST")

    # Base URL the MCP bridge forwards tool calls to
    api_url: str = Field(
        default="http://localhost:8000",
        alias="CRM_API_URL",
        description="CRM API base URL used by mcp_server.py"
    )

    # Interaction type used when log_interaction is called without one
    default_interaction_type: str = Field(
        default="catch-up",
        alias="CRM_DEFAULT_INTERACTION_TYPE",
        description="Fallback interaction type (catch-up, meeting, call, message, event, other)"
    )

    log_level: str = Field(default="INFO", alias="CRM_LOG_LEVEL")


settings = Settings()
