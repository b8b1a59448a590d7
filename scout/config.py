"""Scout configuration — loaded from .env via pydantic-settings."""

from pydantic_settings import BaseSettings
from pydantic import Field


class ScoutSettings(BaseSettings):
    """All Scout configuration. Reads from .env file and environment variables."""

    # --- Gemini research backend ---
    gemini_api_key: str = Field(default="", description="Generative Language API key")
    gemini_model: str = Field(
        default="gemini-2.5-pro",
        description="Model used for discovery, identification and research",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Generative Language REST base URL",
    )
    gemini_timeout: float = Field(default=180.0, description="Per-request timeout in seconds")

    # --- Google Sheets mirror ---
    sheets_access_token: str = Field(
        default="",
        description="OAuth bearer token with the spreadsheets scope",
    )
    sheets_base_url: str = Field(default="https://sheets.googleapis.com/v4")
    sheets_spreadsheet_id: str = Field(
        default="",
        description="Default destination spreadsheet; a new one is created when empty",
    )
    sheets_title: str = Field(default="Product Research Knowledge Base")
    sheets_range: str = Field(default="Sheet1", description="Sheet (tab) name rows are appended to")

    # --- Tracing ---
    trace_persist: bool = Field(
        default=False,
        description="Write Synapse events to ~/.scout/traces/<correlation_id>.jsonl",
    )

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="console",
        description="Log format: 'console' for dev, 'json' for production",
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# Singleton, import this everywhere
settings = ScoutSettings()
