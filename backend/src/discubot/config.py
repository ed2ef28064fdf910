"""
Discubot Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables.
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for Discubot logs.

    Uses $XDG_STATE_HOME/discubot/logs when set, then
    $HOME/.local/state/discubot/logs, then ./logs.

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "discubot" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "discubot" / "logs")

    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    postgres_db: str = "discubot"
    postgres_user: str = "discubot"
    postgres_password: str = "discubot_dev_password"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_url_override: str = ""  # e.g. sqlite:///./discubot.db for local runs

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # AI analysis
    ai_provider: str = "anthropic"  # anthropic or openai
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    ai_summary_max_tokens: int = 1024
    ai_task_max_tokens: int = 2048
    ai_max_tasks: int = 5
    ai_cache_enabled: bool = True
    ai_cache_ttl_seconds: int = 3600

    # Source and destination platforms
    slack_api_base: str = "https://slack.com/api"
    figma_api_base: str = "https://api.figma.com/v1"
    notion_api_base: str = "https://api.notion.com/v1"
    notion_api_version: str = "2022-06-28"
    notion_api_key: str = ""  # Fallback when an output carries no token
    http_timeout_seconds: float = 15.0

    # Retry policy for failed discussions
    retry_max_attempts: int = 3
    retry_base_delay: float = 2.0
    retry_max_delay: float = 30.0

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Application
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # Defaults to XDG state dir if empty
    log_console_enabled: bool = True
    log_file_enabled: bool = True
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5

    # LLM Logging
    llm_logging_enabled: bool = False

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())


# Global settings instance
settings = Settings()
