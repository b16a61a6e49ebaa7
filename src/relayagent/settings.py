from typing import Dict, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    dispatch_endpoint: str = "/"

    openai_api_key: str | None = None
    openai_base_url: str | None = None
    model: str = "gpt-4o"
    temperature: float = 0.7
    session_max_tokens: int = 4096
    openai_timeout_seconds: float = 600.0
    openai_max_retries: int = 2

    # Secondary model used by summarize_<tool> variants; disabled when unset.
    summarizer_model: str | None = None

    session_max_iteration: int = 10
    parallel_tool_calls: bool = False
    fetch_tools_function: str = "cubicler_fetch_server_tools"

    # name -> command line, e.g. {"weather": "python -u weather_server.py"}
    mcp_servers: Dict[str, str] = {}

    memory_enabled: bool = False
    memory_max_tokens: int = 2000
    memory_default_importance: float = 0.5

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )


def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    global _SETTINGS
    try:
        return _SETTINGS
    except NameError:
        _SETTINGS = Settings()
        return _SETTINGS
