"""PyArchitect configuration — loaded from .env via pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class PlaygroundSettings(BaseSettings):
    """All PyArchitect configuration. Reads from .env file and environment variables."""

    # --- Generative text service ---
    ai_provider: str = Field(
        default="gemini",
        description="Text service provider: gemini|openai",
    )
    ai_model: str = Field(
        default="gemini-2.5-flash",
        description="Model identifier passed to the text service",
    )
    ai_timeout: float = Field(default=60.0, description="HTTP timeout for assistant requests (seconds)")

    gemini_api_key: str = Field(default="", description="API key for the Gemini REST API")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )

    # OpenAI-compatible endpoint (local inference servers, proxies)
    openai_base_url: str = Field(default="http://localhost:8000")
    openai_api_key: str = Field(default="")

    # --- Embedded runtime ---
    runtime_python: str = Field(
        default="",
        description="Interpreter used for the runtime worker (empty = current interpreter)",
    )
    runtime_start_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for the runtime worker to report ready",
    )

    # --- Progress ---
    progress_path: Path = Field(
        default=Path.home() / ".pyarchitect" / "progress.json",
        description="Where the list of completed module ids is stored",
    )

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="console",
        description="Log format: 'console' for dev, 'json' for production",
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# Singleton — import this everywhere
settings = PlaygroundSettings()
