"""
Agent configuration.

Settings are read from the environment (and a ``.env`` file, if present)
once at startup.

Environment Variables:
    - OPENAI_API_KEY: OpenAI API key (required to start the agent)
    - OPENAI_MODEL: Model name (default: gpt-4o-mini)
    - OPENAI_BASE_URL: Optional custom API base URL
    - DATABASE_URL: PostgreSQL connection string (in-memory storage if unset)
    - AGENT_MAX_ITERATIONS: Provider round trips per turn (default: 15)
    - AGENT_HISTORY_LIMIT: Messages of history per turn (default: 30)
    - INTAKE_QUEUE_SIZE: Pending user messages across sessions (default: 1000)
    - SUBSCRIBER_QUEUE_SIZE: Pending events per live viewer (default: 1000)
    - ENQUEUE_TIMEOUT_SECONDS: Wait for room in the intake queue (default: 5)
    - CORS_ORIGINS: Comma separated allowed origins
    - LOG_LEVEL: Logging level (default: INFO)
    - PORT: HTTP port (default: 8000)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from .providers.base import LLMProviderConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass
class AgentSettings:
    """Runtime settings for the chat agent."""

    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_MODEL
    openai_base_url: Optional[str] = None
    database_url: Optional[str] = None
    max_iterations: int = 15
    history_limit: int = 30
    intake_queue_size: int = 1000
    subscriber_queue_size: int = 1000
    enqueue_timeout: float = 5.0
    cors_origins: list[str] = field(
        default_factory=lambda: DEFAULT_CORS_ORIGINS.split(",")
    )
    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls, dotenv: bool = True) -> AgentSettings:
        """Build settings from environment variables.

        Args:
            dotenv: Load a ``.env`` file first (existing variables win)

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        if dotenv:
            load_dotenv()

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            database_url=os.getenv("DATABASE_URL") or None,
            max_iterations=_env_int("AGENT_MAX_ITERATIONS", 15),
            history_limit=_env_int("AGENT_HISTORY_LIMIT", 30),
            intake_queue_size=_env_int("INTAKE_QUEUE_SIZE", 1000),
            subscriber_queue_size=_env_int("SUBSCRIBER_QUEUE_SIZE", 1000),
            enqueue_timeout=_env_float("ENQUEUE_TIMEOUT_SECONDS", 5.0),
            cors_origins=[
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
                if origin.strip()
            ],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=_env_int("PORT", 8000),
        )

    def provider_config(self) -> LLMProviderConfig:
        """LLM provider configuration.

        Raises:
            ValueError: If OPENAI_API_KEY is not set
        """
        if not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY is not configured")
        return LLMProviderConfig(
            api_key=self.openai_api_key,
            model=self.openai_model,
            base_url=self.openai_base_url,
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the standard format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
