"""
Configuration management for the FastAPI application.
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Host to bind the server")
    port: int = Field(default=8000, description="Port to bind the server")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Application
    app_name: str = Field(default="MediaChat API")
    app_version: str = Field(default="0.1.0")

    # Database (MongoDB)
    mongodb_url: str = Field(..., description="MongoDB connection URL")
    db_min_pool_size: int = Field(default=5, description="MongoDB min connection pool size")
    db_max_pool_size: int = Field(default=50, description="MongoDB max connection pool size")
    db_server_selection_timeout_ms: int = Field(default=5000, description="MongoDB server selection timeout")

    # Authentication
    jwt_secret_key: str = Field(..., description="JWT secret key")
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")

    # OpenRouter (text completion)
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1", description="OpenRouter API base URL")
    openrouter_model: str = Field(default="openai/gpt-4o-mini", description="Default completion model")
    openrouter_referer: str = Field(default="https://mediachat.local", description="HTTP-Referer sent upstream")
    openrouter_title: str = Field(default="AI Chatbot", description="X-Title sent upstream")
    openrouter_timeout: float = Field(default=60.0, description="OpenRouter read timeout in seconds")

    # Runware (image / video generation)
    runware_api_key: str = Field(default="", description="Runware API key")
    runware_base_url: str = Field(default="https://api.runware.ai/v1", description="Runware API base URL")
    runware_timeout: float = Field(default=120.0, description="Runware request timeout in seconds")
    runware_poll_interval: float = Field(default=2.0, description="Seconds between video task polls")
    runware_poll_max_attempts: int = Field(default=150, description="Max polls before a video task times out")

    # Memories.ai (video understanding)
    memories_api_key: str = Field(default="", description="Memories.ai API key")
    memories_base_url: str = Field(
        default="https://api.memories.ai/serve/api/v1",
        description="Memories.ai API base URL"
    )
    memories_timeout: float = Field(default=120.0, description="Memories.ai request timeout in seconds")
    memories_callback_url: str = Field(default="", description="Public URL for parse-status callbacks")
    memories_callback_token: str = Field(default="", description="Shared secret expected on parse-status callbacks")

    # Tool dispatch
    tool_max_attempts: int = Field(default=3, ge=1, description="Max attempts per tool invocation")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:5173"],
        description="Allowed CORS origins"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
