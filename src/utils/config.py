"""
Configuration management using pydantic-settings.

Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Generation Configuration
    llm_provider: str = Field(
        default="mock",
        description="Text generation provider: claude, openai or mock",
    )
    llm_model: Optional[str] = Field(
        default=None,
        description="Model override (default depends on provider)",
    )
    anthropic_api_key: Optional[str] = Field(
        default=None,
        description="Anthropic API key for the claude provider",
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key for the openai provider",
    )
    generation_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for a single generation call",
    )
    generation_max_tokens: int = Field(
        default=1024,
        description="Upper bound on generated tokens per call",
    )

    # Persistence
    db_path: Path = Field(
        default=PROJECT_ROOT / "data" / "claims.db",
        description="SQLite database file for claims and verifications",
    )

    # Document storage
    storage_root: Path = Field(
        default=PROJECT_ROOT / "data" / "objects",
        description="Root directory of the local object store",
    )
    storage_bucket: str = Field(default="trueclaim", description="Bucket holding claim documents")
    signing_secret: str = Field(
        default="change-me",
        description="Secret used to sign document URLs",
    )
    signed_url_ttl: int = Field(default=3600, description="Signed URL lifetime in seconds")
    max_upload_bytes: int = Field(
        default=50 * 1024 * 1024,
        description="Largest accepted document upload (50MB)",
    )

    # OCR
    ocr_language: str = Field(default="eng", description="Tesseract language pack")

    # Verification policy
    verified_threshold: float = Field(
        default=80.0,
        description="Overall confidence at or above which documents are VERIFIED",
    )
    review_threshold: float = Field(
        default=50.0,
        description="Overall confidence at or above which documents NEED_REVIEW",
    )

    # API
    api_tokens: Dict[str, str] = Field(
        default_factory=dict,
        description="Bearer token -> principal email map for the built-in resolver",
    )
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    @property
    def api_key(self) -> Optional[str]:
        """API key of the configured provider."""
        if self.llm_provider.lower() == "claude":
            return self.anthropic_api_key
        if self.llm_provider.lower() == "openai":
            return self.openai_api_key
        return None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()
