"""
Configuration for the claim risk and verification pipeline.

Handles API keys and model settings for the generation gateway.
"""

from typing import Optional

from ..utils.config import Settings, get_settings

DEFAULT_MODELS = {
    "claude": "claude-3-5-sonnet-20241022",
    "openai": "gpt-4o-mini",
    "mock": "mock",
}


class GenerationConfig:
    """Configuration for the text generation gateway."""

    def __init__(
        self,
        llm_provider: str = "mock",
        llm_model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        max_tokens: int = 1024,
    ):
        """
        Initialize generation configuration.

        Args:
            llm_provider: LLM provider ('claude', 'openai', or 'mock')
            llm_model: Specific model to use (default depends on provider)
            api_key: API key (if None, the SDK reads it from the environment)
            timeout: Seconds to wait for one generation call
            max_tokens: Maximum tokens generated per call
        """
        self.llm_provider = llm_provider.lower()
        self.llm_model = llm_model or DEFAULT_MODELS.get(self.llm_provider, "mock")
        self.api_key = api_key or ""
        self.timeout = timeout
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationConfig":
        """Create config from application settings."""
        return cls(
            llm_provider=settings.llm_provider,
            llm_model=settings.llm_model,
            api_key=settings.api_key,
            timeout=settings.generation_timeout,
            max_tokens=settings.generation_max_tokens,
        )

    @classmethod
    def from_env(cls) -> "GenerationConfig":
        """Create config from environment variables."""
        return cls.from_settings(get_settings())

    def validate(self) -> bool:
        """Check if configuration is valid."""
        if self.llm_provider not in DEFAULT_MODELS:
            return False
        if self.llm_provider in ["claude", "openai"]:
            return bool(self.api_key)
        return True  # Mock doesn't need API key
