"""
Application settings and configuration management.

Uses pydantic-settings for environment variable loading.
"""

from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "PrepVoice"
    app_version: str = "0.1.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # LLM gateway (any OpenAI-compatible chat completions API, Groq by default)
    llm_api_base: str = "https://api.groq.com/openai/v1"
    llm_api_key: str = ""
    llm_model: str = "llama-3.3-70b-versatile"

    # Speech-to-text (Whisper-compatible transcription API)
    stt_api_url: str = "https://api.groq.com/openai/v1/audio/transcriptions"
    stt_api_key: str = ""
    stt_model: str = "whisper-large-v3-turbo"
    stt_language: str = "en"

    # Text-to-speech
    tts_provider: str = "openai"  # Options: openai, edge-tts
    tts_api_url: str = "https://api.openai.com/v1/audio/speech"
    tts_api_key: str = ""
    tts_model: str = "tts-1"
    tts_voice: str = "alloy"
    edge_tts_voice: str = "en-US-GuyNeural"

    # Evaluation gateway policy
    ai_timeout_seconds: float = 30.0
    ai_max_attempts: int = 2

    # Interview settings
    default_total_questions: int = 5
    max_total_questions: int = 20
    tab_switch_limit: int = 3

    # Persistence (empty = in-memory store)
    database_url: str = ""

    # Langfuse observability
    langfuse_enabled: bool = False
    langfuse_public_key: str = ""
    langfuse_secret_key: str = ""
    langfuse_base_url: str = "https://cloud.langfuse.com"

    # CORS - stored as comma-separated string in env
    cors_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        validation_alias="cors_origins"
    )

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
