"""
Configuration for Testimony Prep Service
========================================

Environment variables:
- CASEDEV_API_KEY: API key for the case.dev LLM gateway (required for generation)
- CASEDEV_LLM_BASE_URL: Chat-completions base URL (default: https://api.case.dev/llm/v1)
- WITNESS_MODEL: Model for witness cross-exam questions (default: casemark/casemark-core-1)
- DEPOSITION_MODEL: Model for deposition analysis (default: anthropic/claude-3-haiku-20240307)
- PRACTICE_MODEL: Model for the practice examiner (default: anthropic/claude-3-haiku-20240307)
- LLM_TEMPERATURE / LLM_MAX_TOKENS / LLM_TIMEOUT: Sampling and transport settings
- SESSION_TTL_HOURS: Session lifetime before the lazy sweep removes it (default: 24)
- MAX_UPLOAD_BYTES: Upload size limit (default: 10MB)
"""

from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM gateway
    casedev_api_key: Optional[str] = None
    casedev_llm_base_url: str = "https://api.case.dev/llm/v1"

    # Models per tool
    witness_model: str = "casemark/casemark-core-1"
    deposition_model: str = "anthropic/claude-3-haiku-20240307"
    practice_model: str = "anthropic/claude-3-haiku-20240307"

    # Sampling
    llm_temperature: float = 0.7
    llm_max_tokens: int = 8000
    practice_max_tokens: int = 1000

    # Timeouts (seconds)
    llm_timeout: int = 120

    # Sessions
    session_ttl_hours: int = 24

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024

    # HTTP
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    enforce_https: bool = False
    hsts_max_age: int = 31536000

    # Logging
    log_level: str = "INFO"

    @property
    def llm_configured(self) -> bool:
        return bool(self.casedev_api_key)

    def cors_origins(self) -> List[str]:
        """Split the comma separated CORS origins, dropping quotes and trailing slashes"""
        origins: List[str] = []
        for item in self.cors_allow_origins.split(","):
            origin = item.strip().strip('"').strip("'").rstrip("/")
            if origin:
                origins.append(origin)
        return origins

    def validate_llm_config(self) -> List[str]:
        """Validate LLM configuration, return list of warnings"""
        warnings = []

        if not self.casedev_api_key:
            warnings.append(
                "CASEDEV_API_KEY not set - question generation and practice are disabled"
            )

        if not self.casedev_llm_base_url.startswith("https://"):
            warnings.append("CASEDEV_LLM_BASE_URL is not an https URL")

        if self.llm_max_tokens < 1000:
            warnings.append("LLM_MAX_TOKENS below 1000 - 20 questions will likely be truncated")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
