"""
Configuration for Document Checker
==================================

Environment variables:
- LLM_MODE: none|gemini (default: none)
- GEMINI_API_KEY: API key for Gemini
- GEMINI_MODEL: Model to use (default: gemini-1.5-flash)
- LLM_TIMEOUT: Seconds before an analysis call is abandoned (default: 60)
- STORAGE_ROOT: Directory for uploaded document blobs (default: ./storage)
- COMPARISON_QUOTA_POLICY: exempt|metered (default: exempt)
- DATABASE_URL: read by db.session (default: sqlite:///./doc_checker.db)
"""

from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache

from .schemas import LLMMode, ComparisonQuotaPolicy


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # LLM Configuration
    llm_mode: LLMMode = LLMMode.NONE

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # Generation config, kept low-temperature for well-formed JSON
    llm_temperature: float = 0.1
    llm_top_k: int = 32
    llm_top_p: float = 0.95
    llm_max_output_tokens: int = 8192

    # Timeouts (seconds)
    llm_timeout: int = 60

    # Extraction
    min_text_length: int = 50

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024
    storage_root: str = "./storage"

    # Usage
    comparison_quota_policy: ComparisonQuotaPolicy = ComparisonQuotaPolicy.EXEMPT

    # Service info
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"

    def validate_llm_config(self) -> List[str]:
        """Validate LLM configuration, return list of warnings"""
        warnings = []

        if self.llm_mode == LLMMode.GEMINI and not self.gemini_api_key:
            warnings.append("LLM_MODE=gemini but GEMINI_API_KEY not set")

        if self.llm_mode == LLMMode.NONE:
            warnings.append("LLM_MODE=none - analysis requests will fail until a provider is configured")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def get_llm_mode() -> LLMMode:
    """Get current LLM mode"""
    return get_settings().llm_mode
