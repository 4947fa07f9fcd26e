"""
Configuration management for the SuperTeacher grading assistant.

All configuration comes from environment variables or .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from typing import Optional
from functools import lru_cache

VALID_PROVIDERS = ("openai", "glm", "openrouter")
VALID_WORKFLOWS = ("cbse", "simple")
VALID_OCR_BACKENDS = ("vision", "remote")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SUPERTEACHER_",
        case_sensitive=False
    )

    # AI Provider
    ai_provider: str = "openai"  # "openai", "glm", "openrouter"

    # API Keys
    openai_api_key: str = ""
    glm_api_key: str = ""
    openrouter_api_key: str = ""

    # OpenAI Models
    openai_model: Optional[str] = None
    openai_vision_model: Optional[str] = None

    # GLM Models
    glm_model: Optional[str] = None
    glm_vision_model: Optional[str] = None

    # OpenRouter Models
    openrouter_model: Optional[str] = None
    openrouter_vision_model: Optional[str] = None

    # Backup grading endpoint (tried on the final grading attempt only)
    backup_provider: Optional[str] = None
    backup_model: Optional[str] = None

    # OCR
    ocr_backend: str = "vision"  # "vision" (LLM vision) or "remote" (OCR service)
    ocr_endpoint: str = "https://grading-api.onrender.com/extract-text"
    # Ask the grading model to structure paper text before the text extractor runs
    structure_question_papers: bool = True

    # Conversation
    workflow: str = "cbse"
    demo_mode: bool = False

    # Retry / timeouts
    grading_max_attempts: int = Field(default=3, ge=1)
    grading_base_delay: float = Field(default=2.0, ge=0)
    grading_max_delay: float = Field(default=30.0, gt=0)
    grading_attempt_timeout: float = Field(default=60.0, gt=0)
    ocr_max_attempts: int = Field(default=2, ge=1)
    ocr_attempt_timeout: float = Field(default=60.0, gt=0)
    structure_attempt_timeout: float = Field(default=60.0, gt=0)

    # Storage
    data_dir: str = "data"
    max_upload_mb: int = Field(default=10, ge=1)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Validators
    @field_validator('ai_provider')
    @classmethod
    def validate_ai_provider(cls, v: str) -> str:
        """Validate AI provider is a supported value."""
        if v.lower() not in VALID_PROVIDERS:
            raise ValueError(f"ai_provider must be one of: {', '.join(VALID_PROVIDERS)}")
        return v.lower()

    @field_validator('backup_provider')
    @classmethod
    def validate_backup_provider(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if v.lower() not in VALID_PROVIDERS:
            raise ValueError(f"backup_provider must be one of: {', '.join(VALID_PROVIDERS)}")
        return v.lower()

    @field_validator('workflow')
    @classmethod
    def validate_workflow(cls, v: str) -> str:
        if v.lower() not in VALID_WORKFLOWS:
            raise ValueError(f"workflow must be one of: {', '.join(VALID_WORKFLOWS)}")
        return v.lower()

    @field_validator('ocr_backend')
    @classmethod
    def validate_ocr_backend(cls, v: str) -> str:
        if v.lower() not in VALID_OCR_BACKENDS:
            raise ValueError(f"ocr_backend must be one of: {', '.join(VALID_OCR_BACKENDS)}")
        return v.lower()

    @model_validator(mode='after')
    def validate_api_keys(self):
        """Ensure required API keys are set unless running in demo mode."""
        if self.demo_mode:
            return self
        for provider in filter(None, (self.ai_provider, self.backup_provider)):
            if not getattr(self, f"{provider}_api_key", ""):
                raise ValueError(
                    f"SUPERTEACHER_{provider.upper()}_API_KEY required when provider={provider}"
                )
        return self

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from environment."""
    get_settings.cache_clear()
    return get_settings()
