from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Optional

from pdfquiz.schemas.quiz import MAX_QUESTIONS


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── AI Provider ───────────────────────────────────────────────────────────
    AI_PROVIDER: str = "azure"

    @field_validator("AI_PROVIDER")
    @classmethod
    def validate_ai_provider(cls, v: str) -> str:
        allowed = {"azure", "groq", "gemini"}
        if v.lower() not in allowed:
            raise ValueError(f"AI_PROVIDER must be one of {allowed}, got '{v}'")
        return v.lower()

    # Azure OpenAI (primary deployment)
    AZURE_OPENAI_API_KEY: Optional[str] = None
    AZURE_OPENAI_ENDPOINT: Optional[str] = None
    AZURE_OPENAI_DEPLOYMENT_ID: Optional[str] = None
    AZURE_OPENAI_API_VERSION: str = "2025-01-01-preview"

    # Groq (Llama 3 - High Speed)
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.3-70b-versatile"

    # Google (Gemini - native PDF input)
    GOOGLE_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"

    # ── Generation ────────────────────────────────────────────────────────────
    AI_JSON_MODE: bool = False  # ask the provider for JSON-only output
    AI_TEMPERATURE: float = 0.7
    QUIZ_MAX_TOKENS: int = 2048
    REVIEW_MAX_TOKENS: int = 512
    TITLE_MAX_TOKENS: int = 10

    # ── Limits ────────────────────────────────────────────────────────────────
    MAX_FILE_SIZE_MB: int = 5
    DEFAULT_QUESTION_COUNT: int = 4
    MAX_QUESTION_COUNT: int = MAX_QUESTIONS
    AI_TIMEOUT_SECONDS: int = 120

    @field_validator("DEFAULT_QUESTION_COUNT", "MAX_QUESTION_COUNT")
    @classmethod
    def validate_question_count(cls, v: int) -> int:
        # Must stay within what GenerationRequest accepts.
        if not 1 <= v <= MAX_QUESTIONS:
            raise ValueError(f"Question counts must be between 1 and {MAX_QUESTIONS}, got {v}")
        return v

    # ── Core ──────────────────────────────────────────────────────────────────
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
