"""
Apostrophe Backend — Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and produces a `Settings` object.
Who:   Built once by create_app() and handed to the credential resolver,
       provider adapters, dispatcher, database and file service.
When:  Constructed at process start; torn down with the application.

Design Decision:
    Provider endpoints and model identifiers live here instead of as
    module-level constants so tests (and power users) can point an adapter
    at a different host, e.g. a local mock or a closed port.

    Provider secrets are deliberately NOT fields of this class. They are
    resolved on every call by CredentialResolver (environment first, then
    ~/.apostrophe/*.txt) and never held in memory between calls.
"""

from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


def _home() -> Path:
    return Path.home()


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for a single-user desktop install.
    Attributes are grouped by concern for readability.
    """

    # ── Storage ───────────────────────────────────────────────────────────
    # What: SQLite database holding the notes table
    # Why SQLite: Local-first app, single user, single file next to the user's home
    database_url: str = Field(
        default_factory=lambda: f"sqlite+aiosqlite:///{_home() / 'notes.db'}",
        description="Async SQLAlchemy URL for the notes database",
    )

    # What: Per-user directory holding one plaintext secret file per provider
    config_dir: Path = Field(default_factory=lambda: _home() / ".apostrophe")

    # What: Root directory for pasted images and generated cover images
    # Layout: <images_root>/<note_id>/<filename>
    images_root: Path = Field(default_factory=lambda: _home() / "notes-images")

    # What: Maximum decoded size of an image pasted into a note
    max_image_size: int = Field(default=10_485_760, ge=1_048_576, le=52_428_800)

    # ── Google Gemini (cloud LLM, first in priority) ──────────────────────
    gemini_api_base: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models"
    )
    gemini_model: str = Field(default="gemini-2.0-flash")
    gemini_timeout: float = Field(default=30.0, gt=0, le=600)

    # ── Hugging Face Inference API (aggregator, second in priority) ───────
    huggingface_api_base: str = Field(
        default="https://api-inference.huggingface.co/models"
    )
    hf_text_model: str = Field(default="mistralai/Mistral-7B-Instruct-v0.3")
    hf_image_model: str = Field(default="black-forest-labs/FLUX.1-dev")
    hf_whisper_model: str = Field(default="openai/whisper-large-v3-turbo")
    hf_embedding_model: str = Field(default="sentence-transformers/all-MiniLM-L6-v2")
    hf_summarization_model: str = Field(default="facebook/bart-large-cnn")
    hf_sentiment_model: str = Field(
        default="cardiffnlp/twitter-roberta-base-sentiment-latest"
    )
    hf_zero_shot_model: str = Field(default="facebook/bart-large-mnli")

    # Text generation parameters sent with every HF completion request
    hf_max_new_tokens: int = Field(default=1024, ge=1, le=8192)
    hf_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # Summary length bounds (tokens, as understood by the summarization model)
    summary_min_length: int = Field(default=30, ge=1)
    summary_max_length: int = Field(default=150, ge=1)

    # Timeouts: image generation is slowest, plain analysis calls are quick
    huggingface_timeout: float = Field(default=60.0, gt=0, le=600)
    hf_image_timeout: float = Field(default=120.0, gt=0, le=600)
    hf_transcription_timeout: float = Field(default=60.0, gt=0, le=600)
    hf_analysis_timeout: float = Field(default=30.0, gt=0, le=600)

    # ── Ollama (local model, last in priority, no credential) ─────────────
    ollama_endpoint: str = Field(default="http://localhost:11434/api/generate")
    ollama_model: str = Field(default="llama3.1:8b")
    ollama_timeout: float = Field(default=120.0, gt=0, le=600)

    # ── CORS ──────────────────────────────────────────────────────────────
    # What: The editor front end runs on its own dev server
    cors_origins: str = Field(default="http://localhost:3000,wails://wails")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    # Why loopback: The backend serves a single local user
    backend_host: str = Field(default="127.0.0.1")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @field_validator("gemini_api_base", "huggingface_api_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def gemini_url(self) -> str:
        """Full generateContent URL for the configured Gemini model."""
        return f"{self.gemini_api_base}/{self.gemini_model}:generateContent"

    def huggingface_url(self, model: str) -> str:
        """Inference URL for a Hugging Face model id (org/name)."""
        return f"{self.huggingface_api_base}/{model}"
