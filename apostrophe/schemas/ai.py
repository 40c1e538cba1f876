"""
Apostrophe Backend — AI Request/Response Schemas
==================================================

What:  API contract for /api/ai/* endpoints.

Dispatch endpoints (generate / ask / transform) always answer 200 with a
DispatchResponse. `ok` is authoritative; `error` carries the human-readable
failure message, which starts with "Error: All AI providers failed. ".
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from apostrophe.services.dispatcher import DispatchOutcome, DispatchSuccess


# ── Requests ──────────────────────────────────────────────────────────────

class GenerateRequest(BaseModel):
    prompt: str


class AskRequest(BaseModel):
    question: str
    context: str = ""


class TransformRequest(BaseModel):
    text: str
    instruction: str


class CoverImageRequest(BaseModel):
    prompt: str = Field(min_length=1)
    note_id: str = Field(min_length=1)


class TranscribeRequest(BaseModel):
    audio: str = Field(min_length=1, description="Base64 audio, optionally a data URI")


class EmbeddingsRequest(BaseModel):
    texts: List[str]


class TextRequest(BaseModel):
    text: str = Field(min_length=1)


class ClassifyRequest(BaseModel):
    text: str = Field(min_length=1)
    labels: List[str] = Field(min_length=1)


class CredentialRequest(BaseModel):
    api_key: str = Field(min_length=1)


# ── Responses ─────────────────────────────────────────────────────────────

class AttemptResponse(BaseModel):
    provider: str
    kind: str
    detail: str = ""


class DispatchResponse(BaseModel):
    ok: bool
    text: Optional[str] = None
    provider: Optional[str] = None
    error: Optional[str] = None
    attempts: List[AttemptResponse] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: DispatchOutcome) -> "DispatchResponse":
        attempts = [
            AttemptResponse(provider=a.provider.value, kind=a.kind.value, detail=a.detail)
            for a in outcome.attempts
        ]
        if isinstance(outcome, DispatchSuccess):
            return cls(
                ok=True,
                text=outcome.text,
                provider=outcome.provider.value,
                attempts=attempts,
            )
        return cls(ok=False, error=outcome.message, attempts=attempts)


class CoverImageResponse(BaseModel):
    path: str
    url: str


class TextResponse(BaseModel):
    text: str


class EmbeddingsResponse(BaseModel):
    embeddings: List[List[float]]


class ClassificationResponse(BaseModel):
    labels: List[str]
    scores: List[float]


class SentimentResponse(BaseModel):
    label: str
    confidence: float


class ProviderStatusResponse(BaseModel):
    gemini: bool
    huggingface: bool
    ollama: bool
    gemini_model: str
    huggingface_model: str
    hf_image_model: str
    hf_whisper_model: str
    ollama_model: str

    model_config = {"from_attributes": True}
