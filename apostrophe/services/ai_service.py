"""
Apostrophe Backend — AI Service (Operations Exposed to the Editor)
====================================================================

What:  Every AI feature the editor offers, behind one object.
Why:   Routes stay thin: they translate HTTP to these calls and back.
How:   Text features (generate / ask / transform) go through the Dispatcher
       and return its tagged outcome. Specialised features call the Hugging
       Face adapter directly and raise ProviderRequestError on failure.
Who:   Built once in create_app(); injected into routes via app.state.

Operation map:
    generate(prompt)              → Dispatcher
    ask(question, context)        → Dispatcher with the Q&A template
    transform(text, instruction)  → Dispatcher with the rewrite template
    generate_cover_image          → HF image model  → <images_root>/<note>/cover.png
    transcribe                    → HF whisper model
    embed                         → HF sentence embeddings
    summarize                     → HF summarization model
    classify                      → HF zero-shot model
    sentiment                     → HF sentiment model
    provider_status()             → which providers have a credential
    save_credential()             → CredentialResolver.persist
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, TypeVar

from apostrophe.config import Settings
from apostrophe.exceptions import ProviderRequestError, ValidationError
from apostrophe.services.credentials import CredentialResolver
from apostrophe.services.dispatcher import Dispatcher, DispatchOutcome
from apostrophe.services.file_service import FileService
from apostrophe.services.huggingface_service import (
    ClassificationResult,
    HuggingFaceAdapter,
    SentimentResult,
)
from apostrophe.services.llm_base import Failure, ProviderName, ProviderResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

ASK_TEMPLATE = (
    "Context:\n{context}\n\n"
    "Question: {question}\n\n"
    "Answer the question based on the context above. If the answer is not in "
    "the context, say so but try to be helpful based on general knowledge if "
    "appropriate."
)

TRANSFORM_TEMPLATE = "{instruction}\n\nContent:\n{text}"

COVER_FILENAME = "cover.png"


@dataclass(frozen=True)
class ProviderStatus:
    gemini: bool
    huggingface: bool
    ollama: bool
    gemini_model: str
    huggingface_model: str
    hf_image_model: str
    hf_whisper_model: str
    ollama_model: str


class AIService:
    def __init__(
        self,
        settings: Settings,
        resolver: Optional[CredentialResolver] = None,
        dispatcher: Optional[Dispatcher] = None,
        huggingface: Optional[HuggingFaceAdapter] = None,
        file_service: Optional[FileService] = None,
    ):
        self.settings = settings
        self.resolver = resolver or CredentialResolver(settings)
        self.dispatcher = dispatcher or Dispatcher(settings, self.resolver)
        self.huggingface = huggingface or HuggingFaceAdapter(settings)
        self.file_service = file_service or FileService(settings)

    # ── Dispatched text operations ────────────────────────────────────────

    async def generate(self, prompt: str) -> DispatchOutcome:
        return await self.dispatcher.generate(prompt)

    async def ask(self, question: str, context: str) -> DispatchOutcome:
        return await self.dispatcher.generate(
            ASK_TEMPLATE.format(context=context, question=question)
        )

    async def transform(self, text: str, instruction: str) -> DispatchOutcome:
        return await self.dispatcher.generate(
            TRANSFORM_TEMPLATE.format(instruction=instruction, text=text)
        )

    # ── Specialised operations (Hugging Face only) ────────────────────────

    def _hf_credential(self) -> Optional[str]:
        return self.resolver.resolve(ProviderName.HUGGINGFACE)

    @staticmethod
    def _unwrap(result: ProviderResult[T], operation: str) -> T:
        if isinstance(result, Failure):
            logger.warning("%s failed: %s", operation, result)
            raise ProviderRequestError(
                kind=result.kind,
                provider=ProviderName.HUGGINGFACE.value,
                detail=result.detail,
                context={"operation": operation},
            )
        return result.value

    async def generate_cover_image(self, prompt: str, note_id: str) -> str:
        """
        Generate a cover image for a note.

        Returns:
            Path of the image relative to images_root (servable via /api/files)
        """
        output_path = self.file_service.note_image_path(note_id, COVER_FILENAME)
        result = await self.huggingface.generate_image(
            prompt, self._hf_credential(), output_path
        )
        saved: Path = self._unwrap(result, "image generation")
        return self.file_service.relative(saved)

    async def transcribe(self, audio_base64: str) -> str:
        result = await self.huggingface.transcribe(audio_base64, self._hf_credential())
        return self._unwrap(result, "transcription")

    async def embed(self, texts: List[str]) -> List[List[float]]:
        result = await self.huggingface.embed(texts, self._hf_credential())
        return self._unwrap(result, "embeddings")

    async def summarize(self, text: str) -> str:
        result = await self.huggingface.summarize(text, self._hf_credential())
        return self._unwrap(result, "summarization")

    async def classify(self, text: str, labels: List[str]) -> ClassificationResult:
        if not labels:
            raise ValidationError(message="At least one label is required", field="labels")
        result = await self.huggingface.classify(text, labels, self._hf_credential())
        return self._unwrap(result, "classification")

    async def sentiment(self, text: str) -> SentimentResult:
        result = await self.huggingface.sentiment(text, self._hf_credential())
        return self._unwrap(result, "sentiment")

    # ── Provider management ───────────────────────────────────────────────

    def provider_status(self) -> ProviderStatus:
        """Which providers are usable right now. Ollama is always assumed present."""
        return ProviderStatus(
            gemini=self.resolver.resolve(ProviderName.GEMINI) is not None,
            huggingface=self.resolver.resolve(ProviderName.HUGGINGFACE) is not None,
            ollama=True,
            gemini_model=self.settings.gemini_model,
            huggingface_model=self.settings.hf_text_model,
            hf_image_model=self.settings.hf_image_model,
            hf_whisper_model=self.settings.hf_whisper_model,
            ollama_model=self.settings.ollama_model,
        )

    def save_credential(self, provider: str, api_key: str) -> None:
        """
        Raises:
            ValidationError: empty key, or provider takes no credential
        """
        if not api_key or not api_key.strip():
            raise ValidationError(message="API key must not be empty", field="api_key")
        self.resolver.persist(provider, api_key.strip())
