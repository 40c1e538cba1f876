"""
Apostrophe Backend — AI Route Handlers
========================================

What:  HTTP surface for every AI feature of the editor.
Why:   The editor's slash commands, AI sidebar and settings dialog all talk
       to the backend through these endpoints.
How:   Thin handlers: validate the body (Pydantic), call AIService, shape
       the response. Errors from specialised operations propagate to the
       global ProviderRequestError handler.

Status code policy:
    generate / ask / transform   always 200; `ok` in the body tells the story
    specialised operations       200 on success, 429 / 502 / 503 on provider failure
    credentials                  204 on save, 400 for a provider without keys
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from apostrophe.schemas.ai import (
    AskRequest,
    ClassificationResponse,
    ClassifyRequest,
    CoverImageRequest,
    CoverImageResponse,
    CredentialRequest,
    DispatchResponse,
    EmbeddingsRequest,
    EmbeddingsResponse,
    GenerateRequest,
    ProviderStatusResponse,
    SentimentResponse,
    TextRequest,
    TextResponse,
    TranscribeRequest,
    TransformRequest,
)
from apostrophe.schemas.note import ErrorResponse
from apostrophe.services.ai_service import AIService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI"])

_PROVIDER_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    429: {"description": "Provider rate limited", "model": ErrorResponse},
    502: {"description": "Provider returned an error", "model": ErrorResponse},
    503: {"description": "Provider unavailable or not configured", "model": ErrorResponse},
}


def get_ai_service(request: Request) -> AIService:
    return request.app.state.ai_service


# ══════════════════════════════════════════════════════════════════════════
# Dispatched text generation (fallback across providers)
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/generate",
    response_model=DispatchResponse,
    summary="Generate text with provider fallback",
    description="Tries Gemini, then Hugging Face, then Ollama; returns the first answer.",
)
async def generate(
    body: GenerateRequest, ai: AIService = Depends(get_ai_service)
) -> DispatchResponse:
    return DispatchResponse.from_outcome(await ai.generate(body.prompt))


@router.post("/ask", response_model=DispatchResponse, summary="Answer a question about a note")
async def ask(body: AskRequest, ai: AIService = Depends(get_ai_service)) -> DispatchResponse:
    return DispatchResponse.from_outcome(await ai.ask(body.question, body.context))


@router.post(
    "/transform",
    response_model=DispatchResponse,
    summary="Rewrite text following an instruction",
)
async def transform(
    body: TransformRequest, ai: AIService = Depends(get_ai_service)
) -> DispatchResponse:
    return DispatchResponse.from_outcome(await ai.transform(body.text, body.instruction))


# ══════════════════════════════════════════════════════════════════════════
# Specialised single-provider operations
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/cover-image",
    response_model=CoverImageResponse,
    responses=_PROVIDER_ERRORS,
    summary="Generate a cover image for a note",
)
async def cover_image(
    body: CoverImageRequest, ai: AIService = Depends(get_ai_service)
) -> CoverImageResponse:
    path = await ai.generate_cover_image(body.prompt, body.note_id)
    return CoverImageResponse(path=path, url=f"/api/files/{path}")


@router.post(
    "/transcribe",
    response_model=TextResponse,
    responses=_PROVIDER_ERRORS,
    summary="Transcribe base64 audio to text",
)
async def transcribe(
    body: TranscribeRequest, ai: AIService = Depends(get_ai_service)
) -> TextResponse:
    return TextResponse(text=await ai.transcribe(body.audio))


@router.post(
    "/embeddings",
    response_model=EmbeddingsResponse,
    responses=_PROVIDER_ERRORS,
    summary="Embed a batch of texts",
)
async def embeddings(
    body: EmbeddingsRequest, ai: AIService = Depends(get_ai_service)
) -> EmbeddingsResponse:
    return EmbeddingsResponse(embeddings=await ai.embed(body.texts))


@router.post(
    "/summarize",
    response_model=TextResponse,
    responses=_PROVIDER_ERRORS,
    summary="Summarize text",
)
async def summarize(body: TextRequest, ai: AIService = Depends(get_ai_service)) -> TextResponse:
    return TextResponse(text=await ai.summarize(body.text))


@router.post(
    "/classify",
    response_model=ClassificationResponse,
    responses=_PROVIDER_ERRORS,
    summary="Zero-shot classification against candidate labels",
)
async def classify(
    body: ClassifyRequest, ai: AIService = Depends(get_ai_service)
) -> ClassificationResponse:
    result = await ai.classify(body.text, body.labels)
    return ClassificationResponse(labels=result.labels, scores=result.scores)


@router.post(
    "/sentiment",
    response_model=SentimentResponse,
    responses=_PROVIDER_ERRORS,
    summary="Sentiment of a text",
)
async def sentiment(
    body: TextRequest, ai: AIService = Depends(get_ai_service)
) -> SentimentResponse:
    result = await ai.sentiment(body.text)
    return SentimentResponse(label=result.label, confidence=result.confidence)


# ══════════════════════════════════════════════════════════════════════════
# Provider management
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/providers",
    response_model=ProviderStatusResponse,
    summary="Which AI providers are configured",
)
async def providers(ai: AIService = Depends(get_ai_service)) -> ProviderStatusResponse:
    return ProviderStatusResponse.model_validate(ai.provider_status())


@router.put(
    "/credentials/{provider}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"description": "Unknown provider or empty key", "model": ErrorResponse}},
    summary="Save an API key for a provider",
)
async def save_credential(
    provider: str,
    body: CredentialRequest,
    ai: AIService = Depends(get_ai_service),
) -> Response:
    ai.save_credential(provider, body.api_key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
