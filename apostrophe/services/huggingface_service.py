"""
Apostrophe Backend — Hugging Face Inference API Adapter
=========================================================

What:  Text completion (second in the fallback chain) plus every specialised
       model the editor uses: cover images, speech-to-text, embeddings,
       summaries, zero-shot tags and sentiment.
Why:   One key unlocks many hosted models; the specialised tasks have no
       equivalent on the other providers, so they never fall back.
How:   Every call is one POST to {huggingface_api_base}/{model} with a
       Bearer token. The same classify → parse → extract pipeline as the
       other adapters turns the reply into Success(value) or Failure(kind).
Who:   Dispatcher (invoke), AIService (specialised methods).

Model defaults (overridable in Settings):
    text            mistralai/Mistral-7B-Instruct-v0.3
    image           black-forest-labs/FLUX.1-dev          (raw image bytes back)
    transcription   openai/whisper-large-v3-turbo         (raw audio bytes in)
    embeddings      sentence-transformers/all-MiniLM-L6-v2
    summarization   facebook/bart-large-cnn
    sentiment       cardiffnlp/twitter-roberta-base-sentiment-latest
    zero-shot       facebook/bart-large-mnli

Cold models:
    The Inference API answers 503 while a model is loading. That maps to
    TRANSIENT_UNAVAILABLE; embeddings additionally ask the API to wait.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from numbers import Real
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiofiles
import httpx

from apostrophe.config import Settings
from apostrophe.exceptions import FileStorageError, ValidationError
from apostrophe.services.llm_base import (
    ErrorKind,
    Failure,
    ProviderAdapter,
    ProviderName,
    ProviderResult,
    Success,
    bearer,
    classify_status,
    parse_json,
    truncate,
)

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_TYPE = "audio/wav"

# data:<mime>;base64,<payload>
_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[^,]*)?,", re.IGNORECASE)


# ── Typed Results ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SentimentResult:
    label: str
    confidence: float


@dataclass(frozen=True)
class ClassificationResult:
    """Parallel lists, highest score first."""

    labels: List[str]
    scores: List[float]


def decode_audio(audio_base64: str) -> Tuple[bytes, str]:
    """
    Decode base64 audio, honouring an optional data-URI prefix.

    Returns:
        (audio bytes, content type). The MIME type from the data URI wins;
        a bare base64 string is assumed to be WAV.

    Raises:
        ValidationError: not valid base64, or decodes to nothing
    """
    content_type = DEFAULT_AUDIO_TYPE
    payload = audio_base64.strip()

    match = _DATA_URI.match(payload)
    if match:
        if match.group("mime"):
            content_type = match.group("mime").lower()
        payload = payload[match.end():]

    try:
        audio = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(message="Audio is not valid base64", field="audio")
    if not audio:
        raise ValidationError(message="Audio payload is empty", field="audio")
    return audio, content_type


def _is_vector(value: Any) -> bool:
    return isinstance(value, list) and all(
        isinstance(x, Real) and not isinstance(x, bool) for x in value
    )


class HuggingFaceAdapter(ProviderAdapter):
    """Hugging Face Inference API (requires HUGGINGFACE_API_KEY)."""

    name = ProviderName.HUGGINGFACE
    requires_credential = True

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport=transport)
        self.settings = settings
        self.timeout = settings.huggingface_timeout

    def model_url(self, model: str) -> str:
        return self.settings.huggingface_url(model)

    # ══════════════════════════════════════════════════════════════════════
    # Shared request pipeline
    # ══════════════════════════════════════════════════════════════════════

    async def _request(
        self,
        model: str,
        credential: Optional[str],
        timeout: float,
        *,
        json: Any = None,
        content: Optional[bytes] = None,
        content_type: Optional[str] = None,
    ) -> ProviderResult[httpx.Response]:
        if not credential:
            return Failure(ErrorKind.MISSING_CREDENTIAL, "HUGGINGFACE_API_KEY not set")

        headers = bearer(credential)
        if content_type:
            headers["Content-Type"] = content_type

        response = await self._post(
            self.model_url(model), timeout, json=json, content=content, headers=headers
        )
        if isinstance(response, Failure):
            return response

        logger.debug("Hugging Face %s responded %d", model, response.status_code)
        failure = classify_status(response)
        if failure:
            return failure
        return Success(response)

    async def _request_json(
        self,
        model: str,
        credential: Optional[str],
        timeout: float,
        **kwargs: Any,
    ) -> ProviderResult[Any]:
        result = await self._request(model, credential, timeout, **kwargs)
        if isinstance(result, Failure):
            return result
        parsed = parse_json(result.value)
        if isinstance(parsed, Failure):
            return parsed

        body = parsed.value
        if isinstance(body, dict) and body.get("error"):
            return Failure(ErrorKind.PROVIDER_ERROR, truncate(str(body["error"])))
        return parsed

    # ══════════════════════════════════════════════════════════════════════
    # Text generation (dispatcher contract)
    # ══════════════════════════════════════════════════════════════════════

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": self.settings.hf_max_new_tokens,
                "temperature": self.settings.hf_temperature,
                "return_full_text": False,
            },
        }

    async def invoke(
        self, prompt: str, credential: Optional[str], timeout: float
    ) -> ProviderResult[str]:
        result = await self._request_json(
            self.settings.hf_text_model,
            credential,
            timeout,
            json=self.build_payload(prompt),
        )
        if isinstance(result, Failure):
            return result
        return self._first_field(result.value, "generated_text")

    @staticmethod
    def _first_field(body: Any, field: str) -> ProviderResult[str]:
        """Extract `field` from the `[{field: ...}]` shape most pipelines return."""
        if isinstance(body, list):
            if not body:
                return Failure(ErrorKind.EMPTY_RESPONSE, "empty result list")
            body = body[0]
        if not isinstance(body, dict):
            return Failure(ErrorKind.MALFORMED_RESPONSE, f"expected an object with '{field}'")
        text = body.get(field)
        if text is not None and not isinstance(text, str):
            return Failure(ErrorKind.MALFORMED_RESPONSE, f"'{field}' is not a string")
        if not text or not text.strip():
            return Failure(ErrorKind.EMPTY_RESPONSE, f"no {field} in response")
        return Success(text)

    # ══════════════════════════════════════════════════════════════════════
    # Specialised operations (no fallback)
    # ══════════════════════════════════════════════════════════════════════

    async def generate_image(
        self,
        prompt: str,
        credential: Optional[str],
        output_path: Path,
        timeout: Optional[float] = None,
    ) -> ProviderResult[Path]:
        """
        Text-to-image. The response body is the encoded image itself.

        Writes the bytes to `output_path` (parents created) and returns it.

        Raises:
            FileStorageError: the image arrived but could not be written
        """
        result = await self._request(
            self.settings.hf_image_model,
            credential,
            timeout or self.settings.hf_image_timeout,
            json={"inputs": prompt},
        )
        if isinstance(result, Failure):
            return result

        response = result.value
        if response.headers.get("content-type", "").startswith("application/json"):
            # JSON instead of an image is an error report
            parsed = parse_json(response)
            detail = str(parsed.value) if isinstance(parsed, Success) else response.text
            return Failure(ErrorKind.PROVIDER_ERROR, truncate(detail))

        image = response.content
        if not image:
            return Failure(ErrorKind.EMPTY_RESPONSE, "image response had no body")

        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(output_path, "wb") as f:
                await f.write(image)
        except OSError as e:
            logger.error("Failed to write generated image %s: %s", output_path, e)
            raise FileStorageError(
                message="Generated image could not be saved.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Generated image saved: %s (%d bytes)", output_path, len(image))
        return Success(output_path)

    async def transcribe(
        self,
        audio_base64: str,
        credential: Optional[str],
        timeout: Optional[float] = None,
    ) -> ProviderResult[str]:
        """
        Speech-to-text.

        Raises:
            ValidationError: audio is not decodable (checked before any request)
        """
        audio, content_type = decode_audio(audio_base64)
        result = await self._request_json(
            self.settings.hf_whisper_model,
            credential,
            timeout or self.settings.hf_transcription_timeout,
            content=audio,
            content_type=content_type,
        )
        if isinstance(result, Failure):
            return result
        return self._first_field(result.value, "text")

    async def embed(
        self,
        texts: List[str],
        credential: Optional[str],
        timeout: Optional[float] = None,
    ) -> ProviderResult[List[List[float]]]:
        """One vector per input text, in input order."""
        if not texts:
            return Success([])

        result = await self._request_json(
            self.settings.hf_embedding_model,
            credential,
            timeout or self.settings.hf_analysis_timeout,
            json={"inputs": list(texts), "options": {"wait_for_model": True}},
        )
        if isinstance(result, Failure):
            return result

        body = result.value
        if not isinstance(body, list) or not all(_is_vector(v) for v in body):
            return Failure(ErrorKind.MALFORMED_RESPONSE, "expected a list of float vectors")
        if len(body) != len(texts):
            return Failure(
                ErrorKind.MALFORMED_RESPONSE,
                f"expected {len(texts)} vectors, got {len(body)}",
            )
        return Success([[float(x) for x in vector] for vector in body])

    async def summarize(
        self,
        text: str,
        credential: Optional[str],
        timeout: Optional[float] = None,
    ) -> ProviderResult[str]:
        result = await self._request_json(
            self.settings.hf_summarization_model,
            credential,
            timeout or self.settings.hf_analysis_timeout,
            json={
                "inputs": text,
                "parameters": {
                    "max_length": self.settings.summary_max_length,
                    "min_length": self.settings.summary_min_length,
                },
            },
        )
        if isinstance(result, Failure):
            return result
        return self._first_field(result.value, "summary_text")

    async def classify(
        self,
        text: str,
        labels: List[str],
        credential: Optional[str],
        timeout: Optional[float] = None,
    ) -> ProviderResult[ClassificationResult]:
        """Zero-shot classification against caller-supplied candidate labels."""
        result = await self._request_json(
            self.settings.hf_zero_shot_model,
            credential,
            timeout or self.settings.hf_analysis_timeout,
            json={"inputs": text, "parameters": {"candidate_labels": list(labels)}},
        )
        if isinstance(result, Failure):
            return result

        body = result.value
        if isinstance(body, list) and body:
            body = body[0]
        if not isinstance(body, dict):
            return Failure(ErrorKind.MALFORMED_RESPONSE, "expected labels and scores")

        out_labels = body.get("labels")
        out_scores = body.get("scores")
        if not isinstance(out_labels, list) or not _is_vector(out_scores):
            return Failure(ErrorKind.MALFORMED_RESPONSE, "expected labels and scores")
        if len(out_labels) != len(out_scores):
            return Failure(ErrorKind.MALFORMED_RESPONSE, "labels and scores differ in length")
        if not out_labels:
            return Failure(ErrorKind.EMPTY_RESPONSE, "no labels returned")

        ranked = sorted(zip(out_labels, out_scores), key=lambda pair: pair[1], reverse=True)
        return Success(
            ClassificationResult(
                labels=[str(label) for label, _ in ranked],
                scores=[float(score) for _, score in ranked],
            )
        )

    async def sentiment(
        self,
        text: str,
        credential: Optional[str],
        timeout: Optional[float] = None,
    ) -> ProviderResult[SentimentResult]:
        """Top-scoring sentiment label for `text`."""
        result = await self._request_json(
            self.settings.hf_sentiment_model,
            credential,
            timeout or self.settings.hf_analysis_timeout,
            json={"inputs": text},
        )
        if isinstance(result, Failure):
            return result

        body = result.value
        # Pipelines answer [[{label, score}, ...]]; some deployments drop the outer list
        if isinstance(body, list) and body and isinstance(body[0], list):
            body = body[0]
        if not isinstance(body, list):
            return Failure(ErrorKind.MALFORMED_RESPONSE, "expected a list of label scores")
        if not body:
            return Failure(ErrorKind.EMPTY_RESPONSE, "no sentiment labels returned")

        try:
            best = max(body, key=lambda item: float(item["score"]))
            label, confidence = str(best["label"]), float(best["score"])
        except (KeyError, TypeError, ValueError):
            return Failure(ErrorKind.MALFORMED_RESPONSE, "label entries need label and score")
        if not 0.0 <= confidence <= 1.0:
            return Failure(
                ErrorKind.MALFORMED_RESPONSE, f"confidence {confidence} outside [0, 1]"
            )
        return Success(SentimentResult(label=label, confidence=confidence))
