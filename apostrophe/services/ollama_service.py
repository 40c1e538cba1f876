"""
Apostrophe Backend — Ollama Adapter
=====================================

What:  Text completion from a locally running Ollama daemon.
Why:   Last resort in the fallback chain. Works offline and needs no key, so
       a fresh install with no configuration can still answer.
How:   POST {model, prompt, stream: false} to /api/generate and read the
       `response` field of the single JSON object returned.
Who:   Dispatcher (last in order).
"""

import logging
from typing import Any, Optional

import httpx

from apostrophe.config import Settings
from apostrophe.services.llm_base import (
    ErrorKind,
    Failure,
    ProviderAdapter,
    ProviderName,
    ProviderResult,
    Success,
    classify_status,
    parse_json,
)

logger = logging.getLogger(__name__)


class OllamaAdapter(ProviderAdapter):
    name = ProviderName.OLLAMA
    requires_credential = False

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport=transport)
        self.endpoint = settings.ollama_endpoint
        self.model = settings.ollama_model
        self.timeout = settings.ollama_timeout

    def build_payload(self, prompt: str) -> dict:
        # stream=False: one JSON object instead of NDJSON chunks
        return {"model": self.model, "prompt": prompt, "stream": False}

    async def invoke(
        self, prompt: str, credential: Optional[str], timeout: float
    ) -> ProviderResult[str]:
        response = await self._post(self.endpoint, timeout, json=self.build_payload(prompt))
        if isinstance(response, Failure):
            return response

        failure = classify_status(response)
        if failure:
            return failure

        parsed = parse_json(response)
        if isinstance(parsed, Failure):
            return parsed
        return self.extract_text(parsed.value)

    @staticmethod
    def extract_text(body: Any) -> ProviderResult[str]:
        if not isinstance(body, dict):
            return Failure(ErrorKind.MALFORMED_RESPONSE, "expected a JSON object")
        if body.get("error"):
            return Failure(ErrorKind.PROVIDER_ERROR, str(body["error"]))
        text = body.get("response")
        if not isinstance(text, str) or not text.strip():
            return Failure(ErrorKind.EMPTY_RESPONSE, "no response text")
        return Success(text)
