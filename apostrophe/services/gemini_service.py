"""
Apostrophe Backend — Google Gemini Adapter
============================================

What:  Text completion through the Gemini generateContent REST endpoint.
Why:   First choice in the fallback chain: fast, strong, and free-tier
       friendly for a single user's note assistant.
How:   One POST with the prompt as a single text part; the API key travels as
       the `key` query parameter. The first candidate's first part is the
       answer.
Who:   Dispatcher (first in order).

Response shapes handled:
    200 {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}  → Success
    200 {"error": {"code": 400, "message": "..."}}                   → PROVIDER_ERROR
    200 {"candidates": []} (e.g. prompt blocked by safety filters)   → EMPTY_RESPONSE
    4xx/5xx                                                          → classify_status()

Note:
    The request URL contains the key, so it is never logged here. httpx's
    own request logger is held at WARNING by setup_logging().
"""

import logging
import time
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
    truncate,
)

logger = logging.getLogger(__name__)


class GeminiAdapter(ProviderAdapter):
    """Gemini generateContent adapter (requires GEMINI_API_KEY)."""

    name = ProviderName.GEMINI
    requires_credential = True

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport=transport)
        self.url = settings.gemini_url()
        self.model = settings.gemini_model
        self.timeout = settings.gemini_timeout

    @staticmethod
    def build_payload(prompt: str) -> dict:
        return {"contents": [{"parts": [{"text": prompt}]}]}

    async def invoke(
        self, prompt: str, credential: Optional[str], timeout: float
    ) -> ProviderResult[str]:
        if not credential:
            return Failure(ErrorKind.MISSING_CREDENTIAL, "GEMINI_API_KEY not set")

        start_time = time.time()
        response = await self._post(
            self.url,
            timeout,
            json=self.build_payload(prompt),
            params={"key": credential},
        )
        if isinstance(response, Failure):
            return response

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "Gemini %s responded %d in %.0fms",
            self.model,
            response.status_code,
            duration_ms,
        )

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

        # Gemini can report errors inside a 200 body
        error = body.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            return Failure(ErrorKind.PROVIDER_ERROR, truncate(str(message or "unknown error")))

        candidates = body.get("candidates")
        if not candidates:
            return Failure(ErrorKind.EMPTY_RESPONSE, "no candidates in response")

        try:
            parts = candidates[0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return Failure(ErrorKind.MALFORMED_RESPONSE, "candidate without content parts")
        if not parts:
            return Failure(ErrorKind.EMPTY_RESPONSE, "candidate has no parts")

        try:
            text = parts[0].get("text")
        except AttributeError:
            return Failure(ErrorKind.MALFORMED_RESPONSE, "content part is not an object")

        if not isinstance(text, str) or not text.strip():
            return Failure(ErrorKind.EMPTY_RESPONSE, "candidate text is empty")
        return Success(text)
