"""
Apostrophe Backend — AI Request Dispatcher
============================================

What:  Sends a prompt to the first provider that can answer it.
Why:   Cloud models are better but can be unconfigured, rate limited or
       offline; a local model is always worth a try before giving up.
How:   Linear walk over the adapters in fixed order. Each step either
       returns the winning text or records a ProviderAttempt and moves on.
Who:   AIService.generate / ask / transform.

State machine (per call):

    ┌────────┐ no key / failure ┌─────────────┐ no key / failure ┌────────┐ failure ┌────────┐
    │ Gemini │─────────────────▶│ HuggingFace │─────────────────▶│ Ollama │────────▶│ FAILED │
    └───┬────┘                  └──────┬──────┘                  └───┬────┘         └────────┘
        │ success                      │ success                     │ success
        ▼                              ▼                             ▼
                                   SUCCEEDED (text, provider, attempts so far)

    - A provider whose credential does not resolve is recorded as
      MISSING_CREDENTIAL without any network call.
    - No retries. Each provider gets exactly one invocation.
    - generate() never raises; an unexpected adapter exception is recorded
      as PROVIDER_ERROR.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from apostrophe.config import Settings
from apostrophe.services.credentials import CredentialResolver
from apostrophe.services.gemini_service import GeminiAdapter
from apostrophe.services.huggingface_service import HuggingFaceAdapter
from apostrophe.services.llm_base import (
    ErrorKind,
    Failure,
    ProviderAdapter,
    ProviderName,
    Success,
)
from apostrophe.services.ollama_service import OllamaAdapter

logger = logging.getLogger(__name__)

FAILURE_MARKER = "Error: All AI providers failed. "


@dataclass(frozen=True)
class ProviderAttempt:
    """One failed step of a dispatch."""

    provider: ProviderName
    kind: ErrorKind
    detail: str = ""

    def __str__(self) -> str:
        text = f"{self.provider.value}: {self.kind.value}"
        if self.detail:
            text = f"{text} ({self.detail})"
        return text


@dataclass(frozen=True)
class DispatchSuccess:
    text: str
    provider: ProviderName
    attempts: List[ProviderAttempt] = field(default_factory=list)

    ok = True

    def to_text(self) -> str:
        return self.text


@dataclass(frozen=True)
class DispatchFailure:
    attempts: List[ProviderAttempt] = field(default_factory=list)

    ok = False

    @property
    def message(self) -> str:
        """Human-readable failure, always starting with FAILURE_MARKER."""
        return FAILURE_MARKER + "; ".join(str(a) for a in self.attempts)

    def to_text(self) -> str:
        return self.message


DispatchOutcome = Union[DispatchSuccess, DispatchFailure]


def default_adapters(settings: Settings) -> List[ProviderAdapter]:
    """Adapters in priority order: cloud LLM, inference aggregator, local model."""
    return [
        GeminiAdapter(settings),
        HuggingFaceAdapter(settings),
        OllamaAdapter(settings),
    ]


class Dispatcher:
    """
    Ordered-fallback text generation.

    Args:
        settings: Application settings (used only for the default adapters)
        resolver: Credential lookup, consulted before every adapter call
        adapters: Override the provider chain (tests inject mock transports)
    """

    def __init__(
        self,
        settings: Settings,
        resolver: CredentialResolver,
        adapters: Optional[Sequence[ProviderAdapter]] = None,
    ):
        self.resolver = resolver
        self.adapters: List[ProviderAdapter] = (
            list(adapters) if adapters is not None else default_adapters(settings)
        )

    async def generate(self, prompt: str) -> DispatchOutcome:
        attempts: List[ProviderAttempt] = []
        logger.debug("Dispatching prompt (%d chars): %.100s", len(prompt), prompt)

        for adapter in self.adapters:
            provider = adapter.name
            credential = self.resolver.resolve(provider)

            if adapter.requires_credential and not credential:
                logger.info("Skipping %s: no credential configured", provider.value)
                attempts.append(
                    ProviderAttempt(provider, ErrorKind.MISSING_CREDENTIAL, "not configured")
                )
                continue

            try:
                result = await adapter.invoke(prompt, credential, adapter.timeout)
            except Exception as e:
                logger.error(
                    "Unexpected error from %s adapter: %s", provider.value, e, exc_info=True
                )
                result = Failure(ErrorKind.PROVIDER_ERROR, f"unexpected {type(e).__name__}")

            if isinstance(result, Success) and result.value and result.value.strip():
                logger.info(
                    "Provider %s answered (%d chars) after %d failed attempt(s)",
                    provider.value,
                    len(result.value),
                    len(attempts),
                )
                return DispatchSuccess(text=result.value, provider=provider, attempts=attempts)

            if isinstance(result, Success):
                result = Failure(ErrorKind.EMPTY_RESPONSE, "blank text")

            logger.warning("Provider %s failed: %s", provider.value, result)
            attempts.append(ProviderAttempt(provider, result.kind, result.detail))

        outcome = DispatchFailure(attempts=attempts)
        logger.error("%s", outcome.message)
        return outcome
