"""
Apostrophe Backend — Provider Adapter Interface
=================================================

What:  Error taxonomy, tagged results, and the abstract base class every AI
       provider adapter implements.
Why:   The dispatcher tries providers in order and needs one uniform shape
       to decide "return this" or "try the next one". Adapters never raise
       for provider trouble; they classify it into an ErrorKind.
How:   Concrete adapters inherit from ProviderAdapter, build their own
       payload, and use the shared _post() / classify_status() helpers so
       every provider maps HTTP outcomes to the same kinds.

Classification table:
    transport error / timeout   → NETWORK_FAILURE
    HTTP 429                    → RATE_LIMITED
    HTTP 503                    → TRANSIENT_UNAVAILABLE (cold model loading)
    other non-2xx               → PROVIDER_ERROR (body kept as detail)
    body is not the expected JSON shape → MALFORMED_RESPONSE
    200 without a usable field  → EMPTY_RESPONSE
    no credential available     → MISSING_CREDENTIAL (never sent)

Retry policy:
    None here. One attempt per invocation; moving on to another provider is
    the Dispatcher's job.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar, Union

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Provider error bodies can be whole HTML pages; keep logs and messages short
MAX_DETAIL_CHARS = 500


class ProviderName(str, Enum):
    """Providers in the order the dispatcher tries them."""

    GEMINI = "gemini"
    HUGGINGFACE = "huggingface"
    OLLAMA = "ollama"


class ErrorKind(str, Enum):
    NETWORK_FAILURE = "network_failure"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_UNAVAILABLE = "transient_unavailable"
    PROVIDER_ERROR = "provider_error"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_RESPONSE = "malformed_response"
    MISSING_CREDENTIAL = "missing_credential"

    def describe(self) -> str:
        return self.value.replace("_", " ")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Adapter produced a usable value (text, vectors, bytes, ...)."""

    value: T


@dataclass(frozen=True)
class Failure:
    """Adapter could not produce a value; `detail` is diagnostic text."""

    kind: ErrorKind
    detail: str = ""

    def __str__(self) -> str:
        if self.detail:
            return f"{self.kind.describe()} ({self.detail})"
        return self.kind.describe()


ProviderResult = Union[Success[T], Failure]


def truncate(text: str, limit: int = MAX_DETAIL_CHARS) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def classify_status(response: httpx.Response) -> Optional[Failure]:
    """
    Map a non-success HTTP status onto an ErrorKind.

    Returns None for 2xx responses so callers can go on to parse the body.
    """
    status = response.status_code
    if 200 <= status < 300:
        return None
    if status == 429:
        return Failure(ErrorKind.RATE_LIMITED, f"HTTP {status}")
    if status == 503:
        return Failure(ErrorKind.TRANSIENT_UNAVAILABLE, "model loading, try again")
    return Failure(
        ErrorKind.PROVIDER_ERROR,
        f"HTTP {status} - {truncate(response.text)}",
    )


def parse_json(response: httpx.Response) -> Union[Success[Any], Failure]:
    try:
        return Success(response.json())
    except ValueError as e:
        return Failure(ErrorKind.MALFORMED_RESPONSE, f"invalid JSON: {e}")


class ProviderAdapter(ABC):
    """
    Abstract interface for a text-completion provider.

    Contract:
        - invoke() accepts a prompt, an optional credential and a timeout
          and returns Success(text) or Failure(kind, detail)
        - invoke() never raises for network or provider problems
        - exactly one HTTP POST per invoke()

    Attributes:
        name:                 ProviderName used in logs and attempt records
        requires_credential:  When True the dispatcher skips the adapter
                              without a network call if no secret resolves
        timeout:              Default bound in seconds (from Settings)
    """

    name: ProviderName
    requires_credential: bool = True
    timeout: float = 30.0

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Tests inject httpx.MockTransport; production uses the default pool
        self._transport = transport

    @abstractmethod
    async def invoke(
        self, prompt: str, credential: Optional[str], timeout: float
    ) -> ProviderResult[str]:
        """
        Generate text for `prompt`.

        Args:
            prompt: Opaque caller text, sent as-is (no size validation)
            credential: Provider secret, or None for credential-less providers
            timeout: Upper bound for the whole request in seconds

        Returns:
            Success(text) with non-empty text, or a classified Failure
        """
        ...

    async def _post(
        self,
        url: str,
        timeout: float,
        *,
        json: Any = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Union[httpx.Response, Failure]:
        """
        Issue the single POST for an invocation.

        Returns the response for any HTTP status, or a NETWORK_FAILURE when
        the request never produced one (connection refused, DNS, timeout).
        """
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=timeout
            ) as client:
                return await client.post(
                    url, json=json, content=content, headers=headers, params=params
                )
        except httpx.TimeoutException as e:
            logger.warning("%s request timed out after %.0fs", self.name.value, timeout)
            return Failure(ErrorKind.NETWORK_FAILURE, f"timeout: {type(e).__name__}")
        except httpx.TransportError as e:
            logger.warning("%s transport error: %s", self.name.value, e)
            return Failure(ErrorKind.NETWORK_FAILURE, str(e) or type(e).__name__)


def bearer(credential: Optional[str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {credential}"} if credential else {}
