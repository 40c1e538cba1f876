"""
Apostrophe Backend — Exception Hierarchy
==========================================

What:  Application errors raised by services and turned into JSON responses
       by the handlers registered in main.py.
How:   Every error carries a user-safe `message` and a `context` dict for
       logs. Subclasses only pick a default message and an HTTP status.

Exception Hierarchy:
    ApostropheError (base)                    500
    ├── ValidationError                       400  bad input the client can fix
    ├── NotFoundError                         404  unknown note id or file
    ├── FileStorageError                      500  image could not be written
    ├── DatabaseError                         500  SQLite failure (details logged only)
    └── ProviderRequestError                  429 / 502 / 503 by ErrorKind

Note on the AI dispatcher:
    generate / ask / transform never raise these. Provider failures on that
    path are recovered by falling through to the next provider and end up in
    the tagged DispatchOutcome. Only the single-provider operations (image,
    transcription, embeddings, summarization, classification, sentiment)
    raise ProviderRequestError, because there is nothing to fall back to.
"""

from typing import Any, Dict, Optional

from apostrophe.services.llm_base import ErrorKind


class ApostropheError(Exception):
    default_message = "An unexpected error occurred"
    status_code = 500

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.context: Dict[str, Any] = dict(context or {})
        super().__init__(self.message)


class ValidationError(ApostropheError):
    """
    Client input rejected: unsupported image type, oversize payload,
    undecodable base64, blank key, provider that takes no credential.

    `field` names the offending input and is copied into context so the
    400 body points at it.
    """

    default_message = "Validation failed"
    status_code = 400

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.field = field
        if field:
            self.context["field"] = field


class NotFoundError(ApostropheError):
    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = {**(context or {}), "resource": resource}
        if resource_id:
            ctx["resource_id"] = resource_id
            message = f"{resource} with ID '{resource_id}' was not found"
        else:
            message = f"The requested {resource} was not found"
        super().__init__(message, ctx)


class FileStorageError(ApostropheError):
    default_message = "File storage operation failed"


class DatabaseError(ApostropheError):
    default_message = "A database error occurred. Please try again later."


# HTTP status per failure kind for single-provider operations
_KIND_STATUS = {
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.TRANSIENT_UNAVAILABLE: 503,
    ErrorKind.NETWORK_FAILURE: 503,
    ErrorKind.MISSING_CREDENTIAL: 503,
}


class ProviderRequestError(ApostropheError):
    """
    A single-provider AI operation failed.

    Carries the adapter's ErrorKind so the UI can tell "add an API key"
    apart from "try again later". Status: 429 for rate limiting, 503 for
    transient / network / missing key, 502 for anything the provider
    itself got wrong.
    """

    def __init__(
        self,
        kind: ErrorKind,
        provider: str,
        detail: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{provider} request failed: {kind.describe()}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(
            message, {**(context or {}), "provider": provider, "kind": kind.value}
        )
        self.kind = kind
        self.provider = provider
        self.detail = detail

    @property
    def status_code(self) -> int:
        return _KIND_STATUS.get(self.kind, 502)
