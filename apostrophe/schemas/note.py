"""
Apostrophe Backend — Pydantic Request/Response Schemas (Notes & Common)
=========================================================================

What:  Pydantic models defining the notes API contract plus the error and
       health shapes shared by every endpoint.
Why:   Strict input validation, automatic serialization, and OpenAPI doc generation.
How:   FastAPI uses these models to validate request bodies, serialize responses,
       and generate Swagger/OpenAPI documentation automatically.
Who:   Used by route handlers as return types and by the editor as API contracts.

Design Decision:
    Schemas are separate from SQLAlchemy models because the sidebar only
    needs metadata (no content) and the API should not expose ORM objects.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteSaveRequest(BaseModel):
    """Body of PUT /api/notes/{id}. The id comes from the path."""
    title: str = Field(default="", description="Note title")
    content: str = Field(default="", description="Serialized editor document")


class NoteIconRequest(BaseModel):
    icon: str = Field(default="", description="Emoji icon; empty string clears it")


class NoteBackgroundRequest(BaseModel):
    background_image: str = Field(
        default="",
        description="Preset background name or stored image path; empty string clears it",
    )


class ImageSaveRequest(BaseModel):
    """
    What:  An image pasted into a note, as base64 (a data-URI prefix is allowed).
    Who:   Body of POST /api/notes/{id}/images.
    """
    data: str = Field(min_length=1, description="Base64 image bytes, optionally a data URI")
    filename: str = Field(min_length=1, max_length=255, description="File name to store under")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """
    What:  Full representation of a note.
    Who:   Returned by GET/PUT /api/notes/{id}.
    """
    id: str = Field(description="Client-generated note identifier")
    title: str
    content: str
    icon: str = ""
    background_image: str = ""
    is_favorite: bool = False
    updated_at: datetime = Field(description="Last save time (UTC ISO 8601)")

    model_config = {"from_attributes": True}


class NoteListItem(BaseModel):
    """
    What:  Sidebar entry. No content, so listing stays cheap with large notes.
    """
    id: str
    title: str
    icon: str = ""
    is_favorite: bool = False

    model_config = {"from_attributes": True}


class NoteListResponse(BaseModel):
    notes: List[NoteListItem] = Field(
        description="Favorites first, then most recently updated"
    )


class FavoriteResponse(BaseModel):
    id: str
    is_favorite: bool


class ImageSaveResponse(BaseModel):
    path: str = Field(description="Path relative to the image store")
    url: str = Field(description="URL serving the stored image")


class BackgroundsResponse(BaseModel):
    backgrounds: List[str]


# ══════════════════════════════════════════════════════════════════════════
# Error Response Models — Consistent error format across all endpoints
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.
    Why:   Clients need a consistent structure to parse errors programmatically.

    Fields:
        error: Machine-readable error code (e.g., "validation_error", "rate_limited")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which field failed validation)
        request_id: Correlation ID for tracing this error in server logs

    Example:
        {
            "error": "rate_limited",
            "message": "huggingface request failed: rate limited (HTTP 429)",
            "details": {"provider": "huggingface", "kind": "rate_limited"},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health; the desktop shell polls it on startup.
    """
    status: str = Field(description="Overall service status: healthy, degraded")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    providers: dict = Field(description="Provider name → configured / not_configured")
    uptime_seconds: float = Field(description="Seconds since service started")
