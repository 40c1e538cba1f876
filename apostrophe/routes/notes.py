"""
Apostrophe Backend — Notes Route Handlers
===========================================

What:  Notes CRUD, pasted images, stored file serving and preset backgrounds.
Why:   The sidebar and editor persist everything through these endpoints.
How:   Extracts path/body data, delegates to NoteService / FileService, returns JSON.
Who:   Called by the editor's Sidebar, Editor and BackgroundPicker components.

Caching Strategy:
    - Notes: no caching, they change on every keystroke-debounced save
    - Stored images: long private cache, a file name is never rewritten
      except for a regenerated cover (the editor appends a cache-buster)
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from apostrophe.database import get_db_session
from apostrophe.schemas.note import (
    BackgroundsResponse,
    ErrorResponse,
    FavoriteResponse,
    ImageSaveRequest,
    ImageSaveResponse,
    NoteBackgroundRequest,
    NoteIconRequest,
    NoteListResponse,
    NoteResponse,
    NoteSaveRequest,
)
from apostrophe.services.file_service import FileService
from apostrophe.services.note_service import note_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api", tags=["Notes"])

_NOT_FOUND = {404: {"description": "Note not found", "model": ErrorResponse}}


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


@router.get(
    "/notes",
    response_model=NoteListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List notes for the sidebar",
)
async def list_notes(db: AsyncSession = Depends(get_db_session)) -> NoteListResponse:
    return await note_service.list_notes(db)


@router.get(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses=_NOT_FOUND,
    summary="Load a note",
)
async def get_note(note_id: str, db: AsyncSession = Depends(get_db_session)) -> NoteResponse:
    return await note_service.get_note(db, note_id)


@router.put(
    "/notes/{note_id}",
    response_model=NoteResponse,
    summary="Create or update a note",
    description="Upsert keyed by the client-generated id. Bumps updated_at.",
)
async def save_note(
    note_id: str,
    body: NoteSaveRequest,
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    return await note_service.save_note(db, note_id, body.title, body.content)


@router.delete(
    "/notes/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_NOT_FOUND,
    summary="Delete a note",
)
async def delete_note(note_id: str, db: AsyncSession = Depends(get_db_session)) -> Response:
    await note_service.delete_note(db, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/notes/{note_id}/icon",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_NOT_FOUND,
    summary="Set a note's emoji icon",
)
async def set_icon(
    note_id: str,
    body: NoteIconRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await note_service.set_icon(db, note_id, body.icon)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/notes/{note_id}/background",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_NOT_FOUND,
    summary="Set a note's background",
)
async def set_background(
    note_id: str,
    body: NoteBackgroundRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await note_service.set_background(db, note_id, body.background_image)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/notes/{note_id}/favorite",
    response_model=FavoriteResponse,
    responses=_NOT_FOUND,
    summary="Toggle a note's favorite flag",
)
async def toggle_favorite(
    note_id: str, db: AsyncSession = Depends(get_db_session)
) -> FavoriteResponse:
    return await note_service.toggle_favorite(db, note_id)


@router.post(
    "/notes/{note_id}/images",
    response_model=ImageSaveResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Invalid image", "model": ErrorResponse}},
    summary="Store an image pasted into a note",
)
async def save_image(
    note_id: str,
    body: ImageSaveRequest,
    files: FileService = Depends(get_file_service),
) -> ImageSaveResponse:
    path = await files.save_image(note_id, body.data, body.filename)
    return ImageSaveResponse(path=path, url=f"/api/files/{path}")


@router.get(
    "/files/{file_path:path}",
    summary="Serve stored image files",
    responses={
        200: {"description": "Image file"},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(
    file_path: str, files: FileService = Depends(get_file_service)
) -> FileResponse:
    """
    Security:
        - Path is relative to images_root (cannot escape with ../)
        - Only regular files are served
    """
    full_path = files.resolve_stored(file_path)
    # media_type omitted: FileResponse guesses it from the extension
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "private, max-age=86400"},
    )


@router.get(
    "/backgrounds",
    response_model=BackgroundsResponse,
    summary="Preset background names",
)
async def backgrounds() -> BackgroundsResponse:
    return BackgroundsResponse(backgrounds=note_service.preset_backgrounds())
