"""
Apostrophe Backend — Note Service
===================================

What:  CRUD for the notes table behind the sidebar and editor.
Why:   Encapsulates persistence rules in one place, independent of HTTP concerns.
How:   Each method receives the request's AsyncSession; commit/rollback is
       owned by get_db_session().
Who:   Called by the notes route handlers.

Behaviour notes:
    - save() is an upsert keyed by the client-generated id and always bumps
      updated_at. Icon, background and favorite are cosmetic and do not.
    - Updates and deletes of an unknown id raise NotFoundError so the UI can
      tell a stale sidebar entry from a successful change.

Design Decision:
    NoteService is stateless. It receives the db session for each call,
    so a single instance is shared by all requests.
"""

import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from apostrophe.exceptions import DatabaseError, NotFoundError
from apostrophe.models.note import Note
from apostrophe.schemas.note import (
    FavoriteResponse,
    NoteListItem,
    NoteListResponse,
    NoteResponse,
)

logger = logging.getLogger(__name__)

PRESET_BACKGROUNDS: List[str] = [
    "gradient-purple",
    "gradient-blue",
    "gradient-warm",
    "paper-texture",
    "nature-forest",
    "nature-mountains",
    "abstract-waves",
    "minimal-dots",
]


class NoteService:
    """
    Business logic layer for note operations.

    Error Handling Strategy:
        NotFoundError propagates as-is (→ 404). SQLAlchemy failures are
        logged and wrapped in DatabaseError (→ 500, no internals leaked).
    """

    async def save_note(
        self, db: AsyncSession, note_id: str, title: str, content: str
    ) -> NoteResponse:
        """
        Insert or update a note's title and content.

        Query plan:
            INSERT INTO notes (...) VALUES (...)
            ON CONFLICT(id) DO UPDATE SET title, content, updated_at
        """
        now = datetime.now(timezone.utc)
        stmt = sqlite_insert(Note).values(
            id=note_id, title=title, content=content, updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Note.id],
            set_={"title": title, "content": content, "updated_at": now},
        )
        try:
            await db.execute(stmt)
            note = await db.get(Note, note_id, populate_existing=True)
        except SQLAlchemyError as e:
            logger.error("Database error saving note %s: %s", note_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the note. Please try again.",
                context={"note_id": note_id},
            )

        logger.info("Note %s saved (%d chars)", note_id, len(content))
        return NoteResponse.model_validate(note)

    async def get_note(self, db: AsyncSession, note_id: str) -> NoteResponse:
        """
        Raises:
            NotFoundError: no note with this id (→ 404)
            DatabaseError: query execution failed (→ 500)
        """
        try:
            result = await db.execute(select(Note).where(Note.id == note_id))
            note = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the note. Please try again.",
                context={"note_id": note_id},
            )

        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)
        return NoteResponse.model_validate(note)

    async def list_notes(self, db: AsyncSession) -> NoteListResponse:
        """
        Sidebar listing: favorites first, then most recently updated.

        Query plan:
            SELECT id, title, icon, is_favorite FROM notes
            ORDER BY is_favorite DESC, updated_at DESC
        """
        query = select(Note.id, Note.title, Note.icon, Note.is_favorite).order_by(
            Note.is_favorite.desc(), Note.updated_at.desc()
        )
        try:
            result = await db.execute(query)
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Database error listing notes: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve notes. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return NoteListResponse(
            notes=[
                NoteListItem(
                    id=row.id,
                    title=row.title,
                    icon=row.icon or "",
                    is_favorite=bool(row.is_favorite),
                )
                for row in rows
            ]
        )

    async def _update_fields(self, db: AsyncSession, note_id: str, **values) -> None:
        try:
            result = await db.execute(
                update(Note).where(Note.id == note_id).values(**values)
            )
        except SQLAlchemyError as e:
            logger.error("Database error updating note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not update the note. Please try again.",
                context={"note_id": note_id},
            )
        if result.rowcount == 0:
            raise NotFoundError(resource="note", resource_id=note_id)

    async def set_icon(self, db: AsyncSession, note_id: str, icon: str) -> None:
        await self._update_fields(db, note_id, icon=icon)
        logger.info("Note %s icon set", note_id)

    async def set_background(
        self, db: AsyncSession, note_id: str, background_image: str
    ) -> None:
        await self._update_fields(db, note_id, background_image=background_image)
        logger.info("Note %s background set to '%s'", note_id, background_image)

    async def toggle_favorite(self, db: AsyncSession, note_id: str) -> FavoriteResponse:
        try:
            note = await db.get(Note, note_id)
        except SQLAlchemyError as e:
            logger.error("Database error loading note %s: %s", note_id, str(e))
            raise DatabaseError(context={"note_id": note_id})
        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)

        note.is_favorite = not note.is_favorite
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error toggling favorite on %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not update the note. Please try again.",
                context={"note_id": note_id},
            )
        logger.info("Note %s favorite=%s", note_id, note.is_favorite)
        return FavoriteResponse(id=note_id, is_favorite=note.is_favorite)

    async def delete_note(self, db: AsyncSession, note_id: str) -> None:
        try:
            result = await db.execute(delete(Note).where(Note.id == note_id))
        except SQLAlchemyError as e:
            logger.error("Database error deleting note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not delete the note. Please try again.",
                context={"note_id": note_id},
            )
        if result.rowcount == 0:
            raise NotFoundError(resource="note", resource_id=note_id)
        logger.info("Note %s deleted", note_id)

    @staticmethod
    def preset_backgrounds() -> List[str]:
        return list(PRESET_BACKGROUNDS)


# ── Singleton Instance ────────────────────────────────────────────────────
# Why singleton: NoteService is stateless; no per-request state needed
note_service = NoteService()
