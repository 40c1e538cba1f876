"""
Apostrophe Backend — Note SQLAlchemy Model
============================================

What:  ORM model representing the `notes` table in the local SQLite file.
Why:   Maps Python objects to database rows for type-safe database operations.
Who:   Used by NoteService for CRUD operations.

Table Design Rationale:
    - id: TEXT chosen by the editor when the note is first created, so the
      UI can reference a note before its first save round-trips
    - content: the editor's serialized document (HTML), stored verbatim
    - icon / background_image: empty string means "none" (not NULL), which
      keeps the list query and the UI free of null checks
    - updated_at: UTC; bumped only by saves, not by cosmetic changes

    Index on (is_favorite, updated_at):
        Serves the sidebar query, favorites first then most recently edited.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from apostrophe.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Note(Base):
    """
    A note in the sidebar.

    Query Patterns:
        - Sidebar list: SELECT id, title, icon, is_favorite
          ORDER BY is_favorite DESC, updated_at DESC
        - Open note: SELECT ... WHERE id = :id (primary key)
    """

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String, primary_key=True)

    title: Mapped[str] = mapped_column(Text, nullable=False, default="")

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Emoji shown next to the title; "" for none
    icon: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )

    # Preset background name or stored image path; "" for none
    background_image: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )

    is_favorite: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("0")
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_notes_favorite_updated", "is_favorite", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Note(id='{self.id}', title='{self.title[:30]}', favorite={self.is_favorite})>"
