"""Create notes table

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Creates the `notes` table behind the editor sidebar.
How:   A fresh database gets the full table. A notes.db from an early install
       (id, title, content, updated_at only) keeps its rows and gains the
       cosmetic columns through a batch alter.

Rollback: downgrade() drops the table entirely (destructive, all notes lost).
"""

from typing import Sequence, Union
from alembic import context, op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

INDEX_NAME = "idx_notes_favorite_updated"


def _cosmetic_columns():
    return [
        # Emoji shown next to the title; "" for none
        sa.Column("icon", sa.Text(), nullable=False, server_default=sa.text("''")),

        # Preset background name or stored image path; "" for none
        sa.Column(
            "background_image", sa.Text(), nullable=False, server_default=sa.text("''")
        ),

        sa.Column(
            "is_favorite", sa.Boolean(), nullable=False, server_default=sa.text("0")
        ),
    ]


def upgrade() -> None:
    # Offline SQL output cannot inspect, so it assumes an empty database
    offline = context.is_offline_mode()

    if offline or not sa.inspect(op.get_bind()).has_table("notes"):
        op.create_table(
            "notes",
            # Chosen by the editor, so the UI can reference a note before its first save
            sa.Column("id", sa.String(), nullable=False),
            sa.Column("title", sa.Text(), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            *_cosmetic_columns(),
            # Bumped by saves only, not by icon / background / favorite changes
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
            sa.PrimaryKeyConstraint("id"),
        )
    else:
        existing = {col["name"] for col in sa.inspect(op.get_bind()).get_columns("notes")}
        missing = [col for col in _cosmetic_columns() if col.name not in existing]
        if missing:
            with op.batch_alter_table("notes") as batch_op:
                for column in missing:
                    batch_op.add_column(column)

    # Sidebar query: favorites first, then most recently edited
    if offline or INDEX_NAME not in {
        ix["name"] for ix in sa.inspect(op.get_bind()).get_indexes("notes")
    }:
        op.create_index(INDEX_NAME, "notes", ["is_favorite", "updated_at"])


def downgrade() -> None:
    """Drop the notes table. Every note is permanently lost."""
    op.drop_index(INDEX_NAME, table_name="notes")
    op.drop_table("notes")
