"""Notes store keyed by ``(owner_id, note_id)``."""

from datetime import UTC, datetime

import uuid_utils
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from noteauth.core.errors import NotFoundError
from noteauth.db.models_note import NoteEntity


class NotePatch(BaseModel):
    """Fields a note update may change; ``None`` leaves a field as is."""

    title: str | None = None
    content: str | None = None


async def create_note(
    session: AsyncSession, owner_id: str, title: str, content: str
) -> NoteEntity:
    """Create a note for the given owner."""
    now = datetime.now(UTC)
    note = NoteEntity(
        id=str(uuid_utils.uuid7()),
        owner_id=owner_id,
        title=title,
        content=content,
        created_at=now,
        updated_at=now,
    )
    session.add(note)
    await session.flush()
    return note


async def list_notes(session: AsyncSession, owner_id: str) -> list[NoteEntity]:
    """All notes of one owner, oldest first."""
    stmt = (
        select(NoteEntity)
        .where(NoteEntity.owner_id == owner_id)
        .order_by(NoteEntity.created_at, NoteEntity.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_note(session: AsyncSession, owner_id: str, note_id: str) -> NoteEntity:
    """Fetch one note; notes of other owners are reported as not found."""
    stmt = select(NoteEntity).where(
        NoteEntity.owner_id == owner_id,
        NoteEntity.id == note_id,
    )
    result = await session.execute(stmt)
    note = result.scalar_one_or_none()
    if note is None:
        raise NotFoundError("Note not found")
    return note


async def update_note(
    session: AsyncSession, owner_id: str, note_id: str, patch: NotePatch
) -> NoteEntity:
    """Apply a partial update to an owned note."""
    note = await get_note(session, owner_id, note_id)
    if patch.title is not None:
        note.title = patch.title
    if patch.content is not None:
        note.content = patch.content
    note.updated_at = datetime.now(UTC)
    await session.flush()
    return note
