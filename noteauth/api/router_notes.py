"""Notes endpoints, each guarded by a notes scope."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from noteauth.api.deps import require_scope
from noteauth.api.schemas import CreateNotePayload, NoteResponse, UpdateNotePayload
from noteauth.auth.types import Identity
from noteauth.db.engine import get_session
from noteauth.db.models_note import NoteEntity
from noteauth.db.repo_note import (
    NotePatch,
    create_note,
    get_note,
    list_notes,
    update_note,
)

router = APIRouter(prefix="/notes", tags=["notes"])

DbSession = Annotated[AsyncSession, Depends(get_session)]
Reader = Annotated[Identity, Depends(require_scope("notes:read"))]
Writer = Annotated[Identity, Depends(require_scope("notes:write"))]


def _note_to_response(entity: NoteEntity) -> NoteResponse:
    return NoteResponse.model_validate(entity)


@router.post("", status_code=201)
async def create(payload: CreateNotePayload, db: DbSession, identity: Writer) -> NoteResponse:
    """POST /notes -- create a note owned by the caller."""
    note = await create_note(db, identity.id, payload.title, payload.content)
    return _note_to_response(note)


@router.get("")
async def list_owned(db: DbSession, identity: Reader) -> list[NoteResponse]:
    """GET /notes -- the caller's notes."""
    return [_note_to_response(n) for n in await list_notes(db, identity.id)]


@router.get("/{note_id}")
async def read(note_id: str, db: DbSession, identity: Reader) -> NoteResponse:
    note = await get_note(db, identity.id, note_id)
    return _note_to_response(note)


@router.patch("/{note_id}")
async def update(
    note_id: str, payload: UpdateNotePayload, db: DbSession, identity: Writer
) -> NoteResponse:
    """PATCH /notes/{id} -- partial update of an owned note."""
    patch = NotePatch(title=payload.title, content=payload.content)
    note = await update_note(db, identity.id, note_id, patch)
    return _note_to_response(note)
