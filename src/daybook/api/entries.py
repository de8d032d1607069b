"""Journal entry API routes.

Learn: Every route takes the CurrentPrincipal from the auth dependency
and hands it to EntryService, which scopes all reads and writes to
that user's ownership list. An id that belongs to someone else is a
plain 404, same as an id that never existed.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from daybook.auth.dependencies import CurrentPrincipal, get_current_principal
from daybook.db.engine import get_db
from daybook.errors import InconsistentState, NotFound
from daybook.schemas.entry import (
    EntryCreate,
    EntryMutationRead,
    EntryRead,
    EntrySummary,
    EntryUpdate,
)
from daybook.services.entry_service import EntryResult, EntryService
from daybook.services.speech import SpeechSynthesizer, get_speech

router = APIRouter(prefix="/entries")


def _svc(
    db: AsyncSession = Depends(get_db),
    speech: SpeechSynthesizer = Depends(get_speech),
) -> EntryService:
    return EntryService(db, speech)


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Entry not found")


def _inconsistent(e: InconsistentState) -> HTTPException:
    return HTTPException(status_code=500, detail=str(e))


def _mutation_read(result: EntryResult) -> EntryMutationRead:
    base = EntryRead.from_entry(result.entry)
    return EntryMutationRead(**base.model_dump(), audio_status=result.audio_status)


@router.get("", response_model=list[EntrySummary])
async def list_entries(
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: EntryService = Depends(_svc),
):
    """List the caller's entries, oldest first."""
    entries = await svc.list_entries(principal)
    return [EntrySummary.from_entry(e) for e in entries]


@router.post("", response_model=EntryMutationRead, status_code=201)
async def create_entry(
    body: EntryCreate,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: EntryService = Depends(_svc),
):
    """Create an entry. Audio is generated if the speech provider answers in time."""
    try:
        result = await svc.create_entry(principal, body.title, body.content)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InconsistentState as e:
        raise _inconsistent(e)
    return _mutation_read(result)


@router.get("/{entry_id}", response_model=EntryRead)
async def get_entry(
    entry_id: uuid.UUID,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: EntryService = Depends(_svc),
):
    try:
        entry = await svc.get_entry(principal, entry_id)
    except NotFound:
        raise _not_found()
    return EntryRead.from_entry(entry)


@router.get("/{entry_id}/audio")
async def get_entry_audio(
    entry_id: uuid.UUID,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: EntryService = Depends(_svc),
):
    """Stream the entry's MP3 audio."""
    try:
        entry = await svc.get_entry(principal, entry_id)
    except NotFound:
        raise _not_found()
    if entry.audio is None:
        raise HTTPException(status_code=404, detail="Entry has no audio")
    return Response(
        content=entry.audio,
        media_type="audio/mpeg",
        headers={"Content-Disposition": f'inline; filename="{entry_id}.mp3"'},
    )


@router.put("/{entry_id}", response_model=EntryMutationRead)
async def update_entry(
    entry_id: uuid.UUID,
    body: EntryUpdate,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: EntryService = Depends(_svc),
):
    """Partially update an entry; empty fields keep their current value."""
    try:
        result = await svc.update_entry(principal, entry_id, body.title, body.content)
    except NotFound:
        raise _not_found()
    except InconsistentState as e:
        raise _inconsistent(e)
    return _mutation_read(result)


@router.delete("/{entry_id}", status_code=204)
async def delete_entry(
    entry_id: uuid.UUID,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: EntryService = Depends(_svc),
):
    try:
        await svc.delete_entry(principal, entry_id)
    except NotFound:
        raise _not_found()
    except InconsistentState as e:
        raise _inconsistent(e)
    return Response(status_code=204)
