"""Pydantic schemas for journal entries.

Learn: Pydantic v2 models validate request/response data. Separate
"Create"/"Update" schemas (input) from "Read" schemas (output).
Audio bytes are never inlined in JSON; clients fetch them from
/entries/{id}/audio when has_audio is true.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class EntryCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: Optional[str] = None


class EntryUpdate(BaseModel):
    """Partial update — empty or missing fields keep their current value."""
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None


class EntrySummary(BaseModel):
    id: uuid.UUID
    title: str
    content: Optional[str] = None
    created_at: datetime
    has_audio: bool

    @classmethod
    def from_entry(cls, entry) -> "EntrySummary":
        return cls(
            id=entry.id,
            title=entry.title,
            content=entry.content,
            created_at=entry.created_at,
            has_audio=entry.audio is not None,
        )


class EntryRead(EntrySummary):
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entry(cls, entry) -> "EntryRead":
        return cls(
            id=entry.id,
            title=entry.title,
            content=entry.content,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
            has_audio=entry.audio is not None,
        )


class EntryMutationRead(EntryRead):
    """Returned by create/update — includes the audio outcome."""
    audio_status: str
