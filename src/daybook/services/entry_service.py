"""Entry service — journal entries and the user → entries ownership index.

Learn: The invariant this service owns is "an entry is visible to
exactly the one user whose list contains it". Every mutation that
touches both the entry row and the ownership index (create, delete,
delete-user) runs inside a single transaction: either both writes
commit or the rollback leaves the store as if nothing happened.

Reads only ever go through the ownership index:
- an entry no user lists (an orphan) is invisible and gets garbage
  collected by collect_orphans();
- an index row whose entry is gone (dangling) is removed the first
  time a read trips over it, and the read reports NotFound.

Ownership is checked before existence, so "not yours" and "doesn't
exist" look identical to the caller.

Audio is produced after the text commit by the speech client. Its
failure never undoes the text change; it only shows up as
audio_status="unavailable" on the result.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from daybook.auth.dependencies import CurrentPrincipal
from daybook.db.models import JournalEntry, utcnow
from daybook.db.stores import EntryStore, UserStore
from daybook.errors import ExternalServiceUnavailable, InconsistentState, NotFound
from daybook.services.speech import SpeechSynthesizer

logger = structlog.get_logger()

AUDIO_READY = "ready"
AUDIO_UNAVAILABLE = "unavailable"
AUDIO_DISABLED = "disabled"
AUDIO_UNCHANGED = "unchanged"

_ENTRY_COLUMNS = ("id", "title", "content", "created_at", "updated_at", "audio")


@dataclass
class EntryResult:
    """An entry after a mutation, plus what happened to its audio."""

    entry: JournalEntry
    audio_status: str


class EntryService:
    """Business logic for journal entries, always scoped to one principal."""

    def __init__(self, db: AsyncSession, speech: Optional[SpeechSynthesizer] = None):
        self.db = db
        self.users = UserStore(db)
        self.entries = EntryStore(db)
        self.speech = speech

    # ─── Create ─────────────────────────────────────────

    async def create_entry(
        self,
        principal: CurrentPrincipal,
        title: str,
        content: Optional[str] = None,
    ) -> EntryResult:
        """Persist a new entry and append it to the principal's list, atomically."""
        if not title or not title.strip():
            raise ValueError("title must not be empty")

        entry = JournalEntry(
            title=title, content=content, audio=None, created_at=utcnow()
        )
        try:
            await self.entries.save(entry)
            await self.users.append_entry(principal.user_id, entry.id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "entry.create_failed", username=principal.username, error=str(e)
            )
            raise InconsistentState("Could not create entry") from e

        logger.info("entry.created", entry_id=str(entry.id), username=principal.username)
        audio_status = await self._attach_audio(entry, clear_stale=False)
        return EntryResult(entry=entry, audio_status=audio_status)

    # ─── Read ───────────────────────────────────────────

    async def list_entries(self, principal: CurrentPrincipal) -> list[JournalEntry]:
        """The principal's entries in insertion order. Empty list if none."""
        linked = await self.entries.list_linked(principal.user_id)
        dangling = [entry_id for entry_id, entry in linked if entry is None]
        if dangling:
            await self._repair_dangling(principal, dangling)
        return [entry for _, entry in linked if entry is not None]

    async def get_entry(
        self, principal: CurrentPrincipal, entry_id: uuid.UUID
    ) -> JournalEntry:
        """One of the principal's entries. NotFound if absent or owned by someone else."""
        if not await self.users.owns(principal.user_id, entry_id):
            raise NotFound(f"Entry {entry_id} not found")

        entry = await self.entries.find_by_id(entry_id)
        if entry is None:
            await self._repair_dangling(principal, [entry_id])
            raise NotFound(f"Entry {entry_id} not found")
        return entry

    # ─── Update ─────────────────────────────────────────

    async def update_entry(
        self,
        principal: CurrentPrincipal,
        entry_id: uuid.UUID,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> EntryResult:
        """Partial update: only non-empty fields replace existing values.

        Audio is regenerated only when the text actually changed.
        """
        entry = await self.get_entry(principal, entry_id)

        changed = False
        if title and title.strip() and title != entry.title:
            entry.title = title
            changed = True
        if content and content != entry.content:
            entry.content = content
            changed = True

        if not changed:
            return EntryResult(entry=entry, audio_status=AUDIO_UNCHANGED)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("entry.update_failed", entry_id=str(entry_id), error=str(e))
            raise InconsistentState("Could not update entry") from e

        logger.info("entry.updated", entry_id=str(entry_id))
        audio_status = await self._attach_audio(entry, clear_stale=True)
        return EntryResult(entry=entry, audio_status=audio_status)

    # ─── Delete ─────────────────────────────────────────

    async def delete_entry(self, principal: CurrentPrincipal, entry_id: uuid.UUID) -> None:
        """Remove the entry from the principal's list and delete it, atomically."""
        if not await self.users.owns(principal.user_id, entry_id):
            raise NotFound(f"Entry {entry_id} not found")

        try:
            await self.users.remove_entry(principal.user_id, entry_id)
            await self.entries.delete_by_id(entry_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("entry.delete_failed", entry_id=str(entry_id), error=str(e))
            raise InconsistentState("Could not delete entry") from e

        logger.info("entry.deleted", entry_id=str(entry_id), username=principal.username)

    async def delete_user(self, principal: CurrentPrincipal) -> int:
        """Delete the principal's account and every entry it owns, atomically.

        Returns the number of entries deleted.
        """
        try:
            deleted_entries = await self.entries.delete_owned_by(principal.user_id)
            await self.users.remove_all_entries(principal.user_id)
            deleted_users = await self.users.delete_by_id(principal.user_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("user.delete_failed", username=principal.username, error=str(e))
            raise InconsistentState("Could not delete user") from e

        if not deleted_users:
            logger.warning("user.delete_missing", username=principal.username)
        logger.info(
            "user.deleted", username=principal.username, entries=deleted_entries
        )
        return deleted_entries

    # ─── Reconciliation ─────────────────────────────────

    async def collect_orphans(self) -> int:
        """Delete entries that no user lists. Returns how many were removed."""
        try:
            removed = await self.entries.delete_orphans()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise InconsistentState("Could not collect orphaned entries") from e

        if removed:
            logger.info("entry.orphans_collected", count=removed)
        return removed

    async def _repair_dangling(
        self, principal: CurrentPrincipal, entry_ids: list[uuid.UUID]
    ) -> None:
        for entry_id in entry_ids:
            await self.users.remove_entry(principal.user_id, entry_id)
        await self.db.commit()
        logger.warning(
            "entry.dangling_reference_repaired",
            username=principal.username,
            entry_ids=[str(e) for e in entry_ids],
        )

    # ─── Audio ──────────────────────────────────────────

    async def _attach_audio(self, entry: JournalEntry, *, clear_stale: bool) -> str:
        """Synthesize audio for the entry's current text and store it.

        Never raises: the text is already committed at this point.
        """
        if self.speech is None or not self.speech.enabled:
            if clear_stale and entry.audio is not None:
                await self._store_audio(entry, None)
            return AUDIO_DISABLED

        try:
            audio = await self.speech.synthesize(entry.title, entry.content)
        except ExternalServiceUnavailable as e:
            logger.warning("entry.audio_unavailable", entry_id=str(entry.id), error=str(e))
            if clear_stale and entry.audio is not None:
                await self._store_audio(entry, None)
            return AUDIO_UNAVAILABLE

        if not await self._store_audio(entry, audio):
            return AUDIO_UNAVAILABLE
        return AUDIO_READY

    async def _store_audio(self, entry: JournalEntry, audio: Optional[bytes]) -> bool:
        """Commit new audio for an entry whose text is already committed.

        On failure the entry keeps its last committed state and False is
        returned. The rollback expires every loaded attribute, so the
        committed values are reloaded, or restored from a snapshot if the
        database is still unreachable.
        """
        entry_id = str(entry.id)
        snapshot = {
            column: getattr(entry, column) for column in _ENTRY_COLUMNS
        }
        entry.audio = audio
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("entry.audio_store_failed", entry_id=entry_id, error=str(e))
            try:
                await self.db.refresh(entry)
            except SQLAlchemyError as refresh_error:
                logger.warning(
                    "entry.audio_reload_failed",
                    entry_id=entry_id,
                    error=str(refresh_error),
                )
                for column, value in snapshot.items():
                    set_committed_value(entry, column, value)
            return False
        return True
