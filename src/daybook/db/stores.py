"""Store adapters over the ORM — the credential store and the entry store.

Learn: These are thin query helpers. None of them commit: the calling
service decides where a transaction starts and ends, so a create or a
delete that touches both stores lands in a single commit.
"""

import uuid
from typing import Optional, Sequence

from sqlalchemy import delete, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from daybook.db.models import JournalEntry, User, UserEntry


class UserStore:
    """Users plus the ownership index (user_entries)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalars().first()

    async def list_all(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.created_at, User.username))
        return list(result.scalars().all())

    async def save(self, user: User) -> User:
        self.db.add(user)
        await self.db.flush()
        return user

    async def delete_by_id(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            delete(User)
            .where(User.id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ─── Ownership index ────────────────────────────────

    async def owns(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    UserEntry.user_id == user_id, UserEntry.entry_id == entry_id
                )
            )
        )
        return bool(result.scalar())

    async def owned_entry_ids(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        result = await self.db.execute(
            select(UserEntry.entry_id)
            .where(UserEntry.user_id == user_id)
            .order_by(UserEntry.position)
        )
        return list(result.scalars().all())

    async def count_entries(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(UserEntry).where(UserEntry.user_id == user_id)
        )
        return result.scalar_one()

    async def append_entry(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> UserEntry:
        """Add entry_id at the end of the user's list."""
        result = await self.db.execute(
            select(func.coalesce(func.max(UserEntry.position), -1)).where(
                UserEntry.user_id == user_id
            )
        )
        link = UserEntry(
            user_id=user_id, entry_id=entry_id, position=result.scalar_one() + 1
        )
        self.db.add(link)
        await self.db.flush()
        return link

    async def remove_entry(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> int:
        result = await self.db.execute(
            delete(UserEntry)
            .where(UserEntry.user_id == user_id, UserEntry.entry_id == entry_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def remove_all_entries(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            delete(UserEntry)
            .where(UserEntry.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class EntryStore:
    """Journal entry rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, entry_id: uuid.UUID) -> Optional[JournalEntry]:
        result = await self.db.execute(
            select(JournalEntry).where(JournalEntry.id == entry_id)
        )
        return result.scalars().first()

    async def save(self, entry: JournalEntry) -> JournalEntry:
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def delete_by_id(self, entry_id: uuid.UUID) -> int:
        result = await self.db.execute(
            delete(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def list_linked(
        self, user_id: uuid.UUID
    ) -> Sequence[tuple[uuid.UUID, Optional[JournalEntry]]]:
        """(entry_id, entry) pairs for a user's list, in list order.

        entry is None when the index points at a row that no longer exists.
        """
        result = await self.db.execute(
            select(UserEntry.entry_id, JournalEntry)
            .select_from(UserEntry)
            .outerjoin(JournalEntry, JournalEntry.id == UserEntry.entry_id)
            .where(UserEntry.user_id == user_id)
            .order_by(UserEntry.position, UserEntry.entry_id)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def delete_owned_by(self, user_id: uuid.UUID) -> int:
        """Delete every entry in the user's list."""
        owned = select(UserEntry.entry_id).where(UserEntry.user_id == user_id)
        result = await self.db.execute(
            delete(JournalEntry)
            .where(JournalEntry.id.in_(owned))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_orphans(self) -> int:
        """Delete entries that no user lists."""
        linked = select(UserEntry.entry_id)
        result = await self.db.execute(
            delete(JournalEntry)
            .where(JournalEntry.id.not_in(linked))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
