"""Startup snapshot of the app_config key/value table.

Learn: Loaded once in the app lifespan and stored on app.state. It is
an immutable mapping, so concurrent requests read it without locking.
Changing a row takes effect on the next restart.
"""

from types import MappingProxyType
from typing import Iterator, Mapping

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from daybook.db.models import AppConfig


class ConfigSnapshot(Mapping[str, str]):
    """Read-only view over the app_config rows."""

    def __init__(self, values: Mapping[str, str] | None = None):
        self._values = MappingProxyType(dict(values or {}))

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ConfigSnapshot({dict(self._values)!r})"


EMPTY_SNAPSHOT = ConfigSnapshot()


async def load_snapshot(db: AsyncSession) -> ConfigSnapshot:
    result = await db.execute(select(AppConfig))
    return ConfigSnapshot({row.key: row.value for row in result.scalars().all()})


async def set_value(db: AsyncSession, key: str, value: str) -> None:
    """Upsert one row. Running processes keep their old snapshot."""
    row = await db.get(AppConfig, key)
    if row is None:
        db.add(AppConfig(key=key, value=value))
    else:
        row.value = value
    await db.commit()


def get_config_snapshot(request: Request) -> ConfigSnapshot:
    """FastAPI dependency — the snapshot loaded at startup (empty if none)."""
    return getattr(request.app.state, "config_snapshot", EMPTY_SNAPSHOT)
