import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from safemeds.core.config import settings
from safemeds.db.models import StorageSlot
from safemeds.profiles.schemas import UserProfile

logger = logging.getLogger(__name__)


async def get_slot(db: AsyncSession, key: str) -> Optional[str]:
    result = await db.execute(select(StorageSlot).where(StorageSlot.key == key))
    slot = result.scalar_one_or_none()
    return slot.value if slot else None


async def put_slot(db: AsyncSession, key: str, value: str) -> StorageSlot:
    result = await db.execute(select(StorageSlot).where(StorageSlot.key == key))
    existing = result.scalar_one_or_none()

    if existing:
        existing.value = value
        await db.commit()
        await db.refresh(existing)
        return existing

    slot = StorageSlot(key=key, value=value)
    db.add(slot)
    await db.commit()
    await db.refresh(slot)
    return slot


class ProfileStore:
    """Durable home of the single user profile."""

    def __init__(self, session_factory: async_sessionmaker, key: Optional[str] = None):
        self.session_factory = session_factory
        self.key = key or settings.profile_storage_key

    async def load(self) -> Optional[UserProfile]:
        """Return the saved profile, or None on first run or unreadable content."""
        async with self.session_factory() as db:
            raw = await get_slot(db, self.key)

        if raw is None:
            return None

        try:
            return UserProfile.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring stored profile in slot %r: %s", self.key, e)
            return None

    async def save(self, profile: UserProfile) -> None:
        async with self.session_factory() as db:
            await put_slot(db, self.key, profile.model_dump_json())
