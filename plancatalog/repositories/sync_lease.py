"""Cross-process lease rows guarding single-flight jobs."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite

from plancatalog.db.models import SyncLeaseModel
from plancatalog.repositories.base import BaseRepository


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncLeaseRepository(BaseRepository):
    async def try_acquire(self, name: str, holder: str, ttl_seconds: int) -> bool:
        """Take the lease unless a live holder has it.

        An expired lease is removed first so a crashed holder cannot block
        forever.

        Returns:
            True if ``holder`` now owns the lease
        """
        now = _utcnow()
        await self._bulk(
            delete(SyncLeaseModel).where(
                SyncLeaseModel.name == name, SyncLeaseModel.expires_at <= now
            )
        )

        insert = postgresql.insert if self.dialect_name == "postgresql" else sqlite.insert
        stmt = (
            insert(SyncLeaseModel)
            .values(
                name=name,
                holder=holder,
                acquired_at=now,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )
            .on_conflict_do_nothing(index_elements=["name"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def release(self, name: str, holder: str) -> bool:
        result = await self._bulk(
            delete(SyncLeaseModel).where(
                SyncLeaseModel.name == name, SyncLeaseModel.holder == holder
            )
        )
        return result.rowcount > 0

    async def is_held(self, name: str) -> bool:
        """True while an unexpired lease exists."""
        result = await self.session.execute(
            select(SyncLeaseModel.holder).where(
                SyncLeaseModel.name == name, SyncLeaseModel.expires_at > _utcnow()
            )
        )
        return result.scalar_one_or_none() is not None
