"""Shared plumbing for the async repositories."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """Repository bound to one AsyncSession.

    Repositories flush but never commit; transaction boundaries belong to the
    calling service.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _update_by_id(self, model: type, record_id: UUID, values: dict[str, Any]) -> bool:
        """Apply a column update to one row; returns False when no row matched."""
        if not values:
            return True
        result = await self._bulk(update(model).where(model.id == record_id).values(**values))
        return result.rowcount > 0

    async def _bulk(self, stmt):
        """Execute a bulk UPDATE or DELETE without synchronizing the identity map.

        Reads use populate_existing instead. Without RETURNING the driver's
        rowcount stays accurate.
        """
        return await self.session.execute(
            stmt, execution_options={"synchronize_session": False}
        )

    @property
    def dialect_name(self) -> str:
        return self.session.bind.dialect.name
