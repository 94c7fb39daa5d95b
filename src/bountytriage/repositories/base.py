"""Base repository shared by the table-specific repositories."""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bountytriage.db.base import Base

RowT = TypeVar("RowT", bound=Base)


class BaseRepository(Generic[RowT]):
    """Async create/read/update over one ORM model.

    Writes are flushed, never committed; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession, model_class: type[RowT]):
        self.session = session
        self.model_class = model_class

    async def get_by_id(self, pk_field: str, pk_value: str) -> RowT | None:
        column = getattr(self.model_class, pk_field)
        result = await self.session.execute(select(self.model_class).where(column == pk_value))
        return result.scalar_one_or_none()

    async def create(self, **values: Any) -> RowT:
        row = self.model_class(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: RowT, **changes: Any) -> RowT:
        for field, value in changes.items():
            setattr(row, field, value)
        await self.session.flush()
        return row
