"""Base repository: primary-key lookup, create and flush-on-update."""

from typing import Any, Generic, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mailsync.infrastructure.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository over one model. Subclasses map rows to application DTOs.

    Writes flush but never commit; the session's transaction (get_db_transactional
    or a script's session.begin()) decides when work is committed.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]) -> None:
        self.db = db
        self.model = model

    async def _get_orm_by_id(self, entity_id: str) -> ModelType | None:
        """Return a single record by primary key, or None."""
        model: Any = self.model
        result = await self.db.execute(select(self.model).where(model.id == entity_id))
        return result.scalar_one_or_none()

    async def create(self, obj: ModelType) -> ModelType:
        """Persist a new record and refresh server defaults."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj

    async def _update_by_id(self, entity_id: str, **values: Any) -> int:
        """UPDATE ... WHERE id = entity_id; returns affected row count."""
        model: Any = self.model
        result = await self.db.execute(
            update(self.model).where(model.id == entity_id).values(**values)
        )
        await self.db.flush()
        return result.rowcount or 0
