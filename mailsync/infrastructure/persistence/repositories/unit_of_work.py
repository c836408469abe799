"""SQLAlchemy commit point for sync services sharing one AsyncSession."""

from sqlalchemy.ext.asyncio import AsyncSession


class SqlUnitOfWork:
    """Implements IUnitOfWork; the session autobegins a new transaction after each call."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
