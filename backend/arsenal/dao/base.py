"""
Base Data Access Object (DAO) class.

WHY: DAOs keep SQL out of the escalation engine and services. They only
flush; the service that owns the unit of work decides when to commit,
so a ticket, its history row and its sequence number land together.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseDAO(Generic[ModelType]):
    """
    Shared insert and lookup for single-table DAOs (users, notifications,
    system config).

    Type Parameters:
        ModelType: The SQLAlchemy model class this DAO manages
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Insert a row and return it with server defaults loaded.

        Raises:
            IntegrityError: If a unique constraint is violated
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        result = await self.session.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()
