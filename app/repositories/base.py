"""
Base repository with the async SQLAlchemy operations shared by the
property and review repositories.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from app.database import Base
from typing import TypeVar, Generic, Optional, Dict, Any, Type
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository bound to one model and one session.
    Every write commits; a failed write rolls the session back and re-raises.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def create(self, obj_in: Dict[str, Any]) -> ModelType:
        """
        Insert a row built from ``obj_in``.

        Args:
            obj_in: Column values for the new row

        Returns:
            Created instance, refreshed so server defaults are loaded
        """
        try:
            db_obj = self.model(**obj_in)
            self.db.add(db_obj)
            await self.db.commit()
            await self.db.refresh(db_obj)
            logger.debug(f"Created {self.model.__name__} with id: {db_obj.id}")
            return db_obj
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create {self.model.__name__}: {e}")
            raise

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        result = await self.db.execute(select(self.model).where(self.model.id == id))
        obj = result.scalar_one_or_none()
        if obj is None:
            logger.debug(f"{self.model.__name__} with id {id} not found")
        return obj

    async def get_by_field(self, field: str, value: Any) -> Optional[ModelType]:
        """
        First row whose ``field`` equals ``value``.

        Raises:
            ValueError: If the model has no such field
        """
        if not hasattr(self.model, field):
            raise ValueError(f"Field '{field}' does not exist on {self.model.__name__}")

        result = await self.db.execute(select(self.model).where(getattr(self.model, field) == value))
        return result.scalars().first()

    async def update_instance(self, db_obj: ModelType, obj_in: Dict[str, Any]) -> ModelType:
        """Apply non-None values to a loaded instance and commit."""
        update_data = {k: v for k, v in obj_in.items() if v is not None and hasattr(self.model, k)}
        if not update_data:
            logger.warning(f"No valid data provided for updating {self.model.__name__} {db_obj.id}")
            return db_obj

        try:
            for field, value in update_data.items():
                setattr(db_obj, field, value)

            await self.db.commit()
            await self.db.refresh(db_obj)
            logger.debug(f"Updated {self.model.__name__} with id: {db_obj.id}")
            return db_obj
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update {self.model.__name__} {db_obj.id}: {e}")
            raise

    async def delete(self, id: int) -> bool:
        """
        Delete a row by primary key.

        Returns:
            True if a row was deleted, False if none matched
        """
        try:
            result = await self.db.execute(delete(self.model).where(self.model.id == id))
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete {self.model.__name__} {id}: {e}")
            raise

        deleted = result.rowcount > 0
        logger.debug(f"Delete {self.model.__name__} {id}: {'done' if deleted else 'not found'}")
        return deleted
