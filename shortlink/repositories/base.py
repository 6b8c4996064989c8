"""Base repository implementation for the link service.

This module provides a generic BaseRepository class that follows the Repository
pattern and the error types repositories raise to the service layer.
"""

import logging
from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

T = TypeVar("T", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class EntityNotFoundError(RepositoryError):
    """Exception raised when an entity cannot be found."""

    def __init__(self, model_type: Type[SQLModel], entity_id: Any):
        self.model_type = model_type
        self.entity_id = entity_id
        model_name = getattr(model_type, "__name__", "Entity")
        super().__init__(f"{model_name} with id {entity_id} not found")


class EntityAccessError(RepositoryError):
    """Exception raised when the caller does not own the entity."""

    def __init__(self, model_type: Type[SQLModel], entity_id: Any):
        self.model_type = model_type
        self.entity_id = entity_id
        model_name = getattr(model_type, "__name__", "Entity")
        super().__init__(f"{model_name} with id {entity_id} is not owned by the caller")


class DuplicateEntityError(RepositoryError):
    """Exception raised when a unique constraint is violated."""

    def __init__(self, model_type: Type[SQLModel], field_name: str, value: Any):
        self.model_type = model_type
        self.field_name = field_name
        self.value = value
        model_name = getattr(model_type, "__name__", "Entity")
        super().__init__(f"{model_name} with {field_name}={value} already exists")


class BaseRepository(Generic[T, CreateSchemaType]):
    """
    Base repository implementing common operations for SQLModel entities.

    Repositories never commit; the caller owns the transaction.

    Type parameters:
        T: The SQLModel type this repository manages
        CreateSchemaType: The Pydantic model type for creation operations
    """

    def __init__(self, model_type: Type[T]):
        self.model_type = model_type

    async def get_by_id(self, db: AsyncSession, id: Any) -> Optional[T]:
        """
        Get an entity by its primary key.

        Args:
            db: Database session
            id: Entity ID

        Returns:
            The entity if found, None otherwise
        """
        try:
            return await db.get(self.model_type, id)
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving {self.model_type.__name__} with id {id}: {e}")
            raise RepositoryError(f"Database error retrieving entity: {e}") from e

    async def create(self, db: AsyncSession, data: Union[CreateSchemaType, Dict[str, Any]]) -> T:
        """
        Create a new entity.

        Args:
            db: Database session
            data: Entity data (either as a Pydantic model or dictionary)

        Returns:
            The created entity

        Raises:
            RepositoryError: On database errors
        """
        try:
            data_dict = data.model_dump(exclude_unset=True) if isinstance(data, BaseModel) else data
            entity = self.model_type(**data_dict)
            db.add(entity)
            await db.flush()
            await db.refresh(entity)
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model_type.__name__}: {e}")
            await db.rollback()
            raise RepositoryError(f"Database error creating entity: {e}") from e

    async def count(self, db: AsyncSession, *conditions) -> int:
        try:
            query = select(func.count()).select_from(self.model_type).where(*conditions)
            result = await db.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting {self.model_type.__name__} records: {e}")
            raise RepositoryError(f"Database error counting entities: {e}") from e

    async def bulk_delete(self, db: AsyncSession, *conditions) -> int:
        """
        Delete every entity matching the given SQLAlchemy conditions.

        Returns:
            Number of rows deleted

        Raises:
            ValueError: If no condition is given
            RepositoryError: On database errors
        """
        if not conditions:
            raise ValueError("No conditions provided for bulk delete")
        try:
            result = await db.execute(delete(self.model_type).where(*conditions))
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error bulk deleting {self.model_type.__name__} records: {e}", exc_info=True)
            raise RepositoryError(f"Database error bulk deleting entities: {e}") from e
