"""Generic repository base class."""
from typing import Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Common persistence operations for a single model.

    Subclasses add domain queries; writes commit immediately unless the
    caller wraps them in a TransactionContext.
    """

    def __init__(self, session: Session, model: Type[T]):
        self._session = session
        self._model = model

    def find_by_id(self, entity_id) -> Optional[T]:
        """Find entity by primary key (UUID or its string form)."""
        if isinstance(entity_id, str):
            try:
                entity_id = UUID(entity_id)
            except ValueError:
                return None
        return self._session.get(self._model, entity_id)

    def find_all(self, limit: int = 100, offset: int = 0) -> List[T]:
        """Find all entities with pagination."""
        return self._session.query(self._model).offset(offset).limit(limit).all()

    def save(self, entity: T) -> T:
        """Add or update entity and commit."""
        self._session.add(entity)
        self._session.commit()
        return entity

    def add(self, entity: T) -> T:
        """Stage entity without committing (used inside a transaction)."""
        self._session.add(entity)
        return entity

    def delete(self, entity: T) -> None:
        """Delete entity and commit."""
        self._session.delete(entity)
        self._session.commit()
