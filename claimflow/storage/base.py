# claimflow/storage/base.py
"""Base storage interface over a SQLAlchemy session."""

from abc import ABC
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from claimflow.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class BaseStore(ABC, Generic[T]):
    """Abstract base class for all table-backed stores."""

    model: Type[T]

    def __init__(self, session: Session):
        self.session = session

    def _get_id(self, entity: T) -> Any:
        return inspect(entity).identity[0] if inspect(entity).identity else None

    def save(self, entity: T) -> T:
        """Add an entity and flush so its primary key is populated."""
        self.session.add(entity)
        self.session.flush()
        logger.debug(f"Saved {self.model.__name__}: {self._get_id(entity)}")
        return entity

    def get(self, entity_id: Any) -> Optional[T]:
        """Get entity by primary key."""
        return self.session.get(self.model, entity_id)
