"""
Base repository class for data access layer.

The repository pattern provides:
1. Separation of data access logic from business logic
2. Single place for query logic (easier to maintain)
3. Easier testing (can mock repositories)
4. Consistent interface for data operations

Database failures never escape a repository as raw SQLAlchemy errors: every
public method runs inside `guarded()`, which rolls the session back and
raises PersistenceError tagged with the failing operation.

Example:
    class MarketMatchRepository(BaseRepository[MarketMatch]):
        def find_by_match_id(self, match_id: str) -> Optional[MarketMatch]:
            with self.guarded("find_by_match_id"):
                return self.where_first(MarketMatch.match_id == match_id)
"""
from abc import ABC
from contextlib import contextmanager
from typing import TypeVar, Generic, Type, Optional, List, Any, Dict, Iterator

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from app.core import metrics
from app.core.logging import get_logger
from app.services.sync.errors import PersistenceError
from app.utils.timezone import utc_now

logger = get_logger(__name__)

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Base repository class providing common data access methods.

    All repositories should extend this class and specify their model type.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        """
        Initialize the repository.

        Args:
            model_type: The SQLAlchemy model class
            db: The database session
        """
        self.model_type = model_type
        self.db = db

    # ========================================================================
    # Error Handling
    # ========================================================================

    @contextmanager
    def guarded(self, operation: str) -> Iterator[None]:
        """
        Convert database failures into PersistenceError.

        The session is rolled back so the caller can keep using it (for
        example for a fallback read after a failed write).
        """
        try:
            yield
        except SQLAlchemyError as e:
            self.rollback_quietly()
            metrics.record_persistence_error(operation)
            logger.error(
                f"Database {operation} failed on {self.model_type.__name__}: {e}",
                extra={"operation": operation},
            )
            raise PersistenceError(str(e), operation=operation, cause=e) from e

    def rollback_quietly(self) -> None:
        """Rollback, logging (not raising) a failure of the rollback itself."""
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"Rollback failed: {e}")

    # ========================================================================
    # CRUD Operations - Basic Create, Read, Update
    # ========================================================================

    def create(self, **kwargs) -> T:
        """
        Create a new record.

        Returns:
            The created record (not yet committed to database)
        """
        instance = self.model_type(**kwargs)
        self.db.add(instance)
        return instance

    def assign(self, instance: T, values: Dict[str, Any]) -> T:
        """Set column values on an instance and bump updated_at."""
        for key, value in values.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        if hasattr(instance, "updated_at"):
            instance.updated_at = utc_now()
        return instance

    # ========================================================================
    # Query Builders - Flexible query construction
    # ========================================================================

    def query(self) -> Query:
        """Get a new query object for this model."""
        return self.db.query(self.model_type)

    def where(self, *criterion) -> List[T]:
        """Filter records using SQLAlchemy expressions."""
        return self.db.query(self.model_type).filter(*criterion).all()

    def where_first(self, *criterion) -> Optional[T]:
        """Filter records using SQLAlchemy expressions and return first match."""
        return self.db.query(self.model_type).filter(*criterion).first()

    def count(self, *criterion) -> int:
        """Count records matching optional criterion."""
        query = self.db.query(func.count(self.model_type.id))
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    # ========================================================================
    # Save Operations
    # ========================================================================

    def save(self) -> None:
        """Commit pending changes to the database."""
        self.db.commit()

    def flush(self) -> None:
        """Flush pending changes without committing."""
        self.db.flush()

    def rollback(self) -> None:
        """Rollback pending changes."""
        self.db.rollback()
