"""
Single commit/rollback exit path for engine operations
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import EngineError, StorageFailure

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Outcome of one transactional operation: a value or an error"""
    value: Any = None
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value


def run_in_transaction(db: Session, operation: Callable[..., Any], *args, **kwargs) -> OperationResult:
    """
    Run `operation(db, *args, **kwargs)` as one transaction.

    Commits when the operation returns; on any engine or storage error the
    whole transaction is rolled back before the error is handed back.
    Releasing the session stays with whoever opened it.
    """
    name = getattr(operation, "__name__", repr(operation))
    try:
        value = operation(db, *args, **kwargs)
        db.commit()
        return OperationResult(value=value)
    except EngineError as e:
        db.rollback()
        logger.info(f"{name} rejected: {e.message}")
        return OperationResult(error=e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"{name} failed, transaction rolled back")
        return OperationResult(error=StorageFailure(f"Storage error: {e.__class__.__name__}"))
