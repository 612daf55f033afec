from .config import settings, get_settings
from .database import Base, Database, create_database, get_db
from .errors import EngineError, ValidationError, NotFoundError, ConflictError, StateError, StorageFailure
from .transaction import OperationResult, run_in_transaction

__all__ = [
    "settings", "get_settings",
    "Base", "Database", "create_database", "get_db",
    "EngineError", "ValidationError", "NotFoundError", "ConflictError", "StateError", "StorageFailure",
    "OperationResult", "run_in_transaction",
]
