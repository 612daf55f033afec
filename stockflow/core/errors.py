"""
Engine error taxonomy.

Every failure surfaced by a service carries the HTTP status the API layer
should answer with.
"""


class EngineError(Exception):
    """Base class for order/stock engine failures"""
    status_code = 500
    code = "engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EngineError):
    """Missing/invalid field or order-type precondition"""
    status_code = 400
    code = "validation_error"


class NotFoundError(EngineError):
    """Order, adjustment or reference row absent"""
    status_code = 404
    code = "not_found"


class ConflictError(EngineError):
    """Duplicate name or invoice number"""
    status_code = 409
    code = "conflict"


class StateError(EngineError):
    """Operation not allowed in the record's current state"""
    status_code = 400
    code = "invalid_state"


class StorageFailure(EngineError):
    """Underlying data-layer error during a transaction"""
    status_code = 500
    code = "storage_failure"
