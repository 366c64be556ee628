"""
Engine Errors
Every failure carries a stable kind the caller can branch on
"""
import enum


class ErrorKind(str, enum.Enum):
    """Stable error categories"""
    VALIDATION = "validation_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DATA_INTEGRITY = "data_integrity_error"


class EngineError(Exception):
    """Base error for the execution and progression engine"""
    kind = ErrorKind.VALIDATION
    default_message = "Invalid request"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.kind.value, "message": self.message}


class ValidationError(EngineError):
    """Malformed input, illegal transition, duplicate unlock/purchase"""
    kind = ErrorKind.VALIDATION
    default_message = "Invalid input data"


class UnauthorizedError(EngineError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Authentication required"


class NotFoundError(EngineError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class ConflictError(EngineError):
    """Concurrent write detected or lock wait exceeded"""
    kind = ErrorKind.CONFLICT
    default_message = "The record was modified concurrently"


class DataIntegrityError(EngineError):
    """Persisted data failed structural checks; never retried"""
    kind = ErrorKind.DATA_INTEGRITY
    default_message = "Stored data is malformed"


HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.DATA_INTEGRITY: 500,
}
