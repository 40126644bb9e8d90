"""
Custom exceptions for the Academic Records core.

Every error carries a stable ``code`` that the HTTP layer forwards to
clients verbatim.
"""
from typing import Any, Dict, List, Optional


class AcademicError(Exception):
    """Base class for all errors raised by the core."""
    
    code = "ERROR"
    
    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationError(AcademicError):
    """Raised when input is malformed or out of range."""
    
    code = "VALIDATION_ERROR"
    
    def __init__(self, message: str, field: str = None):
        self.field = field
        super().__init__(message)


class NotFoundError(AcademicError):
    """Raised when an entity id does not exist anywhere."""
    
    def __init__(self, entity: str, entity_id: Any, code: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity.replace('_', ' ').capitalize()} with id {entity_id} not found",
            code or f"{entity.upper()}_NOT_FOUND",
        )


class Forbidden(AcademicError):
    """
    Raised when the resolver denies an operation.
    
    The message only repeats the reason code so that a denial never tells
    the caller anything about the target beyond "not allowed".
    """
    
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Access denied: {reason}", reason)


class ConflictError(AcademicError):
    """Raised on duplicate grades, rules or assignments."""
    
    code = "CONFLICT"


class PreconditionFailedError(AcademicError):
    """Raised when a write's precondition does not hold."""
    
    code = "PRECONDITION_FAILED"


class BatchRejectedError(AcademicError):
    """
    Raised when a grade batch is rejected as a whole.
    
    Attributes:
        offenders: One entry per offending student, each a dict with
            ``student_id`` and ``code``
    """
    
    def __init__(self, offenders: List[Dict[str, Any]]):
        self.offenders = offenders
        codes = {o["code"] for o in offenders}
        code = "BATCH_CONFLICT" if codes & {"GRADE_EXISTS", "DUPLICATE_IN_BATCH"} else "BATCH_PRECONDITION_FAILED"
        super().__init__(
            f"Batch rejected: {len(offenders)} offending student(s), no grade was recorded",
            code,
        )
    
    @property
    def is_conflict(self) -> bool:
        return self.code == "BATCH_CONFLICT"


class InvalidUserError(AcademicError):
    """Raised when the authenticated user does not exist or is inactive."""
    
    code = "INVALID_USER"
    
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User with id {user_id} not found or inactive")


class InternalError(AcademicError):
    """Raised when the storage layer fails unexpectedly."""
    
    code = "INTERNAL_ERROR"
