"""
Utilities module: Exceptions, validators, schemas, clock.
"""

from shared.utils.clock import Clock, utcnow
from shared.utils.exceptions import (
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    PreconditionFailedError,
)
from shared.utils.validators import (
    validate_notes,
    validate_quantity,
)
from shared.utils.schemas import ErrorResponse

__all__ = [
    # clock
    "Clock",
    "utcnow",
    # exceptions
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConflictError",
    "PreconditionFailedError",
    # validators
    "validate_notes",
    "validate_quantity",
    # schemas
    "ErrorResponse",
]
