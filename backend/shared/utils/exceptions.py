"""
Centralized HTTP exceptions for consistent error handling.

Every exception carries an error ``code`` (NOT_FOUND, BAD_REQUEST, CONFLICT,
FORBIDDEN, TOO_MANY_REQUESTS, PRECONDITION_FAILED) rendered next to the
message, and logs itself with structured context when raised.

Usage:
    from shared.utils.exceptions import NotFoundError, ForbiddenError, ValidationError

    raise NotFoundError("Order", order_id)
    raise ForbiddenError("cancel items")
    raise ValidationError("At least one item required")
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.constants import ErrorMessages
from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, code=self.code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found, or owned by another tenant (404).

    Usage:
        raise NotFoundError("Order", 123)
        raise NotFoundError("Table", tenant_id=tenant_id, qr_code=code)
        raise NotFoundError("Order item", detail="Some order items were not found")
    """

    code = "NOT_FOUND"

    def __init__(
        self,
        entity: str,
        entity_id: int | str | None = None,
        detail: str | None = None,
        **log_context: Any,
    ):
        if detail is None:
            if entity_id is not None:
                detail = f"{entity} {entity_id} not found"
            else:
                detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class PrepSectorNotFoundError(NotFoundError):
    """Prep sector code unknown for the tenant."""

    def __init__(self, sector_code: str, **log_context: Any):
        super().__init__("Prep sector", f'"{sector_code}"', **log_context)


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("process payments")
        raise ForbiddenError("view orders", user_id=user_id)
    """

    code = "FORBIDDEN"

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not allowed to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class SectorAccessError(ForbiddenError):
    """Role cannot operate on the given prep sector."""

    def __init__(self, role: str, sector_code: str, **log_context: Any):
        super().__init__(
            f"access the {sector_code} console",
            role=role,
            sector_code=sector_code,
            **log_context,
        )


class InsufficientRoleError(ForbiddenError):
    """User doesn't have the required role."""

    def __init__(self, required_roles: list[str], **log_context: Any):
        roles_str = ", ".join(required_roles)
        super().__init__(
            f"perform this action (requires role: {roles_str})",
            required_roles=required_roles,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400). Recoverable by correcting the request.

    Usage:
        raise ValidationError("At least one item required")
        raise ValidationError("Invalid quantity", field="quantity", value=-1)
    """

    code = "BAD_REQUEST"

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidTransitionError(ValidationError):
    """Status transition not allowed from the current state."""

    def __init__(
        self,
        entity: str,
        from_status: str,
        to_status: str,
        valid_targets: list[str] | None = None,
        **log_context: Any,
    ):
        detail = f"Invalid transition from {from_status} to {to_status} for {entity}"
        if valid_targets is not None:
            allowed = ", ".join(valid_targets) if valid_targets else "none"
            detail = f"{detail}. Valid targets: {allowed}"
        super().__init__(
            detail,
            entity=entity,
            from_status=from_status,
            to_status=to_status,
            **log_context,
        )


class DishUnavailableError(ValidationError):
    """One or more requested dishes are missing, unavailable or out of stock."""

    def __init__(self, dish_ids: list[int], **log_context: Any):
        self.dish_ids = dish_ids
        ids = ", ".join(str(dish_id) for dish_id in dish_ids)
        super().__init__(
            ErrorMessages.DISHES_UNAVAILABLE.format(ids=ids),
            dish_ids=dish_ids,
            **log_context,
        )


class InvalidBulkTransitionError(ValidationError):
    """Some items of a bulk transition are not in the required predecessor status."""

    def __init__(self, to_status: str, required_status: str, item_ids: list[int], **log_context: Any):
        self.item_ids = item_ids
        ids = ", ".join(str(item_id) for item_id in item_ids)
        super().__init__(
            f"Items must be {required_status} to move to {to_status}; offending items: {ids}",
            to_status=to_status,
            required_status=required_status,
            item_ids=item_ids,
            **log_context,
        )


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409). Safe to retry with a fresh read.

    Usage:
        raise ConflictError("Payment already exists for this order")
    """

    code = "CONFLICT"

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# 412 Precondition Failed Errors
# =============================================================================


class PreconditionFailedError(AppException):
    """
    Valid request blocked by the current state of a referenced entity (412).

    Usage:
        raise PreconditionFailedError("Table is not occupied", table_id=4)
    """

    code = "PRECONDITION_FAILED"

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_412_PRECONDITION_FAILED,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# 429 Rate Limiting Errors
# =============================================================================


class RateLimitError(AppException):
    """Rate limit exceeded (429)."""

    code = "TOO_MANY_REQUESTS"

    def __init__(self, retry_after: int, detail: str | None = None, **log_context: Any):
        if detail is None:
            detail = f"Too many requests. Try again in {retry_after} seconds."

        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            log_level="warning",
            headers={"Retry-After": str(retry_after)},
            retry_after=retry_after,
            **log_context,
        )
