"""
Domain errors and their safe HTTP translation.

Services raise the CRMError subclasses below; they never build HTTP
responses themselves. The API layer translates them once (see
``http_exception_for``) through the BusinessError factory, which keeps
internal details out of user-facing messages.
"""
from typing import Optional

from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


# ==============================================================================
# DOMAIN ERRORS
# ==============================================================================

class CRMError(Exception):
    """Base class for every rejected CRM operation."""


class ValidationError(CRMError):
    """Malformed input: empty item list, non-positive quantity, bad enum value."""


class NotFoundError(CRMError):
    """Unknown customer, product, order or record id."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        self.resource = resource
        self.resource_id = resource_id
        if resource_id is not None:
            super().__init__(f"{resource} {resource_id} not found")
        else:
            super().__init__(f"{resource} not found")


class InsufficientStockError(CRMError):
    """A line item asks for more units than the product has in stock."""

    def __init__(self, product_id: str, product_name: str, requested: int, available: int):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_name}: requested {requested}, available {available}"
        )


class PermissionDenied(CRMError):
    """AccessPolicy refused the operation for the caller's role."""

    def __init__(self, role: Optional[str], action: str, resource: str, reason: str = ""):
        self.role = role
        self.action = action
        self.resource = resource
        self.reason = reason
        super().__init__(reason or f"{role} may not {action} {resource}")


class ConcurrencyConflictError(CRMError):
    """Lock timeout or exhausted optimistic retries. Transient; safe to retry."""


# ==============================================================================
# HTTP TRANSLATION
# ==============================================================================

class BusinessError:
    """HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        Generic 404 that doesn't confirm resource existence.

        Same response whether the record is missing or outside the caller's
        data scope, which prevents id enumeration.
        """
        if reason:
            logger.warning(f"Not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Resource not found",
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """Generic 401 for all authentication failures."""
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def forbidden(reason: str = "") -> HTTPException:
        """Generic 403 for role/permission refusals."""
        logger.warning(f"Forbidden access: {reason}")
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation errors.

        OK to include specific details here since the caller caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """
        409 for state conflicts.
        Example: "Insufficient stock for Charging Cable: requested 5, available 4"
        """
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """Generic 500 - logs actual error internally, hides from user."""
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=True
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )


def http_exception_for(exc: CRMError) -> HTTPException:
    """Map a domain error onto the HTTP response the dashboard expects."""
    if isinstance(exc, NotFoundError):
        return BusinessError.not_found(exc.resource, reason=str(exc))
    if isinstance(exc, PermissionDenied):
        return BusinessError.forbidden(str(exc))
    if isinstance(exc, ValidationError):
        return BusinessError.bad_request(str(exc))
    if isinstance(exc, (InsufficientStockError, ConcurrencyConflictError)):
        return BusinessError.conflict(str(exc))
    return BusinessError.server_error(exc)
