"""
Error types for the billing core and their HTTP translation.

Services raise the domain exceptions below. Routers turn them into
HTTPException through BusinessError so that internal details stay in the
logs and clients get a stable, non-leaky message.
"""
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class BillingError(Exception):
    """Base class for domain errors raised by the service layer."""


class NotFoundError(BillingError):
    def __init__(self, resource: str, key=None):
        self.resource = resource
        self.key = key
        super().__init__(f"{resource} not found" + (f": {key}" if key is not None else ""))


class ValidationError(BillingError):
    """Client input is malformed or violates a business rule."""


class PermissionDenied(BillingError):
    pass


class ConflictError(BillingError):
    """A unique business key (SKU, email) is already taken."""


class InvoiceNumberConflict(BillingError):
    """Invoice number generation kept colliding until the retry bound ran out."""

    def __init__(self, attempts: int, last_error: Exception = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Invoice number collision persisted after {attempts} attempts")


class BusinessError:
    """Factories for HTTP errors with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        404 for a missing invoice/product/user.

        Example:
            if not invoice:
                raise BusinessError.not_found("Invoice")
        """
        if reason:
            logger.warning(f"Not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """
        Generic 401 for all authentication failures.

        Same response for wrong password and non-existent user.
        """
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def forbidden(reason: str = "") -> HTTPException:
        logger.warning(f"Forbidden access: {reason}")
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation / business logic errors.

        OK to include specific details here since the caller caused the issue.
        Examples: "Insufficient stock", "Invalid GSTIN"
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """
        409 for resource conflicts.
        Example: "SKU already exists"
        """
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides it from the caller.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=original_error
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )

    @staticmethod
    def from_domain(error: BillingError) -> HTTPException:
        """Map a service-layer exception onto its HTTP equivalent."""
        if isinstance(error, NotFoundError):
            return BusinessError.not_found(error.resource, reason=str(error))
        if isinstance(error, ValidationError):
            return BusinessError.bad_request(str(error))
        if isinstance(error, PermissionDenied):
            return BusinessError.forbidden(str(error))
        if isinstance(error, ConflictError):
            return BusinessError.conflict(str(error))
        return BusinessError.server_error(error)
