"""
Custom domain exceptions for consistent error handling.

These exceptions are mapped to HTTP status codes by the global exception handler
in main.py. View models raise the same classes, so a failed write surfaces as a
blocking error whether it came over HTTP or from an in-process call.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class NotFoundError(DomainError):
    """Resource not found (404)."""
    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class ValidationError(DomainError):
    """Validation error (400)."""
    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        if field:
            message = f"Validation error on {field}: {message}"
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class PermissionDeniedError(DomainError):
    """Permission denied (403)."""
    def __init__(self, message: str = "Permission denied", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN, details=details)


class UnauthorizedError(DomainError):
    """Unauthorized access (401)."""
    def __init__(self, message: str = "Unauthorized", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED, details=details)


class ConflictError(DomainError):
    """Resource conflict (409)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, details=details)


class PaymentRequiredError(DomainError):
    """Payment was not confirmed, so the order was not created (402)."""
    def __init__(self, message: str = "Payment confirmation failed; order not created", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_402_PAYMENT_REQUIRED, details=details)


class InvalidTransitionError(ConflictError):
    """Requested status change is not in the transition table (409)."""
    def __init__(self, current: str, target: str, reason: str | None = None):
        message = f"Cannot move order from '{current}' to '{target}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"current": current, "target": target})


class StoreNotLinkedError(ConflictError):
    """Store owner account has no store row (409). Needs manual support."""
    def __init__(self, owner_id: str):
        super().__init__(
            "Your account is registered as a partner, but no store is linked. Please contact support.",
            details={"owner_id": owner_id},
        )


class RecordParseError(DomainError):
    """A stored row did not match the expected record shape (502)."""
    def __init__(self, table: str, identifier: str | None, problems: list[str]):
        message = f"Malformed {table} row {identifier or '<unknown>'}: {'; '.join(problems)}"
        super().__init__(
            message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"table": table, "id": identifier, "problems": problems},
        )
        self.table = table
        self.problems = problems


class BackendUnavailableError(DomainError):
    """Authoritative store could not be reached or rejected the write (503)."""
    def __init__(self, message: str = "Backend unavailable", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)
