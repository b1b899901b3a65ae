"""Error taxonomy for the number pool engine."""

from typing import Any, Dict, Optional


class NumberPoolError(Exception):
    """Base exception for all number pool errors."""

    error = "Number Pool Error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidArgumentError(NumberPoolError, ValueError):
    """Raised for malformed counts, user ids or request data."""

    error = "Bad Request"
    status_code = 400


class NotFoundError(NumberPoolError):
    """Raised when a user or record does not exist."""

    error = "Not Found"
    status_code = 404


class ForbiddenError(NumberPoolError):
    """Raised when the caller identity lacks the admin role."""

    error = "Forbidden"
    status_code = 403


class CapacityError(NumberPoolError):
    """Base class for capacity and quota shortfalls."""

    error = "Bad Request"
    status_code = 400


class InsufficientInventoryError(CapacityError):
    """Raised when the pool holds fewer unassigned numbers than requested."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Not enough phone numbers available. Only {available} available.",
            details={"requested": requested, "available": available},
        )
        self.requested = requested
        self.available = available


class InsufficientAllocationError(CapacityError):
    """Raised when fewer numbers are linked to a user than requested."""

    def __init__(self, requested: int, available: int) -> None:
        if available == 0:
            message = (
                "No phone numbers assigned to your user. "
                "Please ask the administrator to assign more phone numbers."
            )
        else:
            message = (
                f"Only {available} phone numbers assigned to your user. "
                "Please ask the administrator to assign more phone numbers."
            )
        super().__init__(message, details={"requested": requested, "available": available})
        self.requested = requested
        self.available = available


class QuotaExceededError(CapacityError):
    """Raised when a request exceeds the user's remaining quota."""

    def __init__(self, requested: int, remaining: int) -> None:
        super().__init__(
            f"Not enough phone numbers allocated to this user. Only {remaining} remaining.",
            details={"requested": requested, "remaining": remaining},
        )
        self.requested = requested
        self.remaining = remaining


class ConflictError(NumberPoolError):
    """Raised on uniqueness violations that cannot be absorbed."""

    error = "Conflict"
    status_code = 409


class InfrastructureError(NumberPoolError):
    """Raised when the record store is unreachable or times out."""

    error = "Service Unavailable"
    status_code = 503
