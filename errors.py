"""
Domain exceptions raised by the lifecycle and profile operations.

Each carries the HTTP status it maps to; main.py registers a single handler
that logs and renders them as {"detail": message}.
"""

from typing import Any, Dict, Optional

from fastapi import status


class HopeCycleError(Exception):
    """Base exception for domain errors"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(HopeCycleError):
    """Raised when a referenced row does not exist"""

    def __init__(self, entity: str, entity_id: Any = None):
        if entity_id is not None:
            message = f"{entity} {entity_id} not found"
        else:
            message = f"{entity} not found"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class PermissionDeniedError(HopeCycleError):
    """Raised when the actor may not perform the operation"""

    def __init__(self, message: str):
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class ConflictError(HopeCycleError):
    """Raised when the row changed underneath us or the request duplicates existing state"""

    def __init__(self, message: str):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class InvalidTransitionError(ConflictError):
    """Raised when a lifecycle transition is not allowed from the current status"""

    def __init__(self, entity: str, current: str, action: str):
        super().__init__(f"Cannot {action} a {entity} with status {current}")
        self.details = {"current_status": current, "action": action}


class ValidationFailedError(HopeCycleError):
    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)
