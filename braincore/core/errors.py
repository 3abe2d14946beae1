"""Error taxonomy shared by the access engine and its collaborators."""

import logging
from typing import Any, Dict, Optional

from braincore.core.logging import get_correlation_id


class AppError(Exception):
    code = "app_error"

    def __init__(self, message: str, *, code: Optional[str] = None, correlation_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.correlation_id = correlation_id or get_correlation_id()

    def to_payload(self) -> Dict[str, Any]:
        return _error_payload(self.code, self.message, self.correlation_id)


class ValidationError(AppError, ValueError):
    code = "validation_error"


class BusinessRuleError(AppError):
    """A request that is well-formed but not allowed by the current state."""
    code = "business_rule_violation"


class AlreadyRequestedError(BusinessRuleError):
    code = "already_requested"

    def __init__(self, message: str = "Brain access already requested", *, status: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status = status


class InvalidTransitionError(BusinessRuleError):
    code = "invalid_transition"


class EmptySharingSelectionError(BusinessRuleError):
    code = "empty_sharing_selection"


class DestinationNotAvailableError(BusinessRuleError):
    code = "destination_not_available"


class ForcedDestinationError(BusinessRuleError):
    code = "forced_destination"


class ConflictingDestinationsError(BusinessRuleError):
    code = "conflicting_destinations"


class QuotaExceededError(BusinessRuleError):
    code = "quota_exceeded"


class PersistenceError(AppError):
    """Status could not be read or written. Never means 'no state'."""
    code = "persistence_error"


class NotificationError(AppError):
    code = "notification_failed"


def _error_payload(code: str, message: str, correlation_id: Optional[str]) -> dict:
    return {
        "error": {"code": code, "message": message, "correlation_id": correlation_id},
        "detail": message,
    }


def log_app_error(exc: AppError, *, user_id: Optional[str] = None) -> None:
    """Log an AppError at a level matching its class."""
    logger = logging.getLogger("braincore")
    log_level = logging.ERROR if isinstance(exc, PersistenceError) else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={
            "correlation_id": exc.correlation_id,
            "user_id": user_id,
            "error_code": exc.code,
            "error_message": exc.message,
        },
    )
