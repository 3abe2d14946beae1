"""
braincore/features/notifications/service.py

Fire-and-forget side effects of the brain access workflow.

Delivery to approvers and users, plus the provisioning hook run on
approval. Failures are logged and reported back as a boolean; they never
roll back the state transition that triggered them.
"""

from typing import Any, Callable, Dict, Optional, Protocol

from braincore.core.errors import NotificationError
from braincore.core.logging import log_event


class Notifier(Protocol):
    """
    Protocol for workflow notification channels.

    Implementations may raise on delivery failure; the workflow dispatches
    every call through dispatch_safely.
    """

    def notify_approvers(self, request_data: Dict[str, Any]) -> None:
        """Tell approvers a brain access request is waiting for review."""
        ...

    def notify_user(self, user_id: str, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """Tell a user their request was approved or rejected."""
        ...


class LoggingNotifier:
    """Default notifier: emits structured log events instead of sending messages."""

    def notify_approvers(self, request_data: Dict[str, Any]) -> None:
        log_event(
            "info",
            "[notify] brain access request pending review",
            user_id=request_data.get("user_id"),
            event_type="notify.approvers",
            extra={
                "request_id": request_data.get("request_id"),
                "requested_at": request_data.get("requested_at"),
            },
        )

    def notify_user(self, user_id: str, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        log_event(
            "info",
            f"[notify] {event}",
            user_id=user_id,
            event_type=f"notify.user.{event}",
            extra=dict(payload or {}),
        )


def provision_brain(user_id: str) -> None:
    """Default provisioning hook run after approval."""
    log_event(
        "info",
        "[provision] brain storage provisioning requested",
        user_id=user_id,
        event_type="brain.provision",
    )


def dispatch_safely(fn: Callable[..., Any], *args, **kwargs) -> bool:
    """
    Run a notification or hook call, containing any failure.

    Returns:
        True if the call completed, False if it raised
    """
    name = getattr(fn, "__name__", repr(fn))
    try:
        fn(*args, **kwargs)
        return True
    except Exception as exc:
        error = exc if isinstance(exc, NotificationError) else NotificationError(f"{name} failed: {exc}")
        log_event(
            "warning",
            "[notify] delivery failed",
            event_type=f"notify.failed.{name}",
            error_code=error.code,
            extra={"error": exc},
        )
        return False
