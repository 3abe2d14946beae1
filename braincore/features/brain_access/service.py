"""
braincore/features/brain_access/service.py

Brain access request workflow.

States: none -> requested -> {approved, rejected}. Every transition is a
compare-and-swap on the persisted status, so concurrent callers record at
most one transition from any given state. Notifications and provisioning
run after the write and never undo it.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from uuid import uuid4
import logging

from braincore.core.config import settings
from braincore.core.errors import (
    AlreadyRequestedError,
    InvalidTransitionError,
    PersistenceError,
    ValidationError,
)
from braincore.core.logging import log_event
from braincore.features.brain_access.audit import record_transition
from braincore.features.notifications.service import (
    LoggingNotifier,
    Notifier,
    dispatch_safely,
    provision_brain,
)
from braincore.features.users.persistence import UserStatePersistence
from braincore.models.brain_access import (
    BrainAccessRequest,
    BrainAccessStats,
    BrainAccessStatus,
    RequestResult,
    ReviewResult,
)


logger = logging.getLogger(__name__)

# Fields cleared when a rejected user requests again
_CLEARED_ON_REREQUEST = ("approved_at", "rejected_at", "rejection_reason", "reviewer_id", "notes")


def _utcnow(now: Optional[datetime] = None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _request_id(requested_at: datetime) -> str:
    return f"req_{int(requested_at.timestamp() * 1000)}_{uuid4().hex[:9]}"


class BrainAccessWorkflow:
    """
    Tracks whether a user has requested, been granted or been refused brain
    storage provisioning.

    Args:
        persistence: Status store (defaults to UserStatePersistence)
        notifier: Approver/user notification channel (defaults to LoggingNotifier)
        provisioner: Callable run with the user id after approval
        allow_rerequest_after_rejection: Permit rejected -> requested
            (defaults to settings.ALLOW_REREQUEST_AFTER_REJECTION)
        approval_estimate: Informational turnaround returned to requesters
    """

    def __init__(
        self,
        persistence: Optional[UserStatePersistence] = None,
        notifier: Optional[Notifier] = None,
        *,
        provisioner: Optional[Callable[[str], Any]] = None,
        allow_rerequest_after_rejection: Optional[bool] = None,
        approval_estimate: Optional[str] = None,
    ):
        self.persistence = persistence or UserStatePersistence()
        self.notifier = notifier or LoggingNotifier()
        self.provisioner = provisioner or provision_brain
        self.allow_rerequest_after_rejection = (
            settings.ALLOW_REREQUEST_AFTER_REJECTION
            if allow_rerequest_after_rejection is None
            else allow_rerequest_after_rejection
        )
        self.approval_estimate = approval_estimate or settings.BRAIN_APPROVAL_ESTIMATE

    def get_status(self, user_id: str, *, strict: bool = False) -> BrainAccessRequest:
        """
        Current brain access state.

        Non-strict reads fall back to NONE on I/O failure and flag the record
        with read_error. Strict reads raise PersistenceError instead.
        """
        try:
            return self.persistence.read_brain_access_status(user_id)
        except PersistenceError as exc:
            if strict:
                raise
            log_event(
                "warning",
                "[brain_access] status unavailable, reporting none",
                user_id=user_id,
                event_type="brain_access.read_failed",
                error_code=exc.code,
            )
            return BrainAccessRequest(user_id=user_id, read_error=exc.message)

    def _requestable_from(self):
        if self.allow_rerequest_after_rejection:
            return (BrainAccessStatus.NONE, BrainAccessStatus.REJECTED)
        return (BrainAccessStatus.NONE,)

    def request_access(
        self,
        user_id: str,
        user_info: Optional[Dict[str, Any]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> RequestResult:
        """
        Move a user from none to requested and notify approvers.

        Raises:
            AlreadyRequestedError: If the user is not in a requestable state,
                or another request won the race
            PersistenceError: If the current status cannot be read or written
        """
        current = self.get_status(user_id, strict=True)
        if current.status not in self._requestable_from():
            raise AlreadyRequestedError(status=current.status.value)

        requested_at = _utcnow(now)
        metadata: Dict[str, Any] = {"requested_at": requested_at}
        if current.status == BrainAccessStatus.REJECTED:
            metadata.update({field: None for field in _CLEARED_ON_REREQUEST})

        swapped = self.persistence.write_brain_access_status(
            user_id,
            BrainAccessStatus.REQUESTED,
            metadata,
            expected_status=current.status,
        )
        if not swapped:
            latest = self.get_status(user_id)
            raise AlreadyRequestedError(status=latest.status.value)

        request_id = _request_id(requested_at)
        record_transition(
            action="request",
            user_id=user_id,
            from_status=current.status,
            to_status=BrainAccessStatus.REQUESTED,
            actor_id=user_id,
            metadata={"request_id": request_id},
            ts=requested_at,
        )

        info = dict(user_info or {})
        notified = dispatch_safely(
            self.notifier.notify_approvers,
            {
                "request_id": request_id,
                "user_id": user_id,
                "email": info.get("email"),
                "name": info.get("name"),
                "requested_at": requested_at.isoformat(),
            },
        )

        log_event(
            "info",
            "[brain_access] access requested",
            user_id=user_id,
            event_type="brain_access.requested",
            extra={"request_id": request_id, "notified": notified},
        )

        return RequestResult(
            success=True,
            request_id=request_id,
            user_id=user_id,
            requested_at=requested_at,
            estimated_approval_time=self.approval_estimate,
            notified=notified,
            message="Brain access request submitted",
        )

    def _review(
        self,
        user_id: str,
        reviewer_id: str,
        target: BrainAccessStatus,
        metadata: Dict[str, Any],
    ) -> None:
        if not reviewer_id:
            raise ValidationError("Reviewer id is required")

        current = self.get_status(user_id, strict=True)
        if current.status != BrainAccessStatus.REQUESTED:
            raise InvalidTransitionError(
                f"Cannot move brain access from {current.status.value} to {target.value}"
            )

        swapped = self.persistence.write_brain_access_status(
            user_id,
            target,
            metadata,
            expected_status=BrainAccessStatus.REQUESTED,
        )
        if not swapped:
            raise InvalidTransitionError(
                f"Brain access for user {user_id} changed before it could be {target.value}"
            )

    def approve(
        self,
        user_id: str,
        approver_id: str,
        notes: str = "",
        *,
        now: Optional[datetime] = None,
    ) -> ReviewResult:
        """Approve a pending request, then provision and notify the user."""
        approved_at = _utcnow(now)
        self._review(
            user_id,
            approver_id,
            BrainAccessStatus.APPROVED,
            {"approved_at": approved_at, "reviewer_id": approver_id, "notes": notes or None},
        )
        record_transition(
            action="approve",
            user_id=user_id,
            from_status=BrainAccessStatus.REQUESTED,
            to_status=BrainAccessStatus.APPROVED,
            actor_id=approver_id,
            metadata={"notes": notes} if notes else None,
            ts=approved_at,
        )

        provisioned = dispatch_safely(self.provisioner, user_id)
        notified = dispatch_safely(
            self.notifier.notify_user,
            user_id,
            "brain_access_approved",
            {"approved_at": approved_at.isoformat(), "notes": notes},
        )

        log_event(
            "info",
            "[brain_access] access approved",
            user_id=user_id,
            event_type="brain_access.approved",
            extra={"reviewer_id": approver_id, "provisioned": provisioned, "notified": notified},
        )

        return ReviewResult(
            success=True,
            user_id=user_id,
            status=BrainAccessStatus.APPROVED,
            reviewer_id=approver_id,
            reviewed_at=approved_at,
            notes=notes or None,
            notified=notified,
            message="Brain access approved",
        )

    def reject(
        self,
        user_id: str,
        approver_id: str,
        reason: str,
        *,
        now: Optional[datetime] = None,
    ) -> ReviewResult:
        """
        Reject a pending request with a mandatory reason.

        Raises:
            ValidationError: If reason is empty
            InvalidTransitionError: If the request is not pending
        """
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")

        rejected_at = _utcnow(now)
        self._review(
            user_id,
            approver_id,
            BrainAccessStatus.REJECTED,
            {"rejected_at": rejected_at, "reviewer_id": approver_id, "rejection_reason": reason},
        )
        record_transition(
            action="reject",
            user_id=user_id,
            from_status=BrainAccessStatus.REQUESTED,
            to_status=BrainAccessStatus.REJECTED,
            actor_id=approver_id,
            metadata={"reason": reason},
            ts=rejected_at,
        )

        notified = dispatch_safely(
            self.notifier.notify_user,
            user_id,
            "brain_access_rejected",
            {"rejected_at": rejected_at.isoformat(), "reason": reason},
        )

        log_event(
            "info",
            "[brain_access] access rejected",
            user_id=user_id,
            event_type="brain_access.rejected",
            extra={"reviewer_id": approver_id, "notified": notified},
        )

        return ReviewResult(
            success=True,
            user_id=user_id,
            status=BrainAccessStatus.REJECTED,
            reviewer_id=approver_id,
            reviewed_at=rejected_at,
            reason=reason,
            notified=notified,
            message="Brain access rejected",
        )

    def can_access_brain(self, user_id: str) -> bool:
        # Unreadable status reports NONE, so this fails closed
        return self.get_status(user_id).is_approved

    def get_waiting_time(self, user_id: str, now: Optional[datetime] = None) -> Optional[str]:
        """How long a pending request has waited ("2h 5m ago"); None if not pending."""
        status = self.get_status(user_id)
        if not status.is_pending or status.requested_at is None:
            return None

        elapsed = _utcnow(now) - _utcnow(status.requested_at)
        minutes = max(0, int(elapsed.total_seconds() // 60))
        hours, minutes = divmod(minutes, 60)
        if hours > 0:
            return f"{hours}h {minutes}m ago"
        return f"{minutes}m ago"

    def reset(self, user_id: str, *, actor_id: Optional[str] = None) -> None:
        """Administrative reset back to none."""
        previous = self.get_status(user_id)
        self.persistence.reset_brain_access(user_id)
        record_transition(
            action="reset",
            user_id=user_id,
            from_status=None if previous.read_error else previous.status,
            to_status=BrainAccessStatus.NONE,
            actor_id=actor_id,
        )
        logger.info("[brain_access] reset", extra={"user_id": user_id, "actor_id": actor_id})

    def get_stats(self) -> BrainAccessStats:
        counts = self.persistence.count_brain_access_by_status()
        pending = counts.get(BrainAccessStatus.REQUESTED, 0)
        approved = counts.get(BrainAccessStatus.APPROVED, 0)
        rejected = counts.get(BrainAccessStatus.REJECTED, 0)
        return BrainAccessStats(
            total_requests=pending + approved + rejected,
            pending_requests=pending,
            approved_requests=approved,
            rejected_requests=rejected,
        )
