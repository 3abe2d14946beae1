"""
braincore/models/brain_access.py

Brain provisioning request state and workflow results.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class BrainAccessStatus(str, Enum):
    NONE = "none"
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"


class BrainAccessRequest(BaseModel):
    """
    Snapshot of a user's brain access request.

    read_error is only set by non-strict reads that fell back to NONE
    because persistence failed.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    status: BrainAccessStatus = BrainAccessStatus.NONE
    requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    reviewer_id: Optional[str] = None
    notes: Optional[str] = None
    read_error: Optional[str] = None

    @property
    def has_requested(self) -> bool:
        return self.status != BrainAccessStatus.NONE

    @property
    def is_pending(self) -> bool:
        return self.status == BrainAccessStatus.REQUESTED

    @property
    def is_approved(self) -> bool:
        return self.status == BrainAccessStatus.APPROVED

    @property
    def is_rejected(self) -> bool:
        return self.status == BrainAccessStatus.REJECTED


class RequestResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    request_id: str
    user_id: str
    requested_at: datetime
    estimated_approval_time: str
    notified: bool
    message: str


class ReviewResult(BaseModel):
    """Result of an approve or reject transition."""
    model_config = ConfigDict(frozen=True)

    success: bool
    user_id: str
    status: BrainAccessStatus
    reviewer_id: str
    reviewed_at: datetime
    notes: Optional[str] = None
    reason: Optional[str] = None
    notified: bool
    message: str


class BrainAccessStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_requests: int
    pending_requests: int
    approved_requests: int
    rejected_requests: int
