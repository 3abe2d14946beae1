"""
braincore/models/user_state.py

Per-user persisted record as read by the persistence collaborator.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict

from braincore.models.plan import Plan


class UserState(BaseModel):
    """
    Snapshot of a user's plan and usage counters.

    Snapshots may be stale the moment they are read; callers pass fresh ones
    into every decision.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    plan: Plan = Plan.FREE
    uploads_this_period: int = 0
    queries_this_period: int = 0
    period_start: Optional[str] = None
