"""
braincore/models/quota.py

Serializable results of quota checks.
"""

from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict

from braincore.models.plan import QuotaLimit


QuotaState = Literal["ok", "approaching_limit", "at_limit", "unlimited", "disabled"]


class QuotaStatus(BaseModel):
    """Usage snapshot for one quota (uploads or queries) of one plan."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["uploads", "queries"]
    plan: str
    limit: QuotaLimit
    used: int
    remaining: Union[int, Literal["unlimited"]]
    period: Optional[str] = None
    status: QuotaState


class UploadDecision(BaseModel):
    """
    Outcome of an upload check against persisted usage.

    read_error is set when the consumed count could not be read; allowed then
    reflects the configured read-failure policy rather than real usage.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    plan: str
    allowed: bool
    current_uploads: Optional[int]
    remaining: Union[int, Literal["unlimited"]]
    period: Optional[str] = None
    read_error: Optional[str] = None
