"""
braincore/models/plan.py

Plan tiers and their display/quota metadata.

Plans are ordered by rank (free < solo < team < enterprise). Quota limits
are either a positive integer or the "unlimited" sentinel.
"""

from enum import Enum
from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict


UNLIMITED = "unlimited"

QuotaLimit = Union[int, Literal["unlimited"]]


class Plan(str, Enum):
    FREE = "free"
    SOLO = "solo"
    TEAM = "team"
    ENTERPRISE = "enterprise"


class PlanPrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    monthly: int
    yearly: int


class PlanInfo(BaseModel):
    """
    Static catalog entry for a plan.

    Display fields (color, icon, upload_types) are catalog data only; no
    decision reads them.
    """
    model_config = ConfigDict(frozen=True)

    plan: Plan
    rank: int
    name: str
    display_name: str
    color: str
    icon: str
    query_limit: QuotaLimit
    query_period: Optional[str] = None
    upload_limit: QuotaLimit
    upload_period: Optional[str] = None
    upload_types: str
    price: Optional[Union[PlanPrice, Literal["custom"]]] = None
