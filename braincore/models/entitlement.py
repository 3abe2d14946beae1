"""
braincore/models/entitlement.py

Resolved entitlement records handed to presentation collaborators.

Everything here is plain data: presentation code renders it and never
re-derives access decisions on its own.
"""

from typing import FrozenSet, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict

from braincore.models.feature import Feature, FeatureInfo
from braincore.models.plan import Plan, PlanInfo, QuotaLimit
from braincore.models.quota import QuotaStatus
from braincore.models.sharing import SharingOptions


class ToolInfo(BaseModel):
    """A chat tool mode (ninja, meme, location)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    icon: str
    feature: Feature
    required_plan: Optional[Plan] = None


class UploadAccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    write_tips: bool
    upload_photos: bool
    upload_manuals: bool
    upload_files: bool
    upload_limit: QuotaLimit
    upload_period: str
    limit_text: str
    sharing_options: SharingOptions


class UpgradePrompt(BaseModel):
    """Data for an upgrade call-to-action; copy text lives in the UI."""
    model_config = ConfigDict(frozen=True)

    current_plan: Optional[Plan]
    target_plan: Plan
    target_plan_info: PlanInfo
    feature: Optional[FeatureInfo] = None
    unlocks: List[Feature]


class EntitlementContext(BaseModel):
    """
    Everything a screen needs to decide what to render for one plan.

    Built once per snapshot and passed down; views ask `can()` instead of
    branching on plan names.
    """
    model_config = ConfigDict(frozen=True)

    plan: Optional[Plan]
    plan_info: Optional[PlanInfo]
    features: FrozenSet[Feature]
    sharing_options: SharingOptions
    upload_access: UploadAccess
    upload_quota: QuotaStatus
    query_quota: QuotaStatus
    next_plan: Optional[Plan]
    available_tools: List[ToolInfo]
    locked_tools: List[ToolInfo]

    def can(self, feature: Union[Feature, str]) -> bool:
        try:
            return Feature(feature) in self.features
        except ValueError:
            return False

    @property
    def upload_remaining(self) -> Union[int, Literal["unlimited"]]:
        return self.upload_quota.remaining
