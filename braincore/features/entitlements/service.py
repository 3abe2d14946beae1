"""
braincore/features/entitlements/service.py

Entitlement engine.

Handles:
- Feature access checks per plan (fail closed on unknown input)
- Required plan / next plan / upgrade diff lookups
- Chat tool availability and upload access summaries
- Upgrade prompt data

Every function is total: unknown plans or features resolve to "no access"
or None, never an exception.
"""

from typing import FrozenSet, List, Optional, Union
import logging

from braincore.features.plans.catalog import (
    FEATURE_CATALOG,
    PLAN_FEATURES,
    PLAN_HIERARCHY,
    coerce_feature,
    coerce_plan,
    get_feature_info,
    get_plan_info,
    plans_by_rank,
)
from braincore.features.quotas.service import get_upload_limit, get_upload_limit_text
from braincore.features.sharing.service import get_sharing_options
from braincore.models.entitlement import ToolInfo, UpgradePrompt, UploadAccess
from braincore.models.feature import Feature
from braincore.models.plan import Plan, QuotaLimit


logger = logging.getLogger(__name__)

PlanKey = Union[Plan, str, None]
FeatureKey = Union[Feature, str, None]

# Chat tool modes: id, name, description, icon, gating feature
_TOOLS = (
    ("ninja", "Ninja Mode", "Advanced problem solver", "🥷", Feature.NINJA_MODE),
    ("meme", "Meme Mode", "Interactive humor", "😄", Feature.MEME_MODE),
    ("location", "Location Mode", "Site equipment manager", "📍", Feature.LOCATION_MODE),
)


def get_plan_features(plan: PlanKey) -> FrozenSet[Feature]:
    """Features granted by plan; empty for unknown plans."""
    resolved = coerce_plan(plan)
    if resolved is None:
        return frozenset()
    return PLAN_FEATURES[resolved]


def has_feature_access(plan: PlanKey, feature: FeatureKey) -> bool:
    """
    Check if a plan grants a feature.

    Args:
        plan: Plan key (e.g., "solo")
        feature: Feature key (e.g., "brain_private_storage")

    Returns:
        True iff the feature is in the plan's feature set. False for missing
        or unrecognized plan/feature.
    """
    resolved_plan = coerce_plan(plan)
    resolved_feature = coerce_feature(feature)
    if resolved_plan is None or resolved_feature is None:
        logger.info(
            "[entitlement] DISALLOWED",
            extra={"plan": str(plan), "feature": str(feature), "reason": "unknown plan or feature"},
        )
        return False
    return resolved_feature in PLAN_FEATURES[resolved_plan]


def get_required_plan(feature: FeatureKey) -> Optional[Plan]:
    """Minimum plan granting the feature; None for unknown features."""
    info = get_feature_info(feature)
    return info.required_plan if info else None


def can_upgrade_for_feature(plan: PlanKey, feature: FeatureKey) -> bool:
    """
    True iff the feature's required plan ranks strictly above the current plan.

    Unknown current plans rank as free (most restrictive).
    """
    required = get_required_plan(feature)
    if required is None:
        return False
    resolved = coerce_plan(plan) or Plan.FREE
    return PLAN_HIERARCHY[required] > PLAN_HIERARCHY[resolved]


def get_upgrade_features(current_plan: PlanKey, target_plan: PlanKey) -> FrozenSet[Feature]:
    """Features in target_plan not already in current_plan."""
    return get_plan_features(target_plan) - get_plan_features(current_plan)


def get_next_plan(current_plan: PlanKey) -> Optional[Plan]:
    """
    Plan ranked exactly one above current_plan; None at the top tier.

    Unknown current plans rank as free.
    """
    resolved = coerce_plan(current_plan) or Plan.FREE
    target_rank = PLAN_HIERARCHY[resolved] + 1
    for plan in plans_by_rank():
        if PLAN_HIERARCHY[plan] == target_rank:
            return plan
    return None


def has_unlimited_queries(plan: PlanKey) -> bool:
    return has_feature_access(plan, Feature.UNLIMITED_QUERIES)


def _tool(entry, *, locked: bool) -> ToolInfo:
    tool_id, name, description, icon, feature = entry
    return ToolInfo(
        id=tool_id,
        name=name,
        description=description,
        icon=icon,
        feature=feature,
        required_plan=FEATURE_CATALOG[feature].required_plan if locked else None,
    )


def get_available_tools(plan: PlanKey) -> List[ToolInfo]:
    return [_tool(entry, locked=False) for entry in _TOOLS if has_feature_access(plan, entry[4])]


def get_locked_tools(plan: PlanKey) -> List[ToolInfo]:
    """Tools the plan lacks, each tagged with the plan that unlocks it."""
    return [_tool(entry, locked=True) for entry in _TOOLS if not has_feature_access(plan, entry[4])]


def get_brain_upload_access(plan: PlanKey) -> UploadAccess:
    info = get_plan_info(plan)
    limit: QuotaLimit = get_upload_limit(plan)
    return UploadAccess(
        write_tips=True,  # Available to all plans
        upload_photos=has_feature_access(plan, Feature.UPLOAD_PHOTOS),
        upload_manuals=has_feature_access(plan, Feature.UPLOAD_MANUALS),
        upload_files=has_feature_access(plan, Feature.UPLOAD_FILES),
        upload_limit=limit,
        upload_period=(info.upload_period if info and info.upload_period else "month"),
        limit_text=get_upload_limit_text(plan),
        sharing_options=get_sharing_options(plan),
    )


def build_upgrade_prompt(current_plan: PlanKey, feature: FeatureKey = None) -> Optional[UpgradePrompt]:
    """
    Data for an upgrade prompt.

    With a feature: targets the feature's required plan (None when the user
    already has access or the feature is unknown). Without: targets the next
    plan (None at the top tier).
    """
    resolved_current = coerce_plan(current_plan)
    feature_info = None

    if feature is not None:
        if not can_upgrade_for_feature(current_plan, feature):
            return None
        feature_info = get_feature_info(feature)
        target = feature_info.required_plan
    else:
        target = get_next_plan(current_plan)
        if target is None:
            return None

    unlocks = sorted(get_upgrade_features(resolved_current, target), key=lambda f: f.value)
    return UpgradePrompt(
        current_plan=resolved_current,
        target_plan=target,
        target_plan_info=get_plan_info(target),
        feature=feature_info,
        unlocks=unlocks,
    )
