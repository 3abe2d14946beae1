"""
braincore/features/plans/catalog.py

Static plan and feature catalogs.

Handles:
- Plan hierarchy (rank) and display/quota metadata
- Plan -> feature map (source of truth for access checks)
- Feature metadata, with required_plan derived from the plan feature map
- Catalog integrity checks

All tables are built once at import and exposed read-only.
"""

from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Union

from braincore.models.feature import Feature, FeatureInfo
from braincore.models.plan import Plan, PlanInfo, PlanPrice, UNLIMITED


PLAN_HIERARCHY: Mapping[Plan, int] = MappingProxyType({
    Plan.FREE: 0,
    Plan.SOLO: 1,
    Plan.TEAM: 2,
    Plan.ENTERPRISE: 3,
})


PLAN_INFO: Mapping[Plan, PlanInfo] = MappingProxyType({
    Plan.FREE: PlanInfo(
        plan=Plan.FREE,
        rank=PLAN_HIERARCHY[Plan.FREE],
        name="Free",
        display_name="Free Plan",
        color="#10B981",
        icon="💚",
        query_limit=10,
        query_period="week",
        upload_limit=3,
        upload_period="month",
        upload_types="Community only",
    ),
    Plan.SOLO: PlanInfo(
        plan=Plan.SOLO,
        rank=PLAN_HIERARCHY[Plan.SOLO],
        name="Solo",
        display_name="Solo",
        color="#3B82F6",
        icon="👤",
        query_limit=250,
        query_period="month",
        upload_limit=100,
        upload_period="month",
        upload_types="Community or Private",
        price=PlanPrice(monthly=10, yearly=108),
    ),
    Plan.TEAM: PlanInfo(
        plan=Plan.TEAM,
        rank=PLAN_HIERARCHY[Plan.TEAM],
        name="Team",
        display_name="Team",
        color="#8B5CF6",
        icon="👥",
        query_limit=UNLIMITED,
        upload_limit=UNLIMITED,
        upload_types="Community, Organization, or Team",
        price=PlanPrice(monthly=25, yearly=270),
    ),
    Plan.ENTERPRISE: PlanInfo(
        plan=Plan.ENTERPRISE,
        rank=PLAN_HIERARCHY[Plan.ENTERPRISE],
        name="Enterprise",
        display_name="Enterprise",
        color="#EF4444",
        icon="🏢",
        query_limit=UNLIMITED,
        upload_limit=UNLIMITED,
        upload_types="All options + Custom",
        price="custom",
    ),
})


_FREE_FEATURES = frozenset({
    Feature.BASIC_CHAT,
    Feature.MANAGE_BRAIN_BASIC,  # community sharing only, 3 uploads/month
    Feature.UPLOAD_PHOTOS,
    Feature.UPLOAD_MANUALS,
    Feature.UPLOAD_FILES,
})

_SOLO_FEATURES = _FREE_FEATURES | {
    Feature.NINJA_MODE,
    Feature.MEME_MODE,
    Feature.BRAIN_PRIVATE_STORAGE,  # community or private
}

_TEAM_FEATURES = _SOLO_FEATURES | {
    Feature.LOCATION_MODE,
    Feature.UNLIMITED_QUERIES,
    Feature.BRAIN_ORGANIZATION_SHARING,
    Feature.BRAIN_TEAM_ACCESS,
    Feature.TEAM_MANAGEMENT,
    Feature.ADMIN_PANEL,
    Feature.ANALYTICS,
}

PLAN_FEATURES: Mapping[Plan, FrozenSet[Feature]] = MappingProxyType({
    Plan.FREE: _FREE_FEATURES,
    Plan.SOLO: frozenset(_SOLO_FEATURES),
    Plan.TEAM: frozenset(_TEAM_FEATURES),
    # Enterprise has all features
    Plan.ENTERPRISE: frozenset(Feature),
})


# name, description, icon
_FEATURE_DESCRIPTIONS: Dict[Feature, tuple] = {
    Feature.BASIC_CHAT: ("Basic Chat", "Ask questions and get answers from the knowledge base", "💬"),
    Feature.NINJA_MODE: ("Ninja Mode", "Advanced problem solver with stealth-like precision", "🥷"),
    Feature.MEME_MODE: ("Meme Mode", "Interactive humor and engaging responses", "😄"),
    Feature.LOCATION_MODE: ("Location Mode", "Site equipment manager with location-based features", "📍"),
    Feature.UNLIMITED_QUERIES: ("Unlimited Queries", "No limits on monthly queries", "∞"),
    Feature.MANAGE_BRAIN_BASIC: ("Manage Brain", "Add tips, photos and files to the knowledge base", "🧠"),
    Feature.BRAIN_PRIVATE_STORAGE: ("Private Brain Storage", "Secure personal knowledge storage space", "🔒"),
    Feature.BRAIN_ORGANIZATION_SHARING: ("Organization Sharing", "Share content across your organization", "🏢"),
    Feature.BRAIN_TEAM_ACCESS: ("Team Access", "Share content with selected teams", "👥"),
    Feature.UPLOAD_PHOTOS: (
        "Photo Upload",
        "Upload and analyze images (Free: 3/month, Solo: 100/month, Team+: unlimited)",
        "📸",
    ),
    Feature.UPLOAD_MANUALS: (
        "Manual Upload",
        "Upload documentation and guides (Free: 3/month, Solo: 100/month, Team+: unlimited)",
        "📚",
    ),
    Feature.UPLOAD_FILES: (
        "File Upload",
        "Upload any type of document (Free: 3/month, Solo: 100/month, Team+: unlimited)",
        "📄",
    ),
    Feature.TEAM_MANAGEMENT: ("Team Management", "Manage team members and permissions", "👥"),
    Feature.ADMIN_PANEL: ("Admin Panel", "Admin controls for your organization", "🛠️"),
    Feature.ANALYTICS: ("Analytics", "Usage and engagement insights", "📊"),
    Feature.CUSTOM_AI_TRAINING: ("Custom AI Training", "Train the assistant on your own material", "🧪"),
    Feature.DEDICATED_SUPPORT: ("Dedicated Support", "A named support contact for your organization", "🎧"),
    Feature.SLA_GUARANTEES: ("SLA Guarantees", "Contractual uptime and response times", "📜"),
    Feature.CUSTOM_INTEGRATIONS: ("Custom Integrations", "Connect the brain to your internal systems", "🔌"),
    Feature.ADVANCED_ANALYTICS: ("Advanced Analytics", "Organization-wide reporting and exports", "📈"),
}


def plans_by_rank() -> List[Plan]:
    """Plans ordered from lowest to highest tier."""
    return sorted(PLAN_HIERARCHY, key=PLAN_HIERARCHY.__getitem__)


def derive_required_plan(feature: Feature) -> Optional[Plan]:
    """Lowest-ranked plan whose feature set contains the feature."""
    for plan in plans_by_rank():
        if feature in PLAN_FEATURES[plan]:
            return plan
    return None


def _build_feature_catalog() -> Mapping[Feature, FeatureInfo]:
    catalog = {}
    for feature, (name, description, icon) in _FEATURE_DESCRIPTIONS.items():
        required = derive_required_plan(feature)
        if required is None:
            # Not granted by any plan; unreachable features are not catalogued
            continue
        catalog[feature] = FeatureInfo(
            feature=feature,
            name=name,
            description=description,
            icon=icon,
            required_plan=required,
        )
    return MappingProxyType(catalog)


FEATURE_CATALOG: Mapping[Feature, FeatureInfo] = _build_feature_catalog()


def coerce_plan(value: Union[Plan, str, None]) -> Optional[Plan]:
    """Resolve a plan key; None for missing or unrecognized keys."""
    if value is None:
        return None
    try:
        return Plan(value)
    except ValueError:
        return None


def coerce_feature(value: Union[Feature, str, None]) -> Optional[Feature]:
    """Resolve a feature key; None for missing or unrecognized keys."""
    if value is None:
        return None
    try:
        return Feature(value)
    except ValueError:
        return None


def plan_rank(plan: Union[Plan, str, None]) -> Optional[int]:
    resolved = coerce_plan(plan)
    return PLAN_HIERARCHY[resolved] if resolved is not None else None


def get_plan_info(plan: Union[Plan, str, None]) -> Optional[PlanInfo]:
    resolved = coerce_plan(plan)
    return PLAN_INFO[resolved] if resolved is not None else None


def get_feature_info(feature: Union[Feature, str, None]) -> Optional[FeatureInfo]:
    resolved = coerce_feature(feature)
    return FEATURE_CATALOG.get(resolved) if resolved is not None else None


def validate_catalog() -> List[str]:
    """
    Check catalog integrity.

    Returns:
        List of problems; empty when the catalogs are consistent.
    """
    problems: List[str] = []

    ranks = sorted(PLAN_HIERARCHY.values())
    if ranks != list(range(len(Plan))):
        problems.append(f"plan ranks are not a contiguous total order: {ranks}")

    for plan in Plan:
        if plan not in PLAN_HIERARCHY:
            problems.append(f"plan {plan.value} has no rank")
        if plan not in PLAN_FEATURES:
            problems.append(f"plan {plan.value} has no feature set")
        info = PLAN_INFO.get(plan)
        if info is None:
            problems.append(f"plan {plan.value} has no display info")
        elif info.rank != PLAN_HIERARCHY.get(plan):
            problems.append(f"plan {plan.value} info rank {info.rank} disagrees with hierarchy")

    ordered = plans_by_rank()
    for lower, higher in zip(ordered, ordered[1:]):
        missing = PLAN_FEATURES[lower] - PLAN_FEATURES[higher]
        if missing:
            names = ", ".join(sorted(f.value for f in missing))
            problems.append(f"plan {higher.value} lacks features of {lower.value}: {names}")

    union = frozenset().union(*PLAN_FEATURES.values())
    if PLAN_FEATURES.get(Plan.ENTERPRISE) != union:
        problems.append("enterprise feature set is not the union of all plan features")

    for feature in Feature:
        info = FEATURE_CATALOG.get(feature)
        if info is None:
            problems.append(f"feature {feature.value} has no catalog entry")
            continue
        if feature not in PLAN_FEATURES[info.required_plan]:
            problems.append(
                f"feature {feature.value} requires {info.required_plan.value} but that plan does not grant it"
            )

    return problems
