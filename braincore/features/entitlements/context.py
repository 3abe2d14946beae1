"""
braincore/features/entitlements/context.py

Builds the entitlement context passed down to presentation collaborators.
"""

from typing import Optional

from braincore.core.logging import log_event
from braincore.features.entitlements.service import (
    PlanKey,
    get_available_tools,
    get_brain_upload_access,
    get_locked_tools,
    get_next_plan,
    get_plan_features,
)
from braincore.features.plans.catalog import coerce_plan, get_plan_info
from braincore.features.quotas.service import get_query_quota_status, get_upload_quota_status
from braincore.features.sharing.service import get_sharing_options
from braincore.models.entitlement import EntitlementContext


def build_entitlement_context(
    plan: PlanKey,
    *,
    current_uploads: int = 0,
    current_queries: int = 0,
    user_id: Optional[str] = None,
) -> EntitlementContext:
    """
    Resolve every plan-dependent decision for one snapshot.

    Unknown plans resolve to an empty feature set with the free sharing
    policy and zero quotas.
    """
    resolved = coerce_plan(plan)
    if resolved is None:
        log_event(
            "warning",
            "[entitlement] unknown plan, using most restrictive context",
            user_id=user_id,
            plan=str(plan),
            event_type="entitlement.unknown_plan",
        )

    return EntitlementContext(
        plan=resolved,
        plan_info=get_plan_info(resolved),
        features=get_plan_features(resolved),
        sharing_options=get_sharing_options(resolved),
        upload_access=get_brain_upload_access(resolved),
        upload_quota=get_upload_quota_status(plan, current_uploads),
        query_quota=get_query_quota_status(plan, current_queries),
        next_plan=get_next_plan(resolved),
        available_tools=get_available_tools(resolved),
        locked_tools=get_locked_tools(resolved),
    )


def build_entitlement_context_for_user(user_id: str, *, persistence, now=None) -> EntitlementContext:
    """Build a context from a fresh persisted snapshot of the user."""
    state = persistence.read_user_state(user_id, now=now)
    return build_entitlement_context(
        state.plan,
        current_uploads=state.uploads_this_period,
        current_queries=state.queries_this_period,
        user_id=user_id,
    )
