"""
braincore/features/quotas/service.py

Upload and query quota tracking.

Handles:
- Pure predicates over externally supplied usage counts
- Quota status snapshots (ok / approaching_limit / at_limit)
- Period keys for counters
- Upload checks against persisted usage with an explicit read-failure policy

Counting and period resets belong to the persistence collaborator; nothing
here mutates state.
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union
import logging

from braincore.core.config import settings
from braincore.core.errors import PersistenceError, QuotaExceededError
from braincore.core.logging import log_event
from braincore.features.plans.catalog import get_plan_info
from braincore.models.plan import Plan, QuotaLimit, UNLIMITED
from braincore.models.quota import QuotaStatus, UploadDecision


logger = logging.getLogger(__name__)

Remaining = Union[int, Literal["unlimited"]]


def _normalize_now(now: Optional[Any]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if getattr(now, "tzinfo", None) is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def get_upload_limit(plan: Union[Plan, str, None]) -> QuotaLimit:
    """Upload limit for plan; 0 for unknown plans."""
    info = get_plan_info(plan)
    return info.upload_limit if info else 0


def get_query_limit(plan: Union[Plan, str, None]) -> QuotaLimit:
    """Query limit for plan; 0 for unknown plans."""
    info = get_plan_info(plan)
    return info.query_limit if info else 0


def _allows(limit: QuotaLimit, used: int) -> bool:
    if limit == UNLIMITED:
        return True
    return max(0, used) < limit


def _remaining(limit: QuotaLimit, used: int) -> Remaining:
    if limit == UNLIMITED:
        return UNLIMITED
    return max(0, limit - max(0, used))


def can_upload(plan: Union[Plan, str, None], current_uploads: int) -> bool:
    """True if another upload fits in the plan's limit (unknown plan: never)."""
    return _allows(get_upload_limit(plan), current_uploads)


def remaining_uploads(plan: Union[Plan, str, None], current_uploads: int) -> Remaining:
    return _remaining(get_upload_limit(plan), current_uploads)


def can_query(plan: Union[Plan, str, None], current_queries: int) -> bool:
    return _allows(get_query_limit(plan), current_queries)


def remaining_queries(plan: Union[Plan, str, None], current_queries: int) -> Remaining:
    return _remaining(get_query_limit(plan), current_queries)


def get_upload_limit_text(plan: Union[Plan, str, None]) -> str:
    info = get_plan_info(plan)
    if not info:
        return "0 uploads"
    if info.upload_limit == UNLIMITED:
        return "Unlimited uploads"
    return f"{info.upload_limit} uploads/{info.upload_period}"


def _quota_status(
    kind: str,
    plan: Union[Plan, str, None],
    limit: QuotaLimit,
    period: Optional[str],
    used: int,
    warning_ratio: Optional[float],
) -> QuotaStatus:
    ratio = warning_ratio if warning_ratio is not None else settings.QUOTA_WARNING_RATIO
    used = max(0, used)
    plan_key = plan.value if isinstance(plan, Plan) else str(plan or "unknown")

    if limit == UNLIMITED:
        status = "unlimited"
    elif limit <= 0:
        status = "disabled"
    elif used >= limit:
        status = "at_limit"
    elif used >= limit * ratio:
        status = "approaching_limit"
    else:
        status = "ok"

    return QuotaStatus(
        kind=kind,
        plan=plan_key,
        limit=limit,
        used=used,
        remaining=_remaining(limit, used),
        period=period,
        status=status,
    )


def get_upload_quota_status(
    plan: Union[Plan, str, None],
    current_uploads: int,
    *,
    warning_ratio: Optional[float] = None,
) -> QuotaStatus:
    info = get_plan_info(plan)
    return _quota_status(
        "uploads",
        plan,
        get_upload_limit(plan),
        info.upload_period if info else None,
        current_uploads,
        warning_ratio,
    )


def get_query_quota_status(
    plan: Union[Plan, str, None],
    current_queries: int,
    *,
    warning_ratio: Optional[float] = None,
) -> QuotaStatus:
    info = get_plan_info(plan)
    return _quota_status(
        "queries",
        plan,
        get_query_limit(plan),
        info.query_period if info else None,
        current_queries,
        warning_ratio,
    )


def current_period(period: Optional[str], now: Optional[Any] = None) -> str:
    """
    Period key for a reset period.

    "month" -> "2026-10", "week" -> "2026-W42". Plans without a reset period
    share a single "all" bucket.
    """
    normalized = _normalize_now(now)
    if period == "month":
        return normalized.strftime("%Y-%m")
    if period == "week":
        year, week, _ = normalized.isocalendar()
        return f"{year}-W{week:02d}"
    return "all"


def upload_period_for(plan: Union[Plan, str, None], now: Optional[Any] = None) -> str:
    info = get_plan_info(plan)
    return current_period(info.upload_period if info else None, now)


def check_upload_for_user(
    user_id: str,
    *,
    persistence,
    now: Optional[Any] = None,
    policy: Optional[str] = None,
) -> UploadDecision:
    """
    Decide whether a user may upload, reading plan and usage fresh.

    On a failed usage read the decision follows the read-failure policy
    (fail_closed: treat quota as exhausted; fail_open: assume zero uploads)
    and carries read_error so callers can tell it apart from real exhaustion.
    """
    read_policy = policy or settings.UPLOAD_COUNT_READ_FAILURE_POLICY
    plan = persistence.read_user_plan(user_id)
    period = upload_period_for(plan, now)

    try:
        current = persistence.read_upload_count(user_id, period)
    except PersistenceError as exc:
        fail_open = read_policy == "fail_open"
        log_event(
            "warning",
            "[quota] upload count unavailable",
            user_id=user_id,
            plan=plan.value,
            event_type="quota.read_failed",
            error_code=exc.code,
            extra={"policy": read_policy, "period": period},
        )
        if fail_open:
            return UploadDecision(
                user_id=user_id,
                plan=plan.value,
                allowed=can_upload(plan, 0),
                current_uploads=None,
                remaining=remaining_uploads(plan, 0),
                period=period,
                read_error=exc.message,
            )
        return UploadDecision(
            user_id=user_id,
            plan=plan.value,
            allowed=get_upload_limit(plan) == UNLIMITED,
            current_uploads=None,
            remaining=UNLIMITED if get_upload_limit(plan) == UNLIMITED else 0,
            period=period,
            read_error=exc.message,
        )

    allowed = can_upload(plan, current)
    if not allowed:
        log_event(
            "info",
            "[quota] upload blocked",
            user_id=user_id,
            plan=plan.value,
            event_type="quota.upload_blocked",
            extra={"current_uploads": current, "limit": get_upload_limit(plan), "period": period},
        )
    return UploadDecision(
        user_id=user_id,
        plan=plan.value,
        allowed=allowed,
        current_uploads=current,
        remaining=remaining_uploads(plan, current),
        period=period,
    )


def enforce_upload(
    user_id: str,
    *,
    persistence,
    now: Optional[Any] = None,
    policy: Optional[str] = None,
) -> UploadDecision:
    """Like check_upload_for_user, but raises QuotaExceededError when blocked."""
    decision = check_upload_for_user(user_id, persistence=persistence, now=now, policy=policy)
    if not decision.allowed:
        raise QuotaExceededError(
            f"Upload quota exhausted for plan {decision.plan}",
            code="quota_exceeded",
        )
    return decision
