"""
Tests for upload and query quota tracking.
"""
from datetime import datetime, timezone

import pytest

from braincore.core.config import settings
from braincore.core.errors import QuotaExceededError
from braincore.features.entitlements.service import get_next_plan
from braincore.features.quotas.service import (
    can_query,
    can_upload,
    check_upload_for_user,
    current_period,
    enforce_upload,
    get_query_quota_status,
    get_upload_limit,
    get_upload_limit_text,
    get_upload_quota_status,
    remaining_queries,
    remaining_uploads,
    upload_period_for,
)
from braincore.features.sharing.service import get_sharing_options
from braincore.models.plan import Plan, UNLIMITED
from braincore.tests.mocks import BrokenReadPersistence

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


def test_solo_quota_boundary():
    """Solo: 99 allowed, 100 and above blocked."""
    assert can_upload("solo", 99) is True
    assert can_upload("solo", 100) is False
    assert can_upload("solo", 150) is False


def test_team_unlimited_uploads():
    """Team plan never runs out of uploads."""
    assert can_upload("team", 1_000_000) is True
    assert remaining_uploads("team", 1_000_000) == UNLIMITED


def test_unknown_plan_has_zero_quota():
    """Unknown plans cannot upload or query."""
    assert get_upload_limit("bogus") == 0
    assert can_upload("bogus", 0) is False
    assert remaining_uploads("bogus", 0) == 0
    assert can_query("bogus", 0) is False


def test_remaining_clamped_at_zero():
    """Remaining never goes negative."""
    assert remaining_uploads("solo", 40) == 60
    assert remaining_uploads("solo", 150) == 0
    assert remaining_uploads("free", -2) == 3


def test_free_user_upload_flow():
    """Free user at 3/3 is blocked, community-forced, and offered solo."""
    assert can_upload("free", 3) is False
    options = get_sharing_options("free")
    assert options.model_dump() == {
        "community": True,
        "private": False,
        "organization": False,
        "team_access": False,
        "forced": True,
    }
    assert get_next_plan("free") == Plan.SOLO


def test_query_quota():
    """Free users get 10 queries; team is unlimited."""
    assert can_query("free", 9) is True
    assert can_query("free", 10) is False
    assert remaining_queries("free", 4) == 6
    assert remaining_queries("team", 10_000) == UNLIMITED


def test_upload_limit_text():
    """Limit text should describe the plan's upload quota."""
    assert get_upload_limit_text("free") == "3 uploads/month"
    assert get_upload_limit_text("enterprise") == "Unlimited uploads"
    assert get_upload_limit_text("bogus") == "0 uploads"


def test_upload_quota_status_levels():
    """Status should move ok -> approaching_limit -> at_limit."""
    assert get_upload_quota_status("solo", 10).status == "ok"
    assert get_upload_quota_status("solo", 80).status == "approaching_limit"
    status = get_upload_quota_status("solo", 100)
    assert status.status == "at_limit"
    assert status.remaining == 0
    assert status.period == "month"
    assert status.kind == "uploads"


def test_quota_status_unlimited_and_disabled():
    """Unlimited plans and unknown plans have their own states."""
    assert get_upload_quota_status("team", 5000).status == "unlimited"
    disabled = get_upload_quota_status("bogus", 0)
    assert disabled.status == "disabled"
    assert disabled.plan == "bogus"


def test_quota_status_warning_ratio_override():
    """An explicit warning ratio should take precedence over settings."""
    assert get_query_quota_status("free", 5, warning_ratio=0.5).status == "approaching_limit"
    assert get_query_quota_status("free", 4, warning_ratio=0.5).status == "ok"


def test_quota_status_uses_configured_ratio(monkeypatch):
    """Default warning ratio comes from settings."""
    monkeypatch.setattr(settings, "QUOTA_WARNING_RATIO", 0.5)
    assert get_upload_quota_status("solo", 50).status == "approaching_limit"


def test_period_keys():
    """Period keys should be month and ISO week based."""
    assert current_period("month", NOW) == "2026-10"
    assert current_period("week", NOW) == "2026-W42"
    assert current_period(None, NOW) == "all"
    assert upload_period_for("free", NOW) == "2026-10"
    assert upload_period_for("team", NOW) == "all"


def test_period_accepts_naive_datetime():
    """Naive datetimes are treated as UTC."""
    assert current_period("month", datetime(2026, 1, 31, 23, 59)) == "2026-01"


def test_check_upload_uses_persisted_usage(persistence):
    """Decision should reflect the stored plan and period count."""
    persistence.set_user_plan("user-1", "free")
    for _ in range(3):
        persistence.record_upload("user-1", "2026-10")

    decision = check_upload_for_user("user-1", persistence=persistence, now=NOW)
    assert decision.allowed is False
    assert decision.current_uploads == 3
    assert decision.remaining == 0
    assert decision.period == "2026-10"
    assert decision.read_error is None


def test_check_upload_new_period_resets(persistence):
    """Counts from a previous period should not count against the current one."""
    persistence.set_user_plan("user-1", "free")
    for _ in range(3):
        persistence.record_upload("user-1", "2026-09")

    decision = check_upload_for_user("user-1", persistence=persistence, now=NOW)
    assert decision.allowed is True
    assert decision.current_uploads == 0


def test_check_upload_unknown_user_is_free(persistence):
    """Users without a record are treated as free with no usage."""
    decision = check_upload_for_user("nobody", persistence=persistence, now=NOW)
    assert decision.plan == "free"
    assert decision.allowed is True
    assert decision.remaining == 3


def test_read_failure_fails_closed_by_default():
    """An unreadable count blocks uploads and is flagged."""
    decision = check_upload_for_user("user-1", persistence=BrokenReadPersistence(), now=NOW)
    assert settings.UPLOAD_COUNT_READ_FAILURE_POLICY == "fail_closed"
    assert decision.allowed is False
    assert decision.current_uploads is None
    assert decision.remaining == 0
    assert decision.read_error


def test_read_failure_fail_open_policy(monkeypatch):
    """fail_open assumes zero usage but still flags the read error."""
    monkeypatch.setattr(settings, "UPLOAD_COUNT_READ_FAILURE_POLICY", "fail_open")
    decision = check_upload_for_user("user-1", persistence=BrokenReadPersistence(), now=NOW)
    assert decision.allowed is True
    assert decision.remaining == 3
    assert decision.read_error


def test_read_failure_unlimited_plan_still_allowed():
    """Unlimited plans do not depend on the count."""
    broken = BrokenReadPersistence()
    broken.set_user_plan("user-1", "team")
    decision = check_upload_for_user("user-1", persistence=broken, now=NOW, policy="fail_closed")
    assert decision.allowed is True
    assert decision.remaining == UNLIMITED


def test_enforce_upload_raises_when_exhausted(persistence):
    """enforce_upload should raise QuotaExceededError at the limit."""
    persistence.set_user_plan("user-1", "free")
    for _ in range(3):
        persistence.record_upload("user-1", "2026-10")

    with pytest.raises(QuotaExceededError) as exc_info:
        enforce_upload("user-1", persistence=persistence, now=NOW)
    assert exc_info.value.code == "quota_exceeded"


def test_enforce_upload_passes_under_limit(persistence):
    """enforce_upload returns the decision when allowed."""
    persistence.set_user_plan("user-1", "solo")
    decision = enforce_upload("user-1", persistence=persistence, now=NOW)
    assert decision.allowed is True
    assert decision.remaining == 100
