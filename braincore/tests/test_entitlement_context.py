"""
Tests for the entitlement context handed to presentation code.
"""
import logging
from datetime import datetime, timezone

import pytest

from braincore.features.entitlements.context import (
    build_entitlement_context,
    build_entitlement_context_for_user,
)
from braincore.models.feature import Feature
from braincore.models.plan import Plan, UNLIMITED

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


def test_solo_context():
    """Solo context resolves features, sharing, quotas and tools together."""
    ctx = build_entitlement_context("solo", current_uploads=80, current_queries=10)
    assert ctx.plan == Plan.SOLO
    assert ctx.can("brain_private_storage") is True
    assert ctx.can(Feature.LOCATION_MODE) is False
    assert ctx.sharing_options.private is True
    assert ctx.upload_quota.status == "approaching_limit"
    assert ctx.upload_remaining == 20
    assert ctx.query_quota.remaining == 240
    assert ctx.next_plan == Plan.TEAM
    assert [t.id for t in ctx.locked_tools] == ["location"]


def test_enterprise_context_top_tier():
    """Enterprise has everything and no next plan."""
    ctx = build_entitlement_context(Plan.ENTERPRISE)
    assert ctx.features == frozenset(Feature)
    assert ctx.next_plan is None
    assert ctx.upload_remaining == UNLIMITED
    assert ctx.locked_tools == []


def test_unknown_plan_context_most_restrictive(caplog):
    """Unknown plans get no features, free sharing and zero quota."""
    with caplog.at_level(logging.WARNING):
        ctx = build_entitlement_context("platinum")
    assert ctx.plan is None
    assert ctx.features == frozenset()
    assert ctx.sharing_options.forced is True
    assert ctx.upload_quota.status == "disabled"
    assert ctx.can("basic_chat") is False
    assert ctx.can("bogus") is False
    assert any(getattr(r, "event_type", None) == "entitlement.unknown_plan" for r in caplog.records)


def test_context_is_frozen():
    """Context should be immutable."""
    ctx = build_entitlement_context("free")
    with pytest.raises(Exception):
        ctx.plan = Plan.ENTERPRISE


def test_context_for_user_reads_fresh_state(persistence):
    """Context built for a user reflects stored plan and current usage."""
    persistence.set_user_plan("user-1", "free")
    persistence.record_upload("user-1", "2026-10")
    persistence.record_upload("user-1", "2026-10")

    ctx = build_entitlement_context_for_user("user-1", persistence=persistence, now=NOW)
    assert ctx.plan == Plan.FREE
    assert ctx.upload_quota.used == 2
    assert ctx.upload_remaining == 1

    persistence.set_user_plan("user-1", "team")
    ctx = build_entitlement_context_for_user("user-1", persistence=persistence, now=NOW)
    assert ctx.plan == Plan.TEAM
    assert ctx.can("brain_team_access") is True
