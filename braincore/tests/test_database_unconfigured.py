"""
Tests for fail-over behavior when no database is configured.
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import ArgumentError

from braincore.core.config import settings
from braincore.core.database import dispose_engine, init_engine
from braincore.core.errors import PersistenceError
from braincore.features.brain_access.service import BrainAccessWorkflow
from braincore.features.entitlements.context import build_entitlement_context_for_user
from braincore.features.quotas.service import check_upload_for_user
from braincore.features.users.persistence import UserStatePersistence
from braincore.models.brain_access import BrainAccessStatus
from braincore.models.plan import Plan

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def no_database(monkeypatch):
    """Drop the engine and clear every database URL source."""
    dispose_engine()
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(settings, "TEST_DATABASE_URL", None)
    monkeypatch.setattr(settings, "DATABASE_URL", None)
    yield
    dispose_engine()


def test_init_engine_without_url_raises_sqlalchemy_error(no_database):
    """Missing configuration is reported as a SQLAlchemy ArgumentError."""
    with pytest.raises(ArgumentError, match="DATABASE_URL is not configured"):
        init_engine()


def test_read_user_plan_fails_over_to_free(no_database):
    """Plan reads fall back to free when the database is not configured."""
    assert UserStatePersistence().read_user_plan("user-1") == Plan.FREE


def test_reads_raise_persistence_error(no_database):
    """Count, state and status reads raise PersistenceError, not ValueError."""
    persistence = UserStatePersistence()
    with pytest.raises(PersistenceError):
        persistence.read_upload_count("user-1", "2026-10")
    with pytest.raises(PersistenceError):
        persistence.read_brain_access_status("user-1")
    with pytest.raises(PersistenceError):
        build_entitlement_context_for_user("user-1", persistence=persistence, now=NOW)


def test_get_status_reports_none_with_read_error(no_database, notifier):
    """Non-strict status reads report none and flag the read error."""
    workflow = BrainAccessWorkflow(persistence=UserStatePersistence(), notifier=notifier)

    status = workflow.get_status("user-1")
    assert status.status == BrainAccessStatus.NONE
    assert status.read_error
    assert workflow.can_access_brain("user-1") is False

    with pytest.raises(PersistenceError):
        workflow.get_status("user-1", strict=True)


def test_upload_check_applies_read_failure_policy(no_database):
    """Upload checks follow the read-failure policy instead of crashing."""
    persistence = UserStatePersistence()

    closed = check_upload_for_user("user-1", persistence=persistence, now=NOW, policy="fail_closed")
    assert closed.plan == "free"
    assert closed.allowed is False
    assert closed.read_error

    opened = check_upload_for_user("user-1", persistence=persistence, now=NOW, policy="fail_open")
    assert opened.allowed is True
    assert opened.remaining == 3
    assert opened.read_error
