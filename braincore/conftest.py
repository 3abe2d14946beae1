# braincore/conftest.py
import os
import pytest

# Settings are read at import time; pin the test environment first
os.environ.setdefault("ENV", "test")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def db_url():
    """
    Provide the database URL for tests.

    Defaults to an in-memory SQLite database.
    """
    return os.getenv("TEST_DATABASE_URL") or "sqlite://"


@pytest.fixture(scope="function", autouse=True)
def reset_db(db_url):
    """
    Fresh schema for every test.

    In-memory SQLite lives as long as its engine, so a new engine per test
    gives each test a clean slate.
    """
    from braincore.core.database import create_all_tables, dispose_engine, init_engine

    init_engine(db_url)
    create_all_tables()
    yield
    dispose_engine()


@pytest.fixture(scope="function", autouse=True)
def clear_audit_buffer():
    """Drop audit events buffered in memory by earlier tests."""
    from braincore.features.brain_access.audit import clear_buffered_audit_events

    clear_buffered_audit_events()
    yield
    clear_buffered_audit_events()


@pytest.fixture
def persistence():
    from braincore.features.users.persistence import UserStatePersistence

    return UserStatePersistence()


@pytest.fixture
def notifier():
    from braincore.tests.mocks import RecordingNotifier

    return RecordingNotifier()


@pytest.fixture
def provisioned():
    """List collecting user ids passed to the provisioning hook."""
    return []


@pytest.fixture
def workflow(persistence, notifier, provisioned):
    from braincore.features.brain_access.service import BrainAccessWorkflow

    return BrainAccessWorkflow(
        persistence=persistence,
        notifier=notifier,
        provisioner=provisioned.append,
        allow_rerequest_after_rejection=False,
    )
