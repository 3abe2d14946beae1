"""
Tests for the static plan and feature catalogs.
"""
import pytest

from braincore.features.plans.catalog import (
    FEATURE_CATALOG,
    PLAN_FEATURES,
    PLAN_HIERARCHY,
    PLAN_INFO,
    coerce_feature,
    coerce_plan,
    derive_required_plan,
    get_feature_info,
    get_plan_info,
    plan_rank,
    plans_by_rank,
    validate_catalog,
)
from braincore.models.feature import Feature
from braincore.models.plan import Plan, PlanPrice, UNLIMITED


def test_catalog_is_consistent():
    """Integrity check should report no problems for the shipped catalogs."""
    assert validate_catalog() == []


def test_plans_ordered_by_rank():
    """Plans should sort free < solo < team < enterprise."""
    assert plans_by_rank() == [Plan.FREE, Plan.SOLO, Plan.TEAM, Plan.ENTERPRISE]
    assert [PLAN_HIERARCHY[p] for p in plans_by_rank()] == [0, 1, 2, 3]


def test_plan_info_quota_data():
    """Plan info should carry the documented limits and periods."""
    free = PLAN_INFO[Plan.FREE]
    assert free.query_limit == 10
    assert free.query_period == "week"
    assert free.upload_limit == 3
    assert free.upload_period == "month"
    assert free.price is None

    solo = PLAN_INFO[Plan.SOLO]
    assert solo.upload_limit == 100
    assert solo.query_limit == 250
    assert solo.price == PlanPrice(monthly=10, yearly=108)

    assert PLAN_INFO[Plan.TEAM].upload_limit == UNLIMITED
    assert PLAN_INFO[Plan.ENTERPRISE].query_limit == UNLIMITED
    assert PLAN_INFO[Plan.ENTERPRISE].price == "custom"


def test_enterprise_has_every_feature():
    """Enterprise should be the union of all features."""
    assert PLAN_FEATURES[Plan.ENTERPRISE] == frozenset(Feature)


def test_required_plan_is_lowest_granting_plan():
    """required_plan should be derived from the plan feature map."""
    assert FEATURE_CATALOG[Feature.BASIC_CHAT].required_plan == Plan.FREE
    assert FEATURE_CATALOG[Feature.BRAIN_PRIVATE_STORAGE].required_plan == Plan.SOLO
    assert FEATURE_CATALOG[Feature.LOCATION_MODE].required_plan == Plan.TEAM
    assert FEATURE_CATALOG[Feature.SLA_GUARANTEES].required_plan == Plan.ENTERPRISE


@pytest.mark.parametrize("feature", list(Feature))
def test_required_plan_grants_feature(feature):
    """Every feature's required plan should actually include it."""
    info = FEATURE_CATALOG[feature]
    assert feature in PLAN_FEATURES[info.required_plan]
    assert derive_required_plan(feature) == info.required_plan


def test_catalog_tables_are_read_only():
    """Catalog mappings should reject mutation."""
    with pytest.raises(TypeError):
        PLAN_HIERARCHY[Plan.FREE] = 5
    with pytest.raises(TypeError):
        PLAN_FEATURES[Plan.FREE] = frozenset()


def test_plan_info_frozen():
    """PlanInfo should be immutable (frozen=True)."""
    info = PLAN_INFO[Plan.FREE]
    with pytest.raises(Exception):
        info.upload_limit = 1000


def test_coerce_unknown_keys():
    """Unknown or missing keys should resolve to None."""
    assert coerce_plan("solo") == Plan.SOLO
    assert coerce_plan("bogus-plan") is None
    assert coerce_plan(None) is None
    assert coerce_feature("ninja_mode") == Feature.NINJA_MODE
    assert coerce_feature("bogus-feature") is None


def test_lookups_for_unknown_keys():
    """Lookups should return None rather than raise."""
    assert get_plan_info("bogus") is None
    assert get_feature_info("bogus") is None
    assert plan_rank("bogus") is None
    assert plan_rank("team") == 2
    assert get_feature_info("meme_mode").name == "Meme Mode"
