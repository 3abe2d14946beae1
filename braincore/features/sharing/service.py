"""
braincore/features/sharing/service.py

Sharing policy resolver.

Handles:
- Per-plan sharing destinations (available / forced)
- Central selection state transitions (mutual exclusivity)
- Submission validation of a destination set
"""

from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional, Union
import logging

from braincore.core.errors import (
    ConflictingDestinationsError,
    DestinationNotAvailableError,
    EmptySharingSelectionError,
    ForcedDestinationError,
)
from braincore.features.plans.catalog import coerce_plan
from braincore.models.plan import Plan
from braincore.models.sharing import SharingDestination, SharingOptions


logger = logging.getLogger(__name__)

DestinationKey = Union[SharingDestination, str]

_FREE_POLICY = SharingOptions(
    community=True,
    private=False,
    organization=False,
    team_access=False,
    forced=True,
)

SHARING_POLICIES: Mapping[Plan, SharingOptions] = MappingProxyType({
    # Everything goes to community, no choice
    Plan.FREE: _FREE_POLICY,
    # Community (default) or private
    Plan.SOLO: SharingOptions(
        community=True,
        private=True,
        organization=False,
        team_access=False,
        forced=False,
    ),
    Plan.TEAM: SharingOptions(
        community=True,
        private=True,
        organization=True,
        team_access=True,
        forced=False,
    ),
    Plan.ENTERPRISE: SharingOptions(
        community=True,
        private=True,
        organization=True,
        team_access=True,
        forced=False,
    ),
})

# Destinations cleared when the key destination is activated.
# Private and team may coexist: private storage shared with selected teams.
EXCLUSIVE_WITH: Mapping[SharingDestination, FrozenSet[SharingDestination]] = MappingProxyType({
    SharingDestination.COMMUNITY: frozenset({
        SharingDestination.PRIVATE,
        SharingDestination.ORGANIZATION,
        SharingDestination.TEAM,
    }),
    SharingDestination.PRIVATE: frozenset({
        SharingDestination.COMMUNITY,
        SharingDestination.ORGANIZATION,
    }),
    SharingDestination.ORGANIZATION: frozenset({
        SharingDestination.COMMUNITY,
        SharingDestination.PRIVATE,
        SharingDestination.TEAM,
    }),
    SharingDestination.TEAM: frozenset({
        SharingDestination.COMMUNITY,
        SharingDestination.ORGANIZATION,
    }),
})


def get_sharing_options(plan: Union[Plan, str, None]) -> SharingOptions:
    """
    Sharing destinations available for a plan.

    Unknown plans get the free (most restrictive) policy.
    """
    resolved = coerce_plan(plan)
    if resolved is None:
        return _FREE_POLICY
    return SHARING_POLICIES[resolved]


def _coerce_destination(value: DestinationKey) -> SharingDestination:
    try:
        return SharingDestination(value)
    except ValueError as exc:
        raise DestinationNotAvailableError(f"Unknown sharing destination: {value!r}") from exc


def _coerce_selection(selection: Optional[Iterable[DestinationKey]]) -> FrozenSet[SharingDestination]:
    return frozenset(_coerce_destination(d) for d in (selection or ()))


def default_selection(options: SharingOptions) -> FrozenSet[SharingDestination]:
    """Initial selection for a new content item (community is pre-checked)."""
    return frozenset({SharingDestination.COMMUNITY}) if options.community else frozenset()


def apply_selection(
    current: Optional[Iterable[DestinationKey]],
    new_destination: DestinationKey,
    options: SharingOptions,
) -> FrozenSet[SharingDestination]:
    """
    Activate a destination, clearing any mutually exclusive ones.

    Args:
        current: Destinations selected before the change
        new_destination: Destination the user activated
        options: Resolved policy for the user's plan

    Returns:
        The new selection

    Raises:
        DestinationNotAvailableError: If the plan does not offer the destination
    """
    destination = _coerce_destination(new_destination)
    if not options.is_available(destination):
        logger.info(
            "[sharing] destination not available",
            extra={"destination": destination.value, "forced": options.forced},
        )
        raise DestinationNotAvailableError(
            f"Sharing destination {destination.value} is not available on this plan"
        )

    if options.forced:
        return frozenset({options.forced_destination})

    selected = _coerce_selection(current)
    dropped = {d for d in selected if not options.is_available(d)}
    if dropped:
        logger.info(
            "[sharing] dropping unavailable destinations from selection",
            extra={"dropped": sorted(d.value for d in dropped)},
        )

    conflicts = EXCLUSIVE_WITH[destination]
    kept = {d for d in selected - dropped if d not in conflicts}
    return frozenset(kept | {destination})


def deselect(
    current: Optional[Iterable[DestinationKey]],
    destination: DestinationKey,
    options: SharingOptions,
) -> FrozenSet[SharingDestination]:
    """
    Deactivate a destination.

    The result may be empty while editing; submission validation rejects
    empty selections.

    Raises:
        ForcedDestinationError: If the destination is forced by the plan
    """
    target = _coerce_destination(destination)
    if options.forced and target == options.forced_destination:
        raise ForcedDestinationError(
            f"Sharing destination {target.value} is required on this plan"
        )
    return _coerce_selection(current) - {target}


def validate_selection(
    selection: Optional[Iterable[DestinationKey]],
    options: SharingOptions,
) -> FrozenSet[SharingDestination]:
    """
    Validate a destination set before submission.

    A forced destination is always part of the result regardless of input.

    Raises:
        DestinationNotAvailableError: A selected destination is not offered
        ConflictingDestinationsError: Two mutually exclusive destinations
        EmptySharingSelectionError: Nothing selected
    """
    selected = set(_coerce_selection(selection))
    if options.forced:
        selected.add(options.forced_destination)

    unavailable = sorted(d.value for d in selected if not options.is_available(d))
    if unavailable:
        raise DestinationNotAvailableError(
            f"Sharing destinations not available on this plan: {', '.join(unavailable)}"
        )

    for destination in sorted(selected, key=lambda d: d.value):
        clash = sorted(d.value for d in selected & EXCLUSIVE_WITH[destination])
        if clash:
            raise ConflictingDestinationsError(
                f"Sharing destination {destination.value} cannot be combined with {', '.join(clash)}"
            )

    if not selected:
        raise EmptySharingSelectionError("Select at least one sharing destination")

    return frozenset(selected)
