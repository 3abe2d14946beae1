"""
braincore/models/sharing.py

Content visibility destinations and the per-plan sharing policy.
"""

from enum import Enum
from typing import FrozenSet, Optional
from pydantic import BaseModel, ConfigDict, Field


class SharingDestination(str, Enum):
    COMMUNITY = "community"
    PRIVATE = "private"
    ORGANIZATION = "organization"
    TEAM = "team"


class SharingOptions(BaseModel):
    """
    Which destinations a plan may publish to.

    forced=True means community is the only destination and cannot be
    deselected.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    community: bool
    private: bool
    organization: bool
    team_access: bool = Field(alias="teamAccess")
    forced: bool

    def is_available(self, destination: SharingDestination) -> bool:
        if destination == SharingDestination.COMMUNITY:
            return self.community
        if destination == SharingDestination.PRIVATE:
            return self.private
        if destination == SharingDestination.ORGANIZATION:
            return self.organization
        if destination == SharingDestination.TEAM:
            return self.team_access
        return False

    def available_destinations(self) -> FrozenSet[SharingDestination]:
        return frozenset(d for d in SharingDestination if self.is_available(d))

    @property
    def forced_destination(self) -> Optional[SharingDestination]:
        return SharingDestination.COMMUNITY if self.forced else None
