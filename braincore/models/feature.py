"""
braincore/models/feature.py

Gate-able features and their descriptive metadata.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict

from braincore.models.plan import Plan


class Feature(str, Enum):
    # Chat features
    BASIC_CHAT = "basic_chat"
    NINJA_MODE = "ninja_mode"
    MEME_MODE = "meme_mode"
    LOCATION_MODE = "location_mode"
    UNLIMITED_QUERIES = "unlimited_queries"

    # Brain features
    MANAGE_BRAIN_BASIC = "manage_brain_basic"
    BRAIN_PRIVATE_STORAGE = "brain_private_storage"
    BRAIN_ORGANIZATION_SHARING = "brain_organization_sharing"
    BRAIN_TEAM_ACCESS = "brain_team_access"

    # Upload features
    UPLOAD_PHOTOS = "upload_photos"
    UPLOAD_MANUALS = "upload_manuals"
    UPLOAD_FILES = "upload_files"

    # Admin features
    TEAM_MANAGEMENT = "team_management"
    ADMIN_PANEL = "admin_panel"
    ANALYTICS = "analytics"

    # Enterprise features
    CUSTOM_AI_TRAINING = "custom_ai_training"
    DEDICATED_SUPPORT = "dedicated_support"
    SLA_GUARANTEES = "sla_guarantees"
    CUSTOM_INTEGRATIONS = "custom_integrations"
    ADVANCED_ANALYTICS = "advanced_analytics"


class FeatureInfo(BaseModel):
    """
    Descriptive metadata for a feature.

    required_plan is derived from the plan feature map when the catalog is
    built, never declared by hand.
    """
    model_config = ConfigDict(frozen=True)

    feature: Feature
    name: str
    description: str
    icon: str
    required_plan: Plan
