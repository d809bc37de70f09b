"""Infrastructure models package exports."""
from .base import Base, metadata
from .group import GroupModel, GroupMessageModel
from .user_profile import UserProfileModel, UserGroupRefModel

__all__ = [
    "Base",
    "metadata",
    "GroupModel",
    "GroupMessageModel",
    "UserProfileModel",
    "UserGroupRefModel",
]
