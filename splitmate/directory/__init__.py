"""User and group directory package."""

from splitmate.directory.groups import GroupDirectory
from splitmate.directory.users import UserDirectory, match_member

__all__ = ["GroupDirectory", "UserDirectory", "match_member"]
