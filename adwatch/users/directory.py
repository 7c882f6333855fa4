"""Abstract user directory consulted for privilege checks and addresses."""

from abc import ABC, abstractmethod
from typing import Optional

from .models import UserProfile

DEFAULT_ELEVATED_ROLE = "ROLE_VIP"


class UserDirectory(ABC):
    """Read-only view of the marketplace's users and roles.

    Implementations answer ``get_user``; the privilege and address helpers
    are derived from it. Nothing here caches: every call reflects the
    directory's current state.
    """

    def __init__(self, elevated_role: str = DEFAULT_ELEVATED_ROLE) -> None:
        """
        Args:
            elevated_role: Role required to own active watchdogs
        """
        self.elevated_role = elevated_role

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserProfile]:
        """Look up a user.

        Returns:
            The profile, or None if the user does not exist

        Raises:
            UserDirectoryError: If the directory cannot be reached
        """

    def has_elevated_privilege(self, user_id: str) -> bool:
        """True when the user exists and currently holds the elevated role."""
        profile = self.get_user(user_id)
        return profile is not None and profile.has_role(self.elevated_role)

    def get_email(self, user_id: str) -> Optional[str]:
        """Delivery address of the user, or None if unknown or unset."""
        profile = self.get_user(user_id)
        if profile is None or not profile.email:
            return None
        return str(profile.email)
