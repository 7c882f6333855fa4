"""In-memory user directory for tests."""

from typing import Dict, Iterable, List, Optional, Set

from adwatch.users import UserDirectory, UserDirectoryError, UserProfile


class InMemoryUserDirectory(UserDirectory):
    """UserDirectory backed by a dict.

    Records every lookup so tests can assert on caching behaviour, and can
    be told to fail for specific users.
    """

    def __init__(self, elevated_role: str = "ROLE_VIP"):
        super().__init__(elevated_role=elevated_role)
        self.users: Dict[str, UserProfile] = {}
        self.lookups: List[str] = []
        self.unavailable_for: Set[str] = set()

    def add_user(
        self, user_id: str, email: Optional[str] = None, roles: Iterable[str] = ("ROLE_USER",)
    ) -> UserProfile:
        profile = UserProfile(user_id=user_id, email=email, roles=list(roles))
        self.users[user_id] = profile
        return profile

    def add_vip(self, user_id: str, email: Optional[str] = None) -> UserProfile:
        return self.add_user(user_id, email=email, roles=["ROLE_USER", self.elevated_role])

    def revoke(self, user_id: str, role: Optional[str] = None) -> None:
        """Drop a role (the elevated one by default) from a user."""
        role = role or self.elevated_role
        profile = self.users[user_id]
        self.users[user_id] = profile.model_copy(update={"roles": profile.roles - {role}})

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        self.lookups.append(user_id)
        if user_id in self.unavailable_for:
            raise UserDirectoryError(f"directory unavailable for {user_id}")
        return self.users.get(user_id)
