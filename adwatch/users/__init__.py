"""User directory: who exists, who is VIP, where to send their alerts."""

from .client import UserServiceClient
from .directory import DEFAULT_ELEVATED_ROLE, UserDirectory
from .exceptions import UserDirectoryError
from .models import UserProfile

__all__ = [
    "DEFAULT_ELEVATED_ROLE",
    "UserDirectory",
    "UserDirectoryError",
    "UserProfile",
    "UserServiceClient",
]
