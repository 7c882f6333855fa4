"""Errors reported to callers of the watchdog coordinator."""

from typing import List, Optional

from pydantic import ValidationError


class WatchdogError(Exception):
    """Base exception for watchdog registration and management errors.

    Attributes:
        message: User-facing message
        errors: Individual problems (field errors for validation failures)
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = list(errors or [])
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if not self.errors:
            return self.message

        lines = [self.message]
        lines.extend(f"  {i}. {error}" for i, error in enumerate(self.errors, 1))
        return "\n".join(lines)


class NotAuthorizedError(WatchdogError):
    """The owner is unknown or does not hold the elevated role."""

    UNKNOWN_USER_MESSAGE = "User is not authenticated."
    NOT_PRIVILEGED_MESSAGE = "User is not VIP and cannot have WATCHDOG."

    def __init__(self, owner_id: str, known_user: bool = True):
        self.owner_id = owner_id
        self.known_user = known_user
        super().__init__(
            self.NOT_PRIVILEGED_MESSAGE if known_user else self.UNKNOWN_USER_MESSAGE
        )


class DuplicateCriteriaError(WatchdogError):
    """The owner already has an active watchdog with the same filters."""

    def __init__(self, owner_id: str, existing_id: Optional[str] = None):
        self.owner_id = owner_id
        self.existing_id = existing_id
        super().__init__("An identical watchdog is already active for this user.")


class CriteriaValidationError(WatchdogError):
    """The proposed filters are malformed."""

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "CriteriaValidationError":
        """Convert pydantic errors into ``field: message`` lines."""
        errors = []
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            message = error["msg"].removeprefix("Value error, ")
            errors.append(f"{field_path}: {message}" if field_path else message)
        return cls("Invalid watchdog criteria.", errors=errors)


class CriteriaNotFoundError(WatchdogError):
    """No criterion with this id belongs to the requesting owner."""

    def __init__(self, criteria_id: str):
        self.criteria_id = criteria_id
        super().__init__(f"Watchdog {criteria_id} not found.")
