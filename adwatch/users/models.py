"""User profile as returned by the user directory."""

from typing import Any, FrozenSet, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator


class UserProfile(BaseModel):
    """The slice of a marketplace user the watchdog needs.

    Accepts the user service's payload shapes: ``id``/``userId`` for the
    identifier and roles either as names or as ``{"name": ...}`` objects.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    user_id: str = Field(validation_alias=AliasChoices("user_id", "id", "userId"))
    email: Optional[EmailStr] = None
    roles: FrozenSet[str] = Field(default_factory=frozenset)

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v: Any) -> Any:
        """User ids may arrive as integers."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("roles", mode="before")
    @classmethod
    def normalize_roles(cls, v: Any) -> Any:
        """Flatten role objects to their names."""
        if v is None:
            return frozenset()
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(
                role.get("name") if isinstance(role, dict) else role for role in v
            )
        return v

    def has_role(self, role: str) -> bool:
        return role in self.roles
