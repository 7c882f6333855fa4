"""Core domain models for watch criteria, ads, and sent notifications.

This module defines the data structures used throughout the application:
- CriteriaProposal: filters a user asks to be alerted about (not yet stored)
- WatchCriteria: a stored, owned criterion with its lifecycle flag
- AdSnapshot: read-only view of a listing supplied by the ad service
- AdEvent: a listing was created or updated
- NotificationRecord: ledger entry for an already delivered (criteria, ad) pair
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from adwatch.utils.hashing import compute_filter_key
from adwatch.utils.timestamps import ensure_utc, utc_now

KEYWORD_MAX_LENGTH = 100


class CriteriaProposal(BaseModel):
    """Filters submitted when a user sets up a watchdog.

    Every filter is optional. Blank keywords are treated as "no keyword".
    Price bounds are inclusive and must not be negative or inverted.
    """

    keyword: Optional[str] = Field(
        None, max_length=KEYWORD_MAX_LENGTH, description="Case-insensitive substring filter"
    )
    category_id: Optional[int] = Field(None, ge=1, description="Category the ad must belong to")
    price_min: Optional[float] = Field(None, ge=0, description="Inclusive lower price bound")
    price_max: Optional[float] = Field(None, ge=0, description="Inclusive upper price bound")

    @field_validator("keyword")
    @classmethod
    def strip_keyword(cls, v: Optional[str]) -> Optional[str]:
        """Trim and collapse whitespace; blank keywords become None."""
        if v is None:
            return None
        collapsed = " ".join(v.split())
        return collapsed or None

    @model_validator(mode="after")
    def validate_price_range(self):
        """Reject inverted price ranges."""
        if (
            self.price_min is not None
            and self.price_max is not None
            and self.price_min > self.price_max
        ):
            raise ValueError(
                f"price_min ({self.price_min:g}) cannot be greater than price_max ({self.price_max:g})"
            )
        return self

    @property
    def is_unfiltered(self) -> bool:
        """True when no filter is set, i.e. the criterion would match every ad."""
        return (
            self.keyword is None
            and self.category_id is None
            and self.price_min is None
            and self.price_max is None
        )

    @property
    def filter_key(self) -> str:
        """Uniqueness key of the filter tuple."""
        return compute_filter_key(self.keyword, self.category_id, self.price_min, self.price_max)


class WatchCriteria(BaseModel):
    """A stored watchdog owned by a privileged user.

    Instances are immutable; the store flips ``active`` and returns a fresh
    copy. Being frozen also makes criteria hashable, so match results can be
    returned as sets.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex, description="Unique criteria identifier")
    owner_id: str = Field(..., min_length=1, description="User who owns the criterion")
    keyword: Optional[str] = Field(None, description="Case-insensitive substring filter")
    category_id: Optional[int] = Field(None, description="Category filter")
    price_min: Optional[float] = Field(None, description="Inclusive lower price bound")
    price_max: Optional[float] = Field(None, description="Inclusive upper price bound")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time (UTC)")
    active: bool = Field(True, description="False once the owner lost elevated privilege")

    @field_validator("created_at")
    @classmethod
    def ensure_created_utc(cls, v: datetime) -> datetime:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)

    @classmethod
    def from_proposal(cls, owner_id: str, proposal: CriteriaProposal) -> "WatchCriteria":
        """Build a new active criterion from a validated proposal."""
        return cls(
            owner_id=owner_id,
            keyword=proposal.keyword,
            category_id=proposal.category_id,
            price_min=proposal.price_min,
            price_max=proposal.price_max,
        )

    @property
    def filter_key(self) -> str:
        """Uniqueness key of the filter tuple."""
        return compute_filter_key(self.keyword, self.category_id, self.price_min, self.price_max)

    def describe(self) -> str:
        """Short human-readable summary of the filters.

        Example:
            >>> WatchCriteria(owner_id="u1", keyword="bike", price_max=200).describe()
            "'bike', price up to 200"
        """
        parts = []
        if self.keyword:
            parts.append(f"'{self.keyword}'")
        if self.category_id is not None:
            parts.append(f"category {self.category_id}")
        if self.price_min is not None and self.price_max is not None:
            parts.append(f"price {self.price_min:g}-{self.price_max:g}")
        elif self.price_min is not None:
            parts.append(f"price from {self.price_min:g}")
        elif self.price_max is not None:
            parts.append(f"price up to {self.price_max:g}")
        return ", ".join(parts) if parts else "any listing"


class AdSnapshot(BaseModel):
    """Read-only view of a listing at the time of an ad event."""

    id: int = Field(..., description="Ad identifier")
    title: str = Field(..., description="Ad title")
    description: str = Field("", description="Ad description")
    price: Optional[float] = Field(None, description="Asking price; None when not given")
    category_id: Optional[int] = Field(None, description="Category of the ad")
    owner_id: str = Field(..., description="Seller")
    created_at: Optional[datetime] = Field(None, description="When the ad was created (UTC)")
    updated_at: Optional[datetime] = Field(None, description="When the ad was last updated (UTC)")

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_timestamps_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)

    @property
    def searchable_text(self) -> str:
        """Title and description joined, as tested by keyword filters."""
        return f"{self.title} {self.description or ''}"

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": 42,
                "title": "Mountain Bike",
                "description": "Full suspension, 29 inch wheels",
                "price": 150,
                "category_id": 3,
                "owner_id": "seller-7",
            }
        },
    )


class AdEventKind(str, Enum):
    """Ad lifecycle transitions that trigger evaluation."""

    CREATED = "created"
    UPDATED = "updated"


class AdEvent(BaseModel):
    """A listing was created or updated."""

    kind: AdEventKind = Field(..., description="Lifecycle transition")
    ad: AdSnapshot = Field(..., description="Ad state after the transition")
    event_id: str = Field(default_factory=lambda: uuid4().hex, description="Event identifier")
    occurred_at: datetime = Field(default_factory=utc_now, description="When the event was emitted")

    @field_validator("occurred_at")
    @classmethod
    def ensure_occurred_utc(cls, v: datetime) -> datetime:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)


class NotificationRecord(BaseModel):
    """Ledger entry: this (criteria, ad) pairing has been delivered.

    ``sent_at`` is kept for auditing only and never drives re-evaluation.
    """

    criteria_id: str = Field(..., description="Criteria the alert was sent for")
    ad_id: int = Field(..., description="Ad the alert referenced")
    sent_at: datetime = Field(..., description="When the alert was sent (UTC)")

    @field_validator("sent_at")
    @classmethod
    def ensure_sent_utc(cls, v: datetime) -> datetime:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)
