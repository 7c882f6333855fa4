"""Database schema definition and ORM models.

This module defines SQLAlchemy ORM models for the watchdog tables and the
conversions between ORM rows and domain models.
"""

import logging

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    inspect,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from adwatch.domain.models import NotificationRecord, WatchCriteria
from adwatch.utils.timestamps import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

Base = declarative_base()


class WatchCriteriaModel(Base):
    """ORM model for the watch_criteria table.

    ``filter_key`` is the hash of the normalized filter tuple. The partial
    unique index on (owner_id, filter_key) over active rows is what
    ultimately prevents an owner from holding two identical active
    watchdogs; inactive rows may repeat.
    """

    __tablename__ = "watch_criteria"

    id = Column(String(32), primary_key=True, nullable=False)
    owner_id = Column(String(64), nullable=False)

    # Filters (all optional)
    keyword = Column(Text, nullable=True)
    category_id = Column(Integer, nullable=True)
    price_min = Column(Float, nullable=True)
    price_max = Column(Float, nullable=True)

    filter_key = Column(String(64), nullable=False)

    # Timestamp (stored as ISO 8601 string)
    created_at = Column(String(50), nullable=False)

    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_watch_criteria_owner", "owner_id"),
        Index("idx_watch_criteria_active_category", "active", "category_id"),
        Index(
            "uq_watch_criteria_owner_filter_active",
            "owner_id",
            "filter_key",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
    )

    def to_domain(self) -> WatchCriteria:
        """Convert ORM model to domain model."""
        return WatchCriteria(
            id=self.id,
            owner_id=self.owner_id,
            keyword=self.keyword,
            category_id=self.category_id,
            price_min=self.price_min,
            price_max=self.price_max,
            created_at=parse_timestamp(self.created_at),
            active=bool(self.active),
        )

    @classmethod
    def from_domain(cls, criteria: WatchCriteria) -> "WatchCriteriaModel":
        """Create ORM model from domain model."""
        return cls(
            id=criteria.id,
            owner_id=criteria.owner_id,
            keyword=criteria.keyword,
            category_id=criteria.category_id,
            price_min=criteria.price_min,
            price_max=criteria.price_max,
            filter_key=criteria.filter_key,
            created_at=format_timestamp(criteria.created_at),
            active=criteria.active,
        )


class NotificationRecordModel(Base):
    """ORM model for the notification_records table (the dedup ledger).

    The composite primary key makes every (criteria, ad) pair unique, so a
    concurrent duplicate insert can never produce a second row. Rows are
    append-only and disappear only with their criterion.
    """

    __tablename__ = "notification_records"

    criteria_id = Column(
        String(32),
        ForeignKey("watch_criteria.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
    )
    ad_id = Column(Integer, primary_key=True, nullable=False)

    # Audit only
    sent_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_notification_records_ad", "ad_id"),)

    def to_domain(self) -> NotificationRecord:
        """Convert ORM model to domain model."""
        return NotificationRecord(
            criteria_id=self.criteria_id,
            ad_id=self.ad_id,
            sent_at=parse_timestamp(self.sent_at),
        )

    @classmethod
    def from_domain(cls, record: NotificationRecord) -> "NotificationRecordModel":
        """Create ORM model from domain model."""
        return cls(
            criteria_id=record.criteria_id,
            ad_id=record.ad_id,
            sent_at=format_timestamp(record.sent_at),
        )


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent).

    Args:
        engine: SQLAlchemy engine instance
    """
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)

        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")

    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
