"""Data access layer (repositories) for persistence operations.

CriteriaRepository is the criteria store; NotificationLedger is the dedup
ledger. Both operate inside the caller's session and return domain models
rather than ORM models. Neither commits: the session scope does.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, insert, or_, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from adwatch.domain.models import NotificationRecord, WatchCriteria
from adwatch.utils.timestamps import format_timestamp, utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import NotificationRecordModel, WatchCriteriaModel

logger = logging.getLogger(__name__)


class CriteriaRepository:
    """Repository for watch criteria."""

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def get(self, criteria_id: str) -> Optional[WatchCriteria]:
        """Retrieve a criterion by id, active or not.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(WatchCriteriaModel, criteria_id)
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving criteria {criteria_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve criteria: {e}") from e

    def find_active_by_owner(self, owner_id: str) -> List[WatchCriteria]:
        """All active criteria of one owner, oldest first.

        Raises:
            PersistenceError: If database error occurs
        """
        return self.find_by_owner(owner_id, include_inactive=False)

    def find_by_owner(self, owner_id: str, include_inactive: bool = False) -> List[WatchCriteria]:
        """Criteria of one owner, oldest first.

        Args:
            owner_id: Owning user
            include_inactive: Also return criteria deactivated after a privilege loss

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = select(WatchCriteriaModel).where(WatchCriteriaModel.owner_id == owner_id)
            if not include_inactive:
                stmt = stmt.where(WatchCriteriaModel.active.is_(True))
            stmt = stmt.order_by(WatchCriteriaModel.created_at.asc(), WatchCriteriaModel.id.asc())

            models = self.session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving criteria for owner {owner_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve criteria: {e}") from e

    def find_active_by_category_or_unfiltered(
        self, category_id: Optional[int]
    ) -> List[WatchCriteria]:
        """Active criteria that could match an ad in ``category_id``.

        Returns criteria without a category filter plus those filtering on
        exactly this category. For an ad without a category only unfiltered
        criteria are returned. This is a coarse pre-filter; the matcher
        re-checks every filter.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            category_clause = WatchCriteriaModel.category_id.is_(None)
            if category_id is not None:
                category_clause = or_(
                    category_clause, WatchCriteriaModel.category_id == category_id
                )

            stmt = (
                select(WatchCriteriaModel)
                .where(WatchCriteriaModel.active.is_(True), category_clause)
                .order_by(WatchCriteriaModel.owner_id.asc(), WatchCriteriaModel.created_at.asc())
            )
            models = self.session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]

        except SQLAlchemyError as e:
            logger.error(
                f"Error retrieving candidate criteria for category {category_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to retrieve candidate criteria: {e}") from e

    def save(self, criteria: WatchCriteria) -> WatchCriteria:
        """Insert a new criterion.

        The insert is flushed immediately so that a violation of the active
        filter uniqueness index surfaces here rather than at commit.

        Raises:
            DataIntegrityError: If the id exists or an identical active criterion exists
            PersistenceError: If database error occurs
        """
        try:
            model = WatchCriteriaModel.from_domain(criteria)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.warning(
                f"Integrity error saving criteria {criteria.id} for owner {criteria.owner_id}: {e}"
            )
            raise DataIntegrityError(
                f"Failed to save criteria due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving criteria {criteria.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save criteria: {e}") from e

    def deactivate(self, criteria_id: str) -> None:
        """Mark a criterion inactive. Deactivating twice is harmless.

        Raises:
            RecordNotFoundError: If criteria_id doesn't exist
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                update(WatchCriteriaModel)
                .where(WatchCriteriaModel.id == criteria_id)
                .values(active=False)
                .execution_options(synchronize_session="fetch")
            )
            result = self.session.execute(stmt)
            self.session.flush()

            if result.rowcount == 0:
                raise RecordNotFoundError(f"Criteria {criteria_id} not found")

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error deactivating criteria {criteria_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to deactivate criteria: {e}") from e

    def delete(self, criteria_id: str) -> bool:
        """Physically delete a criterion and its notification records.

        Returns:
            True if a criterion was deleted, False if it did not exist

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            self.session.execute(
                delete(NotificationRecordModel).where(
                    NotificationRecordModel.criteria_id == criteria_id
                )
            )
            result = self.session.execute(
                delete(WatchCriteriaModel).where(WatchCriteriaModel.id == criteria_id)
            )
            self.session.flush()
            return result.rowcount > 0

        except SQLAlchemyError as e:
            logger.error(f"Error deleting criteria {criteria_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete criteria: {e}") from e

    def delete_by_owner(self, owner_id: str) -> int:
        """Delete every criterion of an owner (account deletion).

        Returns:
            Count of deleted criteria

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            owned_ids = select(WatchCriteriaModel.id).where(WatchCriteriaModel.owner_id == owner_id)
            self.session.execute(
                delete(NotificationRecordModel).where(
                    NotificationRecordModel.criteria_id.in_(owned_ids)
                )
            )
            result = self.session.execute(
                delete(WatchCriteriaModel).where(WatchCriteriaModel.owner_id == owner_id)
            )
            self.session.flush()

            deleted_count = result.rowcount
            logger.info(f"Deleted {deleted_count} criteria for owner {owner_id}")
            return deleted_count

        except SQLAlchemyError as e:
            logger.error(f"Error deleting criteria for owner {owner_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete owner criteria: {e}") from e


class NotificationLedger:
    """Repository for delivered (criteria, ad) pairs."""

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def exists(self, criteria_id: str, ad_id: int) -> bool:
        """Check whether this pairing was already delivered.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = select(NotificationRecordModel.criteria_id).where(
                NotificationRecordModel.criteria_id == criteria_id,
                NotificationRecordModel.ad_id == ad_id,
            )
            return self.session.execute(stmt).first() is not None

        except SQLAlchemyError as e:
            logger.error(
                f"Error checking ledger for criteria {criteria_id}, ad {ad_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to check notification ledger: {e}") from e

    def record(self, criteria_id: str, ad_id: int, sent_at: Optional[datetime] = None) -> bool:
        """Record a delivered pairing (idempotent).

        Uses INSERT ... ON CONFLICT DO NOTHING, so a second writer for the
        same pair, sequential or concurrent, sees "already exists" without an
        error and without a second row.

        Args:
            criteria_id: Criteria the alert was sent for
            ad_id: Ad the alert referenced
            sent_at: Delivery time (defaults to now, UTC)

        Returns:
            True if a new record was written, False if it already existed

        Raises:
            DataIntegrityError: If the criterion does not exist
            PersistenceError: If database error occurs
        """
        values = {
            "criteria_id": criteria_id,
            "ad_id": ad_id,
            "sent_at": format_timestamp(sent_at or utc_now()),
        }

        try:
            dialect = self.session.get_bind().dialect.name
            if dialect == "sqlite":
                stmt = sqlite_insert(NotificationRecordModel).values(**values)
            elif dialect == "postgresql":
                stmt = postgresql_insert(NotificationRecordModel).values(**values)
            else:
                return self._record_without_upsert(values)

            stmt = stmt.on_conflict_do_nothing(index_elements=["criteria_id", "ad_id"])
            result = self.session.execute(stmt)
            self.session.flush()

            inserted = result.rowcount > 0
            if not inserted:
                logger.debug(
                    f"Notification already recorded for criteria {criteria_id}, ad {ad_id}"
                )
            return inserted

        except IntegrityError as e:
            logger.error(
                f"Integrity error recording criteria {criteria_id}, ad {ad_id}: {e}",
                exc_info=True,
            )
            raise DataIntegrityError(f"Failed to record notification: {e}") from e
        except SQLAlchemyError as e:
            logger.error(
                f"Error recording criteria {criteria_id}, ad {ad_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to record notification: {e}") from e

    def _record_without_upsert(self, values: dict) -> bool:
        key = {"criteria_id": values["criteria_id"], "ad_id": values["ad_id"]}
        if self.session.get(NotificationRecordModel, key) is not None:
            return False

        self.session.execute(insert(NotificationRecordModel).values(**values))
        self.session.flush()
        return True

    def get(self, criteria_id: str, ad_id: int) -> Optional[NotificationRecord]:
        """Retrieve the record of a pairing, if any.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(
                NotificationRecordModel, {"criteria_id": criteria_id, "ad_id": ad_id}
            )
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(
                f"Error retrieving record for criteria {criteria_id}, ad {ad_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to retrieve notification record: {e}") from e

    def records_for_ad(self, ad_id: int) -> List[NotificationRecord]:
        """All records referencing an ad, newest first.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(NotificationRecordModel)
                .where(NotificationRecordModel.ad_id == ad_id)
                .order_by(NotificationRecordModel.sent_at.desc())
            )
            models = self.session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving records for ad {ad_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve notification records: {e}") from e
