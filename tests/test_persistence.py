"""Unit tests for the persistence layer."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from adwatch.domain.models import WatchCriteria
from adwatch.persistence import (
    CriteriaRepository,
    DatabaseConnectionError,
    DataIntegrityError,
    NotificationLedger,
    PersistenceError,
    RecordNotFoundError,
    close_database,
    get_engine,
    get_session,
    init_database,
)
from adwatch.persistence.database import _redact_url
from adwatch.persistence.schema import NotificationRecordModel, WatchCriteriaModel


def make_criteria(owner_id="U", minutes=0, **fields) -> WatchCriteria:
    created = datetime(2025, 11, 1, 9, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes)
    return WatchCriteria(owner_id=owner_id, created_at=created, **fields)


def save(*criteria):
    with get_session() as session:
        repo = CriteriaRepository(session)
        return [repo.save(c) for c in criteria]


class TestDatabaseInitialization:
    """Tests for database initialization."""

    def test_init_database_creates_file_and_parents(self, tmp_path):
        db_file = tmp_path / "nested" / "dir" / "adwatch.db"

        init_database(f"sqlite:///{db_file}")
        try:
            assert db_file.exists()
            with get_session() as session:
                assert session is not None
        finally:
            close_database()

    def test_schema_creation_is_idempotent(self, tmp_path):
        db_url = f"sqlite:///{tmp_path / 'adwatch.db'}"

        init_database(db_url)
        init_database(db_url)
        try:
            with get_session() as session:
                rows = session.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))
                tables = {row[0] for row in rows}
            assert {"watch_criteria", "notification_records"} <= tables
        finally:
            close_database()

    @pytest.mark.parametrize("url", ["", None])
    def test_invalid_url_raises(self, url):
        with pytest.raises(DatabaseConnectionError):
            init_database(url)

    def test_get_session_before_init_raises(self):
        close_database()
        with pytest.raises(DatabaseConnectionError):
            with get_session():
                pass

    def test_get_engine_before_init_raises(self):
        close_database()
        with pytest.raises(DatabaseConnectionError):
            get_engine()

    def test_foreign_keys_enabled(self, database):
        with get_session() as session:
            assert session.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_database_connection_error_is_persistence_error(self):
        assert issubclass(DatabaseConnectionError, PersistenceError)


class TestSessionManagement:
    """Tests for get_session commit/rollback."""

    def test_commits_on_success(self, database):
        criteria = make_criteria(keyword="bike")
        save(criteria)

        with get_session() as session:
            assert session.get(WatchCriteriaModel, criteria.id) is not None

    def test_rolls_back_on_exception(self, database):
        criteria = make_criteria(keyword="bike")

        with pytest.raises(RuntimeError):
            with get_session() as session:
                CriteriaRepository(session).save(criteria)
                raise RuntimeError("boom")

        with get_session() as session:
            assert session.get(WatchCriteriaModel, criteria.id) is None

    def test_commit_failure_raises_persistence_error(self, database, monkeypatch):
        criteria = make_criteria(keyword="bike")

        def failing_commit(self):
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        with monkeypatch.context() as patched:
            patched.setattr(Session, "commit", failing_commit)
            with pytest.raises(PersistenceError, match="Failed to commit transaction") as exc_info:
                with get_session() as session:
                    CriteriaRepository(session).save(criteria)

        assert isinstance(exc_info.value.__cause__, OperationalError)
        with get_session() as session:
            assert session.get(WatchCriteriaModel, criteria.id) is None

    def test_commit_constraint_failure_raises_integrity_error(self, database, monkeypatch):
        def failing_commit(self):
            raise IntegrityError("COMMIT", {}, Exception("FOREIGN KEY constraint failed"))

        monkeypatch.setattr(Session, "commit", failing_commit)

        with pytest.raises(DataIntegrityError):
            with get_session():
                pass


def test_redact_url_hides_password():
    assert _redact_url("postgresql://adwatch:secret@db:5432/adwatch") == "postgresql://adwatch:***@db:5432/adwatch"
    assert _redact_url("sqlite:///./data/adwatch.db") == "sqlite:///./data/adwatch.db"


class TestCriteriaRepository:
    """Tests for CriteriaRepository."""

    def test_save_and_get_round_trip(self, database):
        criteria = make_criteria(keyword="bike", category_id=3, price_min=10.5, price_max=200)
        save(criteria)

        with get_session() as session:
            loaded = CriteriaRepository(session).get(criteria.id)

        assert loaded == criteria

    def test_get_missing_returns_none(self, database):
        with get_session() as session:
            assert CriteriaRepository(session).get("missing") is None

    def test_find_active_by_owner_oldest_first(self, database):
        later = make_criteria(keyword="sofa", minutes=5)
        earlier = make_criteria(keyword="bike", minutes=1)
        other_owner = make_criteria(owner_id="W", keyword="bike")
        save(later, earlier, other_owner)

        with get_session() as session:
            found = CriteriaRepository(session).find_active_by_owner("U")

        assert [c.id for c in found] == [earlier.id, later.id]

    def test_find_by_owner_include_inactive(self, database):
        active = make_criteria(keyword="bike")
        inactive = make_criteria(keyword="sofa", minutes=1)
        save(active, inactive)

        with get_session() as session:
            CriteriaRepository(session).deactivate(inactive.id)

        with get_session() as session:
            repo = CriteriaRepository(session)
            assert [c.id for c in repo.find_by_owner("U")] == [active.id]
            everything = repo.find_by_owner("U", include_inactive=True)

        assert [c.id for c in everything] == [active.id, inactive.id]
        assert everything[1].active is False

    def test_find_active_by_category_or_unfiltered(self, database):
        unfiltered = make_criteria(keyword="bike")
        same_category = make_criteria(keyword="bike", category_id=3, minutes=1)
        other_category = make_criteria(keyword="bike", category_id=4, minutes=2)
        inactive = make_criteria(owner_id="W", category_id=3)
        save(unfiltered, same_category, other_category, inactive)

        with get_session() as session:
            CriteriaRepository(session).deactivate(inactive.id)

        with get_session() as session:
            found = CriteriaRepository(session).find_active_by_category_or_unfiltered(3)

        assert {c.id for c in found} == {unfiltered.id, same_category.id}

    def test_find_candidates_for_uncategorized_ad(self, database):
        unfiltered = make_criteria(keyword="bike")
        categorized = make_criteria(category_id=3, minutes=1)
        save(unfiltered, categorized)

        with get_session() as session:
            found = CriteriaRepository(session).find_active_by_category_or_unfiltered(None)

        assert [c.id for c in found] == [unfiltered.id]

    def test_save_rejects_identical_active_filters(self, database):
        save(make_criteria(keyword="Bike", category_id=5))

        with pytest.raises(DataIntegrityError):
            save(make_criteria(keyword="bike", category_id=5, minutes=1))

    def test_identical_filters_allowed_for_other_owner(self, database):
        save(make_criteria(keyword="bike"), make_criteria(owner_id="W", keyword="bike"))

        with get_session() as session:
            assert len(CriteriaRepository(session).find_active_by_owner("W")) == 1

    def test_identical_filters_allowed_once_previous_is_inactive(self, database):
        first = make_criteria(keyword="bike")
        save(first)
        with get_session() as session:
            CriteriaRepository(session).deactivate(first.id)

        second = make_criteria(keyword="bike", minutes=1)
        save(second)

        with get_session() as session:
            found = CriteriaRepository(session).find_by_owner("U", include_inactive=True)
        assert {c.id for c in found} == {first.id, second.id}

    def test_deactivate_is_repeatable(self, database):
        criteria = make_criteria(keyword="bike")
        save(criteria)

        with get_session() as session:
            repo = CriteriaRepository(session)
            repo.deactivate(criteria.id)
            repo.deactivate(criteria.id)

        with get_session() as session:
            assert CriteriaRepository(session).get(criteria.id).active is False

    def test_deactivate_missing_raises(self, database):
        with pytest.raises(RecordNotFoundError):
            with get_session() as session:
                CriteriaRepository(session).deactivate("missing")

    def test_delete_removes_criteria_and_its_records(self, database):
        criteria = make_criteria(keyword="bike")
        save(criteria)
        with get_session() as session:
            NotificationLedger(session).record(criteria.id, 42)

        with get_session() as session:
            assert CriteriaRepository(session).delete(criteria.id) is True

        with get_session() as session:
            assert CriteriaRepository(session).get(criteria.id) is None
            assert NotificationLedger(session).exists(criteria.id, 42) is False

    def test_delete_missing_returns_false(self, database):
        with get_session() as session:
            assert CriteriaRepository(session).delete("missing") is False

    def test_delete_by_owner(self, database):
        mine = [make_criteria(keyword="bike"), make_criteria(keyword="sofa", minutes=1)]
        theirs = make_criteria(owner_id="W", keyword="bike")
        save(*mine, theirs)
        with get_session() as session:
            ledger = NotificationLedger(session)
            ledger.record(mine[0].id, 42)
            ledger.record(theirs.id, 42)

        with get_session() as session:
            assert CriteriaRepository(session).delete_by_owner("U") == 2

        with get_session() as session:
            assert CriteriaRepository(session).find_by_owner("U", include_inactive=True) == []
            ledger = NotificationLedger(session)
            assert ledger.exists(mine[0].id, 42) is False
            assert ledger.exists(theirs.id, 42) is True


class TestNotificationLedger:
    """Tests for NotificationLedger."""

    @pytest.fixture
    def criteria(self, database):
        criteria = make_criteria(keyword="bike")
        save(criteria)
        return criteria

    def test_exists_false_before_record(self, criteria):
        with get_session() as session:
            assert NotificationLedger(session).exists(criteria.id, 42) is False

    def test_record_then_exists(self, criteria):
        with get_session() as session:
            assert NotificationLedger(session).record(criteria.id, 42) is True

        with get_session() as session:
            ledger = NotificationLedger(session)
            assert ledger.exists(criteria.id, 42) is True
            assert ledger.exists(criteria.id, 43) is False

    def test_record_twice_leaves_one_row(self, criteria):
        with get_session() as session:
            assert NotificationLedger(session).record(criteria.id, 42) is True
        with get_session() as session:
            assert NotificationLedger(session).record(criteria.id, 42) is False

        with get_session() as session:
            rows = session.execute(text("SELECT COUNT(*) FROM notification_records")).scalar()
        assert rows == 1

    def test_record_twice_in_one_session(self, criteria):
        with get_session() as session:
            ledger = NotificationLedger(session)
            assert ledger.record(criteria.id, 42) is True
            assert ledger.record(criteria.id, 42) is False

    def test_record_keeps_first_sent_at(self, criteria):
        first = datetime(2025, 11, 1, 10, 0, tzinfo=timezone.utc)
        with get_session() as session:
            ledger = NotificationLedger(session)
            ledger.record(criteria.id, 42, sent_at=first)
            ledger.record(criteria.id, 42, sent_at=first + timedelta(hours=1))

        with get_session() as session:
            record = NotificationLedger(session).get(criteria.id, 42)
        assert record.sent_at == first

    def test_record_for_unknown_criteria_raises(self, database):
        with pytest.raises(DataIntegrityError):
            with get_session() as session:
                NotificationLedger(session).record("missing", 42)

    def test_get_missing_returns_none(self, criteria):
        with get_session() as session:
            assert NotificationLedger(session).get(criteria.id, 42) is None

    def test_records_for_ad(self, criteria):
        other = make_criteria(owner_id="W", keyword="bike")
        save(other)
        with get_session() as session:
            ledger = NotificationLedger(session)
            ledger.record(criteria.id, 42, sent_at=datetime(2025, 11, 1, 10, 0, tzinfo=timezone.utc))
            ledger.record(other.id, 42, sent_at=datetime(2025, 11, 1, 11, 0, tzinfo=timezone.utc))
            ledger.record(other.id, 43)

        with get_session() as session:
            records = NotificationLedger(session).records_for_ad(42)

        assert [r.criteria_id for r in records] == [other.id, criteria.id]

    def test_cascade_on_raw_delete(self, criteria):
        with get_session() as session:
            NotificationLedger(session).record(criteria.id, 42)

        with get_session() as session:
            session.execute(text("DELETE FROM watch_criteria WHERE id = :id"), {"id": criteria.id})

        with get_session() as session:
            assert session.get(NotificationRecordModel, {"criteria_id": criteria.id, "ad_id": 42}) is None
