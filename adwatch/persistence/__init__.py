"""Persistence layer for watch criteria and the notification ledger.

Public API:
    # Database initialization and session management
    - init_database(database_url: str) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None
    - get_engine() -> Engine

    # Repositories
    - CriteriaRepository: CRUD over watch criteria (the criteria store)
    - NotificationLedger: delivered (criteria, ad) pairs (the dedup ledger)

    # Exceptions
    - PersistenceError, DatabaseConnectionError, RecordNotFoundError,
      DataIntegrityError

Example usage:
    >>> from adwatch.persistence import init_database, get_session, CriteriaRepository
    >>> init_database("sqlite:///./data/adwatch.db")
    >>> with get_session() as session:
    ...     criteria = CriteriaRepository(session).find_active_by_owner("user-1")
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import CriteriaRepository, NotificationLedger

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    # Repositories
    "CriteriaRepository",
    "NotificationLedger",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
