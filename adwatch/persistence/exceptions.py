"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError, the "store
unavailable" failure the watchdog reacts to.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors.

    Raised when the store cannot answer; callers deciding whether to notify
    treat it as "unknown" and err toward not sending.
    """

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database initialization or connection fails."""

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when an operation requires a record that does not exist.

    Optional lookups return None instead.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised on constraint violations.

    The one that matters in practice is the partial unique index on active
    criteria, which catches duplicate registrations that slipped past the
    in-memory check.
    """

    pass
