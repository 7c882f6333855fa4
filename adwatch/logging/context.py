"""Scoped logging context backed by contextvars.

Fields pushed here (event_id, ad_id, owner_id, ...) are attached to every log
record emitted inside the scope by ``ContextualFilter``. Each worker thread
starts from an empty context, so events processed in parallel never see each
other's fields.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("adwatch_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields active in the current scope."""
    return dict(_LOG_CONTEXT.get())


def push_log_context(**fields: Any) -> Token:
    """Merge ``fields`` into the active context.

    Returns:
        Token to hand to pop_log_context() to restore the previous state

    Example:
        >>> token = push_log_context(event_id="e1", ad_id=42)
        >>> pop_log_context(token)
    """
    return _LOG_CONTEXT.set({**_LOG_CONTEXT.get(), **fields})


def pop_log_context(token: Token) -> None:
    """Restore the context captured by ``token``."""
    _LOG_CONTEXT.reset(token)


def clear_log_context() -> None:
    """Drop every context field (used by tests)."""
    _LOG_CONTEXT.set({})


class log_context:
    """Context manager that pushes fields on entry and restores them on exit.

    Example:
        >>> with log_context(event_id="e1", ad_id=42):
        ...     logger.info("Evaluating ad")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
            self.token = None
        return False
