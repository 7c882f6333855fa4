"""Exceptions raised by user directory implementations."""

from typing import Optional


class UserDirectoryError(Exception):
    """The user directory could not answer a lookup.

    Raised for transport failures, timeouts, 5xx/unexpected status codes and
    malformed payloads. An unknown user is not an error: lookups return None.
    """

    def __init__(
        self, message: str, status_code: Optional[int] = None, url: Optional[str] = None
    ) -> None:
        """
        Args:
            message: Human-readable error message
            status_code: HTTP status code, if a response was received
            url: URL that failed
        """
        super().__init__(message)
        self.status_code = status_code
        self.url = url
