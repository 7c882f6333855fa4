"""HTTP client for the marketplace user service."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from adwatch.logging import get_logger

from .directory import DEFAULT_ELEVATED_ROLE, UserDirectory
from .exceptions import UserDirectoryError
from .models import UserProfile

logger = get_logger(__name__, component="user_directory")


class UserServiceClient(UserDirectory):
    """UserDirectory backed by ``GET {base_url}/users/{user_id}``.

    A 404 means the user does not exist. Any other failure raises
    UserDirectoryError so callers can tell "not privileged" apart from
    "could not ask".

    Attributes:
        base_url: Service root without trailing slash
        timeout: HTTP request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 10,
        user_agent: str = "AdWatchdog/1.0",
        token: Optional[str] = None,
        elevated_role: str = DEFAULT_ELEVATED_ROLE,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Args:
            base_url: Base URL of the user service
            timeout: Request timeout in seconds
            user_agent: User-Agent header for requests
            token: Optional bearer token
            elevated_role: Role required to own active watchdogs
            session: Pre-built requests session (tests)
        """
        super().__init__(elevated_role=elevated_role)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        url = f"{self.base_url}/users/{quote(str(user_id), safe='')}"
        data = self._make_request(url)
        if data is None:
            logger.debug(
                f"User {user_id} not found",
                extra={"event": "user_directory.lookup.not_found", "user_id": user_id},
            )
            return None

        try:
            return UserProfile.model_validate(data)
        except ValidationError as e:
            logger.error(
                f"Malformed user payload for {user_id}",
                extra={"event": "user_directory.lookup.error", "user_id": user_id, "url": url},
            )
            raise UserDirectoryError(f"Malformed user payload from {url}: {e}", url=url) from e

    def _make_request(self, url: str) -> Optional[Dict[str, Any]]:
        """GET ``url`` and return the parsed JSON body, or None on 404.

        Raises:
            UserDirectoryError: On timeouts, connection errors, non-404 error
                statuses and invalid JSON
        """
        try:
            logger.debug(
                f"HTTP GET request to {url}",
                extra={"event": "user_directory.lookup.request", "url": url, "timeout": self.timeout},
            )
            response = self._session.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={"event": "user_directory.lookup.error", "error_type": "Timeout", "url": url},
            )
            raise UserDirectoryError(
                f"Request to {url} timed out after {self.timeout} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {url} failed: {e}",
                extra={
                    "event": "user_directory.lookup.error",
                    "error_type": type(e).__name__,
                    "url": url,
                },
            )
            raise UserDirectoryError(f"Request to {url} failed: {e}", url=url) from e

        if response.status_code == 404:
            return None

        if response.status_code >= 400:
            log_level = logging.WARNING if response.status_code >= 500 else logging.ERROR
            logger.log(
                log_level,
                f"HTTP {response.status_code} error from {url}",
                extra={
                    "event": "user_directory.lookup.error",
                    "status_code": response.status_code,
                    "url": url,
                },
            )
            raise UserDirectoryError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(
                f"Failed to parse JSON response from {url}",
                extra={
                    "event": "user_directory.lookup.error",
                    "error_type": "JSONDecodeError",
                    "url": url,
                },
            )
            raise UserDirectoryError(
                f"Failed to parse JSON response from {url}: {e}",
                status_code=response.status_code,
                url=url,
            ) from e
