"""Deployment settings and secrets read from environment variables.

Required: SMTP_HOST, SMTP_PORT.

Optional: SMTP_USER and SMTP_PASS (together), SMTP_SENDER_NAME,
SMTP_SENDER_EMAIL, LOG_LEVEL, DATABASE_URL, USER_SERVICE_URL (overrides
``user_directory.base_url``) and USER_SERVICE_TOKEN.
"""

import os
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/adwatch.db"
DEFAULT_SENDER_NAME = "FoxBuy Watchdog"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Secrets and deployment settings taken from the environment."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        smtp_sender_name: Optional[str] = None,
        smtp_sender_email: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
        user_service_url: Optional[str] = None,
        user_service_token: Optional[str] = None,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.smtp_sender_name = smtp_sender_name or DEFAULT_SENDER_NAME
        self.smtp_sender_email = smtp_sender_email
        self.log_level = log_level
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.user_service_url = user_service_url
        self.user_service_token = user_service_token


def _require(name: str, errors: List[str]) -> Optional[str]:
    value = os.getenv(name)
    if not value:
        errors.append(f"Missing required environment variable: {name}")
    return value


def _parse_port(raw: Optional[str], errors: List[str]) -> Optional[int]:
    if not raw:
        return None
    try:
        port = int(raw)
    except ValueError:
        errors.append(f"Invalid SMTP_PORT: '{raw}'. Must be a valid integer.")
        return None
    if not 1 <= port <= 65535:
        errors.append(f"Invalid SMTP_PORT: {port}. Must be between 1 and 65535.")
    return port


def _normalize_sender(raw: Optional[str], errors: List[str]) -> Optional[str]:
    if not raw:
        return None
    try:
        return validate_email(raw, check_deliverability=False).normalized
    except EmailNotValidError as e:
        errors.append(f"Invalid SMTP_SENDER_EMAIL: '{raw}' - {e}")
        return None


def _check_credentials(user: Optional[str], password: Optional[str], errors: List[str]) -> None:
    if bool(user) == bool(password):
        return
    present, absent = ("SMTP_USER", "SMTP_PASS") if user else ("SMTP_PASS", "SMTP_USER")
    errors.append(
        f"{present} is set but {absent} is not. Both must be set for authentication."
    )


def load_environment_config() -> EnvironmentConfig:
    """
    Read and validate the environment.

    Every problem is collected before raising, so a single run reports
    all of them.

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors: List[str] = []

    smtp_host = _require("SMTP_HOST", errors)
    smtp_port = _parse_port(_require("SMTP_PORT", errors), errors)

    smtp_user = os.getenv("SMTP_USER")
    smtp_pass = os.getenv("SMTP_PASS")
    _check_credentials(smtp_user, smtp_pass, errors)

    sender_email = _normalize_sender(os.getenv("SMTP_SENDER_EMAIL"), errors)

    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        log_level = log_level.upper()
        if log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )

    user_service_url = os.getenv("USER_SERVICE_URL")
    if user_service_url:
        if not user_service_url.startswith(("http://", "https://")):
            errors.append(
                f"Invalid USER_SERVICE_URL: '{user_service_url}'. Must be an http(s) URL."
            )
        user_service_url = user_service_url.rstrip("/")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in the SMTP settings",
                "SMTP_PORT must be a number between 1 and 65535",
            ],
        )

    return EnvironmentConfig(
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_sender_name=os.getenv("SMTP_SENDER_NAME"),
        smtp_sender_email=sender_email,
        log_level=log_level or None,
        database_url=os.getenv("DATABASE_URL"),
        user_service_url=user_service_url or None,
        user_service_token=os.getenv("USER_SERVICE_TOKEN"),
    )
