"""Non-fatal configuration checks reported as warnings."""

import warnings
from typing import Any, Dict, List
from urllib.parse import urlparse

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Inspect a raw configuration mapping for risky but valid settings.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    watchdog = config_dict.get("watchdog") or {}
    if isinstance(watchdog, dict):
        if watchdog.get("allow_unfiltered_criteria", True) is True:
            warning_messages.append(
                "allow_unfiltered_criteria is enabled: a watchdog without filters "
                "is alerted about every new or updated listing"
            )

        max_workers = watchdog.get("max_workers", 4)
        if isinstance(max_workers, int) and max_workers > 16:
            warning_messages.append(
                f"Large max_workers ({max_workers}) may exhaust database connections"
            )

    user_directory = config_dict.get("user_directory") or {}
    if isinstance(user_directory, dict):
        base_url = user_directory.get("base_url")
        if isinstance(base_url, str):
            parsed = urlparse(base_url.strip())
            if parsed.scheme == "http" and parsed.hostname not in _LOCAL_HOSTS:
                warning_messages.append(
                    f"user_directory.base_url ({base_url}) is not using HTTPS"
                )

    email = config_dict.get("email") or {}
    if isinstance(email, dict) and email.get("max_retries") == 0:
        warning_messages.append(
            "email.max_retries is 0: a failed alert is only retried on the ad's next update"
        )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit each message as a UserWarning."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
