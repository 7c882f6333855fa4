"""Response payloads for the layer that exposes registration to users."""

from typing import Any, Dict

from adwatch.domain.models import WatchCriteria

from .exceptions import CriteriaValidationError, WatchdogError


def registration_response(criteria: WatchCriteria) -> Dict[str, str]:
    """Confirmation echoing the keyword when the watchdog has one.

    Example:
        >>> registration_response(WatchCriteria(owner_id="u1", keyword="bike"))
        {'success': "Watchdog 'bike' has been set up successfully"}
    """
    if criteria.keyword:
        return {"success": f"Watchdog '{criteria.keyword}' has been set up successfully"}
    return {"success": "Watchdog has been set up successfully"}


def error_response(exc: WatchdogError) -> Dict[str, Any]:
    """Structured error for a failed registration or management call.

    Validation failures also list the offending fields.
    """
    payload: Dict[str, Any] = {"error": exc.message}
    if isinstance(exc, CriteriaValidationError) and exc.errors:
        payload["details"] = list(exc.errors)
    return payload
