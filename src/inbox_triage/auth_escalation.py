"""Detection and escalation of authentication failures.

Objective:
    Recognize backend failures caused by a revoked or expired Google grant and
    tear the session down, no matter which operation hit the failure.

Responsibilities:
    - Classify an exception as an auth failure (:func:`is_auth_error`).
    - Clear the session store and notify listeners once an auth failure is
      seen (:class:`AuthEscalation`).

High-level call tree:
    - :meth:`AuthEscalation.check`
        - :func:`is_auth_error`
            - :func:`_status_code`
            - :func:`_error_texts`
        - :meth:`src.inbox_triage.session_store.SessionStore.clear`
        - registered listeners

Operational notes:
    - The backend has no structured error code for a dead grant, so detection
      scans the error text for :data:`AUTH_ERROR_KEYWORDS`. The list is part
      of the contract with the backend; change it together with the tests.
"""

import logging
from typing import Any, Callable, Iterable, Optional

from .session_store import SessionStore

logger = logging.getLogger(__name__)

AUTH_ERROR_STATUSES = frozenset({401, 403})

AUTH_ERROR_KEYWORDS = (
    "token",
    "unauthorized",
    "unauthenticated",
    "access denied",
    "invalid credentials",
    "authentication",
    "permission",
    "revoked",
    "re-authenticate",
    "expired",
    "invalid_grant",
)

# Payload fields scanned for keywords
_TEXT_FIELDS = ("message", "description", "error", "error_description", "detail")

ACCESS_REVOKED_REDIRECT = "/?access=revoked"


def _status_code(error: BaseException) -> Optional[int]:
    """Return the HTTP status attached to an error, if any."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(getattr(error, "response", None), "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _payload_texts(payload: Any) -> Iterable[str]:
    if isinstance(payload, dict):
        for field in _TEXT_FIELDS:
            value = payload.get(field)
            if isinstance(value, str):
                yield value
            elif isinstance(value, dict):
                yield from _payload_texts(value)


def _error_texts(error: BaseException) -> list[str]:
    """Collect every piece of text that may describe the failure."""
    texts = [str(error)]
    for field in _TEXT_FIELDS:
        value = getattr(error, field, None)
        if isinstance(value, str):
            texts.append(value)

    response = getattr(error, "response", None)
    if response is not None:
        try:
            texts.extend(_payload_texts(response.json()))
        except Exception:
            text = getattr(response, "text", None)
            if isinstance(text, str):
                texts.append(text)
    return texts


def is_auth_error(error: BaseException) -> bool:
    """Decide whether a failure means the user must sign in again.

    Status 401/403 is authoritative. Otherwise the error text and its payload
    fields are scanned case-insensitively for :data:`AUTH_ERROR_KEYWORDS`.

    Args:
        error: Failure raised by a backend call.

    Returns:
        bool: True when the failure is an authentication/authorization error.
    """
    if _status_code(error) in AUTH_ERROR_STATUSES:
        return True

    haystack = " ".join(_error_texts(error)).lower()
    return any(keyword in haystack for keyword in AUTH_ERROR_KEYWORDS)


class AuthEscalation:
    """
    Process-wide session teardown on auth failures.

    One instance is shared by every component that talks to the backend.

    Attributes:
        session_store: Store cleared on escalation.
        revoked: Whether an escalation has happened since the last sign-in.
    """

    def __init__(self, session_store: SessionStore) -> None:
        self.session_store = session_store
        self.revoked = False
        self._listeners: list[Callable[[str], None]] = []

    def add_listener(self, listener: Callable[[str], None]) -> None:
        """Register a callback receiving the redirect target on escalation."""
        self._listeners.append(listener)

    def reset(self) -> None:
        """Forget a previous escalation (called after a new sign-in)."""
        self.revoked = False

    def check(self, error: BaseException) -> bool:
        """Escalate ``error`` if it is an auth failure.

        Args:
            error: Failure raised by a backend call.

        Returns:
            bool: True when the session was torn down.
        """
        if not is_auth_error(error):
            return False

        logger.warning(f"Authentication failure, clearing session: {error}")
        self.session_store.clear()
        self.revoked = True
        for listener in list(self._listeners):
            try:
                listener(ACCESS_REVOKED_REDIRECT)
            except Exception:
                logger.exception("Access-revoked listener failed")
        return True
