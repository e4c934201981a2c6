"""Triage backend API client.

Objective:
    Provide a thin wrapper around the triage backend endpoints used by this
    project. This module centralizes HTTP request construction, timeouts, and
    Pydantic validation/normalization of responses.

Responsibilities:
    - Issue HTTP requests to the backend (via :class:`requests`).
    - List the inbox, classify a message, draft and send replies.
    - Fetch the signed-in user's profile and the OAuth login URL.

High-level call tree:
    - Public API:
        - :meth:`BackendClient.list_messages` -> returns :class:`src.inbox_triage.models.MessageSummary`
        - :meth:`BackendClient.classify` -> returns :class:`src.inbox_triage.models.Classification`
        - :meth:`BackendClient.fetch_message` -> returns :class:`src.inbox_triage.models.MessageDetail`
        - :meth:`BackendClient.generate_reply` -> returns :class:`src.inbox_triage.models.DraftReply`
        - :meth:`BackendClient.send_reply` -> returns :class:`src.inbox_triage.models.SendResult`
        - :meth:`BackendClient.get_user_profile` -> returns :class:`src.inbox_triage.models.UserProfile`
        - :meth:`BackendClient.get_login_url`
    - Internal helpers:
        - :meth:`BackendClient._make_request` (timeout + error handling)
        - :meth:`BackendClient._fetch` (raw classify/detail payload)

Backend endpoints used:
    - ``GET /gmail/list/{user_id}``
    - ``GET /gmail/fetch/{user_id}/{message_id}``
    - ``POST /gmail/reply/{user_id}/{message_id}``
    - ``POST /gmail/send/{user_id}/{message_id}``
    - ``GET /auth/profile/{user_id}``
    - ``GET /auth/login``

Response shape:
    The fetch endpoint's canonical shape nests the classifier output under
    ``result`` and the message under ``message``. Older backends return a
    flat object with ``classification`` in place of ``category``; that shape
    is still read, but logged as non-canonical.

Error handling:
    - HTTP errors are logged and raised from :meth:`_make_request`.
    - Callers above this module convert every raised error into state.
"""

import logging
from typing import Any, Optional

from urllib.parse import quote

import requests

from .config import Settings
from .models import (
    Classification,
    DraftReply,
    MessageDetail,
    MessageSummary,
    SendResult,
    UserProfile,
)

logger = logging.getLogger(__name__)


class BackendClient:
    """
    Client for interacting with the triage backend.

    The client is state-light: it only holds settings and a
    :class:`requests.Session`. Methods are blocking; async callers run them in
    worker threads.

    Attributes:
        settings: Application settings.
        session: Shared HTTP session.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        """
        Initialize backend client.

        Args:
            settings: Application settings.
            session: Optional HTTP session (a new one is created if omitted).
        """
        self.settings = settings
        self.session = session or requests.Session()

    @property
    def base_url(self) -> str:
        """Backend base URL without a trailing slash."""
        return str(self.settings.backend_url).rstrip("/")

    def _make_request(
        self,
        method: str,
        endpoint: str,
        json_data: Optional[dict] = None,
    ) -> dict:
        """Make a request to the backend.

        This helper:
        - Applies the configured timeout.
        - Raises for non-2xx responses.
        - Returns decoded JSON or ``{}`` for empty responses.

        Args:
            method: HTTP method (GET, POST).
            endpoint: API endpoint path.
            json_data: JSON body data.

        Returns:
            dict: Response JSON data.

        Raises:
            requests.HTTPError: If the backend answers with a non-2xx status.
            requests.RequestException: On connection errors and timeouts.
        """
        url = f"{self.base_url}{endpoint}"

        response = self.session.request(
            method=method,
            url=url,
            json=json_data,
            timeout=self.settings.request_timeout_seconds,
        )

        if not response.ok:
            logger.error(
                "Backend error: %s %s -> %s - %s",
                method,
                endpoint,
                response.status_code,
                response.text,
            )
            response.raise_for_status()

        if response.status_code == 204 or not response.content:
            return {}

        payload = response.json()
        return payload if isinstance(payload, dict) else {}

    def list_messages(self, user_id: str) -> list[MessageSummary]:
        """List the inbox of a user.

        Items that fail validation are skipped with a warning so one malformed
        entry does not hide the rest of the inbox.

        Args:
            user_id: Signed-in user ID.

        Returns:
            list[MessageSummary]: Messages in backend order.
        """
        endpoint = f"/gmail/list/{quote(user_id, safe='')}"
        response = self._make_request("GET", endpoint)

        messages = []
        for item in response.get("messages") or []:
            try:
                messages.append(MessageSummary.model_validate(item))
            except Exception as e:
                logger.warning(f"Failed to parse message: {e}")
                continue

        logger.debug(f"Listed {len(messages)} messages")
        return messages

    def _fetch(self, user_id: str, message_id: str) -> tuple[dict[str, Any], dict[str, Any]]:
        """Fetch and split a message payload into (result, message) parts."""
        endpoint = f"/gmail/fetch/{quote(user_id, safe='')}/{quote(message_id, safe='')}"
        response = self._make_request("GET", endpoint)

        if isinstance(response.get("result"), dict):
            message = response.get("message")
            return response["result"], message if isinstance(message, dict) else {}

        logger.warning(
            "Non-canonical fetch response for message %s (keys=%s); reading flat fields",
            message_id,
            sorted(response),
        )
        result = {
            "category": response.get("category") or response.get("classification"),
            "action": response.get("action"),
            "justification": response.get("justification"),
        }
        return result, response

    def classify(self, user_id: str, message_id: str) -> Classification:
        """Classify one message.

        A response without a category yields ``category=None``; the caller
        treats that as unclassified.

        Args:
            user_id: Signed-in user ID.
            message_id: Message to classify.

        Returns:
            Classification: Normalized classifier output.
        """
        result, _ = self._fetch(user_id, message_id)
        return Classification(
            message_id=message_id,
            category=result.get("category") or None,
            action=result.get("action"),
            justification=result.get("justification"),
        )

    def fetch_message(self, user_id: str, summary: MessageSummary) -> MessageDetail:
        """Fetch a listed message with its body and classification.

        The backend body keeps its line breaks, so it replaces the snippet
        when present.

        Args:
            user_id: Signed-in user ID.
            summary: Listed message to open.

        Returns:
            MessageDetail: Summary fields merged with the fetched detail.
        """
        result, message = self._fetch(user_id, summary.id)
        body = message.get("body")
        fields = summary.model_dump()
        fields.update(
            snippet=body or message.get("snippet") or summary.snippet,
            body=body,
            category=result.get("category") or None,
            action=result.get("action"),
            justification=result.get("justification"),
        )
        return MessageDetail(**fields)

    def generate_reply(self, user_id: str, message_id: str) -> DraftReply:
        """Ask the backend to draft a reply.

        Args:
            user_id: Signed-in user ID.
            message_id: Message being replied to.

        Returns:
            DraftReply: Draft with missing fields defaulted.
        """
        endpoint = f"/gmail/reply/{quote(user_id, safe='')}/{quote(message_id, safe='')}"
        response = self._make_request("POST", endpoint, json_data={})

        return DraftReply(
            message_id=response.get("messageId") or message_id,
            text=response.get("replyDraft") or "",
            subject_echo=response.get("subject") or "",
            success=bool(response.get("success", True)),
        )

    def send_reply(self, user_id: str, message_id: str, text: str) -> SendResult:
        """Send a reply.

        Args:
            user_id: Signed-in user ID.
            message_id: Message being replied to.
            text: Final reply body.

        Returns:
            SendResult: Backend outcome.
        """
        endpoint = f"/gmail/send/{quote(user_id, safe='')}/{quote(message_id, safe='')}"
        response = self._make_request("POST", endpoint, json_data={"replyText": text})
        logger.debug(f"Sent reply for message {message_id}")
        return SendResult.model_validate(response)

    def get_user_profile(self, user_id: str) -> UserProfile:
        """Fetch the signed-in user's profile."""
        endpoint = f"/auth/profile/{quote(user_id, safe='')}"
        return UserProfile.model_validate(self._make_request("GET", endpoint))

    def get_login_url(self) -> str:
        """Return the OAuth URL the user must visit to sign in."""
        return str(self._make_request("GET", "/auth/login").get("url") or "")
