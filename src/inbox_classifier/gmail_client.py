"""Gmail API client for message retrieval.

Objective:
    Provide a thin wrapper around the Gmail REST endpoints used by this
    project. This module centralizes HTTP request construction and
    authentication headers. It returns raw message resources; turning them
    into :class:`inbox_classifier.models.Message` is the normalizer's job.

Responsibilities:
    - Issue authenticated HTTP requests to Gmail (via :mod:`requests`).
    - List the most recent message ids.
    - Fetch full message resources.

High-level call tree:
    - Public API:
        - :meth:`GmailClient.fetch_recent` -> list of raw message dicts
            - :meth:`GmailClient.list_message_ids`
            - :meth:`GmailClient.get_message`
    - Internal helpers:
        - :meth:`GmailClient._make_request` (auth + error handling)

Gmail endpoints used:
    - ``GET /users/me/messages`` (ids, newest first)
    - ``GET /users/me/messages/{id}?format=full``

Error handling:
    - HTTP errors are logged and raised from :meth:`_make_request`.
    - :meth:`fetch_recent` skips messages whose retrieval fails, so one
      deleted or inaccessible message does not fail the fetch. Errors while
      listing propagate.
"""

import logging
from typing import Any, Optional, Protocol
from urllib.parse import quote

import requests

from .config import DEFAULT_FETCH_LIMIT

logger = logging.getLogger(__name__)


class MailboxClient(Protocol):
    """Anything that can return recent raw message payloads."""

    def fetch_recent(self, access_token: str, limit: int) -> list[dict[str, Any]]:
        ...


class GmailClient:
    """
    Client for reading messages through the Gmail API.

    The client holds no token. Each call receives the access token so that
    nothing outlives the request it was supplied for.
    """

    GMAIL_BASE_URL = "https://gmail.googleapis.com/gmail/v1"

    def __init__(self, timeout: float = 30) -> None:
        """
        Initialize Gmail client.

        Args:
            timeout: Per-request timeout in seconds.
        """
        self.timeout = timeout

    def _make_request(
        self,
        method: str,
        endpoint: str,
        access_token: str,
        params: Optional[dict] = None,
    ) -> dict:
        """Make an authenticated request to Gmail.

        This helper:
        - Adds the Bearer token header.
        - Applies a default timeout.
        - Raises for non-2xx responses.

        Args:
            method: HTTP method.
            endpoint: API endpoint path.
            access_token: OAuth access token.
            params: Query parameters.

        Returns:
            dict: Response JSON data.

        Raises:
            requests.HTTPError: If request fails.
        """
        url = f"{self.GMAIL_BASE_URL}{endpoint}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

        response = requests.request(
            method=method,
            url=url,
            headers=headers,
            params=params,
            timeout=self.timeout,
        )

        if not response.ok:
            logger.error(f"Gmail API error: {response.status_code} - {response.text}")
            response.raise_for_status()

        return response.json()

    def list_message_ids(
        self, access_token: str, limit: int = DEFAULT_FETCH_LIMIT
    ) -> list[str]:
        """List the ids of the most recent messages.

        References without an id are dropped.

        Args:
            access_token: OAuth access token.
            limit: Maximum number of ids.

        Returns:
            list[str]: Message ids, newest first.
        """
        response = self._make_request(
            "GET",
            "/users/me/messages",
            access_token,
            params={"maxResults": limit},
        )
        refs = response.get("messages") or []
        return [ref["id"] for ref in refs if ref.get("id")]

    def get_message(self, access_token: str, message_id: str) -> dict[str, Any]:
        """Fetch one full message resource.

        Args:
            access_token: OAuth access token.
            message_id: Gmail message id.

        Returns:
            dict[str, Any]: Raw message resource.
        """
        safe_message_id = quote(message_id, safe="")
        return self._make_request(
            "GET",
            f"/users/me/messages/{safe_message_id}",
            access_token,
            params={"format": "full"},
        )

    def fetch_recent(
        self, access_token: str, limit: int = DEFAULT_FETCH_LIMIT
    ) -> list[dict[str, Any]]:
        """Fetch the most recent messages as raw resources.

        Args:
            access_token: OAuth access token.
            limit: Maximum number of messages.

        Returns:
            list[dict[str, Any]]: Raw message resources, newest first.

        Raises:
            requests.RequestException: If listing fails.
        """
        message_ids = self.list_message_ids(access_token, limit=limit)
        logger.debug(f"Listed {len(message_ids)} message ids")

        messages = []
        for message_id in message_ids:
            try:
                messages.append(self.get_message(access_token, message_id))
            except requests.RequestException as e:
                logger.warning(f"Error fetching message {message_id}: {e}")
                continue

        return messages
