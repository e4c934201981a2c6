"""Keep the signed-in user id in an Azure Blob.

The session document is ``{"user_id": "..."}``. One client owns it, so writes
simply overwrite the blob; clearing the session deletes it. Authentication
goes through DefaultAzureCredential (Managed Identity when running in Azure).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional

from azure.core.exceptions import ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlobSessionLocation:
    account_url: str
    container_name: str
    blob_name: str


def parse_session_document(payload: Optional[str]) -> Optional[str]:
    """Return the user id held by a session document, or None if unusable."""
    if not payload:
        return None
    try:
        document = json.loads(payload)
    except ValueError:
        return None
    if not isinstance(document, dict):
        return None
    user_id = document.get("user_id")
    return str(user_id) if user_id else None


class BlobSessionStore:
    """Read, write and delete the session blob."""

    def __init__(self, location: BlobSessionLocation) -> None:
        self._location = location
        self._credential = DefaultAzureCredential(exclude_interactive_browser_credential=True)

    def _get_blob_client(self) -> BlobClient:
        return BlobClient(
            account_url=self._location.account_url,
            container_name=self._location.container_name,
            blob_name=self._location.blob_name,
            credential=self._credential,
        )

    def read_user_id(self) -> Optional[str]:
        try:
            data = self._get_blob_client().download_blob().readall()
        except ResourceNotFoundError:
            return None
        payload = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else str(data)
        return parse_session_document(payload)

    def write_user_id(self, user_id: str) -> None:
        document = json.dumps({"user_id": user_id})
        self._get_blob_client().upload_blob(document.encode("utf-8"), overwrite=True)
        logger.debug("Wrote session blob %s", self._location.blob_name)

    def delete(self) -> None:
        try:
            self._get_blob_client().delete_blob()
        except ResourceNotFoundError:
            logger.debug("Session blob already absent")
