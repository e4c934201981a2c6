"""Session storage for the signed-in user id.

Objective:
    Hold the identifier of the signed-in user between the login callback and
    logout (or a forced teardown after an auth failure).

Responsibilities:
    - Keep the user id in memory for the process lifetime (default).
    - Optionally persist it to a JSON file or to Azure Blob Storage.

High-level call tree:
    - :func:`create_session_store` -> returns :class:`SessionStore`
    - :class:`SessionStore`
        - :meth:`SessionStore.set_user_id` -> :meth:`SessionStore._save`
        - :meth:`SessionStore.get_user_id` -> :meth:`SessionStore._load`
        - :meth:`SessionStore.clear`

Operational notes:
    - Storage failures are logged and treated as "no user"; a missing user id
      sends the caller back to the entry point.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from .config import Settings
from .session_blob import BlobSessionLocation, BlobSessionStore, parse_session_document

logger = logging.getLogger(__name__)

# Default session file location
SESSION_FILE = Path.home() / ".inbox_triage_session.json"


class SessionStore:
    """
    Opaque key-value persistence of the signed-in user id.

    Attributes:
        path: Session file, when file persistence is enabled.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        blob_store: Optional[BlobSessionStore] = None,
    ) -> None:
        self.path = path
        self._blob_store = blob_store
        self._user_id: Optional[str] = None
        self._loaded = path is None and blob_store is None

    def _load(self) -> Optional[str]:
        if self._blob_store is not None:
            try:
                return self._blob_store.read_user_id()
            except Exception as e:
                logger.warning(f"Failed to load session from Azure Blob: {e}")
                return None

        if self.path is not None and self.path.exists():
            try:
                return parse_session_document(self.path.read_text(encoding="utf-8"))
            except OSError as e:
                logger.warning(f"Failed to load session file: {e}")
        return None

    def _save(self, user_id: Optional[str]) -> None:
        try:
            if self._blob_store is not None:
                if user_id is None:
                    self._blob_store.delete()
                else:
                    self._blob_store.write_user_id(user_id)
                logger.debug("Saved session to Azure Blob")
            elif self.path is not None:
                if user_id is None:
                    self.path.unlink(missing_ok=True)
                else:
                    self.path.write_text(json.dumps({"user_id": user_id}), encoding="utf-8")
                logger.debug("Saved session file")
        except Exception as e:
            logger.warning(f"Failed to save session: {e}")

    def set_user_id(self, user_id: str) -> None:
        """Remember the signed-in user."""
        self._user_id = user_id
        self._loaded = True
        self._save(user_id)

    def get_user_id(self) -> Optional[str]:
        """Return the signed-in user id, or None when signed out."""
        if not self._loaded:
            self._user_id = self._load()
            self._loaded = True
        return self._user_id

    def clear(self) -> None:
        """Forget the signed-in user."""
        self._user_id = None
        self._loaded = True
        self._save(None)

    def is_logged_in(self) -> bool:
        """Whether a user id is present."""
        return bool(self.get_user_id())


def create_session_store(settings: Settings) -> SessionStore:
    """Build the session store selected by ``settings.session_store_backend``.

    Incomplete Azure Blob settings fall back to the in-memory store.

    Args:
        settings: Application settings.

    Returns:
        SessionStore: Configured store.
    """
    backend = (settings.session_store_backend or "memory").strip().lower()

    if backend == "file":
        path = Path(settings.session_file_path) if settings.session_file_path else SESSION_FILE
        return SessionStore(path=path)

    if backend == "azure_blob":
        account_url = (settings.session_blob_account_url or "").strip()
        container = (settings.session_blob_container or "").strip()
        blob_name = (settings.session_blob_name or "").strip()
        if account_url and container and blob_name:
            return SessionStore(
                blob_store=BlobSessionStore(
                    BlobSessionLocation(
                        account_url=account_url,
                        container_name=container,
                        blob_name=blob_name,
                    )
                )
            )
        logger.warning(
            "session_store_backend=azure_blob but blob settings are incomplete; "
            "falling back to memory"
        )

    return SessionStore()
