"""Application configuration and settings.

Objective:
    Provide a single source of truth for runtime configuration used across the
    application (backend location, classification batching, reply timing and
    session persistence).

Responsibilities:
    - Define the canonical set of email categories (:class:`EmailCategory`)
      and the display metadata attached to each of them.
    - Load environment-driven settings via :class:`Settings` (Pydantic
      BaseSettings).

High-level call tree:
    - :func:`get_settings` -> returns :class:`Settings`
    - :func:`normalize_category` -> returns :class:`EmailCategory`
    - :func:`category_metadata` -> returns :class:`CategoryMetadata`

Operational notes:
    - ``Settings`` loads from ``.env`` by default via ``pydantic-settings``.
    - Most modules accept a ``Settings`` object explicitly to enable testing;
      the inbox session falls back to :func:`get_settings` when not provided.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class EmailCategory(str, Enum):
    """Canonical set of categories the backend classifier may assign.

    Declaration order matters: it breaks ties when the category summary is
    sorted by count.

    The Enum values are the user-facing labels returned by the backend.
    """

    INVOICE = "Invoice"
    LEAVE_REQUEST = "Leave Request"
    SUPPORT_REQUEST = "Support Request"
    MEETING_REQUEST = "Meeting Request"
    PURCHASE_ORDER = "Purchase Order"
    SPAM = "Spam"
    OTHER = "Other"


@dataclass(frozen=True)
class CategoryMetadata:
    """Display metadata for one category.

    Attributes:
        label: Human readable label.
        badge: Style hint for badges (Bootstrap contextual class name).
        icon: Short glyph used by the CLI output.
    """

    label: str
    badge: str
    icon: str


CATEGORY_METADATA: dict[EmailCategory, CategoryMetadata] = {
    EmailCategory.INVOICE: CategoryMetadata("Invoice", "primary", "$"),
    EmailCategory.LEAVE_REQUEST: CategoryMetadata("Leave Request", "info", "L"),
    EmailCategory.SUPPORT_REQUEST: CategoryMetadata("Support Request", "warning", "?"),
    EmailCategory.MEETING_REQUEST: CategoryMetadata("Meeting Request", "success", "M"),
    EmailCategory.PURCHASE_ORDER: CategoryMetadata("Purchase Order", "dark", "P"),
    EmailCategory.SPAM: CategoryMetadata("Spam", "danger", "!"),
    EmailCategory.OTHER: CategoryMetadata("Other", "secondary", "-"),
}


def normalize_category(value: Optional[str]) -> EmailCategory:
    """Map a raw backend category string onto :class:`EmailCategory`.

    Matching is case-insensitive and ignores surrounding whitespace. Unknown
    or missing values fall into :attr:`EmailCategory.OTHER`.

    Args:
        value: Raw category value.

    Returns:
        EmailCategory: Normalized category.
    """
    if not value:
        return EmailCategory.OTHER

    wanted = value.strip().lower()
    for category in EmailCategory:
        if category.value.lower() == wanted:
            return category

    logger.debug("Unknown category %r; using %s", value, EmailCategory.OTHER.value)
    return EmailCategory.OTHER


def category_metadata(value: Optional[str]) -> CategoryMetadata:
    """Return display metadata for a raw or enum category value."""
    return CATEGORY_METADATA[normalize_category(value)]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The settings model is intentionally flat and human-editable via `.env`.
    Most fields map directly to environment variables.

    Attributes:
        backend_url: Base URL of the triage backend.
        request_timeout_seconds: Timeout applied to every backend request.
        classification_batch_size: Messages classified concurrently per batch.
        reply_sent_delay_seconds: Delay between a successful send and the
            completion signal.
        session_store_backend: Where the signed-in user id is kept.
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Backend Configuration
    backend_url: str = Field(..., description="Base URL of the triage backend")
    request_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for each backend request"
    )

    # Processing Settings
    classification_batch_size: int = Field(
        default=5, ge=1, le=50, description="Messages classified concurrently per batch"
    )
    reply_sent_delay_seconds: float = Field(
        default=1.5,
        ge=0,
        description="How long the sent notice stays visible before the inbox refreshes",
    )

    # Session persistence
    session_store_backend: str = Field(
        default="memory",
        description=(
            "Session backend. 'memory' keeps the user id for the process lifetime. "
            "'file' stores it in a JSON file. 'azure_blob' stores it in Azure Blob Storage."
        ),
    )
    session_file_path: Optional[str] = Field(
        default=None,
        description="Session file location (defaults to ~/.inbox_triage_session.json)",
    )
    session_blob_account_url: Optional[str] = Field(
        default=None,
        description="Azure Storage account URL, e.g. https://<account>.blob.core.windows.net",
    )
    session_blob_container: Optional[str] = Field(
        default=None,
        description="Azure Blob container name for the session document",
    )
    session_blob_name: str = Field(
        default="inbox_triage_session.json",
        description="Azure Blob name for the session document",
    )

    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def categories_list(self) -> list[str]:
        """
        Get list of all valid category names.

        Returns:
            list[str]: List of category names.
        """
        return [cat.value for cat in EmailCategory]


def get_settings() -> Settings:
    """
    Load and return application settings.

    This helper is a convenience for production code. For tests, you typically
    construct a :class:`Settings` instance directly or pass a mocked settings
    object.

    Returns:
        Settings: Application settings instance.

    Raises:
        ValidationError: If required environment variables are missing.
    """
    return Settings()
