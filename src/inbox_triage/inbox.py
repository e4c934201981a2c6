"""Inbox session orchestrator.

Objective:
    Coordinate everything one signed-in user does with the inbox:
    1) Read the user id from the session store
    2) List the inbox
    3) Classify every message in bounded batches
    4) Summarize and filter by category
    5) Open a message and draft/send a reply
    6) Tear the session down on auth failures

Responsibilities:
    - Compose the core components (backend client, session store, auth
      escalation, classification pipeline, category filter, reply workflow).
    - Turn every failure into state (:attr:`InboxSession.error`,
      :attr:`InboxSession.redirect`); nothing raises to the caller.

High-level call tree:
    - :class:`InboxSession`
        - :meth:`InboxSession.load_inbox`
            - :meth:`BackendClient.list_messages`
            - :meth:`ClassificationPipeline.run_to_completion`
        - :meth:`InboxSession.open_message`
            - :meth:`BackendClient.fetch_message`
            - :meth:`ReplyWorkflow.select_message`
        - :meth:`InboxSession.select_category`
            - :meth:`CategoryFilter.select_category`
        - :meth:`InboxSession.load_profile`
        - :meth:`InboxSession.on_reply_sent`

Operational notes:
    - The session keeps no state between processes besides the user id held
      by the session store.
"""

import asyncio
import logging
from typing import Optional, Union

from .auth_escalation import AuthEscalation
from .backend_client import BackendClient
from .config import EmailCategory, Settings, get_settings
from .filter_view import CategoryFilter, summarize
from .models import CategoryCount, MessageDetail, MessageSummary, PipelineRun, UserProfile
from .pipeline import ClassificationPipeline, ProgressCallback
from .reply_workflow import ReplyWorkflow
from .session_store import SessionStore, create_session_store

logger = logging.getLogger(__name__)

LOAD_FAILED_NOTICE = "Failed to load emails. Please try again."
DETAIL_FAILED_NOTICE = "Failed to load email details. Please try again."
PROFILE_FAILED_NOTICE = "Failed to load profile."

ENTRY_REDIRECT = "/"


class InboxSession:
    """
    Orchestrates the inbox of one signed-in user.

    This class is intentionally "glue" code: it connects the backend client,
    the pipeline, the filter and the reply workflow without embedding their
    rules.

    Attributes:
        settings: Application settings.
        backend: Backend client.
        session_store: Holds the signed-in user id.
        escalation: Shared auth escalation.
        pipeline: Classification pipeline.
        category_filter: Category selection.
        reply: Reply workflow of the selected message.
        messages: Last listed inbox snapshot.
        selected: Opened message, or None.
        profile: Signed-in user's profile, once loaded.
        loading: Whether an inbox load is running.
        error: Generic user-facing notice of the last failure.
        redirect: Where the user must be sent (set when signed out).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        backend: Optional[BackendClient] = None,
        session_store: Optional[SessionStore] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Initialize the session with all components.

        Args:
            settings: Application settings (loads from env if None).
            backend: Backend client (built from settings if None).
            session_store: Session store (built from settings if None).
            on_progress: Called after every classification batch.
        """
        self.settings = settings or get_settings()

        # Initialize components
        self.backend = backend or BackendClient(self.settings)
        self.session_store = session_store or create_session_store(self.settings)
        self.escalation = AuthEscalation(self.session_store)
        self.escalation.add_listener(self._on_access_revoked)
        self.pipeline = ClassificationPipeline(
            self.backend,
            batch_size=self.settings.classification_batch_size,
            escalation=self.escalation,
            on_progress=on_progress,
        )
        self.category_filter = CategoryFilter()
        self.reply = ReplyWorkflow(
            self.backend,
            escalation=self.escalation,
            sent_delay=self.settings.reply_sent_delay_seconds,
            on_sent=self.on_reply_sent,
        )

        self.messages: list[MessageSummary] = []
        self.selected: Optional[MessageDetail] = None
        self.profile: Optional[UserProfile] = None
        self.loading = False
        self.error = ""
        self.redirect: Optional[str] = None
        self._load_token = 0

    def _on_access_revoked(self, target: str) -> None:
        self._load_token += 1
        self.loading = False
        self.pipeline.invalidate()
        self.messages = []
        self.selected = None
        self.profile = None
        self.category_filter.clear()
        self.reply.select_message(None)
        self.redirect = target

    def _require_user(self) -> Optional[str]:
        user_id = self.session_store.get_user_id()
        if not user_id:
            self.redirect = self.redirect or ENTRY_REDIRECT
            return None
        return user_id

    def _fail(self, notice: str, action: str, error: Exception) -> None:
        """Record a user-facing notice unless the failure escalated."""
        logger.error(f"Error {action}: {error}")
        if not self.escalation.check(error):
            self.error = notice

    @property
    def user_id(self) -> Optional[str]:
        return self.session_store.get_user_id()

    @property
    def progress(self) -> Optional[PipelineRun]:
        return self.pipeline.current_run

    def login_callback(self, user_id: str) -> None:
        """Store the user id received from the OAuth callback."""
        self.session_store.set_user_id(user_id)
        self.escalation.reset()
        self.redirect = None
        logger.info("Signed in user %s", user_id)

    def logout(self) -> None:
        """Forget the user and return to the entry point."""
        self.session_store.clear()
        self._load_token += 1
        self.loading = False
        self.pipeline.invalidate()
        self.messages = []
        self.selected = None
        self.profile = None
        self.category_filter.clear()
        self.reply.select_message(None)
        self.redirect = ENTRY_REDIRECT

    async def load_inbox(self) -> list[MessageSummary]:
        """List the inbox and classify it.

        A new load supersedes any classification run still in progress and
        any older load whose listing has not arrived yet.

        Returns:
            list[MessageSummary]: Listed messages (empty on failure).
        """
        user_id = self._require_user()
        if user_id is None:
            return []

        self._load_token += 1
        token = self._load_token
        self.loading = True
        self.error = ""
        try:
            messages = await asyncio.to_thread(self.backend.list_messages, user_id)
        except Exception as e:
            if token == self._load_token:
                self._fail(LOAD_FAILED_NOTICE, "loading emails", e)
                self.loading = False
            else:
                self.escalation.check(e)
            return []

        if token != self._load_token:
            logger.debug("Discarding inbox listing superseded by a newer load")
            return []
        self.loading = False

        self.messages = messages
        logger.info(f"Loaded {len(messages)} messages")

        await self.pipeline.run_to_completion(user_id, messages)
        return messages

    async def open_message(self, message_id: str) -> Optional[MessageDetail]:
        """Open a listed message and reset the reply panel for it.

        Args:
            message_id: ID of a listed message.

        Returns:
            Optional[MessageDetail]: Opened message, or None on failure.
        """
        user_id = self._require_user()
        if user_id is None:
            return None

        summary = next((m for m in self.messages if m.id == message_id), None)
        if summary is None:
            logger.warning("Message %s is not in the current inbox", message_id)
            return None

        self.reply.select_message(message_id)
        self.error = ""
        try:
            detail = await asyncio.to_thread(self.backend.fetch_message, user_id, summary)
        except Exception as e:
            self._fail(DETAIL_FAILED_NOTICE, "loading email details", e)
            return None

        if self.reply.message_id != message_id:
            return None
        self.selected = detail
        return detail

    def deselect(self) -> None:
        self.selected = None
        self.reply.select_message(None)

    async def select_category(
        self, category: Union[EmailCategory, str]
    ) -> Optional[MessageDetail]:
        """Toggle a category filter and open its first message.

        Args:
            category: Category chosen by the user.

        Returns:
            Optional[MessageDetail]: Opened message, if any matched.
        """
        first = self.category_filter.select_category(category, self.messages, self.pipeline.index)
        if first is None:
            return None
        return await self.open_message(first.id)

    def filtered_messages(self) -> list[MessageSummary]:
        return self.category_filter.apply(self.messages, self.pipeline.index)

    def category_summary(self) -> list[CategoryCount]:
        return summarize(self.pipeline.index)

    def category_of(self, message_id: str) -> Optional[str]:
        """Indexed category of a message, or None when unclassified."""
        return self.pipeline.index.get(message_id)

    async def load_profile(self) -> Optional[UserProfile]:
        """Fetch the signed-in user's profile."""
        user_id = self._require_user()
        if user_id is None:
            return None
        try:
            self.profile = await asyncio.to_thread(self.backend.get_user_profile, user_id)
        except Exception as e:
            self._fail(PROFILE_FAILED_NOTICE, "loading profile", e)
            return None
        return self.profile

    async def generate_reply(self) -> bool:
        user_id = self._require_user()
        if user_id is None:
            return False
        return await self.reply.generate_reply(user_id)

    async def send_reply(self, text: Optional[str] = None, defer_completion: bool = False) -> bool:
        user_id = self._require_user()
        if user_id is None:
            return False
        return await self.reply.send_reply(user_id, text=text, defer_completion=defer_completion)

    async def on_reply_sent(self) -> None:
        """Deselect the answered message and refresh the inbox."""
        self.deselect()
        await self.load_inbox()
