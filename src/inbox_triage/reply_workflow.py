"""Reply drafting and sending for the selected message.

Objective:
    Drive the reply panel of the selected message: ask the backend for a
    draft, let the user edit it, send it and report the outcome.

State machine:
    ``IDLE -> GENERATING -> DRAFTED -> SENDING -> SENT``

    - A generation failure returns to ``IDLE`` with an error notice.
    - A send failure returns to ``DRAFTED`` with the draft text kept and an
      error notice, so the user can send again.
    - ``clear_reply`` returns to ``IDLE`` from any state except ``SENDING``.
    - Selecting another message resets to ``IDLE``.

High-level call tree:
    - :class:`ReplyWorkflow`
        - :meth:`ReplyWorkflow.select_message`
        - :meth:`ReplyWorkflow.generate_reply`
            - :meth:`src.inbox_triage.backend_client.BackendClient.generate_reply`
        - :meth:`ReplyWorkflow.edit_draft`
        - :meth:`ReplyWorkflow.send_reply`
            - :meth:`src.inbox_triage.backend_client.BackendClient.send_reply`
            - :meth:`ReplyWorkflow.complete_sent` (unless deferred)
                - ``on_sent`` callback after :attr:`ReplyWorkflow.sent_delay`
        - :meth:`ReplyWorkflow.clear_reply`

Error handling:
    - Backend failures are logged and turned into fixed user-facing notices;
      the cause is never shown to the user.
    - Auth failures are additionally handed to
      :class:`src.inbox_triage.auth_escalation.AuthEscalation`.
    - Calls made in the wrong state are ignored and return ``False``.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from .auth_escalation import AuthEscalation
from .backend_client import BackendClient
from .models import DraftReply, SendResult

logger = logging.getLogger(__name__)

GENERATE_FAILED_NOTICE = "Failed to generate reply. Please try again."
SEND_FAILED_NOTICE = "Failed to send reply. Please try again."
SENT_NOTICE = "Reply sent successfully!"

DEFAULT_SENT_DELAY_SECONDS = 1.5

SentCallback = Callable[[], Union[None, Awaitable[Any]]]


class ReplyState(str, Enum):
    """States of the reply panel."""

    IDLE = "idle"
    GENERATING = "generating"
    DRAFTED = "drafted"
    SENDING = "sending"
    SENT = "sent"


class NoticeKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class Notice(BaseModel):
    """User-facing message shown in the reply panel."""

    kind: NoticeKind
    text: str


class ReplyWorkflow:
    """
    Reply state machine for the currently selected message.

    The workflow exclusively owns the draft of the selected message. Results
    that arrive after the selection changed are dropped.

    Attributes:
        backend: Backend client.
        escalation: Optional auth escalation.
        sent_delay: Seconds between a successful send and ``on_sent``.
        on_sent: Called once the sent notice has been displayed.
        message_id: Selected message, or None.
        state: Current :class:`ReplyState`.
        draft: Current draft, or None.
        notice: Current notice, or None.
    """

    def __init__(
        self,
        backend: BackendClient,
        escalation: Optional[AuthEscalation] = None,
        sent_delay: float = DEFAULT_SENT_DELAY_SECONDS,
        on_sent: Optional[SentCallback] = None,
    ) -> None:
        self.backend = backend
        self.escalation = escalation
        self.sent_delay = sent_delay
        self.on_sent = on_sent
        self.message_id: Optional[str] = None
        self.state = ReplyState.IDLE
        self.draft: Optional[DraftReply] = None
        self.notice: Optional[Notice] = None
        self._selection = 0
        self._sent_selection: Optional[int] = None

    @property
    def draft_text(self) -> str:
        """Current draft text, or an empty string."""
        return self.draft.text if self.draft else ""

    @property
    def has_error(self) -> bool:
        return self.notice is not None and self.notice.kind == NoticeKind.ERROR

    def _reset(self) -> None:
        self.state = ReplyState.IDLE
        self.draft = None
        self.notice = None

    def _is_stale(self, selection: int) -> bool:
        return selection != self._selection

    def _handle_failure(self, action: str, error: Exception) -> None:
        logger.warning(f"Failed to {action} for message {self.message_id}: {error}")
        if self.escalation is not None:
            self.escalation.check(error)

    def select_message(self, message_id: Optional[str]) -> None:
        """Make ``message_id`` the selected message and reset the panel.

        Any reply in progress for the previous message is abandoned.
        """
        self._selection += 1
        self.message_id = message_id
        self._reset()

    async def generate_reply(self, user_id: str, message_id: Optional[str] = None) -> bool:
        """Ask the backend for a reply draft.

        Valid only from ``IDLE`` (including ``IDLE`` with an error notice).

        Args:
            user_id: Signed-in user ID.
            message_id: Message to reply to; defaults to the selected one.
                A different id selects that message first.

        Returns:
            bool: True when a draft is available.
        """
        if message_id is not None and message_id != self.message_id:
            self.select_message(message_id)
        if self.message_id is None:
            logger.warning("generate_reply called without a selected message")
            return False
        if self.state != ReplyState.IDLE:
            logger.warning("generate_reply ignored in state %s", self.state.value)
            return False

        selection = self._selection
        target = self.message_id
        self.state = ReplyState.GENERATING
        self.notice = None

        try:
            draft: DraftReply = await asyncio.to_thread(self.backend.generate_reply, user_id, target)
            if not draft.success:
                raise RuntimeError("backend reported draft failure")
        except Exception as e:
            if self._is_stale(selection):
                return False
            self._handle_failure("generate reply", e)
            self.state = ReplyState.IDLE
            self.notice = Notice(kind=NoticeKind.ERROR, text=GENERATE_FAILED_NOTICE)
            return False

        if self._is_stale(selection):
            logger.debug("Dropping draft for deselected message %s", target)
            return False

        self.draft = draft
        self.state = ReplyState.DRAFTED
        logger.info("Drafted reply for message %s", target)
        return True

    def edit_draft(self, text: str) -> bool:
        """Replace the draft text; only allowed while ``DRAFTED``."""
        if self.state != ReplyState.DRAFTED or self.draft is None:
            logger.warning("edit_draft ignored in state %s", self.state.value)
            return False
        self.draft = self.draft.model_copy(update={"text": text})
        return True

    async def send_reply(
        self,
        user_id: str,
        message_id: Optional[str] = None,
        text: Optional[str] = None,
        defer_completion: bool = False,
    ) -> bool:
        """Send the draft.

        Valid only from ``DRAFTED`` with non-empty text. Empty text is
        rejected locally: no request is made and the state is unchanged.

        Args:
            user_id: Signed-in user ID.
            message_id: Message being replied to; must be the selected one.
            text: Final text; defaults to the current draft text.
            defer_completion: Return as soon as the reply is ``SENT``; the
                caller then awaits :meth:`complete_sent` itself.

        Returns:
            bool: True when the backend accepted the reply.
        """
        if message_id is not None and message_id != self.message_id:
            logger.warning("send_reply for %s ignored; %s is selected", message_id, self.message_id)
            return False
        if self.state != ReplyState.DRAFTED:
            logger.warning("send_reply ignored in state %s", self.state.value)
            return False

        reply_text = self.draft_text if text is None else text
        if not reply_text or not reply_text.strip():
            logger.debug("send_reply rejected: empty text")
            return False

        if self.draft is not None and reply_text != self.draft.text:
            self.draft = self.draft.model_copy(update={"text": reply_text})

        selection = self._selection
        target = self.message_id
        self.state = ReplyState.SENDING
        self.notice = None

        try:
            result: SendResult = await asyncio.to_thread(
                self.backend.send_reply, user_id, target, reply_text
            )
            if not result.success:
                raise RuntimeError(result.message or "backend reported send failure")
        except Exception as e:
            if self._is_stale(selection):
                return False
            self._handle_failure("send reply", e)
            self.state = ReplyState.DRAFTED
            self.notice = Notice(kind=NoticeKind.ERROR, text=SEND_FAILED_NOTICE)
            return False

        if self._is_stale(selection):
            return True

        self.state = ReplyState.SENT
        self.notice = Notice(kind=NoticeKind.SUCCESS, text=SENT_NOTICE)
        logger.info("Sent reply for message %s", target)

        self._sent_selection = selection
        if not defer_completion:
            await self.complete_sent()
        return True

    async def complete_sent(self) -> None:
        """Keep the sent notice up for ``sent_delay``, then fire ``on_sent``."""
        selection = self._sent_selection
        if selection is None:
            return
        self._sent_selection = None

        await asyncio.sleep(self.sent_delay)
        if self.on_sent is not None and not self._is_stale(selection):
            outcome = self.on_sent()
            if inspect.isawaitable(outcome):
                await outcome

    def clear_reply(self) -> bool:
        """Discard the draft and any notice; not allowed while ``SENDING``.

        Clearing while ``GENERATING`` drops the pending draft.
        """
        if self.state == ReplyState.SENDING:
            logger.warning("clear_reply ignored while sending")
            return False
        if self.state == ReplyState.GENERATING:
            self._selection += 1
        self._reset()
        return True
