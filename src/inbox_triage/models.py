"""Pydantic data models used across the application.

Objective:
    Centralize all strongly-typed data structures representing:
    - Inbox messages returned by the triage backend
    - Classification outputs returned by the backend classifier
    - Reply drafts and send outcomes
    - Progress of a classification run

Design notes:
    - These models use Pydantic aliases to match the backend's camelCase
      field names (e.g. ``threadId`` -> :attr:`MessageSummary.thread_id`).
    - ``model_config = ConfigDict(populate_by_name=True)`` is used to allow
      constructing models with either alias names or pythonic field names.

High-level structure:
    - Inbox primitives:
        - :class:`MessageSummary`
        - :class:`MessageDetail`
        - :class:`UserProfile`
    - Classification primitives:
        - :class:`Classification`
        - :class:`ClassificationOutcome`
        - :class:`PipelineRun`
        - :class:`CategoryCount`
    - Reply primitives:
        - :class:`DraftReply`
        - :class:`SendResult`

Call tree usage:
    - :class:`src.inbox_triage.backend_client.BackendClient`:
        - validates backend responses into the models above
    - :class:`src.inbox_triage.pipeline.ClassificationPipeline`:
        - yields :class:`ClassificationOutcome`, tracks :class:`PipelineRun`
    - :mod:`src.inbox_triage.filter_view`:
        - returns :class:`CategoryCount`
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import EmailCategory


class MessageSummary(BaseModel):
    """
    One inbox entry as listed by the backend.

    Listed messages never change afterwards, so the model is frozen. The
    identity key is :attr:`id`.

    Attributes:
        id: Unique message ID.
        thread_id: Conversation thread ID.
        subject: Subject line.
        sender: Raw ``From`` header.
        date: Date string as returned by the backend.
        snippet: Short preview of the body.
    """

    id: str
    thread_id: str = Field(default="", alias="threadId")
    subject: str = ""
    sender: str = Field(default="", alias="from")
    date: str = ""
    snippet: str = ""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Classification(BaseModel):
    """
    Result of classifying one message.

    ``category`` stays ``None`` when the backend returned no category; such a
    message counts as unclassified. Unknown category strings are kept as-is
    here and only folded into "Other" by the filter/display layer.

    Attributes:
        message_id: ID of the classified message.
        category: Category label assigned by the backend.
        action: Suggested follow-up action.
        justification: Short explanation from the classifier.
    """

    message_id: str = Field(alias="messageId")
    category: Optional[str] = None
    action: Optional[str] = None
    justification: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class MessageDetail(MessageSummary):
    """A listed message enriched with its body and classification."""

    body: Optional[str] = None
    category: Optional[str] = None
    action: Optional[str] = None
    justification: Optional[str] = None


class DraftReply(BaseModel):
    """
    AI-drafted reply for one message.

    Attributes:
        message_id: ID of the message being replied to.
        text: Editable reply body.
        subject_echo: Subject line the backend intends to use.
        success: Whether the backend reported success.
    """

    message_id: str = Field(alias="messageId")
    text: str = Field(default="", alias="replyDraft")
    subject_echo: str = Field(default="", alias="subject")
    success: bool = True

    model_config = ConfigDict(populate_by_name=True)


class SendResult(BaseModel):
    """Outcome of sending a reply."""

    success: bool = False
    message: Optional[str] = None


class UserProfile(BaseModel):
    """Profile of the signed-in user."""

    name: Optional[str] = None
    email: Optional[str] = None
    picture: Optional[str] = None


class ClassificationOutcome(BaseModel):
    """
    One item of a classification run's result stream.

    Exactly one of :attr:`classification` and :attr:`error` is set.

    Attributes:
        message_id: ID of the message.
        classification: Backend classification on success.
        error: Short error description on failure.
    """

    message_id: str
    classification: Optional[Classification] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """Whether the request succeeded."""
        return self.error is None


class PipelineRun(BaseModel):
    """
    Progress of one classification sweep.

    Attributes:
        run_id: Monotonically increasing run identifier.
        total: Number of messages in the run.
        completed: Messages whose batch has settled.
        in_flight: Requests currently awaiting the backend.
    """

    run_id: int
    total: int
    completed: int = 0
    in_flight: int = 0

    @property
    def done(self) -> bool:
        """Whether every message has been accounted for."""
        return self.completed >= self.total


class CategoryCount(BaseModel):
    """Number of indexed messages in one category."""

    category: EmailCategory
    count: int
