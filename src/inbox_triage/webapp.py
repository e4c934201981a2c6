"""FastAPI JSON frontend for Inbox Triage.

Objective:
    Expose the inbox session implemented in :mod:`src.inbox_triage.inbox`
    over a small JSON API. This module intentionally keeps business logic in
    the session and only handles request parsing and response shaping.

High-level call tree:
    - :func:`create_app`:
        - defines routes:
            - ``GET /health``
            - ``GET /auth/login``, ``GET /auth/callback``, ``POST /auth/logout``
            - ``GET /api/profile``
            - ``GET /api/inbox``
            - ``POST /api/categories/select``
            - ``GET /api/messages/{message_id}``
            - ``POST /api/messages/{message_id}/reply``
            - ``POST /api/messages/{message_id}/send``
            - ``POST /api/messages/{message_id}/clear``
    - :func:`get_inbox_session`:
        - returns the process-wide :class:`src.inbox_triage.inbox.InboxSession`.

Data flow:
    - HTTP request -> parse inputs -> call the inbox session -> serialize state.

Operational notes:
    - A missing session answers 401 with ``redirect="/"``; an auth failure
      escalated anywhere answers 401 with ``redirect="/?access=revoked"``.
    - For tests, :func:`get_inbox_session` is overridden via
      ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from fastapi import BackgroundTasks, Depends, FastAPI
from fastapi.responses import JSONResponse

from .auth_escalation import ACCESS_REVOKED_REDIRECT
from .config import category_metadata, get_settings
from .inbox import InboxSession
from .models import MessageSummary


@lru_cache(maxsize=1)
def get_inbox_session() -> InboxSession:
    """Return the process-wide :class:`~src.inbox_triage.inbox.InboxSession`.

    The client serves a single user, so one session is shared by all
    requests. Tests override this dependency.

    Returns:
        InboxSession: Shared session.
    """

    return InboxSession(settings=get_settings())


def _signed_out(session: InboxSession) -> Optional[JSONResponse]:
    """Return the 401 payload when the session has no user."""

    if session.redirect is None and session.user_id:
        return None

    revoked = session.escalation.revoked or session.redirect == ACCESS_REVOKED_REDIRECT
    return JSONResponse(
        {
            "error": "access_revoked" if revoked else "not_authenticated",
            "redirect": ACCESS_REVOKED_REDIRECT if revoked else "/",
        },
        status_code=401,
    )


def _message_payload(session: InboxSession, message: MessageSummary) -> dict[str, Any]:
    category = session.category_of(message.id)
    payload = message.model_dump(by_alias=True)
    payload["category"] = category
    payload["badge"] = category_metadata(category).badge if category else None
    return payload


def _inbox_payload(session: InboxSession) -> dict[str, Any]:
    run = session.progress
    selected = session.category_filter.selected
    return {
        "messages": [_message_payload(session, m) for m in session.filtered_messages()],
        "total": len(session.messages),
        "categories": [
            {
                "category": c.category.value,
                "count": c.count,
                "badge": category_metadata(c.category).badge,
            }
            for c in session.category_summary()
        ],
        "selected_category": selected.value if selected else None,
        "progress": run.model_dump() if run else None,
        "error": session.error or None,
    }


def _reply_payload(session: InboxSession) -> dict[str, Any]:
    reply = session.reply
    return {
        "message_id": reply.message_id,
        "state": reply.state.value,
        "draft": reply.draft_text,
        "subject": reply.draft.subject_echo if reply.draft else "",
        "notice": reply.notice.model_dump() if reply.notice else None,
    }


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: FastAPI app.
    """

    app = FastAPI(title="Inbox Triage")

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check endpoint.

        This is intentionally simple and should not perform external calls.
        """

        return {"status": "ok"}

    @app.get("/auth/login")
    def login(session: InboxSession = Depends(get_inbox_session)) -> Any:
        """Return the OAuth URL to visit."""

        try:
            return {"url": session.backend.get_login_url()}
        except Exception:
            return JSONResponse({"error": "login_unavailable"}, status_code=502)

    @app.get("/auth/callback")
    def auth_callback(userId: str, session: InboxSession = Depends(get_inbox_session)) -> Any:
        """Store the user id handed back by the backend's OAuth callback."""

        session.login_callback(userId)
        return {"status": "signed_in", "redirect": "/api/inbox"}

    @app.post("/auth/logout")
    def logout(session: InboxSession = Depends(get_inbox_session)) -> dict[str, str]:
        session.logout()
        return {"status": "signed_out", "redirect": "/"}

    @app.get("/api/profile")
    async def profile(session: InboxSession = Depends(get_inbox_session)) -> Any:
        profile = await session.load_profile()
        signed_out = _signed_out(session)
        if signed_out is not None:
            return signed_out
        if profile is None:
            return JSONResponse({"error": session.error}, status_code=502)
        return profile.model_dump()

    @app.get("/api/inbox")
    async def inbox(
        refresh: bool = True,
        session: InboxSession = Depends(get_inbox_session),
    ) -> Any:
        """List (and by default reload and classify) the inbox."""

        if refresh:
            await session.load_inbox()
        signed_out = _signed_out(session)
        if signed_out is not None:
            return signed_out
        return _inbox_payload(session)

    @app.post("/api/categories/select")
    async def select_category(
        payload: dict[str, Any],
        session: InboxSession = Depends(get_inbox_session),
    ) -> Any:
        """Toggle the category filter.

        Expected request body: ``{"category": "Invoice"}``.
        """

        signed_out = _signed_out(session)
        if signed_out is not None:
            return signed_out

        opened = await session.select_category(str(payload.get("category") or ""))
        result = _inbox_payload(session)
        result["selected_message"] = opened.model_dump(by_alias=True) if opened else None
        return result

    @app.get("/api/messages/{message_id}")
    async def open_message(message_id: str, session: InboxSession = Depends(get_inbox_session)) -> Any:
        detail = await session.open_message(message_id)
        signed_out = _signed_out(session)
        if signed_out is not None:
            return signed_out
        if detail is None:
            return JSONResponse(
                {"error": session.error or "Message not found"},
                status_code=404 if not session.error else 502,
            )
        return {"message": detail.model_dump(by_alias=True), "reply": _reply_payload(session)}

    @app.post("/api/messages/{message_id}/reply")
    async def generate_reply(message_id: str, session: InboxSession = Depends(get_inbox_session)) -> Any:
        signed_out = _signed_out(session)
        if signed_out is not None:
            return signed_out

        if session.reply.message_id != message_id:
            session.reply.select_message(message_id)
        await session.generate_reply()
        return _signed_out(session) or _reply_payload(session)

    @app.post("/api/messages/{message_id}/send")
    async def send_reply(
        message_id: str,
        payload: dict[str, Any],
        background_tasks: BackgroundTasks,
        session: InboxSession = Depends(get_inbox_session),
    ) -> Any:
        """Send the reply.

        Expected request body: ``{"replyText": "..."}``. The response carries
        the sent notice; the inbox refresh runs after it as a background task.
        """

        signed_out = _signed_out(session)
        if signed_out is not None:
            return signed_out
        if session.reply.message_id != message_id:
            return JSONResponse({"error": "message_not_selected"}, status_code=409)

        text = payload.get("replyText")
        sent = await session.send_reply(
            text=str(text) if text is not None else None, defer_completion=True
        )
        if sent:
            background_tasks.add_task(session.reply.complete_sent)
        signed_out = _signed_out(session)
        if signed_out is not None:
            return signed_out

        result = _reply_payload(session)
        result["sent"] = sent
        return result

    @app.post("/api/messages/{message_id}/clear")
    def clear_reply(message_id: str, session: InboxSession = Depends(get_inbox_session)) -> Any:
        if session.reply.message_id == message_id:
            session.reply.clear_reply()
        return _reply_payload(session)

    return app


app = create_app()
