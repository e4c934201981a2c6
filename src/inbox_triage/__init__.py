"""Inbox Triage package.

Objective:
    Provide the orchestration layer of an email-triage client:
    - List a user's inbox through the triage backend.
    - Classify every message into a business category, in bounded
      concurrent batches, via the backend's inference endpoint.
    - Let the user request an AI-drafted reply, edit it and send it.

Key modules:
    - :mod:`src.inbox_triage.backend_client`:
        HTTP wrapper for the triage backend.
    - :mod:`src.inbox_triage.pipeline`:
        Batched classification runs and the classification index.
    - :mod:`src.inbox_triage.filter_view`:
        Category summary and single-category filtering.
    - :mod:`src.inbox_triage.reply_workflow`:
        Per-message reply state machine.
    - :mod:`src.inbox_triage.auth_escalation`:
        Detection of auth failures and session teardown.
    - :mod:`src.inbox_triage.inbox`:
        Composition of the above for one user session.
    - :mod:`src.inbox_triage.cli` / :mod:`src.inbox_triage.webapp`:
        User-facing entrypoints.
"""

__version__ = "0.1.0"
