from unittest.mock import MagicMock

import pytest
import requests

from src.inbox_triage.backend_client import BackendClient
from src.inbox_triage.models import MessageSummary


def _client() -> BackendClient:
    settings = MagicMock()
    settings.backend_url = "http://backend.test/"
    settings.request_timeout_seconds = 12
    return BackendClient(settings, session=MagicMock())


def test_list_messages_uses_list_endpoint_and_skips_invalid_items() -> None:
    """list_messages parses valid items and drops malformed ones."""

    client = _client()
    client._make_request = MagicMock(
        return_value={
            "messages": [
                {
                    "id": "m1",
                    "threadId": "t1",
                    "subject": "Invoice 42",
                    "from": "Billing <billing@example.com>",
                    "date": "Mon, 6 Oct 2025 10:00:00 +0000",
                    "snippet": "Please find attached",
                },
                {"subject": "no id"},
            ]
        }
    )

    messages = client.list_messages("user-1")

    client._make_request.assert_called_once_with("GET", "/gmail/list/user-1")
    assert [m.id for m in messages] == ["m1"]
    assert messages[0].thread_id == "t1"
    assert messages[0].sender == "Billing <billing@example.com>"


def test_list_messages_missing_messages_key_returns_empty_list() -> None:
    client = _client()
    client._make_request = MagicMock(return_value={})

    assert client.list_messages("user-1") == []


def test_classify_reads_nested_result_shape() -> None:
    """The canonical fetch response nests the classifier output under result."""

    client = _client()
    client._make_request = MagicMock(
        return_value={
            "result": {
                "category": "Invoice",
                "action": "Pay before Friday",
                "justification": "Mentions an amount due",
            },
            "message": {"id": "m1", "subject": "Invoice 42", "body": "Amount due"},
        }
    )

    classification = client.classify("user-1", "m1")

    args, _ = client._make_request.call_args
    assert args == ("GET", "/gmail/fetch/user-1/m1")
    assert classification.message_id == "m1"
    assert classification.category == "Invoice"
    assert classification.action == "Pay before Friday"


def test_classify_reads_flat_classification_alias() -> None:
    """The flat shape with a classification alias is still understood."""

    client = _client()
    client._make_request = MagicMock(
        return_value={"id": "m1", "classification": "Spam", "justification": "Bulk sender"}
    )

    classification = client.classify("user-1", "m1")

    assert classification.category == "Spam"
    assert classification.justification == "Bulk sender"


def test_classify_without_category_is_unclassified() -> None:
    """A missing category is not turned into Other at the transport layer."""

    client = _client()
    client._make_request = MagicMock(return_value={"result": {"rawModelResponse": "???"}})

    assert client.classify("user-1", "m1").category is None


def test_classify_url_encodes_identifiers() -> None:
    client = _client()
    client._make_request = MagicMock(return_value={"result": {}})

    client.classify("user/1", "AQM+/=")

    args, _ = client._make_request.call_args
    assert args[1] == "/gmail/fetch/user%2F1/AQM%2B%2F%3D"


def test_fetch_message_prefers_body_over_snippet() -> None:
    client = _client()
    client._make_request = MagicMock(
        return_value={
            "result": {"category": "Meeting Request"},
            "message": {"id": "m1", "snippet": "short", "body": "Line one\nLine two"},
        }
    )
    summary = MessageSummary(id="m1", subject="Sync", snippet="listed snippet")

    detail = client.fetch_message("user-1", summary)

    assert detail.id == "m1"
    assert detail.subject == "Sync"
    assert detail.snippet == "Line one\nLine two"
    assert detail.body == "Line one\nLine two"
    assert detail.category == "Meeting Request"


def test_generate_reply_defaults_missing_fields() -> None:
    client = _client()
    client._make_request = MagicMock(return_value={"success": True})

    draft = client.generate_reply("user-1", "m1")

    client._make_request.assert_called_once_with("POST", "/gmail/reply/user-1/m1", json_data={})
    assert draft.message_id == "m1"
    assert draft.text == ""
    assert draft.subject_echo == ""


def test_generate_reply_maps_backend_fields() -> None:
    client = _client()
    client._make_request = MagicMock(
        return_value={
            "success": True,
            "replyDraft": "Thanks, I will pay today.",
            "subject": "Re: Invoice 42",
            "messageId": "m1",
        }
    )

    draft = client.generate_reply("user-1", "m1")

    assert draft.text == "Thanks, I will pay today."
    assert draft.subject_echo == "Re: Invoice 42"


def test_send_reply_posts_reply_text() -> None:
    client = _client()
    client._make_request = MagicMock(return_value={"success": True, "message": "sent"})

    result = client.send_reply("user-1", "m1", "Hello")

    client._make_request.assert_called_once_with(
        "POST", "/gmail/send/user-1/m1", json_data={"replyText": "Hello"}
    )
    assert result.success is True


def test_get_user_profile_and_login_url() -> None:
    client = _client()
    client._make_request = MagicMock(
        side_effect=[
            {"name": "Ada", "email": "ada@example.com"},
            {"url": "https://accounts.google.com/o/oauth2/auth?x=1"},
        ]
    )

    profile = client.get_user_profile("user-1")
    url = client.get_login_url()

    assert profile.name == "Ada"
    assert profile.email == "ada@example.com"
    assert url.startswith("https://accounts.google.com/")
    assert client._make_request.call_args_list[0].args == ("GET", "/auth/profile/user-1")
    assert client._make_request.call_args_list[1].args == ("GET", "/auth/login")


def test_make_request_applies_timeout_and_raises_on_error() -> None:
    """_make_request builds the full URL, applies the timeout and raises on non-2xx."""

    client = _client()
    response = MagicMock(ok=False, status_code=500, text="boom")
    response.raise_for_status.side_effect = requests.HTTPError(response=response)
    client.session.request.return_value = response

    with pytest.raises(requests.HTTPError):
        client._make_request("GET", "/gmail/list/user-1")

    kwargs = client.session.request.call_args.kwargs
    assert kwargs["url"] == "http://backend.test/gmail/list/user-1"
    assert kwargs["timeout"] == 12


def test_make_request_returns_empty_dict_for_no_content() -> None:
    client = _client()
    client.session.request.return_value = MagicMock(ok=True, status_code=204, content=b"")

    assert client._make_request("POST", "/gmail/send/user-1/m1", json_data={}) == {}
