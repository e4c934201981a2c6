from src.inbox_triage.config import EmailCategory
from src.inbox_triage.filter_view import CategoryFilter, filtered_messages, summarize
from src.inbox_triage.models import MessageSummary
from src.inbox_triage.pipeline import ClassificationIndex


def _messages() -> list[MessageSummary]:
    return [MessageSummary(id=f"m{i}", subject=f"Subject {i}") for i in range(1, 8)]


def _index(entries: dict[str, str]) -> ClassificationIndex:
    index = ClassificationIndex()
    for message_id, category in entries.items():
        index.add(message_id, category)
    return index


SIX_CLASSIFIED = {
    "m1": "Spam",
    "m2": "Invoice",
    "m3": "Spam",
    "m5": "Invoice",
    "m6": "Meeting Request",
    "m7": "Leave Request",
}


def test_summarize_sorts_by_count_then_declaration_order() -> None:
    summary = summarize(_index(SIX_CLASSIFIED))

    assert [(c.category, c.count) for c in summary] == [
        (EmailCategory.INVOICE, 2),
        (EmailCategory.SPAM, 2),
        (EmailCategory.LEAVE_REQUEST, 1),
        (EmailCategory.MEETING_REQUEST, 1),
    ]
    assert sum(c.count for c in summary) == 6


def test_summarize_has_no_zero_counts_and_is_idempotent() -> None:
    index = _index({"m1": "Purchase Order"})

    first = summarize(index)
    second = summarize(index)

    assert first == second
    assert all(c.count > 0 for c in first)
    assert summarize(ClassificationIndex()) == []


def test_summarize_folds_unknown_labels_into_other() -> None:
    summary = summarize({"m1": "Newsletter", "m2": "Other", "m3": "invoice"})

    assert [(c.category, c.count) for c in summary] == [
        (EmailCategory.OTHER, 2),
        (EmailCategory.INVOICE, 1),
    ]


def test_filtered_messages_without_selection_returns_all_in_order() -> None:
    messages = _messages()

    assert filtered_messages(None, messages, _index(SIX_CLASSIFIED)) == messages


def test_filtered_messages_returns_exact_subset_in_order() -> None:
    result = filtered_messages(EmailCategory.SPAM, _messages(), _index(SIX_CLASSIFIED))

    assert [m.id for m in result] == ["m1", "m3"]


def test_unclassified_messages_match_no_category() -> None:
    """m4 has no index entry and never shows up under a filter, not even Other."""

    index = _index(SIX_CLASSIFIED)

    for category in EmailCategory:
        assert "m4" not in [m.id for m in filtered_messages(category, _messages(), index)]


def test_select_category_toggles_and_surfaces_first_match() -> None:
    category_filter = CategoryFilter()
    messages = _messages()
    index = _index(SIX_CLASSIFIED)

    first = category_filter.select_category("Invoice", messages, index)
    assert category_filter.selected is EmailCategory.INVOICE
    assert first is not None and first.id == "m2"

    replaced = category_filter.select_category(EmailCategory.SPAM, messages, index)
    assert category_filter.selected is EmailCategory.SPAM
    assert replaced is not None and replaced.id == "m1"

    cleared = category_filter.select_category(EmailCategory.SPAM, messages, index)
    assert category_filter.selected is None
    assert cleared is None
    assert category_filter.apply(messages, index) == messages


def test_select_category_without_matches_returns_none() -> None:
    category_filter = CategoryFilter()

    first = category_filter.select_category("Purchase Order", _messages(), _index(SIX_CLASSIFIED))

    assert first is None
    assert category_filter.selected is EmailCategory.PURCHASE_ORDER
    assert category_filter.apply(_messages(), _index(SIX_CLASSIFIED)) == []
