"""Category summary and filtering.

Objective:
    Turn the classification index into the category chips shown above the
    inbox (category + count) and filter the message list down to one
    selected category.

High-level call tree:
    - :func:`summarize`
        - :func:`src.inbox_triage.config.normalize_category`
    - :func:`filtered_messages`
    - :class:`CategoryFilter`
        - :meth:`CategoryFilter.select_category`
        - :meth:`CategoryFilter.apply`

Notes:
    - Raw category strings are folded onto :class:`EmailCategory` here, so an
      unknown label counts as "Other".
    - Unclassified messages (no index entry) never match a category filter.
"""

import logging
from collections import Counter
from typing import Mapping, Optional, Sequence, Union

from .config import EmailCategory, normalize_category
from .models import CategoryCount, MessageSummary
from .pipeline import ClassificationIndex

logger = logging.getLogger(__name__)

IndexLike = Union[ClassificationIndex, Mapping[str, str]]

_DECLARATION_ORDER = {category: position for position, category in enumerate(EmailCategory)}


def _indexed_category(index: IndexLike, message_id: str) -> Optional[EmailCategory]:
    raw = index.get(message_id)
    return normalize_category(raw) if raw else None


def summarize(index: IndexLike) -> list[CategoryCount]:
    """Count indexed messages per category.

    Only categories with at least one message appear. The result is sorted by
    descending count; ties follow the declaration order of
    :class:`EmailCategory`.

    Args:
        index: Classification index (or a plain mapping of id -> category).

    Returns:
        list[CategoryCount]: Category counts.
    """
    counts = Counter(normalize_category(index.get(message_id)) for message_id in index)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], _DECLARATION_ORDER[item[0]]))
    return [CategoryCount(category=category, count=count) for category, count in ordered if count > 0]


def filtered_messages(
    selected: Optional[Union[EmailCategory, str]],
    messages: Sequence[MessageSummary],
    index: IndexLike,
) -> list[MessageSummary]:
    """Return the messages visible under a category filter.

    Args:
        selected: Selected category, or None for no filter.
        messages: All messages, in display order.
        index: Classification index.

    Returns:
        list[MessageSummary]: All messages when nothing is selected, otherwise
        the messages whose indexed category equals ``selected``, in order.
    """
    if not selected:
        return list(messages)

    wanted = normalize_category(selected)
    return [message for message in messages if _indexed_category(index, message.id) == wanted]


class CategoryFilter:
    """
    Single-category selection state.

    Attributes:
        selected: Currently selected category, or None.
    """

    def __init__(self) -> None:
        self.selected: Optional[EmailCategory] = None

    def select_category(
        self,
        category: Union[EmailCategory, str],
        messages: Sequence[MessageSummary],
        index: IndexLike,
    ) -> Optional[MessageSummary]:
        """Toggle the category filter.

        Selecting the already-selected category clears the filter; selecting
        another category replaces it.

        Args:
            category: Category chosen by the user.
            messages: All messages, in display order.
            index: Classification index.

        Returns:
            Optional[MessageSummary]: First message matching the new selection,
            so the caller can open it. None when the filter was cleared or
            nothing matches.
        """
        wanted = normalize_category(category)
        if self.selected == wanted:
            logger.debug("Clearing category filter %s", wanted.value)
            self.selected = None
            return None

        self.selected = wanted
        matches = filtered_messages(wanted, messages, index)
        logger.debug("Selected category %s (%s matches)", wanted.value, len(matches))
        return matches[0] if matches else None

    def clear(self) -> None:
        self.selected = None

    def apply(
        self, messages: Sequence[MessageSummary], index: IndexLike
    ) -> list[MessageSummary]:
        """Filter ``messages`` by the current selection."""
        return filtered_messages(self.selected, messages, index)
