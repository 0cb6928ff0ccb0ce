"""Human review state for one translation result.

Responsibilities:
- Hold suggestion and glossary review items keyed by stable identifiers.
- Apply approve/reject/edit/reset decisions without edits changing status.
- Track the editable chapter-memory draft and report unresolved items.

Key types:
- `SuggestionItem`: one quality suggestion with its edited text.
- `GlossaryReviewItem`: one proposed glossary term with modification tracking.
- `ReviewSession`: keyed collection driving the finalize gate.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from ..errors import ValidationError
from ..models.datatypes import GlossaryTerm, ReviewStatus


@dataclass(frozen=True, slots=True)
class SuggestionItem:
    """Quality suggestion under review."""

    item_id: str
    original: str
    edited: str
    status: ReviewStatus = ReviewStatus.PENDING


@dataclass(frozen=True, slots=True)
class GlossaryReviewItem:
    """Proposed glossary term under review.

    Attributes:
        item_id: Stable identifier within the session.
        term: Current term, including any reviewer edits.
        original_translated_term: Translation as first suggested, used by reset.
        status: Review decision.
        is_modified: Whether the translation differs from the original suggestion.
    """

    item_id: str
    term: GlossaryTerm
    original_translated_term: str
    status: ReviewStatus = ReviewStatus.PENDING
    is_modified: bool = False


class ReviewSession:
    """Keyed review items for one translation, plus the chapter-memory draft."""

    def __init__(
        self,
        suggestions: Iterable[str] = (),
        glossary_terms: Iterable[GlossaryTerm] = (),
        memory_draft: str = "",
    ) -> None:
        """Build pending review items from a quality report's payload."""

        self._suggestions: dict[str, SuggestionItem] = {}
        for index, text in enumerate(suggestions, start=1):
            item_id = f"s{index}"
            self._suggestions[item_id] = SuggestionItem(item_id=item_id, original=text, edited=text)
        self._glossary: dict[str, GlossaryReviewItem] = {}
        for index, term in enumerate(glossary_terms, start=1):
            item_id = f"g{index}"
            self._glossary[item_id] = GlossaryReviewItem(
                item_id=item_id,
                term=term.with_status(ReviewStatus.PENDING),
                original_translated_term=term.translated_term,
            )
        self.memory_draft = memory_draft

    @property
    def suggestions(self) -> list[SuggestionItem]:
        """Return suggestion items in creation order."""

        return list(self._suggestions.values())

    @property
    def glossary_items(self) -> list[GlossaryReviewItem]:
        """Return glossary items in creation order."""

        return list(self._glossary.values())

    def pending_ids(self) -> list[str]:
        """Return identifiers of items that still need a decision."""

        return [
            item.item_id
            for item in [*self._suggestions.values(), *self._glossary.values()]
            if item.status == ReviewStatus.PENDING
        ]

    def approve(self, item_id: str) -> None:
        """Mark an item approved."""

        self._set_status(item_id, ReviewStatus.APPROVED)

    def reject(self, item_id: str) -> None:
        """Mark an item rejected."""

        self._set_status(item_id, ReviewStatus.REJECTED)

    def approve_all(self) -> None:
        """Approve every item."""

        for item_id in [*self._suggestions, *self._glossary]:
            self._set_status(item_id, ReviewStatus.APPROVED)

    def reject_all(self) -> None:
        """Reject every item."""

        for item_id in [*self._suggestions, *self._glossary]:
            self._set_status(item_id, ReviewStatus.REJECTED)

    def edit(self, item_id: str, new_text: str) -> None:
        """Edit a suggestion's text or a glossary item's translated term.

        Editing keeps the current status; glossary items become modified when
        the new translation differs from the original suggestion.
        """

        if item_id in self._suggestions:
            item = self._suggestions[item_id]
            self._suggestions[item_id] = replace(item, edited=new_text)
            return
        glossary_item = self._require_glossary(item_id)
        new_term = new_text.strip()
        if not new_term:
            raise ValidationError("Glossary translation must not be empty.")
        self._glossary[item_id] = replace(
            glossary_item,
            term=replace(glossary_item.term, translated_term=new_term),
            is_modified=new_term != glossary_item.original_translated_term,
        )

    def reset(self, item_id: str) -> None:
        """Restore an item's original text; its status is kept."""

        if item_id in self._suggestions:
            item = self._suggestions[item_id]
            self._suggestions[item_id] = replace(item, edited=item.original)
            return
        glossary_item = self._require_glossary(item_id)
        self._glossary[item_id] = replace(
            glossary_item,
            term=replace(glossary_item.term, translated_term=glossary_item.original_translated_term),
            is_modified=False,
        )

    def approved_suggestions(self) -> list[str]:
        """Return edited texts of approved suggestions in order."""

        return [
            item.edited for item in self._suggestions.values() if item.status == ReviewStatus.APPROVED
        ]

    def approved_glossary_items(self) -> list[GlossaryReviewItem]:
        """Return approved glossary items in order."""

        return [item for item in self._glossary.values() if item.status == ReviewStatus.APPROVED]

    def has_glossary_modifications(self) -> bool:
        """Return whether any approved glossary item was edited."""

        return any(item.is_modified for item in self.approved_glossary_items())

    def _set_status(self, item_id: str, status: ReviewStatus) -> None:
        if item_id in self._suggestions:
            self._suggestions[item_id] = replace(self._suggestions[item_id], status=status)
            return
        glossary_item = self._require_glossary(item_id)
        self._glossary[item_id] = replace(
            glossary_item,
            term=glossary_item.term.with_status(status),
            status=status,
        )

    def _require_glossary(self, item_id: str) -> GlossaryReviewItem:
        item = self._glossary.get(item_id)
        if item is None:
            raise ValidationError(f"Unknown review item `{item_id}`.")
        return item
