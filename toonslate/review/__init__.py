"""Human review state for translation suggestions and glossary terms."""

from .session import GlossaryReviewItem, ReviewSession, SuggestionItem

__all__ = ["GlossaryReviewItem", "ReviewSession", "SuggestionItem"]
