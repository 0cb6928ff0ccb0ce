"""Glossary candidate detection, suggestion, and commit.

Responsibilities:
- Detect likely proper-noun candidates in source text that the glossary lacks.
- Request batched glossary suggestions and parse them into pending terms.
- Fall back to a deterministic honorific-aware classifier when suggestion
  parsing or the provider fails transiently.
- Enforce the honorific policy on every proposed term.
- Persist approved review decisions through the persistence gateway.
"""

from __future__ import annotations

from dataclasses import replace
import re
from typing import Mapping, Sequence

from ..errors import ParseError, SuggestionParseError, TransientProviderError
from ..llm.glossary_assistant import GlossarySuggestionProvider
from ..llm.response_parsing import extract_json_object
from ..models.datatypes import EntityType, GlossaryTerm, ReviewStatus
from ..persistence.gateway import PersistenceGateway
from ..persistence.stores import GlossaryStore
from ..review.session import GlossaryReviewItem
from ..telemetry.logger import RunLogger
from .honorifics import (
    detect_language,
    honorific_category,
    honorific_suffix_language,
    is_literal_kinship_translation,
    lookup_honorific,
)

SOURCE_CONTEXT_LIMIT = 500

_DELIMITER_PATTERN = re.compile(r"=== (?:End )?Page \d+ ===")
_TAG_PREFIX_PATTERN = re.compile(r'^[ \t]*(?:"":|\(\):|\[\]:|::|ST:|OT:|//:)', re.MULTILINE)
_PUNCTUATION_PATTERN = re.compile(r"[^\w\s]|_")
_CJK_PATTERN = re.compile(r"[぀-ヿ一-鿿가-힣]")

# Ordered (keywords, term type); first match wins.
_CATEGORY_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("character",), "Character Name"),
    (("place", "location"), "Location"),
    (("technique", "skill", "ability"), "Skill/Technique"),
    (("organization", "group"), "Organization"),
    (("sound",), "Sound Effect"),
    (("honorific", "title"), "__honorific__"),
    (("family", "relation"), "Family Relation"),
    (("cultural",), "Cultural Term"),
)


def map_suggested_category(suggested_category: str | None, language: str | None) -> str:
    """Map an assistant `suggestedCategory` label onto a glossary term type."""

    lowered = (suggested_category or "").lower()
    for keywords, term_type in _CATEGORY_RULES:
        if any(keyword in lowered for keyword in keywords):
            if term_type == "__honorific__":
                return honorific_category(language or "")
            return term_type
    return "Other"


def _is_candidate_token(token: str) -> bool:
    """Return whether a token looks like a proper noun worth proposing."""

    if len(token) < 2:
        return False
    if _CJK_PATTERN.search(token):
        return True
    return "A" <= token[0] <= "Z"


def enforce_honorific_policy(term: GlossaryTerm) -> GlossaryTerm:
    """Return a term whose honorific rendering follows the preservation rules.

    Known honorifics always carry their romanized form and honorific category.
    Unknown terms with an honorific suffix are categorized as honorifics and a
    literal English kinship rendering is flagged for translation.
    """

    honorific = lookup_honorific(term.source_term)
    if honorific is not None:
        return replace(
            term,
            translated_term=honorific.transliteration,
            term_type=honorific.category,
            entity_type=EntityType.TERM,
            language=honorific.language,
            gender=term.gender if term.gender is not None else honorific.gender,
            notes=term.notes or honorific.notes,
        )

    suffix_language = honorific_suffix_language(term.source_term)
    if suffix_language is None:
        return term
    updated = term
    if term.term_type in {"Other", ""}:
        updated = replace(updated, term_type=honorific_category(suffix_language))
    if is_literal_kinship_translation(term.translated_term):
        updated = replace(updated, translated_term=f"[Translation needed: {suffix_language} term]")
    if updated.language is None:
        updated = replace(updated, language=suffix_language)
    return updated


class GlossaryResolver:
    """Propose, classify, and commit glossary terms for a series."""

    def __init__(
        self,
        store: GlossaryStore,
        provider: GlossarySuggestionProvider | None = None,
        gateway: PersistenceGateway | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        """Initialize store, suggestion provider, and persistence dependencies."""

        self.store = store
        self.provider = provider
        self.gateway = gateway
        self.logger = logger

    def load(self, series_id: str) -> dict[str, GlossaryTerm]:
        """Return the persisted glossary keyed by source term."""

        return {term.source_term: term for term in self.store.list_by_series_id(series_id)}

    def context_map(self, series_id: str) -> dict[str, dict[str, str]]:
        """Return the compact glossary mapping injected into translation prompts."""

        return {
            source_term: term.to_context_entry()
            for source_term, term in self.load(series_id).items()
        }

    def detect_candidates(
        self,
        source_text: str,
        existing_glossary: Mapping[str, object],
    ) -> list[str]:
        """Return unique candidate terms in first-seen order.

        Page delimiters and bubble tag prefixes are removed before tokenizing;
        terms already in the glossary are excluded case-insensitively.
        """

        known = {key.casefold() for key in existing_glossary}
        stripped = _DELIMITER_PATTERN.sub(" ", source_text)
        stripped = _TAG_PREFIX_PATTERN.sub(" ", stripped)
        stripped = _PUNCTUATION_PATTERN.sub(" ", stripped)

        candidates: list[str] = []
        seen: set[str] = set()
        for token in stripped.split():
            folded = token.casefold()
            if folded in known or folded in seen or not _is_candidate_token(token):
                continue
            seen.add(folded)
            candidates.append(token)
        return candidates

    def propose_terms(
        self,
        candidate_terms: Sequence[str],
        existing_glossary: Mapping[str, object],
        source_context: str,
        source_language: str | None = None,
    ) -> list[GlossaryTerm]:
        """Request suggestions for all candidates in one call and parse them.

        Raises:
            SuggestionParseError: When the response has no usable `suggestedTerms` object.
            ProviderError: When the provider request itself fails.
        """

        if not candidate_terms:
            return []
        if self.provider is None:
            raise SuggestionParseError("No glossary suggestion provider is configured.")
        try:
            raw_text = self.provider.suggest_terms(candidate_terms, existing_glossary, source_context)
        except SuggestionParseError:
            raise
        except ParseError as exc:
            raise SuggestionParseError(str(exc)) from exc

        payload = extract_json_object(raw_text, SuggestionParseError)
        suggested = payload.get("suggestedTerms")
        if not isinstance(suggested, list):
            raise SuggestionParseError("Suggestion response has no `suggestedTerms` array.")

        context = source_context[:SOURCE_CONTEXT_LIMIT]
        terms: list[GlossaryTerm] = []
        for entry in suggested:
            if not isinstance(entry, dict):
                continue
            try:
                term = GlossaryTerm.from_dict(entry)
            except ValueError:
                continue
            language = term.language or detect_language(term.source_term, source_language)
            term = replace(
                term,
                language=language,
                term_type=map_suggested_category(entry.get("suggestedCategory"), language),
                auto_suggested=True,
                source_context=context,
                status=ReviewStatus.PENDING,
            )
            terms.append(enforce_honorific_policy(term))
        return terms

    def heuristic_terms(
        self,
        candidate_terms: Sequence[str],
        source_context: str = "",
        source_language: str | None = None,
    ) -> list[GlossaryTerm]:
        """Classify candidates without a model: Unicode-range language plus honorific rules."""

        context = source_context[:SOURCE_CONTEXT_LIMIT]
        terms: list[GlossaryTerm] = []
        for candidate in candidate_terms:
            language = detect_language(candidate, source_language)
            if language == "Unknown":
                # Latin-script names are already readable in the target language.
                translated = candidate
                language_value = None
            else:
                translated = f"[Translation needed: {language} term]"
                language_value = language
            term = GlossaryTerm(
                source_term=candidate,
                translated_term=translated,
                language=language_value,
                auto_suggested=True,
                source_context=context,
                status=ReviewStatus.PENDING,
            )
            terms.append(enforce_honorific_policy(term))
        return terms

    def propose_terms_with_fallback(
        self,
        candidate_terms: Sequence[str],
        existing_glossary: Mapping[str, object],
        source_context: str,
        source_language: str | None = None,
    ) -> list[GlossaryTerm]:
        """Propose terms, falling back to the heuristic classifier on parse or transient failure."""

        try:
            return self.propose_terms(
                candidate_terms, existing_glossary, source_context, source_language
            )
        except (SuggestionParseError, TransientProviderError) as exc:
            if self.logger is not None:
                self.logger.log_warning(
                    "glossary",
                    "suggestion_fallback",
                    error_type=type(exc).__name__,
                    candidates=len(candidate_terms),
                )
            return self.heuristic_terms(candidate_terms, source_context, source_language)

    def commit(self, series_id: str, items: Sequence[GlossaryReviewItem]) -> list[GlossaryTerm]:
        """Persist approved terms, broadcast the change, and return the approved terms."""

        approved = [
            item.term.with_status(ReviewStatus.APPROVED)
            for item in items
            if item.status == ReviewStatus.APPROVED
        ]
        if not approved:
            return []

        seen: set[str] = set()
        for term in approved:
            key = term.source_term.casefold()
            if key in seen and self.logger is not None:
                self.logger.log_warning("glossary", "duplicate_term", series=series_id)
            seen.add(key)

        if self.gateway is None:
            return approved
        if self.gateway.save_glossary_terms(series_id, approved):
            self.gateway.broadcast_glossary_changed(series_id)
        return approved
