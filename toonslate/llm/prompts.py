"""Prompt template library for LLM stages.

Responsibilities:
- Centralize prompt construction for OCR, translate-and-review, glossary
  suggestion, chapter memory, and memory filtering steps.
- Keep prompts deterministic for identical inputs.
"""

from __future__ import annotations

import json
from typing import Mapping, Sequence

from ..models.datatypes import MemoryEntry, TranslationRequest

NO_TEXT_MARKER = "[NO_TEXT_CHUNK]"

_DEFAULT_GENRE_TONE = (
    "Respect Genre Tone: Adapt the translation to match the series tone and style."
)
_GENRE_TONES: dict[str, str] = {
    "murim/wuxia": "Use elegant, formal, grand phrasing appropriate for martial arts and "
    "cultivation stories.",
    "shounen": "Use energetic, action-oriented language with appropriate battle terminology.",
    "shoujo": "Emphasize emotional nuances and relationships with softer, more expressive "
    "language.",
    "seinen": "Adopt a mature, sometimes cynical tone with complex vocabulary and themes.",
    "josei": "Use sophisticated, emotionally intelligent language focused on adult "
    "relationships.",
    "fantasy": "Incorporate fantasy terminology and magical concepts naturally.",
    "isekai": "Use precise, mechanical, gamified language for system elements and skills.",
    "cyberpunk": "Incorporate futuristic slang, technical terminology, and dystopian elements.",
    "slice of life": "Maintain casual, warm, everyday language that feels authentic.",
    "romance": "Focus on emotional language that captures the nuances of romantic "
    "relationships.",
    "comedy": "Preserve humor through appropriate word choice and cultural adaptation.",
    "horror": "Use language that builds tension and conveys dread effectively.",
    "thriller": "Maintain suspenseful pacing and urgent tone in the translation.",
}

_TAG_SCHEMA = """\
- Normal dialogue bubble: prefix "":  (continuation across connected bubbles: //:)
- Thought bubble: prefix ():
- Shouting bubble: prefix ::
- Boxed/caption panel (narration, system windows, chat UI): prefix []:
- Small ambient text beside a bubble: prefix ST:
- Outer text drawn on the background: prefix OT:"""


def genre_tone_guidance(genres: Sequence[str]) -> str:
    """Return tone instructions for the series genres, one line per known genre."""

    lines = [
        f"Respect Genre Tone: {_GENRE_TONES[genre.strip().lower()]}"
        for genre in genres
        if genre.strip().lower() in _GENRE_TONES
    ]
    if not lines:
        return _DEFAULT_GENRE_TONE
    return "\n".join(lines)


class PromptLibrary:
    """Build prompt strings for supported LLM tasks."""

    def ocr_prompt(self, source_language: str) -> str:
        """Return the OCR prompt for one page image."""

        return (
            "You are an expert OCR assistant for Korean manhwa, Chinese manhua, and "
            f"Japanese manga. The page is written in {source_language}. Extract all text "
            "from the image and classify each element by its visual container.\n\n"
            f"Classification prefixes:\n{_TAG_SCHEMA}\n\n"
            "Instructions:\n"
            "1. Ignore sound effects and onomatopoeia.\n"
            "2. Merge multi-line text from one container into one line; never merge "
            "separate containers.\n"
            "3. Output one element per line with exactly one blank line between entries.\n"
            "4. Preserve natural reading order (right-to-left, top-to-bottom for vertical "
            "Japanese text).\n"
            "5. Keep the text in the source language; do not translate.\n"
            f"6. If the image contains no text, output exactly: {NO_TEXT_MARKER}\n"
            "7. Do not add commentary, headers, or footers."
        )

    def ocr_batch_prompt(self, source_language: str, image_count: int) -> str:
        """Return the OCR prompt for several page images sent in one request."""

        return (
            f"{self.ocr_prompt(source_language)}\n\n"
            f"You receive {image_count} images in order, indexed 0 to {image_count - 1}. "
            "Return only a JSON array with one object per image:\n"
            '[{"index": <image index>, "text": "<extracted text or '
            f'{NO_TEXT_MARKER}>"}}]'
        )

    def translate_and_review_prompt(self, request: TranslationRequest) -> str:
        """Return the combined translation and quality-review prompt."""

        series = request.series
        glossary_json = json.dumps(
            {key: dict(value) for key, value in request.glossary.items()},
            ensure_ascii=False,
            indent=2,
            sort_keys=True,
        )
        context_lines = [genre_tone_guidance(series.genres)]
        if series.tone_notes:
            context_lines.append(f"Series Notes: {series.tone_notes}")
        if series.description:
            context_lines.append(f"Series Description: {series.description}")
        if request.chapter_label:
            context_lines.append(f"Chapter Info: {request.chapter_label}")
        if request.prior_memory:
            context_lines.append(f"Story So Far:\n{request.prior_memory}")

        if request.authoritative_glossary:
            glossary_rule = (
                "The glossary below is AUTHORITATIVE and was confirmed by a human reviewer. "
                "Use every glossary translation exactly as written, including names, "
                "genders, and honorifics. Never substitute an alternative rendering."
            )
        else:
            glossary_rule = (
                "Use the glossary below for consistent names and terms. Keep honorifics "
                "such as Oppa, Hyung, Gege, or Senpai untranslated."
            )
        suggestion_block = ""
        if request.approved_suggestions:
            bullet_list = "\n".join(f"- {item}" for item in request.approved_suggestions)
            suggestion_block = (
                "\nApply these reviewer-approved improvements:\n" f"{bullet_list}\n"
            )

        return (
            "You are an expert translator and proofreader for webtoons. Translate the text "
            f"from {request.source_language} to {request.target_language} and provide a "
            "quality analysis.\n\n"
            f"Original Text:\n{request.combined_text}\n\n"
            f"{glossary_rule}\nCurrent Glossary:\n{glossary_json}\n\n"
            + "\n".join(context_lines)
            + f"\n{suggestion_block}\n"
            "FORMATTING RULES:\n"
            "- Keep every bubble prefix exactly: \"\": (): []: :: ST: OT: //:\n"
            "- Do not use HTML tags.\n"
            "- Start each page with \"=== Page X ===\", end it with \"=== End Page X ===\", "
            "and keep one blank line between elements and pages.\n\n"
            "Structure the response in these exact sections:\n"
            "1. **IMPROVED TEXT:**\n[Complete translation with page delimiters and tags]\n\n"
            "2. **ISSUES:**\n- [Translation, formatting, or consistency issues]\n\n"
            "3. **SUGGESTIONS:**\n- [Specific improvements, e.g. Replace \"X\" with \"Y\"]\n\n"
            "4. **CULTURAL NOTES:**\n- [Cultural context explanations]\n\n"
            "5. **GLOSSARY ENTRIES:**\nA JSON array of NEW terms:\n"
            "```json\n"
            '[{"sourceTerm": "...", "translatedTerm": "...", '
            '"entityType": "Person/Place/Technique/Organization/Item/Term", '
            '"gender": "Male/Female/Unknown", '
            '"role": "Protagonist/Antagonist/Supporting/Minor/Mentor/Family/Other", '
            '"notes": "..."}]\n'
            "```\n\n"
            "6. **CHAPTER MEMORY:**\nA detailed record of character actions, plot "
            "developments, relationships, and key events for future chapters.\n\n"
            "7. **CHAPTER SUMMARY:**\nA concise summary of the chapter's main events."
        )

    def glossary_suggestion_prompt(
        self,
        source_terms: Sequence[str],
        existing_glossary: Mapping[str, object],
        context: str,
    ) -> str:
        """Return the batched glossary suggestion prompt."""

        return (
            "As a glossary assistant specialized in Asian-language honorifics and "
            "cultural terms, analyze these new terms detected in a translation.\n\n"
            f"The existing glossary contains {len(existing_glossary)} terms: "
            f"{json.dumps(sorted(existing_glossary), ensure_ascii=False)}\n\n"
            "For each term provide: an English translation (or the preserved form for "
            "honorifics), a category, the entity type (Person, Place, Technique, "
            "Organization, Item, Term), likely gender (Male, Female, Unknown), role in "
            "the story, and source language (Korean, Japanese, Chinese).\n\n"
            "Rules:\n"
            "- NEVER translate honorifics such as 오빠 (Oppa), 형 (Hyung), 哥哥 (Gege), "
            "先輩 (Senpai), or お嬢様 (Ojou-sama) into English words like \"brother\"; keep "
            "the romanized form and use the category \"honorific\".\n"
            "- Keep proper nouns for people and places in their romanized form.\n"
            "- Keep genders consistent for repeated characters.\n\n"
            "Respond with a single JSON object:\n"
            '{"suggestedTerms": [{"sourceTerm": "...", "translatedTerm": "...", '
            '"suggestedCategory": "...", "entityType": "...", "gender": "...", '
            '"characterRole": "...", "language": "..."}]}\n\n'
            f"Source terms to analyze: {json.dumps(list(source_terms), ensure_ascii=False)}\n\n"
            f"Additional context: {context}"
        )

    def summary_prompt(self, translated_text: str, prior_summary: str | None) -> str:
        """Return the chapter memory summary prompt."""

        previous = (
            f"Previous summary: {prior_summary}" if prior_summary else "No previous summary exists."
        )
        excerpt = translated_text[:2000] + ("..." if len(translated_text) > 2000 else "")
        return (
            "As a story context memory assistant, analyze this translated chapter and create:\n"
            "1. A concise summary of 2-3 sentences.\n"
            "2. 2-4 tags for key elements (emotion, relationship, plot point).\n"
            "3. 1-3 key events worth remembering for future chapters.\n\n"
            f"{previous}\n\n"
            "Respond with JSON:\n"
            '{"summary": "...", "tags": ["..."], "keyEvents": ["..."]}\n\n'
            f"Translated text:\n{excerpt}"
        )

    def memory_filter_prompt(
        self,
        chapter_text: str,
        memories: Sequence[MemoryEntry],
        max_entries: int,
    ) -> str:
        """Return the prompt selecting the most relevant memory entries."""

        listing = "\n".join(
            f"- id={entry.entry_id}: {entry.summary} (tags: {', '.join(entry.tags) or 'none'})"
            for entry in memories
        )
        excerpt = chapter_text[:1500]
        return (
            f"As a memory filtering assistant, select the {max_entries} memory entries most "
            "relevant to translating this chapter.\n\n"
            f"Chapter excerpt:\n{excerpt}\n\n"
            f"Memory entries:\n{listing}\n\n"
            'Return only JSON: {"relevantMemoryIds": ["id1", "id2"]}'
        )
