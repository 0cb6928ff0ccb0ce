"""Honorific and relational-term knowledge for glossary suggestions.

Responsibilities:
- Detect the source language of a term by Unicode range.
- Recognize known Korean, Chinese, and Japanese honorifics and relational terms.
- Provide the transliteration that must be used instead of an English kinship word.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

from ..models.datatypes import Gender

_HANGUL_PATTERN = re.compile(r"[가-힣]")
_KANA_PATTERN = re.compile(r"[぀-ゟ゠-ヿ]")
_JAPANESE_HAN_PATTERN = re.compile(r"[一-龯]")
_CHINESE_PATTERN = re.compile(r"[一-鿿]")


@dataclass(frozen=True, slots=True)
class Honorific:
    """Known honorific with its preserved rendering.

    Attributes:
        term: Source-script honorific.
        transliteration: Romanized form used as the translated term.
        language: `Korean`, `Chinese`, or `Japanese`.
        category: Glossary term type for the honorific.
        gender: Gender implied by the term, when it implies one.
        notes: Short usage note for reviewers.
    """

    term: str
    transliteration: str
    language: str
    category: str
    gender: Gender | None = None
    notes: str = ""


_M = Gender.MALE
_F = Gender.FEMALE

# (term, transliteration, language, category, gender, notes)
_HONORIFIC_ROWS: tuple[tuple[str, str, str, str, Gender | None, str], ...] = (
    ("형", "Hyung", "Korean", "Honorific - Korean", _M, "Used by males for an older male."),
    ("오빠", "Oppa", "Korean", "Honorific - Korean", _M, "Used by females for an older male."),
    ("누나", "Noona", "Korean", "Honorific - Korean", _F, "Used by males for an older female."),
    ("언니", "Unnie", "Korean", "Honorific - Korean", _F, "Used by females for an older female."),
    ("아저씨", "Ajeossi", "Korean", "Honorific - Korean", _M, "Polite address for a middle-aged man."),
    ("선배", "Sunbae", "Korean", "Honorific - Korean", None, "Senior at school or work."),
    ("동생", "Dongsaeng", "Korean", "Family Relation", None, "Younger sibling or younger friend."),
    ("사장님", "Sajangnim", "Korean", "Formal Title", None, "Boss or business owner."),
    ("哥哥", "Gege", "Chinese", "Honorific - Chinese", _M, "Older brother."),
    ("姐姐", "Jiejie", "Chinese", "Honorific - Chinese", _F, "Older sister."),
    ("弟弟", "Didi", "Chinese", "Family Relation", _M, "Younger brother."),
    ("妹妹", "Meimei", "Chinese", "Family Relation", _F, "Younger sister."),
    ("师傅", "Shifu", "Chinese", "Formal Title", None, "Master of a skill or martial art."),
    ("老板", "Laoban", "Chinese", "Formal Title", None, "Boss."),
    ("大人", "Daren", "Chinese", "Formal Title", None, "Respectful address for a lord."),
    ("お兄ちゃん", "Onii-chan", "Japanese", "Honorific - Japanese", _M, "Older brother."),
    ("お姉ちゃん", "Onee-chan", "Japanese", "Honorific - Japanese", _F, "Older sister."),
    ("先生", "Sensei", "Japanese", "Formal Title", None, "Teacher, doctor, or master."),
    ("先輩", "Senpai", "Japanese", "Honorific - Japanese", None, "Senior in a hierarchy."),
    ("後輩", "Kouhai", "Japanese", "Honorific - Japanese", None, "Junior in a hierarchy."),
    ("お嬢様", "Ojou-sama", "Japanese", "Honorific - Japanese", _F, "Respectful address for a young lady."),
    ("様", "-sama", "Japanese", "Honorific - Japanese", None, "Highly respectful suffix."),
)

KNOWN_HONORIFICS: dict[str, Honorific] = {row[0]: Honorific(*row) for row in _HONORIFIC_ROWS}

# Suffixes that mark a name or title as honorific-bearing when the full token is unknown.
HONORIFIC_SUFFIXES: dict[str, str] = {
    "님": "Korean",
    "씨": "Korean",
    "様": "Japanese",
    "さん": "Japanese",
    "くん": "Japanese",
    "ちゃん": "Japanese",
    "殿": "Japanese",
}

# English kinship words that must never replace a preserved honorific.
LITERAL_KINSHIP_WORDS = frozenset(
    {
        "older brother",
        "older sister",
        "younger brother",
        "younger sister",
        "brother",
        "sister",
        "big brother",
        "big sister",
        "uncle",
        "senior",
        "junior",
        "boss",
        "master",
        "teacher",
        "miss",
        "young lady",
        "lord",
        "sir",
    }
)


def detect_language(term: str, source_language: str | None = None) -> str:
    """Detect a term's source language by Unicode range.

    Hangul maps to Korean and kana to Japanese. Han characters in the shared
    CJK block resolve to Japanese unless the series source language is Chinese;
    the remaining Han extension range resolves to Chinese.
    """

    if _HANGUL_PATTERN.search(term):
        return "Korean"
    if _KANA_PATTERN.search(term):
        return "Japanese"
    if _JAPANESE_HAN_PATTERN.search(term):
        if source_language is not None and source_language.strip().lower() == "chinese":
            return "Chinese"
        return "Japanese"
    if _CHINESE_PATTERN.search(term):
        return "Chinese"
    return "Unknown"


def lookup_honorific(term: str) -> Honorific | None:
    """Return the known honorific entry for an exact term, if any."""

    return KNOWN_HONORIFICS.get(term.strip())


def honorific_suffix_language(term: str) -> str | None:
    """Return the language of a trailing honorific suffix on a longer token."""

    stripped = term.strip()
    for suffix, language in HONORIFIC_SUFFIXES.items():
        if stripped.endswith(suffix) and len(stripped) > len(suffix):
            return language
    return None


def honorific_category(language: str) -> str:
    """Return the language-scoped honorific category label."""

    if language in {"Korean", "Chinese", "Japanese"}:
        return f"Honorific - {language}"
    return "Formal Title"


def is_literal_kinship_translation(translated_term: str) -> bool:
    """Return whether a translation is an English kinship/title word."""

    return translated_term.strip().lower() in LITERAL_KINSHIP_WORDS
