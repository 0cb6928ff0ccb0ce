"""Glossary candidate detection, honorific rules, and term resolution."""

from .honorifics import KNOWN_HONORIFICS, detect_language, lookup_honorific
from .resolver import GlossaryResolver, enforce_honorific_policy, map_suggested_category

__all__ = [
    "GlossaryResolver",
    "KNOWN_HONORIFICS",
    "detect_language",
    "enforce_honorific_policy",
    "lookup_honorific",
    "map_suggested_category",
]
