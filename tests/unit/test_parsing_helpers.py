"""Unit tests for shared parsing helpers."""

from __future__ import annotations

import pytest

from toonslate.parsing import (
    normalize_optional_string,
    parse_permissive_boolean,
    split_key_list,
)


def test_normalize_optional_string_strips_and_maps_blank_to_none() -> None:
    """Blank and missing values normalize to `None`; others are stripped."""

    assert normalize_optional_string(None) is None
    assert normalize_optional_string("   ") is None
    assert normalize_optional_string("  gemini  ") == "gemini"
    assert normalize_optional_string(3) == "3"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(True, True), ("yes", True), (" ON ", True), ("0", False), ("off", False), ("maybe", None)],
)
def test_parse_permissive_boolean_tokens(raw: object, expected: bool | None) -> None:
    """Permissive parser should accept common boolean tokens."""

    assert parse_permissive_boolean(raw) is expected


def test_split_key_list_dedupes_and_preserves_order() -> None:
    """Key lists split on commas and newlines and keep first appearance order."""

    assert split_key_list("k1, k2,\nk1,, k3 ") == ("k1", "k2", "k3")
    assert split_key_list([" a ", "b", "a"]) == ("a", "b")
    assert split_key_list(None) == ()
