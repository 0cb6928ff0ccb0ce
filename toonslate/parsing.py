"""Shared parsing helpers for runtime and stored value normalization."""

from __future__ import annotations


_TRUE_BOOLEAN_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_BOOLEAN_TOKENS = frozenset({"0", "false", "no", "off"})


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_permissive_boolean(value: object) -> bool | None:
    """Parse a permissive boolean token and return `None` for invalid values."""

    if isinstance(value, bool):
        return value

    normalized = normalize_optional_string(value)
    if normalized is None:
        return None

    token = normalized.lower()
    if token in _TRUE_BOOLEAN_TOKENS:
        return True
    if token in _FALSE_BOOLEAN_TOKENS:
        return False
    return None


def split_key_list(value: object) -> tuple[str, ...]:
    """Split a comma/newline separated credential list into unique non-empty tokens.

    Order of first appearance is preserved so round-robin rotation stays stable.
    """

    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        raw_tokens = [str(item) for item in value]
    else:
        raw_tokens = str(value).replace("\n", ",").split(",")

    keys: list[str] = []
    for token in raw_tokens:
        normalized = normalize_optional_string(token)
        if normalized is not None and normalized not in keys:
            keys.append(normalized)
    return tuple(keys)
