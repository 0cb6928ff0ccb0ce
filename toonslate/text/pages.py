"""Page-delimited chapter document formatting.

Responsibilities:
- Combine extracted pages into one document wrapped in `=== Page N ===` /
  `=== End Page N ===` delimiter pairs.
- Split delimited documents back into pages.
- Normalize documents: collapse blank-line runs, renumber pages `1..K`, and
  drop exact-duplicate pages while keeping the first occurrence.

The formatter is idempotent: `format_pages(split_document(doc)) == doc` for any
document it produced.
"""

from __future__ import annotations

import re
from typing import Iterable

from ..models.datatypes import Page

PAGE_MARKER_PATTERN = re.compile(r"=== Page \d+ ===")

_PAGE_HEADER_PATTERN = re.compile(r"=== Page (\d+) ===")
_PAGE_END_PATTERN = re.compile(r"=== End Page \d+ ===")
_BRACKETED_HEADER_PATTERN = re.compile(r"\[=== Page (\d+) ===\]")
_BLANK_RUN_PATTERN = re.compile(r"\n{3,}")


def page_header(page_number: int) -> str:
    """Return the literal opening delimiter for a page."""

    return f"=== Page {page_number} ==="


def page_footer(page_number: int) -> str:
    """Return the literal closing delimiter for a page."""

    return f"=== End Page {page_number} ==="


def collapse_blank_lines(text: str) -> str:
    """Collapse runs of three or more newlines into exactly two."""

    return _BLANK_RUN_PATTERN.sub("\n\n", text)


def clean_page_headers(text: str) -> str:
    """Rewrite bracketed `[=== Page X ===]` headers into the canonical form."""

    return _BRACKETED_HEADER_PATTERN.sub(r"=== Page \1 ===", text)


def normalize_page_text(text: str) -> str:
    """Normalize page content: unify newlines, trim line ends, collapse blank runs."""

    unified = text.replace("\r\n", "\n").replace("\r", "\n")
    trimmed = "\n".join(line.rstrip() for line in unified.split("\n"))
    return collapse_blank_lines(trimmed).strip()


def _format_block(page_number: int, content: str) -> str:
    """Render one delimited page block."""

    if not content:
        return f"{page_header(page_number)}\n\n{page_footer(page_number)}"
    return f"{page_header(page_number)}\n\n{content}\n\n{page_footer(page_number)}"


def format_pages(pages: Iterable[Page]) -> str:
    """Combine pages into a normalized delimited document.

    Pages are ordered by page number with ties kept in input order, duplicates
    (identical normalized content) are dropped, and output pages are renumbered
    sequentially starting at 1.
    """

    ordered = sorted(enumerate(pages), key=lambda item: (item[1].page_number, item[0]))
    seen_contents: set[str] = set()
    blocks: list[str] = []
    for _, page in ordered:
        content = normalize_page_text(page.extracted_text)
        if content in seen_contents:
            continue
        seen_contents.add(content)
        blocks.append(_format_block(len(blocks) + 1, content))
    return "\n\n".join(blocks)


def split_document(text: str) -> list[Page]:
    """Split a delimited document into pages using the page-marker regex.

    Closing delimiters are optional so model output that only carries opening
    headers still splits. Text without any marker becomes a single page, and a
    non-empty preamble before the first marker is folded into the first page.
    """

    normalized = clean_page_headers(text.replace("\r\n", "\n"))
    headers = list(_PAGE_HEADER_PATTERN.finditer(normalized))
    if not headers:
        content = normalize_page_text(_PAGE_END_PATTERN.sub("", normalized))
        return [Page(page_number=1, extracted_text=content)] if content else []

    preamble = normalize_page_text(_PAGE_END_PATTERN.sub("", normalized[: headers[0].start()]))
    pages: list[Page] = []
    for index, match in enumerate(headers):
        end = headers[index + 1].start() if index + 1 < len(headers) else len(normalized)
        body = _PAGE_END_PATTERN.sub("", normalized[match.end() : end])
        content = normalize_page_text(body)
        if index == 0 and preamble:
            content = normalize_page_text(f"{preamble}\n\n{content}")
        pages.append(Page(page_number=int(match.group(1)), extracted_text=content))
    return pages


def normalize_document(text: str) -> str:
    """Re-split and re-format a document so delimiters and numbering are canonical."""

    return format_pages(split_document(text))


def count_pages(text: str) -> int:
    """Return the number of page headers present in a document."""

    return len(PAGE_MARKER_PATTERN.findall(text))
