"""Whitespace normalization shared by the extractors."""

from __future__ import annotations

import re

_INLINE_SPACE = re.compile(r"[ \t\f\v]+")
_SPACE_AROUND_NEWLINE = re.compile(r" *\n *")
_BLANK_RUN = re.compile(r"\n{3,}")


def collapse_whitespace(text: str | None) -> str:
    """Collapse every whitespace run (newlines included) to a single space."""

    if not text:
        return ""
    return " ".join(text.split())


def normalize_page_text(text: str | None) -> str:
    """Tidy page text while keeping paragraph breaks.

    Runs of spaces and tabs collapse to one space, spaces around newlines are
    dropped and three or more newlines shrink to a single blank line.
    """

    if not text:
        return ""
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _INLINE_SPACE.sub(" ", cleaned)
    cleaned = _SPACE_AROUND_NEWLINE.sub("\n", cleaned)
    cleaned = _BLANK_RUN.sub("\n\n", cleaned)
    return cleaned.strip()


__all__ = ["collapse_whitespace", "normalize_page_text"]
