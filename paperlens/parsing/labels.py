"""Figure and table label handling.

Sources never agree on figure identifiers, so cross-referencing works on a
normalized key of the form ``kind:alnum`` (``figure:3a``, ``table:2``). This
module finds captions in raw page text, derives keys from labels, ids and
captions, and finds free-text mentions inside paragraphs.
"""

from __future__ import annotations

import re
from typing import List, Optional

from paperlens.models import CaptionKind, CaptionMatch, PaperFigure
from paperlens.parsing.text import collapse_whitespace

_CAPTION_TAIL = r"[\s:.\-]*([\s\S]+?)(?=\n{2,}|(?:Figure|Fig\.?)\s+\d+|Table\s+\d+|$)"

CAPTION_PATTERNS = {
    "figure": re.compile(r"(?:Figure|Fig\.?)\s+(\d+(?:[A-Za-z\-]*)?)" + _CAPTION_TAIL, re.IGNORECASE),
    "table": re.compile(r"Table\s+(\d+(?:[A-Za-z\-]*)?)" + _CAPTION_TAIL, re.IGNORECASE),
}

MENTION_PATTERNS = {
    "figure": re.compile(r"(?:Figure|Fig\.?)\s+([A-Za-z0-9.\-]+)", re.IGNORECASE),
    "table": re.compile(r"Table\s+([A-Za-z0-9.\-]+)", re.IGNORECASE),
}

_LABEL_PATTERNS = {
    "figure": re.compile(r"(?:Figure|Fig\.?)\s*([A-Za-z0-9.\-]+)", re.IGNORECASE),
    "table": re.compile(r"Table\s*([A-Za-z0-9.\-]+)", re.IGNORECASE),
}
_BARE_LABEL = re.compile(r"^[a-z0-9.\-]+$", re.IGNORECASE)
_ID_PATTERNS = {
    "figure": re.compile(r"(?:fig|figure)[^0-9a-z]*([0-9a-z.\-]+)", re.IGNORECASE),
    "table": re.compile(r"(?:tab|table)[^0-9a-z]*([0-9a-z.\-]+)", re.IGNORECASE),
}
_CAPTION_PREFIX = re.compile(r"^(figure|fig\.?|table)\s+([0-9a-z.\-]+)", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_TRAILING_PUNCT = re.compile(r"[.\-]+$")

LABEL_PREFIX = {"figure": "Figure", "table": "Table"}


def normalize_reference(kind: CaptionKind, raw: str) -> str:
    """Return the lookup key for a label token, e.g. ``("figure", "3a") -> "figure:3a"``."""

    return f"{kind}:{_NON_ALNUM.sub('', raw.lower())}"


def _kind_of(word: str) -> CaptionKind:
    return "table" if word.lower().startswith("tab") else "figure"


def build_caption_matches(text: str, kind: CaptionKind, page_number: int) -> List[CaptionMatch]:
    """Find ``kind`` captions in one page of text."""

    matches: List[CaptionMatch] = []
    for found in CAPTION_PATTERNS[kind].finditer(text):
        number = (found.group(1) or "").strip()
        caption = collapse_whitespace(found.group(2))
        if not caption:
            continue
        normalized = normalize_reference(kind, number or f"{page_number}-{len(matches) + 1}")
        slug = normalized.split(":", 1)[1]
        match_id = f"{kind}-{slug}" if slug else f"{kind}-p{page_number}-{len(matches) + 1}"
        label = f"{LABEL_PREFIX[kind]} {number}" if number else LABEL_PREFIX[kind]
        matches.append(
            CaptionMatch(
                id=match_id,
                kind=kind,
                label=label,
                number=number,
                caption=caption,
                page_number=page_number,
                normalized_label=normalized,
            )
        )
    return matches


def mention_keys(text: str) -> List[str]:
    """Normalized keys for every figure/table mention in paragraph text, in order."""

    keys: List[str] = []
    for kind in ("figure", "table"):
        for found in MENTION_PATTERNS[kind].finditer(text):
            token = _TRAILING_PUNCT.sub("", found.group(1))
            if not token:
                continue
            key = normalize_reference(kind, token)  # type: ignore[arg-type]
            if key not in keys:
                keys.append(key)
    return keys


def figure_keys(figure: PaperFigure) -> List[str]:
    """Every normalized key a figure record can be matched under, most specific first."""

    keys: List[str] = []

    def push(kind: CaptionKind, raw: Optional[str]) -> None:
        if not raw:
            return
        key = normalize_reference(kind, raw)
        if not key.endswith(":") and key not in keys:
            keys.append(key)

    label = (figure.label or "").strip()
    if label:
        figure_match = _LABEL_PATTERNS["figure"].search(label)
        table_match = _LABEL_PATTERNS["table"].search(label)
        if figure_match:
            push("figure", figure_match.group(1))
        if table_match:
            push("table", table_match.group(1))
        if not figure_match and not table_match and _BARE_LABEL.match(label):
            push("figure", label)

    for kind in ("figure", "table"):
        found = _ID_PATTERNS[kind].search(figure.id)
        if found:
            push(kind, found.group(1))  # type: ignore[arg-type]

    caption = (figure.caption or "").strip()
    if caption:
        found = _CAPTION_PREFIX.match(caption)
        if found:
            push(_kind_of(found.group(1)), found.group(2))

    return keys


__all__ = [
    "CAPTION_PATTERNS",
    "MENTION_PATTERNS",
    "build_caption_matches",
    "figure_keys",
    "mention_keys",
    "normalize_reference",
]
