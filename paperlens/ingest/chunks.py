"""Turn selected sections into retrievable chunks with reverse indices."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from paperlens.identifiers import chunk_uuid
from paperlens.models import PaperChunk, PaperFigure, PaperReference, PaperSection


@dataclass
class ChunkBuild:
    chunks: List[PaperChunk] = field(default_factory=list)
    citation_to_chunks: Dict[str, List[str]] = field(default_factory=dict)
    figure_to_chunks: Dict[str, List[str]] = field(default_factory=dict)


def _index(mapping: Dict[str, List[str]], keys: Iterable[str], chunk_id: str) -> None:
    for key in keys:
        entries = mapping.setdefault(key, [])
        if chunk_id not in entries:
            entries.append(chunk_id)


def build_chunks(paper_id: str, sections: Sequence[PaperSection]) -> ChunkBuild:
    """One chunk per paragraph, in document order.

    The chunk id is the paragraph id (``{section_id}-p{n}`` when a paragraph
    has none); a repeated id gets a numeric suffix so ids stay unique and
    stable across runs over the same input. A paragraph without a page
    inherits the page of the one before it, the first one the section start.
    """

    build = ChunkBuild()
    seen: Dict[str, int] = {}
    for section in sections:
        page_number = section.page_start
        for index, paragraph in enumerate(section.paragraphs):
            chunk_id = paragraph.id or f"{section.id}-p{index + 1}"
            if chunk_id in seen:
                seen[chunk_id] += 1
                chunk_id = f"{chunk_id}-{seen[chunk_id]}"
            seen.setdefault(chunk_id, 1)

            if paragraph.page_number is not None:
                page_number = paragraph.page_number
            build.chunks.append(
                PaperChunk(
                    paper_id=paper_id,
                    chunk_id=chunk_id,
                    text=paragraph.text,
                    section=section.title,
                    page_number=page_number,
                    citations=list(paragraph.citations),
                    figure_ids=list(paragraph.figure_ids),
                )
            )
            _index(build.citation_to_chunks, paragraph.citations, chunk_id)
            _index(build.figure_to_chunks, paragraph.figure_ids, chunk_id)
    return build


def normalize_chunk_refs(paper_id: str, chunk_ids: Iterable[str]) -> Optional[List[str]]:
    """Map chunk ids to stable record UUIDs, de-duplicated; ``None`` when empty."""

    normalized: List[str] = []
    for chunk_id in chunk_ids:
        value = chunk_uuid(paper_id, chunk_id.strip()) if chunk_id and chunk_id.strip() else None
        if value and value not in normalized:
            normalized.append(value)
    return normalized or None


_Record = TypeVar("_Record", PaperFigure, PaperReference)


def attach_chunk_refs(
    paper_id: str, records: Sequence[_Record], mapping: Dict[str, List[str]]
) -> List[_Record]:
    """Return copies of figures or references with the chunks that mention them."""

    return [
        replace(
            record,
            chunk_ids=normalize_chunk_refs(paper_id, [*(record.chunk_ids or []), *mapping.get(record.id, [])]),
        )
        for record in records
    ]


__all__ = ["ChunkBuild", "attach_chunk_refs", "build_chunks", "normalize_chunk_refs"]
