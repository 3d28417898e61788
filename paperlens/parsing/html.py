"""Extract sections and figures from ar5iv-rendered HTML."""

from __future__ import annotations

import re
from typing import List, Optional, Set
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from paperlens.models import HtmlDocument, PaperFigure, PaperSection, SectionParagraph
from paperlens.parsing.text import collapse_whitespace

ROOT_SELECTORS = ("article#document", "article#ltx_document", "body")
HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
PARAGRAPH_SELECTOR = ":scope > p, :scope > div.ltx_para > p"
FIGURE_SELECTOR = "figure, div.ltx_figure, div.figure"
LABEL_SELECTOR = ".ltx_tag, .figure-label, .ltx_figcaption_label"
CAPTION_SELECTOR = "figcaption, .ltx_caption, .figure-caption, .ltx_figcaption"

_FIGURE_TARGET = re.compile(r"(fig|sec|tab|equation)", re.IGNORECASE)


def _heading(section: Tag) -> Optional[Tag]:
    for child in section.find_all(True, recursive=False):
        if child.name in HEADING_TAGS:
            return child
        if child.name == "header":
            nested = child.find(list(HEADING_TAGS), recursive=False)
            if nested is not None:
                return nested
    return None


def _section_level(heading: Tag, depth_attr: Optional[str]) -> int:
    if heading.name and re.fullmatch(r"h\d", heading.name):
        return int(heading.name[1:])
    if depth_attr and depth_attr.strip().isdigit():
        return int(depth_attr) + 1
    return 1


def _classify_anchors(paragraph: Tag, figure_ids: Set[str]) -> tuple[List[str], List[str]]:
    citations: List[str] = []
    figures: List[str] = []
    for anchor in paragraph.select("a[href], a[data-bibtex-key]"):
        target = anchor.get("data-bibtex-key") or anchor.get("href") or anchor.get("data-target")
        if not target:
            continue
        if target.startswith("#"):
            cleaned = target[1:]
            if not cleaned:
                continue
            bucket = figures if cleaned in figure_ids or _FIGURE_TARGET.search(cleaned) else citations
        else:
            cleaned = target
            bucket = citations
        if cleaned not in bucket:
            bucket.append(cleaned)
    return citations, figures


def _paragraphs(section: Tag, section_id: str, figure_ids: Set[str]) -> List[SectionParagraph]:
    paragraphs: List[SectionParagraph] = []
    for index, element in enumerate(section.select(PARAGRAPH_SELECTOR)):
        text = collapse_whitespace(element.get_text(" "))
        if not text:
            continue
        citations, figures = _classify_anchors(element, figure_ids)
        paragraphs.append(
            SectionParagraph(
                id=f"{section_id}-p{index + 1}",
                text=text,
                citations=citations,
                figure_ids=figures,
            )
        )
    return paragraphs


def _figures(soup: BeautifulSoup, base_url: Optional[str]) -> List[PaperFigure]:
    figures: List[PaperFigure] = []
    seen: Set[str] = set()
    for index, element in enumerate(soup.select(FIGURE_SELECTOR)):
        figure_id = element.get("id") or f"figure-{index + 1}"
        if figure_id in seen:
            continue
        caption_el = element.select_one(CAPTION_SELECTOR)
        caption = collapse_whitespace(caption_el.get_text(" ")) if caption_el else ""
        if not caption:
            continue
        label_el = element.select_one(LABEL_SELECTOR)
        label = collapse_whitespace(label_el.get_text(" ")) if label_el else ""
        image = element.find("img")
        image_url = image.get("src") if image is not None else None
        if image_url and base_url:
            image_url = urljoin(base_url, image_url)
        seen.add(figure_id)
        figures.append(
            PaperFigure(id=figure_id, caption=caption, label=label or None, image_url=image_url)
        )
    return figures


def _root(soup: BeautifulSoup) -> Optional[Tag]:
    for selector in ROOT_SELECTORS:
        found = soup.select_one(selector)
        if found is not None:
            return found
    return None


def parse_html(html: str, *, base_url: Optional[str] = None) -> Optional[HtmlDocument]:
    """Parse mirror HTML. Returns ``None`` when there is no document to read."""

    if not html or not html.strip():
        return None

    soup = BeautifulSoup(html, "lxml")
    root = _root(soup)
    if root is None:
        return None

    figures = _figures(soup, base_url)
    figure_ids = {figure.id for figure in figures}

    sections: List[PaperSection] = []
    for index, element in enumerate(root.find_all("section")):
        section_id = element.get("id") or f"section-{index + 1}"
        heading = _heading(element)
        if heading is None:
            continue
        title = collapse_whitespace(heading.get_text(" "))
        if not title:
            continue
        paragraphs = _paragraphs(element, section_id, figure_ids)
        if not paragraphs:
            continue
        sections.append(
            PaperSection(
                id=section_id,
                title=title,
                level=_section_level(heading, element.get("data-depth")),
                paragraphs=paragraphs,
            )
        )

    return HtmlDocument(sections=sections, figures=figures)


__all__ = ["parse_html"]
