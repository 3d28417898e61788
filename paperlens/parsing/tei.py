"""Parse GROBID TEI XML into sections, references and figures."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from lxml import etree

from paperlens.exceptions import ParseError
from paperlens.models import PaperFigure, PaperReference, PaperSection, SectionParagraph, TeiDocument
from paperlens.parsing.text import collapse_whitespace

NSMAP = {"tei": "http://www.tei-c.org/ns/1.0"}
XML_ID = "{http://www.w3.org/XML/1998/namespace}id"

MAX_SECTION_LEVEL = 6

_YEAR_PATTERN = re.compile(r"(\d{4})")


def _normalize_text(element: Optional[etree._Element]) -> str:
    """Return collapsed, stripped text content for an element."""

    if element is None:
        return ""
    return collapse_whitespace(" ".join(element.itertext()))


def _node_id(element: etree._Element, prefix: str, index: int) -> str:
    for attribute in (XML_ID, "id", "n"):
        value = element.get(attribute)
        if value:
            return value
    return f"{prefix}-{index + 1}"


def _inline_refs(element: etree._Element) -> tuple[List[str], List[str]]:
    """Split inline ``<ref>`` targets into citation ids and figure ids by their ``type``."""

    citations: List[str] = []
    figure_ids: List[str] = []
    for ref in element.iter("{%s}ref" % NSMAP["tei"]):
        target = ref.get("target") or ""
        if not target.startswith("#"):
            continue
        ref_type = (ref.get("type") or "").lower()
        key = target[1:]
        if ref_type == "bibr":
            if key not in citations:
                citations.append(key)
        elif "figure" in ref_type or ref_type == "table":
            if key not in figure_ids:
                figure_ids.append(key)
    return citations, figure_ids


def _paragraph(element: etree._Element, section_id: str, index: int) -> Optional[SectionParagraph]:
    text = _normalize_text(element)
    if not text:
        return None
    citations, figure_ids = _inline_refs(element)
    return SectionParagraph(
        id=f"{section_id}-p{index + 1}",
        text=text,
        citations=citations,
        figure_ids=figure_ids,
    )


def parse_sections(body: etree._Element) -> List[PaperSection]:
    """Walk nested ``<div>`` elements depth-first, keeping headed divs with prose."""

    sections: List[PaperSection] = []

    def visit(div: etree._Element, level: int) -> None:
        section_id = _node_id(div, "section", len(sections))
        head = _normalize_text(div.find("tei:head", namespaces=NSMAP))
        paragraphs: List[SectionParagraph] = []
        for element in div.findall("tei:p", namespaces=NSMAP):
            paragraph = _paragraph(element, section_id, len(paragraphs))
            if paragraph is not None:
                paragraphs.append(paragraph)
        if head and paragraphs:
            sections.append(PaperSection(id=section_id, title=head, level=level, paragraphs=paragraphs))
        for child in div.findall("tei:div", namespaces=NSMAP):
            visit(child, min(level + 1, MAX_SECTION_LEVEL))

    for root_div in body.findall("tei:div", namespaces=NSMAP):
        visit(root_div, 1)
    return sections


def _authors(container: Optional[etree._Element]) -> List[str]:
    if container is None:
        return []
    names: List[str] = []
    for author in container.findall("tei:author", namespaces=NSMAP):
        pers_name = author.find("tei:persName", namespaces=NSMAP)
        name = _normalize_text(pers_name if pers_name is not None else author)
        if name:
            names.append(name)
    return names


def _idnos(bibl: etree._Element) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for idno in bibl.iter("{%s}idno" % NSMAP["tei"]):
        id_type = (idno.get("type") or "").lower()
        text = _normalize_text(idno)
        if id_type and text and id_type not in values:
            values[id_type] = text
    return values


def _reference(bibl: etree._Element, index: int) -> PaperReference:
    analytic = bibl.find("tei:analytic", namespaces=NSMAP)
    monogr = bibl.find("tei:monogr", namespaces=NSMAP)

    title = None
    for container in (analytic, monogr, bibl):
        if container is None:
            continue
        title = _normalize_text(container.find("tei:title", namespaces=NSMAP)) or None
        if title:
            break

    authors = _authors(analytic) or _authors(monogr)

    year = None
    for date in bibl.iter("{%s}date" % NSMAP["tei"]):
        candidate = date.get("when") or _normalize_text(date)
        match = _YEAR_PATTERN.search(candidate or "")
        if match:
            year = match.group(1)
            break

    source = None
    if monogr is not None:
        source = _normalize_text(monogr.find("tei:title", namespaces=NSMAP)) or None

    idnos = _idnos(bibl)
    return PaperReference(
        id=_node_id(bibl, "ref", index),
        title=title,
        authors=authors,
        year=year,
        source=source,
        doi=idnos.get("doi"),
        url=idnos.get("url") or idnos.get("uri") or idnos.get("link"),
    )


def parse_references(root: etree._Element) -> List[PaperReference]:
    entries = root.iterfind(".//tei:back//tei:biblStruct", namespaces=NSMAP)
    return [_reference(bibl, index) for index, bibl in enumerate(entries)]


def parse_figures(body: etree._Element) -> List[PaperFigure]:
    """Collect ``<figure>`` elements (tables included) that carry a caption."""

    figures: List[PaperFigure] = []
    for index, figure in enumerate(body.iter("{%s}figure" % NSMAP["tei"])):
        caption = ""
        for tag in ("tei:figDesc", "tei:caption", "tei:head"):
            caption = _normalize_text(figure.find(tag, namespaces=NSMAP))
            if caption:
                break
        if not caption:
            continue
        label = _normalize_text(figure.find("tei:head", namespaces=NSMAP)) or None
        graphic = figure.find("tei:graphic", namespaces=NSMAP)
        figures.append(
            PaperFigure(
                id=_node_id(figure, "figure", index),
                caption=caption,
                label=label,
                image_url=graphic.get("url") if graphic is not None else None,
            )
        )
    return figures


def _page_count(root: etree._Element) -> Optional[int]:
    for measure in root.iterfind(".//tei:extent/tei:measure", namespaces=NSMAP):
        if (measure.get("unit") or "").lower() != "pages":
            continue
        value = measure.get("quantity") or _normalize_text(measure)
        if value and value.isdigit():
            return int(value)
    return None


def parse_tei(tei_xml: str) -> Optional[TeiDocument]:
    """Parse TEI XML. Empty input yields ``None``; malformed XML raises :class:`ParseError`."""

    if not tei_xml or not tei_xml.strip():
        return None
    try:
        root = etree.fromstring(tei_xml.encode("utf-8"))
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise ParseError("Invalid TEI XML", source="grobid") from exc

    body = root.find(".//tei:text/tei:body", namespaces=NSMAP)
    if body is None:
        raise ParseError("TEI document is missing <text><body>", source="grobid")

    return TeiDocument(
        sections=parse_sections(body),
        references=parse_references(root),
        figures=parse_figures(body),
        page_count=_page_count(root),
    )


__all__ = ["NSMAP", "parse_tei", "parse_sections", "parse_references", "parse_figures"]
