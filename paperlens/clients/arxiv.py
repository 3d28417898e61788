"""Client for the arXiv Atom API and PDF downloads."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

import requests
from lxml import etree

from paperlens.clients.base import BaseHttpClient, NotFoundError
from paperlens.identifiers import normalize_arxiv_id
from paperlens.models import PaperMetadata

logger = logging.getLogger(__name__)

ATOM_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}


def _collapse(value: Optional[str]) -> str:
    return " ".join((value or "").split())


def _iso_timestamp(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return value.strip()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


def build_user_agent(contact_email: Optional[str]) -> str:
    suffix = f" (+mailto:{contact_email})" if contact_email else ""
    return f"paperlens/0.1{suffix}"


def parse_atom_entry(xml_text: str, paper_id: str, *, pdf_base_url: str) -> Optional[PaperMetadata]:
    """Parse the first ``<entry>`` of an arXiv Atom feed into metadata."""

    try:
        root = etree.fromstring(xml_text.encode("utf-8"))
    except etree.XMLSyntaxError:
        logger.warning("arXiv feed for %s is not valid XML", paper_id)
        return None

    entry = root.find("atom:entry", namespaces=ATOM_NS)
    if entry is None:
        return None

    # The API answers unknown ids with an entry whose only content is an error title.
    entry_id = _collapse(entry.findtext("atom:id", namespaces=ATOM_NS))
    if "/api/errors" in entry_id:
        return None

    resolved_id = normalize_arxiv_id(entry_id.split("/abs/")[-1]) if "/abs/" in entry_id else None

    pdf_url = None
    for link in entry.findall("atom:link", namespaces=ATOM_NS):
        if link.get("title") == "pdf" and link.get("href"):
            pdf_url = link.get("href")
            break

    categories: List[str] = []
    primary = entry.find("arxiv:primary_category", namespaces=ATOM_NS)
    if primary is not None and primary.get("term"):
        categories.append(primary.get("term"))
    for category in entry.findall("atom:category", namespaces=ATOM_NS):
        term = category.get("term")
        if term and term not in categories:
            categories.append(term)

    authors = [
        _collapse(name.text)
        for name in entry.findall("atom:author/atom:name", namespaces=ATOM_NS)
        if _collapse(name.text)
    ]

    return PaperMetadata(
        paper_id=resolved_id or paper_id,
        title=_collapse(entry.findtext("atom:title", namespaces=ATOM_NS)),
        abstract=_collapse(entry.findtext("atom:summary", namespaces=ATOM_NS)),
        authors=authors,
        published_at=_iso_timestamp(entry.findtext("atom:published", namespaces=ATOM_NS)),
        updated_at=_iso_timestamp(entry.findtext("atom:updated", namespaces=ATOM_NS)),
        pdf_url=pdf_url or f"{pdf_base_url}/{paper_id}.pdf",
        primary_category=categories[0] if categories else None,
        categories=categories,
    )


class ArxivClient(BaseHttpClient):
    """Metadata lookups against ``export.arxiv.org`` plus raw PDF fetches."""

    BASE_URL = "https://export.arxiv.org/api/query"
    PDF_BASE_URL = "https://arxiv.org/pdf"

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        pdf_base_url: Optional[str] = None,
        timeout: float = 20.0,
        pdf_timeout: float = 20.0,
        contact_email: Optional[str] = None,
        max_attempts: int = 3,
    ) -> None:
        super().__init__(session=session, base_url=base_url, timeout=timeout, max_attempts=max_attempts)
        self.pdf_base_url = (pdf_base_url or self.PDF_BASE_URL).rstrip("/")
        self.pdf_timeout = pdf_timeout
        self.contact_email = contact_email

    def fetch_metadata(self, paper_id: str, *, contact_email: Optional[str] = None) -> Optional[PaperMetadata]:
        """Return metadata for *paper_id*, or ``None`` when arXiv has no such entry."""

        email = contact_email or self.contact_email
        params = {"id_list": paper_id, "mailto": email or ""}
        headers = {
            "Accept": "application/atom+xml",
            "User-Agent": build_user_agent(email),
        }
        try:
            response = self._request("GET", "", params=params, headers=headers)
        except NotFoundError:
            return None
        return parse_atom_entry(response.text, paper_id, pdf_base_url=self.pdf_base_url)

    def fetch_pdf(self, paper_id: str, *, contact_email: Optional[str] = None) -> bytes:
        """Download the PDF for *paper_id*."""

        response = self._request(
            "GET",
            f"{self.pdf_base_url}/{paper_id}.pdf",
            headers={
                "Accept": "application/pdf",
                "User-Agent": build_user_agent(contact_email or self.contact_email),
            },
            timeout=self.pdf_timeout,
        )
        return response.content


__all__ = ["ArxivClient", "parse_atom_entry", "build_user_agent"]
