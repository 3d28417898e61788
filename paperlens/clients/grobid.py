"""Client wrapper for interacting with a GROBID service."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Union

from .base import BaseHttpClient


class GrobidClient(BaseHttpClient):
    """Submit PDFs to GROBID and return the TEI XML it produces.

    Header and citation consolidation are on by default and raw citation
    strings are requested, so bibliography entries keep their DOI and URL
    ``<idno>`` elements whenever GROBID can resolve them.
    """

    BASE_URL = "http://localhost:8070"

    def process_fulltext(
        self,
        pdf: Union[bytes, str, Path],
        *,
        consolidate_header: bool = True,
        consolidate_citations: bool = True,
        include_raw_citations: bool = True,
    ) -> str:
        """Process a PDF and return TEI XML.

        Args:
            pdf: Raw PDF bytes or a filesystem path to the PDF.
            consolidate_header: Whether to consolidate header metadata.
            consolidate_citations: Whether to consolidate citation metadata.
            include_raw_citations: Whether to keep raw citation strings.

        Returns:
            The TEI XML string returned by GROBID.
        """

        filename, pdf_bytes = self._normalize_pdf_input(pdf)
        data: Dict[str, Any] = {
            "consolidateHeader": "1" if consolidate_header else "0",
            "consolidateCitations": "1" if consolidate_citations else "0",
            "includeRawCitations": "1" if include_raw_citations else "0",
        }
        files = {"input": (filename, pdf_bytes, "application/pdf")}

        response = self._request(
            "POST",
            "/api/processFulltextDocument",
            data=data,
            files=files,
            headers={"Accept": "application/xml"},
        )
        return response.text

    @staticmethod
    def _normalize_pdf_input(pdf: Union[bytes, str, Path]) -> tuple[str, bytes]:
        if isinstance(pdf, (str, Path)):
            pdf_path = Path(pdf)
            return pdf_path.name, pdf_path.read_bytes()
        return "paper.pdf", pdf


__all__ = ["GrobidClient"]
