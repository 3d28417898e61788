"""Client for the ar5iv HTML mirror of arXiv papers."""

from __future__ import annotations

from .base import BaseHttpClient


class Ar5ivClient(BaseHttpClient):
    """Fetch rendered HTML for an arXiv id. Missing renders raise ``NotFoundError``."""

    BASE_URL = "https://ar5iv.org/html"

    def html_url(self, paper_id: str) -> str:
        return f"{self.base_url}/{paper_id}"

    def fetch_html(self, paper_id: str) -> str:
        response = self._request("GET", f"/{paper_id}", headers={"Accept": "text/html"})
        return response.text


__all__ = ["Ar5ivClient"]
