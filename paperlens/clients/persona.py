"""Persona system prompts from a Kontext-style context service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .base import BaseHttpClient, ClientError

logger = logging.getLogger(__name__)

QA_TASK = "qa_research_paper"
SUMMARY_TASK = "summarize_research_paper"
SELECTION_TASK = "inline_research_summary"


@dataclass
class PersonaOptions:
    user_id: Optional[str] = None
    persona_id: Optional[str] = None


class PersonaPromptClient(BaseHttpClient):
    """Look up a persona-specific system prompt.

    Lookups are best effort: without an API key nothing is requested, and any
    failure is logged and yields ``None``.
    """

    BASE_URL = "https://api.kontext.dev"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: Optional[str] = None,
        path: str = "/v1/context/get",
        session: Optional[requests.Session] = None,
        timeout: float = 8.0,
    ) -> None:
        super().__init__(session=session, base_url=base_url, timeout=timeout, max_attempts=1)
        self.api_key = api_key
        self.path = path if path.startswith("/") else f"/{path}"

    def fetch_system_prompt(
        self, task: str, *, paper_id: Optional[str] = None, persona: Optional[PersonaOptions] = None
    ) -> Optional[str]:
        if not self.api_key:
            return None
        persona = persona or PersonaOptions()
        body: Dict[str, Any] = {
            "task": task,
            "paperId": paper_id,
            "personaId": persona.persona_id,
            "userId": persona.user_id,
            "include": ["systemPrompt"],
        }
        try:
            response = self._request(
                "POST",
                self.path,
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            data = response.json()
        except (ClientError, ValueError) as exc:
            logger.warning("Persona prompt lookup failed: %s", exc)
            return None

        if not isinstance(data, dict):
            return None
        prompt = data.get("systemPrompt")
        if not isinstance(prompt, str):
            prompt = data.get("system_prompt")
        if not isinstance(prompt, str):
            return None
        return prompt.strip() or None


__all__ = ["PersonaOptions", "PersonaPromptClient", "QA_TASK", "SELECTION_TASK", "SUMMARY_TASK"]
