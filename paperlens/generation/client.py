"""Structured JSON generation through a chat-completions model."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from openai import OpenAI, OpenAIError

from paperlens.exceptions import GenerationError, GenerationSchemaViolation

logger = logging.getLogger(__name__)


class GenerationClient(Protocol):
    def complete(self, system_prompt: str, user_prompt: str, schema: Dict[str, Any], *, name: str) -> str:
        """Return the model's JSON reply as text."""


class OpenAIGenerationClient:
    """Chat completions constrained by a strict JSON schema response format."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        temperature: float = 0.3,
        client: Any = None,
    ) -> None:
        if client is None:
            client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self.client = client
        self.model = model
        self.temperature = temperature

    def complete(self, system_prompt: str, user_prompt: str, schema: Dict[str, Any], *, name: str) -> str:
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": name, "schema": schema, "strict": True},
                },
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except OpenAIError as exc:
            raise GenerationError(f"Generation request failed: {exc}") from exc

        if not completion.choices:
            raise GenerationSchemaViolation("Generation response contained no choices")
        choice = completion.choices[0]
        if choice.finish_reason and choice.finish_reason != "stop":
            raise GenerationSchemaViolation(f"Generation finished with reason: {choice.finish_reason}")
        content = choice.message.content if choice.message else None
        if not isinstance(content, str) or not content.strip():
            raise GenerationSchemaViolation("Generation response did not include content")
        logger.debug("Generated %d characters for %s", len(content), name)
        return content.strip()


__all__ = ["GenerationClient", "OpenAIGenerationClient"]
