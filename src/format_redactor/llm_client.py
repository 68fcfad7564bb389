"""Model client seam.

The engine only needs ``complete(system_prompt, user_prompt) -> str``.
Construct a client once and hand it to the Redactor; nothing here is a
process-wide singleton.

    client = OpenAIModelClient(model="gpt-4o-mini")
    redactor = Redactor(config, client=client)
"""

from __future__ import annotations
import logging
from typing import Protocol, runtime_checkable

from openai import OpenAI, OpenAIError

from .errors import TransportError

logger = logging.getLogger(__name__)


@runtime_checkable
class ModelClient(Protocol):
    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the model's text reply (may be empty)."""
        ...


class OpenAIModelClient:
    """Chat-completions client for any OpenAI-compatible endpoint."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 8192,
        timeout: float | None = None,
    ) -> None:
        # api_key=None lets the SDK read OPENAI_API_KEY
        try:
            self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        except OpenAIError as e:
            raise TransportError(f"Could not configure model client: {e}", cause=e) from e
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send one request; failures surface as TransportError, never retried."""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            logger.error(f"Model call to {self.model} failed: {e}")
            raise TransportError(f"Model API call failed: {e}", cause=e) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
