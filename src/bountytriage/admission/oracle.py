"""Assessment oracle: the external model that judges whether a bounty is worth taking."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from bountytriage.errors.exceptions import OracleError

logger = logging.getLogger(__name__)


class AssessmentOracle(ABC):
    """Turns a free-text prompt into free-text content.

    The content is expected to hold a JSON object with ``shouldProcess``,
    ``confidence``, ``estimatedTimeMinutes`` and ``reason``.
    """

    oracle_type: str = "unknown"

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return the model's raw answer to ``prompt``.

        Raises:
            OracleError: if the backend could not produce an answer.
        """
        ...


class OllamaOracle(AssessmentOracle):
    """Calls a local Ollama server through ``POST /api/generate``."""

    oracle_type: str = "ollama"

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def complete(self, prompt: str) -> str:
        payload = {"model": self.model, "prompt": prompt, "stream": False}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/api/generate", json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as exc:
            raise OracleError(f"Ollama returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise OracleError(f"Ollama request failed: {exc}") from exc
        except ValueError as exc:
            raise OracleError("Ollama returned a non-JSON body") from exc

        content = body.get("response") if isinstance(body, dict) else None
        if not isinstance(content, str):
            raise OracleError("Ollama response has no 'response' text")

        logger.debug("Ollama answered with %d characters (model=%s)", len(content), self.model)
        return content
