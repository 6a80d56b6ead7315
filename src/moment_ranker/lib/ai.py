"""Client for the external embedding and text-generation services.

Both services are reached through one OpenAI-compatible HTTP API.  Every
call is bounded by a timeout and never raises: quota errors, network
failures and malformed payloads are logged and reported as ``None`` so the
ranking pipeline can fall back to a cheaper signal.
"""

import asyncio
import logging
import os

import httpx

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536
DEFAULT_COMPLETION_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT_SECONDS = 15.0

# Longest input sent to the embedding endpoint, in characters.
MAX_EMBEDDING_INPUT_CHARS = 8000


class AIClient:
    """Thin async wrapper around ``/embeddings`` and ``/chat/completions``."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        embedding_dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS,
        completion_model: str = DEFAULT_COMPLETION_MODEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.embedding_model = embedding_model
        self.embedding_dimensions = embedding_dimensions
        self.completion_model = completion_model
        self.timeout = timeout
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_env(cls) -> "AIClient":
        return cls(
            api_key=os.environ.get("AI_API_KEY") or None,
            base_url=os.environ.get("AI_BASE_URL", DEFAULT_BASE_URL),
            embedding_model=os.environ.get("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            embedding_dimensions=int(
                os.environ.get("EMBEDDING_DIMENSIONS", DEFAULT_EMBEDDING_DIMENSIONS)
            ),
            completion_model=os.environ.get("COMPLETION_MODEL", DEFAULT_COMPLETION_MODEL),
            timeout=float(os.environ.get("AI_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(self, path: str, payload: dict) -> dict | None:
        """POST *payload* and return the decoded JSON body, or ``None``."""
        if not self.enabled:
            return None

        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "authorization": f"Bearer {self.api_key}",
        }
        try:
            resp = await asyncio.wait_for(
                self._http.post(f"{self.base_url}{path}", headers=headers, json=payload),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("AI request to %s timed out after %ss", path, self.timeout)
            return None
        except httpx.HTTPError as exc:
            logger.warning("AI request to %s failed: %s", path, exc)
            return None

        if resp.status_code != 200:
            logger.warning("AI request to %s returned %d: %s", path, resp.status_code, resp.text[:200])
            return None
        try:
            data = resp.json()
        except ValueError:
            logger.warning("AI request to %s returned a non-JSON body", path)
            return None
        return data if isinstance(data, dict) else None

    async def embed(self, text: str) -> list[float] | None:
        """Return the embedding vector for *text*, or ``None`` on any failure."""
        if not text or not text.strip():
            return None

        data = await self._post(
            "/embeddings",
            {
                "model": self.embedding_model,
                "input": text.strip()[:MAX_EMBEDDING_INPUT_CHARS],
                "dimensions": self.embedding_dimensions,
            },
        )
        if data is None:
            return None
        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Embedding response missing data[0].embedding")
            return None
        if not isinstance(vector, list) or not vector:
            return None
        return [float(x) for x in vector]

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int = 500,
        json_response: bool = False,
    ) -> str | None:
        """Run one chat completion and return the message text, or ``None``."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.completion_model,
            "messages": messages,
            "max_completion_tokens": max_tokens,
        }
        if json_response:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post("/chat/completions", payload)
        if data is None:
            return None
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Completion response missing choices[0].message.content")
            return None
        if not isinstance(content, str) or not content.strip():
            return None
        return content.strip()
