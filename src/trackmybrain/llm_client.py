"""LLM service client used for completions and embeddings.

The memory assistant talks to the model through the LLMClient Protocol, so
tests and other providers can stand in for Groq.
"""

import base64
import mimetypes
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import unquote, urlparse

from groq import AsyncGroq

from .config import DEFAULT_EMBEDDING_MODEL, DEFAULT_MODEL, DEFAULT_VISION_MODEL


class LLMClient(Protocol):
    """Completion and embedding service."""

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Complete a prompt and return the text response."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for a text."""
        ...

    async def describe_image(
        self, image_uri: str, prompt: str, system: str | None = None
    ) -> str:
        """Describe an image in answer to a prompt."""
        ...


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_embedding(response: Any) -> list[float]:
    """Pull the embedding vector out of an embedding service response.

    Accepts an OpenAI-style ``data[0].embedding`` response as well as bare
    ``{"embedding": [...]}`` and ``{"embeddings": [{"embedding": [...]}]}``
    payloads. Returns an empty list when no vector is present.
    """
    if response is None:
        return []

    for container in ("data", "embeddings"):
        items = _field(response, container)
        if isinstance(items, (list, tuple)) and items:
            vector = _field(items[0], "embedding")
            if isinstance(vector, (list, tuple)) and vector:
                return [float(v) for v in vector]

    vector = _field(response, "embedding")
    if isinstance(vector, (list, tuple)):
        return [float(v) for v in vector]
    return []


def image_url(image_uri: str) -> str:
    """Turn an image reference into a URL the vision model accepts.

    http(s) and data: URLs are passed through. Local paths and file:// URIs
    are read and inlined as base64 data URLs.
    """
    scheme = urlparse(image_uri).scheme.lower()
    if scheme in ("http", "https", "data"):
        return image_uri

    path = Path(unquote(urlparse(image_uri).path)) if scheme == "file" else Path(image_uri)
    mime, _ = mimetypes.guess_type(path.name)
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime or 'image/jpeg'};base64,{encoded}"


class GroqLLMClient:
    """LLMClient implementation that wraps AsyncGroq.

    Example:
        from groq import AsyncGroq
        from trackmybrain.llm_client import GroqLLMClient

        groq = AsyncGroq(api_key="...")
        llm = GroqLLMClient(groq, model="llama-3.1-70b-versatile")
        vector = await llm.embed("bought oat milk")
    """

    def __init__(
        self,
        client: AsyncGroq,
        model: str = DEFAULT_MODEL,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        vision_model: str = DEFAULT_VISION_MODEL,
    ) -> None:
        """Initialize the Groq client wrapper.

        Args:
            client: The AsyncGroq client instance to wrap.
            model: The model to use for completions.
            embedding_model: The model to use for embeddings.
            vision_model: The model to use for image descriptions.
        """
        self._client = client
        self._model = model
        self._embedding_model = embedding_model
        self._vision_model = vision_model

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Complete a prompt and return the text response.

        Args:
            prompt: The user prompt to complete.
            system: Optional system prompt to set context.

        Returns:
            The LLM's text response.
        """
        messages: list[dict[str, Any]] = []

        if system:
            messages.append({"role": "system", "content": system})

        messages.append({"role": "user", "content": prompt})

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
        )

        return response.choices[0].message.content or ""

    async def embed(self, text: str) -> list[float]:
        """Embed a text with the configured embedding model."""
        response = await self._client.embeddings.create(
            model=self._embedding_model,
            input=text,
        )
        return extract_embedding(response)

    async def describe_image(
        self, image_uri: str, prompt: str, system: str | None = None
    ) -> str:
        """Ask the vision model about an image.

        Args:
            image_uri: http(s) or data: URL, file:// URI or local path.
            prompt: The question about the image.
            system: Optional system prompt to set context.

        Returns:
            The LLM's text response.

        Raises:
            OSError: If a local image cannot be read.
        """
        messages: list[dict[str, Any]] = []

        if system:
            messages.append({"role": "system", "content": system})

        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_url(image_uri)}},
                ],
            }
        )

        response = await self._client.chat.completions.create(
            model=self._vision_model,
            messages=messages,
        )

        return response.choices[0].message.content or ""

    @property
    def model(self) -> str:
        """Return the completion model being used."""
        return self._model

    @property
    def embedding_model(self) -> str:
        """Return the embedding model being used."""
        return self._embedding_model

    @property
    def vision_model(self) -> str:
        """Return the vision model being used."""
        return self._vision_model
