"""OpenAI client wrapper with retry logic for embeddings and streamed chat."""

import hashlib
import os
import re
from typing import Any, AsyncIterator

import numpy as np
from openai import AsyncOpenAI, OpenAIError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..observability.logger import get_logger

logger = get_logger(__name__)

# Chat Completions accepts at most four stop sequences
MAX_STOP_SEQUENCES = 4

_TOKEN = re.compile(r"[a-z0-9#+]+")


def hashed_embedding(text: str, dimensions: int) -> list[float]:
    """Deterministic bag-of-words vector used in test mode.

    Texts sharing words get positive cosine similarity, so offline runs
    still produce meaningful rankings.
    """
    vec = np.zeros(dimensions, dtype=np.float32)
    for token in _TOKEN.findall(text.lower()):
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        vec[int.from_bytes(digest[:4], "little") % dimensions] += 1.0
    norm = float(np.linalg.norm(vec))
    if norm == 0.0:
        vec[0] = 1.0
        norm = 1.0
    return (vec / norm).tolist()


class OpenAIClient:
    """Wrapper for OpenAI API with retry logic."""

    def __init__(
        self,
        api_key: str | None = None,
        chat_model: str = "gpt-4o-mini",
        embedding_model: str = "text-embedding-3-small",
        embedding_dimensions: int | None = 768,
        timeout: int = 30,
        max_retries: int = 2,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            chat_model: Model used for reply generation
            embedding_model: Model used for embeddings
            embedding_dimensions: Requested embedding size (must match stored vectors)
            timeout: Request timeout in seconds
            max_retries: Maximum number of SDK-level retries
        """
        self.test_mode = bool(os.getenv("CVASSIST_TEST_MODE"))
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key and not self.test_mode:
            raise ValueError("OpenAI API key must be provided or set in OPENAI_API_KEY env var")

        self.chat_model = chat_model
        self.embedding_model = embedding_model
        self.embedding_dimensions = embedding_dimensions
        self.timeout = timeout
        self.max_retries = max_retries

        self.client = None
        if not self.test_mode:
            self.client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=max_retries,
            )

        logger.info(
            "openai_client_initialized",
            chat_model=chat_model,
            embedding_model=embedding_model,
            test_mode=self.test_mode,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(OpenAIError),
        reraise=True,
    )
    async def generate_embedding(self, text: str) -> tuple[list[float], dict[str, Any]]:
        """Generate a text embedding.

        Args:
            text: Text to embed

        Returns:
            Tuple of (embedding vector, metadata with usage info)

        Raises:
            OpenAIError: If API call fails after retries
        """
        logger.debug("generating_embedding", model=self.embedding_model, text_length=len(text))

        if self.test_mode:
            dim = self.embedding_dimensions or 64
            return hashed_embedding(text, dim), {"tokens_used": 0, "model": self.embedding_model, "mock": True}

        try:
            kwargs: dict[str, Any] = {"model": self.embedding_model, "input": text}
            if self.embedding_dimensions:
                kwargs["dimensions"] = self.embedding_dimensions

            response = await self.client.embeddings.create(**kwargs)
            embedding = response.data[0].embedding

            usage_metadata = {
                "tokens_used": response.usage.total_tokens,
                "model": self.embedding_model,
                "dimensions": len(embedding),
            }
            logger.info(
                "embedding_generated",
                tokens=usage_metadata["tokens_used"],
                dimensions=usage_metadata["dimensions"],
            )
            return embedding, usage_metadata

        except OpenAIError as e:
            logger.error("openai_embedding_error", error=str(e), model=self.embedding_model, exc_info=True)
            raise

    async def embed(self, text: str) -> list[float]:
        embedding, _ = await self.generate_embedding(text)
        return embedding

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(OpenAIError),
        reraise=True,
    )
    async def _open_stream(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        stop: list[str] | None,
    ) -> Any:
        try:
            return await self.client.chat.completions.create(
                model=self.chat_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                stop=(stop or [])[:MAX_STOP_SEQUENCES] or None,
                stream=True,
            )
        except OpenAIError as e:
            logger.error("openai_completion_error", error=str(e), model=self.chat_model, exc_info=True)
            raise

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 80,
        stop: list[str] | None = None,
    ) -> AsyncIterator[str]:
        """Stream a chat completion as text chunks.

        The returned async generator must be drained (or closed) by the
        caller; closing it closes the underlying HTTP stream.
        """
        if self.test_mode:
            return self._fake_stream(user_prompt)

        stream = await self._open_stream(system_prompt, user_prompt, max_tokens, stop)
        return self._iter_stream(stream)

    async def _iter_stream(self, stream: Any) -> AsyncIterator[str]:
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        finally:
            await stream.close()

    async def _fake_stream(self, user_prompt: str) -> AsyncIterator[str]:
        match = re.search(r"^1\. (.+?):", user_prompt, re.MULTILINE)
        employer = re.search(r"^   Employer: (.+)$", user_prompt, re.MULTILINE)
        skill = match.group(1) if match else "this technology"
        where = f" at {employer.group(1)}" if employer else ""
        for part in (f"I delivered production systems with {skill}", where, "."):
            yield part

