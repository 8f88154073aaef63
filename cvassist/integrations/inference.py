"""Reply generation with a hard wall-clock limit on streamed output."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Protocol

from ..core.config.settings import ResponseSettings
from ..core.errors import InferenceFailed
from ..observability.logger import get_logger

logger = get_logger(__name__)


class CompletionModel(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 80,
        stop: list[str] | None = None,
    ) -> str | AsyncIterator[str]: ...


async def drain_with_timeout(stream: AsyncIterator[str], timeout: float) -> str:
    """Fully consume a text stream, or cancel and close it once ``timeout`` elapses.

    Raises:
        asyncio.TimeoutError: If the stream was not exhausted in time
    """

    async def _collect() -> str:
        parts: list[str] = []
        async for chunk in stream:
            parts.append(chunk)
        return "".join(parts)

    try:
        return await asyncio.wait_for(_collect(), timeout=timeout)
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()


class InferenceService:
    """Run one completion and return plain text, or raise ``InferenceFailed``."""

    def __init__(self, model: CompletionModel, settings: ResponseSettings | None = None):
        self.model = model
        self.settings = settings or ResponseSettings()
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        timeout = self.settings.inference_timeout_seconds
        loop = asyncio.get_running_loop()
        # One deadline covers opening the stream and draining it
        deadline = loop.time() + timeout
        try:
            result = await asyncio.wait_for(
                self.model.complete(
                    system_prompt,
                    user_prompt,
                    max_tokens=self.settings.max_output_tokens,
                    stop=self.settings.stop_sequences,
                ),
                timeout=timeout,
            )
            if isinstance(result, str):
                text = result
            else:
                text = await drain_with_timeout(result, max(deadline - loop.time(), 0.0))
        except asyncio.TimeoutError as exc:
            self.logger.warning("inference_timeout", timeout=timeout)
            raise InferenceFailed("Reply generation timed out") from exc
        except Exception as exc:
            self.logger.error("inference_failed", error=str(exc), exc_info=True)
            raise InferenceFailed("Reply generation failed", detail=str(exc)) from exc

        text = text.strip()
        # Some models wrap the whole reply in quotes
        if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
            text = text[1:-1]
        self.logger.info("inference_complete", length=len(text))
        return text
