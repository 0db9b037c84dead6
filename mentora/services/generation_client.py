"""Single entry point for text generation calls (blocking and streamed)."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional, Sequence

import openai
from openai import AsyncOpenAI

from mentora.core.config import settings

logger = logging.getLogger(__name__)


class GenerationErrorKind(str, Enum):
    """Distinct, caller-recoverable failure kinds of a generation call."""

    TRANSPORT = "transport"  # network failure or timeout
    PROVIDER = "provider"  # provider answered with a non-success status
    EMPTY = "empty"  # response received but empty or unusable


@dataclass
class GenerationResult:
    """Uniform outcome of a blocking generation call."""

    ok: bool
    text: str = ""
    error_kind: Optional[GenerationErrorKind] = None
    detail: Optional[str] = None

    @classmethod
    def success(cls, text: str) -> "GenerationResult":
        return cls(ok=True, text=text)

    @classmethod
    def failure(cls, kind: GenerationErrorKind, detail: str) -> "GenerationResult":
        return cls(ok=False, error_kind=kind, detail=detail)


class GenerationError(Exception):
    """Raised by streamed calls, where a failure can arrive after fragments."""

    def __init__(self, kind: GenerationErrorKind, detail: str):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}")


def _classify(error: Exception) -> GenerationErrorKind:
    # APITimeoutError subclasses APIConnectionError
    if isinstance(error, openai.APIConnectionError):
        return GenerationErrorKind.TRANSPORT
    return GenerationErrorKind.PROVIDER


class GenerationClient:
    """Wraps one chat-completion call to the text-generation provider."""

    def __init__(self, openai_client: Optional[AsyncOpenAI] = None):
        self._openai_client = openai_client

    def _get_openai_client(self) -> AsyncOpenAI:
        if self._openai_client is None:
            self._openai_client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.GENERATION_TIMEOUT_SECONDS,
            )
        return self._openai_client

    @staticmethod
    def _build_messages(
        system_prompt: str,
        prompt: Optional[str],
        history: Optional[Sequence[dict]],
    ) -> list[dict]:
        if prompt is None and not history:
            raise ValueError("Either a prompt or a conversation history is required")

        messages = [{"role": "system", "content": system_prompt}]
        for msg in history or []:
            role = "assistant" if msg.get("role") in ("assistant", "model") else "user"
            messages.append({"role": role, "content": msg.get("content", "")})
        if prompt is not None:
            messages.append({"role": "user", "content": prompt})
        return messages

    async def complete(
        self,
        system_prompt: str,
        prompt: Optional[str] = None,
        history: Optional[Sequence[dict]] = None,
        temperature: float = settings.TEMPERATURE_CREATIVE,
    ) -> GenerationResult:
        """
        Blocking mode: one request, one complete text response.

        Args:
            system_prompt: System instruction
            prompt: Single user prompt (appended after history when both are given)
            history: Role-tagged conversation history
            temperature: Sampling temperature

        Returns:
            GenerationResult with either the text or the failure kind
        """
        messages = self._build_messages(system_prompt, prompt, history)
        client = self._get_openai_client()

        try:
            response = await client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=messages,
                temperature=temperature,
                max_tokens=settings.GENERATION_MAX_OUTPUT_TOKENS,
            )
        except openai.APIError as e:
            kind = _classify(e)
            logger.error(f"Generation call failed ({kind.value}): {e}")
            return GenerationResult.failure(kind, str(e))

        text = ""
        if response.choices and response.choices[0].message.content:
            text = response.choices[0].message.content.strip()
        if not text:
            logger.warning("Generation call returned an empty response")
            return GenerationResult.failure(GenerationErrorKind.EMPTY, "Empty response")

        return GenerationResult.success(text)

    async def stream(
        self,
        system_prompt: str,
        prompt: Optional[str] = None,
        history: Optional[Sequence[dict]] = None,
        temperature: float = settings.TEMPERATURE_CREATIVE,
    ) -> AsyncIterator[str]:
        """
        Streaming mode: yield text fragments as they arrive.

        The sequence is finite and single-use. A caller that stops iterating
        simply abandons it; nothing is sent to the provider to close it.

        Raises:
            GenerationError: On transport/provider failure, or if the stream
                finishes without producing any text
        """
        messages = self._build_messages(system_prompt, prompt, history)
        client = self._get_openai_client()

        produced = False
        try:
            response = await client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=messages,
                temperature=temperature,
                max_tokens=settings.GENERATION_MAX_OUTPUT_TOKENS,
                stream=True,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                fragment = chunk.choices[0].delta.content
                if fragment:
                    produced = True
                    yield fragment
        except openai.APIError as e:
            kind = _classify(e)
            logger.error(f"Streamed generation failed ({kind.value}): {e}")
            raise GenerationError(kind, str(e)) from e

        if not produced:
            logger.warning("Streamed generation produced no text")
            raise GenerationError(GenerationErrorKind.EMPTY, "Empty response")
