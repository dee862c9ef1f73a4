"""
OpenAI Chat Completions client.

Wraps AsyncOpenAI so the rest of the package deals in plain request/response
records and in the shellgpt error taxonomy instead of SDK exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

import openai
from openai import AsyncOpenAI

from .conversation import ToolCallRef
from .exceptions import ToolUnsupportedError, TransportError

logger = logging.getLogger(__name__)

# Request parameters that belong to function calling. A 400/422 naming one of
# these means the model or endpoint does not accept tools.
TOOL_PARAMS = {"tools", "tool_choice", "functions", "function_call", "parallel_tool_calls"}
TOOL_UNSUPPORTED_CODES = {
    "tools_not_supported",
    "tool_use_not_supported",
    "function_calling_not_supported",
}


@dataclass
class CompletionRequest:
    model: str
    messages: list[dict[str, Any]]
    temperature: float = 0.7
    max_tokens: int = 1000
    tools: Optional[list[dict[str, Any]]] = None
    tool_choice: Optional[str] = None
    stream: bool = True

    def to_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": self.stream,
        }
        if self.tools:
            kwargs["tools"] = self.tools
            kwargs["tool_choice"] = self.tool_choice or "auto"
        return kwargs


@dataclass
class Completion:
    """Result of a non-streaming request."""

    content: Optional[str] = None
    tool_calls: list[ToolCallRef] = field(default_factory=list)


@dataclass
class StreamDelta:
    """One streamed increment: text, tool-call fragments, or both."""

    content: Optional[str] = None
    tool_calls: list[Any] = field(default_factory=list)
    finish_reason: Optional[str] = None


def is_tool_unsupported(error: Exception) -> bool:
    """Check a provider error for a structured "tools not supported" signal."""
    if not isinstance(error, (openai.BadRequestError, openai.UnprocessableEntityError)):
        return False
    code = getattr(error, "code", None)
    param = getattr(error, "param", None)
    return code in TOOL_UNSUPPORTED_CODES or param in TOOL_PARAMS


def translate_error(error: Exception) -> TransportError:
    """Map an SDK exception onto TransportError or ToolUnsupportedError."""
    if isinstance(error, openai.APITimeoutError):
        return TransportError(f"Request timed out: {error}", original_error=error)
    if isinstance(error, openai.APIConnectionError):
        return TransportError(f"Could not reach the model provider: {error}", original_error=error)
    if isinstance(error, openai.APIStatusError):
        if is_tool_unsupported(error):
            return ToolUnsupportedError(
                f"Model does not support tool calling: {error}",
                original_error=error,
                status_code=error.status_code,
            )
        return TransportError(
            f"API error ({error.status_code}): {error}",
            original_error=error,
            status_code=error.status_code,
        )
    return TransportError(f"API error: {error}", original_error=error)


def _fragment_to_dict(fragment: Any) -> Any:
    if hasattr(fragment, "model_dump"):
        return fragment.model_dump(exclude_none=True)
    return fragment


class ChatCompletionClient:
    """Thin async wrapper around the Chat Completions endpoint.

    Usage:
        client = ChatCompletionClient(api_key="sk-...")
        async for delta in client.stream(request):
            print(delta.content or "", end="")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 2,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    @classmethod
    def from_settings(cls, settings) -> "ChatCompletionClient":
        return cls(api_key=settings.openai_api_key, base_url=settings.base_url)

    async def complete(self, request: CompletionRequest) -> Completion:
        """Issue a non-streaming request."""
        kwargs = request.to_kwargs()
        kwargs["stream"] = False
        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            raise translate_error(e) from e

        if not response.choices:
            return Completion()

        message = response.choices[0].message
        tool_calls = [
            ToolCallRef(
                id=tc.id or f"call_{index}",
                index=index,
                function_name=tc.function.name or "",
                arguments_text=tc.function.arguments or "",
            )
            for index, tc in enumerate(message.tool_calls or [])
        ]
        return Completion(content=message.content, tool_calls=tool_calls)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamDelta]:
        """Issue a streaming request and yield deltas in generation order."""
        kwargs = request.to_kwargs()
        kwargs["stream"] = True
        try:
            stream_response = await self.client.chat.completions.create(**kwargs)
            async for chunk in stream_response:
                choice = chunk.choices[0] if chunk.choices else None
                if not choice:
                    continue
                delta = choice.delta
                yield StreamDelta(
                    content=delta.content if delta else None,
                    tool_calls=[_fragment_to_dict(tc) for tc in (delta.tool_calls or [])] if delta else [],
                    finish_reason=choice.finish_reason,
                )
        except openai.APIError as e:
            raise translate_error(e) from e

    async def validate(self) -> bool:
        """Return True if the credentials are accepted by the provider."""
        try:
            await self.client.models.list()
            return True
        except openai.APIError as e:
            logger.info(f"API key validation failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.close()
