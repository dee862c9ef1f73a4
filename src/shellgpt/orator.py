"""
Streaming completion driver.

Runs one turn's model requests as an explicit state machine:

    plain_streaming ----------------------------------------------> done
    probing --(no calls)--> tool_streaming --(no calls)-----------> done
       |                         |
       +--(calls)--+-------------+--(calls)
                   v
          tool_call_detected -> executing_tools -> finalizing -> done

A provider rejection of the tool parameters moves probing/tool_streaming to
plain_streaming, once per turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .conversation import Message, ToolCallRef, Turn
from .coordinator import ToolExecution, ToolExecutionCoordinator
from .exceptions import ToolUnsupportedError
from .llm_client import ChatCompletionClient, CompletionRequest
from .plugins.console_plugin import BaseOutputSink
from .tool_calls import ToolCallAccumulator

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    PLAIN_STREAMING = "plain_streaming"
    PROBING = "probing"
    TOOL_STREAMING = "tool_streaming"
    TOOL_CALL_DETECTED = "tool_call_detected"
    EXECUTING_TOOLS = "executing_tools"
    FINALIZING = "finalizing"
    DONE = "done"


@dataclass
class OratorResult:
    text: str
    executions: list[ToolExecution] = field(default_factory=list)
    requests: int = 0
    fell_back: bool = False


class StreamingOrator:
    """Performs the model requests of one turn and routes tool calls."""

    def __init__(
        self,
        client: ChatCompletionClient,
        environment,
        coordinator: ToolExecutionCoordinator,
        sink: BaseOutputSink,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        logger_: Optional[logging.LoggerAdapter | logging.Logger] = None,
    ):
        self.client = client
        self.env = environment
        self.coordinator = coordinator
        self.sink = sink
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.logger = logger_ or logger
        self.requests = 0

    def build_request(
        self, messages: list[Message], tools: Optional[list[dict]] = None, stream: bool = True
    ) -> CompletionRequest:
        """Prepend the session's system prompt and shape a request."""
        api_messages = [Message.system(self.env.instructions()).to_api()]
        api_messages.extend(msg.to_api() for msg in messages)
        return CompletionRequest(
            model=self.model,
            messages=api_messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            tools=tools or None,
            tool_choice="auto" if tools else None,
            stream=stream,
        )

    async def _stream(
        self, messages: list[Message], tools: Optional[list[dict]] = None
    ) -> tuple[str, list[ToolCallRef]]:
        """Stream one request, emitting text and collecting tool-call fragments."""
        request = self.build_request(messages, tools, stream=True)
        self.requests += 1
        accumulator = ToolCallAccumulator()
        parts = []
        async for delta in self.client.stream(request):
            if delta.content:
                parts.append(delta.content)
                await self.sink.write(delta.content)
            if delta.tool_calls:
                accumulator.add_all(delta.tool_calls)
        return "".join(parts), accumulator.finalize()

    async def _probe(self, messages: list[Message], tools: list[dict]) -> list[ToolCallRef]:
        request = self.build_request(messages, tools, stream=False)
        self.requests += 1
        completion = await self.client.complete(request)
        return completion.tool_calls

    async def stream_text(self, messages: list[Message]) -> str:
        """Stream a request without tools and return the full text."""
        text, stray_calls = await self._stream(messages)
        if stray_calls:
            self.logger.warning(f"Ignoring {len(stray_calls)} tool call(s) in a request without tools")
        return text

    def _transition(self, current: TurnState, new: TurnState) -> TurnState:
        self.logger.debug(
            f"Turn state {current.value} -> {new.value}",
            extra={"structured": {"log_type": "state", "from_state": current.value, "to_state": new.value}},
        )
        return new

    async def request_completion(self, turn: Turn, tools_enabled: bool) -> OratorResult:
        """Run the model side of a turn to completion.

        Args:
            turn: Working message list, starting with the user message
            tools_enabled: Whether the search tools may be offered

        Returns:
            OratorResult with the final text and any executed tool calls

        Raises:
            TransportError: Any provider failure other than unsupported tools
        """
        self.requests = 0
        tools = self.env.tool_schemas() if tools_enabled else []
        state = TurnState.PROBING if tools else TurnState.PLAIN_STREAMING
        text = ""
        tool_calls: list[ToolCallRef] = []
        executions: list[ToolExecution] = []
        fell_back = False

        while state is not TurnState.DONE:
            if state is TurnState.PLAIN_STREAMING:
                text = await self.stream_text(turn.messages())
                turn.add(Message.assistant(text))
                state = self._transition(state, TurnState.DONE)

            elif state in (TurnState.PROBING, TurnState.TOOL_STREAMING):
                try:
                    if state is TurnState.PROBING:
                        tool_calls = await self._probe(turn.messages(), tools)
                        next_state = TurnState.TOOL_CALL_DETECTED if tool_calls else TurnState.TOOL_STREAMING
                    else:
                        text, tool_calls = await self._stream(turn.messages(), tools)
                        if tool_calls:
                            next_state = TurnState.TOOL_CALL_DETECTED
                        else:
                            turn.add(Message.assistant(text))
                            next_state = TurnState.DONE
                except ToolUnsupportedError as e:
                    fell_back = True
                    self.logger.warning(
                        "Model rejected tool parameters, retrying without tools",
                        extra={"structured": {"log_type": "fallback", "content": str(e)}},
                    )
                    next_state = TurnState.PLAIN_STREAMING
                state = self._transition(state, next_state)

            elif state is TurnState.TOOL_CALL_DETECTED:
                self.logger.info(
                    f"Model requested {len(tool_calls)} tool call(s): "
                    + ", ".join(tc.function_name for tc in tool_calls)
                )
                state = self._transition(state, TurnState.EXECUTING_TOOLS)

            elif state is TurnState.EXECUTING_TOOLS:
                executions = await self.coordinator.execute(tool_calls, turn)
                state = self._transition(state, TurnState.FINALIZING)

            elif state is TurnState.FINALIZING:
                text = await self.coordinator.finalize(turn, self.stream_text)
                state = self._transition(state, TurnState.DONE)

        return OratorResult(text=text, executions=executions, requests=self.requests, fell_back=fell_back)
