"""
Tool execution for one batch of model-requested tool calls.

Handles argument parsing, dispatch through the ToolRegistry and result
serialization. Failures are isolated per tool call: a malformed or failing
call is logged and skipped (or degraded to no results) and the rest of the
batch continues.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Optional

from .conversation import Message, ToolCallRef, Turn
from .exceptions import ToolArgumentError
from .search_provider import DEFAULT_MAX_RESULTS
from .tool_registry import ToolCall, ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class ToolExecution:
    """Record of one executed tool call."""

    tool_call: ToolCallRef
    arguments: dict[str, Any]
    results: list[Any] = field(default_factory=list)


class ToolExecutionCoordinator:
    """Executes tool calls and folds their results into the turn.

    Usage:
        coordinator = ToolExecutionCoordinator(env.tool_registry)
        executions = await coordinator.execute(tool_calls, turn)
        text = await coordinator.finalize(turn, orator.stream_text)

    The coordinator appends to the turn's working list only; committing to
    ConversationState is the session's job once the turn has succeeded.
    """

    def __init__(
        self,
        tool_registry: ToolRegistry,
        logger_: Optional[logging.LoggerAdapter | logging.Logger] = None,
        default_max_results: int = DEFAULT_MAX_RESULTS,
    ):
        self.tools = tool_registry
        self.logger = logger_ or logger
        self.default_max_results = default_max_results

    def _log(self, level: int, message: str, log_type: str, **data) -> None:
        self.logger.log(
            level, message, extra={"structured": {"log_type": log_type, **data}}
        )

    def parse_arguments(self, tool_call: ToolCallRef) -> dict[str, Any]:
        """Parse and check the arguments of one tool call.

        Raises:
            ToolArgumentError: If the arguments are not a JSON object or lack ``query``
        """
        try:
            args = json.loads(tool_call.arguments_text or "{}")
        except json.JSONDecodeError as e:
            raise ToolArgumentError(
                f"Error parsing arguments: {e}", tool_name=tool_call.function_name, original_error=e
            ) from e

        if not isinstance(args, dict):
            raise ToolArgumentError(
                "Arguments must be a JSON object", tool_name=tool_call.function_name
            )

        query = args.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolArgumentError("Missing required 'query' argument", tool_name=tool_call.function_name)

        max_results = args.get("max_results", self.default_max_results)
        if not isinstance(max_results, int) or isinstance(max_results, bool) or max_results <= 0:
            max_results = self.default_max_results

        return {"query": query.strip(), "max_results": max_results}

    async def _invoke(self, call: ToolCall) -> list[Any]:
        try:
            result = await self.tools.execute_tool(call.name, dict(call.arguments))
        except Exception as e:
            self._log(
                logging.WARNING,
                f"Tool {call.name} failed, using empty results: {e}",
                "tool_result",
                tool_name=call.name,
                result_count=0,
                content=str(e),
            )
            return []
        if result is None:
            return []
        return list(result) if isinstance(result, (list, tuple)) else [result]

    async def execute(self, tool_calls: list[ToolCallRef], turn: Turn) -> list[ToolExecution]:
        """Run every tool call in order, appending call and result messages to the turn.

        Args:
            tool_calls: Complete tool calls from the probe or the accumulator
            turn: Working message list of the active turn

        Returns:
            One ToolExecution per tool call that was actually run
        """
        executions = []
        for tool_call in tool_calls:
            if not tool_call.id:
                tool_call = replace(tool_call, id=f"call_{tool_call.index}")
            name = tool_call.function_name
            try:
                arguments = self.parse_arguments(tool_call)
            except ToolArgumentError as e:
                self._log(
                    logging.WARNING,
                    f"Skipping tool call {name}: {e}",
                    "tool_skipped",
                    tool_name=name,
                    call_id=tool_call.id,
                    content=str(e),
                )
                continue

            if not self.tools.has_tool(name):
                self._log(
                    logging.WARNING,
                    f"Skipping unrecognized tool: {name}",
                    "tool_skipped",
                    tool_name=name,
                    call_id=tool_call.id,
                    content="unrecognized tool",
                )
                continue

            call = ToolCall(name=name, arguments=arguments)
            self._log(
                logging.INFO,
                "Tool call received",
                "tool_call",
                tool_name=name,
                arguments=json.dumps(arguments, ensure_ascii=False),
                call_id=tool_call.id,
            )
            results = await self._invoke(call)
            self._log(
                logging.INFO,
                "Tool result received",
                "tool_result",
                tool_name=name,
                result_count=len(results),
            )

            turn.add(Message.assistant(None, [tool_call]))
            turn.add(Message.tool(tool_call.id, json.dumps(results, ensure_ascii=False, default=str)))
            executions.append(ToolExecution(tool_call=tool_call, arguments=arguments, results=results))

        return executions

    async def finalize(
        self, turn: Turn, stream_text: Callable[[list[Message]], Awaitable[str]]
    ) -> str:
        """Issue the single finalization request for the batch and record the answer."""
        text = await stream_text(turn.messages())
        turn.add(Message.assistant(text))
        return text
