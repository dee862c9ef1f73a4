"""
ShellGPT - a streaming command-line chat client with web search tools.

The model is offered search_web and search_address tools; tool calls are
reassembled from the stream, executed, and folded into a single follow-up
answer.
"""

__version__ = "1.0.0"

from .agent import Agent, Environment, TurnResult
from .conversation import ConversationState, Message, ToolCallRef
from .tool_calls import ToolCallAccumulator
from .tool_registry import ToolRegistry, callable_to_tool_schema

__all__ = [
    "Agent",
    "Environment",
    "TurnResult",
    "ConversationState",
    "Message",
    "ToolCallRef",
    "ToolCallAccumulator",
    "ToolRegistry",
    "callable_to_tool_schema",
]
