"""
Conversation data model.

Messages are immutable once created and the conversation log is append-only:
the only way to remove anything is to clear the whole log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

ROLES = ("system", "user", "assistant", "tool")

ROLE_LABELS = {
    "system": "⚙️  System",
    "user": "👤 You",
    "assistant": "🤖 Assistant",
    "tool": "🔧 Tool",
}

PREVIEW_LENGTH = 100


@dataclass(frozen=True)
class ToolCallRef:
    """A complete tool call requested by the model.

    Immutable once built; streamed calls are assembled by ToolCallAccumulator
    before a ToolCallRef is created.
    """

    id: str
    index: int
    function_name: str = ""
    arguments_text: str = ""

    def to_api(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.function_name, "arguments": self.arguments_text},
        }


@dataclass(frozen=True)
class Message:
    role: str
    content: Optional[str] = None
    tool_calls: tuple[ToolCallRef, ...] = field(default_factory=tuple)
    tool_call_id: Optional[str] = None

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("Tool messages require a tool_call_id")
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: Optional[str], tool_calls: Iterable[ToolCallRef] = ()) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)

    def to_api(self) -> dict[str, Any]:
        """Convert to the Chat Completions message format."""
        api_msg: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            api_msg["tool_calls"] = [tc.to_api() for tc in self.tool_calls]
        if self.tool_call_id:
            api_msg["tool_call_id"] = self.tool_call_id
        return api_msg

    def preview(self, max_length: int = PREVIEW_LENGTH) -> str:
        """Display text for history listings. Never used for stored content."""
        if self.content is None:
            names = ", ".join(tc.function_name for tc in self.tool_calls)
            return f"[tool call: {names}]" if names else ""
        if len(self.content) > max_length:
            return self.content[:max_length] + "..."
        return self.content


class ConversationState:
    """Ordered, append-only message log for one chat session."""

    def __init__(self):
        self._messages: list[Message] = []
        self._tool_call_ids: set[str] = set()

    def append(self, message: Message) -> None:
        if message.role == "tool" and message.tool_call_id not in self._tool_call_ids:
            raise ValueError(
                f"Tool message references unknown tool call id: {message.tool_call_id!r}"
            )
        self._messages.append(message)
        if message.role == "assistant":
            self._tool_call_ids.update(tc.id for tc in message.tool_calls)

    def extend(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.append(message)

    def clear(self) -> None:
        self._messages = []
        self._tool_call_ids = set()

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def count(self) -> int:
        return len(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def render(self) -> str:
        """Render the log as numbered, truncated lines."""
        lines = []
        for index, msg in enumerate(self._messages, start=1):
            label = ROLE_LABELS.get(msg.role, msg.role)
            lines.append(f"{index}. {label}: {msg.preview()}")
        return "\n".join(lines)


class Turn:
    """Working message list for the turn in progress.

    Holds the committed history as a read-only prefix plus the messages this
    turn has produced so far. Nothing reaches ConversationState until the
    owner commits ``pending``.
    """

    def __init__(self, history: tuple[Message, ...], user_message: Message):
        self.history = history
        self.pending: list[Message] = [user_message]

    def add(self, message: Message) -> None:
        self.pending.append(message)

    def messages(self) -> list[Message]:
        return [*self.history, *self.pending]

    @property
    def final_message(self) -> Optional[Message]:
        last = self.pending[-1] if self.pending else None
        if last is not None and last.role == "assistant" and not last.tool_calls:
            return last
        return None
