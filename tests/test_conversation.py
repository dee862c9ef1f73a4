"""
Unit tests for the conversation data model.
"""

import pytest

from shellgpt.conversation import ConversationState, Message, ToolCallRef, Turn


def make_tool_call(call_id="call_1", name="search_web"):
    return ToolCallRef(id=call_id, index=0, function_name=name, arguments_text='{"query": "x"}')


class TestMessage:
    """Tests for Message."""

    def test_invalid_role_rejected(self):
        with pytest.raises(ValueError, match="Invalid message role"):
            Message(role="narrator", content="hi")

    def test_tool_message_requires_id(self):
        with pytest.raises(ValueError, match="tool_call_id"):
            Message(role="tool", content="[]")

    def test_to_api_plain(self):
        assert Message.user("hello").to_api() == {"role": "user", "content": "hello"}

    def test_to_api_tool_call(self):
        msg = Message.assistant(None, [make_tool_call()])
        api = msg.to_api()
        assert api["content"] is None
        assert api["tool_calls"] == [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "search_web", "arguments": '{"query": "x"}'},
            }
        ]

    def test_to_api_tool_result(self):
        api = Message.tool("call_1", "[]").to_api()
        assert api == {"role": "tool", "content": "[]", "tool_call_id": "call_1"}

    def test_preview_truncates_long_content(self):
        msg = Message.user("a" * 150)
        assert msg.preview() == "a" * 100 + "..."
        assert msg.content == "a" * 150

    def test_preview_short_content_untouched(self):
        assert Message.user("short").preview() == "short"

    def test_preview_tool_call_placeholder(self):
        msg = Message.assistant(None, [make_tool_call(name="search_address")])
        assert msg.preview() == "[tool call: search_address]"


class TestConversationState:
    """Tests for ConversationState."""

    def test_append_and_count(self):
        state = ConversationState()
        state.append(Message.user("hi"))
        state.append(Message.assistant("hello"))
        assert state.count() == 2
        assert len(state) == 2

    def test_snapshot_preserves_order_and_roles(self):
        state = ConversationState()
        state.extend([
            Message.user("q"),
            Message.assistant(None, [make_tool_call()]),
            Message.tool("call_1", "[]"),
            Message.assistant("a"),
        ])
        snapshot = state.snapshot()
        assert isinstance(snapshot, tuple)
        assert [m.role for m in snapshot] == ["user", "assistant", "tool", "assistant"]

    def test_snapshot_is_a_copy(self):
        state = ConversationState()
        state.append(Message.user("q"))
        snapshot = state.snapshot()
        state.append(Message.assistant("a"))
        assert len(snapshot) == 1

    def test_tool_message_needs_preceding_call(self):
        state = ConversationState()
        state.append(Message.user("q"))
        with pytest.raises(ValueError, match="unknown tool call id"):
            state.append(Message.tool("call_missing", "[]"))

    def test_clear_is_idempotent(self):
        state = ConversationState()
        state.append(Message.user("q"))
        state.clear()
        state.clear()
        assert state.count() == 0
        assert state.snapshot() == ()

    def test_clear_forgets_tool_call_ids(self):
        state = ConversationState()
        state.append(Message.assistant(None, [make_tool_call()]))
        state.clear()
        with pytest.raises(ValueError):
            state.append(Message.tool("call_1", "[]"))

    def test_render_numbers_and_labels(self):
        state = ConversationState()
        state.extend([
            Message.user("What's the weather?"),
            Message.assistant(None, [make_tool_call()]),
            Message.tool("call_1", "[]"),
            Message.assistant("x" * 120),
        ])
        lines = state.render().splitlines()
        assert lines[0] == "1. 👤 You: What's the weather?"
        assert lines[1] == "2. 🤖 Assistant: [tool call: search_web]"
        assert lines[2] == "3. 🔧 Tool: []"
        assert lines[3] == "4. 🤖 Assistant: " + "x" * 100 + "..."

    def test_render_empty(self):
        assert ConversationState().render() == ""


class TestTurn:
    """Tests for the per-turn working list."""

    def test_messages_are_history_then_pending(self):
        history = (Message.user("old"), Message.assistant("old answer"))
        turn = Turn(history, Message.user("new"))
        turn.add(Message.assistant("new answer"))
        assert [m.content for m in turn.messages()] == ["old", "old answer", "new", "new answer"]
        assert len(turn.pending) == 2

    def test_final_message(self):
        turn = Turn((), Message.user("q"))
        assert turn.final_message is None
        turn.add(Message.assistant(None, [make_tool_call()]))
        assert turn.final_message is None
        turn.add(Message.tool("call_1", "[]"))
        turn.add(Message.assistant("done"))
        assert turn.final_message.content == "done"
