import asyncio
import logging
from dataclasses import dataclass

from .config import Settings
from .conversation import ConversationState, Message, Turn
from .coordinator import ToolExecutionCoordinator
from .exceptions import ShellGPTError
from .llm_client import ChatCompletionClient
from .orator import StreamingOrator
from .plugins.console_plugin import BaseOutputSink
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """You are ShellGPT, a helpful assistant running in a terminal.
Be concise, friendly, and direct. Answer in plain text; the terminal does not render markdown tables or images."""


class AgentLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically injects session_id into structured logs."""

    def __init__(self, logger, session_id):
        self.session_id = session_id
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        if "extra" in kwargs and "structured" in kwargs["extra"]:
            kwargs["extra"]["structured"]["session_id"] = self.session_id
        return msg, kwargs


@dataclass
class TurnResult:
    """What the caller gets back once a turn has completed."""

    text: str
    history_length: int
    tool_calls_executed: int = 0


class Environment:
    """Environment owns tools and the system prompt for a session."""

    def __init__(self, base_system_prompt: str, plugins: list, logger: logging.Logger):
        self.base_system_prompt = base_system_prompt
        self.plugins = plugins
        self.logger = logger

        # Initialize tool registry and register plugin tools
        self.tool_registry = ToolRegistry()
        for plugin in plugins:
            if hasattr(plugin, "hook_provide_tools"):
                for method in plugin.hook_provide_tools():
                    self.tool_registry.register_callable(method)

        # System prompt is derived once per session until refreshed
        self._instructions = self._assemble_system_prompt()

    def _assemble_system_prompt(self) -> str:
        instructions = self.base_system_prompt
        additions = []
        for plugin in self.plugins:
            if hasattr(plugin, "hook_provide_system_prompt"):
                try:
                    addition = plugin.hook_provide_system_prompt()
                    if addition and addition.strip():
                        additions.append(addition.strip())
                except Exception as e:
                    self.logger.error(
                        f"Error collecting system prompt from {plugin.__class__.__name__}: {e}"
                    )
        if additions:
            instructions = f"{instructions}\n\n" + "\n\n".join(additions)

        for plugin in self.plugins:
            if hasattr(plugin, "hook_modify_system_prompt"):
                try:
                    instructions = plugin.hook_modify_system_prompt(instructions)
                except Exception as e:
                    self.logger.error(
                        f"Error rendering system prompt in {plugin.__class__.__name__}: {e}"
                    )
        return instructions

    def instructions(self) -> str:
        """Return the assembled system prompt."""
        return self._instructions

    def refresh_instructions(self) -> str:
        """Rebuild the system prompt, picking up the current date and time."""
        self._instructions = self._assemble_system_prompt()
        return self._instructions

    def tool_schemas(self) -> list:
        return self.tool_registry.get_schemas()

    @property
    def has_tools(self) -> bool:
        return len(self.tool_registry) > 0

    def log_item(self, item_type: str, extra: dict):
        structured = {"log_type": item_type, **extra}
        self.logger.info(
            f"{item_type.replace('_', ' ').title()} received", extra={"structured": structured}
        )


class Agent:
    """One chat session: conversation log, tools, and the turn machinery.

    Created at session start and discarded at session end. Turns run one at a
    time; a turn's messages are committed to the conversation only once the
    turn has completed.
    """

    def __init__(
        self,
        client: ChatCompletionClient,
        settings: Settings,
        plugins: list,
        sink: BaseOutputSink,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        session_id: str = None,
    ):
        self.client = client
        self.settings = settings
        self.plugins = plugins
        self.sink = sink
        self.session_id = session_id or "main"
        self.conversation = ConversationState()
        self._turn_lock = asyncio.Lock()

        # Create session-specific logger with automatic session_id injection
        self.logger = AgentLoggerAdapter(logger, self.session_id)

        self.env = Environment(system_prompt, self.plugins, self.logger)
        self.coordinator = ToolExecutionCoordinator(
            self.env.tool_registry, self.logger, default_max_results=settings.max_results
        )
        self.orator = StreamingOrator(
            client,
            self.env,
            self.coordinator,
            sink,
            model=settings.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            logger_=self.logger,
        )

    @property
    def tools_available(self) -> bool:
        return self.env.has_tools

    async def run(self, message: str, tools_enabled: bool = None) -> TurnResult:
        """Process one user message through to the final answer.

        Args:
            message: The user's message
            tools_enabled: Offer search tools this turn; defaults to settings.enable_search

        Returns:
            TurnResult with the final text and the new history length

        Raises:
            TransportError: The model provider failed; the conversation is unchanged
        """
        if tools_enabled is None:
            tools_enabled = self.settings.enable_search
        tools_enabled = tools_enabled and self.tools_available

        async with self._turn_lock:
            self.env.log_item("user_input", {"content": message})
            turn = Turn(self.conversation.snapshot(), Message.user(message))

            await self.sink.start_turn()
            try:
                outcome = await self.orator.request_completion(turn, tools_enabled)
            except ShellGPTError as e:
                self.logger.error(f"Turn failed: {e}")
                await self.sink.fail_turn(e)
                raise

            self.conversation.extend(turn.pending)
            result = TurnResult(
                text=outcome.text,
                history_length=self.conversation.count(),
                tool_calls_executed=len(outcome.executions),
            )
            await self.sink.end_turn(result)
            return result

    def clear_history(self) -> None:
        self.conversation.clear()
        self.logger.info("Conversation history cleared")

    def get_history(self) -> tuple:
        return self.conversation.snapshot()

    def get_history_as_string(self) -> str:
        return self.conversation.render()

    def get_conversation_count(self) -> int:
        return self.conversation.count()

    def refresh_system_prompt(self) -> str:
        return self.env.refresh_instructions()

    async def close(self) -> None:
        await self.client.close()
        for plugin in self.plugins:
            provider = getattr(plugin, "provider", None)
            if provider is not None:
                await provider.close()
