import asyncio
import logging

from .agent import DEFAULT_SYSTEM_PROMPT, Agent
from .config import Settings
from .exceptions import ShellGPTError
from .llm_client import ChatCompletionClient
from .plugins.console_plugin import BaseOutputSink, ConsoleOutputSink
from .plugins.datetime_plugin import DateTimePlugin
from .plugins.search_plugin import SearchPlugin
from .search_provider import build_search_provider

logger = logging.getLogger(__name__)

HELP_TEXT = """
📖 Available Commands:
  clear    - Clear conversation history
  history  - Show conversation history
  refresh  - Refresh the date and time given to the model
  help     - Show this help message
  quit     - Exit the chat session
  exit     - Exit the chat session
"""


def create_agent(settings: Settings, sink: BaseOutputSink = None, client: ChatCompletionClient = None) -> Agent:
    """Create a chat session with search tools when a search backend is configured."""
    plugins = [DateTimePlugin()]

    if settings.enable_search:
        provider = build_search_provider(settings)
        if provider is not None:
            plugins.insert(0, SearchPlugin(provider, max_results=settings.max_results))

    return Agent(
        client or ChatCompletionClient.from_settings(settings),
        settings,
        plugins,
        sink or ConsoleOutputSink(),
        system_prompt=DEFAULT_SYSTEM_PROMPT,
    )


class InteractiveSession:
    """Line-reading loop around one Agent."""

    def __init__(self, agent: Agent, input_func=input, output=print):
        self.agent = agent
        self.input_func = input_func
        self.output = output
        self.running = False

    async def _read_line(self, prompt: str):
        try:
            return await asyncio.to_thread(self.input_func, prompt)
        except EOFError:
            return None

    async def start(self):
        self.output("🤖 Welcome to ShellGPT! Type your message or \"quit\" to exit.")
        self.output("💡 Type \"clear\" to clear conversation history")
        self.output("📝 Type \"history\" to view conversation history")
        self.output("❓ Type \"help\" for more commands\n")
        if not self.agent.tools_available and self.agent.settings.enable_search:
            self.output("ℹ️  Web search is not configured; answers come from the model only.\n")

        self.running = True
        while self.running:
            line = await self._read_line("👤 You: ")
            if line is None:
                self.quit()
                break
            await self.handle_input(line)

    async def handle_input(self, line: str) -> None:
        command = line.strip().lower()

        if command in ("quit", "exit"):
            self.quit()
        elif command == "clear":
            self.agent.clear_history()
            self.output("🗑️  Conversation history cleared")
        elif command == "history":
            self.show_history()
        elif command == "refresh":
            self.agent.refresh_system_prompt()
            self.output("🕒 Date and time refreshed")
        elif command == "help":
            self.output(HELP_TEXT)
        elif command == "":
            return
        else:
            await self.process_message(line)

    async def process_message(self, message: str) -> None:
        self.output("\n🤖 Assistant: ")
        try:
            await self.agent.run(message)
        except ShellGPTError:
            # Already reported through the output sink; keep the session alive
            pass
        self.output("")

    def show_history(self) -> None:
        history = self.agent.get_history_as_string()
        if history:
            self.output("\n📚 Conversation History:")
            self.output(history)
        else:
            self.output("\n📚 No conversation history yet.")
        self.output("")

    def quit(self) -> None:
        self.running = False
        self.output("👋 Goodbye!")
