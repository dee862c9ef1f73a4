import logging
import sys
from typing import Optional, TextIO


class ConsoleLogHandler(logging.Handler):
    """Logging handler that prints log records as one-line console notices."""

    def __init__(self, stream: Optional[TextIO] = None, level=logging.WARNING):
        super().__init__(level)
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if hasattr(record, "structured"):
                line = self._format_structured_log(record.structured)
            else:
                line = self.format(record)
            prefix = "⚠️  " if record.levelno >= logging.WARNING else "🔍 "
            stream = self.stream or sys.stderr
            stream.write(f"{prefix}{line}\n")
            stream.flush()
        except Exception:
            self.handleError(record)

    def _format_structured_log(self, data: dict) -> str:
        """Format structured log data as a single readable line."""
        log_type = data.get("log_type", "")
        session_id = data.get("session_id", "main")

        # Prefix non-default sessions
        prefix = f"[{session_id}] " if session_id != "main" else ""

        formatters = {
            "tool_call": lambda: f"{data.get('tool_name', 'unknown')}({data.get('arguments', '')})",
            "tool_result": lambda: f"{data.get('tool_name', 'unknown')} returned {data.get('result_count', 0)} result(s)",
            "tool_skipped": lambda: f"{data.get('tool_name', 'unknown')} skipped - {data.get('content', '')}",
            "search_error": lambda: f"{data.get('provider', 'search')} failed for {data.get('query', '')!r} - {data.get('content', '')}",
            "state": lambda: f"{data.get('from_state', '')} -> {data.get('to_state', '')}",
            "fallback": lambda: data.get("content", ""),
            "user_input": lambda: data.get("content", ""),
        }

        if log_type in formatters:
            return f"{prefix}{log_type.upper()}: {formatters[log_type]()}"

        return f"{prefix}{data.get('content', str(data))}"


class BaseOutputSink:
    """Receives the text of one turn as it streams, then a completion marker."""

    async def start_turn(self) -> None:
        pass

    async def write(self, text: str) -> None:
        raise NotImplementedError

    async def end_turn(self, result) -> None:
        pass

    async def fail_turn(self, error: Exception) -> None:
        pass


class ConsoleOutputSink(BaseOutputSink):
    """Streams assistant text straight to the terminal."""

    def __init__(self, stream: Optional[TextIO] = None, error_stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self.error_stream = error_stream or sys.stderr
        self._wrote_text = False

    async def start_turn(self) -> None:
        self._wrote_text = False

    async def write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()
        self._wrote_text = True

    async def end_turn(self, result) -> None:
        # Terminate the streamed line
        if self._wrote_text:
            self.stream.write("\n")
            self.stream.flush()

    async def fail_turn(self, error: Exception) -> None:
        if self._wrote_text:
            self.stream.write("\n")
            self.stream.flush()
        self.error_stream.write(f"❌ Error: {error}\n")
        self.error_stream.flush()


class BufferedOutputSink(BaseOutputSink):
    """Collects streamed text in memory, one entry per turn."""

    def __init__(self):
        self.chunks: list[str] = []
        self.results: list = []
        self.errors: list[Exception] = []

    async def start_turn(self) -> None:
        self.chunks = []

    async def write(self, text: str) -> None:
        self.chunks.append(text)

    async def end_turn(self, result) -> None:
        self.results.append(result)

    async def fail_turn(self, error: Exception) -> None:
        self.errors.append(error)

    @property
    def text(self) -> str:
        return "".join(self.chunks)
