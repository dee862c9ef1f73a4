"""
Error taxonomy for shellgpt.

Fatal errors (TransportError, ConfigurationError) abort the current turn or
session. The others are recovered close to where they are raised.
"""

from typing import Optional


class ShellGPTError(Exception):
    """Base exception for shellgpt errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ConfigurationError(ShellGPTError):
    """Missing credential or invalid setting. Raised before any turn begins."""


class TransportError(ShellGPTError):
    """The model provider is unreachable or rejected the request."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, original_error)
        self.status_code = status_code


class ToolUnsupportedError(TransportError):
    """The provider rejected the tool/function-calling parameters."""


class ToolArgumentError(ShellGPTError):
    """A single tool call carried malformed or missing arguments."""

    def __init__(self, message: str, tool_name: str = "", original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.tool_name = tool_name


class SearchProviderError(ShellGPTError):
    """The search backend failed (transport, auth or bad status)."""
