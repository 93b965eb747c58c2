"""Custom exceptions for NotaBene."""


class NotaBeneError(Exception):
    """Base exception for NotaBene."""

    pass


class ConfigurationError(NotaBeneError):
    """Configuration-related errors."""

    pass


class LLMError(NotaBeneError):
    """LLM-related errors."""

    pass


class LLMAPIError(LLMError):
    """LLM API errors (bad status, unreachable host, etc.)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolError(NotaBeneError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool '{tool_name}' not found")
        self.tool_name = tool_name


class DirectoryNotFoundError(ToolError):
    """Requested working directory does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Directory not found: {path}")
        self.path = path


class HistoryError(NotaBeneError):
    """Conversation history persistence errors."""

    pass
