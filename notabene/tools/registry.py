"""Tool registry and base tool class."""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, model_validator

from notabene.exceptions import ToolExecutionError, ToolNotFoundError
from notabene.logging import get_logger

log = get_logger(__name__)


class ToolResult(BaseModel):
    """Result from tool execution."""

    success: bool = True
    content: str = ""
    error: str | None = None

    @model_validator(mode="after")
    def _normalize_failure_error(self) -> "ToolResult":
        """Ensure failed results always provide an error message."""
        if not self.success and not (self.error or "").strip():
            fallback = (self.content or "").strip()
            self.error = fallback or "Tool execution failed"
        return self

    def to_model_text(self) -> str:
        """Text handed back to the model as the tool message content."""
        if self.success:
            return self.content
        error = self.error or ""
        return error if error.startswith("Error") else f"Error: {error}"


class Tool(ABC):
    """Base class for native tools."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {}

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool.

        Args:
            **kwargs: Tool-specific arguments

        Returns:
            ToolResult with success status and content
        """
        pass

    def get_definition(self) -> dict[str, Any]:
        """Get the tool definition for the LLM.

        Returns:
            OpenAI function-style definition
        """
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """Validate tool arguments against schema.

        Args:
            arguments: Arguments to validate

        Raises:
            ToolExecutionError if a required argument is missing
        """
        required = self.parameters.get("required", [])
        for field in required:
            if field not in arguments:
                raise ToolExecutionError(
                    self.name,
                    f"Missing required argument: {field}",
                )


class ToolRegistry:
    """Registry for native tools (bash, set_cwd, write_file)."""

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Args:
            tool: Tool instance to register
        """
        if not tool.name:
            raise ValueError("Tool must have a name")

        log.debug("Registering tool", tool=tool.name)
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def has_tool(self, name: str) -> bool:
        """Return whether a tool name is currently registered."""
        return name in self._tools

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            ToolNotFoundError if not found
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def list_tools(self) -> list[str]:
        return list(self._tools)

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get all tool definitions for the LLM."""
        return [tool.get_definition() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Validate arguments and execute a tool by name.

        Raises:
            ToolNotFoundError if tool not found
            ToolExecutionError if arguments are invalid
        """
        tool = self.get(name)
        tool.validate_arguments(arguments)
        log.debug("Executing tool", tool=name)
        return await tool.execute(**arguments)
