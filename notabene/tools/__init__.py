"""Tools package for NotaBene."""

from notabene.tools.registry import Tool, ToolRegistry, ToolResult
from notabene.tools.bash import BashTool, SetCwdTool, ShellExecutionResult
from notabene.tools.write import WriteFileResult, WriteFileTool
from notabene.tools.canned import CannedTool, CannedToolRegistry, expand_macros
from notabene.tools.remote import RemoteAction, RemoteToolSource

__all__ = [
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "BashTool",
    "SetCwdTool",
    "ShellExecutionResult",
    "WriteFileResult",
    "WriteFileTool",
    "CannedTool",
    "CannedToolRegistry",
    "expand_macros",
    "RemoteAction",
    "RemoteToolSource",
]
