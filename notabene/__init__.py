"""NotaBene - a terminal AI agent with human-approved tool execution."""

__version__ = "0.1.0"

from notabene.config import Config

__all__ = ["Config", "__version__"]
