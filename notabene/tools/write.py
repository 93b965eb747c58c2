"""Write tool for creating or overwriting files."""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from notabene.logging import get_logger
from notabene.shell.environment import ShellEnvironment
from notabene.tools.registry import Tool, ToolResult

log = get_logger(__name__)


@dataclass
class WriteFileResult:
    """Outcome of a file write; failures carry ``error`` instead of raising."""

    success: bool
    path: Path
    bytes_written: int = 0
    error: str | None = None


class WriteFileTool(Tool):
    """Write content to a file relative to the shell working directory."""

    name = "write_file"
    description = (
        "Create or overwrite a file with the given content. Relative paths "
        "resolve against the current working directory. Missing parent "
        "directories are created. Requires user approval."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path to the file to write",
            },
            "content": {
                "type": "string",
                "description": "Full content of the file",
            },
        },
        "required": ["path", "content"],
    }

    def __init__(self, environment: ShellEnvironment):
        self.environment = environment

    def resolve_path(self, path: str | Path) -> Path:
        """Absolute target path, anchored at the current shell_cwd."""
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.environment.shell_cwd / candidate
        return candidate.resolve()

    def write_file(self, path: str | Path, content: str) -> WriteFileResult:
        """Write ``content`` to ``path`` atomically.

        The data goes to a temporary file in the target directory that then
        replaces the target, so a failed write never leaves a partial file.
        """
        target = Path(path)
        tmp_name: str | None = None
        try:
            target = self.resolve_path(path)
            data = content.encode("utf-8")
            target.parent.mkdir(parents=True, exist_ok=True)
            mode = target.stat().st_mode & 0o777 if target.exists() else 0o644
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, target)
            tmp_name = None
        except (OSError, ValueError) as e:
            # ValueError covers unencodable text (lone surrogates) and NUL bytes in paths
            log.error("Write failed", path=str(target), error=str(e))
            return WriteFileResult(success=False, path=target, error=str(e))
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

        log.info("Wrote file", path=str(target), bytes=len(data))
        return WriteFileResult(success=True, path=target, bytes_written=len(data))

    async def execute(self, path: str, content: str, **kwargs: Any) -> ToolResult:
        result = self.write_file(path, content)
        if not result.success:
            return ToolResult(success=False, error=f"Error writing file: {result.error}")
        return ToolResult(
            success=True,
            content=f"Successfully wrote {result.bytes_written} bytes to {result.path}",
        )
