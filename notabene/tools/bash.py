"""Shell command sandbox: the ``bash`` and ``set_cwd`` tools."""

from __future__ import annotations

import asyncio
import base64
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from notabene.exceptions import DirectoryNotFoundError
from notabene.logging import get_logger
from notabene.shell.environment import ShellEnvironment
from notabene.shell.process import kill_process_tree, new_session_kwargs
from notabene.tools.registry import Tool, ToolResult

log = get_logger(__name__)

TIMEOUT_EXIT_CODE = -1
BINARY_OUTPUT_EXIT_CODE = -2
BINARY_OUTPUT_MESSAGE = "Error: Binary output detected. Use appropriate tools for binary files."

_READ_CHUNK = 64 * 1024


@dataclass
class ShellExecutionResult:
    """Outcome of one sandboxed command.

    ``exit_code`` is :data:`TIMEOUT_EXIT_CODE` exactly when ``timed_out`` is
    set, and :data:`BINARY_OUTPUT_EXIT_CODE` when output was not valid text.
    """

    stdout: str
    stderr: str
    exit_code: int
    truncated: bool = False
    timed_out: bool = False

    @property
    def is_binary(self) -> bool:
        return self.exit_code == BINARY_OUTPUT_EXIT_CODE

    def format_for_model(self) -> str:
        if self.is_binary:
            return self.stdout

        parts: list[str] = []
        if self.stdout:
            parts.append(self.stdout)
        if self.stderr:
            parts.append(f"[stderr]\n{self.stderr}")
        parts.append(f"[exit code: {self.exit_code}]")
        if self.truncated:
            parts.append("[output was truncated]")
        if self.timed_out:
            parts.append("[command timed out]")
        return "\n".join(parts)


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def _split_lines(text: str) -> list[str]:
    if not text:
        return []
    if text.endswith("\n"):
        text = text[:-1]
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


async def _drain(stream: asyncio.StreamReader | None, sink: bytearray) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        sink.extend(chunk)


class BashTool(Tool):
    """Run shell commands with a deadline and bounded output."""

    name = "bash"
    parameters = {
        "type": "object",
        "properties": {
            "description": {
                "type": "string",
                "description": "Brief explanation (5-10 words) of what this command does and why.",
            },
            "command": {
                "type": "string",
                "description": "The shell command to execute.",
            },
            "timeout_seconds": {
                "type": "integer",
                "description": "Optional timeout in seconds.",
            },
        },
        "required": ["command"],
    }

    def __init__(
        self,
        environment: ShellEnvironment,
        timeout_seconds: int = 30,
        max_output_lines: int = 200,
        max_output_bytes: int = 10240,
        head_lines: int = 50,
        tail_lines: int = 20,
    ):
        self.environment = environment
        self.timeout_seconds = timeout_seconds
        self.max_output_lines = max_output_lines
        self.max_output_bytes = max_output_bytes
        self.head_lines = head_lines
        self.tail_lines = tail_lines

    @property
    def description(self) -> str:
        return (
            "Execute a shell command and return the output.\n"
            f"Commands run in: {self.environment.shell_cwd}\n"
            f"Shell: {self.environment.shell_name}\n"
            f"Default timeout: {self.timeout_seconds}s. "
            "Returns stdout, stderr and exit code. Large outputs are truncated.\n"
            "Commands require user approval before execution."
        )

    def build_argv(self, command: str) -> list[str]:
        """argv that hands ``command`` to the shell verbatim as one argument."""
        env = self.environment
        if env.is_windows:
            if env.shell_name == "PowerShell":
                encoded = base64.b64encode(command.encode("utf-16-le")).decode("ascii")
                return [env.shell_path, "-NoProfile", "-NonInteractive", "-EncodedCommand", encoded]
            return [env.shell_path, "/d", "/s", "/c", command]
        return [env.shell_path, "-c", command]

    def sandwich(self, text: str) -> tuple[str, bool]:
        """Keep head and tail of oversized output, eliding the middle.

        Returns:
            Tuple of (text, truncated)
        """
        lines = _split_lines(text)
        total_bytes = len(text.encode("utf-8"))
        if len(lines) <= self.max_output_lines and total_bytes <= self.max_output_bytes:
            return text, False

        omitted = len(lines) - self.head_lines - self.tail_lines
        if omitted <= 0:
            return text, False

        head = lines[: self.head_lines]
        tail = lines[len(lines) - self.tail_lines :] if self.tail_lines else []
        middle = lines[self.head_lines : len(lines) - self.tail_lines]
        omitted_bytes = sum(len(line.encode("utf-8")) + 1 for line in middle)
        summary = (
            f"[... {omitted} lines omitted ({_format_size(omitted_bytes)}) "
            "- use grep/tail/head to filter ...]"
        )
        return "\n".join([*head, "", summary, "", *tail]), True

    async def run(
        self,
        command: str,
        cwd: str | Path | None = None,
        timeout_seconds: int | float | None = None,
    ) -> ShellExecutionResult:
        """Run ``command`` through the user's shell.

        Args:
            command: Command text, passed to the shell unmodified.
            cwd: Working directory; defaults to the environment's shell_cwd.
            timeout_seconds: Deadline for the whole run; defaults to the tool's.

        Returns:
            ShellExecutionResult. Timeouts and binary output are reported in
            the result, not raised.
        """
        workdir = Path(cwd) if cwd is not None else self.environment.shell_cwd
        timeout = timeout_seconds if timeout_seconds else self.timeout_seconds

        log.info("Executing shell command", command=command, cwd=str(workdir), timeout=timeout)
        process = await asyncio.create_subprocess_exec(
            *self.build_argv(command),
            cwd=str(workdir),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=os.environ.copy(),
            **new_session_kwargs(),
        )

        stdout_buf = bytearray()
        stderr_buf = bytearray()
        readers = [
            asyncio.create_task(_drain(process.stdout, stdout_buf)),
            asyncio.create_task(_drain(process.stderr, stderr_buf)),
        ]

        async def _complete() -> int:
            await asyncio.gather(*readers)
            return await process.wait()

        timed_out = False
        exit_code = TIMEOUT_EXIT_CODE
        try:
            exit_code = await asyncio.wait_for(_complete(), timeout=timeout)
        except TimeoutError:
            timed_out = True
            log.warning("Shell command timed out", command=command, timeout=timeout)
        finally:
            if timed_out or process.returncode is None:
                await kill_process_tree(process)
            for reader in readers:
                if not reader.done():
                    reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)

        stdout_text = stdout_buf.decode("utf-8", errors="replace")
        stderr_text = stderr_buf.decode("utf-8", errors="replace")
        if "\ufffd" in stdout_text or "\ufffd" in stderr_text:
            return ShellExecutionResult(
                stdout=BINARY_OUTPUT_MESSAGE,
                stderr="",
                exit_code=BINARY_OUTPUT_EXIT_CODE,
            )

        stdout, stdout_truncated = self.sandwich(stdout_text)
        stderr, stderr_truncated = self.sandwich(stderr_text)
        stdout = stdout.rstrip("\r\n")
        if timed_out:
            stdout = f"{stdout}\n[Killed - exceeded {timeout}s timeout]".lstrip("\n")

        return ShellExecutionResult(
            stdout=stdout,
            stderr=stderr.rstrip("\r\n"),
            exit_code=TIMEOUT_EXIT_CODE if timed_out else exit_code,
            truncated=stdout_truncated or stderr_truncated,
            timed_out=timed_out,
        )

    async def execute(
        self,
        command: str,
        description: str = "",
        timeout_seconds: int | None = None,
        **kwargs: Any,
    ) -> ToolResult:
        result = await self.run(command, timeout_seconds=timeout_seconds)
        return ToolResult(success=True, content=result.format_for_model())


class SetCwdTool(Tool):
    """Change the working directory for later ``bash`` calls."""

    name = "set_cwd"
    description = (
        "Change the working directory for subsequent bash commands. "
        "Does not require approval."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Directory to switch to, absolute or relative to the current one.",
            },
        },
        "required": ["path"],
    }

    def __init__(self, environment: ShellEnvironment):
        self.environment = environment

    async def execute(self, path: str, **kwargs: Any) -> ToolResult:
        try:
            resolved = self.environment.set_cwd(path)
        except DirectoryNotFoundError as e:
            return ToolResult(success=False, error=f"Error: {e}")
        return ToolResult(success=True, content=f"Working directory changed to: {resolved}")
