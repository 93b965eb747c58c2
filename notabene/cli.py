"""Terminal UI for NotaBene."""

from __future__ import annotations

import json
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from notabene import __version__
from notabene.llm import Attachment
from notabene.logging import get_logger

log = get_logger(__name__)

TEXT_ACKNOWLEDGEMENT = (
    "I've received the document content and it's now available in our conversation context."
)
IMAGE_ACKNOWLEDGEMENT = (
    "I've received the image and it's now available in our conversation context. "
    "I can analyze and discuss its contents."
)
_IMAGE_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp", "image/bmp"}
_TOOL_OUTPUT_PREVIEW = 2000


class CommandKind(str, Enum):
    EXIT = "exit"
    CLEAR = "clear"
    INSERT = "insert"


@dataclass(frozen=True)
class SpecialCommand:
    """A slash command or exit request typed at the prompt."""

    kind: CommandKind
    argument: str = ""


@dataclass
class InsertedFile:
    """File content ready to be added to the conversation."""

    name: str
    content: str
    acknowledgement: str
    attachments: list[Attachment] = field(default_factory=list)

    @property
    def is_image(self) -> bool:
        return bool(self.attachments)


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def read_insert_file(path: Path | str, cwd: Path | str | None = None) -> InsertedFile:
    """Read a file named by ``/insert``.

    Images become attachments; anything else is read as UTF-8 text.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If a text file cannot be decoded or is empty
    """
    file_path = Path(_strip_quotes(str(path))).expanduser()
    if not file_path.is_absolute() and cwd is not None:
        file_path = Path(cwd) / file_path
    if not file_path.is_file():
        raise FileNotFoundError(f"File not found: {file_path}")

    media_type, _ = mimetypes.guess_type(file_path.name)
    if media_type in _IMAGE_TYPES:
        return InsertedFile(
            name=file_path.name,
            content=f"Here is the image from file '{file_path.name}'.",
            acknowledgement=IMAGE_ACKNOWLEDGEMENT,
            attachments=[Attachment.from_path(file_path, media_type)],
        )

    try:
        text = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"{file_path.name} is not a UTF-8 text file") from e
    if not text.strip():
        raise ValueError(f"{file_path.name} is empty")
    return InsertedFile(
        name=file_path.name,
        content=f"Here is the content from file '{file_path.name}':\n\n{text}",
        acknowledgement=TEXT_ACKNOWLEDGEMENT,
    )


class TerminalUI:
    """Terminal UI using Rich."""

    def __init__(self, console: Console | None = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose

    def print_welcome(self, launch_directory: Path | str, history_loaded: bool) -> None:
        """Print welcome banner and the directory the session is bound to."""
        self.console.print(
            f"[bold]N[/bold]ota[bold]B[/bold]ene {__version__} [dim]▪[/dim] "
            "[cyan]exit[/cyan] [dim]to quit[/dim] [cyan]?[/cyan] [dim]for help[/dim]"
        )
        name = Path(launch_directory).name or str(launch_directory)
        if history_loaded:
            self.console.print(f"[dim]Loaded conversation history for directory:[/dim] [yellow]{escape(name)}[/yellow]")
        else:
            self.console.print(f"[dim]Starting fresh conversation for directory:[/dim] [yellow]{escape(name)}[/yellow]")

    def print_help(self) -> None:
        """Print help message."""
        help_text = (
            "Available commands:\n"
            "  exit, /exit           - Quit the application\n"
            "  /clear                - Clear conversation history\n"
            "  /insert <filepath>    - Insert file content (text or image)\n"
            "  ?, /help              - Show this help"
        )
        self.console.print(help_text, markup=False, highlight=False)

    def print_message(self, role: str, content: str) -> None:
        """Print a message with styling."""
        if role == "assistant":
            self.console.print(Markdown(content))
            return
        self.console.print(f"[bold]{role.capitalize()}:[/bold] {escape(content)}", highlight=False)

    def print_error(self, error: str) -> None:
        """Print an error message."""
        self.console.print(f"[bold red]Error:[/bold red] {escape(error)}", highlight=False)

    def print_warning(self, warning: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]Warning:[/yellow] {escape(warning)}", highlight=False)

    def print_info(self, message: str) -> None:
        self.console.print(message, markup=False, highlight=False)

    def print_status(self, status: str) -> None:
        """Print runtime status; only shown in verbose mode."""
        if self.verbose:
            self.console.print(f"[dim]{escape(status)}[/dim]", highlight=False)

    def print_tool_output(self, tool_name: str, arguments: dict[str, Any], output: str) -> None:
        """Print the tool log: name, input JSON and output (verbose mode)."""
        if not self.verbose:
            return
        shown = output
        if len(shown) > _TOOL_OUTPUT_PREVIEW:
            shown = shown[:_TOOL_OUTPUT_PREVIEW] + "\n... (truncated)"
        body = (
            f"Input:\n{json.dumps(arguments, indent=2, default=str, ensure_ascii=False)}\n\n"
            f"Output:\n{shown}"
        )
        self.console.print(Panel(Text(body), title=escape(tool_name), title_align="left", border_style="dim"))

    def print_fake_tools_report(self, loaded: int, overridden: list[str]) -> None:
        """Report canned tools loaded at startup."""
        if loaded <= 0:
            return
        for name in overridden:
            self.console.print(f"[magenta]Fake tool '{escape(name)}' overrides remote tool[/magenta]")
        override_count = len(overridden)
        plural = "" if override_count == 1 else "s"
        self.console.print(
            f"[magenta]Loaded {loaded} fake tools "
            f"({override_count} override{plural}, {loaded - override_count} new)[/magenta]"
        )

    def prompt(self, prompt_text: str = "You: ") -> str:
        """Prompt for input.

        Raises:
            EOFError: When stdin is closed
        """
        self.console.print(Rule(style="dim"))
        value = self.console.input(f"[bold green]{prompt_text}[/bold green]")
        self.console.print(Rule(style="dim"))
        return value

    def handle_special_command(self, cmd: str) -> SpecialCommand | str | None:
        """Handle special commands.

        Returns:
            A :class:`SpecialCommand` for the caller to carry out, ``None``
            when the command was handled here, or the input itself when it
            is a message for the model.
        """
        cmd = cmd.strip()
        command = cmd.lower()

        if command in ("exit", "/exit", "/quit"):
            return SpecialCommand(CommandKind.EXIT)
        if command in ("?", "/help"):
            self.print_help()
            return None
        if not cmd.startswith("/"):
            return cmd

        parts = cmd.split(None, 1)
        name = parts[0].lower()
        args = parts[1].strip() if len(parts) > 1 else ""

        if name == "/clear":
            return SpecialCommand(CommandKind.CLEAR)
        if name == "/insert":
            if not args:
                self.print_error("Please specify a file path: /insert <filepath>")
                return None
            return SpecialCommand(CommandKind.INSERT, args)
        self.print_error(f"Unknown command: {name}")
        return None
