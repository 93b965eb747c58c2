"""Human approval for actions that touch the machine.

The agent only talks to :class:`ApprovalPort`. Interactive sessions use
:class:`InteractiveApproval`, which prompts on the terminal and blocks until
the user answers. Scripted sessions use :class:`NonInteractiveApproval`,
which never waits: anything not pre-approved is refused straight away with
a reason the model can read.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TextIO

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from notabene.logging import get_logger

log = get_logger(__name__)

_PREVIEW_CHARS = 500


class _ApprovalPrompt(Prompt):
    """Prompt that raises EOFError once its input stream is exhausted."""

    @classmethod
    def get_input(
        cls,
        console: Console,
        prompt: Any,
        password: bool,
        stream: TextIO | None = None,
    ) -> str:
        value = console.input(prompt, password=password, stream=stream)
        # readline() returns "" only at end of stream; a bare Enter is "\n"
        if stream is not None and not value:
            raise EOFError
        return value


class ApprovalKind(str, Enum):
    SHELL = "shell"
    WRITE_FILE = "write_file"
    REMOTE = "remote"


@dataclass
class ApprovalRequest:
    """Everything the user needs to judge one action."""

    kind: ApprovalKind
    tool_name: str
    display_text: str
    details: str = ""
    description: str = ""
    category: str = ""
    is_dangerous: bool = False
    danger_reason: str | None = None
    allow_always: bool = False
    arguments: dict[str, Any] = field(default_factory=dict)

    @property
    def default_approve(self) -> bool:
        """Enter means yes for harmless commands, no for writes and danger."""
        return not self.is_dangerous and self.kind != ApprovalKind.WRITE_FILE


@dataclass
class ApprovalDecision:
    approved: bool
    reason: str | None = None
    always: bool = False
    unavailable: bool = False

    @classmethod
    def approve(cls, always: bool = False) -> "ApprovalDecision":
        return cls(approved=True, always=always)

    @classmethod
    def reject(cls, reason: str | None = None) -> "ApprovalDecision":
        return cls(approved=False, reason=(reason or "").strip() or None)

    @classmethod
    def not_available(cls, reason: str) -> "ApprovalDecision":
        return cls(approved=False, reason=reason, unavailable=True)


def rejection_message(kind: ApprovalKind, decision: ApprovalDecision) -> str:
    """Tool result text telling the model its action was refused."""
    if decision.unavailable:
        return f"Error: Approval unavailable. {decision.reason}"

    reason = decision.reason
    if kind == ApprovalKind.SHELL:
        if reason:
            return f"Error: User rejected this command. Reason: {reason}"
        return "Error: User rejected this command. Permission denied."
    if kind == ApprovalKind.WRITE_FILE:
        if reason:
            return f"Error: User rejected file write. Reason: {reason}"
        return "Error: User rejected file write. Permission denied."
    if reason:
        return (
            f"Error: User rejected this tool call. Reason: {reason}. "
            "Please consider an alternative approach based on the user's feedback."
        )
    return "Error: User rejected this tool call. Permission denied. Do not retry this action."


class ApprovalPort(ABC):
    """Decides whether an action may run."""

    @abstractmethod
    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        pass


class NonInteractiveApproval(ApprovalPort):
    """Refuse everything that reaches the prompt; never blocks."""

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        log.info(
            "Approval unavailable in non-interactive mode",
            tool=request.tool_name,
            display=request.display_text,
        )
        if request.kind == ApprovalKind.SHELL:
            hint = 'Pre-approve it with --approve "<pattern>" to allow it.'
        elif request.kind == ApprovalKind.REMOTE:
            hint = "Add the tool to tools.always_allow to allow it."
        else:
            hint = 'Pre-approve it with --approve "write_file <path pattern>" to allow it.'
        return ApprovalDecision.not_available(
            f"'{request.tool_name}' needs interactive approval, but nb is running "
            f"non-interactively. {hint}"
        )


class InteractiveApproval(ApprovalPort):
    """Terminal prompt: y(es), n(o), ? (show full request), a(lways)."""

    def __init__(self, console: Console | None = None, stream: TextIO | None = None):
        self.console = console or Console()
        self.stream = stream

    async def request_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        # Blocks the event loop; no other action is in flight while the user decides.
        try:
            return self._ask(request)
        except EOFError:
            self.console.print("[yellow]No input available, rejecting.[/yellow]")
            return ApprovalDecision.reject()

    def _show_header(self, request: ApprovalRequest) -> None:
        if request.description:
            self.console.print(f"[dim]{escape(request.description)}[/dim]", highlight=False)
        label = request.category.capitalize() if request.category else request.tool_name
        self.console.print(f"[bold]{label}:[/bold] {escape(request.display_text)}", highlight=False)
        if request.is_dangerous and request.danger_reason:
            self.console.print(f"  [bold red]Warning:[/bold red] {request.danger_reason}")

    def _show_details(self, request: ApprovalRequest) -> None:
        if request.kind == ApprovalKind.SHELL:
            self.console.print("Full command:")
            self.console.print(request.details or request.display_text, markup=False, highlight=False)
        elif request.kind == ApprovalKind.WRITE_FILE:
            self.console.print("Content preview:")
            preview = request.details
            if len(preview) > _PREVIEW_CHARS:
                preview = preview[:_PREVIEW_CHARS] + "\n... (truncated)"
            self.console.print(preview, markup=False, highlight=False)
        else:
            self.console.print("Arguments:")
            self.console.print(
                request.details or json.dumps(request.arguments, indent=2, default=str),
                markup=False,
                highlight=False,
            )

    def _ask(self, request: ApprovalRequest) -> ApprovalDecision:
        self._show_header(request)

        options = ["y", "n", "?"]
        if request.allow_always:
            options.append("a")
        default = "y" if request.default_approve else "n"
        label = "/".join(opt.upper() if opt == default else opt for opt in options)
        question = "Allow tool call?" if request.kind == ApprovalKind.REMOTE else "Execute?"

        while True:
            answer = _ApprovalPrompt.ask(
                f"{question} {escape(f'[{label}]')}",
                console=self.console,
                default=default,
                show_default=False,
                stream=self.stream,
            )
            answer = (answer or default).strip().lower() or default

            if answer in ("y", "yes"):
                return ApprovalDecision.approve()
            if answer == "a" and request.allow_always:
                self.console.print(f"[green]Always allowing {request.tool_name}[/green]")
                return ApprovalDecision.approve(always=True)
            if answer == "?":
                self._show_details(request)
                continue
            if answer in ("n", "no"):
                reason = _ApprovalPrompt.ask(
                    "Reason (optional)",
                    console=self.console,
                    default="",
                    show_default=False,
                    stream=self.stream,
                )
                return ApprovalDecision.reject(reason)
            self.console.print(f"[yellow]Please answer {', '.join(options)}[/yellow]")
