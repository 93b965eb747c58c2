"""Agent orchestration: the per-turn tool loop."""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

from notabene.approval import (
    ApprovalKind,
    ApprovalPort,
    ApprovalRequest,
    rejection_message,
)
from notabene.conversation import Conversation
from notabene.exceptions import LLMError
from notabene.llm import Attachment, LLMProvider, Message, ToolCall, ToolDefinition
from notabene.logging import get_logger
from notabene.shell.approval_patterns import ApprovalPatterns
from notabene.shell.classifier import classify
from notabene.shell.environment import ShellEnvironment
from notabene.tools.bash import BashTool, SetCwdTool
from notabene.tools.canned import CannedToolRegistry
from notabene.tools.registry import ToolRegistry
from notabene.tools.remote import RemoteBinding, RemoteToolSource, build_remote_catalog
from notabene.tools.write import WriteFileTool

log = get_logger(__name__)

ACTION_LIMIT_MESSAGE = (
    "I've reached the maximum number of tool calls for this message. "
    "Let me provide a response with the information I have."
)
CANCELLED_RESULT = "Error: Tool call cancelled before it ran."
SKIPPED_RESULT = (
    "Error: Tool call limit reached for this message. This call was not run."
)


class ActionKind(str, Enum):
    """Backend that serves a requested tool name."""

    CANNED = "canned"
    SHELL = "shell"
    SET_CWD = "set_cwd"
    WRITE_FILE = "write_file"
    REMOTE = "remote"
    UNKNOWN = "unknown"


@dataclass
class TurnResult:
    """How a user turn ended.

    ``status`` is ``done`` when the model answered without tools,
    ``action_limit`` when the per-turn cap stopped the loop and ``error``
    when the model call failed.
    """

    text: str
    status: str = "done"
    actions: int = 0
    error: str | None = None


class Agent:
    """Runs the conversation and every tool call the model asks for."""

    def __init__(
        self,
        provider: LLMProvider,
        environment: ShellEnvironment,
        approval: ApprovalPort,
        conversation: Conversation | None = None,
        canned_tools: CannedToolRegistry | None = None,
        remote_sources: Iterable[RemoteToolSource] | None = None,
        approval_patterns: ApprovalPatterns | None = None,
        bash_tool: BashTool | None = None,
        write_tool: WriteFileTool | None = None,
        danger_patterns: list | None = None,
        always_allow: Iterable[str] | None = None,
        max_actions_per_turn: int = 3,
        remote_timeout: float = 60.0,
        status_callback: Callable[[str], None] | None = None,
        tool_output_callback: Callable[[str, dict[str, Any], str], None] | None = None,
    ):
        """Initialize the agent.

        Args:
            provider: LLM provider
            environment: Shell environment shared with the native tools
            approval: Port asked before anything touches the machine
            conversation: Existing history; a fresh one is created if omitted
            canned_tools: Stub tools answered from templates
            remote_sources: Remote tool servers
            approval_patterns: Pre-approved command patterns
            bash_tool: Shell sandbox; ``None`` leaves bash and set_cwd out
            write_tool: File writer; ``None`` leaves write_file out
            danger_patterns: Compiled ``(regex, reason)`` pairs for the classifier
            always_allow: Remote tool names that never need approval
            max_actions_per_turn: Tool calls allowed before the loop stops
            remote_timeout: Seconds a remote tool may take
            status_callback: Receives short progress notices for the UI
            tool_output_callback: Receives ``(tool, arguments, output)`` per call
        """
        self.provider = provider
        self.environment = environment
        self.approval = approval
        self.conversation = conversation if conversation is not None else Conversation()
        self.canned_tools = canned_tools or CannedToolRegistry()
        self.remote_sources = list(remote_sources or [])
        self.approval_patterns = approval_patterns or ApprovalPatterns()
        self.danger_patterns = danger_patterns
        self.always_allow: set[str] = set(always_allow or [])
        self.max_actions_per_turn = max_actions_per_turn
        self.remote_timeout = remote_timeout
        self.status_callback = status_callback
        self.tool_output_callback = tool_output_callback

        self.tools = ToolRegistry()
        if bash_tool is not None:
            self.tools.register(bash_tool)
            self.tools.register(SetCwdTool(environment))
        if write_tool is not None:
            self.tools.register(write_tool)

        self._remote: dict[str, RemoteBinding] = {}
        self._actions_this_turn = 0

    def _set_runtime_status(self, status: str) -> None:
        """Forward runtime status updates when callback is configured."""
        if self.status_callback:
            try:
                self.status_callback(status)
            except Exception:
                log.debug("Status callback failed", status=status)

    def _emit_tool_output(self, tool_name: str, arguments: dict[str, Any], output: str) -> None:
        """Forward raw tool output to UI callback when configured."""
        if not self.tool_output_callback:
            return
        try:
            self.tool_output_callback(tool_name, arguments, output)
        except Exception:
            log.debug("Tool output callback failed", tool=tool_name)

    async def refresh_remote_tools(self) -> list[str]:
        """List remote tools and work out the names the model will see.

        Returns:
            Remote tool names replaced by canned tools of the same name.
        """
        self._remote = await build_remote_catalog(self.remote_sources, self.tools.list_tools())
        self.canned_tools.integrate(list(self._remote))
        overridden = self.canned_tools.overridden_tools()
        if overridden:
            log.info("Canned tools override remote tools", tools=overridden)
        return overridden

    def tool_definitions(self) -> list[ToolDefinition]:
        """Canned, native and remote tools; earlier entries win on name clashes."""
        definitions: list[ToolDefinition] = []
        seen: set[str] = set()
        candidates = [
            *self.canned_tools.get_definitions(),
            *self.tools.get_definitions(),
            *(binding.get_definition() for binding in self._remote.values()),
        ]
        for item in candidates:
            if item["name"] in seen:
                continue
            seen.add(item["name"])
            definitions.append(ToolDefinition.from_dict(item))
        return definitions

    def resolve_action(self, name: str) -> ActionKind:
        if self.canned_tools.has_tool(name):
            return ActionKind.CANNED
        if self.tools.has_tool(name):
            if name == "bash":
                return ActionKind.SHELL
            if name == "set_cwd":
                return ActionKind.SET_CWD
            if name == "write_file":
                return ActionKind.WRITE_FILE
        if name in self._remote:
            return ActionKind.REMOTE
        return ActionKind.UNKNOWN

    def clear(self) -> None:
        self.conversation.clear()

    def add_context(
        self,
        content: str,
        acknowledgement: str,
        attachments: list[Attachment] | None = None,
    ) -> None:
        """Add user-supplied material to history without calling the model.

        The material is followed by a fixed assistant acknowledgement so
        user and assistant turns keep alternating.
        """
        self.conversation.append(
            Message(role="user", content=content, attachments=list(attachments or []))
        )
        self.conversation.append(Message(role="assistant", content=acknowledgement))

    async def send_message(
        self,
        user_input: str,
        attachments: list[Attachment] | None = None,
    ) -> TurnResult:
        """Run one user turn until the model answers without tools.

        Every tool call appended to history gets exactly one tool message
        with its call id. The loop stops once ``max_actions_per_turn`` calls
        have run and the model still asks for more.
        """
        self._actions_this_turn = 0
        self.conversation.append(
            Message(role="user", content=user_input, attachments=list(attachments or []))
        )

        while True:
            self._set_runtime_status("thinking")
            try:
                response = await self.provider.complete(
                    self.conversation.messages,
                    tools=self.tool_definitions(),
                )
            except LLMError as e:
                log.error("Model call failed", error=str(e))
                self._set_runtime_status("waiting")
                return TurnResult(
                    text="",
                    status="error",
                    actions=self._actions_this_turn,
                    error=str(e),
                )

            if not response.tool_calls:
                text = response.content or ""
                if text.strip():
                    self.conversation.append(Message(role="assistant", content=text))
                self._set_runtime_status("waiting")
                return TurnResult(text=text, actions=self._actions_this_turn)

            if self._actions_this_turn >= self.max_actions_per_turn:
                log.warning(
                    "Tool call limit reached",
                    limit=self.max_actions_per_turn,
                    requested=[call.name for call in response.tool_calls],
                )
                self.conversation.append(Message(role="assistant", content=ACTION_LIMIT_MESSAGE))
                self._set_runtime_status("waiting")
                return TurnResult(
                    text=ACTION_LIMIT_MESSAGE,
                    status="action_limit",
                    actions=self._actions_this_turn,
                )

            self.conversation.append(
                Message(
                    role="assistant",
                    content=response.content or "",
                    tool_calls=list(response.tool_calls),
                )
            )
            await self._handle_tool_calls(response.tool_calls)

    async def _handle_tool_calls(self, tool_calls: list[ToolCall]) -> None:
        """Run calls in order and append one tool message per call.

        Calls past the per-turn limit are answered without running.
        """
        pending = list(tool_calls)
        try:
            while pending:
                call = pending[0]
                if self._actions_this_turn >= self.max_actions_per_turn:
                    log.warning("Skipping tool call over the limit", tool=call.name, call_id=call.id)
                    self._append_result(call, SKIPPED_RESULT)
                    pending.pop(0)
                    continue
                self._set_runtime_status(f"running {call.name}")
                log.info("Executing tool", tool=call.name, call_id=call.id)
                output = await self._run_action(call)
                self._append_result(call, output)
                pending.pop(0)
                self._actions_this_turn += 1
                self._emit_tool_output(call.name, call.arguments, output)
        finally:
            for call in pending:
                self._append_result(call, CANCELLED_RESULT)

    def _append_result(self, call: ToolCall, output: str) -> None:
        self.conversation.append(
            Message(
                role="tool",
                content=output,
                tool_call_id=call.id,
                tool_name=call.name,
            )
        )

    async def _run_action(self, call: ToolCall) -> str:
        arguments = call.arguments if isinstance(call.arguments, dict) else {}
        kind = self.resolve_action(call.name)
        try:
            if kind == ActionKind.CANNED:
                return self.canned_tools.invoke(call.name, arguments)
            if kind == ActionKind.SHELL:
                return await self._run_shell(arguments)
            if kind == ActionKind.SET_CWD:
                result = await self.tools.execute("set_cwd", arguments)
                return result.to_model_text()
            if kind == ActionKind.WRITE_FILE:
                return await self._run_write(arguments)
            if kind == ActionKind.REMOTE:
                return await self._run_remote(call.name, arguments)
            return f"Error: Tool '{call.name}' not found"
        except Exception as e:
            log.error("Tool execution failed", tool=call.name, error=str(e))
            return f"Error: {e}"

    async def _run_shell(self, arguments: dict[str, Any]) -> str:
        bash = self.tools.get("bash")
        bash.validate_arguments(arguments)
        command = str(arguments["command"])
        classified = classify(command, self.danger_patterns)

        if self.approval_patterns.is_approved(command):
            self._set_runtime_status(f"bash (pre-approved): {classified.display_text}")
        else:
            decision = await self.approval.request_approval(
                ApprovalRequest(
                    kind=ApprovalKind.SHELL,
                    tool_name="bash",
                    display_text=classified.display_text,
                    details=command,
                    description=str(arguments.get("description") or ""),
                    category=classified.category.value,
                    is_dangerous=classified.is_dangerous,
                    danger_reason=classified.danger_reason,
                    arguments=arguments,
                )
            )
            if not decision.approved:
                log.info("Command rejected", command=command, reason=decision.reason)
                return rejection_message(ApprovalKind.SHELL, decision)

        result = await bash.run(command, timeout_seconds=_coerce_timeout(arguments.get("timeout_seconds")))
        status = "ok" if result.exit_code == 0 else "fail"
        self._set_runtime_status(f"[{status}] exit {result.exit_code}")
        return result.format_for_model()

    async def _run_write(self, arguments: dict[str, Any]) -> str:
        writer = self.tools.get("write_file")
        writer.validate_arguments(arguments)
        path = str(arguments["path"])
        content = str(arguments["content"])
        resolved = writer.resolve_path(path)

        if not self.approval_patterns.is_approved(f"write_file {resolved}"):
            line_count = len(content.split("\n"))
            byte_count = len(content.encode("utf-8"))
            decision = await self.approval.request_approval(
                ApprovalRequest(
                    kind=ApprovalKind.WRITE_FILE,
                    tool_name="write_file",
                    display_text=f"{resolved} ({line_count} lines, {byte_count} bytes)",
                    details=content,
                    category="write",
                    arguments={"path": path},
                )
            )
            if not decision.approved:
                log.info("File write rejected", path=str(resolved), reason=decision.reason)
                return rejection_message(ApprovalKind.WRITE_FILE, decision)

        result = await writer.execute(path=path, content=content)
        return result.to_model_text()

    async def _run_remote(self, name: str, arguments: dict[str, Any]) -> str:
        binding = self._remote[name]
        source = binding.source
        action = binding.action.name

        allowed = name in self.always_allow or source.is_always_allowed(action)
        if not allowed:
            decision = await self.approval.request_approval(
                ApprovalRequest(
                    kind=ApprovalKind.REMOTE,
                    tool_name=name,
                    display_text=name,
                    details=json.dumps(arguments, indent=2, default=str),
                    description=binding.action.description,
                    allow_always=True,
                    arguments=arguments,
                )
            )
            if decision.always:
                source.allow_always(action)
            if not decision.approved:
                log.info("Remote tool call rejected", tool=name, reason=decision.reason)
                return rejection_message(ApprovalKind.REMOTE, decision)

        try:
            return await asyncio.wait_for(source.invoke(action, arguments), timeout=self.remote_timeout)
        except TimeoutError:
            log.warning("Remote tool timed out", tool=name, timeout=self.remote_timeout)
            return f"Error: Tool '{name}' timed out after {self.remote_timeout:g}s"


def _coerce_timeout(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        timeout = int(float(value))
    except (TypeError, ValueError):
        return None
    return timeout if timeout > 0 else None
