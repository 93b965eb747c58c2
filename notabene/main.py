"""Main entry point for NotaBene."""

import asyncio
import sys
from pathlib import Path

import typer

from notabene import __version__
from notabene.agent import Agent, TurnResult
from notabene.approval import ApprovalPort, InteractiveApproval, NonInteractiveApproval
from notabene.cli import CommandKind, SpecialCommand, TerminalUI, read_insert_file
from notabene.config import Config, set_config
from notabene.conversation import Conversation
from notabene.exceptions import ConfigurationError, HistoryError
from notabene.instructions import InstructionLoader
from notabene.llm import create_provider
from notabene.logging import configure_logging, log
from notabene.session import HistoryStore
from notabene.shell import ApprovalPatterns, ShellEnvironment, compile_danger_patterns
from notabene.tools import BashTool, CannedToolRegistry, WriteFileTool

app = typer.Typer(
    help="NotaBene - a terminal AI agent that runs tools on your machine under human approval",
    add_completion=False,
)


def _load_config(config_path: str, provider: str, model: str) -> Config:
    if config_path:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        cfg = Config.from_yaml(path)
    else:
        cfg = Config.load()

    # Apply CLI overrides
    if provider:
        cfg.model.provider = provider
    if model:
        cfg.model.model = model
    return cfg


def _select_approval(ui: TerminalUI, non_interactive: bool) -> ApprovalPort:
    if non_interactive or not sys.stdin.isatty():
        return NonInteractiveApproval()
    return InteractiveApproval(console=ui.console)


def build_agent(
    cfg: Config,
    ui: TerminalUI,
    environment: ShellEnvironment,
    approval: ApprovalPort,
    approve: list[str] | None = None,
) -> Agent:
    """Wire an agent from configuration.

    Args:
        cfg: Loaded configuration
        ui: Terminal UI receiving status and tool output
        environment: Detected shell environment
        approval: Approval port for the session
        approve: Extra pre-approval patterns from the command line
    """
    shell_cfg = cfg.tools.shell
    bash_tool = None
    if shell_cfg.enabled:
        bash_tool = BashTool(
            environment,
            timeout_seconds=shell_cfg.timeout,
            max_output_lines=shell_cfg.max_output_lines,
            max_output_bytes=shell_cfg.max_output_bytes,
            head_lines=shell_cfg.head_lines,
            tail_lines=shell_cfg.tail_lines,
        )
    write_tool = WriteFileTool(environment) if cfg.tools.write_file.enabled else None

    patterns = ApprovalPatterns(cfg.approval.patterns)
    for pattern in approve or []:
        patterns.add(pattern)

    loader = InstructionLoader()
    conversation = Conversation(
        system_prompt=loader.render_system_prompt(environment.build_prompt_section())
    )

    provider = create_provider(
        provider=cfg.model.provider,
        model=cfg.model.model,
        api_key=cfg.model.api_key or None,
        base_url=cfg.model.base_url or None,
        temperature=cfg.model.temperature,
        max_tokens=cfg.model.max_tokens,
        mock_response=cfg.model.mock_response,
    )

    return Agent(
        provider=provider,
        environment=environment,
        approval=approval,
        conversation=conversation,
        canned_tools=CannedToolRegistry(),
        approval_patterns=patterns,
        bash_tool=bash_tool,
        write_tool=write_tool,
        danger_patterns=compile_danger_patterns(shell_cfg.danger_patterns),
        always_allow=cfg.tools.always_allow,
        max_actions_per_turn=cfg.agent.max_actions_per_turn,
        remote_timeout=cfg.agent.remote_timeout,
        status_callback=ui.print_status,
        tool_output_callback=ui.print_tool_output,
    )


async def _load_fake_tools(agent: Agent, path: str, ui: TerminalUI, show_report: bool) -> None:
    result = agent.canned_tools.load(path)
    if not result.success:
        ui.print_warning(f"Failed to load fake tools from {path}: {result.error}")
    overridden = await agent.refresh_remote_tools()
    if show_report:
        ui.print_fake_tools_report(result.tools_loaded, overridden)


def _render_turn(ui: TerminalUI, result: TurnResult) -> None:
    if result.status == "error":
        ui.print_error(result.error or "Model call failed")
        return
    if result.text.strip():
        ui.print_message("assistant", result.text)


async def _handle_input(agent: Agent, ui: TerminalUI, user_input: str) -> bool:
    """Process one line of input. Returns False when the session should end."""
    handled = ui.handle_special_command(user_input)
    if handled is None:
        return True
    if isinstance(handled, SpecialCommand):
        return _run_special_command(agent, ui, handled)

    if not handled.strip():
        return True
    result = await agent.send_message(handled)
    _render_turn(ui, result)
    return True


def _run_special_command(agent: Agent, ui: TerminalUI, command: SpecialCommand) -> bool:
    if command.kind == CommandKind.EXIT:
        return False
    if command.kind == CommandKind.CLEAR:
        agent.clear()
        ui.print_info("Conversation history cleared.")
        return True
    if command.kind == CommandKind.INSERT:
        try:
            inserted = read_insert_file(command.argument, cwd=agent.environment.shell_cwd)
        except (OSError, ValueError) as e:
            ui.print_error(f"Failed to insert file: {e}")
            return True
        agent.add_context(inserted.content, inserted.acknowledgement, inserted.attachments)
        kind = "Image" if inserted.is_image else "File content"
        ui.print_info(f"{kind} from {inserted.name} added to conversation context")
    return True


async def _save_history(store: HistoryStore | None, agent: Agent) -> None:
    if store is None:
        return
    try:
        await store.save(agent.environment.launch_directory, agent.conversation.to_records())
    except HistoryError as e:
        log.warning("Failed to save history", error=str(e))


async def run_session(
    cfg: Config,
    ui: TerminalUI,
    prompt: str = "",
    approve: list[str] | None = None,
    non_interactive: bool = False,
) -> None:
    """Run a single prompt, or the interactive loop when ``prompt`` is empty."""
    environment = ShellEnvironment.detect(cfg.tools.shell.detect_tools)
    approval = _select_approval(ui, non_interactive)
    agent = build_agent(cfg, ui, environment, approval, approve)
    interactive = not prompt
    store: HistoryStore | None = None

    try:
        await _load_fake_tools(agent, cfg.tools.fake_tools_path, ui, show_report=interactive)

        history_loaded = False
        if cfg.history.enabled:
            store = HistoryStore(cfg.history.path)
            try:
                records = await store.load(environment.launch_directory)
            except HistoryError as e:
                ui.print_warning(str(e))
                records = []
            history_loaded = agent.conversation.load_records(records) > 0
        auto_save = store if cfg.history.auto_save else None

        if not interactive:
            await _handle_input(agent, ui, prompt)
            await _save_history(store, agent)
            return

        ui.print_welcome(environment.launch_directory, history_loaded)
        while True:
            try:
                user_input = ui.prompt()
            except EOFError:
                log.info("EOF received")
                break
            except KeyboardInterrupt:
                log.info("Interrupted by user")
                break

            if not user_input.strip():
                continue
            if not await _handle_input(agent, ui, user_input):
                break
            await _save_history(auto_save, agent)

        await _save_history(store, agent)
    finally:
        await agent.provider.close()
        if store is not None:
            await store.close()


@app.command()
def main(
    prompt: list[str] | None = typer.Argument(None, help="Run a single prompt and exit"),
    approve: list[str] | None = typer.Option(
        None,
        "-a",
        "--approve",
        help="Pre-approve a command pattern (exact text or '*' glob); repeatable",
    ),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    provider: str = typer.Option("", "-p", "--provider", help="Override provider"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    non_interactive: bool = typer.Option(
        False,
        "--non-interactive",
        help="Never prompt for approval; reject anything not pre-approved",
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show tool log and debug logging"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
) -> None:
    """Start NotaBene, or run a single prompt given as arguments."""
    if version:
        typer.echo(f"NotaBene v{__version__}")
        raise typer.Exit()

    try:
        cfg = _load_config(config, provider, model)
    except (ConfigurationError, ValueError, OSError) as e:
        typer.echo(f"Error: Failed to load config: {e}", err=True)
        raise typer.Exit(code=1)

    set_config(cfg)
    configure_logging("DEBUG" if verbose else None)

    ui = TerminalUI(verbose=verbose)
    prompt_text = " ".join(prompt or []).strip()

    try:
        asyncio.run(run_session(
            cfg,
            ui,
            prompt=prompt_text,
            approve=approve,
            non_interactive=non_interactive,
        ))
    except KeyboardInterrupt:
        log.info("Shutting down...")
        raise typer.Exit(code=0)
    except ConfigurationError as e:
        ui.print_error(str(e))
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
