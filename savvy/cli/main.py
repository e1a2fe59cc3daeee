"""
Savvy CLI - record shell sessions and replay runbooks.

Commands:
    savvy record start              - Record a shell session
    savvy record history            - Build a recording from shell history
    savvy record file <path>        - Attach a file to the active recording
    savvy run <runbook.json>        - Replay a runbook step by step
    savvy detect                    - Show the shell savvy would use
    savvy version                   - Show version

The hidden `send` and `internal` commands are called by the hooks of a
session shell.
"""

import sys
from datetime import datetime
from typing import Dict, List, Optional

import click

from savvy.config import (
    DEFAULT_RUN_SOCKET_PATH,
    DEFAULT_SOCKET_PATH,
    SOCKET_PATH_ENV,
    SessionConfig,
    in_savvy_context,
    run_socket_path_from_env,
    socket_path_from_env,
)
from savvy.logging import get_logger, setup_logging
from savvy.param import unbound
from savvy.record.recorder import Recording, RecordingSession, save_recording
from savvy.replay.runner import RunbookRunner
from savvy.runbook import load_runbook
from savvy.server.capture import CaptureClient, FileRejectedError, RecordedCommand
from savvy.server.cleanup import AbortedByUser
from savvy.server.replay import ReplayClient, ReplayRequestError, State
from savvy.server.unix import ServerUnavailableError
from savvy.shell.detect import ShellDetectionError, detect, detect_with_default
from savvy.shell.expansion import ignore_grep
from savvy.shell.history import DEFAULT_LIMIT, tail_history
from savvy.shell.kind import ShellKind, supported_shells
from savvy.shell.launcher import ExecutableNotFoundError, Launcher, UnsupportedShellError
from savvy.tail import EmptyFileError

DEFAULT_PARAM_TITLE = "Set Params"

SESSION_ERRORS = (UnsupportedShellError, ExecutableNotFoundError, ValueError, OSError)

HOOK_ERRORS = (ServerUnavailableError, ReplayRequestError)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug: bool):
    """Savvy - record shell sessions and replay them as runbooks."""
    setup_logging(level="DEBUG" if debug else "INFO", show_time=debug, show_path=debug)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _refuse_nested():
    """Exit when already running inside a session shell."""
    context = in_savvy_context()
    if context:
        click.secho(f"You are already in a savvy {context} session.", fg="red")
        click.echo("Exit it with 'exit' or ctrl+d before starting a new one.")
        sys.exit(1)


def _resolve_shell(shell: Optional[str]) -> ShellKind:
    """Shell named on the command line, or the one savvy runs under."""
    if shell:
        return ShellKind.from_name(shell)
    try:
        return detect_with_default()
    except ShellDetectionError as e:
        click.secho(f"Error: {e}", fg="red")
        click.echo(f"Supported shells: {', '.join(supported_shells())}. Use --shell to pick one.")
        sys.exit(1)


def _confirm_takeover(question: str) -> bool:
    try:
        return click.confirm(question, default=False, err=True)
    except click.Abort:
        return False


def param_label(param: str) -> str:
    """Prompt text for a parameter token."""
    if not (param.startswith("<") and param.endswith(">")):
        return DEFAULT_PARAM_TITLE
    return f"Set {param}"


def _prompt_params(params: List[str], title: str = DEFAULT_PARAM_TITLE) -> Dict[str, str]:
    """Ask for a value for each parameter. Prompts go to stderr."""
    click.secho(title, bold=True, err=True)
    return {param: click.prompt(param_label(param), err=True) for param in params}


def parse_selection(selection: str, count: int) -> List[int]:
    """
    Parse a selection like "1-3,5" into zero-based indices.

    Args:
        selection: Comma separated numbers and ranges, 1-based
        count: Number of selectable items

    Returns:
        Sorted unique indices

    Raises:
        click.BadParameter: If a number is malformed or out of range
    """
    indices = set()
    for part in selection.split(","):
        part = part.strip()
        if not part:
            continue
        start, sep, end = part.partition("-")
        try:
            first = int(start)
            last = int(end) if sep else first
        except ValueError:
            raise click.BadParameter(f"not a number or range: {part}")
        if first > last:
            first, last = last, first
        if first < 1 or last > count:
            raise click.BadParameter(f"{part} is outside 1-{count}")
        indices.update(range(first - 1, last))
    return sorted(indices)


@cli.group()
def record():
    """Record commands into a runbook."""
    pass


@record.command("start")
@click.option('--output', '-o', default='recording.json', help='Recording file')
@click.option('--shell', type=click.Choice(supported_shells()), help='Shell to record (default: detected)')
def record_start(output: str, shell: Optional[str]):
    """
    Record a shell session.

    Every command you run in the spawned shell is captured. Exit the shell
    to stop recording and save the commands.

    Example:
        savvy record start
        savvy record start -o deploy.json --shell zsh
    """
    _refuse_nested()
    kind = _resolve_shell(shell)

    config = SessionConfig(socket_path=DEFAULT_SOCKET_PATH, logger=get_logger("savvy.server"))
    session = RecordingSession(config, Launcher(kind), confirm=_confirm_takeover)

    try:
        commands = session.start()
    except AbortedByUser:
        click.echo("Recording aborted.")
        return
    except SESSION_ERRORS as e:
        click.secho(f"Error: {e}", fg="red")
        sys.exit(1)

    if not commands:
        click.secho("No commands were recorded.", fg="yellow")
        return

    session.save(output)
    click.echo(f"\nTo replay: savvy run {output}")


@record.command("history")
@click.option('--limit', '-n', default=DEFAULT_LIMIT, type=click.IntRange(min=1), help='Number of recent commands to show')
@click.option('--output', '-o', default='recording.json', help='Recording file')
@click.option('--shell', type=click.Choice(supported_shells()), help='Shell whose history to read')
def record_history(limit: int, output: str, shell: Optional[str]):
    """
    Build a recording from your shell history.

    Example:
        savvy record history -n 20
    """
    kind = _resolve_shell(shell)

    try:
        commands = tail_history(kind, limit)[:limit]
    except EmptyFileError:
        click.secho("Your shell history is empty.", fg="yellow")
        return
    except (UnsupportedShellError, OSError) as e:
        click.secho(f"Error reading history: {e}", fg="red")
        sys.exit(1)

    if not commands:
        click.secho("No commands found in your shell history.", fg="yellow")
        return

    # newest first, as the history was read
    for number, command in enumerate(commands, start=1):
        click.echo(f"{number:>4}  {command}")

    selection = click.prompt("\nCommands to record (e.g. 1-3,5)", value_proc=lambda text: parse_selection(text, len(commands)))
    if not selection:
        click.secho("Nothing selected.", fg="yellow")
        return

    # oldest first
    chosen = [commands[index] for index in reversed(selection)]
    now = datetime.now().isoformat()
    recording = Recording(
        start_time=now,
        end_time=now,
        shell=str(kind),
        commands=[RecordedCommand(command=command) for command in chosen],
    )
    save_recording(recording, output)


@record.command("file")
@click.argument('path', type=click.Path())
def record_file(path: str):
    """
    Attach a file to the active recording.

    Run this from inside a `savvy record start` session.
    """
    socket_path = socket_path_from_env()
    if not socket_path:
        click.secho("savvy record file only works inside a recording session.", fg="red")
        click.echo("Start one with: savvy record start")
        sys.exit(1)

    try:
        info = CaptureClient(socket_path).send_file(path)
    except FileRejectedError as e:
        click.secho(f"Error: {e}", fg="red")
        sys.exit(1)
    except ServerUnavailableError as e:
        click.secho(f"Failed to record file: {e}", fg="red")
        sys.exit(1)

    click.secho(f"✓ Recorded {info.path}", fg="green")


@cli.command()
@click.argument('runbook_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--shell', type=click.Choice(supported_shells()), help='Shell to run in (default: detected)')
def run(runbook_file: str, shell: Optional[str]):
    """
    Replay a runbook one step at a time.

    Each prompt of the spawned shell is prefilled with the next step.
    Placeholders such as <host> are asked for once and reused.

    Example:
        savvy run deploy.json
    """
    _refuse_nested()

    try:
        runbook = load_runbook(runbook_file)
    except (ValueError, OSError) as e:
        click.secho(f"Error loading runbook: {e}", fg="red")
        sys.exit(1)

    kind = _resolve_shell(shell)
    config = SessionConfig(
        socket_path=DEFAULT_RUN_SOCKET_PATH,
        steps=list(runbook.steps),
        logger=get_logger("savvy.server"),
    )
    runner = RunbookRunner(runbook, config, Launcher(kind), confirm=_confirm_takeover)

    try:
        runner.run()
    except AbortedByUser:
        click.echo("Run aborted.")
        return
    except SESSION_ERRORS as e:
        click.secho(f"Error: {e}", fg="red")
        sys.exit(1)


@cli.command(hidden=True, context_settings={"ignore_unknown_options": True})
@click.argument('args', nargs=-1, type=click.UNPROCESSED)
def send(args: tuple):
    """Send a command to the recording session."""
    socket_path = socket_path_from_env()
    if not socket_path:
        click.secho(f"cannot record commands: {SOCKET_PATH_ENV} is not set", fg="red", err=True)
        sys.exit(1)

    message = " ".join(args)
    if not message:
        return

    try:
        CaptureClient(socket_path).send(ignore_grep(message))
    except ServerUnavailableError as e:
        click.secho(f"failed to record command: {e}", fg="red", err=True)
        sys.exit(1)


@cli.group(hidden=True)
def internal():
    """Hooks for the replay shell."""
    pass


def _replay_call(method, *args) -> State:
    try:
        return method(*args)
    except HOOK_ERRORS as e:
        click.secho(f"savvy: {e}", fg="red", err=True)
        sys.exit(1)


@internal.command("current")
def internal_current():
    """Print the current step with parameters applied."""
    client = ReplayClient(run_socket_path_from_env())
    state = _replay_call(client.current_state)

    missing = unbound(state.command, state.params)
    if missing and click.get_text_stream("stdin").isatty():
        state = _replay_call(client.set_params, _prompt_params(missing))

    click.echo(state.command_with_params, nl=False)


@internal.command("next")
@click.option('--cmd', '-c', 'executed', default='', help='Command that was just run')
@click.option('--force', '-f', is_flag=True, help='Advance regardless of the command run')
def internal_next(executed: str, force: bool):
    """Advance to the next step if the current one was run."""
    client = ReplayClient(run_socket_path_from_env())
    state = _replay_call(client.current_state)

    if force or executed.strip() == state.command_with_params.strip():
        state = _replay_call(client.next)

    click.echo(f"{state.index}", nl=False)


@internal.command("previous")
def internal_previous():
    """Go back one step."""
    client = ReplayClient(run_socket_path_from_env())
    state = _replay_call(client.previous)
    click.echo(f"{state.index}", nl=False)


@internal.command("set-param")
@click.option('--param', '-p', 'params', multiple=True, help='Parameter to set, e.g. <host>')
@click.option('--title', '-t', default=DEFAULT_PARAM_TITLE, help='Prompt title')
def internal_set_param(params: tuple, title: str):
    """Prompt for parameter values and bind them in the replay session."""
    unique = list(dict.fromkeys(params))
    if not unique:
        return

    values = _prompt_params(unique, title)
    client = ReplayClient(run_socket_path_from_env())
    _replay_call(client.set_params, values)

    for key, value in values.items():
        click.echo(f"{key} {value}")


@internal.command("shutdown")
@click.option('--record', 'record_session', is_flag=True, help='Stop the recording session instead')
def internal_shutdown(record_session: bool):
    """Stop the session server."""
    try:
        if record_session:
            CaptureClient(socket_path_from_env() or DEFAULT_SOCKET_PATH).send_shutdown()
        else:
            ReplayClient(run_socket_path_from_env()).shutdown()
    except HOOK_ERRORS as e:
        click.secho(f"savvy: {e}", fg="red", err=True)
        sys.exit(1)


@cli.command("detect")
@click.option('--default', 'use_default', is_flag=True, help='Fall back to $SHELL if detection fails')
def detect_shell(use_default: bool):
    """Show the shell savvy would use."""
    try:
        kind = detect_with_default() if use_default else detect()
    except ShellDetectionError as e:
        click.secho(f"Error: {e}", fg="red")
        sys.exit(1)
    click.echo(str(kind))


@cli.command()
def version():
    """Show Savvy version."""
    from savvy import __version__
    click.echo(f"savvy version {__version__}")


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
