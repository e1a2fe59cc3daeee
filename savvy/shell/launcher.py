"""
Shell launcher.

Builds the command that starts an interactive shell wired to a Savvy
session. Each shell kind has a strategy: which binary to run, which startup
templates to render, and how to make the shell load the rendered script.

The launcher only prepares the exec configuration. Attaching the shell to a
pseudo-terminal is the job of savvy.terminal.PtySession.
"""

import os
import shlex
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from savvy.config import (
    CONTEXT_ENV,
    DEFAULT_WAIT_DELAY,
    RUN_SOCKET_PATH_ENV,
    SOCKET_PATH_ENV,
    Mode,
)
from savvy.logging import get_logger
from savvy.runbook import Runbook
from savvy.shell.kind import ShellKind, supported_shells

logger = get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

# XDG base directory default when XDG_DATA_DIRS is unset
DEFAULT_XDG_DATA_DIRS = "/usr/local/share:/usr/share"

RCFILE = "rcfile"
ZDOTDIR = "zdotdir"
VENDOR_CONF = "vendor_conf"


class UnsupportedShellError(RuntimeError):
    """Raised when a session is requested for a shell Savvy cannot drive."""

    pass


class ExecutableNotFoundError(RuntimeError):
    """Raised when a required executable is not on PATH."""

    def __init__(self, name: str, remediation: str = ""):
        self.name = name
        self.remediation = remediation
        message = f"{name} not found on your PATH"
        if remediation:
            message += f"\n{remediation}"
        super().__init__(message)


@dataclass(frozen=True)
class ShellStrategy:
    """How to start one kind of shell."""
    binary: str
    templates: Dict[Mode, str]
    startup: str


STRATEGIES: Dict[ShellKind, ShellStrategy] = {
    ShellKind.BASH: ShellStrategy(
        binary="bash",
        templates={Mode.RECORD: "bash_record.sh.j2", Mode.RUN: "bash_run.sh.j2"},
        startup=RCFILE,
    ),
    # dash has no hooks; run bash for dash users
    ShellKind.DASH: ShellStrategy(
        binary="bash",
        templates={Mode.RECORD: "bash_record.sh.j2", Mode.RUN: "bash_run.sh.j2"},
        startup=RCFILE,
    ),
    ShellKind.ZSH: ShellStrategy(
        binary="zsh",
        templates={Mode.RECORD: "zsh_record.zsh.j2", Mode.RUN: "zsh_run.zsh.j2"},
        startup=ZDOTDIR,
    ),
    ShellKind.FISH: ShellStrategy(
        binary="fish",
        templates={Mode.RECORD: "fish_record.fish.j2", Mode.RUN: "fish_run.fish.j2"},
        startup=VENDOR_CONF,
    ),
}

SAVVY_PATH_INSTRUCTION = """
  Please add savvy to your $PATH, for example:

  echo 'export PATH="$HOME/.local/bin:$PATH"' >> ~/.bashrc
  source ~/.bashrc
"""


def _template_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["shell_quote"] = shlex.quote
    return env


@dataclass
class ShellCommand:
    """
    Exec configuration for a session shell.

    Attributes:
        argv: Program and arguments; argv[0] is the resolved shell path
        env: Complete environment for the shell
        wait_delay: Seconds to wait for the shell to exit before killing it
        temp_paths: Generated files and directories, removed by cleanup()
    """
    argv: List[str]
    env: Dict[str, str]
    wait_delay: float = DEFAULT_WAIT_DELAY
    temp_paths: List[str] = field(default_factory=list)

    def cleanup(self) -> None:
        """Remove the generated startup files."""
        for path in self.temp_paths:
            if os.path.isdir(path):
                shutil.rmtree(path, ignore_errors=True)
            else:
                try:
                    os.unlink(path)
                except FileNotFoundError:
                    pass
        self.temp_paths = []


class Launcher:
    """
    Prepare a shell for a recording or replay session.

    Example:
        launcher = Launcher(ShellKind.ZSH)
        command = launcher.spawn(Mode.RECORD, "/tmp/savvy-socket")
        try:
            PtySession(command).run()
        finally:
            command.cleanup()
    """

    def __init__(
        self,
        kind: ShellKind,
        savvy_bin: Optional[str] = None,
        wait_delay: float = DEFAULT_WAIT_DELAY,
        tmp_dir: Optional[str] = None,
    ):
        """
        Args:
            kind: Shell to launch
            savvy_bin: Savvy executable the hooks call (default: looked up on PATH)
            wait_delay: Grace period handed to the ShellCommand
            tmp_dir: Where startup files are written (default: system temp dir)
        """
        self.kind = kind
        self.savvy_bin = savvy_bin
        self.wait_delay = wait_delay
        self.tmp_dir = tmp_dir
        self.templates = _template_env()

    def strategy(self) -> ShellStrategy:
        """
        Strategy for this launcher's shell.

        Raises:
            UnsupportedShellError: If the shell kind has no strategy
        """
        strategy = STRATEGIES.get(self.kind)
        if strategy is None:
            raise UnsupportedShellError(
                f"savvy doesn't support your current shell ({self.kind}). "
                f"Supported shells: {', '.join(supported_shells())}"
            )
        return strategy

    def render(self, mode: Mode, socket_path: str, runbook: Optional[Runbook] = None) -> str:
        """
        Render the startup script for a session.

        Args:
            mode: Record or run
            socket_path: Socket of the session's server
            runbook: Runbook being replayed (run mode)

        Returns:
            Script text
        """
        strategy = self.strategy()
        template = self.templates.get_template(strategy.templates[mode])
        return template.render(
            mode=mode.value,
            socket_env=SOCKET_PATH_ENV if mode is Mode.RECORD else RUN_SOCKET_PATH_ENV,
            socket_path=socket_path,
            savvy_bin=self._savvy_bin(),
            title=runbook.title if runbook else "",
            alias=runbook.alias if runbook else "",
        )

    def spawn(self, mode: Mode, socket_path: str, runbook: Optional[Runbook] = None) -> ShellCommand:
        """
        Write the startup script and build the shell command.

        Nothing is written when the shell is unsupported or missing.

        Args:
            mode: Record or run
            socket_path: Socket of the session's server
            runbook: Runbook being replayed (run mode)

        Returns:
            ShellCommand; the caller runs it and calls cleanup()

        Raises:
            UnsupportedShellError: If the shell kind is not supported
            ExecutableNotFoundError: If the shell or savvy is not on PATH
        """
        strategy = self.strategy()
        shell_path = shutil.which(strategy.binary)
        if shell_path is None:
            raise ExecutableNotFoundError(strategy.binary, f"Install {strategy.binary} or run savvy from another shell.")

        script = self.render(mode, socket_path, runbook)

        env = dict(os.environ)
        env[CONTEXT_ENV] = mode.value
        env[SOCKET_PATH_ENV if mode is Mode.RECORD else RUN_SOCKET_PATH_ENV] = socket_path

        if strategy.startup == RCFILE:
            fd, rcfile = tempfile.mkstemp(prefix="savvy-bashrc-", suffix=".bash", dir=self.tmp_dir)
            with os.fdopen(fd, "w") as f:
                f.write(script)
            argv = [shell_path, "--rcfile", rcfile, "-i"]
            temp_paths = [rcfile]

        elif strategy.startup == ZDOTDIR:
            zdotdir = tempfile.mkdtemp(prefix="savvy-zsh-", dir=self.tmp_dir)
            Path(zdotdir, ".zshrc").write_text(script)
            env["ZDOTDIR"] = zdotdir
            argv = [shell_path]
            temp_paths = [zdotdir]

        else:
            data_dir = tempfile.mkdtemp(prefix="savvy-fish-", dir=self.tmp_dir)
            vendor_conf = Path(data_dir, "fish", "vendor_conf.d")
            vendor_conf.mkdir(parents=True, mode=0o755)
            (vendor_conf / "savvy.fish").write_text(script)
            env["XDG_DATA_DIRS"] = add_xdg_data_dir(os.environ.get("XDG_DATA_DIRS"), data_dir)
            argv = [shell_path]
            temp_paths = [data_dir]

        logger.debug(f"prepared {self.kind} {mode.value} shell: {' '.join(argv)}")
        return ShellCommand(argv=argv, env=env, wait_delay=self.wait_delay, temp_paths=temp_paths)

    def _savvy_bin(self) -> str:
        if self.savvy_bin:
            return self.savvy_bin
        found = shutil.which("savvy")
        if found is None:
            raise ExecutableNotFoundError("savvy", SAVVY_PATH_INSTRUCTION)
        self.savvy_bin = found
        return found


def add_xdg_data_dir(data_dirs: Optional[str], vendor_dir: str) -> str:
    """Append vendor_dir to an XDG_DATA_DIRS value."""
    if not data_dirs:
        data_dirs = DEFAULT_XDG_DATA_DIRS
    return f"{data_dirs}:{vendor_dir}"
