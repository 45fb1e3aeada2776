"""Running plugin and probe commands with a timeout."""

from __future__ import annotations

import os
import signal
import subprocess
from dataclasses import dataclass
from typing import Iterable

from .command import Command

DEFAULT_TIMEOUT = 30.0
KILL_AFTER = 10.0


@dataclass(frozen=True)
class CommandResult:
    """Output and exit code of a finished command."""

    stdout: str
    stderr: str
    exit_code: int


class CommandTimedOut(Exception):
    """The command ran past its timeout and was killed by a signal."""

    def __init__(self, result: CommandResult) -> None:
        super().__init__("command timed out")
        self.result = result

    @property
    def exit_code(self) -> int:
        return self.result.exit_code


def _signal_group(proc: subprocess.Popen, sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass


def run_command(
    command: Command,
    user: str = "",
    env: Iterable[str] = (),
    timeout: float = 0.0,
) -> CommandResult:
    """Run a command, optionally as another user, with extra KEY=VALUE environment.

    A timeout of zero or less means the default of 30 seconds. When the
    timeout passes the process group gets SIGTERM, and SIGKILL ten seconds
    later. Raises CommandTimedOut when the command was killed that way, and
    OSError when it cannot be started.
    """
    args = command.to_args()
    if user:
        args = ["sudo", "-Eu", user, *args]
    environment = dict(os.environ)
    for entry in env:
        key, _, value = entry.partition("=")
        environment[key] = value
    duration = timeout if timeout and timeout > 0 else DEFAULT_TIMEOUT

    proc = subprocess.Popen(
        args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=environment,
        start_new_session=True,
    )
    timed_out = False
    try:
        out, err = proc.communicate(timeout=duration)
    except subprocess.TimeoutExpired:
        timed_out = True
        _signal_group(proc, signal.SIGTERM)
        try:
            out, err = proc.communicate(timeout=KILL_AFTER)
        except subprocess.TimeoutExpired:
            _signal_group(proc, signal.SIGKILL)
            out, err = proc.communicate()

    code = proc.returncode
    signaled = code < 0
    result = CommandResult(
        stdout=out.decode(errors="replace"),
        stderr=err.decode(errors="replace"),
        exit_code=128 - code if signaled else code,
    )
    if timed_out and signaled:
        raise CommandTimedOut(result)
    return result