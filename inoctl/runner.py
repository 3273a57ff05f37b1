"""Run arduino-cli as a subprocess, captured or streamed."""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from pathlib import Path
from typing import Callable

import click

from inoctl.errors import ExternalToolError

log = logging.getLogger(__name__)

DEFAULT_CLI = "arduino-cli"
DEFAULT_TIMEOUT = 60.0


class StreamedJob:
    """A running arduino-cli process whose output is pumped into a sink."""

    def __init__(self, process: subprocess.Popen, pump: threading.Thread):
        self.process = process
        self._pump = pump

    @property
    def returncode(self) -> int | None:
        return self.process.poll()

    def wait(self) -> int:
        """Block until the process exits and its output has been delivered."""
        code = self.process.wait()
        self._pump.join()
        return code


class Runner:
    """Executes arduino-cli subcommands in a project directory.

    Commands are plain strings such as ``"board list"``; they are split
    with shlex and prefixed with the tool path.
    """

    def __init__(
        self,
        cli: str = DEFAULT_CLI,
        cwd: Path | str | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> None:
        self.cli = cli
        self.cwd = Path(cwd) if cwd is not None else None
        self.timeout = timeout

    def argv(self, command: str) -> list[str]:
        return [self.cli] + shlex.split(command)

    def run_captured(self, command: str) -> str:
        """Run a command to completion and return its stdout.

        Raises ExternalToolError if the tool is missing, exceeds the
        timeout, or exits non-zero.
        """
        argv = self.argv(command)
        log.debug("capture: %s (cwd=%s)", shlex.join(argv), self.cwd)
        try:
            result = subprocess.run(
                argv, capture_output=True, text=True, errors="replace",
                cwd=self.cwd, timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ExternalToolError(
                f"{self.cli} not found. Install from https://arduino.github.io/arduino-cli/"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(
                f"'{shlex.join(argv)}' did not finish within {self.timeout:g}s"
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            detail = stderr or (result.stdout or "").strip() or "no output"
            raise ExternalToolError(
                f"'{shlex.join(argv)}' exited with status {result.returncode}: {detail}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return result.stdout

    def run_streamed(
        self,
        command: str,
        sink: Callable[[str], None] = click.echo,
    ) -> StreamedJob:
        """Start a command and deliver its output line by line to ``sink``.

        Returns as soon as the process has started. stderr is merged into
        stdout so the sink sees output in the order the tool printed it.
        """
        argv = self.argv(command)
        log.debug("stream: %s (cwd=%s)", shlex.join(argv), self.cwd)
        try:
            process = subprocess.Popen(
                argv, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                text=True, errors="replace", bufsize=1, cwd=self.cwd,
            )
        except FileNotFoundError as e:
            raise ExternalToolError(
                f"{self.cli} not found. Install from https://arduino.github.io/arduino-cli/"
            ) from e

        sink(f"$ {shlex.join(argv)}")

        def pump():
            try:
                for line in process.stdout:
                    sink(line.rstrip("\n"))
            finally:
                # Keep draining so the child never blocks on a full pipe.
                for _ in process.stdout:
                    pass
                process.stdout.close()
                code = process.wait()
            log.debug("stream finished with status %s: %s", code, shlex.join(argv))
            if code == 0:
                sink("[finished]")
            else:
                sink(f"[exited with status {code}]")

        thread = threading.Thread(target=pump, daemon=True)
        thread.start()
        return StreamedJob(process, thread)
