"""Build arduino-cli compile/upload invocations."""

from __future__ import annotations

import shlex
from enum import Enum
from pathlib import Path
from typing import Iterable

from inoctl.boards import BoardRecord

WARNING_LEVELS = ("none", "default", "more", "all")
VERBOSITY_LEVELS = ("normal", "verbose", "quiet")


class Action(Enum):
    COMPILE = "compile"
    UPLOAD = "upload"
    COMPILE_AND_UPLOAD = "compile-upload"


def build_command(action: Action, board: BoardRecord, flags: Iterable[str] = ()) -> str:
    """Return the arduino-cli subcommand for ``action`` on ``board``.

    The argument order is fixed; ``flags`` are appended after it.
    """
    if action is Action.COMPILE:
        parts = ["compile", "--fqbn", board.fqbn]
    elif action is Action.UPLOAD:
        parts = ["upload", "--fqbn", board.fqbn, "--port", board.address]
    elif action is Action.COMPILE_AND_UPLOAD:
        parts = ["compile", "--fqbn", board.fqbn, "--port", board.address, "--upload"]
    else:
        raise ValueError(f"Unknown action: {action}")
    parts.extend(flags)
    return " ".join(shlex.quote(p) for p in parts)


def compile_flags(action: Action, verify: bool = False, warnings: str = "default",
                  verbosity: str = "normal") -> list[str]:
    """Optional flags for an action.

    ``--verify`` only applies when something is uploaded; ``--warnings``
    only when something is compiled.
    """
    if warnings not in WARNING_LEVELS:
        raise ValueError(f"warnings must be one of {', '.join(WARNING_LEVELS)}, got: {warnings}")
    if verbosity not in VERBOSITY_LEVELS:
        raise ValueError(f"verbosity must be one of {', '.join(VERBOSITY_LEVELS)}, got: {verbosity}")

    flags = []
    if verify and action is not Action.COMPILE:
        flags.append("--verify")
    if warnings != "default" and action is not Action.UPLOAD:
        flags.extend(["--warnings", warnings])
    if verbosity == "verbose":
        flags.append("--verbose")
    elif verbosity == "quiet":
        flags.append("--quiet")
    return flags


def sketch_command(action: Action, board: BoardRecord, path: Path | str,
                   flags: Iterable[str] = ()) -> str:
    """build_command plus the sketch directory as the trailing positional argument."""
    return f"{build_command(action, board, flags)} {shlex.quote(str(path))}"
