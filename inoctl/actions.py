"""User-facing flows: each resolves what to run, then streams it.

Informational lookups (board list, installed cores, index updates that
must finish first) run captured and block; the final action is always
streamed and returned as a StreamedJob.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import click

from inoctl import catalog
from inoctl.boards import BoardRecord, Chooser, target_board
from inoctl.build import Action, compile_flags, sketch_command
from inoctl.config import ProjectConfig
from inoctl.prompt import choose as prompt_choose
from inoctl.runner import Runner, StreamedJob

log = logging.getLogger(__name__)


@dataclass
class Session:
    """Everything a flow needs for one invocation."""
    runner: Runner
    project_dir: Path
    config: ProjectConfig = field(default_factory=ProjectConfig)
    choose: Chooser = prompt_choose
    sink: Callable[[str], None] = click.echo

    def stream(self, command: str) -> StreamedJob:
        return self.runner.run_streamed(command, sink=self.sink)


# -- Board-targeted actions ---------------------------------------------------

def resolve_target(session: Session) -> BoardRecord:
    board = target_board(
        session.runner, session.choose,
        fqbn=session.config.board.fqbn, port=session.config.board.port,
    )
    log.info("target: %s @ %s (%s)", board.name, board.address, board.fqbn)
    return board


def run_board_action(session: Session, action: Action) -> StreamedJob:
    """Resolve the board fresh, then stream the compile/upload command."""
    board = resolve_target(session)
    cfg = session.config.compile
    flags = compile_flags(action, verify=cfg.verify, warnings=cfg.warnings, verbosity=cfg.verbosity)
    return session.stream(sketch_command(action, board, session.project_dir, flags))


def compile_sketch(session: Session) -> StreamedJob:
    return run_board_action(session, Action.COMPILE)


def upload_sketch(session: Session) -> StreamedJob:
    return run_board_action(session, Action.UPLOAD)


def compile_and_upload(session: Session) -> StreamedJob:
    return run_board_action(session, Action.COMPILE_AND_UPLOAD)


def new_sketch(session: Session, name: str) -> StreamedJob:
    return session.stream(f"sketch new {shlex.quote(name)}")


def board_list(session: Session) -> StreamedJob:
    return session.stream("board list")


# -- Cores ----------------------------------------------------------------------

def core_list(session: Session) -> StreamedJob:
    return session.stream("core list")


def core_install(session: Session, query: str = "") -> StreamedJob:
    core = session.choose("Install core", catalog.search_cores(session.runner, query))
    return session.stream(f"core install {shlex.quote(core)}")


def core_uninstall(session: Session) -> StreamedJob:
    core = session.choose("Uninstall core", catalog.list_installed_cores(session.runner))
    return session.stream(f"core uninstall {shlex.quote(core)}")


def core_upgrade(session: Session) -> StreamedJob:
    """Update the index (blocking), pick an installed core, stream its upgrade."""
    session.runner.run_captured("core update-index")
    core = session.choose("Upgrade core", catalog.list_installed_cores(session.runner))
    return session.stream(f"core upgrade {shlex.quote(core)}")


def core_upgrade_all(session: Session) -> StreamedJob:
    session.runner.run_captured("core update-index")
    return session.stream("core upgrade")


# -- Libraries ------------------------------------------------------------------

def lib_list(session: Session) -> StreamedJob:
    return session.stream("lib list")


def lib_install(session: Session, query: str = "") -> StreamedJob:
    library = session.choose("Install library", catalog.search_libraries(session.runner, query))
    return session.stream(f"lib install {shlex.quote(library)}")


def lib_uninstall(session: Session) -> StreamedJob:
    library = session.choose("Uninstall library", catalog.list_installed_libraries(session.runner))
    return session.stream(f"lib uninstall {shlex.quote(library)}")


def lib_upgrade(session: Session) -> StreamedJob:
    """Update the library index (blocking), then stream the upgrade of all libraries."""
    session.runner.run_captured("lib update-index")
    return session.stream("lib upgrade")


# -- arduino-cli configuration --------------------------------------------------

def config_init(session: Session, confirm: Callable[[str], bool] = click.confirm) -> StreamedJob | None:
    """Write a fresh arduino-cli config, overwriting the current one. Asks first."""
    if not confirm("This overwrites your arduino-cli configuration. Continue?"):
        return None
    return session.stream("config init --overwrite")


def config_dump(session: Session) -> StreamedJob:
    return session.stream("config dump")
