"""CLI entry point for inoctl."""

import json as jsonmod
import logging
import shutil
from dataclasses import asdict
from pathlib import Path

import click

from inoctl import __version__, actions
from inoctl.boards import board_label, list_boards
from inoctl.config import get_config_value, list_config, load_project_config, set_config_value
from inoctl.errors import InoctlError
from inoctl.ports import list_serial_ports
from inoctl.query import get_path, query_json
from inoctl.runner import Runner


@click.group()
@click.option("--cli", "cli_path", type=str, help="Path to arduino-cli (default: from inoctl.toml or PATH).")
@click.option("--timeout", type=float, help="Seconds to wait for informational arduino-cli calls (0 = no limit).")
@click.option("--dir", "project_dir", type=click.Path(exists=True, file_okay=False), default=".",
              help="Sketch directory (default: current directory).")
@click.option("-v", "--verbose", is_flag=True, help="Log every arduino-cli invocation.")
@click.version_option(__version__, prog_name="inoctl")
@click.pass_context
def main(ctx, cli_path, timeout, project_dir, verbose):
    """Find boards, compile, upload and manage cores and libraries with arduino-cli."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {
        "cli": cli_path,
        "timeout": timeout,
        "project_dir": Path(project_dir).resolve(),
    }


def _session(obj, fqbn=None, port=None) -> actions.Session:
    """Build a Session from inoctl.toml, overridden by command-line flags."""
    project_dir = obj["project_dir"]
    config = load_project_config(project_dir)
    if obj["cli"]:
        config.cli.path = obj["cli"]
    if obj["timeout"] is not None:
        config.cli.timeout = obj["timeout"] or None
    if fqbn:
        config.board.fqbn = fqbn
    if port:
        config.board.port = port
    runner = Runner(cli=config.cli.path, cwd=project_dir, timeout=config.cli.timeout)
    return actions.Session(runner=runner, project_dir=project_dir, config=config)


def _fail(e: InoctlError):
    click.echo(f"Error: {e.message}", err=True)
    raise SystemExit(e.exit_code)


def _run(obj, flow, *args, fqbn=None, port=None, **kwargs):
    """Run a flow, wait for its streamed output, exit with the tool's status."""
    try:
        session = _session(obj, fqbn=fqbn, port=port)
        job = flow(session, *args, **kwargs)
    except InoctlError as e:
        _fail(e)
    if job is None:
        return
    code = job.wait()
    if code != 0:
        raise SystemExit(code)


_fqbn_option = click.option("--fqbn", type=str, help="Board FQBN (e.g. arduino:avr:uno). Skips detection with --port.")
_port_option = click.option("--port", type=str, help="Serial port (e.g. /dev/ttyACM0).")


# ---------------------------------------------------------------------------
# Sketch commands
# ---------------------------------------------------------------------------

@main.command("compile")
@_fqbn_option
@_port_option
@click.pass_obj
def compile_cmd(obj, fqbn, port):
    """Compile the sketch for the connected board."""
    _run(obj, actions.compile_sketch, fqbn=fqbn, port=port)


@main.command("upload")
@_fqbn_option
@_port_option
@click.pass_obj
def upload_cmd(obj, fqbn, port):
    """Upload the last build to the connected board."""
    _run(obj, actions.upload_sketch, fqbn=fqbn, port=port)


@main.command("compile-upload")
@_fqbn_option
@_port_option
@click.pass_obj
def compile_upload_cmd(obj, fqbn, port):
    """Compile the sketch and upload it in one step."""
    _run(obj, actions.compile_and_upload, fqbn=fqbn, port=port)


@main.command("new")
@click.argument("name")
@click.pass_obj
def new_cmd(obj, name):
    """Create a new sketch."""
    _run(obj, actions.new_sketch, name)


# ---------------------------------------------------------------------------
# Board command group
# ---------------------------------------------------------------------------

@main.group()
def board():
    """Connected boards."""
    pass


@board.command("list")
@click.option("--json", "use_json", is_flag=True, help="Output the detected boards as JSON.")
@click.pass_obj
def board_list_cmd(obj, use_json):
    """List connected boards."""
    if not use_json:
        _run(obj, actions.board_list)
        return
    try:
        records = list_boards(_session(obj).runner)
    except InoctlError as e:
        _fail(e)
    click.echo(jsonmod.dumps([asdict(r) for r in records], indent=2))


# ---------------------------------------------------------------------------
# Core command group
# ---------------------------------------------------------------------------

@main.group()
def core():
    """Platform cores (e.g. arduino:avr)."""
    pass


@core.command("list")
@click.pass_obj
def core_list_cmd(obj):
    """List installed cores."""
    _run(obj, actions.core_list)


@core.command("install")
@click.argument("query", required=False, default="")
@click.pass_obj
def core_install_cmd(obj, query):
    """Search the index for a core and install it."""
    _run(obj, actions.core_install, query)


@core.command("uninstall")
@click.pass_obj
def core_uninstall_cmd(obj):
    """Pick an installed core and uninstall it."""
    _run(obj, actions.core_uninstall)


@core.command("upgrade")
@click.pass_obj
def core_upgrade_cmd(obj):
    """Update the index, then upgrade one installed core."""
    _run(obj, actions.core_upgrade)


@core.command("upgrade-all")
@click.pass_obj
def core_upgrade_all_cmd(obj):
    """Update the index, then upgrade every installed core."""
    _run(obj, actions.core_upgrade_all)


# ---------------------------------------------------------------------------
# Library command group
# ---------------------------------------------------------------------------

@main.group()
def lib():
    """Libraries."""
    pass


@lib.command("list")
@click.pass_obj
def lib_list_cmd(obj):
    """List installed libraries."""
    _run(obj, actions.lib_list)


@lib.command("install")
@click.argument("query", required=False, default="")
@click.pass_obj
def lib_install_cmd(obj, query):
    """Search the library index and install a library."""
    _run(obj, actions.lib_install, query)


@lib.command("uninstall")
@click.pass_obj
def lib_uninstall_cmd(obj):
    """Pick an installed library and uninstall it."""
    _run(obj, actions.lib_uninstall)


@lib.command("upgrade")
@click.pass_obj
def lib_upgrade_cmd(obj):
    """Update the library index, then upgrade all libraries."""
    _run(obj, actions.lib_upgrade)


# ---------------------------------------------------------------------------
# Config command group
# ---------------------------------------------------------------------------

@main.group("config")
def config_group():
    """arduino-cli configuration and inoctl.toml settings."""
    pass


@config_group.command("init")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
def config_init_cmd(obj, yes):
    """Write a fresh arduino-cli configuration (overwrites the current one)."""
    confirm = (lambda _msg: True) if yes else click.confirm
    _run(obj, actions.config_init, confirm=confirm)


@config_group.command("dump")
@click.pass_obj
def config_dump_cmd(obj):
    """Print the current arduino-cli configuration."""
    _run(obj, actions.config_dump)


@config_group.command("get")
@click.argument("key")
@click.pass_obj
def config_get_cmd(obj, key):
    """Show an inoctl.toml value, e.g. board.fqbn."""
    try:
        val = get_config_value(obj["project_dir"], key)
    except InoctlError as e:
        _fail(e)
    if val is None:
        click.echo(f"{key} is not set.")
    else:
        click.echo(f"{key} = {val}")


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def config_set_cmd(obj, key, value):
    """Set an inoctl.toml value, e.g. board.port /dev/ttyACM0."""
    try:
        set_config_value(obj["project_dir"], key, value)
    except InoctlError as e:
        _fail(e)
    click.echo(f"Set {key} = {value}")


@config_group.command("list")
@click.pass_obj
def config_list_cmd(obj):
    """Show all inoctl.toml values."""
    try:
        values = list_config(obj["project_dir"])
    except InoctlError as e:
        _fail(e)
    if not values:
        click.echo("No configuration found.")
        return
    for k, v in sorted(values.items()):
        click.echo(f"  {k} = {v}")


# ---------------------------------------------------------------------------
# Doctor
# ---------------------------------------------------------------------------

@main.command()
@click.pass_obj
def doctor(obj):
    """Check arduino-cli, serial ports and connected boards."""
    ok = True
    try:
        session = _session(obj)
    except InoctlError as e:
        _fail(e)
    runner = session.runner

    path = shutil.which(runner.cli)
    if path:
        click.echo(f"[OK] arduino-cli found at {path}")
        try:
            version = get_path(query_json(runner, "version"), "VersionString", "unknown")
            click.echo(f"[OK] arduino-cli version {version}")
        except InoctlError as e:
            click.echo(f"[!!] arduino-cli version check failed: {e.message}")
            ok = False
    else:
        click.echo(f"[!!] {runner.cli} not found. Install from https://arduino.github.io/arduino-cli/")
        ok = False

    ports = list_serial_ports()
    if ports:
        click.echo("[OK] Serial ports found:")
        for p in ports:
            click.echo(f"     {p.device:<25} {p.description}")
    else:
        click.echo("[!!] No serial ports detected. Is a board connected via USB?")
        ok = False

    if path:
        try:
            records = list_boards(runner)
        except InoctlError as e:
            click.echo(f"[!!] Board detection failed: {e.message}")
            ok = False
        else:
            if records:
                click.echo("[OK] Boards detected:")
                for r in records:
                    click.echo(f"     {board_label(r)}  ({r.fqbn})")
            else:
                click.echo("[--] No recognised boards connected.")

    if ok:
        click.echo("\nAll checks passed.")
    else:
        click.echo("\nSome checks failed. Fix the issues above.")
