"""Installed and available cores and libraries."""

from __future__ import annotations

import shlex

from inoctl.errors import EmptyResultError
from inoctl.query import first_string, get_string, query_json, unwrap_list
from inoctl.runner import Runner


def _with_query(subcommand: str, query: str) -> str:
    query = query.strip()
    return f"{subcommand} {shlex.quote(query)}" if query else subcommand


def _core_ids(tree) -> list[str]:
    return [first_string(entry, "ID", "id") for entry in unwrap_list(tree, "platforms")]


def list_installed_cores(runner: Runner) -> list[str]:
    """Return installed core IDs (e.g. ``arduino:avr``). Raises EmptyResultError if none."""
    cores = _core_ids(query_json(runner, "core list"))
    if not cores:
        raise EmptyResultError("No cores installed")
    return cores


def search_cores(runner: Runner, query: str = "") -> list[str]:
    """Return core IDs available from the package index; may be empty."""
    return _core_ids(query_json(runner, _with_query("core search", query)))


def list_installed_libraries(runner: Runner) -> list[str]:
    """Return installed library names. Raises EmptyResultError if none."""
    tree = query_json(runner, "lib list")
    libraries = [
        get_string(entry, "library.name")
        for entry in unwrap_list(tree, "installed_libraries")
    ]
    if not libraries:
        raise EmptyResultError("No libraries installed")
    return libraries


def search_libraries(runner: Runner, query: str = "") -> list[str]:
    """Return library names from the library index; may be empty."""
    tree = query_json(runner, _with_query("lib search", query))
    return [get_string(entry, "name") for entry in unwrap_list(tree, "libraries")]
