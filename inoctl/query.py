"""Structured (JSON) queries against arduino-cli.

arduino-cli prints listings either as a bare array (0.x) or as an object
wrapping the array under a named key (1.x). The helpers here turn that
output into checked lookups so malformed output surfaces as a FieldError
instead of a KeyError or TypeError deep inside a caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Union

from inoctl.errors import FieldError, ParseError
from inoctl.runner import Runner

log = logging.getLogger(__name__)

Tree = Union[dict, list, str, int, float, bool, None]

_MISSING = object()


def query_json(runner: Runner, subcommand: str) -> Tree:
    """Run ``subcommand`` with ``--format json`` and parse its output."""
    text = runner.run_captured(f"{subcommand} --format json")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        snippet = text.strip().splitlines()[0][:120] if text.strip() else "<empty output>"
        raise ParseError(f"Could not parse output of '{subcommand}' as JSON: {snippet}") from e


def _split(path: str | tuple | list) -> list:
    if isinstance(path, str):
        return path.split(".") if path else []
    return list(path)


def get_path(tree: Tree, path: str | tuple | list, default: Any = None) -> Any:
    """Dotted lookup, e.g. ``get_path(entry, "port.address")``."""
    node = tree
    for key in _split(path):
        if isinstance(node, dict):
            node = node.get(key, _MISSING)
        elif isinstance(node, list) and isinstance(key, int):
            node = node[key] if -len(node) <= key < len(node) else _MISSING
        else:
            node = _MISSING
        if node is _MISSING:
            return default
    return node


def get_string(tree: Tree, path: str | tuple | list) -> str:
    """Return the string at ``path``, raising FieldError if absent or not a string."""
    value = get_path(tree, path, _MISSING)
    if value is _MISSING:
        raise FieldError(f"Missing field '{path}' in arduino-cli output")
    if not isinstance(value, str):
        raise FieldError(f"Field '{path}' is {type(value).__name__}, expected string")
    return value


def get_list(tree: Tree, path: str | tuple | list) -> list:
    """Return the array at ``path``, raising FieldError if absent or not an array."""
    value = get_path(tree, path, _MISSING)
    if value is _MISSING:
        raise FieldError(f"Missing field '{path}' in arduino-cli output")
    if not isinstance(value, list):
        raise FieldError(f"Field '{path}' is {type(value).__name__}, expected array")
    return value


def first_string(tree: Tree, *paths: str) -> str:
    """Return the first of ``paths`` that holds a string."""
    for path in paths:
        value = get_path(tree, path)
        if isinstance(value, str):
            return value
    raise FieldError(f"None of {', '.join(paths)} found in arduino-cli output")


def unwrap_list(tree: Tree, *keys: str) -> list:
    """Return a listing whether printed bare or wrapped under one of ``keys``.

    An object without any of the keys is an empty listing: arduino-cli 1.x
    omits empty arrays from its JSON.
    """
    if tree is None:
        return []
    if isinstance(tree, list):
        return tree
    if isinstance(tree, dict):
        for key in keys:
            if key in tree:
                return get_list(tree, key) if tree[key] is not None else []
        log.debug("none of %s in listing keys %s", keys, sorted(tree))
        return []
    raise FieldError(f"Expected an array or object listing, got {type(tree).__name__}")
