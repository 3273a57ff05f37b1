"""Connected board discovery and target selection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable

from inoctl.errors import FieldError, NoBoardError, NoMatchError
from inoctl.query import Tree, first_string, get_string, query_json, unwrap_list
from inoctl.runner import Runner

log = logging.getLogger(__name__)

Chooser = Callable[[str, list[str]], str]


@dataclass
class BoardRecord:
    """A connected board: display name, port address and FQBN.

    ``extra`` keeps every other field arduino-cli reported for the port
    (protocol, label, properties, ...).
    """
    name: str
    address: str
    fqbn: str
    extra: dict = field(default_factory=dict)


_IDENTITY_KEYS = {"name", "address", "fqbn", "FQBN", "boards"}


def _raw_devices(tree: Tree) -> list[dict]:
    """Normalise both board list shapes to ``{address, ..., boards: [...]}``.

    0.x prints ``[{"address": ..., "boards": [{"name", "FQBN"}]}]``;
    1.x prints ``{"detected_ports": [{"port": {...}, "matching_boards": [...]}]}``.
    """
    devices = []
    for entry in unwrap_list(tree, "detected_ports"):
        if not isinstance(entry, dict):
            raise FieldError(f"Expected an object per port, got {type(entry).__name__}")
        if "port" in entry or "matching_boards" in entry:
            port = entry.get("port")
            device = dict(port) if isinstance(port, dict) else {}
            device["boards"] = entry.get("matching_boards") or []
        else:
            device = entry
        devices.append(device)
    return devices


def _to_record(device: dict) -> BoardRecord:
    board = device["boards"][0]
    if not isinstance(board, dict):
        raise FieldError(f"Expected a board object, got {type(board).__name__}")
    # Board fields take precedence over port fields on a key collision.
    merged = {**device, **board}
    record = BoardRecord(
        name=get_string(merged, "name"),
        address=get_string(merged, "address"),
        fqbn=first_string(merged, "FQBN", "fqbn"),
        extra={k: v for k, v in merged.items() if k not in _IDENTITY_KEYS},
    )
    if not record.address or not record.fqbn:
        raise FieldError(f"Board '{record.name}' was reported without an address or FQBN")
    return record


def list_boards(runner: Runner) -> list[BoardRecord]:
    """List connected boards in the order arduino-cli reports them.

    Ports with no recognised board are dropped. When several boards
    match one port only the first is used.
    """
    records = []
    for device in _raw_devices(query_json(runner, "board list")):
        boards = device.get("boards")
        if not boards or not isinstance(boards, list):
            log.debug("skipping port without a recognised board: %s", device.get("address"))
            continue
        records.append(_to_record(device))
    return records


def board_label(record: BoardRecord) -> str:
    return f"{record.name} @ {record.address}"


def match_selection(selection: str, records: list[BoardRecord]) -> BoardRecord:
    """Map a chosen label back to its board.

    An exact label wins. Otherwise the address is taken from the text after
    the last ``@`` (or the whole text when there is none) and compared with
    each board's address.
    """
    for record in records:
        if board_label(record) == selection:
            return record

    address = selection.rpartition("@")[2].strip()
    for record in records:
        if record.address == address:
            return record
    raise NoMatchError(f"No connected board matches '{selection}'")


def resolve_board(records: list[BoardRecord], choose: Chooser) -> BoardRecord:
    """Pick exactly one board, asking the user only when there is a choice."""
    if not records:
        raise NoBoardError()
    if len(records) == 1:
        return records[0]
    labels = [board_label(r) for r in records]
    return match_selection(choose("Which board?", labels), records)


def target_board(
    runner: Runner,
    choose: Chooser,
    fqbn: str | None = None,
    port: str | None = None,
) -> BoardRecord:
    """Resolve the board for one action.

    With both ``fqbn`` and ``port`` configured no discovery happens. With
    only one of them, discovery runs and the configured value overrides the
    discovered one. Never cached: every call re-queries arduino-cli.
    """
    if fqbn and port:
        return BoardRecord(name=fqbn, address=port, fqbn=fqbn)

    board = resolve_board(list_boards(runner), choose)
    if fqbn or port:
        board = replace(board, fqbn=fqbn or board.fqbn, address=port or board.address)
    return board
