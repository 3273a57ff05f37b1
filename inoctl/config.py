"""Project configuration (inoctl.toml) for inoctl."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    try:
        import tomli as tomllib  # type: ignore[no-redef]
    except ImportError:
        tomllib = None  # type: ignore[assignment]

from inoctl.build import VERBOSITY_LEVELS, WARNING_LEVELS
from inoctl.errors import InoctlError
from inoctl.runner import DEFAULT_CLI, DEFAULT_TIMEOUT

CONFIG_FILE = "inoctl.toml"


class ConfigError(InoctlError):
    """Raised when inoctl.toml cannot be read or holds an invalid value."""


@dataclass
class CliConfig:
    path: str = DEFAULT_CLI
    timeout: float | None = DEFAULT_TIMEOUT


@dataclass
class BoardConfig:
    fqbn: str | None = None
    port: str | None = None


@dataclass
class CompileConfig:
    verify: bool = False
    warnings: str = "default"
    verbosity: str = "normal"


@dataclass
class ProjectConfig:
    cli: CliConfig = field(default_factory=CliConfig)
    board: BoardConfig = field(default_factory=BoardConfig)
    compile: CompileConfig = field(default_factory=CompileConfig)


def _read_toml(project_dir: Path | str) -> dict | None:
    toml_path = Path(project_dir) / CONFIG_FILE
    if not toml_path.exists():
        return None

    if tomllib is None:
        raise ConfigError("No TOML parser available (need Python 3.11+ or tomli)")

    try:
        with open(toml_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid {CONFIG_FILE}: {e}") from e


def load_project_config(project_dir: Path | str) -> ProjectConfig:
    """Parse inoctl.toml into a ProjectConfig. A missing file yields the defaults."""
    data = _read_toml(project_dir)
    if data is None:
        return ProjectConfig()

    cli_data = data.get("cli", {})
    board_data = data.get("board", {})
    compile_data = data.get("compile", {})

    timeout = cli_data.get("timeout", DEFAULT_TIMEOUT)
    # timeout = 0 means wait forever
    if timeout is not None and not isinstance(timeout, (int, float)):
        raise ConfigError(f"cli.timeout must be a number, got: {timeout!r}")

    warnings = compile_data.get("warnings", "default")
    if warnings not in WARNING_LEVELS:
        raise ConfigError(f"compile.warnings must be one of {', '.join(WARNING_LEVELS)}, got: {warnings}")
    verbosity = compile_data.get("verbosity", "normal")
    if verbosity not in VERBOSITY_LEVELS:
        raise ConfigError(f"compile.verbosity must be one of {', '.join(VERBOSITY_LEVELS)}, got: {verbosity}")

    return ProjectConfig(
        cli=CliConfig(
            path=cli_data.get("path", DEFAULT_CLI),
            timeout=float(timeout) if timeout else None,
        ),
        board=BoardConfig(
            fqbn=board_data.get("fqbn"),
            port=board_data.get("port"),
        ),
        compile=CompileConfig(
            verify=bool(compile_data.get("verify", False)),
            warnings=warnings,
            verbosity=verbosity,
        ),
    )


def get_config_value(project_dir: Path | str, key: str):
    """Dotted key lookup, e.g. 'board.fqbn', 'cli.timeout'."""
    data = _read_toml(project_dir)
    if data is None:
        return None

    parts = key.split(".", 1)
    if len(parts) == 2:
        section, k = parts
        return data.get(section, {}).get(k)
    return data.get(key)


_TOML_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r"}
_HEADER = re.compile(r"^\s*\[\[?\s*([^\[\]]+?)\s*\]\]?\s*(#.*)?$")


def _toml_value(value) -> str:
    """Render a scalar as TOML; strings become escaped basic strings."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    return '"' + "".join(_TOML_ESCAPES.get(ch, ch) for ch in str(value)) + '"'


def _coerce(raw: str):
    """Read a command-line value as a boolean or number where it looks like one."""
    if raw.lower() in ("true", "false"):
        return raw.lower() == "true"
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


def _section_span(lines: list[str], section: str) -> tuple[int, int] | None:
    """Return (header index, end index) of ``[section]``, end exclusive."""
    start = None
    for i, line in enumerate(lines):
        match = _HEADER.match(line)
        if not match:
            continue
        if start is not None:
            return start, i
        if match.group(1).strip() == section:
            start = i
    return (start, len(lines)) if start is not None else None


def set_config_value(project_dir: Path | str, key: str, value) -> None:
    """Write ``section.key = value`` into inoctl.toml, keeping the rest of the file as is."""
    section, _, name = key.partition(".")
    if not section or not name:
        raise ConfigError(f"Key must be dotted (section.key), got: {key}")
    if isinstance(value, str):
        value = _coerce(value)
    entry = f"{name} = {_toml_value(value)}\n"

    toml_path = Path(project_dir) / CONFIG_FILE
    lines = toml_path.read_text().splitlines(keepends=True) if toml_path.exists() else []
    if lines and not lines[-1].endswith("\n"):
        lines[-1] += "\n"

    span = _section_span(lines, section)
    if span is None:
        if lines:
            lines.append("\n")
        lines += [f"[{section}]\n", entry]
    else:
        start, end = span
        assignment = re.compile(rf"^\s*{re.escape(name)}\s*=")
        existing = next((i for i in range(start + 1, end) if assignment.match(lines[i])), None)
        if existing is not None:
            lines[existing] = entry
        else:
            # after the last non-blank line of the section
            at = end
            while at > start + 1 and not lines[at - 1].strip():
                at -= 1
            lines.insert(at, entry)

    toml_path.write_text("".join(lines))


def list_config(project_dir: Path | str) -> dict:
    """Return a flat dotted-key dict of all config values."""
    flat = {}
    for section, values in (_read_toml(project_dir) or {}).items():
        if isinstance(values, dict):
            flat.update({f"{section}.{k}": v for k, v in values.items()})
        else:
            flat[section] = values
    return flat
