#!/usr/bin/env -S uv run --script
# /// script
# requires-python = ">=3.10"
# dependencies = []
# ///
"""cmdtree - List the full command/option tree of a CLI.

Walks a command-line program by repeatedly invoking its own help output
(`<binary> [path...] -h`), parses the `Commands:` and `Options:` sections
into command descriptors, and prints them as an indented checklist.

Storage model:
- The discovered tree is cached under `~/.config/cmdtree/`.
- One JSON file per target binary (e.g. `commands.and-cli.json`), holding a
  flat array of `{command, options, parent}` descriptors.
- `CMDTREE_HOME` environment variable overrides the storage location.

Usage:
    cmdtree and-cli                      # Print the tree (cached after first run)
    cmdtree and-cli --skip-cache         # Rediscover, then refresh the cache
    cmdtree and-cli --no-color --indent 2
    cmdtree and-cli --json               # Dump the descriptors instead
"""

from __future__ import annotations

import argparse
import json
import os
import re
import shlex
import subprocess
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final, Iterable, Iterator, Protocol, TextIO, TypedDict

# Help output conventions (commander-style CLIs)
COMMANDS_START: Final[str] = "Commands:"
COMMANDS_END: Final[str] = "help [command]"
OPTIONS_START: Final[str] = "Options:"
OPTIONS_END: Final[str] = "-h, --help"
ALIAS_PREFIX: Final[str] = "(alias)"
FILTERED_STRINGS: Final[tuple[str, ...]] = ("\t", ALIAS_PREFIX)
TOKEN_SEPARATOR: Final[str] = "  "

DEFAULT_INDENT: Final[int] = 4
DEFAULT_PREFIX: Final[str] = "- [ ] "
DEFAULT_HELP_FLAG: Final[str] = "-h"
DEFAULT_TIMEOUT_S: Final[int] = 15
DEFAULT_MAX_DEPTH: Final[int] = 16

# ANSI colors for terminal output
RESET: Final[str] = "\033[0m"
RED: Final[str] = "\033[31m"
GREEN: Final[str] = "\033[32m"
YELLOW: Final[str] = "\033[33m"
PURPLE: Final[str] = "\033[35m"


class CommandDescriptor(TypedDict):
    command: str
    options: list[str]
    parent: str | None


class DescriptorUpdate(TypedDict, total=False):
    command: str
    options: list[str]
    parent: str | None


class CmdTreeError(RuntimeError):
    pass


class HelpProviderError(CmdTreeError):
    """The target CLI failed to produce help output."""


class CacheWriteError(CmdTreeError):
    pass


@dataclass(frozen=True, slots=True)
class ListOptions:
    include_help: bool = False
    indent: int = DEFAULT_INDENT
    use_color: bool = True
    prefix: str = DEFAULT_PREFIX
    skip_cache: bool = False
    help_flag: str = DEFAULT_HELP_FLAG
    timeout_s: int = DEFAULT_TIMEOUT_S
    max_depth: int = DEFAULT_MAX_DEPTH
    as_json: bool = False

    def with_updates(self, **changes: object) -> ListOptions:
        """Return a copy with `changes` applied; `None` values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


@dataclass(frozen=True, slots=True)
class HelpResult:
    """Outcome of one help invocation."""

    command: str  # shell-quoted command line, for messages
    exit_code: int
    stdout: str
    stderr: str


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def cmdtree_home() -> Path:
    """Return cmdtree's home directory.

    Defaults to `~/.config/cmdtree`, overridable via `CMDTREE_HOME`.
    """
    raw = os.environ.get("CMDTREE_HOME")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".config" / "cmdtree"


def cmdtree_config_path() -> Path:
    return cmdtree_home() / "config.json"


def _load_config() -> dict:
    path = cmdtree_config_path()
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    if isinstance(payload, dict):
        return payload
    return {}


def _config_get(*, key: str) -> object | None:
    # Environment variables override config.json.
    # Example: `CMDTREE_INDENT=2`, `CMDTREE_USE_COLOR=0`.
    env_val = os.environ.get(f"CMDTREE_{key.upper()}")
    if env_val is not None and env_val.strip() != "":
        return env_val
    return _load_config().get(key)


def _setting_int(*, config_key: str, default: int) -> int:
    cfg = _config_get(key=config_key)
    if cfg is None or isinstance(cfg, bool):
        return default
    try:
        return int(cfg)
    except (TypeError, ValueError):
        return default


def _setting_bool(*, config_key: str, default: bool) -> bool:
    raw = _config_get(key=config_key)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw > 0
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in {"1", "true", "yes", "on"}:
            return True
        if value in {"0", "false", "no", "off"}:
            return False
    return default


def _setting_str(*, config_key: str, default: str) -> str:
    raw = _config_get(key=config_key)
    return raw if isinstance(raw, str) else default


def _verbose_level() -> int:
    raw = _config_get(key="verbose")
    if raw is None:
        return 1
    if isinstance(raw, bool):
        return 1 if raw else 0
    if isinstance(raw, int):
        return max(0, min(raw, 2))
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in {"0", "false", "no", "off", "quiet"}:
            return 0
        if value in {"", "1", "true", "yes", "on"}:
            return 1
        return 2
    return 1


def default_list_options() -> ListOptions:
    """Build options from config.json and `CMDTREE_*` environment variables."""
    return ListOptions(
        include_help=_setting_bool(config_key="include_help", default=False),
        indent=max(0, _setting_int(config_key="indent", default=DEFAULT_INDENT)),
        use_color=_setting_bool(config_key="use_color", default=True)
        and "NO_COLOR" not in os.environ,
        prefix=_setting_str(config_key="prefix", default=DEFAULT_PREFIX),
        help_flag=_setting_str(config_key="help_flag", default=DEFAULT_HELP_FLAG),
        timeout_s=max(1, _setting_int(config_key="timeout_s", default=DEFAULT_TIMEOUT_S)),
        max_depth=max(0, _setting_int(config_key="max_depth", default=DEFAULT_MAX_DEPTH)),
    )


def _binary_file_name(binary: str) -> str:
    """Use the executable's basename, sanitized for the filesystem."""
    safe = Path(binary).name or binary
    safe = safe.replace("\\", "_").replace(":", "_")
    safe = re.sub(r"\s+", "_", safe)
    return safe


def cache_path(*, binary: str) -> Path:
    return cmdtree_home() / f"commands.{_binary_file_name(binary)}.json"


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _paint(text: str, color: str, *, enabled: bool) -> str:
    return f"{color}{text}{RESET}" if enabled else text


def _log(message: str, *, level: int = 1) -> None:
    if _verbose_level() >= level:
        print(f"[cmdtree] {message}", file=sys.stderr)


def _warn(message: str, *, use_color: bool) -> None:
    print(_paint(f"warning: {message}", YELLOW, enabled=use_color), file=sys.stderr)


def _error(message: str, *, use_color: bool) -> None:
    print(_paint(f"error: {message}", RED, enabled=use_color), file=sys.stderr)


def _success(message: str, *, use_color: bool) -> None:
    print(_paint(f"[cmdtree] {message}", GREEN, enabled=use_color), file=sys.stderr)


# ---------------------------------------------------------------------------
# Help text parsing
# ---------------------------------------------------------------------------


def split_token(line: str) -> str:
    """Return the item name from an indented help line.

    Commands and options are both listed as `  <name>  <description>`, so the
    name is whatever sits between the two-space indent and the next
    two-space run. Lines without that shape yield an empty string.
    """
    parts = line.split(TOKEN_SEPARATOR)
    if len(parts) < 2:
        return ""
    return parts[1]


def _first_index(lines: list[str], marker: str) -> int:
    for idx, line in enumerate(lines):
        if marker in line:
            return idx
    return -1


def extract_range(
    *,
    output: str,
    start_marker: str,
    end_marker: str,
    include_help: bool = False,
) -> list[str]:
    """Extract item names listed between two marker lines of help output.

    The range runs from the line after the first `start_marker` match up to
    and including the first `end_marker` match. A missing marker yields an
    empty or partial range rather than an error.
    """
    lines = output.split("\n")
    start = _first_index(lines, start_marker)
    end = _first_index(lines, end_marker)

    tokens: list[str] = []
    for line in lines[start + 1 : end + 1]:
        if any(noise in line for noise in FILTERED_STRINGS):
            continue
        token = split_token(line)
        if not token:
            continue
        if not include_help and token in (OPTIONS_END, COMMANDS_END):
            continue
        tokens.append(token)
    return tokens


def parse_children(*, output: str, include_help: bool = False) -> list[str]:
    return extract_range(
        output=output,
        start_marker=COMMANDS_START,
        end_marker=COMMANDS_END,
        include_help=include_help,
    )


def parse_options(*, output: str, include_help: bool = False) -> list[str]:
    return extract_range(
        output=output,
        start_marker=OPTIONS_START,
        end_marker=OPTIONS_END,
        include_help=include_help,
    )


def build_descriptor(*, full_command: str, options: list[str]) -> CommandDescriptor:
    """Build a descriptor from a space-separated command path.

    The last token is the command; the token before it, if any, is the
    immediate parent. Deeper ancestors are not recorded.
    """
    tokens = full_command.split(" ")
    if len(tokens) > 1:
        command = tokens.pop()
        parent: str | None = tokens.pop()
    else:
        command = full_command
        parent = None
    return {"command": command, "options": list(options), "parent": parent}


# ---------------------------------------------------------------------------
# Descriptor store
# ---------------------------------------------------------------------------


def _validate_options(*, options: object) -> list[str]:
    if not isinstance(options, list):
        raise ValueError("options must be an array")
    out: list[str] = []
    for item in options:
        if not isinstance(item, str):
            raise ValueError("options must be strings")
        out.append(item)
    return out


def validate_descriptor(*, payload: object) -> CommandDescriptor:
    if not isinstance(payload, dict):
        raise ValueError("descriptor must be an object")
    command = payload.get("command")
    if not isinstance(command, str) or not command:
        raise ValueError("command must be a non-empty string")
    parent = payload.get("parent")
    if parent is not None and not isinstance(parent, str):
        raise ValueError("parent must be a string or null")
    return {
        "command": command,
        "options": _validate_options(options=payload.get("options", [])),
        "parent": parent,
    }


class DescriptorStore:
    """Descriptors keyed by command name, in insertion order.

    Keys are leaf names only, so two different parents each owning a child
    with the same name share one entry; the later discovery wins.
    """

    def __init__(self, descriptors: Iterable[DescriptorUpdate] = ()) -> None:
        self._items: dict[str, CommandDescriptor] = {}
        for descriptor in descriptors:
            self.upsert(descriptor)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CommandDescriptor]:
        return iter(list(self._items.values()))

    def __contains__(self, command: object) -> bool:
        return command in self._items

    def get(self, command: str) -> CommandDescriptor | None:
        return self._items.get(command)

    def descriptors(self) -> list[CommandDescriptor]:
        return list(self._items.values())

    def upsert(self, updated: DescriptorUpdate) -> None:
        """Insert `updated`, merging onto any descriptor with the same command.

        Fields present on `updated` win; fields it omits keep their prior
        values. The merged entry moves to the end of the store.
        """
        command = updated.get("command")
        if not command:
            raise ValueError("descriptor update needs a command")
        existing = self._items.pop(command, None) or {}
        merged: CommandDescriptor = {"options": [], "parent": None, **existing, **updated}  # type: ignore[typeddict-item]
        merged["options"] = list(merged["options"])
        self._items[command] = merged

    def children_of(self, command: str) -> list[CommandDescriptor]:
        return [d for d in self._items.values() if d["parent"] == command]

    def roots(self) -> list[CommandDescriptor]:
        return roots_or_all(self.descriptors())

    def clear(self) -> None:
        self._items.clear()

    def to_payload(self) -> list[dict]:
        return [
            {"command": d["command"], "options": list(d["options"]), "parent": d["parent"]}
            for d in self._items.values()
        ]

    @classmethod
    def from_payload(cls, payload: object) -> DescriptorStore:
        if not isinstance(payload, list):
            raise ValueError("cache payload must be an array of descriptors")
        return cls(validate_descriptor(payload=item) for item in payload)


def roots_or_all(descriptors: list[CommandDescriptor]) -> list[CommandDescriptor]:
    """Return parentless descriptors, or all of them when none are parentless."""
    parents = [d for d in descriptors if d["parent"] is None]
    return parents or list(descriptors)


# ---------------------------------------------------------------------------
# Help provider
# ---------------------------------------------------------------------------


class HelpProvider(Protocol):
    def get_help(self, *, command_path: str | None) -> HelpResult: ...


def help_command(
    binary: str, command_path: str | None, help_flag: str = DEFAULT_HELP_FLAG
) -> list[str]:
    if not command_path:
        return [binary, help_flag]
    return [binary, *command_path.split(), help_flag]


@dataclass(frozen=True, slots=True)
class SubprocessHelpProvider:
    binary: str
    help_flag: str = DEFAULT_HELP_FLAG
    timeout_s: int = DEFAULT_TIMEOUT_S

    def get_help(self, *, command_path: str | None) -> HelpResult:
        cmd = help_command(self.binary, command_path, self.help_flag)
        label = shlex.join(cmd)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
            )
        except FileNotFoundError as e:
            raise HelpProviderError(f"Executable not found: {self.binary}") from e
        except PermissionError as e:
            raise HelpProviderError(f"Executable not runnable: {self.binary}") from e
        except subprocess.TimeoutExpired as e:
            raise HelpProviderError(
                f"Failed to run {label}: timed out after {self.timeout_s}s"
            ) from e
        except OSError as e:
            raise HelpProviderError(f"Failed to run {label}: {e}") from e
        return HelpResult(
            command=label,
            exit_code=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )


def check_help_result(*, result: HelpResult) -> str:
    """Return stdout, or raise when the help invocation did not succeed.

    Success means exit code 0 and nothing written to stderr.
    """
    if result.exit_code == 0 and not result.stderr.strip():
        return result.stdout
    if result.stderr.strip():
        detail = f"\n\n{result.stderr.rstrip()}"
    else:
        detail = f"exited with code {result.exit_code}"
    raise HelpProviderError(f"Failed to run {result.command}: {detail}")


def _run_help(
    *, help_provider: HelpProvider, command_path: str | None, use_color: bool
) -> str:
    result = help_provider.get_help(command_path=command_path)
    _log(
        f"Running {_paint(result.command, PURPLE, enabled=use_color)} "
        "for commands and options..."
    )
    stdout = check_help_result(result=result)
    _log(f"{result.command}: {len(stdout)} chars of help", level=2)
    return stdout


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover(
    *,
    help_provider: HelpProvider,
    store: DescriptorStore,
    options: ListOptions,
    command_path: str | None = None,
) -> None:
    """Depth-first walk of the command tree starting at `command_path`.

    Children are discovered before the current node is stored. The root
    invocation (`command_path=None`) records only its children.
    """
    help_text = _run_help(
        help_provider=help_provider,
        command_path=command_path,
        use_color=options.use_color,
    )
    depth = len(command_path.split()) if command_path else 0

    for child in parse_children(output=help_text, include_help=options.include_help):
        child_path = f"{command_path} {child}" if command_path else child
        if options.max_depth and depth + 1 > options.max_depth:
            _warn(
                f"Not descending into '{child_path}': deeper than max depth "
                f"{options.max_depth}",
                use_color=options.use_color,
            )
            continue
        discover(
            help_provider=help_provider,
            store=store,
            options=options,
            command_path=child_path,
        )

    if not command_path:
        return

    parsed_options = parse_options(output=help_text, include_help=options.include_help)
    store.upsert(build_descriptor(full_command=command_path, options=parsed_options))


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


def read_cache(*, path: Path, use_color: bool = True) -> DescriptorStore:
    """Load the cached store; any failure yields an empty store."""
    if not path.exists():
        _log("No cached file found, building from scratch.")
        return DescriptorStore()

    _log("Found command list cache, attempting to read...")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return DescriptorStore.from_payload(payload)
    except (OSError, ValueError) as e:
        _warn(
            f"There was an error attempting to read or deserialize the file at {path} - {e}",
            use_color=use_color,
        )
        return DescriptorStore()


def save_cache(*, store: DescriptorStore, path: Path, use_color: bool = True) -> None:
    _log(f"Writing command list to cached file at {path}...")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheWriteError(f"There was an error writing to {path} - {e}") from e

    # Atomic write: write to temp file then rename
    temp_path = path.with_suffix(f".tmp.{os.getpid()}")
    try:
        temp_path.write_text(
            json.dumps(store.to_payload(), indent=4) + "\n", encoding="utf-8"
        )
        temp_path.replace(path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise CacheWriteError(f"There was an error writing to {path} - {e}") from e
    _success("Cached file successfully updated.", use_color=use_color)


def load_or_discover(
    *, help_provider: HelpProvider, options: ListOptions, path: Path
) -> tuple[DescriptorStore, ListOptions]:
    """Return a populated store and the options the run ended up using.

    A cache miss forces `skip_cache` on for the rest of the run.
    """
    if options.skip_cache:
        _log("Skipping cache if it exists...")
        store = DescriptorStore()
        discover(help_provider=help_provider, store=store, options=options)
        return store, options

    store = read_cache(path=path, use_color=options.use_color)
    if len(store):
        return store, options

    store.clear()
    options = options.with_updates(skip_cache=True)
    discover(help_provider=help_provider, store=store, options=options)
    return store, options


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _format_line(value: str, *, indent: int, prefix: str) -> str:
    return f"{' ' * indent}{prefix}{value}"


def _render_level(
    *,
    store: DescriptorStore,
    descriptors: list[CommandDescriptor],
    options: ListOptions,
    indent: int,
    branch: frozenset[str],
) -> list[str]:
    lines: list[str] = []
    # Parents first so they appear in order
    for descriptor in roots_or_all(descriptors):
        command = descriptor["command"]
        if command in branch:
            continue
        lines.append(
            _format_line(
                _paint(command, GREEN, enabled=options.use_color),
                indent=indent,
                prefix=options.prefix,
            )
        )
        for option in descriptor["options"]:
            lines.append(
                _format_line(
                    _paint(option, YELLOW, enabled=options.use_color),
                    indent=indent + options.indent,
                    prefix=options.prefix,
                )
            )
        lines.extend(
            _render_level(
                store=store,
                descriptors=store.children_of(command),
                options=options,
                indent=indent + options.indent * 2,
                branch=branch | {command},
            )
        )
    return lines


def render_tree(
    *, store: DescriptorStore, options: ListOptions, indent: int = 0
) -> list[str]:
    """Render the store as indented lines.

    Each command is followed by its options one step in, then its children
    two steps in, so nested commands sit below their parent's options.
    """
    return _render_level(
        store=store,
        descriptors=store.descriptors(),
        options=options,
        indent=indent,
        branch=frozenset(),
    )


def format_tree(*, store: DescriptorStore, options: ListOptions) -> str:
    if options.as_json:
        return json.dumps(store.to_payload(), indent=4)
    return "\n".join(render_tree(store=store, options=options))


def run_list(
    *,
    binary: str,
    help_provider: HelpProvider,
    options: ListOptions,
    path: Path | None = None,
    stream: TextIO | None = None,
) -> DescriptorStore:
    """Load or discover the tree, print it, then persist the cache."""
    path = path or cache_path(binary=binary)
    out = stream or sys.stdout

    store, options = load_or_discover(
        help_provider=help_provider, options=options, path=path
    )
    output = format_tree(store=store, options=options)
    if output:
        print(output, file=out)

    save_cache(store=store, path=path, use_color=options.use_color)
    return store


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmdtree",
        description="List every command and option of a CLI by walking its help output",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("binary", help="Executable to inspect (e.g. and-cli)")
    parser.add_argument(
        "--include-help",
        action="store_true",
        default=None,
        help="Keep the generic help command/option entries",
    )
    parser.add_argument(
        "--indent", type=int, help=f"Spaces per nesting level (default {DEFAULT_INDENT})"
    )
    parser.add_argument(
        "--no-color", action="store_true", help="Disable colors"
    )
    parser.add_argument(
        "--prefix", help=f"Text printed before each entry (default {DEFAULT_PREFIX!r})"
    )
    parser.add_argument(
        "--skip-cache",
        action="store_true",
        default=None,
        help="Ignore any cached tree and rediscover it",
    )
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        default=None,
        help="Print the descriptors as JSON instead of a tree",
    )
    parser.add_argument(
        "--help-flag",
        help=f"Flag that makes the target print help (default {DEFAULT_HELP_FLAG}; "
        "pass as --help-flag=-h)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        help=f"Deepest command path to walk, 0 for no limit (default {DEFAULT_MAX_DEPTH})",
    )
    parser.add_argument(
        "--timeout-s", type=int, help="Seconds to wait for each help invocation"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.indent is not None and args.indent < 0:
        print("--indent must be zero or greater", file=sys.stderr)
        return 2
    if args.max_depth is not None and args.max_depth < 0:
        print("--max-depth must be zero or greater", file=sys.stderr)
        return 2

    options = default_list_options().with_updates(
        include_help=args.include_help,
        indent=args.indent,
        use_color=False if args.no_color else None,
        prefix=args.prefix,
        skip_cache=args.skip_cache,
        help_flag=args.help_flag,
        max_depth=args.max_depth,
        timeout_s=max(1, args.timeout_s) if args.timeout_s is not None else None,
        as_json=args.as_json,
    )
    help_provider = SubprocessHelpProvider(
        binary=args.binary, help_flag=options.help_flag, timeout_s=options.timeout_s
    )

    try:
        run_list(binary=args.binary, help_provider=help_provider, options=options)
    except CmdTreeError as e:
        _error(str(e), use_color=options.use_color)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
