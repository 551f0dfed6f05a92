#!/usr/bin/env python3
"""
pathtool - inspect and edit $PATH(-like) variables

Usage:
  pathtool                      # same as `pathtool list`
  pathtool list [--resolve]     # one entry per line
  pathtool validate             # entry: ok | not-a-directory | missing
  pathtool count                # entry: number of executables (-- if unreadable)
  pathtool dedup                # joined PATH without duplicate entries
  pathtool append DIR           # joined PATH with DIR at the end
  pathtool prepend DIR          # joined PATH with DIR at the front

dedup/append/prepend only print the new value, capture it in your shell:
  export PATH="$(pathtool prepend ~/.local/bin)"

Options:
  --var NAME      operate on another variable (e.g. MANPATH), also PATHTOOL_VAR
  --json          JSON output for list/validate/count
  --no-color      plain output (NO_COLOR is honoured too)
  -v/--verbose    INFO, then DEBUG logging on stderr (or PATHTOOL_LOG_LEVEL)
  --log-file FILE append log records to FILE as well
"""

import argparse
import json
import logging
import os
import sys
import unicodedata
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from rich.console import Console
from rich.text import Text

import pathops

__version__ = "0.1.0"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"

logger = logging.getLogger("pathtool")

# Handlers installed by setup_logger(), replaced on every call
_handlers: List[logging.Handler] = []

# Styles per "level": healthy, suspicious, broken
STYLES = ("blue", "yellow", "red")

STATUS_LEVEL = {
    pathops.OK: 0,
    pathops.NOT_A_DIRECTORY: 1,
    pathops.MISSING: 2,
}


class PathToolError(Exception):
    """Invalid configuration."""


# ---- Configuration -----------------------------------------------------------

@dataclass
class Config:
    var: str = "PATH"
    json: bool = False
    color: bool = True
    log_level: int = logging.WARNING
    log_file: Optional[str] = None


def load_config(args: argparse.Namespace, environ: Mapping[str, str]) -> Config:
    """Flags first, then PATHTOOL_* / NO_COLOR environment variables, then defaults."""
    var = args.var or environ.get("PATHTOOL_VAR") or "PATH"

    if args.verbose:
        level = logging.INFO if args.verbose == 1 else logging.DEBUG
    elif environ.get("PATHTOOL_LOG_LEVEL"):
        name = environ["PATHTOOL_LOG_LEVEL"].strip().upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise PathToolError(f"invalid PATHTOOL_LOG_LEVEL: {name!r}")
    else:
        level = logging.WARNING

    color = not args.no_color and environ.get("NO_COLOR") is None

    return Config(
        var=var,
        json=args.json,
        color=color,
        log_level=level,
        log_file=args.log_file,
    )


# ---- Logging -----------------------------------------------------------------

def setup_logger(config: Config) -> logging.Logger:
    """Log to stderr, and to config.log_file when given. Safe to call repeatedly."""
    while _handlers:
        h = _handlers.pop()
        logger.removeHandler(h)
        h.close()

    logger.setLevel(config.log_level)
    fmt = logging.Formatter(LOG_FORMAT)

    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(fmt)
    _handlers.append(sh)

    if config.log_file:
        fh = logging.FileHandler(config.log_file, encoding="utf-8", errors="backslashreplace")
        fh.setFormatter(fmt)
        _handlers.append(fh)

    for h in _handlers:
        logger.addHandler(h)
    return logger


# ---- Output ------------------------------------------------------------------

# A rendered line: (text, level) pieces, level None for unstyled text
Line = List[Tuple[str, Optional[int]]]


def make_console(config: Config) -> Console:
    # Paths go through Text objects, so markup and highlighting stay off
    return Console(
        color_system="auto" if config.color else None,
        highlight=False,
        markup=False,
        emoji=False,
        soft_wrap=True,
    )


def printable(s: str) -> str:
    """Escape control characters and undecodable bytes for display on a terminal."""
    s = s.encode("utf-8", "backslashreplace").decode("utf-8")
    return "".join(repr(ch)[1:-1] if unicodedata.category(ch) == "Cc" else ch for ch in s)


def write_line(s: str) -> None:
    """Write *s* to stdout byte for byte, including bytes that are not valid UTF-8."""
    sys.stdout.flush()
    sys.stdout.buffer.write(os.fsencode(s) + b"\n")


def show(console: Console, parts: Line) -> None:
    # Without colour the entry is written untouched; rich would expand tabs
    # and drop control characters
    if console.color_system is None:
        write_line("".join(s for s, _ in parts))
        return
    console.print(Text.assemble(*(
        (printable(s), STYLES[level]) if level is not None else printable(s)
        for s, level in parts
    )))


def print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2))


def report_duplicates(entries: List[str]) -> None:
    """Warn about entries listed more than once, literally or after resolving links."""
    for e, n in pathops.occurrences(pathops.find_duplicates(entries)).items():
        logger.warning("%s is included %d times", e, n)
    for e, n in pathops.occurrences(pathops.find_resolved_duplicates(entries)).items():
        logger.warning("%s is included %d times when entries are resolved", e, n)


def report_empty(entries: List[str]) -> None:
    for e in pathops.find_empty(entries):
        logger.warning("%s is empty", e)


# ---- Commands ----------------------------------------------------------------

def cmd_list(args, config: Config, entries: List[str], console: Console) -> int:
    resolve_links = getattr(args, "resolve", False)
    if config.json:
        print_json({
            "variable": config.var,
            "entries": [
                {"index": i, "entry": e, "resolved": pathops.resolve(e)}
                for i, e in enumerate(entries, start=1)
            ],
        })
        return 0

    for e in entries:
        target = pathops.resolve(e)
        if target is None:
            show(console, [(e, 2)])
        elif target == e:
            show(console, [(e, 0)])
        elif resolve_links:
            show(console, [(e, 1), (" -> ", None), (target, 0)])
        else:
            # refers to some other path
            show(console, [(e, 1)])
    return 0


def cmd_validate(args, config: Config, entries: List[str], console: Console) -> int:
    results = pathops.validate(entries)
    if config.json:
        print_json({
            "variable": config.var,
            "entries": [
                {"index": i, "entry": e, "status": status}
                for i, (e, status) in enumerate(results, start=1)
            ],
            "duplicates": pathops.occurrences(pathops.find_duplicates(entries)),
            "resolved_duplicates": pathops.occurrences(pathops.find_resolved_duplicates(entries)),
            "empty": pathops.find_empty(entries),
        })
        return 0

    seen = set()
    for e, status in results:
        level = STATUS_LEVEL[status]
        if e in seen and level == 0:
            level = 1
        seen.add(e)
        show(console, [(e, level), (f": {status}", None)])
    report_duplicates(entries)
    report_empty(entries)
    return 0


def cmd_count(args, config: Config, entries: List[str], console: Console) -> int:
    counts = pathops.count(entries)
    if config.json:
        print_json({
            "variable": config.var,
            "entries": [
                {"index": i, "entry": e, "executables": n}
                for i, (e, n) in enumerate(counts, start=1)
            ],
        })
        return 0

    for e, n in counts:
        if n is None:
            show(console, [(e, 2), (": --", None)])
        else:
            show(console, [(e, 0 if n else 1), (f": {n}", None)])
    return 0


def cmd_dedup(args, config: Config, entries: List[str], console: Console) -> int:
    unique = pathops.dedup(entries)
    removed = len(entries) - len(unique)
    if removed:
        logger.info("%d duplicate entr%s removed from %s", removed, "y" if removed == 1 else "ies", config.var)
    for e, n in pathops.occurrences(pathops.find_resolved_duplicates(unique)).items():
        logger.warning("%s is still included %d times when entries are resolved", e, n)
    write_line(pathops.join(unique))
    return 0


def _insert(args, config: Config, entries: List[str],
            insert: Callable[[List[str], str], List[str]]) -> List[str]:
    candidate = args.dir
    if pathops.classify(candidate) != pathops.OK:
        logger.warning("'%s' is not an existing directory", candidate)
    if candidate in entries:
        logger.info("%s already contains '%s', leaving it unchanged", config.var, candidate)
    return insert(entries, candidate)


def cmd_append(args, config: Config, entries: List[str], console: Console) -> int:
    write_line(pathops.join(_insert(args, config, entries, pathops.append)))
    return 0


def cmd_prepend(args, config: Config, entries: List[str], console: Console) -> int:
    write_line(pathops.join(_insert(args, config, entries, pathops.prepend)))
    return 0


COMMANDS = {
    "list": cmd_list,
    "validate": cmd_validate,
    "count": cmd_count,
    "dedup": cmd_dedup,
    "append": cmd_append,
    "prepend": cmd_prepend,
}


# ---- Main --------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pathtool",
        description="Inspect and edit $PATH(-like) environment variables.",
        epilog="dedup, append and prepend print the new value; assign it in your shell, "
               'e.g. export PATH="$(pathtool dedup)".',
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--var", metavar="NAME", help="variable to operate on [default: $PATHTOOL_VAR or PATH]")
    parser.add_argument("--json", action="store_true", help="JSON output for list, validate and count")
    parser.add_argument("--no-color", dest="no_color", action="store_true", help="Disable colored output")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging on stderr (-vv for debug)")
    parser.add_argument("--log-file", metavar="FILE", help="Also append log records to FILE")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    p = sub.add_parser("list", help="List entries (default)")
    p.add_argument("--resolve", action="store_true", help="Show where symlinked entries point")
    sub.add_parser("validate", help="Mark each entry ok, not-a-directory or missing")
    sub.add_parser("dedup", help="Print the value without duplicate entries")
    sub.add_parser("count", help="Count executables in each entry")
    p = sub.add_parser("append", help="Print the value with DIR added at the end")
    p.add_argument("dir", metavar="DIR", help="directory to add")
    p = sub.add_parser("prepend", help="Print the value with DIR added at the front")
    p.add_argument("dir", metavar="DIR", help="directory to add")
    sub.add_parser("help", help="Show this help message")
    return parser


def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    if environ is None:
        environ = os.environ

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "help":
        parser.print_help()
        return 0
    command = args.command or "list"

    try:
        config = load_config(args, environ)
        setup_logger(config)
    except (PathToolError, OSError) as ex:
        parser.exit(2, f"{parser.prog}: error: {ex}\n")

    raw = pathops.read_path(config.var, environ)
    entries = pathops.split(raw)
    logger.debug("%s has %d entries", config.var, len(entries))

    try:
        code = COMMANDS[command](args, config, entries, make_console(config))
        sys.stdout.flush()
        return code
    except BrokenPipeError:
        # The reader went away (e.g. `pathtool list | head -1`); silence the
        # interpreter's own flush of stdout at exit
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        logger.error("standard output closed before all results were written")
        return 1
    except OSError as ex:
        logger.error("cannot write results: %s", ex)
        return 1


if __name__ == "__main__":
    sys.exit(main())
