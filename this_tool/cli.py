#!/usr/bin/env python3
"""this - context-aware clipboard and recent file lookup."""

import argparse
import re
import sys
from typing import List, Optional

from this_tool.core.config import default_config_path, default_data_dir, read_config
from this_tool.core.resolver import (
    DEFAULT_LIST_SIZE,
    NoContentFound,
    NoMatchingContent,
    NoRecentFiles,
    RecencyResolver,
    ResolutionError,
)
from this_tool.core.scanner import DirectoryScanner
from this_tool.core.storage import HistoryStore
from this_tool.models.schemas import Config, RecentItem, StatusReport

__version__ = "1.0.0"

HELP_TEXT = """\
this - Context-aware clipboard and file tool

USAGE:
    this                    Get most recent clipboard content or file
    this [filter]           Get most recent item matching filter
    this recent [filter]    Get most recent file matching filter
    this -l [filter]        List the top candidates
    this -N [filter]        Get the N-th most recent candidate
    this status, -s         Show clipboard monitor status
    this --help, -h         Show this help message

EXAMPLES:
    open `this`             Open most relevant file
    cp `this` backup/       Copy most relevant file
    cat `this`              View content of most relevant file
    this image              Get most recent image
    this recent txt         Get most recent .txt file
    this -2 pdf             Get the second most recent pdf

FILTERS:
    image, img              Images (png, jpg, gif)
    text, txt               Text files or clipboard text
    file                    Copied file references and recent files
    png, jpg, pdf           Specific file types
    [keyword]               Content or path containing keyword

CONFIG:
    {config}          JSON configuration file
    {data}                Data directory
"""

MONITOR_HINT = "Start clipboard monitoring with: clipboard-helper &"

RANK_PATTERN = re.compile(r"^-(\d+)$")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="this", add_help=False)
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("-s", "--status", action="store_true")
    parser.add_argument("-l", "--list", action="store_true")
    parser.add_argument("--version", action="store_true")
    parser.add_argument("words", nargs="*")
    return parser


def split_rank(argv: List[str]):
    """Pull a ``-N`` rank flag out of the arguments."""
    rank = None
    rest = []
    for arg in argv:
        match = RANK_PATTERN.match(arg)
        if match and rank is None:
            rank = int(match.group(1))
        else:
            rest.append(arg)
    return rank, rest


def status_report(config_valid: bool, config: Config, store: HistoryStore) -> StatusReport:
    config_path = default_config_path()
    return StatusReport(
        data_dir=str(store.data_dir),
        data_dir_exists=store.data_dir.is_dir(),
        config_path=str(config_path),
        config_exists=config_path.is_file(),
        config_valid=config_valid,
        history_path=str(store.history_path),
        history_entries=store.count(),
        search_directories=[
            {"directory": raw, "path": str(path), "exists": path.is_dir()}
            for raw, path in zip(config.search_directories, config.expanded_directories())
        ],
    )


def print_status(report: StatusReport) -> None:
    print("This Tool Status")
    print("================")
    data_state = "ok" if report.data_dir_exists else "missing"
    print(f"Data Directory: {data_state} ({report.data_dir})")

    if not report.config_exists:
        config_state = "using defaults"
    elif report.config_valid:
        config_state = "ok"
    else:
        config_state = "invalid, using defaults"
    print(f"Config File: {config_state} ({report.config_path})")

    if report.history_entries:
        print(f"Clipboard History: {report.history_entries} entries")
    else:
        print("Clipboard History: no history found")

    print("\nSearch Directories:")
    for directory in report.search_directories:
        mark = "ok" if directory["exists"] else "missing"
        print(f"  [{mark}] {directory['directory']} ({directory['path']})")

    print("\nTo start clipboard monitoring:\n   clipboard-helper &")


def describe(rank: int, item: RecentItem) -> str:
    when = item.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    lines = item.render().splitlines()
    preview = lines[0] if lines else ""
    if len(preview) > 80:
        preview = preview[:77] + "..."
    return f"{rank:>3}. [{item.label}] {when}  {preview}"


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    rank, argv = split_rank(argv)
    args = build_parser().parse_args(argv)

    if args.help:
        print(HELP_TEXT.format(config=default_config_path(), data=default_data_dir()))
        return 0
    if args.version:
        print(f"this {__version__}")
        return 0

    config, config_valid = read_config()
    store = HistoryStore(default_data_dir())
    resolver = RecencyResolver(store, DirectoryScanner(config))

    words = list(args.words)
    if args.status or words[:1] == ["status"]:
        print_status(status_report(config_valid, config, store))
        return 0

    try:
        if args.list:
            items = resolver.list_top_n(" ".join(words), DEFAULT_LIST_SIZE)
            if not items:
                raise NoMatchingContent(" ".join(words)) if words else NoContentFound()
            for index, item in enumerate(items, start=1):
                print(describe(index, item))
            return 0

        if rank is not None:
            item = resolver.resolve_nth(rank, " ".join(words))
        elif words[:1] == ["recent"]:
            item = resolver.resolve_recent_only(" ".join(words[1:]))
        elif words:
            item = resolver.resolve_filtered(" ".join(words))
        else:
            item = resolver.resolve_default()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ResolutionError as e:
        print(f"Error: {e}", file=sys.stderr)
        if not isinstance(e, NoRecentFiles):
            print(MONITOR_HINT, file=sys.stderr)
        return 1

    print(item.render())
    return 0


if __name__ == "__main__":
    sys.exit(main())
