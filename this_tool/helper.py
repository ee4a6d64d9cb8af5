#!/usr/bin/env python3
"""clipboard-helper - background clipboard recorder for the this tool."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from this_tool.core.config import default_data_dir, write_default_config
from this_tool.core.recorder import DEFAULT_POLL_INTERVAL, ClipboardRecorder
from this_tool.core.storage import DataDirectoryError, HistoryStore

logger = logging.getLogger("this_tool.helper")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipboard-helper",
        description="Record clipboard changes for the this command",
    )
    parser.add_argument(
        "--clear", action="store_true", help="Delete all stored history and exit"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help="Clipboard poll interval in seconds (default: %(default)s)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


async def async_main(recorder: ClipboardRecorder):
    """Main async entry point."""
    recorder.prime()
    await recorder.run()


def main(argv: Optional[List[str]] = None) -> int:
    """Synchronous entry point for console script."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = HistoryStore(default_data_dir())
    recorder = ClipboardRecorder(store, poll_interval=args.interval)

    if args.clear:
        recorder.clear_history()
        print("History cleared")
        return 0

    try:
        store.ensure_data_dir()
    except DataDirectoryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    write_default_config()

    try:
        asyncio.run(async_main(recorder))
    except KeyboardInterrupt:
        logger.info("Clipboard helper stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
