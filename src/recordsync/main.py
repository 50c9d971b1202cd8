from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from recordsync.app import build_default_sync_service, replay_notifications
from recordsync.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

DEFAULT_REQUESTS_OUT = Path("data-requests.jsonl")


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mirror upstream records and republish aggregates")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser("replay", help="Dispatch change notifications from a file")
    replay.add_argument("notifications", type=Path, help="JSON-lines file of notifications")
    replay.add_argument(
        "--requests-out",
        type=Path,
        default=DEFAULT_REQUESTS_OUT,
        help="Where dependency requests are appended (default: %(default)s)",
    )
    replay.add_argument(
        "--events-out",
        type=Path,
        help="Optional JSON-lines file mirroring every outbound queue message",
    )
    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=parsed_args.log_level)

    try:
        if parsed_args.command != "replay":
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
        if not parsed_args.notifications.is_file():
            raise ValueError(f"No such file: {parsed_args.notifications}")  # noqa: TRY301
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        service = build_default_sync_service(
            requests_out=parsed_args.requests_out,
            events_out=parsed_args.events_out,
        )
        with parsed_args.notifications.open(encoding="utf-8") as handle:
            result = replay_notifications(handle, service)
    except Exception:
        log.exception("Fatal error during replay")
        sys.exit(1)

    print(  # noqa: T201
        f"received={result.received} dispatched={result.dispatched} "
        f"invalid={result.invalid} drained={result.drained}"
    )


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
