from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from shelfmerge.app import list_candidate_stores, merge_user_stores
from shelfmerge.common import configure_logging
from shelfmerge.config import get_merge_config, get_storage_config
from shelfmerge.domain.model import MergePolicy, MergeTrigger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from shelfmerge.domain.reconciliation import MergeSummary

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Merge shelfmerge library stores")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Application data directory holding the databases folder (defaults to config)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every skipped row and schema change",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    merge = subparsers.add_parser("merge", help="Merge every other store into a user's store")
    merge.add_argument(
        "--user",
        type=str,
        required=True,
        help="Name of the active user whose store receives the merge",
    )
    merge.add_argument(
        "--policy",
        type=str,
        choices=[policy.value for policy in MergePolicy],
        default=None,
        help="Conflict policy for differing values (defaults to config)",
    )
    merge.add_argument(
        "--trigger",
        type=str,
        choices=[trigger.value for trigger in MergeTrigger],
        default=MergeTrigger.MANUAL.value,
        help="Why this run was started; recorded in logs and the summary",
    )
    merge.add_argument(
        "--migrate-sources",
        action="store_true",
        help="Forward-migrate every candidate store before merging",
    )

    stores = subparsers.add_parser("stores", help="List the stores a merge would read")
    stores.add_argument(
        "--user",
        type=str,
        required=True,
        help="Name of the active user",
    )

    return parser.parse_args(list(argv))


def _log_summary(summary: MergeSummary) -> None:
    if summary.skipped:
        log.info("Merge skipped: %s", summary.reason)
        return
    for report in summary.stores:
        log.info(
            "  %s: %s, %d new row(s), %d diagnostic(s)",
            report.name,
            report.rejection or report.status,
            report.total_inserted,
            len(report.diagnostics),
        )
    for entity_type, count in sorted(summary.inserted.items()):
        log.info("  + %d %s", count, entity_type)
    log.info("Merge finished: %d new row(s)", summary.total_inserted)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        storage = get_storage_config(data_dir=parsed_args.data_dir)
        if parsed_args.command == "stores":
            for path in list_candidate_stores(parsed_args.user, storage=storage):
                print(path)  # noqa: T201
            return

        if parsed_args.command == "merge":
            config = get_merge_config()
            if parsed_args.migrate_sources:
                config = replace(config, migrate_sources=True)
            summary = merge_user_stores(
                parsed_args.user,
                policy=parsed_args.policy,
                storage=storage,
                config=config,
                trigger=MergeTrigger(parsed_args.trigger),
            )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during merge")
        sys.exit(1)

    _log_summary(summary)
    if summary.error is not None:
        log.error("Merge failed: %s", summary.error)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console-script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
