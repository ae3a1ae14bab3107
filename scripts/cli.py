"""Minimal CLI entry point for manual batch label updates."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from gmail_labeler.config.settings import GmailLabelerSettings
from gmail_labeler.core.exceptions import BatchAbortedError
from gmail_labeler.core.labels import FLAG_LABELS
from gmail_labeler.core.models import BatchProgress
from gmail_labeler.pipeline.updater import BatchUpdater

# CLI switch -> resolver flag name
FLAG_SWITCHES: dict[str, str] = {
    "--mark-read": "mark_as_read",
    "--mark-unread": "mark_as_unread",
    "--star": "star",
    "--unstar": "unstar",
    "--important": "mark_as_important",
    "--not-important": "mark_as_not_important",
    "--archive": "archive",
    "--unarchive": "unarchive",
}


def setup_logging(level: str) -> None:
    """Configure logging with timestamp and module info."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def on_progress(progress: BatchProgress) -> None:
    """Print progress updates to stderr so stdout stays valid JSON."""
    print(
        f"[{progress.current_stage}] "
        f"chunks={progress.chunks_done}/{progress.chunks_total} "
        f"ok={progress.messages_succeeded} "
        f"failed={progress.messages_failed} "
        f"skipped={progress.messages_skipped}",
        end="\r",
        file=sys.stderr,
        flush=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Gmail Labeler - Apply label changes to Gmail messages in batches"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("list-labels", help="List all Gmail labels")

    update_parser = subparsers.add_parser("update", help="Change labels on many messages")
    update_parser.add_argument(
        "--id", action="append", default=[], dest="ids", help="Message ID (repeatable)"
    )
    update_parser.add_argument(
        "--ids-file", type=Path, default=None, help="File with one message ID per line"
    )
    update_parser.add_argument(
        "--add-label", action="append", default=[], dest="add_labels", help="Label ID to add"
    )
    update_parser.add_argument(
        "--remove-label",
        action="append",
        default=[],
        dest="remove_labels",
        help="Label ID to remove",
    )
    for switch, flag in FLAG_SWITCHES.items():
        label, side = FLAG_LABELS[flag]
        update_parser.add_argument(
            switch, action="store_true", dest=flag, help=f"{side} {label}"
        )
    update_parser.add_argument(
        "--trash", action="store_true", help="Move messages to trash instead of relabeling"
    )
    update_parser.add_argument(
        "--no-prevalidate",
        action="store_false",
        dest="pre_validate",
        default=None,
        help="Skip the label pre-check before the bulk call",
    )
    update_parser.add_argument(
        "--no-verify",
        action="store_false",
        dest="verify",
        default=None,
        help="Trust the bulk call instead of re-reading labels",
    )
    update_parser.add_argument(
        "--chunk-size", type=int, default=None, dest="chunk_size", help="IDs per bulk call"
    )
    update_parser.add_argument(
        "--timeout", type=float, default=None, help="Abort the run after N seconds"
    )

    return parser


def _read_ids(args: argparse.Namespace) -> list[str]:
    """Collect message IDs from --id flags and --ids-file, in that order."""
    ids = list(args.ids)
    if args.ids_file is not None:
        for line in args.ids_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                ids.append(line)
    return ids


def build_payload(args: argparse.Namespace) -> dict[str, Any]:
    """Turn parsed 'update' arguments into a batch update payload."""
    payload: dict[str, Any] = {
        "messageIds": _read_ids(args),
        "addLabelIds": args.add_labels,
        "removeLabelIds": args.remove_labels,
        "moveToTrash": args.trash,
    }
    for flag in FLAG_SWITCHES.values():
        payload[flag] = getattr(args, flag)
    return payload


def build_settings(args: argparse.Namespace) -> GmailLabelerSettings:
    """Settings from env/.env with CLI overrides applied on top."""
    overrides = {
        key: getattr(args, key)
        for key in ("chunk_size", "pre_validate", "verify")
        if getattr(args, key, None) is not None
    }
    return GmailLabelerSettings(**overrides)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "update":
        if args.chunk_size is not None and args.chunk_size <= 0:
            print("Error: --chunk-size must be positive", file=sys.stderr)
            sys.exit(1)
        if args.timeout is not None and args.timeout <= 0:
            print("Error: --timeout must be positive", file=sys.stderr)
            sys.exit(1)

    try:
        settings = build_settings(args)
    except ValidationError as e:
        # env values and overrides such as --chunk-size above its limit
        print(f"Error: invalid settings:\n{e}", file=sys.stderr)
        sys.exit(1)
    setup_logging(settings.log_level)

    updater = BatchUpdater(settings=settings, on_progress=on_progress)

    try:
        if args.command == "list-labels":
            labels = updater.list_labels()
            print(f"\nFound {len(labels)} labels:\n")
            for label in sorted(labels, key=lambda x: x["name"]):
                print(f"  {label['id']:40s} {label['name']}")

        elif args.command == "update":
            result = updater.run_payload(build_payload(args), timeout_seconds=args.timeout)
            print(file=sys.stderr)
            print(json.dumps(result, indent=2))
            if not result["success"]:
                sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except BatchAbortedError as e:
        print(f"\nError: {e}", file=sys.stderr)
        if e.partial_report is not None:
            print(json.dumps(e.partial_report.to_dict(), indent=2))
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
