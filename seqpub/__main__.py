"""CLI entry point for publishing runs.

Usage:
    python -m seqpub publish --config run_26291.yaml
    python -m seqpub publish --source-dir /runs/26291 --id-run 26291 --archive /archive
    python -m seqpub publish --config run_26291.yaml --max-errors 5 --force
    python -m seqpub status --restart-file /runs/26291/published.json

Exit status:
    0   every file published or already up to date
    1   errors were counted
    2   invalid configuration
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from typing import Any, Dict, List, Optional

from seqpub.lib.checkpoint import CheckpointStore
from seqpub.lib.config_loader import PublisherSettings, load_settings, settings_from_dict
from seqpub.lib.errors import ConfigurationError, PublishError
from seqpub.lib.identity import SampleSheetIdentityProvider
from seqpub.lib.inspect import SamtoolsInspector
from seqpub.lib.logging import setup_logging
from seqpub.lib.publisher import RunPublisher
from seqpub.lib.storage import get_store

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_CONFIG = 2


def build_settings(args: argparse.Namespace) -> PublisherSettings:
    """Settings from the config file (if any) with command line overrides."""
    overrides: Dict[str, Any] = {
        "source_directory": args.source_dir,
        "id_run": args.id_run,
        "dest_collection": args.dest_collection,
        "alt_process": args.alt_process,
        "file_format": args.file_format,
        "restart_file": args.restart_file,
        "max_errors": args.max_errors,
        "archive_location": args.archive,
        "sample_sheet": args.sample_sheet,
    }
    if args.force:
        overrides["force"] = True
    if args.with_spiked_control:
        overrides["with_spiked_control"] = True
    if args.no_inspect:
        overrides["inspect_alignments"] = False

    if args.config:
        settings = load_settings(args.config, env_file=args.env_file)
        return settings.with_overrides(**overrides)

    return settings_from_dict({k: v for k, v in overrides.items() if v is not None})


def build_publisher(settings: PublisherSettings) -> RunPublisher:
    store = get_store(settings.archive_location, **settings.archive_options)

    identity_provider = None
    if settings.sample_sheet:
        identity_provider = SampleSheetIdentityProvider.from_file(
            settings.sample_sheet, settings.spiked_control_index
        )

    inspector = None
    if settings.inspect_alignments:
        inspector = SamtoolsInspector(settings.samtools, settings.samtools_args)

    return RunPublisher(settings, store, identity_provider, inspector)


def publish_command(args: argparse.Namespace) -> int:
    try:
        settings = build_settings(args)
        publisher = build_publisher(settings)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_CONFIG
    except PublishError as e:
        logger.error("Cannot start publishing: %s", e)
        return EXIT_CONFIG

    logger.info(
        "Publishing %s to %s (collection %s)",
        settings.source_directory,
        settings.archive_location,
        publisher.destination_collection(),
    )

    try:
        num_files, num_published, num_errors = publisher.publish_all()
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_CONFIG
    finally:
        publisher.write_restart_file()

    print(f"Files: {num_files}  Published: {num_published}  Errors: {num_errors}")
    if num_errors:
        logger.error(
            "Encountered %d errors; re-run to retry failed files (restart file %s)",
            num_errors,
            settings.restart_path,
        )
        return EXIT_ERRORS
    return EXIT_OK


def status_command(args: argparse.Namespace) -> int:
    """Summarise a restart file."""
    if not args.restart_file:
        logger.error("--restart-file is required for status")
        return EXIT_CONFIG

    store = CheckpointStore(args.restart_file)
    try:
        records = list(store)
    except PublishError as e:
        logger.error("%s", e)
        return EXIT_CONFIG

    counts = Counter(r.status.value for r in records)
    print(f"{args.restart_file}: {len(records)} files")
    for status in sorted(counts):
        print(f"  {status}: {counts[status]}")

    failed = sorted((r for r in records if r.status.value == "failed"), key=lambda r: r.local_path)
    for record in failed:
        print(f"  FAILED {record.local_path}: {record.error or 'unknown error'}")
    return EXIT_ERRORS if failed else EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seqpub",
        description="Publish sequencing run output to an archive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Publish a run described by a config file
    python -m seqpub publish --config run_26291.yaml

    # Publish to a local archive without a config file
    python -m seqpub publish --source-dir /runs/26291 --id-run 26291 --archive /archive

    # Stop after 10 errors and re-send content even if unchanged
    python -m seqpub publish --config run_26291.yaml --max-errors 10 --force

    # Summarise what a previous run recorded
    python -m seqpub status --restart-file /runs/26291/published.json
        """,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json-log",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to a file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command")

    publish = subparsers.add_parser("publish", help="Publish a run")
    publish.add_argument("--config", help="YAML settings file")
    publish.add_argument("--env-file", help=".env file loaded before reading --config")
    publish.add_argument("--source-dir", help="Run directory to publish")
    publish.add_argument("--id-run", type=int, help="Run identifier")
    publish.add_argument("--dest-collection", help="Destination collection (default /seq/<id_run>)")
    publish.add_argument("--alt-process", help="Non-standard process name")
    publish.add_argument("--archive", help="Archive location: a directory or s3:// URI")
    publish.add_argument("--restart-file", help="Restart file (default <source-dir>/published.json)")
    publish.add_argument("--file-format", choices=["cram", "bam"], help="Alignment format to publish")
    publish.add_argument("--sample-sheet", help="YAML sample sheet for identity metadata")
    publish.add_argument("--max-errors", type=int, help="Stop publishing after this many errors")
    publish.add_argument(
        "--force",
        action="store_true",
        help="Transfer content even when the archive already holds it",
    )
    publish.add_argument(
        "--with-spiked-control",
        action="store_true",
        help="Include spiked-control samples in identity metadata",
    )
    publish.add_argument(
        "--no-inspect",
        action="store_true",
        help="Do not read alignment headers with samtools",
    )
    publish.set_defaults(func=publish_command)

    status = subparsers.add_parser("status", help="Summarise a restart file")
    status.add_argument("--restart-file", help="Restart file to read")
    status.set_defaults(func=status_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_CONFIG

    setup_logging(
        verbose=args.verbose,
        json_format=args.json_log,
        log_file=args.log_file,
    )

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
