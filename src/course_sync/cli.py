"""Command-line entry point: ``course-sync run`` and ``course-sync status``."""

import argparse
import json
import logging
import sys
from typing import Any

from dotenv import load_dotenv

from . import __version__
from .config import load_config
from .config_schema import UnifiedConfig
from .errors import SyncError, ValidationError
from .lifespan import build_engine, sync_session
from .logger import setup_logging
from .sync.reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)
from .sync.state import ProgressTracker

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        help="YAML config file (takes precedence over COURSE_SYNC_CONFIG and discovered files)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable DEBUG logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also write log records to this file",
    )
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON instead of text",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="course-sync",
        description="Sync course content from an Azure DevOps repository "
        "into SQL, Cosmos DB and blob storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Apply everything committed since the last successful run
  course-sync run

  # Preview the next run without writing anything
  course-sync run --dry-run

  # Re-import the whole tree (the checkpoint is replaced on success)
  course-sync run --full

  # Show the stored checkpoint
  course-sync status

Configuration is read from .env, environment variables (DEVOPS_URL,
DEVOPS_TOKEN, SQL_CONNECTION_STRING, COSMOS_*, BLOB_URL, STORAGE_*) and
.course_sync/config.yml.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"course-sync version {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run", help="Apply repository changes to every destination"
    )
    _add_common_arguments(run_parser)
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch, classify and validate only; write nothing",
    )
    run_parser.add_argument(
        "--full",
        action="store_true",
        help="Ignore the stored checkpoint and import the whole tree",
    )
    run_parser.add_argument(
        "--branch",
        help="Branch used to resolve the latest commit (overrides DEVOPS_BRANCH)",
    )
    run_parser.add_argument(
        "--max-parallel",
        type=int,
        help="Concurrent document and blob writes (overrides SYNC_MAX_PARALLEL)",
    )

    status_parser = subparsers.add_parser(
        "status", help="Print the stored checkpoint"
    )
    _add_common_arguments(status_parser)
    return parser


def _cli_overrides(args: argparse.Namespace) -> dict[str, dict[str, Any]]:
    overrides: dict[str, dict[str, Any]] = {}
    if getattr(args, "branch", None):
        overrides.setdefault("source", {})["branch"] = args.branch
    if getattr(args, "max_parallel", None) is not None:
        overrides.setdefault("sync", {})["max_parallel"] = args.max_parallel
    return overrides


def _configure_logging(args: argparse.Namespace, config: UnifiedConfig) -> None:
    setup_logging(
        debug=args.debug,
        log_file=args.log_file or config.logging.file,
        log_format=args.log_format or config.logging.format,
        level=config.logging.level,
    )


def _cmd_run(args: argparse.Namespace, config: UnifiedConfig) -> int:
    with sync_session(config, destinations=not args.dry_run) as resources:
        engine = build_engine(resources, config)
        report = engine.run(dry_run=args.dry_run, full=args.full)

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    elif args.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_sync_report(report))
    return EXIT_OK


def _cmd_status(args: argparse.Namespace, config: UnifiedConfig) -> int:
    with sync_session(config, destinations=False) as resources:
        revision = ProgressTracker(resources.checkpoint_store).read()

    if args.json:
        print(json.dumps({"checkpoint": revision}))
    else:
        print(f"Checkpoint: {revision or 'none'}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return the process exit status.

    0 on success, 1 when the run failed (checkpoint unchanged), 2 on
    configuration errors.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    require_destinations = args.command == "run" and not args.dry_run
    try:
        config = load_config(
            config_path=args.config,
            cli_overrides=_cli_overrides(args),
            require_destinations=require_destinations,
        )
    except (ValueError, FileNotFoundError) as exc:
        setup_logging(debug=args.debug, log_file=args.log_file)
        logger.error("Configuration error: %s", exc)
        print(f"ERROR: Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    _configure_logging(args, config)

    commands = {"run": _cmd_run, "status": _cmd_status}
    try:
        return commands[args.command](args, config)
    except ValidationError as exc:
        print(
            f"ERROR: {len(exc.problems)} validation problem(s); "
            "nothing was written. See the log for every offending path.",
            file=sys.stderr,
        )
        return EXIT_FAILED
    except SyncError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
