"""CLI entry point for jsonpost.

Handles argument parsing and dispatches to post or validate mode.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from jsonpost.config_loader import ConfigError, load_config, validate_config
from jsonpost.models import RoutingOutcome, WorkItem
from jsonpost.processor import PostJsonProcessor, ProcessingError
from jsonpost.session import InMemorySession

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_ERROR = 2

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def parse_attribute(value: str) -> tuple[str, str]:
    """Parse NAME=VALUE format.

    Returns:
        Tuple of (name, value). The value may be empty or contain '='.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if "=" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid format '{value}'. Expected NAME=VALUE (e.g., 'id=42')"
        )
    name, attr_value = value.split("=", 1)
    if not name:
        raise argparse.ArgumentTypeError(
            f"Invalid format '{value}'. Attribute name cannot be empty."
        )
    return (name, attr_value)


@dataclass
class PostArgs:
    """Parsed arguments for post mode."""

    config: Path
    attributes: dict[str, str]
    content_file: Path | None
    log_level: str


@dataclass
class ValidateArgs:
    """Parsed arguments for validate mode."""

    config: Path
    log_level: str


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with post and validate subcommands."""
    parser = argparse.ArgumentParser(
        prog="jsonpost",
        description="POST a JSON body built from templates and route the work item by response status.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Execution mode")

    post_parser = subparsers.add_parser(
        "post",
        help="Run one invocation for a work item built from --attr and --content-file",
    )
    post_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to processor configuration file (YAML)",
    )
    post_parser.add_argument(
        "--attr",
        type=parse_attribute,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        dest="attributes",
        help="Work item attribute used by the templates (can be repeated)",
    )
    post_parser.add_argument(
        "--content-file",
        type=Path,
        default=None,
        dest="content_file",
        help="File whose bytes become the work item content",
    )
    _add_log_level(post_parser)

    validate_parser = subparsers.add_parser(
        "validate",
        help="Load and check the configuration without sending anything",
    )
    validate_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to processor configuration file (YAML)",
    )
    _add_log_level(validate_parser)

    return parser


def _add_log_level(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="WARNING",
        dest="log_level",
        help="Logging level for stderr output (default: WARNING)",
    )


def _build_attributes(pairs: list[tuple[str, str]]) -> dict[str, str]:
    """Build attribute dict, warning on duplicates."""
    result: dict[str, str] = {}
    for name, value in pairs:
        if name in result:
            print(
                f"Warning: --attr '{name}' specified multiple times, using last value",
                file=sys.stderr,
            )
        result[name] = value
    return result


def parse_args(args: list[str] | None = None) -> PostArgs | ValidateArgs:
    """Parse command-line arguments and return typed args dataclass.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "post":
        return PostArgs(
            config=namespace.config,
            attributes=_build_attributes(namespace.attributes or []),
            content_file=namespace.content_file,
            log_level=namespace.log_level,
        )
    elif namespace.command == "validate":
        return ValidateArgs(config=namespace.config, log_level=namespace.log_level)
    else:
        # Should not happen with required=True on subparsers
        parser.error(f"Unknown command: {namespace.command}")


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def dispatch(parsed: PostArgs | ValidateArgs) -> int:
    """Run the mode selected by parsed arguments and return the exit code."""
    configure_logging(parsed.log_level)
    if isinstance(parsed, PostArgs):
        return run_post(parsed)
    return run_validate(parsed)


def main() -> int:
    """Main entry point."""
    try:
        return dispatch(parse_args())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_ERROR


def _item_summary(item: WorkItem, destination: RoutingOutcome) -> dict[str, object]:
    return {
        "id": item.id,
        "destination": destination.value,
        "attributes": item.attributes,
        "content": item.content.decode("utf-8", errors="replace"),
    }


def run_post(args: PostArgs) -> int:
    """Run post mode: one invocation, summary printed as JSON on stdout."""
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    content = b""
    if args.content_file is not None:
        try:
            content = args.content_file.read_bytes()
        except OSError as e:
            print(f"Error: Cannot read content file: {e}", file=sys.stderr)
            return EXIT_ERROR

    session = InMemorySession([WorkItem(attributes=args.attributes, content=content)])
    processor = PostJsonProcessor(config)

    error: ProcessingError | None = None
    try:
        processor.on_trigger(session)
    except ProcessingError as e:
        error = e

    for destination in RoutingOutcome:
        for item in session.transferred(destination):
            print(json.dumps(_item_summary(item, destination), indent=2, ensure_ascii=False))

    if error is not None:
        print(f"Error: {error}", file=sys.stderr)
        return EXIT_ERROR
    if session.transferred(RoutingOutcome.SUCCESS):
        return EXIT_SUCCESS
    return EXIT_FAILURE


def run_validate(args: ValidateArgs) -> int:
    """Run validate mode: load config and report warnings and errors."""
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    report = validate_config(config)
    for warning in report.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    for error in report.errors:
        print(f"Error: {error}", file=sys.stderr)

    if not report.is_valid:
        return EXIT_ERROR

    print("Validation successful")
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
