# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""SendEML CLI entry point.

Usage::

    sendeml json_file ...
    sendeml --version

Each argument names a settings file (JSON, or YAML with a ``.yaml`` /
``.yml`` suffix).  Files are processed in order; an error in one settings
file is reported and the next one is still attempted.  Running ``sendeml``
with no arguments prints usage and a sample settings file.

Exit codes:
    0 - Every session completed and every EML file was accepted
    1 - At least one settings file, session or EML file failed
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from sendeml import __version__
from sendeml.logging import VERBOSE_FORMAT, configure_logging
from sendeml.runner import process_settings_file
from sendeml.settings import ConfigError, make_json_sample


logger = logging.getLogger(__name__)


def _print_usage() -> None:
    """Print usage followed by a sample settings file."""
    print("Usage: sendeml json_file ...")
    print("---")
    print("json_file sample:")
    print(make_json_sample())


def _print_version() -> None:
    print(f"SendEML / Version: {__version__}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sendeml",
        description="Send raw EML files to an SMTP server.",
    )
    parser.add_argument(
        "settings_files",
        nargs="*",
        metavar="json_file",
        help="Settings file (JSON or YAML)",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable timestamped debug logging",
    )
    return parser


def proc_settings_file(settings_file: str) -> bool:
    """Send everything listed in one settings file.

    Args:
        settings_file: Path given on the command line.

    Returns:
        True when every session and EML file succeeded.
    """
    try:
        results = process_settings_file(Path(settings_file))
    except ConfigError as e:
        logger.error("error: %s: %s", settings_file, e)
        return False
    except Exception as e:
        logger.exception("error: %s: %s", settings_file, e)
        return False

    ok = True
    for result in results:
        if result.error is not None:
            logger.error(
                "error: %s: %s: %s", settings_file, result.label, result.error
            )
            ok = False
        for file, reason in result.failed:
            logger.error("error: %s: %s: %s", settings_file, file, reason)
            ok = False
    return ok


def main(argv: list[str] | None = None) -> int:
    """Run the sender.

    Args:
        argv: Command line arguments (defaults to ``sys.argv[1:]``).

    Returns:
        Exit code.
    """
    args = _build_parser().parse_args(argv)

    if args.version:
        _print_version()
        return 0

    if not args.settings_files:
        _print_usage()
        return 0

    if args.verbose:
        configure_logging(level=logging.DEBUG, format_string=VERBOSE_FORMAT)
    else:
        configure_logging(level=logging.INFO)

    ok = True
    for settings_file in args.settings_files:
        if not proc_settings_file(settings_file):
            ok = False
    return 0 if ok else 1


def cli() -> None:
    """Entry point for the ``sendeml`` console script."""
    sys.exit(main())
