"""
CLI Error Handling
==================

Provides consistent error handling and exit codes for the command-line tool.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from asm65.errors import Asm65Error, IncludeError


class ExitCode(IntEnum):
    """Standard exit codes for the CLI."""
    SUCCESS = 0
    BUILD_ERROR = 1      # Assembly error, including failed assertions
    INVALID_ARGS = 2     # Invalid arguments or missing files
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Exception handler for the CLI.

    Formats the error message, optionally prints a traceback in verbose
    mode, and exits with the matching exit code.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors
        error_type: Optional prefix for the error message (e.g., "Assembly")

    Raises:
        SystemExit: Always exits with an appropriate exit code
    """
    if isinstance(error, IncludeError) and error.location is None:
        # The main source file itself could not be read
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, Asm65Error):
        # Assembly errors already carry "file:line: error:" formatting
        prefix = f"{error_type} failed:\n" if error_type else ""
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, click.BadParameter):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, (FileNotFoundError, PermissionError, IsADirectoryError)):
        # Output files that cannot be written
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
