"""CLI utility functions for depforge.

This module provides common utilities used by the command line including:
- Logging setup
- Command-line variable assignments (arguments and MAKEFLAGS)
- Error handling and formatting
"""

import logging
import os
import sys
from typing import Dict, List, Optional, Tuple

from depforge.config import parse_assignment, parse_makeflags
from depforge.errors import DepforgeError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_log_handler: Optional[logging.Handler] = None


def setup_logging(verbose: bool = False) -> None:
    """Setup logging for the command line.

    Args:
        verbose: Log debug messages instead of warnings only
    """
    global _log_handler

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if _log_handler is not None:
        logger.removeHandler(_log_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)
    _log_handler = console_handler


class VariableParser:
    """Collects variable assignments given on the command line."""

    @staticmethod
    def parse_arguments(
        arguments: List[str], makeflags: Optional[str] = None
    ) -> Tuple[Dict[str, str], List[str]]:
        """Parse 'NAME=value' arguments.

        Assignments from MAKEFLAGS come first so that explicit arguments
        override them.

        Args:
            arguments: Positional command-line arguments
            makeflags: MAKEFLAGS value (read from the environment when None)

        Returns:
            Tuple of (assignments, arguments that are not assignments)
        """
        if makeflags is None:
            makeflags = os.environ.get("MAKEFLAGS", "")
        variables = parse_makeflags(makeflags)

        others = []
        for arg in arguments:
            assignment = parse_assignment(arg) if "=" in arg else None
            if assignment:
                variables[assignment[0]] = assignment[1]
            else:
                others.append(arg)
        return variables, others


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message to stderr.

        Args:
            title: Error title (e.g., "Dependency generation failed")
            message: Error message details
        """
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}", file=sys.stderr)
        print(message, file=sys.stderr)

    @staticmethod
    def print_success(message: str) -> None:
        """Print formatted success message."""
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        """Print formatted warning message to stderr."""
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}", file=sys.stderr)

    @staticmethod
    def handle_depforge_error(error: DepforgeError) -> None:
        """Print a dependency generation error with its notes and exit.

        Args:
            error: The error to report
        """
        print(error.format(), file=sys.stderr)
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:", file=sys.stderr)
            print(traceback.format_exc(), file=sys.stderr)

        sys.exit(1)
