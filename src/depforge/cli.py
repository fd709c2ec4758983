"""
Command-line interface for depforge.

This module provides the `depforge` CLI tool, which resolves the source
dependencies of a build tree and writes them as a JSON model.
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from depforge.build import DependencyGenerator, OutputWriter
from depforge.cli_utils import ErrorFormatter, VariableParser, setup_logging
from depforge.errors import DepforgeError
from depforge.interrupt_utils import install_cleanup_handlers, restore_signal_handlers
from depforge.path_utils import get_relative_path

VERSION = "0.1.0"


@dataclass
class GenerateArgs:
    """Arguments for dependency generation."""

    descriptor: Path
    output: Path
    variables: Dict[str, str] = field(default_factory=dict)
    verbose: bool = False
    progress: bool = False


def generate_command(args: GenerateArgs) -> None:
    """Resolve the dependencies of a build tree.

    Examples:
        depforge                          # Read ./Makefile, write depends.json
        depforge -f build/Makefile        # Other top-level descriptor
        depforge srcdir=../wine           # Out-of-tree build
        depforge --progress -v            # Progress bar and debug logging
    """
    if args.verbose:
        print(f"depforge v{VERSION}")
        print(f"Descriptor: {args.descriptor}")
        print()

    writer = OutputWriter()
    previous_handlers = install_cleanup_handlers(writer.cleanup)

    try:
        generator = DependencyGenerator(
            descriptor=args.descriptor,
            overrides=args.variables,
            verbose=args.verbose,
            progress=args.progress,
        )
        result = generator.generate()

        writer.write_model(args.output, result)
        writer.write_generated_files(result)

        if args.verbose:
            ErrorFormatter.print_success(
                f"Resolved {len(result.all_units())} units in {result.elapsed:.2f}s"
            )
            print(f"Model: {args.output}")
        sys.exit(0)

    except DepforgeError as e:
        writer.cleanup()
        ErrorFormatter.handle_depforge_error(e)
    except KeyboardInterrupt:
        writer.cleanup()
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        writer.cleanup()
        ErrorFormatter.handle_unexpected_error(e, args.verbose)
    finally:
        restore_signal_handlers(previous_handlers, writer.cleanup)


def relative_path_command(from_dir: str, dest: str) -> None:
    """Print the path of dest relative to from_dir ('.' if identical)."""
    print(get_relative_path(from_dir, dest) or ".")
    sys.exit(0)


def main(argv: Optional[List[str]] = None) -> None:
    """depforge - Dependency generator for multi-target source trees."""
    parser = argparse.ArgumentParser(
        prog="depforge",
        description="depforge - Dependency generator for multi-target source trees",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"depforge {VERSION}",
    )
    parser.add_argument(
        "-f",
        "--file",
        dest="descriptor",
        type=Path,
        default=Path("Makefile"),
        help="Top-level build descriptor (default: Makefile)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("depends.json"),
        help="Resolved model output file (default: depends.json)",
    )
    parser.add_argument(
        "-R",
        "--relative",
        nargs=2,
        metavar=("FROM", "TO"),
        default=None,
        help="Print the path of TO relative to directory FROM and exit",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar over build directories",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )
    parser.add_argument(
        "variables",
        nargs="*",
        metavar="VAR=value",
        help="Variable overrides (also read from MAKEFLAGS)",
    )

    # Parse arguments
    parsed_args = parser.parse_args(argv)

    if parsed_args.relative:
        relative_path_command(*parsed_args.relative)

    setup_logging(parsed_args.verbose)

    variables, others = VariableParser.parse_arguments(parsed_args.variables)
    if others:
        ErrorFormatter.print_error(
            "Invalid arguments",
            f"Directory arguments not supported in this mode: {' '.join(others)}",
        )
        sys.exit(1)

    generate_args = GenerateArgs(
        descriptor=parsed_args.descriptor,
        output=parsed_args.output,
        variables=variables,
        verbose=parsed_args.verbose,
        progress=parsed_args.progress,
    )
    generate_command(generate_args)


if __name__ == "__main__":
    main()
