"""
pl0c - PL/0 Front End Command-Line Interface
============================================

This module implements the command-line interface for the PL/0 front
end. It parses a program, prints the position-sorted diagnostic listing
and the error summary, and optionally the parse tree and a trace of the
parser's rule recovery.

Usage Examples
--------------
Check a program:
    $ pl0c prog.pl0

Print the parse tree:
    $ pl0c prog.pl0 --tree

Trace rule entry, exit, matching and skipping:
    $ pl0c prog.pl0 --trace

Verbose mode (debug logging):
    $ pl0c -v prog.pl0

Environment
-----------
PL0_MAX_ERRORS and PL0_TRACE supply defaults that the options override.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from pl0_sdk import __version__
from pl0_sdk.cli.errors import ExitCode, handle_cli_exception
from pl0_sdk.pl0 import CompilerOptions, PL0Compiler


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--trace",
    is_flag=True,
    default=False,
    help="Trace rule entry/exit, token matches and skipped tokens",
)
@click.option(
    "--tree",
    is_flag=True,
    default=False,
    help="Print the parse tree and the declarations of each block",
)
@click.option(
    "--max-errors",
    type=click.IntRange(min=1),
    default=None,
    help="Number of diagnostics to list (default: 100); all are counted",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="pl0c")
def main(
    input_file: Path,
    trace: bool,
    tree: bool,
    max_errors: Optional[int],
    verbose: bool,
) -> None:
    """
    Parse a PL/0 program and report its errors.

    INPUT_FILE is the PL/0 source file (.pl0) to check.

    Errors are listed in source order under the offending line, followed
    by a count. The exit status is 0 for a clean program, 1 when errors
    were found and 3 on an internal compiler error.

    \b
    Examples:
        pl0c prog.pl0                # List errors
        pl0c prog.pl0 --tree         # Also print the parse tree
        pl0c prog.pl0 --trace        # Trace the parser's recovery
        pl0c prog.pl0 --max-errors 5 # List at most five errors
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    options = CompilerOptions.from_env()
    if trace:
        options.trace = True
    if tree:
        options.print_tree = True
    if max_errors is not None:
        options.max_errors = max_errors

    try:
        if verbose:
            click.echo(f"Parsing {input_file}...")

        result = PL0Compiler(options).compile_file(str(input_file))

        if verbose:
            click.echo(f"Tokenized: {result.token_count} tokens")

    except Exception as e:
        handle_cli_exception(e, verbose)

    if not result.success:
        sys.exit(ExitCode.BUILD_ERROR)


if __name__ == "__main__":
    main()
