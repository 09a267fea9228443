"""
PL/0 Compiler Front End
=======================

This module provides the main interface to the PL/0 front end. It
orchestrates the complete pipeline:

    Source → Lex → Parse (with recovery and symbol table) → Diagnostics

Usage
-----
Command line:
    $ pl0c prog.pl0 --tree

Programmatic:
    >>> from pl0_sdk.pl0 import PL0Compiler
    >>> result = PL0Compiler().compile_source("begin skip end")
    No errors detected.
    >>> result.success
    True

Error Handling
--------------
Syntax and declaration errors never raise. They are collected, listed
in source order after parsing, and counted in the result. Only an
internal consistency failure raises, as FatalError, after the listing
collected so far has been written.
"""

import io
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, TextIO

from pl0_sdk.pl0.ast import ASTPrinter, Program
from pl0_sdk.pl0.diagnostics import MAX_ERRORS, Diagnostic, DiagnosticCollector
from pl0_sdk.pl0.lexer import PL0Lexer
from pl0_sdk.pl0.parser import PL0Parser
from pl0_sdk.pl0.symbols import SymbolTable
from pl0_sdk.pl0.token_stream import TokenStream

logger = logging.getLogger(__name__)

# Values of PL0_TRACE that switch tracing on
_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        max_errors: Number of diagnostics retained for the listing; the
                    summary always counts every one
        trace: Write an indented begin/end/match/skip trace of the parse
        print_tree: Write the parse tree before the diagnostic listing
    """
    max_errors: int = MAX_ERRORS
    trace: bool = False
    print_tree: bool = False

    @classmethod
    def from_env(cls) -> "CompilerOptions":
        """
        Create CompilerOptions from environment variables.

        Environment variables (all optional):
            PL0_MAX_ERRORS: Diagnostic cap (positive integer)
            PL0_TRACE: Enable tracing (1, true, yes, on)

        Returns:
            CompilerOptions with values from environment variables
        """
        options = cls()

        if max_errors := os.environ.get("PL0_MAX_ERRORS"):
            try:
                value = int(max_errors)
            except ValueError:
                value = 0
            if value > 0:
                options.max_errors = value
            else:
                logger.debug(f"Ignoring invalid PL0_MAX_ERRORS={max_errors!r}")

        if trace := os.environ.get("PL0_TRACE"):
            options.trace = trace.strip().lower() in _TRUE_VALUES

        return options


@dataclass
class CompilerResult:
    """
    Result of a compilation.

    Attributes:
        filename: Source filename
        program: The parse tree, complete even when errors were found
        symbols: The symbol table built while parsing
        error_count: Total number of diagnostics reported
        success: True if no diagnostics were reported
        token_count: Number of tokens lexed, including the final EOF
        diagnostics: Retained diagnostics in the order they were reported
    """
    filename: str = ""
    program: Optional[Program] = None
    symbols: Optional[SymbolTable] = None
    error_count: int = 0
    success: bool = False
    token_count: int = 0
    diagnostics: list[Diagnostic] = field(default_factory=list)


class PL0Compiler:
    """
    PL/0 front end.

    Example:
        compiler = PL0Compiler(CompilerOptions(trace=True))
        result = compiler.compile_file("prog.pl0")
        print(result.error_count)

    Attributes:
        options: Compiler configuration options
        output: Stream for the listing, trace and tree (stdout if None)
    """

    def __init__(
        self,
        options: Optional[CompilerOptions] = None,
        output: Optional[TextIO] = None,
    ):
        self.options = options or CompilerOptions()
        self.output = output

    def compile_source(self, source: str, filename: str = "<input>") -> CompilerResult:
        """
        Lex and parse PL/0 source, then write the diagnostic listing and
        the error summary.

        Args:
            source: PL/0 source code string
            filename: Source filename for diagnostics

        Returns:
            CompilerResult describing the parse

        Raises:
            FatalError: If an internal consistency check fails
        """
        errors = DiagnosticCollector(
            output=self.output,
            source_lines=source.splitlines(),
            max_errors=self.options.max_errors,
            debug=self.options.trace,
        )

        logger.debug(f"Compiling {filename}")
        tokens = list(PL0Lexer(source, filename, errors).tokenize())
        logger.debug(f"Lexed {len(tokens)} tokens")

        parser = PL0Parser(TokenStream(tokens, errors))
        program = parser.parse()

        if self.options.print_tree:
            tree = ASTPrinter(program.symbols).print(program)
            errors.output.write(tree + "\n")

        result = CompilerResult(
            filename=filename,
            program=program,
            symbols=program.symbols,
            error_count=errors.error_count,
            success=not errors.had_errors(),
            token_count=len(tokens),
            diagnostics=errors.diagnostics,
        )

        errors.flush()
        errors.print_summary()
        logger.debug(f"{filename}: {errors.summary()}")
        return result

    def compile_file(self, filepath: str) -> CompilerResult:
        """
        Compile a PL/0 source file.

        Args:
            filepath: Path to the source file

        Returns:
            CompilerResult describing the parse

        Raises:
            FileNotFoundError: If source file not found
            FatalError: If an internal consistency check fails
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        source = path.read_text(encoding="utf-8")
        return self.compile_source(source, str(filepath))


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(
    source: str,
    filename: str = "<input>",
    output: Optional[TextIO] = None,
) -> tuple[Program, DiagnosticCollector]:
    """
    Parse PL/0 source without writing a listing.

    The diagnostics are left in the returned collector so the caller can
    inspect, render or flush them.

    Args:
        source: PL/0 source code
        filename: Source filename for diagnostics
        output: Stream given to the collector; a private buffer if None

    Returns:
        (program, collector)

    Raises:
        FatalError: If an internal consistency check fails

    Example:
        >>> program, errors = parse_source("var x: integer; begin x := end")
        >>> errors.summary()
        '1 error detected.'
    """
    errors = DiagnosticCollector(
        output=output if output is not None else io.StringIO(),
        source_lines=source.splitlines(),
    )
    lexer = PL0Lexer(source, filename, errors)
    program = PL0Parser(TokenStream(lexer.tokenize(), errors)).parse()
    return program, errors
