"""
PL/0 SDK Error Hierarchy
========================

This module defines the base exception and the source location record
shared by every part of the SDK. All exceptions inherit from PL0Error,
allowing callers to catch all SDK-related errors with a single except
clause if desired.

Exception Hierarchy
-------------------
PL0Error (base)
└── CompilerError (pl0_sdk.pl0.errors)
    ├── InvalidCharacterError - character the lexer cannot classify
    └── FatalError - internal consistency failure, aborts the parse

Design Philosophy
-----------------
Ordinary syntax and declaration errors are never raised: they are
recorded by the DiagnosticCollector and parsing continues. Exceptions
are reserved for conditions that end the compilation.
"""

from dataclasses import dataclass


# =============================================================================
# Base Exception Class
# =============================================================================

class PL0Error(Exception):
    """
    Base exception for all PL/0 SDK errors.

        try:
            compiler.compile_file("prog.pl0")
        except PL0Error as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Tokens, tree nodes, symbol table entries and diagnostics all carry
    one of these. The immutable (frozen) design ensures locations cannot
    be accidentally modified once a token has been produced.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed, 0 for "no position")
        column: Column number (1-indexed, 0 for "no position")
    """
    filename: str
    line: int
    column: int

    @property
    def is_known(self) -> bool:
        """True unless this is the NO_LOCATION sentinel."""
        return self.line > 0

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# Sentinel for diagnostics that do not relate to a source position
NO_LOCATION = SourceLocation("<none>", 0, 0)
