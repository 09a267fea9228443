"""
PL/0 Compiler Exceptions
========================

Exceptions raised by the PL/0 front end. Only two situations raise:

- the lexer meets a character it cannot classify and no diagnostic
  collector is attached to absorb it (InvalidCharacterError), and
- an internal consistency check fails (FatalError). This means the
  parser itself is inconsistent, not that the user's program is wrong.

Everything else (syntax errors, duplicate declarations, arity
mismatches) is recorded by the DiagnosticCollector and parsing carries
on.

Error Message Format
--------------------
    filename:line:column: error: description
        source_line_text
            ^
    hint: suggestion for fixing
"""

from typing import Optional

from pl0_sdk.errors import PL0Error, SourceLocation


class CompilerError(PL0Error):
    """
    Base exception for all PL/0 compiler errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred
        hint: A suggestion for fixing the error
        source_line: The actual source text at the error location
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

            prog.pl0:3:9: error: illegal character '$'
                x := $1
                     ^
        """
        parts = []

        if self.location is not None and self.location.is_known:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class InvalidCharacterError(CompilerError):
    """Character that cannot start any PL/0 token."""

    def __init__(
        self,
        char: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.char = char
        super().__init__(
            f"illegal character '{char}' (0x{ord(char):02X})",
            location=location,
            source_line=source_line,
        )


class FatalError(CompilerError):
    """
    Unrecoverable failure that aborts the parse.

    Raised by DiagnosticCollector.fatal() after the accumulated
    diagnostics and the error summary have been written out. The
    rendered listing is kept on the exception so that callers which
    captured no output stream can still show it.

    Attributes:
        report: The diagnostic listing rendered just before aborting
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        report: str = "",
    ):
        self.report = report
        super().__init__(message, location=location)
