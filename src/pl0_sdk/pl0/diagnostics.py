"""
PL/0 Diagnostic Collection
==========================

Every component of the front end reports problems to one
DiagnosticCollector instance, which is created before parsing starts and
consulted afterwards. It keeps diagnostics in arrival order up to a cap,
always counts the true total, and renders a listing sorted by source
position:

         3 begin x := end
    ******            ^ Error: Condition cannot start with end
    ****** Error: something without a position
    1 error detected.

A fatal diagnostic flushes the listing, prints the summary and raises
FatalError; nothing else escapes the front end.
"""

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import NoReturn, Optional, TextIO

from pl0_sdk.errors import NO_LOCATION, SourceLocation
from pl0_sdk.pl0.errors import FatalError

logger = logging.getLogger(__name__)

# Width of the line number column in the listing
LINE_NUM_WIDTH = 6

# Default number of diagnostics retained for the listing
MAX_ERRORS = 100


class Severity(Enum):
    """Diagnostic severity. Not a sort key."""
    ERROR = "Error"
    FATAL = "Fatal"


@dataclass(frozen=True)
class Diagnostic:
    """
    One reported problem.

    Attributes:
        message: Text shown to the user
        severity: ERROR for recoverable problems, FATAL for aborts
        location: Source position, or NO_LOCATION
    """
    message: str
    severity: Severity = Severity.ERROR
    location: SourceLocation = NO_LOCATION

    @property
    def sort_key(self) -> tuple[int, int]:
        """Order by (line, column); position-less diagnostics come first."""
        if not self.location.is_known:
            return (0, 0)
        return (self.location.line, self.location.column)

    def __str__(self) -> str:
        return f"{self.severity.value}: {self.message}"


class DiagnosticCollector:
    """
    Accumulates diagnostics and renders the final report.

    Attributes:
        output: Stream the listing, summary and trace lines are written to
        source_lines: Source text split into lines, for context lines
        max_errors: Number of diagnostics retained for the listing
        debug: When True, debug_message() writes rule trace lines
    """

    def __init__(
        self,
        output: Optional[TextIO] = None,
        source_lines: Optional[list[str]] = None,
        max_errors: int = MAX_ERRORS,
        debug: bool = False,
    ):
        self.output = output if output is not None else sys.stdout
        self.source_lines = source_lines or []
        self.max_errors = max_errors
        self.debug = debug

        self._diagnostics: list[Diagnostic] = []
        self._count = 0

    # =========================================================================
    # Reporting
    # =========================================================================

    def error(self, message: str, location: SourceLocation = NO_LOCATION) -> None:
        """Record an ordinary error. Parsing continues."""
        self._record(Diagnostic(message, Severity.ERROR, location))

    def fatal(self, message: str, location: SourceLocation = NO_LOCATION) -> NoReturn:
        """
        Record a fatal error, write out everything collected so far and
        abort by raising FatalError.
        """
        self._record(Diagnostic(message, Severity.FATAL, location))
        report = self.render()
        self.flush()
        self.print_summary()
        logger.debug(f"Fatal error at {location}: {message}")
        raise FatalError(message, location, report=report)

    def check(
        self,
        condition: bool,
        message: str,
        location: SourceLocation = NO_LOCATION,
    ) -> None:
        """Internal consistency assertion; fatal when condition is false."""
        if not condition:
            self.fatal(f"Assertion failed! {message}", location)

    def _record(self, diagnostic: Diagnostic) -> None:
        if self._count < self.max_errors:
            self._diagnostics.append(diagnostic)
        self._count += 1

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def error_count(self) -> int:
        """True number of diagnostics reported, including any beyond the cap."""
        return self._count

    @property
    def diagnostics(self) -> list[Diagnostic]:
        """Retained diagnostics in arrival order."""
        return list(self._diagnostics)

    def had_errors(self) -> bool:
        """Return True if any diagnostic has been reported."""
        return self._count > 0

    def summary(self) -> str:
        """One-sentence count of every diagnostic reported."""
        if self._count == 0:
            return "No errors detected."
        if self._count == 1:
            return "1 error detected."
        return f"{self._count} errors detected."

    # =========================================================================
    # Output
    # =========================================================================

    def render(self) -> str:
        """
        Format the retained diagnostics sorted by position.

        The sort is stable, so diagnostics at the same position keep their
        arrival order. A source line is shown once for consecutive
        diagnostics on that line.
        """
        lines = []
        pad = "*" * LINE_NUM_WIDTH
        previous_line = -1

        for diagnostic in sorted(self._diagnostics, key=lambda d: d.sort_key):
            location = diagnostic.location
            if location.is_known:
                if location.line != previous_line:
                    text = self._source_line(location.line)
                    lines.append(f"{location.line:>{LINE_NUM_WIDTH}} {text}")
                    previous_line = location.line
                indent = " " * (location.column - 1)
                lines.append(f"{pad} {indent}^ {diagnostic}")
            else:
                lines.append(f"{pad} {diagnostic}")

        return "\n".join(lines)

    def flush(self) -> None:
        """Write the listing and clear the retained diagnostics."""
        report = self.render()
        if report:
            self._write(report)
        self._diagnostics.clear()

    def print_summary(self) -> None:
        """Write the summary sentence."""
        self._write(self.summary())

    def debug_message(self, message: str, level: int = 0) -> None:
        """Write a trace line indented by level, if tracing is on."""
        if self.debug:
            self._write(" " * level + message)

    def _source_line(self, line: int) -> str:
        if 0 < line <= len(self.source_lines):
            return self.source_lines[line - 1].rstrip("\r\n")
        return ""

    def _write(self, text: str) -> None:
        self.output.write(text + "\n")
