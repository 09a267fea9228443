"""
PL/0 SDK - Front End for the PL/0 Teaching Language
===================================================

This package provides the front end of a compiler for PL/0, the small
block-structured language used to teach compiler construction.

Main Components
---------------
- **pl0**: Lexer, recovering recursive descent parser, symbol table and
  diagnostics
    Turns PL/0 source into a scope-annotated parse tree plus a
    position-sorted error listing

- **cli**: Command-line tools
    `pl0c` parses a source file and prints the listing

Quick Start
-----------
Parse a program:
    >>> from pl0_sdk.pl0 import PL0Compiler
    >>> result = PL0Compiler().compile_source("var x: integer; begin x := 1 end")
    No errors detected.

Or use the command-line tool:
    $ pl0c prog.pl0 --tree

Version History
---------------
1.0.0 - Initial release with parser, symbol table and pl0c
"""

__version__ = "1.0.0"
__author__ = "PL/0 SDK Contributors"

from pl0_sdk.errors import NO_LOCATION, PL0Error, SourceLocation

__all__ = [
    "__version__",
    "PL0Error",
    "SourceLocation",
    "NO_LOCATION",
]
