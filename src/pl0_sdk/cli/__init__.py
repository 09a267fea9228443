"""
PL/0 SDK Command-Line Interface
===============================

This package provides command-line tools for the PL/0 SDK:

- **pl0c**: PL/0 front end (parse, list diagnostics, print the tree)

Each tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

__all__ = ["pl0c"]
