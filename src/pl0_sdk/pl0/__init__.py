"""
PL/0 Compiler Front End
=======================

This package implements the front end of a PL/0 compiler: a recursive
descent parser that performs syntax analysis, panic-mode error recovery
and symbol table construction in one pass.

Pipeline
--------
    Source → PL0Lexer → TokenStream → PL0Parser → Program + SymbolTable
                              ↘           ↙
                          DiagnosticCollector

The lexer, token stream, parser and symbol table all report to one
DiagnosticCollector, which lists the errors in source order afterwards.

Usage
-----
>>> from pl0_sdk.pl0 import parse_source
>>> program, errors = parse_source("const a = 5; begin write a end")
>>> program.symbols.lookup_in(program.block.scope, "a").value
5

Language Subset
---------------
Supported features:
- Declarations: const, type (names and subranges), var, procedure
- Statements: parallel assignment, read, write, call, if/then/else,
  while, guarded do ... od with exit, begin ... end, skip
- Expressions: + - * / with unary minus, relational operators

Not supported:
- Type checking, code generation, procedure parameters
"""

from pl0_sdk.pl0.compiler import (
    CompilerOptions,
    CompilerResult,
    PL0Compiler,
    parse_source,
)
from pl0_sdk.pl0.diagnostics import Diagnostic, DiagnosticCollector, Severity
from pl0_sdk.pl0.errors import CompilerError, FatalError, InvalidCharacterError
from pl0_sdk.pl0.lexer import PL0Lexer, Token, TokenKind
from pl0_sdk.pl0.parser import PL0Parser
from pl0_sdk.pl0.symbols import (
    ConstantEntry,
    Entry,
    ProcedureEntry,
    Scope,
    SymbolTable,
    TypeEntry,
    VariableEntry,
)
from pl0_sdk.pl0.token_stream import TokenSet, TokenStream
from pl0_sdk.pl0.ast import ASTPrinter, Program

__all__ = [
    # Main API
    "PL0Compiler",
    "CompilerOptions",
    "CompilerResult",
    "parse_source",
    # Diagnostics and errors
    "Diagnostic",
    "DiagnosticCollector",
    "Severity",
    "CompilerError",
    "FatalError",
    "InvalidCharacterError",
    # Lexer and token stream
    "PL0Lexer",
    "Token",
    "TokenKind",
    "TokenSet",
    "TokenStream",
    # Parser and tree
    "PL0Parser",
    "Program",
    "ASTPrinter",
    # Symbol table
    "SymbolTable",
    "Scope",
    "Entry",
    "ConstantEntry",
    "TypeEntry",
    "VariableEntry",
    "ProcedureEntry",
]
