"""
PL/0 Abstract Syntax Tree (AST) Definitions
===========================================

This module defines the tree produced by the PL/0 parser. Nodes are
plain immutable data: they carry a source location and the fields the
grammar assigns them, and no parsing logic.

Node Hierarchy
--------------
Program - root, owns the outermost Block and the SymbolTable
Block - procedures declared in a scope plus the body statement
ProcedureDeclaration - a procedure's symbol entry and its Block
Statement (closed union)
├── ErrorStatement - placeholder for a statement that failed to parse
├── AssignmentStatement - parallel targets := values (also read)
├── WhileStatement, IfStatement, DoStatement
├── WriteStatement, CallStatement, SkipStatement
└── StatementList - sequence, also the result of begin ... end
Expression (closed union)
├── ErrorExpression - placeholder for an expression that failed to parse
├── NumberExpression, IdentifierExpression, ReadExpression
└── UnaryExpression, BinaryExpression
ConstExpression (closed union)
└── ConstNumber, ConstIdentifier, ConstNegate, ConstError

Design Notes
------------
- Every variant is a frozen dataclass; sequences are tuples
- Consumers dispatch with isinstance over the union members and must
  treat an unknown variant as a programming error (see ASTPrinter)
- Scopes and symbol entries are referred to by their integer index in
  the SymbolTable arenas, never by object reference
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TYPE_CHECKING, Union

from pl0_sdk.errors import SourceLocation

if TYPE_CHECKING:
    from pl0_sdk.pl0.symbols import SymbolTable


# =============================================================================
# Operators
# =============================================================================

class Operator(Enum):
    """Unary and binary operators; printed as their source spelling."""
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    NEG = "neg"
    EQUALS = "="
    NEQUALS = "!="
    LESS = "<"
    GREATER = ">"
    LEQUALS = "<="
    GEQUALS = ">="

    def __str__(self) -> str:
        if self is Operator.NEG:
            return "-"
        return self.value


# =============================================================================
# Constant Expressions
# =============================================================================

@dataclass(frozen=True)
class ConstNumber:
    location: SourceLocation
    scope: int
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ConstIdentifier:
    """Reference to a named constant, resolved from `scope` outward."""
    location: SourceLocation
    scope: int
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ConstNegate:
    location: SourceLocation
    scope: int
    operand: "ConstExpression"

    def __str__(self) -> str:
        return f"-{self.operand}"


@dataclass(frozen=True)
class ConstError:
    """Placeholder for a constant that failed to parse."""
    location: SourceLocation
    scope: int

    def __str__(self) -> str:
        return "<error>"


ConstExpression = Union[ConstNumber, ConstIdentifier, ConstNegate, ConstError]


# =============================================================================
# Expressions
# =============================================================================

@dataclass(frozen=True)
class ErrorExpression:
    """Placeholder for an expression that failed to parse."""
    location: SourceLocation


@dataclass(frozen=True)
class NumberExpression:
    location: SourceLocation
    value: int


@dataclass(frozen=True)
class IdentifierExpression:
    """
    Use of a name in an expression or as an assignment target.

    The name is not resolved during parsing; `scope` records where it
    appeared so SymbolTable.lookup_in() can resolve it afterwards.
    """
    location: SourceLocation
    name: str
    scope: int


@dataclass(frozen=True)
class ReadExpression:
    """The value produced by a read statement."""
    location: SourceLocation


@dataclass(frozen=True)
class UnaryExpression:
    location: SourceLocation
    op: Operator
    operand: "Expression"


@dataclass(frozen=True)
class BinaryExpression:
    location: SourceLocation
    op: Operator
    left: "Expression"
    right: "Expression"


Expression = Union[
    ErrorExpression,
    NumberExpression,
    IdentifierExpression,
    ReadExpression,
    UnaryExpression,
    BinaryExpression,
]


# =============================================================================
# Statements
# =============================================================================

@dataclass(frozen=True)
class ErrorStatement:
    """Placeholder for a statement that failed to parse."""
    location: SourceLocation


@dataclass(frozen=True)
class AssignmentStatement:
    """
    Parallel assignment. `targets` and `values` always have equal length;
    the parser pads the shorter side with ErrorExpression nodes.
    """
    location: SourceLocation
    targets: tuple[Expression, ...]
    values: tuple[Expression, ...]


@dataclass(frozen=True)
class WhileStatement:
    location: SourceLocation
    condition: Expression
    body: "Statement"


@dataclass(frozen=True)
class IfStatement:
    location: SourceLocation
    condition: Expression
    then_branch: "Statement"
    else_branch: "Statement"


@dataclass(frozen=True)
class WriteStatement:
    location: SourceLocation
    value: Expression


@dataclass(frozen=True)
class CallStatement:
    """Call of a procedure by name; `<noid>` when the name was missing."""
    location: SourceLocation
    name: str
    scope: int


@dataclass(frozen=True)
class SkipStatement:
    location: SourceLocation


@dataclass(frozen=True)
class StatementList:
    location: SourceLocation
    statements: tuple["Statement", ...] = ()


@dataclass(frozen=True)
class DoBranch:
    """One guarded branch of a do statement; `exits` marks a trailing exit."""
    location: SourceLocation
    condition: Expression
    body: StatementList
    exits: bool = False


@dataclass(frozen=True)
class DoStatement:
    location: SourceLocation
    branches: tuple[DoBranch, ...]


Statement = Union[
    ErrorStatement,
    AssignmentStatement,
    WhileStatement,
    IfStatement,
    WriteStatement,
    CallStatement,
    SkipStatement,
    StatementList,
    DoStatement,
]


# =============================================================================
# Blocks and Program
# =============================================================================

@dataclass(frozen=True)
class Block:
    """
    Declarations and body of the program or of one procedure.

    Attributes:
        scope: Index of the scope holding the block's declarations
        procedures: Procedures declared directly in this block
        body: The block's compound statement
    """
    location: SourceLocation
    scope: int
    procedures: tuple["ProcedureDeclaration", ...]
    body: Statement


@dataclass(frozen=True)
class ProcedureDeclaration:
    """
    A procedure definition.

    Attributes:
        name: Declared name, or `<undefined>` when it was missing
        entry: Index of the procedure's entry in the SymbolTable
        block: The procedure body
    """
    location: SourceLocation
    name: str
    entry: int
    block: Block


@dataclass(frozen=True)
class Program:
    location: SourceLocation
    block: Block
    symbols: "SymbolTable" = field(repr=False, compare=False)


# =============================================================================
# AST Printer
# =============================================================================

class ASTPrinter:
    """
    Pretty printer for AST debugging.

    Produces an indented, human-readable representation of a tree. When
    a SymbolTable is given, each block also lists the names declared in
    its scope.

    Usage:
        printer = ASTPrinter(program.symbols)
        print(printer.print(program))
    """

    def __init__(self, symbols: Optional["SymbolTable"] = None):
        self.symbols = symbols
        self.output: list[str] = []
        self.indent_level = 0

    def print(self, node) -> str:
        """Print the tree rooted at node and return it as a string."""
        self.output = []
        self.indent_level = 0
        self._node(node)
        return "\n".join(self.output)

    def _emit(self, text: str) -> None:
        indent = "  " * self.indent_level
        self.output.append(f"{indent}{text}")

    def _indent(self) -> None:
        self.indent_level += 1

    def _dedent(self) -> None:
        self.indent_level = max(0, self.indent_level - 1)

    def _nested(self, label: str, node) -> None:
        self._emit(label)
        self._indent()
        self._node(node)
        self._dedent()

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _node(self, node) -> None:
        if isinstance(node, Program):
            self._emit("Program")
            self._indent()
            self._block(node.block)
            self._dedent()
        elif isinstance(node, Block):
            self._block(node)
        elif isinstance(node, ProcedureDeclaration):
            self._emit(f"Procedure {node.name}")
            self._indent()
            self._block(node.block)
            self._dedent()
        else:
            self._statement(node)

    def _block(self, block: Block) -> None:
        self._emit(f"Block (scope {block.scope})")
        self._indent()
        if self.symbols is not None:
            for entry in self.symbols.entries_in(block.scope):
                self._emit(entry.describe())
        for procedure in block.procedures:
            self._node(procedure)
        self._statement(block.body)
        self._dedent()

    def _statement(self, node: Statement) -> None:
        if isinstance(node, ErrorStatement):
            self._emit("<error statement>")
        elif isinstance(node, AssignmentStatement):
            targets = ", ".join(self.expression(t) for t in node.targets)
            values = ", ".join(self.expression(v) for v in node.values)
            self._emit(f"Assign {targets} := {values}")
        elif isinstance(node, WhileStatement):
            self._nested(f"While ({self.expression(node.condition)})", node.body)
        elif isinstance(node, IfStatement):
            self._emit(f"If ({self.expression(node.condition)})")
            self._indent()
            self._nested("Then:", node.then_branch)
            self._nested("Else:", node.else_branch)
            self._dedent()
        elif isinstance(node, WriteStatement):
            self._emit(f"Write {self.expression(node.value)}")
        elif isinstance(node, CallStatement):
            self._emit(f"Call {node.name}")
        elif isinstance(node, SkipStatement):
            self._emit("Skip")
        elif isinstance(node, StatementList):
            self._emit("List")
            self._indent()
            for statement in node.statements:
                self._statement(statement)
            self._dedent()
        elif isinstance(node, DoStatement):
            self._emit("Do")
            self._indent()
            for branch in node.branches:
                suffix = " exit" if branch.exits else ""
                self._nested(f"Branch ({self.expression(branch.condition)}){suffix}",
                             branch.body)
            self._dedent()
        else:
            raise TypeError(f"unknown statement node: {type(node).__name__}")

    def expression(self, expr: Expression) -> str:
        """Convert an expression to its fully parenthesised source form."""
        if isinstance(expr, ErrorExpression):
            return "<error>"
        if isinstance(expr, NumberExpression):
            return str(expr.value)
        if isinstance(expr, IdentifierExpression):
            return expr.name
        if isinstance(expr, ReadExpression):
            return "read"
        if isinstance(expr, UnaryExpression):
            return f"{expr.op}{self.expression(expr.operand)}"
        if isinstance(expr, BinaryExpression):
            left = self.expression(expr.left)
            right = self.expression(expr.right)
            return f"({left} {expr.op} {right})"
        raise TypeError(f"unknown expression node: {type(expr).__name__}")
