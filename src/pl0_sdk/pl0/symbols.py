"""
PL/0 Symbol Table
=================

Nested lexical scopes built while the parser runs.

Scopes and entries live in two arenas (lists) owned by the SymbolTable,
and every cross-reference between them is an index into those lists:

- Scope.parent is the index of the enclosing scope
- Scope.owner is the index of the procedure entry the scope belongs to
- Entry.scope is the index of the scope the entry was declared in
- ProcedureEntry.local_scope is the index of the procedure's own scope

Scope 0 is the predefined scope. It holds the builtin types `integer`
and `boolean`, the constants `false` and `true`, and the synthetic
`<main>` procedure whose local scope is the program's outermost scope.

The table never reports errors itself. Declaring a name that already
exists in the current scope returns None and the caller decides what
to say about it. The only failure it signals is an internal one:
leaving the predefined scope, which is fatal.

Example Usage
-------------
>>> table = SymbolTable(collector)
>>> table.enter_scope(table.main_procedure)
1
>>> table.declare_variable("x", loc, ReferenceType(INTEGER_TYPE))
VariableEntry(name='x', ...)
>>> table.lookup("integer").kind
'type'
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from pl0_sdk.errors import NO_LOCATION, SourceLocation
from pl0_sdk.pl0.ast import (
    ConstError,
    ConstExpression,
    ConstIdentifier,
    ConstNegate,
    ConstNumber,
)
from pl0_sdk.pl0.diagnostics import DiagnosticCollector
from pl0_sdk.pl0.types import (
    BOOLEAN_TYPE,
    INTEGER_TYPE,
    ReferenceType,
    Type,
)

logger = logging.getLogger(__name__)

# Index of the predefined scope in SymbolTable.scopes
PREDEFINED_SCOPE = 0

MAIN_PROCEDURE_NAME = "<main>"


# =============================================================================
# Entries
# =============================================================================

@dataclass
class Entry:
    """
    A declared name.

    Attributes:
        name: The declared identifier
        location: Where it was declared
        scope: Index of the scope it was declared in
        index: Its own index in SymbolTable.entries
    """
    name: str
    location: SourceLocation
    scope: int
    index: int

    kind = "entry"

    def describe(self) -> str:
        return f"{self.kind} {self.name}"


@dataclass
class ConstantEntry(Entry):
    """Named constant; `value` is folded when the constant is declared."""
    tree: ConstExpression
    value: Optional[int]

    kind = "constant"

    def describe(self) -> str:
        shown = "?" if self.value is None else self.value
        return f"constant {self.name} = {shown}"


@dataclass
class TypeEntry(Entry):
    type: Type

    kind = "type"

    def describe(self) -> str:
        return f"type {self.name} = {self.type}"


@dataclass
class VariableEntry(Entry):
    type: ReferenceType

    kind = "variable"

    def describe(self) -> str:
        return f"variable {self.name}: {self.type.base}"


@dataclass
class ProcedureEntry(Entry):
    """Procedure; `local_scope` is set when its body's scope is entered."""
    local_scope: Optional[int] = None

    kind = "procedure"


# =============================================================================
# Scopes
# =============================================================================

@dataclass
class Scope:
    """
    One lexical scope.

    Attributes:
        index: Its own index in SymbolTable.scopes
        parent: Index of the enclosing scope, None for the predefined scope
        owner: Index of the procedure entry owning the scope, if any
        level: Nesting depth, 0 for the predefined scope
        names: Declared names mapped to entry indices
    """
    index: int
    parent: Optional[int]
    owner: Optional[int]
    level: int
    names: dict[str, int] = field(default_factory=dict)


# =============================================================================
# Symbol Table
# =============================================================================

class SymbolTable:
    """
    Arena of scopes and entries plus the stack of currently open scopes.

    Attributes:
        errors: Collector used for fatal internal errors
        scopes: Every scope created, indexed by Scope.index
        entries: Every entry created, indexed by Entry.index
    """

    def __init__(self, errors: DiagnosticCollector):
        self.errors = errors
        self.scopes: list[Scope] = []
        self.entries: list[Entry] = []
        self._stack: list[int] = []

        self._stack.append(self._new_scope(parent=None, owner=None))
        self.declare_type("integer", NO_LOCATION, INTEGER_TYPE)
        self.declare_type("boolean", NO_LOCATION, BOOLEAN_TYPE)
        self.declare_constant(
            "false", NO_LOCATION, ConstNumber(NO_LOCATION, PREDEFINED_SCOPE, 0))
        self.declare_constant(
            "true", NO_LOCATION, ConstNumber(NO_LOCATION, PREDEFINED_SCOPE, 1))
        self._main = self.declare_procedure(MAIN_PROCEDURE_NAME, NO_LOCATION)

    # =========================================================================
    # Scope Stack
    # =========================================================================

    @property
    def current_scope(self) -> int:
        """Index of the innermost open scope."""
        return self._stack[-1]

    @property
    def main_procedure(self) -> ProcedureEntry:
        """The synthetic procedure standing for the whole program."""
        return self._main

    def enter_scope(self, owner: ProcedureEntry) -> int:
        """
        Open a new scope nested in the current one and owned by owner.

        Records the new scope as owner's local scope.

        Returns:
            Index of the new scope
        """
        index = self._new_scope(parent=self.current_scope, owner=owner.index)
        owner.local_scope = index
        self._stack.append(index)
        logger.debug(f"Entered scope {index} of procedure {owner.name}")
        return index

    def leave_scope(self) -> None:
        """Return to the enclosing scope. The predefined scope cannot be left."""
        self.errors.check(
            len(self._stack) > 1, "leave_scope called on the predefined scope")
        index = self._stack.pop()
        logger.debug(f"Left scope {index}")

    def _new_scope(self, parent: Optional[int], owner: Optional[int]) -> int:
        level = 0 if parent is None else self.scopes[parent].level + 1
        scope = Scope(len(self.scopes), parent, owner, level)
        self.scopes.append(scope)
        return scope.index

    # =========================================================================
    # Declarations
    # =========================================================================

    def declare_constant(
        self, name: str, location: SourceLocation, tree: ConstExpression
    ) -> Optional[ConstantEntry]:
        """Declare a constant, folding its value. None if name is taken."""
        if self._is_declared(name):
            return None
        value = self.evaluate(tree)
        return self._add(ConstantEntry(
            name, location, self.current_scope, len(self.entries), tree, value))

    def declare_type(
        self, name: str, location: SourceLocation, type_: Type
    ) -> Optional[TypeEntry]:
        """Declare a type name. None if name is taken."""
        if self._is_declared(name):
            return None
        return self._add(TypeEntry(
            name, location, self.current_scope, len(self.entries), type_))

    def declare_variable(
        self, name: str, location: SourceLocation, type_: ReferenceType
    ) -> Optional[VariableEntry]:
        """Declare a variable. None if name is taken."""
        if self._is_declared(name):
            return None
        return self._add(VariableEntry(
            name, location, self.current_scope, len(self.entries), type_))

    def declare_procedure(
        self, name: str, location: SourceLocation
    ) -> Optional[ProcedureEntry]:
        """Declare a procedure. None if name is taken."""
        if self._is_declared(name):
            return None
        return self._add(ProcedureEntry(
            name, location, self.current_scope, len(self.entries)))

    def new_detached_procedure(
        self, name: str, location: SourceLocation
    ) -> ProcedureEntry:
        """
        Create a procedure entry that belongs to the current scope but is
        not visible to lookup. Used to give the body of a misdeclared
        procedure a scope of its own.
        """
        entry = ProcedureEntry(name, location, self.current_scope, len(self.entries))
        self.entries.append(entry)
        return entry

    def _is_declared(self, name: str) -> bool:
        return name in self.scopes[self.current_scope].names

    def _add(self, entry: Entry) -> Entry:
        self.entries.append(entry)
        self.scopes[entry.scope].names[entry.name] = entry.index
        return entry

    # =========================================================================
    # Lookup
    # =========================================================================

    def lookup(self, name: str) -> Optional[Entry]:
        """Resolve name from the current scope outward."""
        return self.lookup_in(self.current_scope, name)

    def lookup_in(self, scope: int, name: str) -> Optional[Entry]:
        """Resolve name from the given scope outward."""
        index: Optional[int] = scope
        while index is not None:
            current = self.scopes[index]
            if name in current.names:
                return self.entries[current.names[name]]
            index = current.parent
        return None

    def entries_in(self, scope: int) -> list[Entry]:
        """Entries declared in the given scope, in declaration order."""
        return [self.entries[i] for i in self.scopes[scope].names.values()]

    # =========================================================================
    # Constant Folding
    # =========================================================================

    def evaluate(self, tree: ConstExpression) -> Optional[int]:
        """
        Fold a constant expression to its integer value.

        Returns None if the tree is an error node or names something that
        is not a constant with a known value.
        """
        if isinstance(tree, ConstNumber):
            return tree.value
        if isinstance(tree, ConstNegate):
            value = self.evaluate(tree.operand)
            return None if value is None else -value
        if isinstance(tree, ConstIdentifier):
            entry = self.lookup_in(tree.scope, tree.name)
            if isinstance(entry, ConstantEntry):
                return entry.value
            return None
        if isinstance(tree, ConstError):
            return None
        raise TypeError(f"unknown constant node: {type(tree).__name__}")
