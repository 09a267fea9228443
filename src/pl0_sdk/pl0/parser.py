"""
PL/0 Recursive Descent Parser
=============================

This module implements a recursive descent parser for PL/0 with
panic-mode error recovery. It drives a TokenStream, registers
declarations in a SymbolTable as it goes, and builds the tree defined in
pl0_sdk.pl0.ast.

Grammar (EBNF)
--------------
Program        ::= Block EOF
Block          ::= Declaration* CompoundStatement
Declaration    ::= ConstDefList | TypeDefList | VarDeclList | ProcedureDef
ConstDefList   ::= 'const' ConstDef ConstDef*
ConstDef       ::= IDENTIFIER '=' Constant ';'
Constant       ::= NUMBER | IDENTIFIER | '-' Constant
TypeDefList    ::= 'type' TypeDef TypeDef*
TypeDef        ::= IDENTIFIER '=' Type ';'
Type           ::= TypeIdentifier | SubrangeType
TypeIdentifier ::= IDENTIFIER
SubrangeType   ::= '[' Constant '..' Constant ']'
VarDeclList    ::= 'var' VarDecl VarDecl*
VarDecl        ::= IDENTIFIER ':' TypeIdentifier ';'
ProcedureDef   ::= ProcedureHead '=' Block ';'
ProcedureHead  ::= 'procedure' IDENTIFIER '(' ')'
CompoundStatement ::= 'begin' StatementList 'end'
StatementList  ::= Statement (';' Statement)*
Statement      ::= Assignment | WhileStatement | IfStatement
                 | ReadStatement | WriteStatement | CallStatement
                 | CompoundStatement | SkipStatement | DoStatement
Assignment     ::= LValue (',' LValue)* ':=' Condition (',' Condition)*
WhileStatement ::= 'while' Condition 'do' Statement
IfStatement    ::= 'if' Condition 'then' Statement 'else' Statement
DoStatement    ::= 'do' DoBranch ('[]' DoBranch)* 'od'
DoBranch       ::= Condition 'then' StatementList 'exit'?
ReadStatement  ::= 'read' LValue
WriteStatement ::= 'write' Exp
CallStatement  ::= 'call' IDENTIFIER '(' ')'
SkipStatement  ::= 'skip'
Condition      ::= Exp (RelOp Exp)?
RelOp          ::= '=' | '!=' | '<' | '>' | '<=' | '>='
Exp            ::= ('+' | '-')? Term (('+' | '-') Term)*
Term           ::= Factor (('*' | '/') Factor)*
Factor         ::= '(' Condition ')' | NUMBER | LValue
LValue         ::= IDENTIFIER

Rule Shape
----------
Every rule method takes the recovery set of its caller, brackets its
work with begin_rule()/end_rule(), returns a placeholder node when
begin_rule() abandons it, and hands each sub-rule the recovery set
extended with whatever can follow the sub-rule in the production.

Example Usage
-------------
>>> from pl0_sdk.pl0.diagnostics import DiagnosticCollector
>>> from pl0_sdk.pl0.lexer import PL0Lexer
>>> from pl0_sdk.pl0.parser import PL0Parser
>>> from pl0_sdk.pl0.token_stream import TokenStream
>>> errors = DiagnosticCollector()
>>> lexer = PL0Lexer("begin skip end", "test.pl0", errors)
>>> program = PL0Parser(TokenStream(lexer.tokenize(), errors)).parse()
>>> errors.had_errors()
False
"""

import logging
from typing import NoReturn, Optional

from pl0_sdk.errors import SourceLocation
from pl0_sdk.pl0.ast import (
    AssignmentStatement,
    BinaryExpression,
    Block,
    CallStatement,
    ConstError,
    ConstExpression,
    ConstIdentifier,
    ConstNegate,
    ConstNumber,
    DoBranch,
    DoStatement,
    ErrorExpression,
    ErrorStatement,
    Expression,
    IdentifierExpression,
    IfStatement,
    NumberExpression,
    Operator,
    ProcedureDeclaration,
    Program,
    ReadExpression,
    SkipStatement,
    Statement,
    StatementList,
    UnaryExpression,
    WhileStatement,
    WriteStatement,
)
from pl0_sdk.pl0.lexer import TokenKind
from pl0_sdk.pl0.symbols import ProcedureEntry, SymbolTable
from pl0_sdk.pl0.token_stream import TokenSet, TokenStream
from pl0_sdk.pl0.types import ERROR_TYPE, ReferenceType, SubrangeType, Type, TypeReference

logger = logging.getLogger(__name__)


# =============================================================================
# Start Sets
# =============================================================================

LVALUE_START_SET = TokenSet(TokenKind.IDENTIFIER)

STATEMENT_START_SET = LVALUE_START_SET.union(
    TokenKind.KW_WHILE, TokenKind.KW_IF, TokenKind.KW_READ, TokenKind.KW_WRITE,
    TokenKind.KW_CALL, TokenKind.KW_BEGIN, TokenKind.KW_SKIP, TokenKind.KW_DO,
)

DECLARATION_START_SET = TokenSet(
    TokenKind.KW_CONST, TokenKind.KW_TYPE, TokenKind.KW_VAR, TokenKind.KW_PROCEDURE,
)

BLOCK_START_SET = DECLARATION_START_SET.union(TokenKind.KW_BEGIN)

CONSTANT_START_SET = TokenSet(TokenKind.IDENTIFIER, TokenKind.NUMBER, TokenKind.MINUS)

TYPE_START_SET = TokenSet(TokenKind.IDENTIFIER, TokenKind.LBRACKET)

FACTOR_START_SET = LVALUE_START_SET.union(TokenKind.NUMBER, TokenKind.LPAREN)

TERM_START_SET = FACTOR_START_SET

EXP_START_SET = TERM_START_SET.union(TokenKind.PLUS, TokenKind.MINUS)

CONDITION_START_SET = EXP_START_SET


# =============================================================================
# Operator Sets
# =============================================================================

REL_OPERATORS = {
    TokenKind.EQUALS: Operator.EQUALS,
    TokenKind.NEQUALS: Operator.NEQUALS,
    TokenKind.LESS: Operator.LESS,
    TokenKind.GREATER: Operator.GREATER,
    TokenKind.LEQUALS: Operator.LEQUALS,
    TokenKind.GEQUALS: Operator.GEQUALS,
}

EXP_OPERATORS = {
    TokenKind.PLUS: Operator.ADD,
    TokenKind.MINUS: Operator.SUB,
}

TERM_OPERATORS = {
    TokenKind.TIMES: Operator.MUL,
    TokenKind.DIVIDE: Operator.DIV,
}

REL_OPS_SET = TokenSet(*REL_OPERATORS)
EXP_OPS_SET = TokenSet(*EXP_OPERATORS)
TERM_OPS_SET = TokenSet(*TERM_OPERATORS)


# Deepest nesting of parentheses or negated constants parsed recursively
MAX_NESTING = 100

# Names given to procedure entries and calls when the identifier is missing
UNDEFINED_PROCEDURE = "<undefined>"
MISSING_CALL_NAME = "<noid>"


class PL0Parser:
    """
    Recursive descent parser for PL/0.

    Reports syntax errors, duplicate declarations and assignment arity
    mismatches through the token stream's DiagnosticCollector and keeps
    parsing, so one run finds as many defects as possible. The tree it
    returns is always complete; failed constructs are represented by
    Error* placeholder nodes.

    Attributes:
        tokens: Token stream being parsed
        errors: Collector shared with the token stream
        symbols: Symbol table filled in while parsing
    """

    def __init__(self, tokens: TokenStream):
        self.tokens = tokens
        self.errors = tokens.errors
        self.symbols = SymbolTable(self.errors)
        self._nesting = 0

    def parse(self) -> Program:
        """
        Parse a complete program.

        Returns:
            The Program node; its `symbols` is this parser's SymbolTable

        Raises:
            FatalError: If an internal consistency check fails, or the
                        program nests statements or procedures deeper
                        than the interpreter's recursion limit allows
        """
        logger.debug("Parsing program")
        try:
            program = self._parse_program(TokenSet(TokenKind.EOF))
        except RecursionError:
            self.errors.fatal("program nested too deeply", self.tokens.location)
        logger.debug(f"Parse finished with {self.errors.error_count} error(s)")
        return program

    # =========================================================================
    # Program Structure
    # =========================================================================

    def _parse_program(self, recover: TokenSet) -> Program:
        """Program -> Block EOF"""
        location = self.tokens.location
        scope = self.symbols.enter_scope(self.symbols.main_procedure)
        if self.tokens.begin_rule("Program", BLOCK_START_SET, recover):
            block = self._parse_block(scope, recover)
            # Nothing follows EOF, so there is no match() for it
            self.tokens.end_rule("Program", recover)
        else:
            block = Block(location, scope, (), ErrorStatement(location))
        self.symbols.leave_scope()
        return Program(block.location, block, self.symbols)

    def _parse_block(self, scope: int, recover: TokenSet) -> Block:
        """Block -> { Declaration } CompoundStatement"""
        location = self.tokens.location
        if not self.tokens.begin_rule("Block", BLOCK_START_SET, recover):
            return Block(location, scope, (), ErrorStatement(location))

        procedures = []
        while self.tokens.is_in(DECLARATION_START_SET):
            procedure = self._parse_declaration(recover.union(BLOCK_START_SET))
            if procedure is not None:
                procedures.append(procedure)

        body = self._parse_compound_statement(recover)
        self.tokens.end_rule("Block", recover)
        return Block(body.location, scope, tuple(procedures), body)

    def _parse_declaration(self, recover: TokenSet) -> Optional[ProcedureDeclaration]:
        """
        Declaration -> ConstDefList | TypeDefList | VarDeclList | ProcedureDef

        Returns the ProcedureDeclaration for a procedure, None otherwise.
        """
        self.tokens.begin_rule("Declaration", DECLARATION_START_SET)
        procedure = None
        if self.tokens.is_match(TokenKind.KW_CONST):
            self._parse_const_def_list(recover)
        elif self.tokens.is_match(TokenKind.KW_TYPE):
            self._parse_type_def_list(recover)
        elif self.tokens.is_match(TokenKind.KW_VAR):
            self._parse_var_decl_list(recover)
        elif self.tokens.is_match(TokenKind.KW_PROCEDURE):
            procedure = self._parse_procedure_def(recover)
        else:
            self._unreachable("Declaration")
        self.tokens.end_rule("Declaration", recover)
        return procedure

    # =========================================================================
    # Constant Definitions
    # =========================================================================

    def _parse_const_def_list(self, recover: TokenSet) -> None:
        """ConstDefList -> 'const' ConstDef { ConstDef }"""
        self.tokens.begin_rule("Constant Definition List", TokenKind.KW_CONST)
        self.tokens.match(TokenKind.KW_CONST)
        self._parse_const_def(recover.union(TokenKind.IDENTIFIER))
        while self.tokens.is_match(TokenKind.IDENTIFIER):
            self._parse_const_def(recover.union(TokenKind.IDENTIFIER))
        self.tokens.end_rule("Constant Definition List", recover)

    def _parse_const_def(self, recover: TokenSet) -> None:
        """ConstDef -> IDENTIFIER '=' Constant ';'"""
        if not self.tokens.begin_rule("Constant Definition", TokenKind.IDENTIFIER, recover):
            return
        name = self.tokens.name
        location = self.tokens.location
        self.tokens.match(TokenKind.IDENTIFIER)
        self.tokens.match(TokenKind.EQUALS, CONSTANT_START_SET)
        tree = self._parse_constant(recover.union(TokenKind.SEMICOLON))
        if self.symbols.declare_constant(name, location, tree) is None:
            self._already_declared("Constant", name, location)
        self.tokens.match(TokenKind.SEMICOLON, recover)
        self.tokens.end_rule("Constant Definition", recover)

    def _parse_constant(self, recover: TokenSet) -> ConstExpression:
        """Constant -> NUMBER | IDENTIFIER | '-' Constant"""
        location = self.tokens.location
        scope = self.symbols.current_scope
        if not self.tokens.begin_rule("Constant", CONSTANT_START_SET, recover):
            return ConstError(location, scope)

        if self.tokens.is_match(TokenKind.NUMBER):
            tree = ConstNumber(location, scope, self.tokens.int_value)
            self.tokens.match(TokenKind.NUMBER)
        elif self.tokens.is_match(TokenKind.IDENTIFIER):
            tree = ConstIdentifier(location, scope, self.tokens.name)
            self.tokens.match(TokenKind.IDENTIFIER)
        elif self.tokens.is_match(TokenKind.MINUS):
            self.tokens.match(TokenKind.MINUS)
            if self._nesting >= MAX_NESTING:
                self._too_deep(location)
                self.tokens.skip_to(recover)
                tree = ConstError(location, scope)
            else:
                self._nesting += 1
                tree = ConstNegate(location, scope, self._parse_constant(recover))
                self._nesting -= 1
        else:
            self._unreachable("Constant")

        self.tokens.end_rule("Constant", recover)
        return tree

    # =========================================================================
    # Type Definitions
    # =========================================================================

    def _parse_type_def_list(self, recover: TokenSet) -> None:
        """TypeDefList -> 'type' TypeDef { TypeDef }"""
        self.tokens.begin_rule("Type Definition List", TokenKind.KW_TYPE)
        self.tokens.match(TokenKind.KW_TYPE)
        self._parse_type_def(recover.union(TokenKind.IDENTIFIER))
        while self.tokens.is_match(TokenKind.IDENTIFIER):
            self._parse_type_def(recover.union(TokenKind.IDENTIFIER))
        self.tokens.end_rule("Type Definition List", recover)

    def _parse_type_def(self, recover: TokenSet) -> None:
        """TypeDef -> IDENTIFIER '=' Type ';'"""
        if not self.tokens.begin_rule("Type Definition", TokenKind.IDENTIFIER, recover):
            return
        name = self.tokens.name
        location = self.tokens.location
        self.tokens.match(TokenKind.IDENTIFIER)
        self.tokens.match(TokenKind.EQUALS, TYPE_START_SET)
        type_ = self._parse_type(recover.union(TokenKind.SEMICOLON))
        if self.symbols.declare_type(name, location, type_) is None:
            self._already_declared("Type", name, location)
        self.tokens.match(TokenKind.SEMICOLON, recover)
        self.tokens.end_rule("Type Definition", recover)

    def _parse_type(self, recover: TokenSet) -> Type:
        """Type -> TypeIdentifier | SubrangeType"""
        if not self.tokens.begin_rule("Type", TYPE_START_SET, recover):
            return ERROR_TYPE

        if self.tokens.is_match(TokenKind.IDENTIFIER):
            type_ = self._parse_type_identifier(recover)
        elif self.tokens.is_match(TokenKind.LBRACKET):
            type_ = self._parse_subrange_type(recover)
        else:
            self._unreachable("Type")

        self.tokens.end_rule("Type", recover)
        return type_

    def _parse_subrange_type(self, recover: TokenSet) -> Type:
        """SubrangeType -> '[' Constant '..' Constant ']'"""
        if not self.tokens.begin_rule("Subrange Type", TokenKind.LBRACKET, recover):
            return ERROR_TYPE
        self.tokens.match(TokenKind.LBRACKET)
        lower = self._parse_constant(recover.union(TokenKind.RANGE))
        self.tokens.match(TokenKind.RANGE, CONSTANT_START_SET)
        upper = self._parse_constant(recover.union(TokenKind.RBRACKET))
        self.tokens.match(TokenKind.RBRACKET, recover)
        self.tokens.end_rule("Subrange Type", recover)
        return SubrangeType(lower, upper)

    def _parse_type_identifier(self, recover: TokenSet) -> Type:
        """TypeIdentifier -> IDENTIFIER"""
        if not self.tokens.begin_rule("Type Identifier", TokenKind.IDENTIFIER, recover):
            return ERROR_TYPE
        type_ = TypeReference(self.tokens.name, self.symbols.current_scope,
                              self.tokens.location)
        self.tokens.match(TokenKind.IDENTIFIER)
        self.tokens.end_rule("Type Identifier", recover)
        return type_

    # =========================================================================
    # Variable Declarations
    # =========================================================================

    def _parse_var_decl_list(self, recover: TokenSet) -> None:
        """VarDeclList -> 'var' VarDecl { VarDecl }"""
        self.tokens.begin_rule("Variable Declaration List", TokenKind.KW_VAR)
        self.tokens.match(TokenKind.KW_VAR)
        self._parse_var_decl(recover.union(TokenKind.IDENTIFIER))
        while self.tokens.is_match(TokenKind.IDENTIFIER):
            self._parse_var_decl(recover.union(TokenKind.IDENTIFIER))
        self.tokens.end_rule("Variable Declaration List", recover)

    def _parse_var_decl(self, recover: TokenSet) -> None:
        """VarDecl -> IDENTIFIER ':' TypeIdentifier ';'"""
        if not self.tokens.begin_rule("Variable Declaration", TokenKind.IDENTIFIER, recover):
            return
        name = self.tokens.name
        location = self.tokens.location
        self.tokens.match(TokenKind.IDENTIFIER)
        self.tokens.match(TokenKind.COLON, TYPE_START_SET)
        type_ = self._parse_type_identifier(recover.union(TokenKind.SEMICOLON))
        if self.symbols.declare_variable(name, location, ReferenceType(type_)) is None:
            self._already_declared("Variable", name, location)
        self.tokens.match(TokenKind.SEMICOLON, recover)
        self.tokens.end_rule("Variable Declaration", recover)

    # =========================================================================
    # Procedure Definitions
    # =========================================================================

    def _parse_procedure_def(self, recover: TokenSet) -> ProcedureDeclaration:
        """ProcedureDef -> ProcedureHead '=' Block ';'"""
        self.tokens.begin_rule("Procedure Definition", TokenKind.KW_PROCEDURE)
        location = self.tokens.location
        # A forgotten '=' is common, so the head may also stop at a Block start
        entry = self._parse_procedure_head(
            recover.union(TokenKind.EQUALS, BLOCK_START_SET))
        scope = self.symbols.enter_scope(entry)
        self.tokens.match(TokenKind.EQUALS, BLOCK_START_SET)
        block = self._parse_block(scope, recover.union(TokenKind.SEMICOLON))
        self.symbols.leave_scope()
        self.tokens.match(TokenKind.SEMICOLON, recover)
        self.tokens.end_rule("Procedure Definition", recover)
        return ProcedureDeclaration(location, entry.name, entry.index, block)

    def _parse_procedure_head(self, recover: TokenSet) -> ProcedureEntry:
        """
        ProcedureHead -> 'procedure' IDENTIFIER '(' ')'

        A duplicate or missing name still yields an entry, detached from
        the scope, so that the body can be parsed in a scope of its own.
        """
        self.tokens.begin_rule("Procedure Header", TokenKind.KW_PROCEDURE)
        self.tokens.match(TokenKind.KW_PROCEDURE)

        location = self.tokens.location
        if self.tokens.is_match(TokenKind.IDENTIFIER):
            name = self.tokens.name
            entry = self.symbols.declare_procedure(name, location)
            if entry is None:
                self._already_declared("Procedure", name, location)
                entry = self.symbols.new_detached_procedure(name, location)
        else:
            entry = self.symbols.new_detached_procedure(UNDEFINED_PROCEDURE, location)

        self.tokens.match(TokenKind.IDENTIFIER, TokenKind.LPAREN)
        self.tokens.match(TokenKind.LPAREN, TokenKind.RPAREN)
        self.tokens.match(TokenKind.RPAREN, recover)
        self.tokens.end_rule("Procedure Header", recover)
        return entry

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_compound_statement(self, recover: TokenSet) -> Statement:
        """CompoundStatement -> 'begin' StatementList 'end'"""
        location = self.tokens.location
        if not self.tokens.begin_rule("Compound Statement", TokenKind.KW_BEGIN, recover):
            return ErrorStatement(location)
        self.tokens.match(TokenKind.KW_BEGIN)
        result = self._parse_statement_list(recover.union(TokenKind.KW_END))
        self.tokens.match(TokenKind.KW_END, recover)
        self.tokens.end_rule("Compound Statement", recover)
        return result

    def _parse_statement_list(self, recover: TokenSet) -> StatementList:
        """StatementList -> Statement { ';' Statement }"""
        location = self.tokens.location
        if not self.tokens.begin_rule("Statement List", STATEMENT_START_SET, recover):
            return StatementList(location)

        statements = [self._parse_statement(recover.union(TokenKind.SEMICOLON))]
        while self.tokens.is_match(TokenKind.SEMICOLON):
            self.tokens.match(TokenKind.SEMICOLON)
            statements.append(self._parse_statement(recover.union(TokenKind.SEMICOLON)))

        self.tokens.end_rule("Statement List", recover)
        return StatementList(location, tuple(statements))

    def _parse_statement(self, recover: TokenSet) -> Statement:
        """
        Statement -> Assignment | WhileStatement | IfStatement
                   | ReadStatement | WriteStatement | CallStatement
                   | CompoundStatement | SkipStatement | DoStatement
        """
        location = self.tokens.location
        if not self.tokens.begin_rule("Statement", STATEMENT_START_SET, recover):
            return ErrorStatement(location)

        kind = self.tokens.kind
        if kind == TokenKind.IDENTIFIER:
            result = self._parse_assignment(recover)
        elif kind == TokenKind.KW_WHILE:
            result = self._parse_while_statement(recover)
        elif kind == TokenKind.KW_IF:
            result = self._parse_if_statement(recover)
        elif kind == TokenKind.KW_READ:
            result = self._parse_read_statement(recover)
        elif kind == TokenKind.KW_WRITE:
            result = self._parse_write_statement(recover)
        elif kind == TokenKind.KW_CALL:
            result = self._parse_call_statement(recover)
        elif kind == TokenKind.KW_BEGIN:
            result = self._parse_compound_statement(recover)
        elif kind == TokenKind.KW_SKIP:
            result = self._parse_skip_statement(recover)
        elif kind == TokenKind.KW_DO:
            result = self._parse_do_statement(recover)
        else:
            self._unreachable("Statement")

        self.tokens.end_rule("Statement", recover)
        return result

    def _parse_assignment(self, recover: TokenSet) -> AssignmentStatement:
        """
        Assignment -> LValue { ',' LValue } ':=' Condition { ',' Condition }

        Unequal numbers of targets and values are reported once and the
        shorter side is padded with ErrorExpression nodes.
        """
        location = self.tokens.location
        if not self.tokens.begin_rule("Assignment", LVALUE_START_SET, recover):
            return AssignmentStatement(
                location, (ErrorExpression(location),), (ErrorExpression(location),))

        # '=' in place of ':=' is a common mistake
        lvalue_recover = recover.union(TokenKind.ASSIGN, TokenKind.EQUALS, TokenKind.COMMA)
        targets = [self._parse_lvalue(lvalue_recover)]
        location = self.tokens.location
        while self.tokens.is_match(TokenKind.COMMA):
            self.tokens.match(TokenKind.COMMA, LVALUE_START_SET)
            targets.append(self._parse_lvalue(lvalue_recover))
            location = self.tokens.location

        self.tokens.match(TokenKind.ASSIGN, CONDITION_START_SET)
        values = [self._parse_condition(recover.union(TokenKind.COMMA))]
        while self.tokens.is_match(TokenKind.COMMA):
            self.tokens.match(TokenKind.COMMA, CONDITION_START_SET)
            values.append(self._parse_condition(recover.union(TokenKind.COMMA)))

        if len(targets) != len(values):
            self.errors.error(
                "number of variables doesn't match number of expressions in assignment",
                location,
            )
            filler = ErrorExpression(self.tokens.location)
            while len(values) < len(targets):
                values.append(filler)
            while len(targets) < len(values):
                targets.append(filler)

        self.tokens.end_rule("Assignment", recover)
        return AssignmentStatement(location, tuple(targets), tuple(values))

    def _parse_while_statement(self, recover: TokenSet) -> Statement:
        """WhileStatement -> 'while' Condition 'do' Statement"""
        self.tokens.begin_rule("While Statement", TokenKind.KW_WHILE)
        location = self.tokens.location
        self.tokens.match(TokenKind.KW_WHILE)
        condition = self._parse_condition(recover.union(TokenKind.KW_DO))
        self.tokens.match(TokenKind.KW_DO, STATEMENT_START_SET)
        body = self._parse_statement(recover)
        self.tokens.end_rule("While Statement", recover)
        return WhileStatement(location, condition, body)

    def _parse_if_statement(self, recover: TokenSet) -> Statement:
        """IfStatement -> 'if' Condition 'then' Statement 'else' Statement"""
        self.tokens.begin_rule("If Statement", TokenKind.KW_IF)
        location = self.tokens.location
        self.tokens.match(TokenKind.KW_IF)
        condition = self._parse_condition(recover.union(TokenKind.KW_THEN))
        self.tokens.match(TokenKind.KW_THEN, STATEMENT_START_SET)
        then_branch = self._parse_statement(recover.union(TokenKind.KW_ELSE))
        self.tokens.match(TokenKind.KW_ELSE, STATEMENT_START_SET)
        else_branch = self._parse_statement(recover)
        self.tokens.end_rule("If Statement", recover)
        return IfStatement(location, condition, then_branch, else_branch)

    def _parse_do_statement(self, recover: TokenSet) -> Statement:
        """DoStatement -> 'do' DoBranch { '[]' DoBranch } 'od'"""
        self.tokens.begin_rule("Do Statement", TokenKind.KW_DO)
        location = self.tokens.location
        self.tokens.match(TokenKind.KW_DO)
        branch_recover = recover.union(TokenKind.SEPARATOR, TokenKind.KW_OD)
        branches = [self._parse_do_branch(branch_recover)]
        while self.tokens.is_match(TokenKind.SEPARATOR):
            self.tokens.match(TokenKind.SEPARATOR)
            branches.append(self._parse_do_branch(branch_recover))
        self.tokens.match(TokenKind.KW_OD, recover)
        self.tokens.end_rule("Do Statement", recover)
        return DoStatement(location, tuple(branches))

    def _parse_do_branch(self, recover: TokenSet) -> DoBranch:
        """DoBranch -> Condition 'then' StatementList [ 'exit' ]"""
        location = self.tokens.location
        if not self.tokens.begin_rule("Do Branch", CONDITION_START_SET, recover):
            return DoBranch(location, ErrorExpression(location), StatementList(location))
        condition = self._parse_condition(recover.union(TokenKind.KW_THEN))
        self.tokens.match(TokenKind.KW_THEN, STATEMENT_START_SET)
        body = self._parse_statement_list(recover.union(TokenKind.KW_EXIT))
        exits = False
        if self.tokens.is_match(TokenKind.KW_EXIT):
            self.tokens.match(TokenKind.KW_EXIT)
            exits = True
        self.tokens.end_rule("Do Branch", recover)
        return DoBranch(location, condition, body, exits)

    def _parse_read_statement(self, recover: TokenSet) -> Statement:
        """
        ReadStatement -> 'read' LValue

        Represented as an assignment of a ReadExpression to the target.
        """
        self.tokens.begin_rule("Read Statement", TokenKind.KW_READ)
        location = self.tokens.location
        self.tokens.match(TokenKind.KW_READ)
        target = self._parse_lvalue(recover)
        self.tokens.end_rule("Read Statement", recover)
        return AssignmentStatement(location, (target,), (ReadExpression(location),))

    def _parse_write_statement(self, recover: TokenSet) -> Statement:
        """WriteStatement -> 'write' Exp"""
        self.tokens.begin_rule("Write Statement", TokenKind.KW_WRITE)
        location = self.tokens.location
        self.tokens.match(TokenKind.KW_WRITE)
        value = self._parse_exp(recover)
        self.tokens.end_rule("Write Statement", recover)
        return WriteStatement(location, value)

    def _parse_call_statement(self, recover: TokenSet) -> Statement:
        """CallStatement -> 'call' IDENTIFIER '(' ')'"""
        self.tokens.begin_rule("Call Statement", TokenKind.KW_CALL)
        location = self.tokens.location
        self.tokens.match(TokenKind.KW_CALL)
        if self.tokens.is_match(TokenKind.IDENTIFIER):
            name = self.tokens.name
        else:
            name = MISSING_CALL_NAME
        self.tokens.match(TokenKind.IDENTIFIER, TokenKind.LPAREN)
        self.tokens.match(TokenKind.LPAREN, TokenKind.RPAREN)
        self.tokens.match(TokenKind.RPAREN, recover)
        self.tokens.end_rule("Call Statement", recover)
        return CallStatement(location, name, self.symbols.current_scope)

    def _parse_skip_statement(self, recover: TokenSet) -> Statement:
        """SkipStatement -> 'skip'"""
        self.tokens.begin_rule("Skip Statement", TokenKind.KW_SKIP)
        location = self.tokens.location
        self.tokens.match(TokenKind.KW_SKIP)
        self.tokens.end_rule("Skip Statement", recover)
        return SkipStatement(location)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_condition(self, recover: TokenSet) -> Expression:
        """Condition -> Exp [ RelOp Exp ]"""
        location = self.tokens.location
        if not self.tokens.begin_rule("Condition", CONDITION_START_SET, recover):
            return ErrorExpression(location)

        condition = self._parse_exp(recover.union(REL_OPS_SET))
        if self.tokens.is_in(REL_OPS_SET):
            location = self.tokens.location
            op = self._parse_rel_op(recover.union(EXP_START_SET))
            right = self._parse_exp(recover)
            condition = BinaryExpression(location, op, condition, right)

        self.tokens.end_rule("Condition", recover)
        return condition

    def _parse_rel_op(self, recover: TokenSet) -> Operator:
        """RelOp -> '=' | '!=' | '<' | '>' | '<=' | '>='"""
        self.tokens.begin_rule("RelOp", REL_OPS_SET)
        op = REL_OPERATORS[self.tokens.kind]
        self.tokens.match(self.tokens.kind)
        self.tokens.end_rule("RelOp", recover)
        return op

    def _parse_exp(self, recover: TokenSet) -> Expression:
        """Exp -> [ '+' | '-' ] Term { ( '+' | '-' ) Term }"""
        location = self.tokens.location
        if not self.tokens.begin_rule("Expression", EXP_START_SET, recover):
            return ErrorExpression(location)

        negate = self.tokens.is_match(TokenKind.MINUS)
        if self.tokens.is_in(EXP_OPS_SET):
            self.tokens.match(self.tokens.kind)
        exp = self._parse_term(recover.union(EXP_OPS_SET))
        if negate:
            exp = UnaryExpression(location, Operator.NEG, exp)

        while self.tokens.is_in(EXP_OPS_SET):
            location = self.tokens.location
            op = EXP_OPERATORS[self.tokens.kind]
            self.tokens.match(self.tokens.kind)
            right = self._parse_term(recover.union(EXP_OPS_SET))
            exp = BinaryExpression(location, op, exp, right)

        self.tokens.end_rule("Expression", recover)
        return exp

    def _parse_term(self, recover: TokenSet) -> Expression:
        """Term -> Factor { ( '*' | '/' ) Factor }"""
        location = self.tokens.location
        if not self.tokens.begin_rule("Term", TERM_START_SET, recover):
            return ErrorExpression(location)

        term = self._parse_factor(recover.union(TERM_OPS_SET))
        while self.tokens.is_in(TERM_OPS_SET):
            location = self.tokens.location
            op = TERM_OPERATORS[self.tokens.kind]
            self.tokens.match(self.tokens.kind)
            right = self._parse_factor(recover.union(TERM_OPS_SET))
            term = BinaryExpression(location, op, term, right)

        self.tokens.end_rule("Term", recover)
        return term

    def _parse_factor(self, recover: TokenSet) -> Expression:
        """Factor -> '(' Condition ')' | NUMBER | LValue"""
        location = self.tokens.location
        if not self.tokens.begin_rule("Factor", FACTOR_START_SET, recover):
            return ErrorExpression(location)

        if self.tokens.is_match(TokenKind.IDENTIFIER):
            result = self._parse_lvalue(recover)
        elif self.tokens.is_match(TokenKind.NUMBER):
            result = NumberExpression(location, self.tokens.int_value)
            self.tokens.match(TokenKind.NUMBER)
        elif self.tokens.is_match(TokenKind.LPAREN):
            self.tokens.match(TokenKind.LPAREN)
            if self._nesting >= MAX_NESTING:
                self._too_deep(location)
                self._skip_parenthesised()
                result = ErrorExpression(location)
            else:
                self._nesting += 1
                result = self._parse_condition(recover.union(TokenKind.RPAREN))
                self._nesting -= 1
                self.tokens.match(TokenKind.RPAREN, recover)
        else:
            self._unreachable("Factor")

        self.tokens.end_rule("Factor", recover)
        return result

    def _parse_lvalue(self, recover: TokenSet) -> Expression:
        """LValue -> IDENTIFIER"""
        location = self.tokens.location
        if not self.tokens.begin_rule("LValue", TokenKind.IDENTIFIER, recover):
            return ErrorExpression(location)
        result = IdentifierExpression(location, self.tokens.name,
                                      self.symbols.current_scope)
        self.tokens.match(TokenKind.IDENTIFIER)
        self.tokens.end_rule("LValue", recover)
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    def _already_declared(self, kind: str, name: str, location: SourceLocation) -> None:
        self.errors.error(f"{kind} identifier {name} already declared in this scope",
                          location)

    def _too_deep(self, location: SourceLocation) -> None:
        self.errors.error("expression nested too deeply", location)

    def _skip_parenthesised(self) -> None:
        """Discard tokens through the ')' closing an already matched '('."""
        depth = 1
        while depth and not self.tokens.is_match(TokenKind.EOF):
            if self.tokens.is_match(TokenKind.LPAREN):
                depth += 1
            elif self.tokens.is_match(TokenKind.RPAREN):
                depth -= 1
            self.tokens.match(self.tokens.kind)

    def _unreachable(self, rule: str) -> NoReturn:
        self.errors.fatal(f"unreachable branch in {rule}", self.tokens.location)
