# =============================================================================
# test_parser.py - Parser and Tree Printer Tests
# =============================================================================
# Tests for the PL/0 recursive descent parser.
#
# Test coverage includes:
#   - Tree shapes for every statement and expression form
#   - Declarations entered in the symbol table, scopes per procedure
#   - Duplicate declarations and assignment arity errors
#   - Panic-mode recovery: one diagnostic per defect, parsing continues
#   - ASTPrinter output
# =============================================================================

import io

import pytest

from pl0_sdk.pl0.ast import (
    AssignmentStatement,
    ASTPrinter,
    BinaryExpression,
    CallStatement,
    ConstNegate,
    ConstNumber,
    DoStatement,
    ErrorExpression,
    ErrorStatement,
    IdentifierExpression,
    IfStatement,
    NumberExpression,
    Operator,
    ReadExpression,
    SkipStatement,
    StatementList,
    UnaryExpression,
    WhileStatement,
    WriteStatement,
)
from pl0_sdk.pl0.compiler import parse_source
from pl0_sdk.pl0.errors import FatalError
from pl0_sdk.pl0.parser import MAX_NESTING, MISSING_CALL_NAME, UNDEFINED_PROCEDURE
from pl0_sdk.pl0.symbols import ConstantEntry, ProcedureEntry, TypeEntry, VariableEntry
from pl0_sdk.pl0.types import ReferenceType, SubrangeType, TypeReference


# =============================================================================
# Helper Functions
# =============================================================================

def parse(source: str):
    """Parse source and return (program, collector)."""
    return parse_source(source, "<test>")


def parse_clean(source: str):
    """Parse source that must not produce any diagnostic."""
    program, errors = parse(source)
    assert not errors.had_errors(), errors.render()
    return program


def body(program) -> tuple:
    """Statements of the main program's compound statement."""
    assert isinstance(program.block.body, StatementList)
    return program.block.body.statements


def messages(errors) -> list[str]:
    return [d.message for d in errors.diagnostics]


# =============================================================================
# Program Structure
# =============================================================================

class TestProgramStructure:
    """Tests for blocks, declarations and scopes."""

    def test_minimal_program(self):
        """'begin skip end' is the smallest program."""
        program = parse_clean("begin skip end")
        statements = body(program)
        assert len(statements) == 1
        assert isinstance(statements[0], SkipStatement)

    def test_const_var_and_assignment(self):
        """Constants and variables are declared in the program scope."""
        program = parse_clean("const a = 5; var x: integer; begin x := a + 1 end")
        symbols = program.symbols
        scope = program.block.scope
        a = symbols.lookup_in(scope, "a")
        x = symbols.lookup_in(scope, "x")
        assert isinstance(a, ConstantEntry) and a.value == 5
        assert isinstance(x, VariableEntry)
        assert x.type == ReferenceType(TypeReference("integer", scope, x.type.base.location))

        (assign,) = body(program)
        assert isinstance(assign, AssignmentStatement)
        assert assign.targets[0].name == "x"
        value = assign.values[0]
        assert isinstance(value, BinaryExpression)
        assert value.op == Operator.ADD
        assert isinstance(value.left, IdentifierExpression) and value.left.name == "a"
        assert isinstance(value.right, NumberExpression) and value.right.value == 1

    def test_program_scope_belongs_to_main(self):
        """The program block's scope is the local scope of <main>."""
        program = parse_clean("begin skip end")
        assert program.block.scope == program.symbols.main_procedure.local_scope
        assert program.symbols.scopes[program.block.scope].level == 1

    def test_constant_negation_folds(self):
        """A constant defined as the negation of another is folded."""
        program = parse_clean("const a = 5; b = -a; begin skip end")
        b = program.symbols.lookup_in(program.block.scope, "b")
        assert b.value == -5
        assert isinstance(b.tree, ConstNegate)

    def test_predefined_constants_in_definitions(self):
        """true and false may be used as constant values."""
        program = parse_clean("const yes = true; begin skip end")
        assert program.symbols.lookup_in(program.block.scope, "yes").value == 1

    def test_subrange_type(self):
        """A subrange type records its unevaluated bounds."""
        program = parse_clean("type digit = [0..9]; var d: digit; begin skip end")
        symbols = program.symbols
        scope = program.block.scope
        digit = symbols.lookup_in(scope, "digit")
        assert isinstance(digit, TypeEntry)
        assert isinstance(digit.type, SubrangeType)
        assert isinstance(digit.type.lower, ConstNumber) and digit.type.lower.value == 0
        assert isinstance(digit.type.upper, ConstNumber) and digit.type.upper.value == 9
        assert digit.describe() == "type digit = [0..9]"
        assert symbols.lookup_in(scope, "d").describe() == "variable d: digit"

    def test_several_definitions_per_list(self):
        """One const, type or var keyword may introduce several definitions."""
        program = parse_clean(
            "const a = 1; b = 2; type t = integer; u = boolean; "
            "var x: t; y: u; begin skip end")
        names = [e.name for e in program.symbols.entries_in(program.block.scope)]
        assert names == ["a", "b", "t", "u", "x", "y"]

    def test_nested_procedures_get_nested_scopes(self):
        """Each procedure body is parsed in a scope of its own."""
        program = parse_clean(
            "procedure p() =\n"
            "  var y: integer;\n"
            "  procedure q() = begin skip end;\n"
            "  begin call q() end;\n"
            "begin call p() end")
        symbols = program.symbols
        (p,) = program.block.procedures
        (q,) = p.block.procedures
        assert p.name == "p" and q.name == "q"
        assert symbols.scopes[p.block.scope].parent == program.block.scope
        assert symbols.scopes[q.block.scope].parent == p.block.scope
        assert symbols.entries[p.entry].local_scope == p.block.scope
        assert symbols.lookup_in(p.block.scope, "y") is not None
        assert symbols.lookup_in(program.block.scope, "y") is None

    def test_procedure_entries(self):
        """Procedures are entered in the scope that declares them."""
        program = parse_clean("procedure p() = begin skip end; begin call p() end")
        p = program.symbols.lookup_in(program.block.scope, "p")
        assert isinstance(p, ProcedureEntry)
        assert p.scope == program.block.scope

    def test_calls_to_later_procedures_are_accepted(self):
        """Names are not resolved while parsing."""
        program = parse_clean(
            "procedure p() = begin call q() end;\n"
            "procedure q() = begin skip end;\n"
            "begin call p() end")
        call = program.block.procedures[0].block.body.statements[0]
        assert isinstance(call, CallStatement)
        assert call.name == "q"
        assert program.symbols.lookup_in(call.scope, "q") is not None

    def test_identifiers_record_their_scope(self):
        """Identifier uses record the scope in which they appear."""
        program = parse_clean(
            "var x: integer;\n"
            "procedure p() = begin x := 1 end;\n"
            "begin x := 2 end")
        inner = program.block.procedures[0].block
        assert inner.body.statements[0].targets[0].scope == inner.scope
        assert body(program)[0].targets[0].scope == program.block.scope

    def test_comments_are_ignored(self):
        """Comments may appear between any tokens."""
        parse_clean("// header\nbegin // start\n  skip // nothing\nend // done")


# =============================================================================
# Statements
# =============================================================================

class TestStatements:
    """Tests for the tree built for each statement form."""

    def test_while_statement(self):
        """while builds a condition and a body."""
        (loop,) = body(parse_clean("var x: integer; begin while x < 10 do x := x + 1 end"))
        assert isinstance(loop, WhileStatement)
        assert loop.condition.op == Operator.LESS
        assert isinstance(loop.body, AssignmentStatement)

    def test_if_statement(self):
        """if requires both branches."""
        (choice,) = body(parse_clean(
            "var x: integer; begin if x = 10 then write x else skip end"))
        assert isinstance(choice, IfStatement)
        assert choice.condition.op == Operator.EQUALS
        assert isinstance(choice.then_branch, WriteStatement)
        assert isinstance(choice.else_branch, SkipStatement)

    def test_read_statement_is_assignment(self):
        """read x is an assignment of a read expression to x."""
        (read,) = body(parse_clean("var x: integer; begin read x end"))
        assert isinstance(read, AssignmentStatement)
        assert read.targets[0].name == "x"
        assert isinstance(read.values[0], ReadExpression)

    def test_call_statement(self):
        """call records the procedure name."""
        (call,) = body(parse_clean("begin call p() end"))
        assert isinstance(call, CallStatement)
        assert call.name == "p"

    def test_compound_statement_is_statement_list(self):
        """A nested begin/end is a nested statement list."""
        (inner,) = body(parse_clean("begin begin skip; skip end end"))
        assert isinstance(inner, StatementList)
        assert len(inner.statements) == 2

    def test_multiple_assignment(self):
        """Several targets may be assigned at once."""
        (assign,) = body(parse_clean(
            "var x: integer; y: integer; begin x, y := y, x end"))
        assert [t.name for t in assign.targets] == ["x", "y"]
        assert [v.name for v in assign.values] == ["y", "x"]

    def test_do_statement(self):
        """Guarded branches are separated by [] and may exit."""
        (loop,) = body(parse_clean(
            "var x: integer;\n"
            "begin\n"
            "  do x > 0 then x := x - 1\n"
            "  [] x = 0 then skip exit\n"
            "  od\n"
            "end"))
        assert isinstance(loop, DoStatement)
        first, second = loop.branches
        assert first.condition.op == Operator.GREATER
        assert not first.exits
        assert second.condition.op == Operator.EQUALS
        assert second.exits
        assert isinstance(second.body.statements[0], SkipStatement)


# =============================================================================
# Expressions
# =============================================================================

class TestExpressions:
    """Tests for operator precedence and associativity."""

    def expression(self, text: str):
        (assign,) = body(parse_clean(f"var x: integer; begin x := {text} end"))
        return assign.values[0]

    def test_multiplication_binds_tighter(self):
        """* binds tighter than +."""
        assert ASTPrinter().expression(self.expression("1 + 2 * 3")) == "(1 + (2 * 3))"

    def test_left_associative(self):
        """Operators of equal precedence group to the left."""
        assert ASTPrinter().expression(self.expression("8 - 4 - 2")) == "((8 - 4) - 2)"

    def test_parentheses(self):
        """Parentheses override precedence."""
        assert ASTPrinter().expression(self.expression("(1 + 2) * 3")) == "((1 + 2) * 3)"

    def test_unary_minus_applies_to_first_term(self):
        """A leading minus negates the first term only."""
        value = self.expression("-x * 2 + 1")
        assert isinstance(value, BinaryExpression)
        assert isinstance(value.left, UnaryExpression)
        assert value.left.op == Operator.NEG
        assert ASTPrinter().expression(value) == "(-(x * 2) + 1)"

    def test_unary_plus_is_dropped(self):
        """A leading plus leaves the term unchanged."""
        assert isinstance(self.expression("+7"), NumberExpression)

    def test_relational_operators(self):
        """Each relational operator maps to its Operator."""
        for text, op in [("=", Operator.EQUALS), ("!=", Operator.NEQUALS),
                         ("<", Operator.LESS), (">", Operator.GREATER),
                         ("<=", Operator.LEQUALS), (">=", Operator.GEQUALS)]:
            assert self.expression(f"x {text} 1").op == op

    def test_condition_in_parentheses(self):
        """A parenthesised factor may be a comparison."""
        value = self.expression("(x < 1) * 2")
        assert value.left.op == Operator.LESS


# =============================================================================
# Declaration Errors
# =============================================================================

class TestDeclarationErrors:
    """Tests for duplicate declarations and assignment arity."""

    def test_duplicate_variable(self):
        """Redeclaring a variable in one scope is reported once."""
        program, errors = parse("var x: integer; x: integer; begin skip end")
        assert messages(errors) == ["Variable identifier x already declared in this scope"]
        assert errors.diagnostics[0].location.column == 17

    def test_duplicate_across_var_lists(self):
        """Separate var lists share the block's scope; one entry remains."""
        program, errors = parse("var x: integer; var x: integer; begin skip end")
        assert messages(errors) == ["Variable identifier x already declared in this scope"]
        names = [e.name for e in program.symbols.entries_in(program.block.scope)]
        assert names == ["x"]

    def test_duplicate_constant_keeps_first_value(self):
        """The first definition of a duplicated constant is kept."""
        program, errors = parse("const c = 1; c = 2; begin skip end")
        assert messages(errors) == ["Constant identifier c already declared in this scope"]
        assert program.symbols.lookup_in(program.block.scope, "c").value == 1

    def test_duplicate_type(self):
        """Redeclaring a predefined type in the program scope is allowed."""
        _, errors = parse("type integer = boolean; begin skip end")
        assert not errors.had_errors()
        _, errors = parse("type t = integer; t = boolean; begin skip end")
        assert messages(errors) == ["Type identifier t already declared in this scope"]

    def test_duplicate_procedure_body_still_parsed(self):
        """A duplicated procedure's body is parsed in a detached scope."""
        program, errors = parse(
            "procedure p() = begin skip end;\n"
            "procedure p() = begin x := end;\n"
            "begin skip end")
        assert messages(errors) == [
            "Procedure identifier p already declared in this scope",
            "Condition cannot start with end",
        ]
        first, second = program.block.procedures
        assert first.entry != second.entry
        assert program.symbols.lookup_in(program.block.scope, "p").index == first.entry
        assert program.symbols.entries[second.entry].local_scope == second.block.scope

    def test_too_few_values(self):
        """More targets than values: reported once, values padded."""
        program, errors = parse("var x: integer; y: integer; begin x, y := 1 end")
        assert messages(errors) == [
            "number of variables doesn't match number of expressions in assignment"
        ]
        # Reported at the token after the last target
        assert errors.diagnostics[0].location.column == 40
        (assign,) = body(program)
        assert len(assign.targets) == len(assign.values) == 2
        assert isinstance(assign.values[1], ErrorExpression)

    def test_too_many_values(self):
        """More values than targets: reported once, targets padded."""
        program, errors = parse("var x: integer; begin x := 1, 2, 3 end")
        assert errors.error_count == 1
        (assign,) = body(program)
        assert len(assign.targets) == len(assign.values) == 3
        assert isinstance(assign.targets[2], ErrorExpression)


# =============================================================================
# Error Recovery
# =============================================================================

class TestRecovery:
    """Tests for panic-mode recovery."""

    def test_missing_expression(self):
        """A missing right-hand side gives one error and an error node."""
        program, errors = parse("var x: integer; begin x := end")
        assert messages(errors) == ["Condition cannot start with end"]
        location = errors.diagnostics[0].location
        assert (location.line, location.column) == (1, 28)
        (assign,) = body(program)
        assert len(assign.targets) == len(assign.values) == 1
        assert isinstance(assign.values[0], ErrorExpression)

    def test_equals_instead_of_assign(self):
        """'=' in place of ':=' is reported and the value still parsed."""
        program, errors = parse("var x: integer; begin x = 1 end")
        assert messages(errors) == ["expecting :="]
        (assign,) = body(program)
        assert isinstance(assign.values[0], NumberExpression)

    def test_missing_equals_in_procedure(self):
        """A procedure head followed directly by its block is one error."""
        program, errors = parse("procedure p() begin skip end; begin call p() end")
        assert messages(errors) == ["expecting ="]
        assert program.block.procedures[0].name == "p"

    def test_missing_procedure_name(self):
        """A procedure without a name gets a placeholder name."""
        program, errors = parse("procedure () = begin skip end; begin skip end")
        assert messages(errors) == ["expecting identifier"]
        assert program.block.procedures[0].name == UNDEFINED_PROCEDURE

    def test_missing_call_name(self):
        """A call without a name gets a placeholder name."""
        program, errors = parse("begin call () end")
        assert messages(errors) == ["expecting identifier"]
        assert body(program)[0].name == MISSING_CALL_NAME

    def test_empty_source(self):
        """An empty file cannot start a program."""
        program, errors = parse("")
        assert messages(errors) == ["Program cannot start with End-of-file"]
        assert isinstance(program.block.body, ErrorStatement)

    def test_trailing_tokens(self):
        """Tokens after the final end are reported once and skipped."""
        _, errors = parse("begin skip end x y z")
        assert messages(errors) == ["identifier x cannot follow Compound Statement"]

    def test_errors_in_procedure_and_program(self):
        """Parsing resumes after an error and finds the next one."""
        _, errors = parse(
            "procedure p() = begin x := end;\n"
            "begin y := end")
        assert errors.error_count == 2
        assert [d.location.line for d in errors.diagnostics] == [1, 2]

    def test_missing_close_paren(self):
        """A missing ')' is reported; the parenthesised value is kept."""
        program, errors = parse("var x: integer; begin x := (1 + 2 end")
        assert messages(errors) == ["expecting )"]
        (assign,) = body(program)
        assert isinstance(assign.values[0], BinaryExpression)

    def test_illegal_character(self):
        """An illegal character is reported by the lexer and skipped."""
        _, errors = parse("var x: integer; begin x := 1 $ end")
        assert "illegal character '$'" in messages(errors)

    def test_non_ascii_digit_in_expression(self):
        """A non-ASCII digit is an ordinary lexical error."""
        _, errors = parse("begin write ² end")
        assert "illegal character '²'" in messages(errors)

    def test_unterminated_program_does_not_abort(self):
        """Running out of input is an ordinary error, not a fatal one."""
        _, errors = parse("var x: integer; begin x := 1;")
        assert errors.had_errors()


# =============================================================================
# Nesting Limits
# =============================================================================

class TestNesting:
    """Tests for deeply nested input."""

    def test_parentheses_at_limit(self):
        """Parentheses nested to the limit parse cleanly."""
        depth = MAX_NESTING
        (assign,) = body(parse_clean(
            "begin x := " + "(" * depth + "1" + ")" * depth + " end"))
        assert isinstance(assign.values[0], NumberExpression)

    def test_parentheses_beyond_limit(self):
        """Deeper parentheses are one error; the rest is skipped as a unit."""
        depth = MAX_NESTING + 150
        program, errors = parse("begin x := " + "(" * depth + "1" + ")" * depth + " end")
        assert messages(errors) == ["expression nested too deeply"]
        # At the first '(' beyond the limit
        assert errors.diagnostics[0].location.column == len("begin x := ") + MAX_NESTING + 1
        assert isinstance(body(program)[0], AssignmentStatement)

    def test_parsing_continues_after_deep_expression(self):
        """Statements after an over-deep expression are still parsed."""
        depth = MAX_NESTING + 1
        program, errors = parse(
            "begin x := " + "(" * depth + "1" + ")" * depth + "; y := 2 end")
        assert errors.error_count == 1
        assert body(program)[1].targets[0].name == "y"

    def test_negated_constant_at_limit(self):
        """A constant negated to the limit folds normally."""
        program = parse_clean("const c = " + "-" * MAX_NESTING + "5; begin skip end")
        assert program.symbols.lookup_in(program.block.scope, "c").value == 5

    def test_negated_constant_beyond_limit(self):
        """Deeper negation is one error and the constant has no value."""
        program, errors = parse(
            "const c = " + "-" * (MAX_NESTING + 200) + "5; begin skip end")
        assert messages(errors) == ["expression nested too deeply"]
        assert program.symbols.lookup_in(program.block.scope, "c").value is None

    def test_statement_nesting_beyond_recursion_limit(self):
        """Runaway statement nesting aborts through the fatal path."""
        depth = 2000
        output = io.StringIO()
        with pytest.raises(FatalError, match="program nested too deeply"):
            parse_source("begin " * depth + "skip" + " end" * depth, "<test>", output)
        assert "Fatal: program nested too deeply" in output.getvalue()
        assert output.getvalue().endswith("1 error detected.\n")


# =============================================================================
# Tree Printer
# =============================================================================

class TestASTPrinter:
    """Tests for the debugging tree printer."""

    def test_program_with_declarations(self):
        """Blocks list their declarations when given the symbol table."""
        program = parse_clean("const a = 5; var x: integer; begin x := a + 1 end")
        assert ASTPrinter(program.symbols).print(program).splitlines() == [
            "Program",
            "  Block (scope 1)",
            "    constant a = 5",
            "    variable x: integer",
            "    List",
            "      Assign x := (a + 1)",
        ]

    def test_without_symbols(self):
        """Without a symbol table only the tree is printed."""
        program = parse_clean("var x: integer; begin read x; write -x end")
        assert ASTPrinter().print(program).splitlines() == [
            "Program",
            "  Block (scope 1)",
            "    List",
            "      Assign x := read",
            "      Write -x",
        ]

    def test_procedures_and_control_flow(self):
        """Nested statements are indented under their parent."""
        program = parse_clean(
            "var x: integer;\n"
            "procedure p() = begin while x > 0 do x := x - 1 end;\n"
            "begin\n"
            "  if x = 0 then call p() else skip;\n"
            "  do x < 3 then x := x + 1 [] x >= 3 then skip exit od\n"
            "end")
        assert ASTPrinter().print(program).splitlines() == [
            "Program",
            "  Block (scope 1)",
            "    Procedure p",
            "      Block (scope 2)",
            "        List",
            "          While ((x > 0))",
            "            Assign x := (x - 1)",
            "    List",
            "      If ((x = 0))",
            "        Then:",
            "          Call p",
            "        Else:",
            "          Skip",
            "      Do",
            "        Branch ((x < 3))",
            "          List",
            "            Assign x := (x + 1)",
            "        Branch ((x >= 3)) exit",
            "          List",
            "            Skip",
        ]

    def test_error_nodes(self):
        """Placeholders print distinctly."""
        program, _ = parse("var x: integer; begin x := end")
        assert "Assign x := <error>" in ASTPrinter().print(program)

    def test_unknown_statement(self):
        """Nodes outside the tree types are rejected."""
        with pytest.raises(TypeError):
            ASTPrinter().print(object())

    def test_unknown_expression(self):
        """Expressions outside the expression types are rejected."""
        with pytest.raises(TypeError):
            ASTPrinter().expression("x")
