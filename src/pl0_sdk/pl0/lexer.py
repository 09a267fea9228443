"""
PL/0 Lexer (Tokenizer)
======================

This module converts PL/0 source text into a stream of tokens for the
parser.

Token Categories
----------------
- Keywords: begin, call, const, do, else, end, exit, if, od, procedure,
  read, skip, then, type, var, while, write
- Identifiers: letter followed by letters, digits and underscores
- Numbers: unsigned decimal integers
- Operators: + - * / = != < <= > >= := .. && || ! []
- Delimiters: ( ) [ ] ; : ,

Comments run from // to the end of the line.

Error Handling
--------------
When a DiagnosticCollector is supplied, an illegal character is reported
through it and an ILLEGAL token is produced, so the parser's recovery can
skip past it. Without a collector the lexer raises InvalidCharacterError
(or CompilerError for an out-of-range number).

Example Usage
-------------
>>> from pl0_sdk.pl0.lexer import PL0Lexer
>>> for token in PL0Lexer("x := 42", "test.pl0").tokenize():
...     print(token)
Token(IDENTIFIER, 'x', 1:1)
Token(ASSIGN, 1:3)
Token(NUMBER, 42, 1:6)
Token(EOF, 1:8)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, TYPE_CHECKING
import string

from pl0_sdk.errors import SourceLocation
from pl0_sdk.pl0.errors import CompilerError, InvalidCharacterError

if TYPE_CHECKING:
    from pl0_sdk.pl0.diagnostics import DiagnosticCollector


# Largest value a NUMBER token may carry
MAX_INT = 2 ** 31 - 1


# =============================================================================
# Token Kind Enumeration
# =============================================================================

class TokenKind(Enum):
    """
    Terminal categories of PL/0.

    The value of each member is the spelling used in diagnostics, so
    f"expecting {kind}" reads naturally.
    """

    EOF = "End-of-file"

    # === Operators ===
    PLUS = "+"
    MINUS = "-"
    TIMES = "*"
    DIVIDE = "/"
    EQUALS = "="
    NEQUALS = "!="
    LEQUALS = "<="
    LESS = "<"
    GEQUALS = ">="
    GREATER = ">"
    LOG_AND = "&&"
    LOG_OR = "||"
    LOG_NOT = "!"
    ASSIGN = ":="
    RANGE = ".."

    # === Delimiters ===
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    SEMICOLON = ";"
    COLON = ":"
    COMMA = ","
    SEPARATOR = "[]"

    # === Keywords ===
    KW_BEGIN = "begin"
    KW_CALL = "call"
    KW_CONST = "const"
    KW_DO = "do"
    KW_ELSE = "else"
    KW_END = "end"
    KW_EXIT = "exit"
    KW_IF = "if"
    KW_OD = "od"
    KW_PROCEDURE = "procedure"
    KW_READ = "read"
    KW_SKIP = "skip"
    KW_THEN = "then"
    KW_TYPE = "type"
    KW_VAR = "var"
    KW_WHILE = "while"
    KW_WRITE = "write"

    # === Tokens with payloads ===
    IDENTIFIER = "identifier"
    NUMBER = "number"
    ILLEGAL = "illegal"

    def __str__(self) -> str:
        return self.value


# Map keyword strings to their token kinds
KEYWORDS: dict[str, TokenKind] = {
    kind.value: kind for kind in TokenKind if kind.name.startswith("KW_")
}


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single lexical token.

    Attributes:
        kind: The TokenKind classification
        location: Where the token starts in the source
        value: Identifier text, integer value, or the offending character
               of an ILLEGAL token; None for every other kind
    """
    kind: TokenKind
    location: SourceLocation
    value: str | int | None = None

    def __repr__(self) -> str:
        where = f"{self.location.line}:{self.location.column}"
        if self.value is None:
            return f"Token({self.kind.name}, {where})"
        if isinstance(self.value, int):
            return f"Token({self.kind.name}, {self.value}, {where})"
        return f"Token({self.kind.name}, {self.value!r}, {where})"

    def __str__(self) -> str:
        if self.kind == TokenKind.IDENTIFIER:
            return f"identifier {self.value}"
        if self.kind == TokenKind.NUMBER:
            return f"number {self.value}"
        return str(self.kind)


# =============================================================================
# Lexer Implementation
# =============================================================================

class PL0Lexer:
    """
    Tokenizes PL/0 source code.

    Usage:
        lexer = PL0Lexer(source_text, filename, errors=collector)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
        errors: Optional collector that absorbs lexical errors
    """

    IDENT_START = string.ascii_letters
    IDENT_CHARS = string.ascii_letters + string.digits + "_"
    DIGITS = string.digits

    # Two-character operators, checked before the single-character table
    DOUBLE_TOKENS = {
        ":=": TokenKind.ASSIGN,
        "..": TokenKind.RANGE,
        "!=": TokenKind.NEQUALS,
        "<=": TokenKind.LEQUALS,
        ">=": TokenKind.GEQUALS,
        "&&": TokenKind.LOG_AND,
        "||": TokenKind.LOG_OR,
        "[]": TokenKind.SEPARATOR,
    }

    SINGLE_TOKENS = {
        "+": TokenKind.PLUS,
        "-": TokenKind.MINUS,
        "*": TokenKind.TIMES,
        "/": TokenKind.DIVIDE,
        "=": TokenKind.EQUALS,
        "<": TokenKind.LESS,
        ">": TokenKind.GREATER,
        "!": TokenKind.LOG_NOT,
        "(": TokenKind.LPAREN,
        ")": TokenKind.RPAREN,
        "[": TokenKind.LBRACKET,
        "]": TokenKind.RBRACKET,
        ";": TokenKind.SEMICOLON,
        ":": TokenKind.COLON,
        ",": TokenKind.COMMA,
    }

    def __init__(
        self,
        source: str,
        filename: str = "<input>",
        errors: Optional["DiagnosticCollector"] = None,
    ):
        self.source = source
        self.filename = filename
        self.errors = errors

        self._pos = 0
        self._line = 1
        self._column = 1
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects, always ending with exactly one EOF token

        Raises:
            InvalidCharacterError: On an illegal character when no
                collector is attached
        """
        while True:
            self._skip_whitespace_and_comments()
            if self._at_end():
                break
            yield self._scan_token()

        yield Token(TokenKind.EOF, self._location())

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Character at current position + offset, or "" past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume the current character, keeping line/column current."""
        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    def _location(self) -> SourceLocation:
        return SourceLocation(self.filename, self._line, self._column)

    def _current_line(self) -> str:
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace_and_comments(self) -> None:
        while not self._at_end():
            char = self._peek()

            if char in " \t\n\r\f":
                self._advance()
                continue

            # Comment: // to end of line
            if char == "/" and self._peek(1) == "/":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
                continue

            break

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        location = self._location()
        char = self._peek()

        if char in self.IDENT_START:
            return self._scan_identifier(location)

        if char in self.DIGITS:
            return self._scan_number(location)

        pair = char + self._peek(1)
        if pair in self.DOUBLE_TOKENS:
            self._advance()
            self._advance()
            return Token(self.DOUBLE_TOKENS[pair], location)

        if char in self.SINGLE_TOKENS:
            self._advance()
            return Token(self.SINGLE_TOKENS[char], location)

        return self._illegal_character(location)

    def _scan_identifier(self, location: SourceLocation) -> Token:
        """Scan an identifier or keyword."""
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())

        name = "".join(chars)
        if name in KEYWORDS:
            return Token(KEYWORDS[name], location)
        return Token(TokenKind.IDENTIFIER, location, name)

    def _scan_number(self, location: SourceLocation) -> Token:
        """Scan a decimal integer literal."""
        chars = []
        while self._peek() and self._peek() in self.DIGITS:
            chars.append(self._advance())

        value = int("".join(chars))
        if value > MAX_INT:
            self._report("integer too large", location)
            value = 0
        return Token(TokenKind.NUMBER, location, value)

    def _illegal_character(self, location: SourceLocation) -> Token:
        source_line = self._current_line()
        char = self._advance()
        if self.errors is None:
            raise InvalidCharacterError(char, location, source_line)
        self._report(f"illegal character '{char}'", location)
        return Token(TokenKind.ILLEGAL, location, char)

    def _report(self, message: str, location: SourceLocation) -> None:
        if self.errors is None:
            raise CompilerError(message, location, source_line=self._current_line())
        self.errors.error(message, location)
