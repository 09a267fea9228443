"""
Rule-Recovery Token Stream
==========================

This module wraps the lexer's token sequence and implements the
panic-mode error recovery protocol used by every grammar rule of the
parser.

Each rule is bracketed by begin_rule() and end_rule():

    def _parse_rule(self, recover: TokenSet) -> Node:
        if not self.tokens.begin_rule("Rule", RULE_START_SET, recover):
            return ErrorNode(...)           # nothing consumed by the rule
        ...                                 # sub-rules get recover | follow
        self.tokens.end_rule("Rule", recover)
        return node

begin_rule() checks the head token against the rule's start set. On a
mismatch it reports one error and skips tokens until it reaches one that
can either start the rule (retry) or follow it (abandon). end_rule()
checks the head token can follow the rule and otherwise skips to one
that can, so every rule hands its caller a stream positioned where the
caller's own recovery context expects.

Recovery sets are built per call site with TokenSet.union(), so they
always reflect the caller's continuation rather than a global FOLLOW set.
Every recovery set passed down from the top rule contains EOF, and
skipping never moves past EOF, so recovery always terminates.

Misuse by the parser (matching a token it has not checked, mismatched
begin/end pairs, reading the payload of the wrong kind of token) is a
fatal internal error, never a user diagnostic.
"""

from typing import Iterable, Iterator, Union

from pl0_sdk.errors import SourceLocation
from pl0_sdk.pl0.diagnostics import DiagnosticCollector
from pl0_sdk.pl0.lexer import Token, TokenKind


class TokenSet:
    """
    Immutable set of token kinds.

    Describes what can start or follow a grammar rule. Sets are combined
    with union(), which accepts any mix of kinds and other sets:

        STATEMENT_START_SET.union(TokenKind.SEMICOLON, REL_OPS_SET)
    """

    __slots__ = ("_kinds",)

    def __init__(self, *kinds: TokenKind):
        self._kinds = frozenset(kinds)

    @classmethod
    def of(cls, item: Union["TokenSet", TokenKind]) -> "TokenSet":
        """Return item unchanged if it is a set, else a one-element set."""
        if isinstance(item, TokenSet):
            return item
        return cls(item)

    def union(self, *items: Union["TokenSet", TokenKind]) -> "TokenSet":
        """Return a new set holding these kinds plus every given kind/set."""
        kinds = set(self._kinds)
        for item in items:
            if isinstance(item, TokenSet):
                kinds.update(item._kinds)
            else:
                kinds.add(item)
        return TokenSet(*kinds)

    def __or__(self, other: Union["TokenSet", TokenKind]) -> "TokenSet":
        return self.union(other)

    def __contains__(self, kind: object) -> bool:
        return kind in self._kinds

    def __iter__(self) -> Iterator[TokenKind]:
        return iter(self._kinds)

    def __len__(self) -> int:
        return len(self._kinds)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenSet):
            return NotImplemented
        return self._kinds == other._kinds

    def __hash__(self) -> int:
        return hash(self._kinds)

    def __repr__(self) -> str:
        names = sorted(kind.name for kind in self._kinds)
        return f"TokenSet({', '.join(names)})"

    def __str__(self) -> str:
        return "{" + ", ".join(sorted(str(kind) for kind in self._kinds)) + "}"


# Either a single kind or a set, wherever a set is expected
TokenKinds = Union[TokenSet, TokenKind]


class TokenStream:
    """
    One-token lookahead over a lexer with rule-level error recovery.

    Attributes:
        errors: Collector receiving syntax errors and trace lines
    """

    def __init__(self, tokens: Iterable[Token], errors: DiagnosticCollector):
        self.errors = errors
        self._tokens = iter(tokens)
        # Names of the rules currently being parsed, innermost last
        self._rules: list[str] = []

        first = next(self._tokens, None)
        self.errors.check(first is not None, "token source produced no tokens")
        self._current: Token = first

    # =========================================================================
    # Head Token Inspection
    # =========================================================================

    @property
    def token(self) -> Token:
        """The head token."""
        return self._current

    @property
    def kind(self) -> TokenKind:
        return self._current.kind

    @property
    def location(self) -> SourceLocation:
        return self._current.location

    @property
    def name(self) -> str:
        """Identifier text of the head token, which must be an IDENTIFIER."""
        self.errors.check(
            self.kind == TokenKind.IDENTIFIER,
            f"identifier expected, found {self._current}",
            self.location,
        )
        return self._current.value

    @property
    def int_value(self) -> int:
        """Value of the head token, which must be a NUMBER."""
        self.errors.check(
            self.kind == TokenKind.NUMBER,
            f"number expected, found {self._current}",
            self.location,
        )
        return self._current.value

    @property
    def depth(self) -> int:
        """Number of rules currently active."""
        return len(self._rules)

    def is_match(self, kind: TokenKind) -> bool:
        """True if the head token is of the given kind."""
        return self._current.kind == kind

    def is_in(self, kinds: TokenKinds) -> bool:
        """True if the head token's kind is in the given set."""
        return self._current.kind in TokenSet.of(kinds)

    # =========================================================================
    # Consuming Tokens
    # =========================================================================

    def match(self, kind: TokenKind, follow: TokenKinds | None = None) -> bool:
        """
        Consume a token of the given kind.

        Without a follow set the caller must already have checked the
        head token; anything else is an internal error.

        With a follow set a missing token is a user error: report it, then
        skip to a token in follow | {kind}. If that lands on kind it is
        consumed, otherwise the head is left for the caller.

        Returns:
            True if a token of the given kind was consumed
        """
        if follow is None:
            self.errors.check(
                self.is_match(kind),
                f"expecting {kind}, found {self._current}",
                self.location,
            )
            self._consume()
            return True

        if self.is_match(kind):
            self._consume()
            return True

        self.errors.error(f"expecting {kind}", self.location)
        self.skip_to(TokenSet.of(follow).union(kind))
        if self.is_match(kind):
            self._trace(f"Resynchronised on {kind}")
            self._consume()
            return True
        return False

    def skip_to(self, find: TokenKinds) -> None:
        """
        Discard head tokens until one of the given kinds is reached.

        End of input always stops the skip, whether or not EOF is in the
        set, so a truncated program cannot run the stream dry.
        """
        find = TokenSet.of(find)
        while not self.is_in(find) and not self.is_match(TokenKind.EOF):
            self._trace(f"Skipping {self._current}")
            self._advance()

    def _consume(self) -> None:
        self._trace(f"Matched {self._current}")
        self._advance()

    def _advance(self) -> None:
        if self._current.kind == TokenKind.EOF:
            return
        following = next(self._tokens, None)
        if following is None:
            following = Token(TokenKind.EOF, self._current.location)
        self._current = following

    # =========================================================================
    # Rule Brackets
    # =========================================================================

    def begin_rule(
        self,
        rule: str,
        start: TokenKinds,
        recover: TokenKinds | None = None,
    ) -> bool:
        """
        Enter a grammar rule.

        Without a recovery set the caller has already checked the head
        token, so the rule cannot fail.

        With a recovery set, a head token outside the start set is
        reported and tokens are skipped to start | recover. Landing in
        the start set lets the rule proceed; landing only in the recovery
        set abandons it.

        Returns:
            True if the rule should proceed, False if the caller must
            substitute an error node without consuming anything further
        """
        start = TokenSet.of(start)
        if recover is None:
            self.errors.check(
                self.is_in(start),
                f"{rule} cannot start with {self._current}",
                self.location,
            )
        elif not self.is_in(start):
            self.errors.error(f"{rule} cannot start with {self._current}", self.location)
            self.skip_to(start.union(recover))
            if not self.is_in(start):
                self._trace(f"Abandon rule {rule}")
                return False

        self._trace(f"Begin rule {rule}")
        self._rules.append(rule)
        return True

    def end_rule(self, rule: str, recover: TokenKinds) -> None:
        """
        Leave a grammar rule, making sure the head token can follow it.
        """
        innermost = self._rules.pop() if self._rules else None
        self.errors.check(
            innermost == rule,
            f"end of rule {rule} does not match begin of rule {innermost}",
            self.location,
        )
        self._trace(f"End rule {rule}")

        recover = TokenSet.of(recover)
        if not self.is_in(recover):
            self.errors.error(f"{self._current} cannot follow {rule}", self.location)
            self.skip_to(recover)

    def _trace(self, message: str) -> None:
        self.errors.debug_message(message, self.depth)
