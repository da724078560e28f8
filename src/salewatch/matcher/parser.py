"""Pattern parser for match rules.

Patterns are boolean expressions over case-insensitive substring keywords:

- nvidia
- "RTX 4070"
- nvidia && rtx
- (3080 || 3090) && !"open box"
- !(refurbished || used)

Keywords are either a double-quoted literal (may contain spaces) or a run of
alphanumeric characters. ``&&`` and ``||`` share one precedence level and are
applied strictly left to right, so ``a || b && c`` means ``(a || b) && c``.
``!`` negates everything that follows it up to the end of the enclosing group.

Nesting depth is not limited. pyparsing only splits the source into tokens;
the tree is assembled from them with an explicit stack of open groups, and
everything that walks a finished tree goes through :func:`postorder`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from pyparsing import (
    Literal,
    ParseBaseException,
    ParseFatalException,
    ParserElement,
    QuotedString,
    Regex,
    ZeroOrMore,
)

# Enable packrat parsing for performance
ParserElement.enable_packrat()


@dataclass(frozen=True)
class Exact:
    """Matches when the keyword occurs anywhere in the text."""

    keyword: str

    def __str__(self) -> str:
        return format_pattern(self)


@dataclass(frozen=True)
class And:
    """Both operands must match."""

    left: Pattern
    right: Pattern

    def __str__(self) -> str:
        return format_pattern(self)


@dataclass(frozen=True)
class Or:
    """Either operand must match."""

    left: Pattern
    right: Pattern

    def __str__(self) -> str:
        return format_pattern(self)


@dataclass(frozen=True)
class Not:
    """Inverts its operand."""

    operand: Pattern

    def __str__(self) -> str:
        return format_pattern(self)


# Type alias for parsed patterns
Pattern = Exact | And | Or | Not


def postorder(pattern: Pattern) -> Iterator[Pattern]:
    """Yield every node of a pattern, children before their parent.

    Left operands come before right ones. The walk keeps its own stack, so
    arbitrarily deep patterns are fine.
    """
    stack: list[tuple[Pattern, bool]] = [(pattern, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded or isinstance(node, Exact):
            yield node
        elif isinstance(node, Not):
            stack.append((node, True))
            stack.append((node.operand, False))
        elif isinstance(node, (And, Or)):
            stack.append((node, True))
            stack.append((node.right, False))
            stack.append((node.left, False))
        else:
            raise ValueError(f"Unknown pattern type: {type(node)}")


def format_pattern(pattern: Pattern) -> str:
    """Render a pattern in canonical, fully parenthesized form.

    The output parses back to the same tree.
    """
    parts: list[str] = []
    for node in postorder(pattern):
        match node:
            case Exact(keyword=keyword):
                parts.append(f'"{keyword}"')
            case Not():
                parts.append(f"!({parts.pop()})")
            case And() | Or():
                right = parts.pop()
                operator = "&&" if isinstance(node, And) else "||"
                parts[-1] = f"({parts[-1]} {operator} {right})"
    return parts.pop()


class PatternSyntaxError(ValueError):
    """Raised when a pattern string cannot be parsed."""

    def __init__(self, source: str, column: int, message: str):
        self.source = source
        self.column = column
        self.message = message
        super().__init__(f"column {column}: {message} in pattern {source!r}")


@dataclass(frozen=True)
class Token:
    """One lexical token. ``kind`` is the operator text or ``"keyword"``."""

    kind: str
    loc: int
    keyword: Exact | None = None


@dataclass
class _Frame:
    """A group being assembled: the root, a parenthesis or a negation."""

    opener: str
    loc: int
    pattern: Pattern | None = None
    operator: str | None = None

    def add(self, operand: Pattern) -> None:
        if self.pattern is None:
            self.pattern = operand
        elif self.operator == "&&":
            self.pattern = And(self.pattern, operand)
        else:
            self.pattern = Or(self.pattern, operand)
        self.operator = None


EXPECTED_OPERAND = "expected '(', '!' or keyword"
EXPECTED_OPERATOR = "expected '&&', '||' or ')'"


class PatternParser:
    """Parser for pattern expressions."""

    def __init__(self):
        """Initialize the tokenizer grammar."""
        self._tokenizer = self._build_tokenizer()

    def _build_tokenizer(self) -> ParserElement:
        """Build the pyparsing token grammar."""
        # Quoted keywords may contain anything but a double quote
        quoted = QuotedString('"').set_parse_action(self._make_quoted)

        # Unquoted keywords run until whitespace, an operator or a paren;
        # the characters themselves are checked in the parse action so the
        # error can point at the offending column.
        bare = Regex(r"[^\s!&|()]+").set_parse_action(self._make_bare)

        symbol = (
            Literal("&&") | Literal("||") | Literal("(") | Literal(")") | Literal("!")
        ).set_parse_action(self._make_symbol)

        # A lone '&' or '|'
        stray = Regex(r"\S").set_parse_action(self._reject_stray)

        return ZeroOrMore(quoted | bare | symbol | stray)

    def _make_quoted(self, source: str, loc: int, tokens) -> Token:
        """Convert a quoted literal to a keyword token."""
        keyword = tokens[0]
        if not keyword:
            raise ParseFatalException(source, loc, "empty keyword, check quotes")
        return Token("keyword", loc, Exact(keyword))

    def _make_bare(self, source: str, loc: int, tokens) -> Token:
        """Convert an unquoted word to a keyword token."""
        keyword = tokens[0]
        for offset, ch in enumerate(keyword):
            if not ch.isalnum():
                raise ParseFatalException(
                    source, loc + offset, f"unexpected character {ch!r} in keyword"
                )
        return Token("keyword", loc, Exact(keyword))

    def _make_symbol(self, source: str, loc: int, tokens) -> Token:
        return Token(tokens[0], loc)

    def _reject_stray(self, source: str, loc: int, tokens):
        raise ParseFatalException(
            source, loc, f"unexpected character {tokens[0]!r}, {EXPECTED_OPERATOR}"
        )

    def tokenize(self, source: str) -> list[Token]:
        """Split a pattern string into tokens.

        Raises:
            PatternSyntaxError: On an invalid character or an empty or
                unterminated quoted keyword.
        """
        try:
            return list(self._tokenizer.parse_string(source, parse_all=True))
        except ParseBaseException as e:
            raise PatternSyntaxError(source, e.col, e.msg) from e

    def parse(self, source: str) -> Pattern:
        """Parse a pattern string.

        Operands are folded into the innermost open frame as they arrive.
        A closing parenthesis first closes every negation opened inside the
        group, then the group itself.

        Args:
            source: The pattern to parse.

        Returns:
            The root node of the parsed pattern.

        Raises:
            PatternSyntaxError: If the pattern is malformed.
        """
        stack = [_Frame("", 0)]
        want_operand = True

        for token in self.tokenize(source):
            if want_operand:
                if token.kind in ("(", "!"):
                    stack.append(_Frame(token.kind, token.loc))
                elif token.kind == "keyword":
                    stack[-1].add(token.keyword)
                    want_operand = False
                else:
                    raise PatternSyntaxError(source, token.loc + 1, EXPECTED_OPERAND)
            elif token.kind in ("&&", "||"):
                stack[-1].operator = token.kind
                want_operand = True
            elif token.kind == ")":
                self._close_negations(stack)
                if stack[-1].opener != "(":
                    raise PatternSyntaxError(source, token.loc + 1, "unmatched ')'")
                group = stack.pop()
                stack[-1].add(group.pattern)
            else:
                raise PatternSyntaxError(source, token.loc + 1, EXPECTED_OPERATOR)

        if want_operand:
            raise PatternSyntaxError(source, len(source) + 1, EXPECTED_OPERAND)
        self._close_negations(stack)
        if len(stack) > 1:
            raise PatternSyntaxError(source, stack[-1].loc + 1, "unclosed '('")
        return stack[0].pattern

    @staticmethod
    def _close_negations(stack: list[_Frame]) -> None:
        while stack[-1].opener == "!":
            negation = stack.pop()
            stack[-1].add(Not(negation.pattern))


# Global parser instance
_parser: PatternParser | None = None


def get_parser() -> PatternParser:
    """Get or create the global parser instance."""
    global _parser
    if _parser is None:
        _parser = PatternParser()
    return _parser


def parse_pattern(source: str) -> Pattern:
    """Parse a pattern string using the global parser.

    Args:
        source: The pattern to parse.

    Returns:
        Parsed Pattern.
    """
    return get_parser().parse(source)
