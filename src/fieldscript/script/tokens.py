"""
Token types for the fieldscript lexer.

The script language is line oriented: a NEWLINE (or ';') ends a statement,
parentheses continue a statement across lines, and identifiers are matched
case-insensitively against the registry.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E2xx: Compile (resolution and type) errors
- E4xx: Runtime statement errors
- E5xx: Injection errors
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, Optional


class TokenType(Enum):
    """All token types recognized by the script lexer."""

    # --- Literals ---
    INT_LITERAL = auto()        # 42, 0xff
    FLOAT_LITERAL = auto()      # 3.14, 1e-9, 2.5E+10
    STRING_LITERAL = auto()     # "hello", 'table.txt'
    BOOL_LITERAL = auto()       # true, false (any case)

    # --- Identifiers ---
    IDENTIFIER = auto()         # registry names

    # --- Arithmetic operators ---
    PLUS = auto()               # +
    MINUS = auto()              # -
    STAR = auto()               # *
    SLASH = auto()              # /

    # --- Assignment ---
    ASSIGN = auto()             # =

    # --- Delimiters ---
    LPAREN = auto()             # (
    RPAREN = auto()             # )
    COMMA = auto()              # ,
    DOT = auto()                # .
    SEMICOLON = auto()          # ; (statement separator)

    # --- Statement structure ---
    NEWLINE = auto()            # Significant newline (end of statement)
    EOF = auto()                # end of file


@dataclass(frozen=True)
class SourceLocation:
    """Represents a position in source code."""
    line: int           # 1-indexed line number
    column: int         # 1-indexed column number
    offset: int         # 0-indexed character offset from start
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceSpan:
    """Represents a range in source code."""
    start: SourceLocation
    end: SourceLocation

    def __str__(self) -> str:
        if self.start.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"


@dataclass(frozen=True)
class Token:
    """A single token from the lexer."""
    type: TokenType
    value: Any              # The actual value (int, float, str, etc.)
    lexeme: str             # The original source text
    span: SourceSpan        # Location in source

    def __str__(self) -> str:
        if self.type in (TokenType.INT_LITERAL, TokenType.FLOAT_LITERAL,
                         TokenType.STRING_LITERAL, TokenType.IDENTIFIER):
            return f"{self.type.name}({self.value!r})"
        return self.type.name


# Tokens that end a statement
STATEMENT_TERMINATORS = frozenset({
    TokenType.NEWLINE,
    TokenType.SEMICOLON,
    TokenType.EOF,
})

# Boolean literal spellings, compared case-insensitively
BOOL_WORDS: dict[str, bool] = {
    "true": True,
    "false": False,
}


def is_literal_token(token_type: TokenType) -> bool:
    """Check if a token type represents a literal value."""
    return token_type.name.endswith("_LITERAL")


def is_terminator(token_type: TokenType) -> bool:
    """Check if a token type ends a statement."""
    return token_type in STATEMENT_TERMINATORS
