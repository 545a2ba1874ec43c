"""
Lexer for fieldscript source.

Converts source text into a stream of tokens for the parser.
Supports:
- Significant newlines (NEWLINE tokens) and ';' separators
- Implicit line continuation inside parentheses
- Explicit line continuation with a trailing backslash
- Single-line comments (# and //)
- Multi-line comments (/* */, nestable)
- String literals with escape sequences
- Integer literals (decimal, hex)
- Float literals (including scientific notation)
- Case-insensitive boolean literals
"""

from typing import List, Optional, Iterator
from .tokens import (
    Token, TokenType, SourceLocation, SourceSpan, BOOL_WORDS,
)
from .errors import (
    error_unexpected_character,
    error_unterminated_string,
    error_unterminated_comment,
    error_invalid_escape_sequence,
    error_invalid_number_literal,
    error_dangling_continuation,
)


class Lexer:
    """
    Tokenizer for fieldscript.

    Usage:
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()

    Or for streaming:
        lexer = Lexer(source_code)
        for token in lexer:
            process(token)
    """

    def __init__(self, source: str, filename: Optional[str] = None):
        self.source = source
        self.filename = filename
        self.pos = 0            # Current position in source
        self.line = 1           # Current line (1-indexed)
        self.column = 1         # Current column (1-indexed)
        self._lines: Optional[List[str]] = None  # Cached line list

        # Parenthesis nesting for implicit line continuation
        self.paren_depth = 0

    @property
    def lines(self) -> List[str]:
        """Lazy-load line list for error reporting."""
        if self._lines is None:
            self._lines = self.source.splitlines()
        return self._lines

    def get_source_line(self, line_num: int) -> Optional[str]:
        """Get a specific line of source (1-indexed)."""
        if 1 <= line_num <= len(self.lines):
            return self.lines[line_num - 1]
        return None

    def _location(self) -> SourceLocation:
        """Get current source location."""
        return SourceLocation(self.line, self.column, self.pos, self.filename)

    def _span(self, start: SourceLocation) -> SourceSpan:
        """Create a span from start to current position."""
        return SourceSpan(start, self._location())

    def _peek(self, offset: int = 0) -> str:
        """Look at character at current position + offset without consuming."""
        idx = self.pos + offset
        if idx >= len(self.source):
            return '\0'
        return self.source[idx]

    def _advance(self) -> str:
        """Consume and return current character."""
        if self.pos >= len(self.source):
            return '\0'
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _is_at_end(self) -> bool:
        """Check if we've reached end of source."""
        return self.pos >= len(self.source)

    def _skip_comment(self) -> None:
        """Skip a single-line comment (to end of line, newline kept)."""
        while self._peek() != '\n' and not self._is_at_end():
            self._advance()

    def _skip_multiline_comment(self) -> None:
        """Skip /* ... */ comment."""
        start = self._location()
        self._advance()  # consume '/'
        self._advance()  # consume '*'
        depth = 1

        while not self._is_at_end() and depth > 0:
            if self._peek() == '/' and self._peek(1) == '*':
                self._advance()
                self._advance()
                depth += 1
            elif self._peek() == '*' and self._peek(1) == '/':
                self._advance()
                self._advance()
                depth -= 1
            else:
                self._advance()

        if depth > 0:
            raise error_unterminated_comment(
                self._span(start),
                self.get_source_line(start.line)
            )

    def _at_comment(self) -> bool:
        ch = self._peek()
        if ch == '#':
            return True
        return ch == '/' and self._peek(1) in '/*'

    def _skip_whitespace_and_comments(self) -> None:
        """Skip spaces, tabs, carriage returns, comments and continuations."""
        while True:
            ch = self._peek()
            if ch in ' \t\r':
                self._advance()
            elif ch == '\\':
                start = self._location()
                self._advance()
                # Allow trailing whitespace or a comment before the newline
                while self._peek() in ' \t\r':
                    self._advance()
                if self._peek() == '#' or (self._peek() == '/' and self._peek(1) == '/'):
                    self._skip_comment()
                if self._peek() == '\n':
                    self._advance()
                elif not self._is_at_end():
                    raise error_dangling_continuation(
                        self._span(start), self.get_source_line(start.line)
                    )
            elif self._at_comment():
                if ch == '/' and self._peek(1) == '*':
                    self._skip_multiline_comment()
                else:
                    self._skip_comment()
            elif ch == '\n' and self.paren_depth > 0:
                self._advance()
            else:
                return

    def _make_token(self, token_type: TokenType, value, start: SourceLocation,
                    lexeme: Optional[str] = None) -> Token:
        """Create a token."""
        span = self._span(start)
        if lexeme is None:
            lexeme = self.source[start.offset:self.pos]
        return Token(token_type, value, lexeme, span)

    def _scan_string(self) -> Token:
        """Scan a string literal."""
        start = self._location()
        quote = self._advance()  # consume opening quote

        chars = []
        while not self._is_at_end() and self._peek() != quote:
            ch = self._peek()
            if ch == '\n':
                raise error_unterminated_string(
                    self._span(start),
                    self.get_source_line(start.line)
                )
            if ch == '\\':
                self._advance()  # consume backslash
                chars.append(self._scan_escape_sequence())
            else:
                chars.append(self._advance())

        if self._is_at_end():
            raise error_unterminated_string(
                self._span(start),
                self.get_source_line(start.line)
            )

        self._advance()  # consume closing quote
        return self._make_token(TokenType.STRING_LITERAL, ''.join(chars), start)

    def _scan_escape_sequence(self) -> str:
        """Parse an escape sequence after backslash."""
        esc_start = self._location()
        ch = self._advance()
        escape_chars = {
            'n': '\n',
            't': '\t',
            'r': '\r',
            '\\': '\\',
            '"': '"',
            "'": "'",
        }
        if ch in escape_chars:
            return escape_chars[ch]
        raise error_invalid_escape_sequence(
            ch, self._span(esc_start), self.get_source_line(esc_start.line)
        )

    def _scan_number(self) -> Token:
        """Scan a numeric literal (int or float)."""
        start = self._location()

        if self._peek() == '0' and self._peek(1) in 'xX':
            return self._scan_hex_number(start)

        while self._peek().isdigit():
            self._advance()

        is_float = False
        if self._peek() == '.' and self._peek(1).isdigit():
            is_float = True
            self._advance()  # consume '.'
            while self._peek().isdigit():
                self._advance()
        elif self._peek() == '.' and not self._peek(1).isalpha():
            # "1." is a float, "1.x" is a member access
            is_float = True
            self._advance()

        if self._peek() in 'eE':
            is_float = True
            self._advance()  # consume 'e'
            if self._peek() in '+-':
                self._advance()
            if not self._peek().isdigit():
                lexeme = self.source[start.offset:self.pos]
                raise error_invalid_number_literal(
                    lexeme, self._span(start), self.get_source_line(start.line)
                )
            while self._peek().isdigit():
                self._advance()

        if self._peek().isalpha() or self._peek() == '_':
            while self._peek().isalnum() or self._peek() == '_':
                self._advance()
            lexeme = self.source[start.offset:self.pos]
            raise error_invalid_number_literal(
                lexeme, self._span(start), self.get_source_line(start.line)
            )

        lexeme = self.source[start.offset:self.pos]
        try:
            if is_float:
                return self._make_token(TokenType.FLOAT_LITERAL, float(lexeme), start, lexeme)
            return self._make_token(TokenType.INT_LITERAL, int(lexeme), start, lexeme)
        except ValueError:
            raise error_invalid_number_literal(
                lexeme, self._span(start), self.get_source_line(start.line)
            )

    def _scan_hex_number(self, start: SourceLocation) -> Token:
        """Scan a hexadecimal integer literal (0x...)."""
        self._advance()  # consume '0'
        self._advance()  # consume 'x' or 'X'

        while self._peek() in '0123456789abcdefABCDEF_':
            self._advance()

        lexeme = self.source[start.offset:self.pos]
        try:
            value = int(lexeme[2:].replace('_', ''), 16)
        except ValueError:
            raise error_invalid_number_literal(
                lexeme, self._span(start), self.get_source_line(start.line)
            )
        return self._make_token(TokenType.INT_LITERAL, value, start, lexeme)

    def _scan_identifier(self) -> Token:
        """Scan an identifier or boolean literal."""
        start = self._location()

        while self._peek().isalnum() or self._peek() == '_':
            self._advance()

        lexeme = self.source[start.offset:self.pos]
        word = lexeme.lower()
        if word in BOOL_WORDS:
            return self._make_token(TokenType.BOOL_LITERAL, BOOL_WORDS[word], start, lexeme)
        return self._make_token(TokenType.IDENTIFIER, lexeme, start, lexeme)

    def _scan_token(self) -> Token:
        """Scan the next token."""
        self._skip_whitespace_and_comments()

        if self._is_at_end():
            return self._make_token(TokenType.EOF, None, self._location(), "")

        start = self._location()
        ch = self._peek()

        if ch == '\n':
            self._advance()
            return self._make_token(TokenType.NEWLINE, None, start, "\\n")

        if ch in '"\'':
            return self._scan_string()

        if ch.isdigit() or (ch == '.' and self._peek(1).isdigit()):
            return self._scan_number()

        if ch.isalpha() or ch == '_':
            return self._scan_identifier()

        self._advance()

        if ch == '(':
            self.paren_depth += 1
            return self._make_token(TokenType.LPAREN, ch, start)
        if ch == ')':
            self.paren_depth = max(0, self.paren_depth - 1)
            return self._make_token(TokenType.RPAREN, ch, start)

        single_char_tokens = {
            '+': TokenType.PLUS,
            '-': TokenType.MINUS,
            '*': TokenType.STAR,
            '/': TokenType.SLASH,
            '=': TokenType.ASSIGN,
            ',': TokenType.COMMA,
            '.': TokenType.DOT,
            ';': TokenType.SEMICOLON,
        }

        if ch in single_char_tokens:
            return self._make_token(single_char_tokens[ch], ch, start)

        raise error_unexpected_character(
            ch, self._span(start), self.get_source_line(start.line)
        )

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source, returning a list of tokens."""
        return list(self)

    def __iter__(self) -> Iterator[Token]:
        """Iterate over tokens."""
        while True:
            token = self._scan_token()
            yield token
            if token.type == TokenType.EOF:
                break


def tokenize(source: str, filename: Optional[str] = None) -> List[Token]:
    """
    Convenience function to tokenize source code.

    Args:
        source: The source code to tokenize
        filename: Optional filename for error messages

    Returns:
        List of tokens

    Raises:
        LexerError: If tokenization fails
    """
    return Lexer(source, filename).tokenize()
