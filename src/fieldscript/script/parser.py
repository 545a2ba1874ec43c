"""
Recursive descent parser for fieldscript.

Converts a token stream into a Script: a flat list of lines. Each line is
one of

    name = expr                   assignment to a settable value
    name(arg, arg).method(arg)    call syntax
    name arg arg ...              bare call, arguments separated by
                                  spaces and/or commas
    name                          zero-argument call or value reference

Bare arguments are unary expressions (literal, name, call or parenthesized
expression, optionally negated), so `uniform 1 -1 0` has three arguments;
arithmetic in bare arguments must be parenthesized: `run (2 * 1e-9)`.
"""

from typing import List, Optional
from .tokens import Token, TokenType, SourceSpan, is_terminator
from .ast import (
    Expression, Literal, Identifier, FunctionCall, MethodCall,
    UnaryOp, BinaryOp, Line, ExpressionLine, AssignmentLine, Script,
)
from .errors import (
    ParserError,
    error_unexpected_token,
    error_unexpected_eof,
    DiagnosticCollector,
)


class Parser:
    """
    Recursive descent parser for fieldscript.

    Usage:
        parser = Parser(tokens, source=source)
        script = parser.parse_script()

    Parse errors are collected per line in `parser.diagnostics`; after an
    error the parser skips to the next statement terminator and continues,
    so a single pass reports every malformed line.

    Expression precedence:
        Lowest:  + -
                 * /
        Highest: unary + -
    """

    PRECEDENCE = {
        TokenType.PLUS: 1,
        TokenType.MINUS: 1,
        TokenType.STAR: 2,
        TokenType.SLASH: 2,
    }

    def __init__(self, tokens: List[Token], filename: Optional[str] = None,
                 source: Optional[str] = None, max_errors: int = 20):
        self.tokens = tokens
        self.filename = filename
        self.source = source  # Original source code for statement text
        self.pos = 0
        self.diagnostics = DiagnosticCollector(max_errors)
        self._source_lines = source.splitlines() if source else []

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        """Get current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self.pos]

    def _peek(self, offset: int = 0) -> Token:
        """Peek at token at current position + offset."""
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[idx]

    def _is_at_end(self) -> bool:
        return self._current().type == TokenType.EOF

    def _check(self, token_type: TokenType) -> bool:
        return self._current().type == token_type

    def _check_any(self, *token_types: TokenType) -> bool:
        return self._current().type in token_types

    def _at_terminator(self) -> bool:
        return is_terminator(self._current().type)

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        if not self._is_at_end():
            self.pos += 1
        return token

    def _consume(self, token_type: TokenType, expected: str) -> Token:
        """Consume token of expected type, or raise error."""
        if self._check(token_type):
            return self._advance()
        self._error(expected)

    def _match(self, *token_types: TokenType) -> Optional[Token]:
        """Consume token if it matches any of the given types."""
        if self._current().type in token_types:
            return self._advance()
        return None

    def _source_line(self, line_num: int) -> Optional[str]:
        if 1 <= line_num <= len(self._source_lines):
            return self._source_lines[line_num - 1]
        return None

    def _error(self, expected: str) -> None:
        """Raise a parser error."""
        token = self._current()
        if token.type == TokenType.EOF:
            raise error_unexpected_eof(expected, token.span)
        found = repr(token.lexeme) if token.lexeme else token.type.name
        raise error_unexpected_token(
            expected, found, token.span, self._source_line(token.span.start.line)
        )

    def _span_from(self, start: Token) -> SourceSpan:
        """Create a span from start token to the previous token's end."""
        end_token = self.tokens[max(0, self.pos - 1)]
        return SourceSpan(start.span.start, end_token.span.end)

    def _text_of(self, span: SourceSpan) -> str:
        """Source text covered by a span, collapsed to a single line."""
        if self.source is not None:
            text = self.source[span.start.offset:span.end.offset]
        else:
            text = " ".join(
                t.lexeme for t in self.tokens
                if span.start.offset <= t.span.start.offset < span.end.offset
            )
        return " ".join(text.replace("\\\n", " ").split())

    def _synchronize(self) -> None:
        """Skip to the end of the current statement after an error."""
        while not self._at_terminator():
            self._advance()

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_binary_expr(1)

    def _parse_binary_expr(self, min_precedence: int) -> Expression:
        """Parse binary expressions with precedence climbing."""
        left = self._parse_unary_expr()

        while True:
            op_token = self._current()
            precedence = self.PRECEDENCE.get(op_token.type)
            if precedence is None or precedence < min_precedence:
                break
            self._advance()  # consume operator
            right = self._parse_binary_expr(precedence + 1)
            left = BinaryOp(
                span=SourceSpan(left.span.start, right.span.end),
                left=left,
                operator=op_token.type,
                right=right,
            )

        return left

    def _parse_unary_expr(self) -> Expression:
        """Parse unary expressions (-x, +x)."""
        if self._check_any(TokenType.MINUS, TokenType.PLUS):
            op = self._advance()
            operand = self._parse_unary_expr()
            return UnaryOp(
                span=SourceSpan(op.span.start, operand.span.end),
                operator=op.type,
                operand=operand,
            )
        return self._parse_postfix_expr()

    def _parse_postfix_expr(self) -> Expression:
        """Parse method calls: expr.name(args)."""
        start = self._current()
        expr = self._parse_primary_expr()

        while self._match(TokenType.DOT):
            name_token = self._consume(TokenType.IDENTIFIER, "method name")
            args: List[Expression] = []
            if self._check(TokenType.LPAREN):
                args = self._parse_arguments()
            expr = MethodCall(
                span=self._span_from(start),
                receiver=expr,
                method=name_token.value,
                method_span=name_token.span,
                arguments=args,
            )

        return expr

    def _parse_arguments(self) -> List[Expression]:
        """Parse a parenthesized, comma-separated argument list."""
        self._consume(TokenType.LPAREN, "'('")
        args: List[Expression] = []

        if not self._check(TokenType.RPAREN):
            args.append(self._parse_expression())
            while self._match(TokenType.COMMA):
                if self._check(TokenType.RPAREN):
                    break  # Allow trailing comma
                args.append(self._parse_expression())

        self._consume(TokenType.RPAREN, "')'")
        return args

    def _parse_primary_expr(self) -> Expression:
        """Parse literals, names, calls and parenthesized expressions."""
        token = self._current()

        if token.type in (TokenType.INT_LITERAL, TokenType.FLOAT_LITERAL,
                          TokenType.STRING_LITERAL, TokenType.BOOL_LITERAL):
            self._advance()
            return Literal(span=token.span, value=token.value, literal_type=token.type)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            if self._check(TokenType.LPAREN):
                args = self._parse_arguments()
                return FunctionCall(
                    span=self._span_from(token),
                    name=token.value,
                    name_span=token.span,
                    arguments=args,
                )
            return Identifier(span=token.span, name=token.value)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._consume(TokenType.RPAREN, "')'")
            return expr

        self._error("expression")

    # =========================================================================
    # Lines
    # =========================================================================

    def _parse_bare_call(self) -> Expression:
        """Parse `name arg arg ...` up to the end of the statement."""
        name_token = self._advance()
        args: List[Expression] = []

        while not self._at_terminator():
            if args and self._match(TokenType.COMMA):
                continue
            args.append(self._parse_unary_expr())

        if not args:
            return Identifier(span=name_token.span, name=name_token.value)
        return FunctionCall(
            span=self._span_from(name_token),
            name=name_token.value,
            name_span=name_token.span,
            arguments=args,
        )

    def _parse_line(self) -> Line:
        """Parse one statement."""
        start = self._current()

        if not self._check(TokenType.IDENTIFIER):
            self._error("identifier at start of statement")

        if self._peek(1).type == TokenType.ASSIGN:
            target = self._advance()
            self._advance()  # consume '='
            value = self._parse_expression()
            span = self._span_from(start)
            line: Line = AssignmentLine(
                span=span,
                text=self._text_of(span),
                target=target.value,
                target_span=target.span,
                value=value,
            )
        elif self._peek(1).type in (TokenType.LPAREN, TokenType.DOT):
            expr = self._parse_postfix_expr()
            span = self._span_from(start)
            line = ExpressionLine(span=span, text=self._text_of(span), expression=expr)
        else:
            expr = self._parse_bare_call()
            span = self._span_from(start)
            line = ExpressionLine(span=span, text=self._text_of(span), expression=expr)

        if not self._at_terminator():
            self._error("end of statement")
        return line

    def parse_line(self) -> Line:
        """
        Parse exactly one statement (used for injected commands).

        Raises:
            ParserError: if the text is not a single valid statement
        """
        while self._match(TokenType.NEWLINE, TokenType.SEMICOLON):
            pass
        line = self._parse_line()
        while self._match(TokenType.NEWLINE, TokenType.SEMICOLON):
            pass
        if not self._is_at_end():
            self._error("end of input (only one statement allowed)")
        return line

    def parse_script(self) -> Script:
        """
        Parse all statements.

        Errors are collected in `self.diagnostics`; the returned Script holds
        every line that parsed cleanly.
        """
        start = self._current()
        lines: List[Line] = []

        while not self._is_at_end():
            if self._match(TokenType.NEWLINE, TokenType.SEMICOLON):
                continue
            try:
                lines.append(self._parse_line())
            except ParserError as e:
                self.diagnostics.add_error(e)
                if self.diagnostics.should_stop:
                    break
                self._synchronize()

        return Script(span=self._span_from(start), lines=lines, filename=self.filename or "")


def parse(tokens: List[Token], filename: Optional[str] = None,
          source: Optional[str] = None) -> Script:
    """
    Parse a token list into a Script.

    Raises:
        ParserError: the first parse error, with all of them attached in
        its `diagnostics` collector
    """
    parser = Parser(tokens, filename, source)
    script = parser.parse_script()
    if parser.diagnostics.has_errors:
        first = parser.diagnostics.errors[0]
        first.diagnostics = parser.diagnostics
        raise first
    return script
