"""
Script-specific exceptions and error handling.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E2xx: Compile errors (identifier resolution, arity, types)
- E4xx: Runtime statement errors
- E5xx: Injected command errors
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List
from .tokens import SourceSpan


class ErrorSeverity(Enum):
    """Severity levels for diagnostics."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HINT = "hint"


@dataclass
class Diagnostic:
    """A single diagnostic message (error, warning, etc.)."""
    code: str                       # E001, E201, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity
    span: Optional[SourceSpan] = None
    source_line: Optional[str] = None   # The actual line of source code
    hints: List[str] = field(default_factory=list)

    def format(self, show_source: bool = True) -> str:
        """Format the diagnostic for display."""
        parts = []

        loc = f"{self.span.start}: " if self.span is not None else ""
        parts.append(f"{loc}{self.severity.value}[{self.code}]: {self.message}")

        # Source line with caret
        if show_source and self.span is not None and self.source_line is not None:
            parts.append("  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            if self.span.start.line == self.span.end.line:
                end_col = self.span.end.column
            else:
                end_col = len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        for hint in self.hints:
            parts.append(f"    = hint: {hint}")

        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for the command channel."""
        result = {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "range": None,
            "hints": list(self.hints),
        }
        if self.span is not None:
            result["range"] = {
                "start": {
                    "line": self.span.start.line,
                    "column": self.span.start.column,
                    "offset": self.span.start.offset,
                },
                "end": {
                    "line": self.span.end.line,
                    "column": self.span.end.column,
                    "offset": self.span.end.offset,
                },
            }
        return result


class ScriptError(Exception):
    """Base exception for all fieldscript errors."""
    pass


class RegistryError(ScriptError):
    """Registration or lookup failure in the identifier registry."""
    pass


class DuplicateNameError(RegistryError):
    """A name (compared case-insensitively) was registered twice."""

    def __init__(self, name: str, existing: str):
        self.name = name
        self.existing = existing
        super().__init__(f"identifier '{name}' already registered as '{existing}'")


class NotFoundError(RegistryError):
    """No registry entry exists for the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"identifier '{name}' not found")


class DiagnosticError(ScriptError):
    """An error that carries a formatted diagnostic."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    @property
    def code(self) -> str:
        return self.diagnostic.code

    @property
    def span(self) -> Optional[SourceSpan]:
        return self.diagnostic.span

    def __str__(self) -> str:
        return self.diagnostic.format()


class CompileError(DiagnosticError):
    """
    Error found while compiling script source.

    When raised by a whole-script compile, `diagnostics` holds every error
    found in the script, not just this first one.
    """

    def __init__(self, diagnostic: Diagnostic):
        super().__init__(diagnostic)
        self.diagnostics: Optional["DiagnosticCollector"] = None


class LexerError(CompileError):
    """Error during lexical analysis (E0xx)."""
    pass


class ParserError(CompileError):
    """Error during parsing (E1xx)."""
    pass


class TypeMismatchError(CompileError):
    """An argument or assigned value has the wrong semantic type (E201)."""

    def __init__(self, diagnostic: Diagnostic, index: int, expected: str, found: str):
        super().__init__(diagnostic)
        self.index = index
        self.expected = expected
        self.found = found


class UnknownIdentifierError(CompileError):
    """An identifier does not resolve in the registry (E202)."""

    def __init__(self, diagnostic: Diagnostic, name: str):
        super().__init__(diagnostic)
        self.name = name


class ArityError(CompileError):
    """Wrong number of arguments in a call (E203)."""

    def __init__(self, diagnostic: Diagnostic, name: str, expected: int,
                 found: int, index: int):
        super().__init__(diagnostic)
        self.name = name
        self.expected = expected
        self.found = found
        self.index = index


class NotAssignableError(CompileError):
    """Assignment to something that is not a settable value (E204)."""

    def __init__(self, diagnostic: Diagnostic, name: str):
        super().__init__(diagnostic)
        self.name = name


class RuntimeStatementError(DiagnosticError):
    """A statement raised while executing (E400)."""

    def __init__(self, diagnostic: Diagnostic, position: int, statement_text: str):
        super().__init__(diagnostic)
        self.position = position
        self.statement_text = statement_text


class InjectionCompileError(DiagnosticError):
    """An injected command failed to compile (E500)."""

    def __init__(self, diagnostic: Diagnostic, cause: CompileError, origin: str):
        super().__init__(diagnostic)
        self.cause = cause
        self.origin = origin


# --- Lexer error codes ---

def error_unexpected_character(char: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E001: Unexpected character."""
    diag = Diagnostic(
        code="E001",
        message=f"unexpected character '{char}'",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


def error_unterminated_string(span: SourceSpan, source_line: str = None) -> LexerError:
    """E002: Unterminated string literal."""
    diag = Diagnostic(
        code="E002",
        message="unterminated string literal",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["string literals must be closed with matching quotes on the same line"],
    )
    return LexerError(diag)


def error_unterminated_comment(span: SourceSpan, source_line: str = None) -> LexerError:
    """E004: Unterminated multi-line comment."""
    diag = Diagnostic(
        code="E004",
        message="unterminated multi-line comment (expected closing */)",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


def error_invalid_escape_sequence(seq: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E005: Invalid escape sequence in string."""
    diag = Diagnostic(
        code="E005",
        message=f"invalid escape sequence '\\{seq}'",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["valid escape sequences: \\n, \\t, \\r, \\\", \\', \\\\"],
    )
    return LexerError(diag)


def error_invalid_number_literal(text: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E006: Invalid number literal."""
    diag = Diagnostic(
        code="E006",
        message=f"invalid number literal '{text}'",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


def error_dangling_continuation(span: SourceSpan, source_line: str = None) -> LexerError:
    """E009: Line continuation not followed by a newline."""
    diag = Diagnostic(
        code="E009",
        message="'\\' must be the last character on a line",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


# --- Parser error codes ---

def error_unexpected_token(expected: str, found: str, span: SourceSpan,
                           source_line: str = None) -> ParserError:
    """E101: Unexpected token."""
    diag = Diagnostic(
        code="E101",
        message=f"expected {expected}, found {found}",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return ParserError(diag)


def error_unexpected_eof(expected: str, span: SourceSpan) -> ParserError:
    """E102: Unexpected end of file."""
    diag = Diagnostic(
        code="E102",
        message=f"unexpected end of file, expected {expected}",
        severity=ErrorSeverity.ERROR,
        span=span,
    )
    return ParserError(diag)


# --- Compile error codes ---

def error_type_mismatch(index: int, expected: str, found: str, span: SourceSpan,
                        source_line: str = None, context: str = "") -> TypeMismatchError:
    """E201: Type mismatch."""
    where = f" for argument {index}" if index > 0 else ""
    if context:
        where += f" of '{context}'"
    diag = Diagnostic(
        code="E201",
        message=f"type mismatch{where}: expected '{expected}', found '{found}'",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return TypeMismatchError(diag, index, expected, found)


def error_unknown_identifier(name: str, span: SourceSpan,
                             source_line: str = None) -> UnknownIdentifierError:
    """E202: Unknown identifier."""
    diag = Diagnostic(
        code="E202",
        message=f"unknown identifier '{name}'",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return UnknownIdentifierError(diag, name)


def error_arity(name: str, expected: int, found: int, span: SourceSpan,
                source_line: str = None) -> ArityError:
    """E203: Wrong number of arguments."""
    if found < expected:
        index = found + 1
        detail = f"missing argument {index}"
    else:
        index = expected + 1
        detail = f"unexpected argument {index}"
    diag = Diagnostic(
        code="E203",
        message=f"'{name}' expects {expected} argument(s), got {found} ({detail})",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return ArityError(diag, name, expected, found, index)


def error_not_assignable(name: str, span: SourceSpan,
                         source_line: str = None) -> NotAssignableError:
    """E204: Assignment target is not a settable value."""
    diag = Diagnostic(
        code="E204",
        message=f"cannot assign to '{name}'",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["only settable values can appear on the left of '='"],
    )
    return NotAssignableError(diag, name)


def error_no_method(type_name: str, method: str, span: SourceSpan,
                    source_line: str = None) -> UnknownIdentifierError:
    """E205: Unknown method for a receiver type."""
    diag = Diagnostic(
        code="E205",
        message=f"type '{type_name}' has no method '{method}'",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return UnknownIdentifierError(diag, method)


# --- Runtime and injection error codes ---

def error_statement_failed(position: int, statement_text: str, cause: BaseException,
                           span: Optional[SourceSpan] = None,
                           source_line: str = None) -> RuntimeStatementError:
    """E400: Statement raised during execution."""
    diag = Diagnostic(
        code="E400",
        message=f"statement {position + 1} '{statement_text}' failed: {cause}",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return RuntimeStatementError(diag, position, statement_text)


def error_device_unavailable(position: int, cause: BaseException) -> RuntimeStatementError:
    """E401: The worker could not take ownership of the device."""
    diag = Diagnostic(
        code="E401",
        message=f"worker cannot run on the device: {cause}",
        severity=ErrorSeverity.ERROR,
    )
    return RuntimeStatementError(diag, position, "")


def error_injection_failed(cause: CompileError, origin: str) -> InjectionCompileError:
    """E500: Injected command did not compile."""
    diag = Diagnostic(
        code="E500",
        message=f"injected command from {origin} rejected: {cause.diagnostic.message}",
        severity=ErrorSeverity.ERROR,
        span=cause.diagnostic.span,
        source_line=cause.diagnostic.source_line,
    )
    return InjectionCompileError(diag, cause, origin)


class DiagnosticCollector:
    """Collects diagnostics during compilation."""

    def __init__(self, max_errors: int = 20):
        self.diagnostics: List[Diagnostic] = []
        self.errors: List[DiagnosticError] = []
        self.max_errors = max_errors
        self._error_count = 0

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic."""
        self.diagnostics.append(diagnostic)
        if diagnostic.severity == ErrorSeverity.ERROR:
            self._error_count += 1

    def add_error(self, error: DiagnosticError) -> None:
        """Add an error exception as a diagnostic."""
        self.errors.append(error)
        self.add(error.diagnostic)

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == ErrorSeverity.WARNING)

    @property
    def has_errors(self) -> bool:
        return self._error_count > 0

    @property
    def should_stop(self) -> bool:
        """Check if we've hit the max error limit."""
        return self._error_count >= self.max_errors

    def format_all(self, show_source: bool = True) -> str:
        """Format all diagnostics for display."""
        parts = [d.format(show_source) for d in self.diagnostics]
        if self._error_count > 0:
            parts.append(f"{self._error_count} error(s), {self.warning_count} warning(s)")
        elif self.warning_count > 0:
            parts.append(f"{self.warning_count} warning(s)")
        return "\n\n".join(parts)

    def to_json(self) -> dict:
        """Convert all diagnostics to JSON format."""
        return {
            "diagnostics": [d.to_json() for d in self.diagnostics],
            "error_count": self._error_count,
            "warning_count": self.warning_count,
        }
