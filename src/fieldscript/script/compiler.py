"""
Compiler for fieldscript.

Turns script source into a StatementSequence by resolving every identifier
against the registry, checking argument counts and types against the
declared signatures, and binding arguments into executable expressions.

Compilation is a pure function of (source, registry): it never touches an
execution context, so it can run any number of times, for example to vet a
script without executing it. The whole script is compiled before anything
runs, and every error found is reported.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .ast import (
    Expression, Literal, Identifier, FunctionCall, MethodCall, UnaryOp,
    BinaryOp, Line, ExpressionLine, AssignmentLine, Script, leading_identifier,
)
from .errors import (
    CompileError,
    DiagnosticCollector,
    LexerError,
    error_type_mismatch,
    error_unknown_identifier,
    error_arity,
    error_not_assignable,
    error_no_method,
)
from .lexer import tokenize
from .parser import Parser
from .registry import Registry, RegistryEntry, EntryKind
from .statements import (
    BoundExpr, Const, ValueRef, Call, ToFloat, Unary, Arith,
    Statement, StatementSequence, fold_unary, fold_binary,
)
from .tokens import SourceSpan, TokenType
from .types import (
    Type, INT, FLOAT, BOOL, STRING, arithmetic_result,
)


LITERAL_TYPES = {
    TokenType.INT_LITERAL: INT,
    TokenType.FLOAT_LITERAL: FLOAT,
    TokenType.STRING_LITERAL: STRING,
    TokenType.BOOL_LITERAL: BOOL,
}

OPERATOR_SYMBOLS = {
    TokenType.PLUS: "+",
    TokenType.MINUS: "-",
    TokenType.STAR: "*",
    TokenType.SLASH: "/",
}


@dataclass
class CheckResult:
    """Result of vetting a script without running it."""
    statements: Optional[StatementSequence] = None
    diagnostics: DiagnosticCollector = field(default_factory=DiagnosticCollector)
    error: Optional[CompileError] = None

    @property
    def has_errors(self) -> bool:
        return self.error is not None

    @property
    def statement_count(self) -> int:
        return len(self.statements) if self.statements is not None else 0


class Compiler:
    """
    Resolves and type-checks parsed lines against a registry.

    Usage:
        compiler = Compiler(registry, source=source)
        sequence = compiler.compile(script)
    """

    def __init__(self, registry: Registry, source: Optional[str] = None,
                 origin: str = "script", max_errors: int = 20):
        self.registry = registry
        self.origin = origin
        self.diagnostics = DiagnosticCollector(max_errors)
        self._source_lines = source.splitlines() if source else []

    def _source_line(self, span: Optional[SourceSpan]) -> Optional[str]:
        if span is None:
            return None
        line_num = span.start.line
        if 1 <= line_num <= len(self._source_lines):
            return self._source_lines[line_num - 1]
        return None

    # =========================================================================
    # Lines
    # =========================================================================

    def compile(self, script: Script) -> StatementSequence:
        """
        Compile every line of a script.

        Raises:
            CompileError: the first error found, with every error attached
            in its `diagnostics` collector
        """
        sequence = StatementSequence()
        for line in script.lines:
            try:
                sequence.append(self.compile_line(line))
            except CompileError as e:
                self.diagnostics.add_error(e)
                if self.diagnostics.should_stop:
                    break

        if self.diagnostics.has_errors:
            first = self.diagnostics.errors[0]
            first.diagnostics = self.diagnostics
            raise first
        return sequence

    def compile_line(self, line: Line) -> Statement:
        """Compile a single parsed line into a Statement."""
        if isinstance(line, AssignmentLine):
            return self._compile_assignment(line)
        if isinstance(line, ExpressionLine):
            return self._compile_expression_line(line)
        raise TypeError(f"unknown line type: {type(line).__name__}")

    def _compile_expression_line(self, line: ExpressionLine) -> Statement:
        lead = leading_identifier(line.expression)
        if lead is not None:
            # Report an unknown leading name before anything in its arguments
            self._resolve(lead.name, lead.span)
        bound = self._bind(line.expression)
        return Statement(text=line.text, span=line.span, expr=bound, origin=self.origin)

    def _compile_assignment(self, line: AssignmentLine) -> Statement:
        entry = self._resolve(line.target, line.target_span)
        if entry.kind != EntryKind.VALUE or not entry.settable:
            raise error_not_assignable(
                entry.name, line.target_span, self._source_line(line.target_span)
            )
        value = self._bind(line.value)
        value = self._coerce(value, entry.returns, 0, entry.name, line.value.span)
        return Statement(
            text=line.text, span=line.span, expr=value, target=entry, origin=self.origin
        )

    # =========================================================================
    # Expressions
    # =========================================================================

    def _resolve(self, name: str, span: SourceSpan) -> RegistryEntry:
        entry = self.registry.lookup(name)
        if entry is None:
            raise error_unknown_identifier(name, span, self._source_line(span))
        return entry

    def _bind(self, expr: Expression) -> BoundExpr:
        """Resolve and type-check an expression."""
        if isinstance(expr, Literal):
            return Const(expr.value, LITERAL_TYPES[expr.literal_type])
        if isinstance(expr, Identifier):
            return self._bind_identifier(expr)
        if isinstance(expr, FunctionCall):
            return self._bind_function_call(expr)
        if isinstance(expr, MethodCall):
            return self._bind_method_call(expr)
        if isinstance(expr, UnaryOp):
            return self._bind_unary(expr)
        if isinstance(expr, BinaryOp):
            return self._bind_binary(expr)
        raise TypeError(f"unknown expression type: {type(expr).__name__}")

    def _bind_identifier(self, expr: Identifier) -> BoundExpr:
        entry = self._resolve(expr.name, expr.span)
        if entry.kind == EntryKind.FUNCTION:
            return self._bind_call(entry, [], expr.span)
        if not entry.settable:
            return Const(entry.obj, entry.returns)
        return ValueRef(entry)

    def _bind_function_call(self, expr: FunctionCall) -> BoundExpr:
        entry = self._resolve(expr.name, expr.name_span)
        if entry.kind != EntryKind.FUNCTION:
            raise error_type_mismatch(
                0, "function", entry.returns.name, expr.name_span,
                self._source_line(expr.name_span), entry.name,
            )
        return self._bind_call(entry, expr.arguments, expr.span)

    def _bind_method_call(self, expr: MethodCall) -> BoundExpr:
        receiver = self._bind(expr.receiver)
        method = self.registry.resolve_method(receiver.type, expr.method)
        if method is None:
            raise error_no_method(
                receiver.type.name, expr.method, expr.method_span,
                self._source_line(expr.method_span),
            )
        return self._bind_call(method, expr.arguments, expr.span, receiver)

    def _bind_call(self, entry: RegistryEntry, arguments: List[Expression],
                   span: SourceSpan, receiver: Optional[BoundExpr] = None) -> BoundExpr:
        """Check arity and argument types against the entry's signature."""
        if len(arguments) != entry.arity:
            raise error_arity(
                entry.name, entry.arity, len(arguments), span, self._source_line(span)
            )

        bound_args = []
        if receiver is not None:
            bound_args.append(receiver)
        for i, (arg, param) in enumerate(zip(arguments, entry.params)):
            bound = self._bind(arg)
            bound_args.append(self._coerce(bound, param.type, i + 1, entry.name, arg.span))

        return Call(entry, tuple(bound_args))

    def _coerce(self, bound: BoundExpr, expected: Type, index: int,
                context: str, span: SourceSpan) -> BoundExpr:
        """Check assignability, promoting int to float where needed."""
        if bound.type == expected:
            return bound
        if not expected.is_assignable_from(bound.type):
            raise error_type_mismatch(
                index, expected.name, bound.type.name, span,
                self._source_line(span), context,
            )
        if expected == FLOAT and bound.type == INT:
            if bound.is_constant:
                return Const(float(bound.evaluate(None)), FLOAT)
            return ToFloat(bound)
        return bound

    def _bind_unary(self, expr: UnaryOp) -> BoundExpr:
        operand = self._bind(expr.operand)
        op = OPERATOR_SYMBOLS[expr.operator]
        if operand.type not in (INT, FLOAT):
            raise error_type_mismatch(
                1, "float", operand.type.name, expr.operand.span,
                self._source_line(expr.operand.span), f"unary {op}",
            )
        if operand.is_constant:
            return Const(fold_unary(op, operand.evaluate(None)), operand.type)
        return Unary(op, operand, operand.type)

    def _bind_binary(self, expr: BinaryOp) -> BoundExpr:
        left = self._bind(expr.left)
        right = self._bind(expr.right)
        op = OPERATOR_SYMBOLS[expr.operator]

        result_type = arithmetic_result(left.type, right.type, true_division=(op == "/"))
        if result_type is None:
            bad, index = (expr.left, 1) if left.type not in (INT, FLOAT) else (expr.right, 2)
            found = left.type if index == 1 else right.type
            raise error_type_mismatch(
                index, "float", found.name, bad.span, self._source_line(bad.span), op,
            )

        if left.is_constant and right.is_constant:
            try:
                return Const(fold_binary(op, left.evaluate(None), right.evaluate(None)), result_type)
            except ZeroDivisionError:
                pass  # left for run time, where it fails the statement
        return Arith(op, left, right, result_type)


# =============================================================================
# Entry Points
# =============================================================================

def _parse_source(source: str, filename: Optional[str], max_errors: int) -> Script:
    try:
        tokens = tokenize(source, filename)
    except LexerError as e:
        collector = DiagnosticCollector(max_errors)
        collector.add_error(e)
        e.diagnostics = collector
        raise
    parser = Parser(tokens, filename, source, max_errors)
    script = parser.parse_script()
    if parser.diagnostics.has_errors:
        first = parser.diagnostics.errors[0]
        first.diagnostics = parser.diagnostics
        raise first
    return script


def compile_script(source: str, registry: Registry, filename: Optional[str] = None,
                   max_errors: int = 20) -> StatementSequence:
    """
    Compile a whole script.

    Args:
        source: Script text
        registry: The (sealed) identifier registry
        filename: Optional filename for error messages
        max_errors: Stop collecting after this many errors

    Returns:
        The StatementSequence in source order

    Raises:
        CompileError: LexerError, ParserError, UnknownIdentifierError,
        ArityError, TypeMismatchError or NotAssignableError
    """
    script = _parse_source(source, filename, max_errors)
    compiler = Compiler(registry, source=source, max_errors=max_errors)
    return compiler.compile(script)


def compile_statement(text: str, registry: Registry, origin: str = "remote") -> Statement:
    """
    Compile exactly one statement, as submitted through the command channel.

    Raises:
        CompileError: if the text is not exactly one valid statement
    """
    tokens = tokenize(text, filename=f"<{origin}>")
    line = Parser(tokens, f"<{origin}>", text).parse_line()
    return Compiler(registry, source=text, origin=origin).compile_line(line)


def check_script(source: str, registry: Registry, filename: Optional[str] = None,
                 max_errors: int = 20) -> CheckResult:
    """Compile without executing and report the outcome (vet mode)."""
    try:
        sequence = compile_script(source, registry, filename, max_errors)
    except CompileError as e:
        return CheckResult(diagnostics=e.diagnostics or DiagnosticCollector(), error=e)
    return CheckResult(statements=sequence)
