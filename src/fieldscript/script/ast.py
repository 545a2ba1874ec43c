"""
Abstract Syntax Tree (AST) node definitions for fieldscript.

A script parses into a flat list of lines (assignments and calls); the
compiler resolves each line against the registry and turns it into an
executable Statement.
"""

from dataclasses import dataclass, field
from typing import List, Any, Optional
from abc import ABC
from .tokens import SourceSpan, TokenType


@dataclass
class AstNode(ABC):
    """Base class for all AST nodes."""
    span: SourceSpan  # Source location for error reporting


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass
class Expression(AstNode):
    """Base class for all expressions."""
    pass


@dataclass
class Literal(Expression):
    """A literal value: 42, 3.14, "hello", true."""
    value: Any
    literal_type: TokenType


@dataclass
class Identifier(Expression):
    """A bare name reference."""
    name: str


@dataclass
class FunctionCall(Expression):
    """A call of a registered function: name(args) or name arg arg."""
    name: str
    name_span: SourceSpan
    arguments: List[Expression] = field(default_factory=list)


@dataclass
class MethodCall(Expression):
    """A method call on a receiver: expr.name(args)."""
    receiver: Expression
    method: str
    method_span: SourceSpan
    arguments: List[Expression] = field(default_factory=list)


@dataclass
class UnaryOp(Expression):
    """Unary operation: -x, +x."""
    operator: TokenType
    operand: Expression


@dataclass
class BinaryOp(Expression):
    """Binary arithmetic: a + b, a * b, ..."""
    left: Expression
    operator: TokenType
    right: Expression


# =============================================================================
# Line Nodes
# =============================================================================

@dataclass
class Line(AstNode):
    """Base class for one logical script line."""
    text: str  # Source text of the statement


@dataclass
class ExpressionLine(Line):
    """A call or value reference evaluated for its effect."""
    expression: Expression


@dataclass
class AssignmentLine(Line):
    """Assignment to a settable registry value: m = uniform(1, 0, 0)."""
    target: str
    target_span: SourceSpan
    value: Expression


@dataclass
class Script(AstNode):
    """A parsed script: its lines in source order."""
    lines: List[Line] = field(default_factory=list)
    filename: str = ""


def leading_identifier(expr: Expression) -> Optional[Identifier]:
    """
    The identifier a line's expression starts with.

    For `vortex(1, 1).translate(1e-9, 0, 0)` this is `vortex`.
    Returns None for expressions that do not start with a name.
    """
    while isinstance(expr, MethodCall):
        expr = expr.receiver
    if isinstance(expr, FunctionCall):
        return Identifier(span=expr.name_span, name=expr.name)
    if isinstance(expr, Identifier):
        return expr
    return None
