"""
Executable statements produced by the compiler.

A Statement holds fully resolved, type-checked bound expressions: every
identifier already points at its RegistryEntry and every literal is a
constant. Evaluation needs only the execution context, never the registry
or the source text.
"""

from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple, TYPE_CHECKING
import operator

from .registry import RegistryEntry
from .tokens import SourceSpan
from .types import Type, FLOAT, NONE

if TYPE_CHECKING:
    from .runtime.context import ExecutionContext


# =============================================================================
# Bound Expressions
# =============================================================================

class BoundExpr:
    """A resolved expression with a known semantic type."""
    type: Type

    def evaluate(self, ctx: "ExecutionContext") -> Any:
        raise NotImplementedError

    @property
    def is_constant(self) -> bool:
        return False


@dataclass(frozen=True)
class Const(BoundExpr):
    """A literal or folded constant."""
    value: Any
    type: Type

    def evaluate(self, ctx: "ExecutionContext") -> Any:
        return self.value

    @property
    def is_constant(self) -> bool:
        return True


@dataclass(frozen=True)
class ValueRef(BoundExpr):
    """A reference to a registered value, read from the context at run time."""
    entry: RegistryEntry

    @property
    def type(self) -> Type:
        return self.entry.returns

    def evaluate(self, ctx: "ExecutionContext") -> Any:
        return ctx.get_value(self.entry)


@dataclass(frozen=True)
class Call(BoundExpr):
    """
    A call of a registered function or method.

    For methods the receiver is the first element of `args`.
    """
    entry: RegistryEntry
    args: Tuple[BoundExpr, ...]

    @property
    def type(self) -> Type:
        return self.entry.returns

    def evaluate(self, ctx: "ExecutionContext") -> Any:
        values = [a.evaluate(ctx) for a in self.args]
        if self.entry.takes_context:
            return self.entry.obj(ctx, *values)
        return self.entry.obj(*values)


@dataclass(frozen=True)
class ToFloat(BoundExpr):
    """int to float promotion of a non-constant argument."""
    operand: BoundExpr
    type: Type = FLOAT

    def evaluate(self, ctx: "ExecutionContext") -> Any:
        return float(self.operand.evaluate(ctx))


_UNARY = {
    "-": operator.neg,
    "+": operator.pos,
}

_BINARY = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}


@dataclass(frozen=True)
class Unary(BoundExpr):
    """Numeric negation or identity."""
    op: str
    operand: BoundExpr
    type: Type

    def evaluate(self, ctx: "ExecutionContext") -> Any:
        return _UNARY[self.op](self.operand.evaluate(ctx))


@dataclass(frozen=True)
class Arith(BoundExpr):
    """Numeric binary arithmetic."""
    op: str
    left: BoundExpr
    right: BoundExpr
    type: Type

    def evaluate(self, ctx: "ExecutionContext") -> Any:
        return _BINARY[self.op](self.left.evaluate(ctx), self.right.evaluate(ctx))


def fold_unary(op: str, value: Any) -> Any:
    return _UNARY[op](value)


def fold_binary(op: str, left: Any, right: Any) -> Any:
    return _BINARY[op](left, right)


# =============================================================================
# Statements
# =============================================================================

@dataclass(frozen=True)
class Statement:
    """
    One executable unit compiled from a script line.

    `expr` is the bound right-hand side (or the whole call); `target` is the
    settable value entry for assignments.
    """
    text: str
    span: Optional[SourceSpan]
    expr: BoundExpr
    target: Optional[RegistryEntry] = None
    origin: str = "script"

    @property
    def line(self) -> int:
        return self.span.start.line if self.span is not None else 0

    @property
    def entry(self) -> Optional[RegistryEntry]:
        """The registry entry this statement resolves to."""
        if self.target is not None:
            return self.target
        if isinstance(self.expr, (Call, ValueRef)):
            return self.expr.entry
        return None

    @property
    def result_type(self) -> Type:
        return NONE if self.target is not None else self.expr.type

    def execute(self, ctx: "ExecutionContext") -> Any:
        """Evaluate the statement against the execution context."""
        value = self.expr.evaluate(ctx)
        if self.target is not None:
            ctx.assign(self.target, value)
            return None
        return value

    def __str__(self) -> str:
        return self.text


class StatementSequence:
    """
    Ordered, append-only list of Statements.

    Insertion order is execution order. Statements are never reordered,
    replaced or removed.
    """

    def __init__(self, statements: Optional[List[Statement]] = None):
        self._statements: List[Statement] = list(statements or [])

    def append(self, statement: Statement) -> None:
        self._statements.append(statement)

    def extend(self, statements) -> None:
        for statement in statements:
            self.append(statement)

    def __getitem__(self, index: int) -> Statement:
        return self._statements[index]

    def __len__(self) -> int:
        return len(self._statements)

    def __iter__(self) -> Iterator[Statement]:
        return iter(list(self._statements))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StatementSequence):
            return NotImplemented
        return self._statements == other._statements

    def __repr__(self) -> str:
        return f"StatementSequence({len(self)} statements)"

    def texts(self) -> List[str]:
        """Source text of every statement, in order."""
        return [s.text for s in self._statements]
