"""
Semantic types for registry signatures.

Every registered function declares its parameter and return types
structurally at registration time; the compiler checks call sites against
these declarations. Types are small frozen value objects:

    Scalars:  int, float, bool, string
    Objects:  vector, config
    Special:  none (no result), any (accepts every type)
"""

from dataclasses import dataclass
from typing import Dict, Optional
from abc import ABC, abstractmethod


@dataclass(frozen=True)
class Type(ABC):
    """Base class for all semantic types."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The type name for display/errors."""
        pass

    def is_assignable_from(self, other: "Type") -> bool:
        """Check if this type can accept a value of the other type."""
        return self == other

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class PrimitiveType(Type):
    """A scalar type (int, float, bool, string)."""
    _name: str

    @property
    def name(self) -> str:
        return self._name

    def is_assignable_from(self, other: "Type") -> bool:
        if self == other:
            return True
        # int can be promoted to float
        if self._name == "float" and isinstance(other, PrimitiveType) and other._name == "int":
            return True
        return False


@dataclass(frozen=True)
class ObjectType(Type):
    """An opaque simulation object (vector, config)."""
    _name: str

    @property
    def name(self) -> str:
        return self._name


@dataclass(frozen=True)
class NoneType(Type):
    """The result type of statements that produce no value."""

    @property
    def name(self) -> str:
        return "none"


@dataclass(frozen=True)
class AnyType(Type):
    """Accepts a value of any type (e.g. print)."""

    @property
    def name(self) -> str:
        return "any"

    def is_assignable_from(self, other: "Type") -> bool:
        return True


# =============================================================================
# Built-in Type Instances
# =============================================================================

INT = PrimitiveType("int")
FLOAT = PrimitiveType("float")
BOOL = PrimitiveType("bool")
STRING = PrimitiveType("string")

VECTOR = ObjectType("vector")
CONFIG = ObjectType("config")

NONE = NoneType()
ANY = AnyType()


BUILTIN_TYPES: Dict[str, Type] = {
    "int": INT,
    "float": FLOAT,
    "bool": BOOL,
    "string": STRING,
    "vector": VECTOR,
    "config": CONFIG,
    "none": NONE,
    "any": ANY,
}


def resolve_type_name(name: str) -> Optional[Type]:
    """Look up a type by name."""
    return BUILTIN_TYPES.get(name.lower())


def is_numeric(t: Type) -> bool:
    """Check if type is numeric (int or float)."""
    return t == INT or t == FLOAT


def arithmetic_result(left: Type, right: Type, true_division: bool = False) -> Optional[Type]:
    """
    Result type of a binary arithmetic operation.

    Returns None if either operand is not numeric. int op int stays int
    except for true division.
    """
    if not (is_numeric(left) and is_numeric(right)):
        return None
    if left == INT and right == INT and not true_division:
        return INT
    return FLOAT
