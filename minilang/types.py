from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from .ast import TypeExpr


class Type(Enum):
    INT = "int"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    VOID = "void"
    # Omitted initializer; accepted by every target.
    NULL = "null"
    # Already erroneous; accepted by no target.
    UNKNOWN = "unknown"

    def __str__(self) -> str:  # pragma: no cover - trivial repr
        return self.value


INT = Type.INT
FLOAT = Type.FLOAT
DOUBLE = Type.DOUBLE
STRING = Type.STRING
VOID = Type.VOID
NULL = Type.NULL
UNKNOWN = Type.UNKNOWN

_DECLARABLE: Dict[str, Type] = {
    "int": INT,
    "float": FLOAT,
    "double": DOUBLE,
    "string": STRING,
    "void": VOID,
}

# target -> value types it accepts besides itself
_WIDENINGS: Dict[Type, frozenset] = {
    DOUBLE: frozenset({FLOAT, INT}),
    FLOAT: frozenset({INT}),
}


class TypeSystemError(Exception):
    pass


def resolve_type(type_expr: Optional[TypeExpr]) -> Type:
    """Map a declared type name to its `Type`; a missing type means `void`."""
    if type_expr is None:
        return VOID
    builtin = _DECLARABLE.get(type_expr.name)
    if builtin is None:
        raise TypeSystemError(f"Type '{type_expr.name}' is not defined")
    return builtin


def compatible(target: Type, value: Type) -> bool:
    if value is UNKNOWN:
        return False
    if value is NULL:
        return True
    if target is value:
        return True
    return value in _WIDENINGS.get(target, frozenset())


def _numeric_result(left: Type, right: Type) -> Type:
    if left in (FLOAT, DOUBLE) or right in (FLOAT, DOUBLE):
        return FLOAT
    if left is INT and right is INT:
        return INT
    return UNKNOWN


def additive_result(left: Type, right: Type) -> Type:
    """Result of `+`/`-`: any string operand means concatenation."""
    if left is STRING or right is STRING:
        return STRING
    return _numeric_result(left, right)


def multiplicative_result(left: Type, right: Type) -> Type:
    return _numeric_result(left, right)
