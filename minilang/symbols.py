from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from .types import Type


@dataclass
class Symbol:
    name: str
    type: Type
    is_const: bool = False
    init_text: str = "null"
    line: int = 0


class ControlKind(Enum):
    IF = "if"
    WHILE = "while"
    FOR = "for"


@dataclass(frozen=True)
class ControlRecord:
    kind: ControlKind
    start_line: int
    end_line: int

    def __str__(self) -> str:
        return f"<{self.kind.value}, {self.start_line}, {self.end_line}>"


@dataclass
class FunctionSymbol(Symbol):
    """
    Signature plus per-body facts for one function.

    `type` is the return type. `locals` is a flat report of every local
    declared anywhere in the body; it is never used for name resolution.
    """

    parameters: List[Symbol] = field(default_factory=list)
    locals: List[Symbol] = field(default_factory=list)
    control_structures: List[ControlRecord] = field(default_factory=list)
    is_recursive: bool = False
    has_return: bool = False
    is_main: bool = False
