"""
Diagnostic records shared by the parser and the semantic checker.

Diagnostics are collected, never raised: every phase appends to a sink and
callers inspect the ordered result once the phase finishes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Set


class DiagnosticCode(Enum):
    LEXICAL_ERROR = "LexicalError"
    SYNTAX_ERROR = "SyntaxError"
    DUPLICATE_DECLARATION = "DuplicateDeclaration"
    UNDECLARED_IDENTIFIER = "UndeclaredIdentifier"
    UNDECLARED_FUNCTION = "UndeclaredFunction"
    ARITY_MISMATCH = "ArityMismatch"
    TYPE_MISMATCH = "TypeMismatch"
    CONST_ASSIGNMENT = "ConstAssignment"
    MISSING_RETURN = "MissingReturn"
    ILLEGAL_MAIN_CALL = "IllegalMainCall"
    MISSING_MAIN = "MissingMain"
    DUPLICATE_MAIN = "DuplicateMain"
    UNKNOWN_TYPE = "UnknownType"


_PARSER_CODES = frozenset({DiagnosticCode.LEXICAL_ERROR, DiagnosticCode.SYNTAX_ERROR})


@dataclass(frozen=True)
class Diagnostic:
    """One reported problem. `line` is None for program-level diagnostics."""

    code: DiagnosticCode
    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    @property
    def phase(self) -> str:
        return "parser" if self.code in _PARSER_CODES else "semantic"

    def render(self) -> str:
        if self.code is DiagnosticCode.LEXICAL_ERROR:
            return f"Lexical error at line {self.line}:{self.column} - {self.message}"
        if self.code is DiagnosticCode.SYNTAX_ERROR:
            return f"Syntax error at line {self.line}:{self.column} - {self.message}"
        if self.line is None:
            return f"Semantic error: {self.message}"
        return f"Semantic error at line {self.line}: {self.message}"

    def __str__(self) -> str:
        return self.render()


class DiagnosticSink:
    """Insertion-ordered diagnostics; a second diagnostic rendering to the same text is dropped."""

    def __init__(self) -> None:
        self._items: List[Diagnostic] = []
        self._seen: Set[str] = set()

    def report(
        self,
        code: DiagnosticCode,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> bool:
        return self.add(Diagnostic(code=code, message=message, line=line, column=column))

    def add(self, diagnostic: Diagnostic) -> bool:
        rendered = diagnostic.render()
        if rendered in self._seen:
            return False
        self._seen.add(rendered)
        self._items.append(diagnostic)
        return True

    def extend(self, diagnostics: List[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.add(diagnostic)

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._items)

    def codes(self) -> List[DiagnosticCode]:
        return [d.code for d in self._items]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._items))

    def __bool__(self) -> bool:
        return bool(self._items)
