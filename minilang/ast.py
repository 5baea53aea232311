from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class Located:
    line: int
    column: int = 0
    end_line: Optional[int] = None


@dataclass
class TypeExpr:
    name: str


@dataclass
class Param:
    name: str
    type_expr: TypeExpr
    loc: Located


@dataclass
class Block:
    statements: List["Stmt"]
    loc: Located


class Stmt:
    loc: Located


class Expr:
    loc: Located


@dataclass
class VarDecl(Stmt):
    loc: Located
    name: str
    type_expr: TypeExpr
    value: Optional[Expr] = None
    const: bool = False
    # Source text of the initializer, kept for reports only.
    init_text: str = "null"


@dataclass
class AssignStmt(Stmt):
    loc: Located
    target: str
    value: Optional[Expr]


@dataclass
class ExprStmt(Stmt):
    loc: Located
    value: Expr


@dataclass
class IfStmt(Stmt):
    loc: Located
    condition: Expr
    then_block: Block
    else_block: Optional[Block] = None


@dataclass
class WhileStmt(Stmt):
    loc: Located
    condition: Expr
    body: Block


@dataclass
class ForStmt(Stmt):
    loc: Located
    init: Optional[Stmt]
    condition: Optional[Expr]
    update: Optional[Stmt]
    body: Block


@dataclass
class ReturnStmt(Stmt):
    loc: Located
    value: Optional[Expr] = None


@dataclass
class BlockStmt(Stmt):
    loc: Located
    block: Block


@dataclass
class IntLiteral(Expr):
    loc: Located
    value: int


@dataclass
class FloatLiteral(Expr):
    loc: Located
    value: float


@dataclass
class StringLiteral(Expr):
    loc: Located
    value: str


@dataclass
class Name(Expr):
    loc: Located
    ident: str


@dataclass
class Paren(Expr):
    loc: Located
    value: Expr


@dataclass
class Not(Expr):
    loc: Located
    operand: Expr


@dataclass
class Binary(Expr):
    """Arithmetic (`+ - * /`), relational, equality or logical (`&& ||`) operator."""

    loc: Located
    op: str
    left: Expr
    right: Expr


@dataclass
class Assign(Expr):
    loc: Located
    target: str
    value: Optional[Expr]


@dataclass
class Call(Expr):
    loc: Located
    func: str
    args: List[Expr] = field(default_factory=list)


@dataclass
class FunctionDef:
    name: str
    params: List[Param]
    return_type: Optional[TypeExpr]
    body: Block
    loc: Located


@dataclass
class Program:
    # Top-level declarations in source order.
    declarations: List[Union[FunctionDef, VarDecl]]

    @property
    def functions(self) -> List[FunctionDef]:
        return [decl for decl in self.declarations if isinstance(decl, FunctionDef)]


ADDITIVE_OPS = frozenset({"+", "-"})
MULTIPLICATIVE_OPS = frozenset({"*", "/"})
RELATIONAL_OPS = frozenset({"<", "<=", ">", ">="})
EQUALITY_OPS = frozenset({"==", "!="})
LOGICAL_OPS = frozenset({"&&", "||"})
