from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken

from .ast import (
    Assign,
    AssignStmt,
    Binary,
    Block,
    BlockStmt,
    Call,
    Expr,
    ExprStmt,
    FloatLiteral,
    ForStmt,
    FunctionDef,
    IfStmt,
    IntLiteral,
    Located,
    Name,
    Not,
    Param,
    Paren,
    Program,
    ReturnStmt,
    Stmt,
    StringLiteral,
    TypeExpr,
    VarDecl,
    WhileStmt,
)
from .diagnostics import Diagnostic, DiagnosticCode

_log = logging.getLogger(__name__)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
    _GRAMMAR_SRC,
    parser="lalr",
    lexer="basic",
    start="program",
    propagate_positions=True,
    maybe_placeholders=False,
)

TokenInfo = Tuple[str, str, int]


# Terminals the recovery may synthesize, with their source text.
_SYNTHETIC = {"RBRACE": "}", "SEMICOLON": ";", "RPAR": ")"}
# Tried before the unexpected token, in this order.
_INSERTABLE = ("SEMICOLON", "RPAR")
# Tried at end of input, in this order.
_CLOSERS = ("RBRACE", "SEMICOLON", "RPAR")
_BOUNDARIES = frozenset({"SEMICOLON", "RBRACE"})
_MAX_EOF_INSERTS = 64


@dataclass
class ParseResult:
    """Outcome of a recovering parse; `program` is None when recovery failed."""

    program: Optional[Program]
    diagnostics: List[Diagnostic] = field(default_factory=list)


def parse_program(source: str) -> Program:
    """Strict parse: lark's UnexpectedInput propagates on the first error."""
    tree = _PARSER.parse(source)
    return _AstBuilder(source).program(tree)


def parse_with_diagnostics(source: str) -> ParseResult:
    """
    Parse with error recovery.

    Unexpected characters are skipped. An unexpected token is repaired by
    inserting a missing `;` or `)`, by unwinding to a `;`/`}` boundary, or
    failing both, by dropping it. At end of input the open constructs are
    closed. Every repair is recorded as a lexical or syntax diagnostic; when
    the input cannot be completed the result has no program.
    """
    recovery = _Recovery(last_line=source.count("\n") + 1)
    try:
        tree = _PARSER.parse(source, on_error=recovery.on_error)
    except UnexpectedInput as err:
        recovery.record(_diagnostic_for(err, recovery.last_line))
        _log.info("parse failed after %d diagnostic(s)", len(recovery.diagnostics))
        return ParseResult(program=None, diagnostics=recovery.diagnostics)
    return ParseResult(program=_AstBuilder(source).program(tree), diagnostics=recovery.diagnostics)


class _Recovery:
    """`on_error` handler for the LALR parser; collects the diagnostics it emits."""

    def __init__(self, last_line: int) -> None:
        self.last_line = last_line
        self.diagnostics: List[Diagnostic] = []

    def record(self, diag: Diagnostic) -> None:
        if diag not in self.diagnostics:
            self.diagnostics.append(diag)

    def on_error(self, err: UnexpectedInput) -> bool:
        if not isinstance(err, UnexpectedToken):
            self.record(_diagnostic_for(err, self.last_line))
            return True
        if err.token.type == "$END":
            return self._close_at_eof(err)
        inserted = self._insert_missing(err)
        if inserted is not None:
            message = f"missing '{_SYNTHETIC[inserted]}' at '{err.token.value}'"
            self.record(_syntax_error(err, message, self.last_line))
            return True
        self.record(_diagnostic_for(err, self.last_line))
        if err.token.type not in _BOUNDARIES or not self._unwind_to(err):
            # Resuming without feeding err.token drops it.
            _log.debug("dropped %r at line %s", err.token.value, err.line)
        return True

    def _insert_missing(self, err: UnexpectedToken) -> Optional[str]:
        parser = err.interactive_parser
        accepts = parser.accepts()
        for kind in _INSERTABLE:
            if kind not in accepts:
                continue
            trial = parser.copy()
            trial.feed_token(_synthetic(kind, err.token))
            if err.token.type in trial.accepts():
                parser.feed_token(_synthetic(kind, err.token))
                parser.feed_token(err.token)
                return kind
        return None

    def _unwind_to(self, err: UnexpectedToken) -> bool:
        """Pop parser states until `err.token` is acceptable, then feed it."""
        parser = err.interactive_parser
        trial = parser.copy()
        depth = 0
        while trial.parser_state.value_stack:
            trial.parser_state.state_stack.pop()
            trial.parser_state.value_stack.pop()
            depth += 1
            if err.token.type in trial.accepts():
                break
        else:
            return False
        for _ in range(depth):
            parser.parser_state.state_stack.pop()
            parser.parser_state.value_stack.pop()
        parser.feed_token(err.token)
        _log.debug("unwound %d parser state(s) to line %s", depth, err.line)
        return True

    def _close_at_eof(self, err: UnexpectedToken) -> bool:
        parser = err.interactive_parser
        inserted: List[str] = []
        for _ in range(_MAX_EOF_INSERTS):
            accepts = parser.accepts()
            if "$END" in accepts:
                for kind in inserted:
                    message = f"missing '{_SYNTHETIC[kind]}' at <EOF>"
                    self.record(_syntax_error(err, message, self.last_line))
                return True
            kind = next((k for k in _CLOSERS if k in accepts), None)
            if kind is None:
                break
            parser.feed_token(_synthetic(kind, err.token))
            inserted.append(kind)
        self.record(_diagnostic_for(err, self.last_line))
        return False


def _synthetic(kind: str, at: Token) -> Token:
    return Token.new_borrow_pos(kind, _SYNTHETIC[kind], at)


def tokenize(source: str) -> List[TokenInfo]:
    """`(type, text, line)` for every token; characters the lexer rejects are skipped."""
    text = source
    while True:
        try:
            return [
                (tok.type, tok.value.replace("\n", "\\n"), tok.line)
                for tok in _PARSER.lex(text)
            ]
        except UnexpectedCharacters as err:
            pos = err.pos_in_stream
            # Blank the offending character in place so line numbers survive.
            text = text[:pos] + " " + text[pos + 1 :]


def _position(err: UnexpectedInput, last_line: int) -> Tuple[int, int]:
    line = err.line if isinstance(err.line, int) and err.line > 0 else last_line
    column = err.column if isinstance(err.column, int) and err.column > 0 else 0
    return line, column


def _syntax_error(err: UnexpectedInput, message: str, last_line: int) -> Diagnostic:
    line, column = _position(err, last_line)
    return Diagnostic(code=DiagnosticCode.SYNTAX_ERROR, message=message, line=line, column=column)


def _diagnostic_for(err: UnexpectedInput, last_line: int) -> Diagnostic:
    if isinstance(err, UnexpectedCharacters):
        line, column = _position(err, last_line)
        return Diagnostic(
            code=DiagnosticCode.LEXICAL_ERROR,
            message=f"token recognition error at: '{err.char}'",
            line=line,
            column=column,
        )
    if isinstance(err, UnexpectedToken):
        found = "<EOF>" if err.token.type == "$END" else f"'{err.token.value}'"
        expected = ", ".join(sorted(err.expected))
        return _syntax_error(err, f"mismatched input {found} expecting {{{expected}}}", last_line)
    return _syntax_error(err, str(err), last_line)


def _name(tree: Tree) -> str:
    return tree.data if isinstance(tree.data, str) else tree.data.value


def _loc(node: Union[Tree, Token]) -> Located:
    if isinstance(node, Token):
        return Located(line=node.line, column=node.column, end_line=node.end_line)
    meta = node.meta
    if getattr(meta, "empty", True):
        return Located(line=0, column=0)
    return Located(line=meta.line, column=meta.column, end_line=meta.end_line)


def _subtrees(tree: Tree) -> List[Tree]:
    return [child for child in tree.children if isinstance(child, Tree)]


def _find(tree: Tree, kind: str) -> Optional[Tree]:
    return next((child for child in _subtrees(tree) if _name(child) == kind), None)


def _token(tree: Tree, ttype: str) -> Optional[Token]:
    return next(
        (child for child in tree.children if isinstance(child, Token) and child.type == ttype),
        None,
    )


class _AstBuilder:
    """Turns the lark parse tree into `minilang.ast` nodes."""

    def __init__(self, source: str) -> None:
        self.source = source

    def program(self, tree: Tree) -> Program:
        declarations: List[Union[FunctionDef, VarDecl]] = []
        for child in _subtrees(tree):
            kind = _name(child)
            if kind == "func_def":
                declarations.append(self.function(child))
            elif kind == "var_decl":
                declarations.append(self.var_spec(child.children[0]))
            else:
                raise ValueError(f"Unexpected top-level node {kind}")
        return Program(declarations=declarations)

    def function(self, tree: Tree) -> FunctionDef:
        type_node = _find(tree, "type")
        return_type: Optional[TypeExpr] = None
        if type_node is not None:
            return_type = self.type_expr(type_node)
        elif _token(tree, "VOID") is not None:
            return_type = TypeExpr(name="void")
        params_node = _find(tree, "params")
        params = [self.param(p) for p in _subtrees(params_node)] if params_node else []
        return FunctionDef(
            name=str(_token(tree, "NAME")),
            params=params,
            return_type=return_type,
            body=self.block(_find(tree, "block")),
            loc=_loc(tree),
        )

    def param(self, tree: Tree) -> Param:
        return Param(
            name=str(_token(tree, "NAME")),
            type_expr=self.type_expr(_find(tree, "type")),
            loc=_loc(tree),
        )

    def type_expr(self, tree: Tree) -> TypeExpr:
        return TypeExpr(name=str(tree.children[0]))

    def var_spec(self, tree: Tree) -> VarDecl:
        value_node = next(
            (child for child in _subtrees(tree) if _name(child) != "type"),
            None,
        )
        value = self.expr(value_node) if value_node is not None else None
        return VarDecl(
            loc=_loc(tree),
            name=str(_token(tree, "NAME")),
            type_expr=self.type_expr(_find(tree, "type")),
            value=value,
            const=_token(tree, "CONST") is not None,
            init_text=self._text(value_node) if value_node is not None else "null",
        )

    def block(self, tree: Tree) -> Block:
        return Block(statements=[self.stmt(child) for child in _subtrees(tree)], loc=_loc(tree))

    def stmt(self, tree: Tree) -> Stmt:
        kind = _name(tree)
        loc = _loc(tree)
        if kind == "var_decl":
            return self.var_spec(tree.children[0])
        if kind == "expr_stmt":
            return self._expr_as_stmt(self.expr(tree.children[0]))
        if kind == "block":
            return BlockStmt(loc=loc, block=self.block(tree))
        if kind == "if_stmt":
            parts = _subtrees(tree)
            else_block: Optional[Block] = None
            if len(parts) > 2:
                tail = parts[2]
                if _name(tail) == "if_stmt":
                    # `else if` nests the inner if in its own block.
                    else_block = Block(statements=[self.stmt(tail)], loc=_loc(tail))
                else:
                    else_block = self.block(tail)
            return IfStmt(
                loc=loc,
                condition=self.expr(parts[0]),
                then_block=self.block(parts[1]),
                else_block=else_block,
            )
        if kind == "while_stmt":
            cond, body = _subtrees(tree)
            return WhileStmt(loc=loc, condition=self.expr(cond), body=self.block(body))
        if kind == "for_stmt":
            init_node, cond_node, update_node, body = _subtrees(tree)
            return ForStmt(
                loc=loc,
                init=self._for_init(init_node),
                condition=self._optional_expr(cond_node),
                update=self._optional_stmt(update_node),
                body=self.block(body),
            )
        if kind == "return_stmt":
            parts = _subtrees(tree)
            return ReturnStmt(loc=loc, value=self.expr(parts[0]) if parts else None)
        raise ValueError(f"Unexpected statement node {kind}")

    def _for_init(self, tree: Tree) -> Optional[Stmt]:
        parts = _subtrees(tree)
        if not parts:
            return None
        if _name(parts[0]) == "var_spec":
            return self.var_spec(parts[0])
        return self._expr_as_stmt(self.expr(parts[0]))

    def _optional_expr(self, tree: Tree) -> Optional[Expr]:
        parts = _subtrees(tree)
        return self.expr(parts[0]) if parts else None

    def _optional_stmt(self, tree: Tree) -> Optional[Stmt]:
        value = self._optional_expr(tree)
        return self._expr_as_stmt(value) if value is not None else None

    def _expr_as_stmt(self, expr: Expr) -> Stmt:
        if isinstance(expr, Assign):
            return AssignStmt(loc=expr.loc, target=expr.target, value=expr.value)
        return ExprStmt(loc=expr.loc, value=expr)

    def expr(self, tree: Tree) -> Expr:
        kind = _name(tree)
        loc = _loc(tree)
        if kind == "int_lit":
            return IntLiteral(loc=loc, value=int(tree.children[0]))
        if kind == "float_lit":
            return FloatLiteral(loc=loc, value=float(tree.children[0]))
        if kind == "string_lit":
            raw = str(tree.children[0])
            return StringLiteral(loc=loc, value=raw[1:-1])
        if kind == "name":
            return Name(loc=loc, ident=str(tree.children[0]))
        if kind == "paren":
            return Paren(loc=loc, value=self.expr(tree.children[0]))
        if kind == "not_expr":
            return Not(loc=loc, operand=self.expr(tree.children[1]))
        if kind == "binary":
            left, op, right = tree.children
            return Binary(loc=loc, op=str(op), left=self.expr(left), right=self.expr(right))
        if kind == "assign_expr":
            target, value = tree.children
            return Assign(loc=loc, target=str(target), value=self.expr(value))
        if kind == "call":
            args_node = _find(tree, "args")
            args = [self.expr(arg) for arg in args_node.children] if args_node else []
            return Call(loc=loc, func=str(_token(tree, "NAME")), args=args)
        raise ValueError(f"Unexpected expression node {kind}")

    def _text(self, tree: Tree) -> str:
        meta = tree.meta
        if getattr(meta, "empty", True):
            return ""
        return self.source[meta.start_pos : meta.end_pos]


__all__ = ["ParseResult", "TokenInfo", "parse_program", "parse_with_diagnostics", "tokenize"]
