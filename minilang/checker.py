from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from . import ast
from .diagnostics import Diagnostic, DiagnosticCode, DiagnosticSink
from .reports import FunctionReport, GlobalVarReport, function_report, global_var_report
from .scope import DuplicateDeclaration, ScopeStack
from .symbols import ControlKind, ControlRecord, FunctionSymbol, Symbol
from .types import (
    FLOAT,
    INT,
    STRING,
    UNKNOWN,
    VOID,
    Type,
    TypeSystemError,
    additive_result,
    compatible,
    multiplicative_result,
    resolve_type,
)

_log = logging.getLogger(__name__)

MAIN_NAME = "main"


@dataclass
class CheckedProgram:
    # Function table in registration order; duplicates are not present.
    functions: Dict[str, FunctionSymbol]
    globals: List[Symbol]
    diagnostics: List[Diagnostic]

    @property
    def global_vars(self) -> List[GlobalVarReport]:
        return [global_var_report(sym) for sym in self.globals]

    @property
    def function_reports(self) -> List[FunctionReport]:
        return [function_report(fn) for fn in self.functions.values()]


class Checker:
    """
    Semantic checker for one program.

    An instance owns its scope stack, function table and diagnostic sink, so
    a fresh Checker is needed per program.
    """

    def __init__(self) -> None:
        self.scopes = ScopeStack()
        self.function_table: Dict[str, FunctionSymbol] = {}
        self.global_vars: List[Symbol] = []
        self.sink = DiagnosticSink()
        self._definitions: Dict[str, ast.FunctionDef] = {}
        self._current: Optional[FunctionSymbol] = None

    def check(self, program: ast.Program) -> CheckedProgram:
        self._register_functions(program.functions)
        for decl in program.declarations:
            if isinstance(decl, ast.FunctionDef):
                self._check_function(decl)
            elif isinstance(decl, ast.VarDecl):
                self._check_var_decl(decl, is_global=True)
            else:
                raise TypeError(f"Unsupported top-level declaration {decl!r}")
        self._check_main()
        return CheckedProgram(
            functions=dict(self.function_table),
            globals=list(self.global_vars),
            diagnostics=self.sink.diagnostics,
        )

    # -- declaration pre-pass ------------------------------------------------

    def _register_functions(self, functions: List[ast.FunctionDef]) -> None:
        for fn in functions:
            return_type = self._resolve(fn.return_type, fn.loc)
            params = self._param_symbols(fn)
            if fn.name in self.function_table:
                self._error(
                    DiagnosticCode.DUPLICATE_DECLARATION,
                    f"Function '{fn.name}' is already defined",
                    fn.loc,
                )
                continue
            self.function_table[fn.name] = FunctionSymbol(
                name=fn.name,
                type=return_type,
                line=fn.loc.line,
                parameters=params,
                is_main=fn.name == MAIN_NAME,
            )
            self._definitions[fn.name] = fn

    def _param_symbols(self, fn: ast.FunctionDef) -> List[Symbol]:
        params: List[Symbol] = []
        seen = set()
        for param in fn.params:
            if param.name in seen:
                self._duplicate_param(fn, param)
            seen.add(param.name)
            params.append(
                Symbol(
                    name=param.name,
                    type=self._resolve(param.type_expr, param.loc),
                    line=param.loc.line,
                )
            )
        return params

    def _duplicate_param(self, fn: ast.FunctionDef, param: ast.Param) -> None:
        self._error(
            DiagnosticCode.DUPLICATE_DECLARATION,
            f"Parameter '{param.name}' is duplicated in function '{fn.name}'",
            param.loc,
        )

    def _check_main(self) -> None:
        mains = [fn for fn in self.function_table.values() if fn.is_main]
        if not mains:
            self.sink.report(DiagnosticCode.MISSING_MAIN, f"No '{MAIN_NAME}' function is defined")
        elif len(mains) > 1:
            self.sink.report(
                DiagnosticCode.DUPLICATE_MAIN,
                f"'{MAIN_NAME}' is defined {len(mains)} times",
            )

    # -- declarations ----------------------------------------------------------

    def _check_function(self, fn: ast.FunctionDef) -> None:
        if self._definitions.get(fn.name) is fn:
            current = self.function_table[fn.name]
        else:
            # Duplicate definition: walk the body against a detached symbol so
            # nested errors surface, but nothing reaches the function table.
            current = FunctionSymbol(
                name=fn.name,
                type=self._resolve(fn.return_type, fn.loc),
                line=fn.loc.line,
                is_main=fn.name == MAIN_NAME,
            )
        _log.debug("checking function %s (line %d)", fn.name, fn.loc.line)
        self._current = current
        self.scopes.push()
        for param in fn.params:
            symbol = Symbol(
                name=param.name,
                type=self._resolve(param.type_expr, param.loc),
                line=param.loc.line,
            )
            try:
                self.scopes.declare(param.name, symbol)
            except DuplicateDeclaration:
                self._duplicate_param(fn, param)
        for stmt in fn.body.statements:
            self._check_stmt(stmt)
        if current.type is not VOID and not current.has_return:
            self._error(
                DiagnosticCode.MISSING_RETURN,
                f"Function '{fn.name}' (type {current.type}) does not return a value",
                fn.loc,
            )
        self.scopes.pop()
        self._current = None

    def _check_var_decl(self, decl: ast.VarDecl, is_global: bool = False) -> None:
        declared = self._resolve(decl.type_expr, decl.loc)
        if decl.value is not None:
            value_type = self._check_expr(decl.value)
            if not compatible(declared, value_type):
                self._error(
                    DiagnosticCode.TYPE_MISMATCH,
                    f"Incompatible type for '{decl.name}': expected {declared}, got {value_type}",
                    decl.loc,
                )
        symbol = Symbol(
            name=decl.name,
            type=declared,
            is_const=decl.const,
            init_text=decl.init_text,
            line=decl.loc.line,
        )
        try:
            self.scopes.declare(decl.name, symbol)
        except DuplicateDeclaration:
            kind = "Global" if is_global else "Local"
            self._error(
                DiagnosticCode.DUPLICATE_DECLARATION,
                f"{kind} variable '{decl.name}' is already defined",
                decl.loc,
            )
            return
        if is_global:
            self.global_vars.append(symbol)
        elif self._current is not None:
            self._current.locals.append(symbol)

    # -- statements ------------------------------------------------------------

    def _check_stmt(self, stmt: ast.Stmt) -> None:
        if isinstance(stmt, ast.VarDecl):
            self._check_var_decl(stmt)
            return
        if isinstance(stmt, ast.AssignStmt):
            self._check_assign(stmt.target, stmt.value, stmt.loc)
            return
        if isinstance(stmt, ast.ExprStmt):
            self._check_expr(stmt.value)
            return
        if isinstance(stmt, ast.BlockStmt):
            self._check_block(stmt.block)
            return
        if isinstance(stmt, ast.IfStmt):
            self._record_control(ControlKind.IF, stmt.loc)
            self._check_expr(stmt.condition)
            self._check_block(stmt.then_block)
            if stmt.else_block is not None:
                self._check_block(stmt.else_block)
            return
        if isinstance(stmt, ast.WhileStmt):
            self._record_control(ControlKind.WHILE, stmt.loc)
            self._check_expr(stmt.condition)
            self._check_block(stmt.body)
            return
        if isinstance(stmt, ast.ForStmt):
            self._record_control(ControlKind.FOR, stmt.loc)
            self.scopes.push()
            if stmt.init is not None:
                self._check_stmt(stmt.init)
            if stmt.condition is not None:
                self._check_expr(stmt.condition)
            if stmt.update is not None:
                self._check_stmt(stmt.update)
            self._check_block(stmt.body)
            self.scopes.pop()
            return
        if isinstance(stmt, ast.ReturnStmt):
            self._check_return(stmt)
            return
        raise TypeError(f"Unsupported statement {stmt!r}")

    def _check_block(self, block: ast.Block) -> None:
        self.scopes.push()
        for stmt in block.statements:
            self._check_stmt(stmt)
        self.scopes.pop()

    def _record_control(self, kind: ControlKind, loc: ast.Located) -> None:
        if self._current is None:
            return
        end_line = loc.end_line if loc.end_line is not None else loc.line
        self._current.control_structures.append(ControlRecord(kind, loc.line, end_line))

    def _check_return(self, stmt: ast.ReturnStmt) -> None:
        fn = self._current
        if fn is None:
            return
        fn.has_return = True
        value_type = VOID if stmt.value is None else self._check_expr(stmt.value)
        if not compatible(fn.type, value_type):
            self._error(
                DiagnosticCode.TYPE_MISMATCH,
                f"Invalid return in function '{fn.name}': expected {fn.type}, got {value_type}",
                stmt.loc,
            )

    # -- expressions -----------------------------------------------------------

    def _check_expr(self, expr: ast.Expr) -> Type:
        if isinstance(expr, ast.IntLiteral):
            return INT
        if isinstance(expr, ast.FloatLiteral):
            return FLOAT
        if isinstance(expr, ast.StringLiteral):
            return STRING
        if isinstance(expr, ast.Name):
            symbol = self.scopes.resolve(expr.ident)
            if symbol is None:
                self._undeclared(expr.ident, expr.loc)
                return UNKNOWN
            return symbol.type
        if isinstance(expr, ast.Paren):
            return self._check_expr(expr.value)
        if isinstance(expr, ast.Not):
            self._check_expr(expr.operand)
            return INT
        if isinstance(expr, ast.Binary):
            return self._check_binary(expr)
        if isinstance(expr, ast.Assign):
            return self._check_assign(expr.target, expr.value, expr.loc)
        if isinstance(expr, ast.Call):
            return self._check_call(expr)
        raise TypeError(f"Unsupported expression {expr!r}")

    def _check_binary(self, expr: ast.Binary) -> Type:
        left = self._check_expr(expr.left)
        right = self._check_expr(expr.right)
        if expr.op in ast.ADDITIVE_OPS:
            return additive_result(left, right)
        if expr.op in ast.MULTIPLICATIVE_OPS:
            return multiplicative_result(left, right)
        if expr.op in ast.RELATIONAL_OPS or expr.op in ast.EQUALITY_OPS or expr.op in ast.LOGICAL_OPS:
            # No boolean type: comparisons and logic yield int.
            return INT
        raise TypeError(f"Unsupported operator '{expr.op}'")

    def _check_assign(self, target: str, value: Optional[ast.Expr], loc: ast.Located) -> Type:
        symbol = self.scopes.resolve(target)
        if symbol is None:
            self._undeclared(target, loc)
            if value is not None:
                self._check_expr(value)
            return UNKNOWN
        if symbol.is_const:
            self._error(
                DiagnosticCode.CONST_ASSIGNMENT,
                f"Illegal assignment to constant '{target}'",
                loc,
            )
        if value is not None:
            value_type = self._check_expr(value)
            if not compatible(symbol.type, value_type):
                self._error(
                    DiagnosticCode.TYPE_MISMATCH,
                    f"Cannot assign {value_type} to '{target}' of type {symbol.type}",
                    loc,
                )
        return symbol.type

    def _check_call(self, expr: ast.Call) -> Type:
        callee = self.function_table.get(expr.func)
        if callee is None:
            self._error(
                DiagnosticCode.UNDECLARED_FUNCTION,
                f"Call to undefined function '{expr.func}'",
                expr.loc,
            )
        else:
            if callee.is_main:
                self._error(
                    DiagnosticCode.ILLEGAL_MAIN_CALL,
                    f"Function '{MAIN_NAME}' cannot be called",
                    expr.loc,
                )
            if self._current is not None and self._current.name == expr.func:
                self._current.is_recursive = True
        arg_types = [self._check_expr(arg) for arg in expr.args]
        if callee is None:
            return UNKNOWN
        if len(arg_types) != len(callee.parameters):
            self._error(
                DiagnosticCode.ARITY_MISMATCH,
                f"Wrong number of arguments for '{expr.func}': "
                f"expected {len(callee.parameters)}, got {len(arg_types)}",
                expr.loc,
            )
            return callee.type
        for index, (actual, param) in enumerate(zip(arg_types, callee.parameters), start=1):
            if not compatible(param.type, actual):
                self._error(
                    DiagnosticCode.TYPE_MISMATCH,
                    f"Argument {index} of '{expr.func}' is incompatible: expected {param.type}, got {actual}",
                    expr.loc,
                )
        return callee.type

    # -- helpers ---------------------------------------------------------------

    def _resolve(self, type_expr: Optional[ast.TypeExpr], loc: ast.Located) -> Type:
        try:
            return resolve_type(type_expr)
        except TypeSystemError as exc:
            self._error(DiagnosticCode.UNKNOWN_TYPE, str(exc), loc)
            return UNKNOWN

    def _undeclared(self, name: str, loc: ast.Located) -> None:
        self._error(
            DiagnosticCode.UNDECLARED_IDENTIFIER,
            f"Variable '{name}' is not declared",
            loc,
        )

    def _error(self, code: DiagnosticCode, message: str, loc: ast.Located) -> None:
        self.sink.report(code, message, line=loc.line, column=loc.column)


def check_program(program: ast.Program) -> CheckedProgram:
    return Checker().check(program)


__all__ = ["Checker", "CheckedProgram", "check_program", "MAIN_NAME"]
