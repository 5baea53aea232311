"""
Report records and their text rendering.

The checker produces symbols; this module turns them into the flat report
records handed to callers, and renders those records into the four text
files written by the driver (tokens, globals, functions, errors).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from .diagnostics import Diagnostic
from .symbols import FunctionSymbol, Symbol

_log = logging.getLogger(__name__)

TOKENS_FILE = "tokens.txt"
GLOBALS_FILE = "global_vars.txt"
FUNCTIONS_FILE = "functions.txt"
ERRORS_FILE = "errors.txt"

_SEPARATOR = "-" * 20


class Classification(Enum):
    MAIN = "MAIN"
    RECURSIVE = "RECURSIVE"
    ITERATIVE = "ITERATIVE"


@dataclass(frozen=True)
class GlobalVarReport:
    name: str
    type: str
    init_text: str


@dataclass(frozen=True)
class FunctionReport:
    name: str
    classification: Classification
    return_type: str
    parameters: Tuple[Tuple[str, str], ...]
    locals: Tuple[Tuple[str, str, str], ...]
    control_structures: Tuple[Tuple[str, int, int], ...]


def classify(fn: FunctionSymbol) -> Classification:
    if fn.is_main:
        return Classification.MAIN
    if fn.is_recursive:
        return Classification.RECURSIVE
    return Classification.ITERATIVE


def global_var_report(symbol: Symbol) -> GlobalVarReport:
    return GlobalVarReport(name=symbol.name, type=str(symbol.type), init_text=symbol.init_text)


def function_report(fn: FunctionSymbol) -> FunctionReport:
    return FunctionReport(
        name=fn.name,
        classification=classify(fn),
        return_type=str(fn.type),
        parameters=tuple((str(p.type), p.name) for p in fn.parameters),
        locals=tuple((str(v.type), v.name, v.init_text) for v in fn.locals),
        control_structures=tuple(
            (rec.kind.value, rec.start_line, rec.end_line) for rec in fn.control_structures
        ),
    )


def render_tokens(tokens: Sequence[Tuple[str, str, int]]) -> str:
    return "".join(f"<{kind}, {text}, {line}>\n" for kind, text, line in tokens)


def render_globals(globals_: Sequence[GlobalVarReport]) -> str:
    return "".join(
        f"Variable: {g.name} | Type: {g.type} | Init: {g.init_text}\n" for g in globals_
    )


def render_functions(functions: Sequence[FunctionReport]) -> str:
    lines: List[str] = []
    for fn in functions:
        lines.append(f"Name: {fn.name}")
        lines.append(f"   Kind: {fn.classification.value}")
        lines.append(f"   Returns: {fn.return_type}")
        params = ", ".join(f"{ty} {name}" for ty, name in fn.parameters)
        lines.append(f"   Parameters: [{params}]")
        lines.append("   Locals:")
        if not fn.locals:
            lines.append("      (none)")
        for ty, name, init in fn.locals:
            lines.append(f"      {ty} {name} = {init}")
        lines.append("   Control structures:")
        if not fn.control_structures:
            lines.append("      (none)")
        for kind, start, end in fn.control_structures:
            lines.append(f"      <{kind}, {start}, {end}>")
        lines.append(_SEPARATOR)
    return "".join(f"{line}\n" for line in lines)


def render_errors(diagnostics: Sequence[Diagnostic]) -> str:
    """Parser diagnostics first, then semantic ones, each under its own heading."""
    parser_diags = [d for d in diagnostics if d.phase == "parser"]
    semantic_diags = [d for d in diagnostics if d.phase == "semantic"]
    if not parser_diags and not semantic_diags:
        return "No errors\n"
    lines: List[str] = []
    if parser_diags:
        lines.append("=== Lexical and syntax errors ===")
        lines.extend(d.render() for d in parser_diags)
    if semantic_diags:
        if lines:
            lines.append("")
        lines.append("=== Semantic errors ===")
        lines.extend(d.render() for d in semantic_diags)
    return "".join(f"{line}\n" for line in lines)


def write_reports(
    out_dir: Path,
    tokens: Sequence[Tuple[str, str, int]],
    globals_: Sequence[GlobalVarReport],
    functions: Sequence[FunctionReport],
    diagnostics: Sequence[Diagnostic],
) -> Dict[str, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    contents = {
        TOKENS_FILE: render_tokens(tokens),
        GLOBALS_FILE: render_globals(globals_),
        FUNCTIONS_FILE: render_functions(functions),
        ERRORS_FILE: render_errors(diagnostics),
    }
    written: Dict[str, Path] = {}
    for filename, text in contents.items():
        path = out_dir / filename
        path.write_text(text, encoding="utf-8")
        _log.info("wrote %s", path)
        written[filename] = path
    return written
