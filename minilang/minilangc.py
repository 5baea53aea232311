#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .checker import CheckedProgram, check_program
from .diagnostics import Diagnostic, DiagnosticSink
from .parser import TokenInfo, parse_with_diagnostics, tokenize
from .reports import write_reports

_log = logging.getLogger("minilang")


@dataclass
class AnalysisResult:
    tokens: List[TokenInfo]
    checked: Optional[CheckedProgram]
    # Parser diagnostics first, then semantic ones; identical text appears once.
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.diagnostics else 0


def analyze_source(source: str) -> AnalysisResult:
    """Tokenize, parse and check `source`; the checker is skipped when no tree could be built."""
    tokens = tokenize(source)
    parsed = parse_with_diagnostics(source)
    sink = DiagnosticSink()
    sink.extend(parsed.diagnostics)
    checked: Optional[CheckedProgram] = None
    if parsed.program is not None:
        _log.info("checking %d top-level declaration(s)", len(parsed.program.declarations))
        checked = check_program(parsed.program)
        sink.extend(checked.diagnostics)
    else:
        _log.info("no syntax tree; semantic analysis skipped")
    return AnalysisResult(tokens=tokens, checked=checked, diagnostics=sink.diagnostics)


def _diagnostic_payload(diag: Diagnostic) -> Dict[str, Any]:
    return {
        "phase": diag.phase,
        "code": diag.code.value,
        "line": diag.line,
        "column": diag.column,
        "message": diag.message,
    }


def _json_payload(result: AnalysisResult) -> Dict[str, Any]:
    checked = result.checked
    globals_ = checked.global_vars if checked else []
    functions = checked.function_reports if checked else []
    return {
        "exit_code": result.exit_code,
        "globals": [{"name": g.name, "type": g.type, "init": g.init_text} for g in globals_],
        "functions": [
            {
                "name": fn.name,
                "kind": fn.classification.value,
                "returns": fn.return_type,
                "parameters": [{"type": ty, "name": name} for ty, name in fn.parameters],
                "locals": [
                    {"type": ty, "name": name, "init": init} for ty, name, init in fn.locals
                ],
                "control_structures": [
                    {"kind": kind, "start_line": start, "end_line": end}
                    for kind, start, end in fn.control_structures
                ],
            }
            for fn in functions
        ],
        "diagnostics": [_diagnostic_payload(d) for d in result.diagnostics],
    }


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(name)s: %(levelname)s: %(message)s"))
    root = logging.getLogger("minilang")
    root.handlers[:] = [handler]
    root.setLevel(level)


def compile_file(source_path: Path, out_dir: Path, emit_json: bool) -> int:
    try:
        source = source_path.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"minilangc: cannot read {source_path}: {exc.strerror}", file=sys.stderr)
        return 2
    _log.info("analyzing %s", source_path)
    result = analyze_source(source)
    if emit_json:
        print(json.dumps(_json_payload(result)))
        return result.exit_code
    checked = result.checked
    write_reports(
        out_dir,
        tokens=result.tokens,
        globals_=checked.global_vars if checked else [],
        functions=checked.function_reports if checked else [],
        diagnostics=result.diagnostics,
    )
    print(f"Processing complete: {len(result.diagnostics)} diagnostic(s), reports in {out_dir}")
    return result.exit_code


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="minilangc: MiniLang semantic analyzer")
    ap.add_argument("source", type=Path, help="MiniLang source file")
    ap.add_argument(
        "-o",
        "--out-dir",
        type=Path,
        default=Path("."),
        help="Directory for tokens.txt, global_vars.txt, functions.txt and errors.txt (default: .)",
    )
    ap.add_argument(
        "--json",
        action="store_true",
        help="Print globals, function reports and diagnostics as JSON instead of writing report files",
    )
    ap.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-v info, -vv debug)",
    )
    args = ap.parse_args(argv)
    _configure_logging(args.verbose)
    return compile_file(args.source, args.out_dir, args.json)


if __name__ == "__main__":
    raise SystemExit(main())
