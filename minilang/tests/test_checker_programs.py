"""
End-to-end checks: MiniLang source through the parser and the checker.
"""

from __future__ import annotations

import textwrap
from typing import List

from minilang.diagnostics import DiagnosticCode
from minilang.minilangc import AnalysisResult, analyze_source
from minilang.reports import Classification


def _analyze(src: str) -> AnalysisResult:
    return analyze_source(textwrap.dedent(src).lstrip("\n"))


def _codes(result: AnalysisResult) -> List[DiagnosticCode]:
    return [d.code for d in result.diagnostics]


def test_const_global_assignment_reports_only_const_error() -> None:
    result = _analyze(
        """
        const int x = 5;
        void main() {
            x = 6;
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.CONST_ASSIGNMENT]
    assert result.diagnostics[0].line == 3


def test_extra_argument_reports_arity_only() -> None:
    result = _analyze(
        """
        int foo(int a) {
            return a;
        }
        void main() {
            foo(1, 2);
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.ARITY_MISMATCH]


def test_widening_declaration_is_clean_and_narrowing_is_not() -> None:
    assert _analyze(
        """
        float f = 3;
        void main() {
        }
        """
    ).diagnostics == []
    result = _analyze(
        """
        void main() {
            int i = 3.5;
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.TYPE_MISMATCH]


def test_missing_main() -> None:
    result = _analyze(
        """
        int helper() {
            return 1;
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.MISSING_MAIN]
    reports = result.checked.function_reports
    assert [r.classification for r in reports] == [Classification.ITERATIVE]


def test_missing_return_on_declaration_line() -> None:
    result = _analyze(
        """
        void main() {
        }

        int compute(int a) {
            int b = a * 2;
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.MISSING_RETURN]
    assert result.diagnostics[0].line == 4


def test_forward_call_and_recursion() -> None:
    result = _analyze(
        """
        void main() {
            int r = fact(5);
        }

        int fact(int n) {
            if (n <= 1) {
                return 1;
            }
            return n * fact(n - 1);
        }
        """
    )
    assert result.diagnostics == []
    kinds = {r.name: r.classification for r in result.checked.function_reports}
    assert kinds == {"main": Classification.MAIN, "fact": Classification.RECURSIVE}


def test_control_structures_and_flat_locals() -> None:
    result = _analyze(
        """
        void main() {
            int i = 0;
            while (i < 3) {
                i = i + 1;
            }
            if (i == 3) {
                i = 0;
            } else {
                double d = 1.5;
            }
            for (int j = 0; j < 2; j = j + 1) {
                string s = "x";
            }
        }
        """
    )
    assert result.diagnostics == []
    (main,) = result.checked.function_reports
    assert main.control_structures == (("while", 3, 5), ("if", 6, 10), ("for", 11, 13))
    assert main.locals == (
        ("int", "i", "0"),
        ("double", "d", "1.5"),
        ("int", "j", "0"),
        ("string", "s", '"x"'),
    )


def test_shadowing_across_frames_is_silent() -> None:
    result = _analyze(
        """
        void f(int a) {
            for (int a = 0; a < 3; a = a + 1) {
                int a = 2;
            }
        }
        void main() {
            f(1);
        }
        """
    )
    assert result.diagnostics == []


def test_block_scoped_name_is_gone_after_block() -> None:
    result = _analyze(
        """
        void main() {
            {
                int inner = 1;
            }
            inner = 2;
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.UNDECLARED_IDENTIFIER]


def test_identical_messages_on_one_line_collapse() -> None:
    result = _analyze(
        """
        void main() {
            y = y + 1;
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.UNDECLARED_IDENTIFIER]


def test_globals_report_keeps_init_text() -> None:
    result = _analyze(
        """
        int counter = 1 + 2;
        string name;
        int counter = 4;
        void main() {
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.DUPLICATE_DECLARATION]
    assert [(g.name, g.type, g.init_text) for g in result.checked.global_vars] == [
        ("counter", "int", "1 + 2"),
        ("name", "string", "null"),
    ]


def test_syntax_errors_come_before_semantic_errors() -> None:
    result = _analyze(
        """
        void main() {
            int x = 1;;
            x = "s";
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.SYNTAX_ERROR, DiagnosticCode.TYPE_MISMATCH]


def test_missing_closing_brace_still_checks_program() -> None:
    result = _analyze(
        """
        int g = 1;
        int f(int a) { return a; }
        void main() {
            int x = f(1, 2);
            y = 3;
        """
    )
    assert [d.render() for d in result.diagnostics] == [
        "Syntax error at line 5:10 - missing '}' at <EOF>",
        "Semantic error at line 4: Wrong number of arguments for 'f': expected 1, got 2",
        "Semantic error at line 5: Variable 'y' is not declared",
    ]
    assert [g.name for g in result.checked.global_vars] == ["g"]
    assert [r.name for r in result.checked.function_reports] == ["f", "main"]


def test_missing_initializer_does_not_swallow_return() -> None:
    result = _analyze(
        """
        int main() {
            int x = ;
            return 0;
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.SYNTAX_ERROR]
    (main,) = result.checked.function_reports
    assert main.locals == (("int", "x", "null"),)


def test_unrecoverable_parse_skips_checker() -> None:
    result = _analyze(
        """
        void main() {
            int x = 1;
            x =
        """
    )
    assert result.checked is None
    assert _codes(result) == [DiagnosticCode.SYNTAX_ERROR]
    assert result.exit_code == 1


def test_for_initializer_is_scoped_to_the_loop() -> None:
    result = _analyze(
        """
        void main() {
            for (int i = 0; i < 3; i = i + 1) {
            }
            i = 1;
        }
        """
    )
    assert _codes(result) == [DiagnosticCode.UNDECLARED_IDENTIFIER]
    assert result.diagnostics[0].line == 4
