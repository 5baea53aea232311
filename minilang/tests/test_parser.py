from __future__ import annotations

import pytest
from lark.exceptions import UnexpectedInput

from minilang import ast as A
from minilang.diagnostics import DiagnosticCode
from minilang.parser import parse_program, parse_with_diagnostics, tokenize


def test_top_level_declarations_keep_source_order() -> None:
    prog = parse_program(
        "const double rate = 0.5;\n"
        "helper(int a, string b) { }\n"
        "int main() { return 0; }\n"
    )
    kinds = [type(decl).__name__ for decl in prog.declarations]
    assert kinds == ["VarDecl", "FunctionDef", "FunctionDef"]
    rate = prog.declarations[0]
    assert rate.const and rate.type_expr.name == "double" and rate.init_text == "0.5"
    helper = prog.declarations[1]
    assert helper.return_type is None
    assert [(p.type_expr.name, p.name) for p in helper.params] == [("int", "a"), ("string", "b")]
    assert prog.declarations[2].return_type.name == "int"


def test_void_return_type_is_explicit() -> None:
    prog = parse_program("void main() { }")
    assert prog.functions[0].return_type == A.TypeExpr("void")


def test_expression_precedence() -> None:
    prog = parse_program("void main() { x = 1 + 2 * 3 < 4 && !y || z; }")
    stmt = prog.functions[0].body.statements[0]
    assert isinstance(stmt, A.AssignStmt)
    top = stmt.value
    assert isinstance(top, A.Binary) and top.op == "||"
    conj = top.left
    assert isinstance(conj, A.Binary) and conj.op == "&&"
    rel = conj.left
    assert isinstance(rel, A.Binary) and rel.op == "<"
    add = rel.left
    assert add.op == "+" and isinstance(add.right, A.Binary) and add.right.op == "*"
    assert isinstance(conj.right, A.Not)


def test_assignment_is_right_associative_expression() -> None:
    prog = parse_program("void main() { a = b = 2; }")
    stmt = prog.functions[0].body.statements[0]
    assert isinstance(stmt, A.AssignStmt) and stmt.target == "a"
    assert isinstance(stmt.value, A.Assign) and stmt.value.target == "b"


def test_call_statement_and_literals() -> None:
    prog = parse_program('void main() { print("hi", 2.5, 7, (n)); }')
    stmt = prog.functions[0].body.statements[0]
    assert isinstance(stmt, A.ExprStmt)
    call = stmt.value
    assert isinstance(call, A.Call) and call.func == "print"
    assert [type(a).__name__ for a in call.args] == ["StringLiteral", "FloatLiteral", "IntLiteral", "Paren"]
    assert call.args[0].value == "hi"


def test_control_statement_lines() -> None:
    prog = parse_program(
        "void main() {\n"
        "  while (1) {\n"
        "  }\n"
        "  if (1) { } else if (2) {\n"
        "  }\n"
        "  for (;;) { }\n"
        "}\n"
    )
    loop, branch, for_loop = prog.functions[0].body.statements
    assert (loop.loc.line, loop.loc.end_line) == (2, 3)
    assert (branch.loc.line, branch.loc.end_line) == (4, 5)
    assert isinstance(branch.else_block.statements[0], A.IfStmt)
    assert isinstance(for_loop, A.ForStmt)
    assert for_loop.init is None and for_loop.condition is None and for_loop.update is None


def test_comments_are_ignored() -> None:
    prog = parse_program("// leading\nvoid main() { /* inner\n comment */ return; }\n")
    (ret,) = prog.functions[0].body.statements
    assert isinstance(ret, A.ReturnStmt) and ret.value is None
    assert ret.loc.line == 3


def test_keyword_prefix_is_a_name() -> None:
    prog = parse_program("int integer = 1; void main() { }")
    assert prog.declarations[0].name == "integer"


def test_strict_parse_raises() -> None:
    with pytest.raises(UnexpectedInput):
        parse_program("void main() { int = 3; }")


def test_lexical_error_is_skipped_and_reported() -> None:
    result = parse_with_diagnostics("void main() {\n  int x = 1; #\n}\n")
    assert result.program is not None
    assert [d.code for d in result.diagnostics] == [DiagnosticCode.LEXICAL_ERROR]
    assert result.diagnostics[0].line == 2
    assert "'#'" in result.diagnostics[0].message


def test_stray_semicolon_is_reported() -> None:
    result = parse_with_diagnostics("void main() { return;; }")
    assert result.program is not None
    assert [d.code for d in result.diagnostics] == [DiagnosticCode.SYNTAX_ERROR]
    assert "mismatched input ';'" in result.diagnostics[0].message
    (ret,) = result.program.functions[0].body.statements
    assert isinstance(ret, A.ReturnStmt)


def test_missing_semicolon_is_inserted() -> None:
    result = parse_with_diagnostics("void main() {\n  int x = 1\n  int y = 2;\n}\n")
    assert [d.render() for d in result.diagnostics] == ["Syntax error at line 3:3 - missing ';' at 'int'"]
    decls = result.program.functions[0].body.statements
    assert [(d.name, d.init_text) for d in decls] == [("x", "1"), ("y", "2")]


def test_missing_paren_is_inserted() -> None:
    result = parse_with_diagnostics("void main() { if (1 { } }")
    assert [d.message for d in result.diagnostics] == ["missing ')' at '{'"]
    assert isinstance(result.program.functions[0].body.statements[0], A.IfStmt)


def test_missing_initializer_keeps_declaration_and_following_statements() -> None:
    result = parse_with_diagnostics("int main() { int x = ; return 0; }")
    assert [d.code for d in result.diagnostics] == [DiagnosticCode.SYNTAX_ERROR]
    assert "mismatched input ';'" in result.diagnostics[0].message
    decl, ret = result.program.functions[0].body.statements
    assert isinstance(decl, A.VarDecl) and decl.name == "x"
    assert decl.value is None and decl.init_text == "null"
    assert isinstance(ret, A.ReturnStmt) and isinstance(ret.value, A.IntLiteral)


def test_broken_statement_is_abandoned_at_closing_brace() -> None:
    result = parse_with_diagnostics("void main() { x = 1 + }\nvoid other() { }\n")
    assert [d.code for d in result.diagnostics] == [DiagnosticCode.SYNTAX_ERROR]
    assert [fn.name for fn in result.program.functions] == ["main", "other"]
    assert result.program.functions[0].body.statements == []


def test_open_constructs_are_closed_at_end_of_input() -> None:
    result = parse_with_diagnostics("void main() {\n  while (1) {\n    f(1\n")
    assert [d.message for d in result.diagnostics] == [
        "missing ')' at <EOF>",
        "missing ';' at <EOF>",
        "missing '}' at <EOF>",
    ]
    assert all(d.line == 3 for d in result.diagnostics)
    (loop,) = result.program.functions[0].body.statements
    assert isinstance(loop, A.WhileStmt)
    assert isinstance(loop.body.statements[0].value, A.Call)


def test_incomplete_expression_at_end_of_input_yields_no_program() -> None:
    result = parse_with_diagnostics("void main() { x = ")
    assert result.program is None
    assert [d.code for d in result.diagnostics] == [DiagnosticCode.SYNTAX_ERROR]
    assert "<EOF>" in result.diagnostics[0].message


def test_tokenize_reports_lines_and_skips_bad_characters() -> None:
    tokens = tokenize('int x = 5;\nstring s = "a\\nb"; $\n')
    assert [(text, line) for _kind, text, line in tokens] == [
        ("int", 1),
        ("x", 1),
        ("=", 1),
        ("5", 1),
        (";", 1),
        ("string", 2),
        ("s", 2),
        ("=", 2),
        ('"a\\nb"', 2),
        (";", 2),
    ]
    kinds = [kind for kind, _text, _line in tokens]
    assert kinds[1] == "NAME" and kinds[3] == "INT_LIT" and kinds[8] == "STRING_LIT"
    assert kinds[0] != "NAME"
