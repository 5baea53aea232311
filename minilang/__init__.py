"""
minilang: static semantic analyzer for the MiniLang teaching language.

Modules:
  parser:   lark grammar -> ast
  checker:  declaration pre-pass + scope/type checking walk
  reports:  global/function report records and their text rendering
  minilangc: command-line driver
"""

__all__ = ["ast", "types", "symbols", "scope", "diagnostics", "checker", "parser", "reports"]
