import contextlib
import io

import pytest

from mote.mote_backends import (
    CodegenBackend, JavaScriptBackend, NativeStatements, NimBackend, PythonBackend, TryFinally, get_backend,
)
from mote.mote_codegen import CodegenContext, generate_code, load_extensions_codegen, render_pseudo_method
from mote.mote_frontends import compile_source
from mote.mote_plugin import Extension, ExtensionRegistry
from mote.mote_runtime import ScriptRunner

PROGRAM = '''proc add(a, b: int): int =
  result = a + b

proc classify(n: int): string =
  case n
  of 0:
    result = "zero"
  of 1..9:
    result = "small"
  else:
    result = "big"

var total = 0
for i in 0..<5:
  total = total + i
var items = [3, 1, 2]
var count = 0
while count < 3:
  count += 1
echo "total", total
echo add(2, 3)
echo classify(0), classify(5), classify(42)
echo items.len
'''


def gen(src, backend, ctx=None):
    return generate_code(compile_source(src, "mote"), backend, ctx)


def run_mote(src):
    res = ScriptRunner().handle_script(src, dialect="mote")
    assert res.status == 'success', res.error_message
    return [e['message'] for e in res.side_effects if e['topics'] == ['stdout']]


def run_python(code):
    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        exec(compile(code, "<generated>", "exec"), {"__name__": "__mote_generated__"})
    return buf.getvalue().splitlines()


def assert_same_output(src):
    assert run_python(gen(src, "python")) == run_mote(src)


def test_backends_produce_distinct_output():
    outputs = {name: gen(PROGRAM, name) for name in ("nim", "python", "javascript")}
    assert len(set(outputs.values())) == 3


def test_python_output_runs_like_the_interpreter():
    assert run_mote(PROGRAM) == ["total 10", "5", "zero small big", "3"]
    assert_same_output(PROGRAM)


def test_python_spelling():
    code = gen(PROGRAM, "python")
    assert code.startswith("#!/usr/bin/env python3\n")
    assert "def add(a, b):" in code
    assert "    result = 0\n    result = a + b\n    return result" in code
    assert "_case0 = n" in code
    assert "elif 1 <= _case0 and _case0 <= 9:" in code
    assert "for i in range(0, 5):" in code
    assert "count = count + 1" in code
    assert 'print("total", total)' in code
    assert "print(len(items))" in code


def test_javascript_spelling():
    code = gen(PROGRAM, "javascript")
    assert code.startswith('"use strict";\n')
    assert "function add(a, b) {" in code
    assert "  let result = 0;" in code
    assert "  const _case0 = n;" in code
    assert "  if (_case0 === 0) {" in code
    assert "  } else if (1 <= _case0 && _case0 <= 9) {" in code
    assert "for (let i = 0; i < 5; i++) {" in code
    assert "let items = [3, 1, 2];" in code
    assert 'console.log("total", total);' in code
    assert "console.log(items.length);" in code


def test_nim_spelling():
    code = gen(PROGRAM, "nim")
    assert "proc add(a: int, b: int): int =" in code
    assert "  case n\n  of 0:\n" in code
    assert "  of 1..9:" in code
    assert "for i in 0..<5:" in code
    assert "var items = @[3, 1, 2]" in code
    assert 'echo("total", " ", total)' in code
    assert "echo(items.len)" in code
    assert "_case" not in code


def test_case_without_else_raises_in_generated_code():
    src = "var x = 3\ncase x\nof 1:\n  echo 1\n"
    assert 'raise RuntimeError("No case branch matched")' in gen(src, "python")
    assert 'throw new Error("No case branch matched");' in gen(src, "javascript")
    assert 'raise newException(ValueError, "No case branch matched")' in gen(src, "nim")


def test_defer_lowers_to_try_finally():
    src = '''proc work() =
  defer: echo "done"
  echo "working"
work()
'''
    code = gen(src, "python")
    assert "    try:\n        print(\"working\")\n    finally:\n        print(\"done\")" in code
    assert_same_output(src)
    js = gen(src, "javascript")
    assert "  try {" in js and "  } finally {" in js
    assert "  defer:" in gen(src, "nim")


def test_global_declaration_for_assigned_outer_names():
    src = '''var counter = 0
proc bump() =
  counter += 1
bump()
bump()
echo counter
'''
    code = gen(src, "python")
    assert "    global counter" in code
    assert_same_output(src)


def test_enum_and_object_types():
    src = '''type Color = enum
  Red
  Green
type P = object
  x: int
var p = P(x: 3)
echo Green
echo p.x
'''
    code = gen(src, "python")
    assert "from enum import Enum" in code
    assert "from dataclasses import dataclass" in code
    assert "class Color(Enum):" in code
    assert "Green = Color.Green.value" in code
    assert "    x: int = 0" in code
    assert "p = P(x=3)" in code
    assert_same_output(src)

    js = gen(src, "javascript")
    assert "const Color = Object.freeze({Red: 0, Green: 1});" in js
    assert "const { Red, Green } = Color;" in js
    assert "new P({x: 3})" in js


def test_single_expression_lambda():
    src = "var f = proc(x: int): int = x * 2\necho f(4)\n"
    assert "f = lambda x: x * 2" in gen(src, "python")
    assert "(x) => x * 2" in gen(src, "javascript")
    nim = gen(src, "nim")
    assert "import std/sugar" in nim
    assert "(x: int) => x * 2" in nim
    assert_same_output(src)


def test_multi_statement_lambda_is_hoisted():
    src = '''var g = proc(x: int): int =
  var y = x + 1
  y * 2
echo g(3)
'''
    code = gen(src, "python")
    assert "def _lambda0(x):" in code
    assert "g = _lambda0" in code
    assert code.index("def _lambda0") < code.index("g = _lambda0")
    assert_same_output(src)


def test_labeled_loops():
    src = '''block outer:
  for i in 0..<3:
    for j in 0..<3:
      if j == 1:
        break outer
      echo i, j
'''
    js = gen(src, "javascript")
    assert "outer:\nfor (let i = 0; i < 3; i++) {" in js
    assert "break outer;" in js
    nim = gen(src, "nim")
    assert "block outer:\n  for i in 0..<3:" in nim
    assert "break outer" in nim
    py = gen(src, "python")
    assert "# loop 'outer'" in py
    assert "break  # label 'outer'" in py


def test_builtin_math_brings_its_import():
    src = "echo sqrt(16.0) * PI\n"
    py = gen(src, "python")
    assert "import math" in py
    assert "print(math.sqrt(16.0) * math.pi)" in py
    nim = gen(src, "nim")
    assert "import std/math" in nim
    assert "Math.sqrt(16.0) * Math.PI" in gen(src, "javascript")


def test_user_procs_shadow_builtins():
    src = "proc sqrt(x: int): int =\n  x\necho sqrt(4)\n"
    assert "print(sqrt(4))" in gen(src, "python")


def test_extension_codegen_mappings():
    ext = Extension("geo")
    ext.add_import("Python", "mathx")
    ext.map_function("Python", "hyp", "mathx.hypot")
    ext.map_constant("python", "UNIT", "1.0")
    ext.map_function("JavaScript", "hyp", "Math.hypot")
    registry = ExtensionRegistry()
    registry.register(ext)

    ctx = CodegenContext("python")
    load_extensions_codegen(ctx, registry)
    code = gen("echo hyp(3.0, 4.0) * UNIT\n", "python", ctx)
    assert "import mathx" in code
    assert "print(mathx.hypot(3.0, 4.0) * 1.0)" in code

    js_ctx = CodegenContext("js")
    load_extensions_codegen(js_ctx, registry)
    assert "Math.hypot(3.0, 4.0)" in gen("echo hyp(3.0, 4.0)\n", "js", js_ctx)


def test_disabled_extensions_are_skipped():
    ext = Extension("geo")
    ext.map_function("Python", "hyp", "mathx.hypot")
    ext.enabled = False
    registry = ExtensionRegistry()
    registry.register(ext)
    ctx = CodegenContext("python")
    load_extensions_codegen(ctx, registry)
    assert ctx.functions == {}


@pytest.mark.parametrize("name, backend, target, args, expected", [
    ("join", PythonBackend(), "xs", [], '"".join(map(str, xs))'),
    ("join", PythonBackend(), "xs", ['", "'], '", ".join(map(str, xs))'),
    ("contains", PythonBackend(), '"abc"', ['"b"'], '("b" in "abc")'),
    ("contains", JavaScriptBackend(), "s", ['"b"'], 's.includes("b")'),
    ("add", JavaScriptBackend(), "xs", ["1"], "xs.push(1)"),
    ("len", NimBackend(), "xs", [], "xs.len"),
    ("nosuch", NimBackend(), "xs", [], None),
])
def test_render_pseudo_method(name, backend, target, args, expected):
    assert render_pseudo_method(name, backend, target, args) == expected


@pytest.mark.parametrize("name, cls", [
    ("nim", NimBackend), ("Nim", NimBackend), ("mote", NimBackend),
    ("python", PythonBackend), ("py", PythonBackend),
    ("javascript", JavaScriptBackend), ("JS", JavaScriptBackend),
])
def test_get_backend_aliases(name, cls):
    assert isinstance(get_backend(name), cls)


def test_unknown_backend():
    with pytest.raises(ValueError):
        get_backend("cobol")


def test_python_integer_division_truncates():
    src = "var n = -7\necho 7 / 2\necho n div 2\necho n mod 3\necho 7.0 / 2.0\n"
    code = gen(src, "python")
    assert code.count("def _trunc_div(a, b):") == 1
    assert "print(_trunc_div(7, 2))" in code
    assert "print(_trunc_div(int(n), int(2)))" in code
    assert "print(_trunc_mod(n, 3))" in code
    assert run_mote(src) == ["3", "-3", "-1", "3.5"]
    assert_same_output(src)


def test_division_helper_only_when_needed():
    code = gen(PROGRAM, "python")
    assert "_trunc_div" not in code
    assert "_trunc_mod" not in code


def test_statement_capabilities():
    assert isinstance(NimBackend(), NativeStatements)
    assert not isinstance(NimBackend(), TryFinally)
    for backend in (PythonBackend(), JavaScriptBackend()):
        assert isinstance(backend, TryFinally)
        assert not isinstance(backend, NativeStatements)


def test_capability_hooks_are_abstract():
    class HalfNim(NimBackend):
        generate_case = NativeStatements.generate_case

    with pytest.raises(TypeError):
        HalfNim()
    assert "generate_case" not in vars(CodegenBackend)
