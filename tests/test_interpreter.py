import math

import pytest

from mote.mote_runtime import ScriptRunner


def run_mote(src, **kwargs):
    return ScriptRunner().handle_script(src, **kwargs)


def assert_ok(res, expected=None):
    assert res.status == 'success', res.error_message
    if expected is not None:
        assert res.value == expected
        assert type(res.value) is type(expected)


def assert_error(res, fragment):
    assert res.status == 'error', f"expected an error, got {res.value!r}"
    assert fragment in res.error_message


def stdout(res):
    return [e['message'] for e in res.side_effects if e['topics'] == ['stdout']]


# --- arithmetic and operators ---

@pytest.mark.parametrize("src, expected", [
    ("7 / 2", 3),
    ("-7 / 2", -3),
    ("3 / 2", 1),
    ("-7 mod 3", -1),
    ("5 mod 2", 1),
    ("7 div 2", 3),
    ("7.0 / 2", 3.5),
    ("3.0 / 2", 1.5),
    ("1 + 2.5", 3.5),
    ("2 + 3 * 4", 14),
    ("(2 + 3) * 4", 20),
    ("1 shl 4", 16),
    ("256 shr 4", 16),
    ('"a" & 1', "a1"),
    ("$3.0", "3.0"),
    ("$[1, 2]", "[1, 2]"),
    ("1 == 1.0", True),
    ('"abc" < "abd"', True),
    ('"ab" == "a" & "b"', True),
    ("[1, 2] == [1, 2]", True),
    ("2 < 2.5", True),
    ("not true", False),
    ("true and not false", True),
    ("nil == nil", True),
])
def test_operators(src, expected):
    assert_ok(run_mote(src), expected)


def test_float_division_by_zero_is_infinite():
    res = run_mote("1 / 0.0")
    assert_ok(res)
    assert math.isinf(res.value) and res.value > 0


def test_integer_division_by_zero_is_an_error():
    assert_error(run_mote("1 / 0"), "Division by zero")


# --- indexing and slicing ---

@pytest.mark.parametrize("expr, expected", [
    ("a[1..2]", [20, 30]),
    ("a[1..<2]", [20]),
    ("a[2..10]", [30, 40]),
    ("a[3..1]", []),
    ("a[0]", 10),
])
def test_array_indexing_and_slicing(expr, expected):
    assert_ok(run_mote(f"var a = [10, 20, 30, 40]\n{expr}"), expected)


def test_string_slicing():
    assert_ok(run_mote('"hello"[1..3]'), "ell")


def test_index_out_of_bounds():
    assert_error(run_mote("var a = [1]\na[5]"), "Index out of bounds: 5 (array length: 1)")


def test_string_index_out_of_bounds():
    assert_error(run_mote('"ab"[9]'), "String index out of bounds")


def test_map_assignment_and_field_access():
    src = 'var m = {a: 1}\nm["b"] = 2\nm.a + m["b"]'
    assert_ok(run_mote(src), 3)


# --- built-in methods ---

@pytest.mark.parametrize("src, expected", [
    ('"hello".len', 5),
    ('"a,b,c".split(",").len', 3),
    ('["a", "b"].join("-")', "a-b"),
    ('"abc".toUpper', "ABC"),
    ('"ABC".toLower()', "abc"),
    ('"hello".contains("ell")', True),
    ("[1, 2, 3].contains(2)", True),
    ('"  hi ".strip()', "hi"),
    ('"a-b".replace("-", "+")', "a+b"),
    ('"abc".startsWith("ab")', True),
    ('"abc".endsWith("bc")', True),
    ("2.9.int", 2),
    ("3.float", 3.0),
])
def test_pseudo_methods(src, expected):
    assert_ok(run_mote(src), expected)


# --- control flow ---

def test_if_elif_else():
    src = '''var x = 5
var r = ""
if x < 3:
  r = "low"
elif x < 10:
  r = "mid"
else:
  r = "high"
r'''
    assert_ok(run_mote(src), "mid")


def test_while_with_break():
    src = '''var i = 0
while true:
  i += 1
  if i == 5:
    break
i'''
    assert_ok(run_mote(src), 5)


@pytest.mark.parametrize("src, expected", [
    ("var s = 0\nfor i in 4:\n  s += i\ns", 6),
    ("var s = 0\nfor i, x in [5, 5, 5]:\n  s += i * x\ns", 15),
    ('var out = ""\nfor k, v in {a: 1, b: 2}:\n  out = out & k & $v\nout', "a1b2"),
    ('var n = 0\nfor c in "abc":\n  n += 1\nn', 3),
    ("var last = -1\nfor i in 0..<3:\n  last = i\nlast", 2),
    ("var last = -1\nfor i in 0..3:\n  last = i\nlast", 3),
])
def test_for_loop_forms(src, expected):
    assert_ok(run_mote(src), expected)


def test_case_with_ranges_and_else():
    src = '''proc classify(n: int): string =
  case n
  of 0:
    result = "zero"
  of 1..9:
    result = "small"
  else:
    result = "big"
classify(0) & "," & classify(5) & "," & classify(42)'''
    assert_ok(run_mote(src), "zero,small,big")


def test_case_on_strings_with_several_values():
    src = '''var r = 0
case "b"
of "a", "b":
  r = 1
of "c":
  r = 2
r'''
    assert_ok(run_mote(src), 1)


def test_case_without_match_is_an_error():
    assert_error(run_mote("case 7\nof 1:\n  discard\n"), "No case branch matched value 7")


@pytest.mark.parametrize("subject, expected", [
    ("1", "int-branch"),
    ("1.0", "else"),
    ("true", "else"),
    ('"1"', "else"),
])
def test_case_values_match_only_their_own_kind(subject, expected):
    src = f'''var r = ""
case {subject}
of 1:
  r = "int-branch"
else:
  r = "else"
r'''
    assert_ok(run_mote(src), expected)


def test_proc_body_continues_past_a_multiline_call():
    src = '''proc f() =
  var x = max(1,
      2)
  echo "inside"
echo "top"'''
    res = run_mote(src)
    assert_ok(res)
    assert stdout(res) == ["top"]


def test_continue_with_label_skips_to_outer_loop():
    src = '''var hits = 0
block outer:
  for i in 0..<3:
    for j in 0..<3:
      if j == 1:
        continue outer
      hits += 1
hits'''
    assert_ok(run_mote(src), 3)


def test_break_with_label_leaves_nested_loops():
    src = '''var count = 0
block outer:
  for i in 0..<3:
    var j = 0
    while true:
      j += 1
      if j > 2:
        break outer
      count += 1
count'''
    assert_ok(run_mote(src), 2)


def test_break_out_of_labeled_block():
    src = '''var x = 0
block done:
  x = 1
  break done
  x = 2
x'''
    assert_ok(run_mote(src), 1)


# --- defer ---

def test_defers_run_in_reverse_order():
    src = '''var s = ""
proc f() =
  defer: s = s & "a"
  defer: s = s & "b"
  defer: s = s & "c"
f()
s'''
    assert_ok(run_mote(src), "cba")


def test_defer_runs_when_block_ends():
    src = '''var log = ""
block:
  defer: log = log & ",end"
  log = log & "start"
log'''
    assert_ok(run_mote(src), "start,end")


def test_defer_runs_on_early_return():
    src = '''var log = ""
proc f(): int =
  defer: log = log & "cleanup"
  return 7
var v = f()
log & $v'''
    assert_ok(run_mote(src), "cleanup7")


# --- procedures ---

def test_var_param_is_written_back():
    src = '''proc bump(x: var int) =
  x += 10
var n = 1
bump(n)
n'''
    assert_ok(run_mote(src), 11)


def test_var_param_with_non_identifier_argument_is_not_written_back():
    src = '''proc bump(x: var int) =
  x += 10
var arr = [1]
bump(arr[0])
arr[0]'''
    assert_ok(run_mote(src), 1)


def test_closures_keep_their_environment():
    src = '''proc makeCounter(): proc(): int =
  var count = 0
  proc inc(): int =
    count += 1
    count
  inc
var c = makeCounter()
discard c()
c()'''
    assert_ok(run_mote(src), 2)


def test_recursion():
    src = '''proc fib(n: int): int =
  if n < 2:
    return n
  fib(n - 1) + fib(n - 2)
fib(10)'''
    assert_ok(run_mote(src), 55)


def test_result_variable_is_returned():
    src = '''proc total(xs: seq[int]): int =
  for x in xs:
    result += x
total([1, 2, 3])'''
    assert_ok(run_mote(src), 6)


def test_procedure_without_return_type_returns_nil():
    src = "proc f() =\n  discard 1\nf()"
    res = run_mote(src)
    assert_ok(res)
    assert res.value is None


def test_runaway_recursion_is_an_error():
    src = '''proc down(n: int): int =
  down(n + 1)
down(0)'''
    assert_error(run_mote(src), "RuntimeError")


def test_lambda_as_argument():
    src = '''proc apply(f: proc(x: int): int, v: int): int =
  f(v)
apply(proc(x: int): int = x * 2, 21)'''
    assert_ok(run_mote(src), 42)


def test_trailing_block_is_passed_as_lambda():
    src = '''var ran = false
proc each(f: proc()) =
  f()
each():
  ran = true
ran'''
    assert_ok(run_mote(src), True)


def test_undefined_function():
    assert_error(run_mote("nope(1)"), "Undefined function 'nope'")


# --- scoping, types and declarations ---

def test_block_scoped_variable_does_not_leak():
    assert_error(run_mote("if true:\n  var inner = 1\ninner"), "Undefined variable 'inner'")


def test_shadowing_in_block():
    assert_ok(run_mote("var x = 1\nblock:\n  var x = 2\nx"), 1)


def test_assignment_reaches_outer_scope():
    assert_ok(run_mote("var x = 1\nblock:\n  x = 2\nx"), 2)


def test_enum_members_bind_ordinals():
    src = "type Color = enum\n  Red\n  Green\n  Blue\nBlue"
    assert_ok(run_mote(src), 2)


def test_tuple_unpacking():
    assert_ok(run_mote("let (a, b) = (5, 7)\na + b"), 12)


def test_object_field_update():
    src = '''type P = object
  x: int
var p = P(x: 3)
p.x = p.x + 1
p.x'''
    assert_ok(run_mote(src), 4)


def test_typed_declarations_get_zero_values():
    src = "var a: int\nvar b: string\nvar c: float\nvar d: bool\n[a, b, c, d]"
    assert_ok(run_mote(src), [0, "", 0.0, False])


def test_echo_joins_arguments_with_spaces():
    res = run_mote('echo "a", 1, true')
    assert_ok(res)
    assert stdout(res) == ["a 1 true"]
