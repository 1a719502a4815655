import pytest

from mote.mote_errors import MoteError
from mote.mote_frontends import compile_source, detect_dialect, registry
from mote.mote_runtime import ScriptRunner


def run_mote(src, **kwargs):
    return ScriptRunner().handle_script(src, **kwargs)


def assert_ok(res, expected=None):
    assert res.status == 'success', res.error_message
    if expected is not None:
        assert res.value == expected


def stdout(res):
    return [e['message'] for e in res.side_effects if e['topics'] == ['stdout']]


CANONICAL = '''proc total(items: seq[int]): int =
  var s = 0
  for x in items:
    s = s + x
  return s

echo total([2, 3, 4])
'''

PYTHON = '''def total(items):
    s = 0
    for x in items:
        s = s + x
    return s

print(total([2, 3, 4]))
'''

JAVASCRIPT = '''function total(items) {
  let s = 0;
  for (const x of items) {
    s = s + x;
  }
  return s;
}

console.log(total([2, 3, 4]));
'''


@pytest.mark.parametrize("src, dialect", [
    (CANONICAL, "mote"),
    (PYTHON, "python"),
    (JAVASCRIPT, "javascript"),
    (PYTHON, None),
    (JAVASCRIPT, None),
])
def test_dialects_run_the_same_program(src, dialect):
    res = run_mote(src, dialect=dialect)
    assert_ok(res)
    assert stdout(res) == ["9"]


@pytest.mark.parametrize("src, expected", [
    (CANONICAL, "mote"),
    (PYTHON, "python"),
    (JAVASCRIPT, "javascript"),
    ("x = 1", "mote"),
    ("let x = 1;\nx = x + 1;", "javascript"),
    ("flag = True", "python"),
])
def test_detect_dialect_from_content(src, expected):
    assert detect_dialect(src) == expected


@pytest.mark.parametrize("filename, expected", [
    ("script.py", "python"),
    ("script.js", "javascript"),
    ("script.nim", "mote"),
    ("script.mote", "mote"),
])
def test_detect_dialect_from_extension(filename, expected):
    # The extension wins over what the text looks like
    assert detect_dialect("echo 1", filename) == expected


def test_unknown_extension_falls_back_to_content():
    assert detect_dialect(PYTHON, "script.txt") == "python"


def test_registry_aliases():
    assert registry.get("py").name == "python"
    assert registry.get("JS").name == "javascript"
    assert registry.get("nimini").name == "mote"
    with pytest.raises(MoteError) as exc:
        registry.get("cobol")
    assert "Unknown dialect 'cobol'" in exc.value.message


def test_python_keywords_and_operators():
    src = '''flag = True
if flag and None == None:
    print("yes")
else:
    print("no")
print(7 // 2)
print("abc".upper())
'''
    res = run_mote(src, dialect="python")
    assert_ok(res)
    assert stdout(res) == ["yes", "3", "ABC"]


def test_python_range_and_annotations():
    src = '''def tri(n: int) -> int:
    acc = 0
    for i in range(n + 1):
        acc = acc + i
    return acc

print(tri(4))
print(len(range(2, 5)))
'''
    res = run_mote(src, dialect="python")
    assert_ok(res)
    assert stdout(res) == ["10", "3"]


def test_python_append_maps_to_add():
    src = "xs = []\nxs.append(1)\nxs.append(2)\nxs"
    assert_ok(run_mote(src, dialect="python"), [1, 2])


def test_javascript_else_if_chain():
    src = '''function grade(n) {
  if (n > 90) {
    return "A";
  } else if (n > 80) {
    return "B";
  } else {
    return "C";
  }
}
console.log(grade(95), grade(85), grade(10));
'''
    res = run_mote(src, dialect="javascript")
    assert_ok(res)
    assert stdout(res) == ["A B C"]


def test_javascript_increment_and_while():
    src = '''let i = 0;
while (i < 3) {
  i++;
}
console.log(i);
'''
    res = run_mote(src, dialect="javascript")
    assert_ok(res)
    assert stdout(res) == ["3"]


def test_javascript_objects_comments_and_strict_equality():
    src = '''/* totals
   over two lines */
const p = {x: 1, y: 2}; // a point
if (p.x + p.y === 3 && !(p.x !== 1)) {
  console.log("ok");
}
'''
    res = run_mote(src, dialect="javascript")
    assert_ok(res)
    assert stdout(res) == ["ok"]


def test_javascript_empty_block():
    src = "function noop() {\n}\nnoop();\nconsole.log(1);\n"
    res = run_mote(src, dialect="javascript")
    assert_ok(res)
    assert stdout(res) == ["1"]


@pytest.mark.parametrize("src, fragment", [
    ("for (let i = 0; i < 3; i++) {\n  console.log(i);\n}\n", "C-style for loops are not supported"),
    ("const f = (x) => x * 2;\n", "Arrow functions are not supported"),
    ("let i = 0;\n++i;\n", "Prefix '++' is not supported"),
    ("function f() {\n  return 1;\n", "Unclosed block"),
])
def test_javascript_unsupported_forms(src, fragment):
    res = run_mote(src, dialect="javascript")
    assert res.status == 'error'
    assert "ParseError" in res.error_message
    assert fragment in res.error_message


def test_compile_source_with_explicit_dialect():
    assert compile_source(PYTHON, "python") == compile_source(PYTHON, "auto")
