import pytest

from mote.mote_runtime import ExecutionResult, MoteHost, Runtime, ScriptRunner, mote_api_method


class Player(MoteHost):
    def __init__(self):
        self.hp = 100
        self.reported = []

    @mote_api_method
    def take_damage(self, amount):
        self.hp -= amount
        return self.hp

    @mote_api_method
    def report(self, value):
        self.reported.append(value)

    def heal(self, amount):
        self.hp += amount


class PlainHost:
    @mote_api_method
    def greet(self, name):
        return f"hello {name}"


def run_mote(src, runner=None, **kwargs):
    runner = runner or ScriptRunner()
    kwargs.setdefault("dialect", "mote")
    return runner.handle_script(src, **kwargs)


def assert_ok(res, expected=None):
    assert res.status == 'success', res.error_message
    if expected is not None:
        assert res.value == expected


def assert_error(res, *fragments):
    assert res.status == 'error'
    for fragment in fragments:
        assert fragment in res.error_message


def test_host_api_methods_are_bound():
    player = Player()
    runner = ScriptRunner(host_object=player)
    assert_ok(run_mote("take_damage(5)", runner), 95)
    assert player.hp == 95


def test_unmarked_host_methods_stay_hidden():
    runner = ScriptRunner(host_object=Player())
    assert_error(run_mote("heal(5)", runner), "Undefined function 'heal'")


def test_plain_object_host():
    runner = ScriptRunner(host_object=PlainHost())
    assert_ok(run_mote('greet("ada")', runner), "hello ada")


def test_script_reports_back_to_host():
    player = Player()
    runner = ScriptRunner(host_object=player)
    src = "var counter = 0\nfor i in 0..<5:\n  counter = counter + i\nreport(counter)"
    assert_ok(run_mote(src, runner))
    assert player.reported == [10]


def test_bad_host_arguments_are_reported():
    runner = ScriptRunner(host_object=Player())
    res = run_mote("take_damage()", runner)
    assert_error(res, "TypeError: invalid arguments in (take_damage)")


def test_native_decorator():
    runner = ScriptRunner()
    rt = runner.runtime

    @rt.native
    def shout(env, args):
        return args[0].upper()

    @rt.native("triple")
    def _triple(env, args):
        return args[0] * 3

    assert_ok(run_mote('shout("hi")', runner), "HI")
    assert_ok(run_mote("triple(4)", runner), 12)
    assert shout.__name__ == "shout"


def test_globals_round_trip():
    runner = ScriptRunner()
    rt = runner.runtime
    rt.set_global_int("level", 3.9)
    rt.set_global_string("title", "run")
    assert_ok(run_mote("level * 2", runner), 6)
    assert_ok(run_mote('title & "!"', runner), "run!")
    assert_ok(run_mote("var score = 7", runner))
    assert rt.get_global("score") == 7


def test_non_init_lifecycles_run_in_a_child_scope():
    runner = ScriptRunner()
    assert_ok(run_mote("var hp = 100", runner))
    assert_ok(run_mote("hp = hp - 10\nvar temp = 1", runner, lifecycle="update"))
    assert_ok(run_mote("hp", runner), 90)
    assert_error(run_mote("temp", runner), "Undefined variable 'temp'")


def test_child_lifecycle_declaration_shadows_without_touching_root():
    runner = ScriptRunner()
    assert_ok(run_mote("var x = 2", runner))
    assert_ok(run_mote("var x = 3\nx", runner, lifecycle="update"), 3)
    assert_ok(run_mote("x", runner), 2)
    assert runner.runtime.get_global("x") == 2


def test_host_calls_script_functions():
    runner = ScriptRunner()
    assert_ok(run_mote("proc double(x: int): int =\n  x * 2", runner))
    rt = runner.runtime
    assert rt.call(rt.get_global("double"), 21) == 42


def test_runtimes_are_independent():
    a, b = ScriptRunner(), ScriptRunner()
    assert_ok(run_mote("var shared = 1", a))
    assert_error(run_mote("shared", b), "Undefined variable 'shared'")
    assert a.runtime.root is not b.runtime.root


def test_exec_program():
    rt = Runtime()
    rt.init_stdlib()
    res = rt.exec_program(rt.compile("1 + 2", "mote"))
    assert res.ok
    assert res.value == 3

    res = rt.exec_program(rt.compile("1 div 0", "mote"))
    assert not res.ok
    assert res.error_message == "RuntimeError: Division by zero"
    assert res.error_token == {'line': 1, 'col': 1}
    assert {'topics': ['stderr'], 'message': res.error_message} in res.side_effects


def test_runtime_errors_carry_source_and_stack():
    src = "proc boom(x: int): int =\n  x div 0\nproc outer(y: int): int =\n  boom(y)\nouter(5)"
    res = run_mote(src)
    assert_error(
        res,
        "RuntimeError: Division by zero",
        "> 2 |   x div 0",
        "^",
        "Mote stacktrace: outer(5) at line 5 -> boom(5) at line 4",
    )
    assert res.format_error().startswith("Error on line 2, col 3:")
    assert [e for e in res.side_effects if e['topics'] == ['stderr']]


@pytest.mark.parametrize("src, fragment", [
    ("var = 3", "ParseError: Expected identifier"),
    ("var x = 1 echo x", "ParseError: Expected end of statement"),
    ("var x = 1\n    echo x", "ParseError: Unexpected indentation"),
    ('var s = "abc', "LexError: Unterminated string"),
    ("proc f(): int =\n  f()\nf()", "RuntimeError"),
])
def test_compile_and_runtime_error_kinds(src, fragment):
    assert_error(run_mote(src), fragment)


def test_stdlib_can_be_left_out():
    runner = ScriptRunner(load_stdlib=False)
    assert_ok(run_mote("echo 1", runner))
    assert_error(run_mote("sqrt(4.0)", runner), "Undefined function 'sqrt'")


@pytest.mark.parametrize("result, expected", [
    (ExecutionResult('error', error_message="boom", error_token={'line': 3, 'col': 4}),
     "Error on line 3, col 4: boom"),
    (ExecutionResult('error', error_message="boom", error_token={'line': 3}), "Error on line 3: boom"),
    (ExecutionResult('error', error_message="boom"), "boom"),
    (ExecutionResult('error', error_message="Error on line 1: x", error_token={'line': 1, 'col': 1}),
     "Error on line 1: x"),
    (ExecutionResult('error'), "Unknown error"),
    (ExecutionResult('success', 1), ""),
])
def test_format_error(result, expected):
    assert result.format_error() == expected
