"""
Unit tests for the Nanako runtime (values, runtime state and interpreter).
"""

import pytest
import textwrap
from nanako import (
    evaluate, execute, parse,
    Runtime, Interpreter, SequenceValue, Closure,
    values_equal, format_value, wrap_value, unwrap_value,
    ArityError, ControlFlowError, DocTestFailure, ExecutionTimeoutError,
    IndexRangeError, LoopCountError, ManualStopError, TypeMismatchError,
    UndefinedNameError,
)
from nanako.runtime import print_observer, unwrap_environment


def run(source: str, env=None, **kwargs):
    """Helper to dedent and evaluate a program."""
    return evaluate(textwrap.dedent(source), env, **kwargs)


ADDITION = """
足し算 = 入力 X, Y に対し {
    Y回、くり返す {
        Xを増やす
    }
    Xが答え
}
"""

SUBTRACTION = """
引き算 = 入力 X, Y に対し {
    Y回、くり返す {
        Xを減らす
    }
    Xが答え
}
"""

MODULO = SUBTRACTION + """
剰余 = 入力 X, Y に対し {
    R = X
    ?回、くり返す {
        もしRがYより小さいならば、{
            くり返しを抜ける
        }
        R = 引き算(R, Y)
    }
    Rが答え
}
"""


class TestValues:
    """Test runtime value helpers."""

    def test_text_sequence(self):
        """Text sequences are code points with a fixed text flag."""
        text = SequenceValue.from_text("AB")
        assert text.elements == [65, 66]
        assert text.is_text
        assert text.to_text() == "AB"
        with pytest.raises(AttributeError):
            text.is_text = False

    def test_structural_equality(self):
        """Sequences compare element by element, ignoring the text flag."""
        assert values_equal(SequenceValue([65, 66]), SequenceValue.from_text("AB"))
        assert values_equal(SequenceValue([SequenceValue([1])]), SequenceValue([SequenceValue([1])]))
        assert not values_equal(SequenceValue([1]), SequenceValue([1, 2]))
        assert values_equal(None, None)
        assert not values_equal(None, 0)

    def test_closure_equality_is_identity(self):
        """Closures are equal only to themselves."""
        program = parse("f = 入力 x に対し { xが答え }")
        body = program.statements[0].value.body
        first = Closure(("x",), body)
        second = Closure(("x",), body)
        assert values_equal(first, first)
        assert not values_equal(first, second)

    def test_format_value(self):
        """Display forms."""
        assert format_value(None) == "null"
        assert format_value(5) == "5"
        assert format_value(SequenceValue([1, SequenceValue([2])])) == "[1, [2]]"
        assert format_value(SequenceValue.from_text('a"b')) == '"a\\"b"'

    def test_wrap_value(self):
        """Host values are converted recursively."""
        wrapped = wrap_value([1, "ab", [True, None], 2.0])
        assert isinstance(wrapped, SequenceValue)
        assert wrapped.elements[0] == 1
        assert wrapped.elements[1].is_text
        assert wrapped.elements[2].elements == [1, None]
        assert wrapped.elements[3] == 2

    def test_wrap_value_rejects_fractions(self):
        """Fractional floats cannot be represented."""
        with pytest.raises(ValueError):
            wrap_value(2.5)
        with pytest.raises(ValueError):
            wrap_value({"a": 1})

    def test_unwrap_value(self):
        """Runtime values convert back to plain data."""
        assert unwrap_value(SequenceValue([1, SequenceValue.from_text("x")])) == [1, "x"]


class TestRuntime:
    """Test counters, budget, cancellation and the observer."""

    def test_counters(self):
        """Increment, decrement and compare counters."""
        runtime = Runtime()
        run(ADDITION + SUBTRACTION + """
            a = 足し算(1, 3)
            b = 引き算(5, 2)
            もしaがbならば、{
            }
        """, runtime=runtime)
        assert runtime.increment_count == 3
        assert runtime.decrement_count == 2
        assert runtime.compare_count == 1
        assert runtime.snapshot() == {"increment": 3, "decrement": 2, "compare": 1}
        runtime.reset_counters()
        assert runtime.snapshot() == {"increment": 0, "decrement": 0, "compare": 0}

    def test_timeout(self):
        """An endless loop hits the time budget."""
        with pytest.raises(ExecutionTimeoutError, match="タイムアウト"):
            run("""
                ?回、くり返す {
                    x = 1
                }
            """, timeout=0.05)

    def test_manual_stop(self):
        """The stop flag ends the run at the next iteration."""
        runtime = Runtime()
        runtime.observer = lambda value, span: runtime.stop()
        with pytest.raises(ManualStopError, match="手動"):
            run("""
                ?回、くり返す {
                    1
                }
            """, runtime=runtime, timeout=0)

    def test_observer_receives_values(self):
        """Bare expressions are passed to the observer."""
        seen = []
        runtime = Runtime(observer=lambda value, span: seen.append((value, span.source)))
        run("x = 5\nx\n|[1, 2]|", runtime=runtime)
        assert seen == [(5, "x"), (2, "|[1, 2]|")]

    def test_print_observer(self, capsys):
        """The default observer echoes the line and the value."""
        run("x = [1, 2]\nx", runtime=Runtime(observer=print_observer))
        assert capsys.readouterr().out == ">>> x\n[1, 2]\n"

    def test_call_frames_are_popped(self):
        """Frames are removed even when a call fails."""
        runtime = Runtime()
        with pytest.raises(TypeMismatchError):
            run("""
                f = 入力 a に対し {
                    aを増やす
                }
                x = f([1])
            """, runtime=runtime)
        assert runtime.call_frames == []

    def test_exec(self):
        """Runtime.exec parses and runs in one call."""
        assert Runtime().exec("x = 1") == {"x": 1}


class TestInterpreterBasic:
    """Test programs end to end."""

    def test_addition_function(self):
        """Addition by repeated increment."""
        env = run(ADDITION + """
            X = 足し算(10, 5)
            Y = 足し算(X, 6)
        """)
        assert env["X"] == 15
        assert env["Y"] == 21
        assert env["足し算"].name == "足し算"

    def test_absolute_value(self):
        """Conditional with else and negation."""
        env = run("""
            絶対値 = 入力 X に対し {
                もしXが0未満ならば、{
                    -Xが答え
                }
                そうでなければ、{
                    Xが答え
                }
            }
            A = 絶対値(-5)
            B = 絶対値(5)
        """)
        assert env["A"] == 5
        assert env["B"] == 5

    def test_modulo(self):
        """Unbounded loop with break."""
        env = run(MODULO + """
            A = 剰余(60, 48)
            B = 剰余(12, 12)
        """)
        assert env["A"] == 12
        assert env["B"] == 0

    def test_gcd_doctest(self):
        """Functions calling functions, checked by a doctest."""
        run(MODULO + """
            最大公約数 = 入力 A, B に対し {
                ?回、くり返す {
                    もしBが0ならば、{
                        くり返しを抜ける
                    }
                    R = 剰余(A, B)
                    A = B
                    B = R
                }
                Aが答え
            }
            >>> 最大公約数(60, 48)
            12
        """)

    def test_recursion(self):
        """A function can call itself."""
        env = run(ADDITION + """
            総和 = 入力 n に対し {
                もしnが0ならば、{
                    0が答え
                }
                m = n
                mを減らす
                足し算(n, 総和(m))が答え
            }
            S = 総和(4)
        """)
        assert env["S"] == 10

    def test_sum_of_sequence(self):
        """Indexing inside a counted loop."""
        env = run(ADDITION + """
            合計 = 入力 数列 に対し {
                i = 0
                sum = 0
                |数列|回、くり返す {
                    sum = 足し算(sum, 数列[i])
                    iを増やす
                }
                sumが答え
            }
            >>> 合計([1, 2, 3, 4, 5])
            15
        """)
        assert "合計" in env

    def test_break_leaves_innermost_loop(self):
        """Break at y == 5."""
        env = run("""
            y = 0
            ?回、くり返す {
                yを増やす
                もしyが5ならば、{
                    くり返しを抜ける
                }
            }
        """)
        assert env["y"] == 5

    def test_function_without_return_gives_null(self):
        """Falling off the end of a body yields null."""
        env = run("""
            f = 入力 a に対し {
                b = a
            }
            x = f(1)
        """)
        assert env["x"] is None

    def test_call_does_not_leak_bindings(self):
        """Assignments inside a call stay inside it."""
        env = run("""
            x = 1
            f = 入力 a に対し {
                x = 100
                aが答え
            }
            y = f(2)
        """)
        assert env["x"] == 1
        assert env["y"] == 2
        assert "a" not in env

    def test_callee_sees_caller_bindings(self):
        """The callee starts from the caller's bindings at call time."""
        env = run("""
            f = 入力 a に対し {
                kが答え
            }
            k = 7
            y = f(0)
        """)
        assert env["y"] == 7

    def test_env_is_updated_in_place(self):
        """The caller's mapping is the result."""
        env = {"x": [1, 2, 3]}
        result = evaluate("n = |x|", env)
        assert result is env
        assert env["n"] == 3
        assert isinstance(env["x"], SequenceValue)

    def test_execute_with_parsed_program(self):
        """execute() takes a parsed program."""
        program = parse("s = \"abc\"\nn = |s|")
        env = execute(program)
        assert env["n"] == 3
        assert unwrap_environment(env) == {"s": "abc", "n": 3}

    def test_interpreter_direct(self):
        """The Interpreter class can be driven without the helpers."""
        runtime = Runtime()
        runtime.start(timeout=0)
        env = Interpreter(runtime).execute(parse("x = 1\nxを増やす"), {})
        assert env == {"x": 2}


class TestSequences:
    """Test indexing, appending and text views."""

    def test_null_index_write_appends(self):
        """x[?] = e appends."""
        env = run("x = [1]\nx[?] = 2")
        assert unwrap_value(env["x"]) == [1, 2]

    def test_append_statement(self):
        """の末尾に ... を追加する"""
        env = run("x = []\nxの末尾に3を追加する")
        assert unwrap_value(env["x"]) == [3]

    def test_nested_write(self):
        """Assignment through an index chain."""
        env = run("x = [[1, 2], [3]]\nx[0][1] = 9")
        assert unwrap_value(env["x"]) == [[1, 9], [3]]

    def test_random_read(self):
        """x[?] picks some element."""
        env = run("x = [7, 7, 7]\ny = x[?]")
        assert env["y"] == 7

    def test_null_keyword_index_write_appends(self):
        """x[null] = e appends like x[?] = e."""
        env = run("x = [1, 2]\nx[null] = 3")
        assert unwrap_value(env["x"]) == [1, 2, 3]

    def test_null_keyword_index_read(self):
        """x[null] picks some element."""
        env = run("x = [4, 4]\ny = x[null]")
        assert env["y"] == 4

    def test_index_variable_holding_null(self):
        """An index that evaluates to null is the same marker."""
        env = run("""
            n = null
            x = [[5], [5]]
            x[n] = [5]
            x[n][n] = 6
            y = x[n][0]
        """)
        assert len(env["x"]) == 3
        assert env["y"] == 5
        assert sum(len(row) for row in env["x"]) == 4

    def test_increment_through_null_index(self):
        """Increment needs a concrete position."""
        with pytest.raises(TypeMismatchError):
            run("x = [1]\nx[null]を増やす")

    def test_random_read_of_empty_sequence(self):
        """Nothing to pick from an empty sequence."""
        with pytest.raises(IndexRangeError):
            run("x = []\ny = x[?]")

    def test_shared_reference(self):
        """Assignment shares the sequence, it does not copy it."""
        env = run("x = [1]\ny = x\ny[0] = 5")
        assert unwrap_value(env["x"]) == [5]

    def test_text_append(self):
        """Appending a code point to a text sequence."""
        env = run('s = "AB"\nsの末尾に67を追加する')
        assert unwrap_value(env["s"]) == "ABC"

    def test_text_rejects_non_integers(self):
        """Text sequences hold only code points."""
        with pytest.raises(TypeMismatchError):
            run('s = "AB"\ns[0] = [1]')

    def test_text_literal_index(self):
        """"あ"[0] is the code point."""
        env = run('c = "あ"[0]')
        assert env["c"] == ord("あ")

    def test_length(self):
        """|x| of sequences and text."""
        env = run('a = |[1, 2, 3]|\nb = |"あいう"|')
        assert env["a"] == 3
        assert env["b"] == 3

    def test_sequence_equality_in_condition(self):
        """Equality comparison is structural."""
        env = run("""
            x = 0
            もし[1, 2]が[1, 2]ならば、{
                x = 1
            }
            もしxがnullならば、{
                x = 2
            }
        """)
        assert env["x"] == 1

    def test_doctest_compares_structurally(self):
        """Text and code point sequences are equal."""
        run('>>> "AB"\n[65, 66]')


class TestRuntimeErrors:
    """Test each runtime error kind."""

    def test_index_out_of_range(self):
        """Reports the valid range."""
        with pytest.raises(IndexRangeError, match="0番から2番") as excinfo:
            run("x = [1, 2, 3]\ny = x[3]")
        assert excinfo.value.valid_range == (0, 2)

    def test_negative_index(self):
        """Negative indices are out of range."""
        with pytest.raises(IndexRangeError):
            run("x = [1, 2, 3]\ny = x[-1]")

    def test_undefined_variable(self):
        """Reading an unbound name."""
        with pytest.raises(UndefinedNameError, match="変数 'x'"):
            run("y = x")

    def test_undefined_function(self):
        """Calling an unbound name."""
        with pytest.raises(UndefinedNameError, match="関数 'f'"):
            run("y = f(1)")

    def test_call_of_non_function(self):
        """Calling an integer."""
        with pytest.raises(TypeMismatchError, match="関数ではありません"):
            run("f = 1\ny = f(1)")

    def test_arity(self):
        """Argument count mismatch."""
        with pytest.raises(ArityError, match="1個の引数が必要ですが、2個"):
            run("f = 入力 a に対し { aが答え }\ny = f(1, 2)")

    def test_increment_of_sequence(self):
        """Only integers can be incremented."""
        with pytest.raises(TypeMismatchError):
            run("x = [1]\nxを増やす")

    def test_increment_of_undefined(self):
        """Incrementing an unbound name."""
        with pytest.raises(UndefinedNameError):
            run("xを増やす")

    def test_negate_sequence(self):
        """Minus applies to integers only."""
        with pytest.raises(TypeMismatchError, match="マイナス"):
            run("x = -[1]")

    def test_length_of_integer(self):
        """Length applies to sequences only."""
        with pytest.raises(TypeMismatchError):
            run("x = |5|")

    def test_ordering_needs_integers(self):
        """Ordering comparisons need two integers."""
        with pytest.raises(TypeMismatchError):
            run("もし[1]が1より大きいならば、{\n}")

    def test_loop_count_sequence(self):
        """A sequence is not a repeat count."""
        with pytest.raises(LoopCountError):
            run("x = [1, 2]\nx回、くり返す {\n}")

    def test_loop_count_negative(self):
        """Negative repeat counts are rejected."""
        with pytest.raises(LoopCountError):
            run("-1回、くり返す {\n}")

    def test_doctest_failure(self):
        """A failing doctest carries the actual value."""
        with pytest.raises(DocTestFailure, match="失敗") as excinfo:
            run(">>> 1\n2")
        assert excinfo.value.actual == 1

    def test_return_at_top_level(self):
        """が答え outside a function."""
        with pytest.raises(ControlFlowError):
            run("1が答え")

    def test_break_outside_loop(self):
        """くり返しを抜ける outside a loop."""
        with pytest.raises(ControlFlowError):
            run("くり返しを抜ける")

    def test_break_escaping_function(self):
        """A break may not leave a function body."""
        with pytest.raises(ControlFlowError) as excinfo:
            run("""
                f = 入力 a に対し {
                    くり返しを抜ける
                }
                x = f(1)
            """)
        assert [frame.name for frame in excinfo.value.call_stack] == ["f"]

    def test_call_stack_snapshot(self):
        """Errors remember the calls that were active."""
        with pytest.raises(TypeMismatchError) as excinfo:
            run("""
                f = 入力 a に対し {
                    a[0]が答え
                }
                g = 入力 b に対し {
                    f(b)が答え
                }
                x = g(1)
            """)
        error = excinfo.value
        assert [frame.name for frame in error.call_stack] == ["g", "f"]
        assert len(error.diagnostic.related) == 2

    def test_error_detail_points_at_source(self):
        """Runtime errors carry the offending line."""
        with pytest.raises(UndefinedNameError) as excinfo:
            run("x = 1\ny = z")
        detail = excinfo.value.detail
        assert detail.line == 2
        assert detail.line_text == "y = z"


class TestSmallPrograms:
    """Short programs with known results."""

    def test_increment_then_decrement(self):
        """Increment and decrement cancel out."""
        env = run("x = 10\nxを増やす\nxを減らす")
        assert env["x"] == 10

    def test_append_and_length(self):
        """Appending grows the sequence."""
        env = run("arr = [1, 2, 3]\narrの末尾に4を追加する\nn = |arr|")
        assert unwrap_value(env["arr"]) == [1, 2, 3, 4]
        assert env["n"] == 4

    @pytest.mark.parametrize("x, y", [(5, 1), (6, 2)])
    def test_if_else(self, x, y):
        """The else branch runs when the condition fails."""
        env = run("""
            もしxが5ならば、{
                y = 1
            }
            そうでなければ、{
                y = 2
            }
        """, {"x": x})
        assert env["y"] == y

    @pytest.mark.parametrize("count, expected", [(5, 5), (0, 0)])
    def test_counted_loop(self, count, expected):
        """The body runs exactly count times."""
        env = run(f"x = 0\n{count}回、くり返す {{\n    xを増やす\n}}")
        assert env["x"] == expected

    def test_assignment_with_particles(self):
        """を ... とする assigns like =."""
        env = run("xを[1, 2]とする\nx[1]を5とする")
        assert unwrap_value(env["x"]) == [1, 5]
