"""
Unit tests for the Nanako translator.
"""

import pytest
import textwrap
from nanako import (
    parse, parse_expression, emit, Dialect, JsEmitter, PyEmitter,
    IntegerLiteral, NullLiteral, TextLiteral, SequenceLiteral, Variable,
    FunctionLiteral, Call, Negate, Length,
    Assignment, Append, Increment, Decrement, IfStatement, LoopStatement,
    BreakStatement, ReturnStatement, ExpressionStatement, DocTest, Block, Program,
)


SUM_PROGRAM = textwrap.dedent("""
    合計 = 入力 数列 に対し {
        i = 0
        sum = 0
        buf = []
        |数列|回、くり返す {
            sum = 足し算(sum, 数列[i])
            もしsumが10より大きいならば、{
                buf[0] = 数列[i]
            }
            そうでなければ、{
                buf[?] = 数列[i]
            }
            ?回くり返す {
                sum = -sum
            }
            iを増やす
        }
        sumが答え
    }
    >>> 合計([1, 2, 3, 4, 5])
    15
""")

EXPECTED_PY = "\n".join([
    "|def 合計(数列):",
    "|    i = 0",
    "|    sum = 0",
    "|    buf = []",
    "|    for _ in range(len(数列)):",
    "|        sum = 足し算(sum, 数列[i])",
    "|        if sum > 10:",
    "|            buf[0] = 数列[i]",
    "|        else:",
    "|            buf.append(数列[i])",
    "|        while True:",
    "|            sum = -sum",
    "|        i += 1",
    "|    return sum",
    "",
    "|assert (合計([1, 2, 3, 4, 5]) == 15)",
])

EXPECTED_JS = "\n".join([
    "|function 合計(数列) {",
    "|    i = 0;",
    "|    sum = 0;",
    "|    buf = [];",
    "|    for(var i1 = 0; i1 < (数列).length; i1++) {",
    "|        sum = 足し算(sum, 数列[i]);",
    "|        if(sum > 10) {",
    "|            buf[0] = 数列[i];",
    "|        }",
    "|        else {",
    "|            buf.push(数列[i]);",
    "|        }",
    "|        while(true) {",
    "|            sum = -sum;",
    "|        }",
    "|        i += 1;",
    "|    }",
    "|    return sum;",
    "|}",
    "",
    "|console.assert(合計([1, 2, 3, 4, 5]) == 15);",
])


class TestWholePrograms:
    """Test complete translations against known output."""

    def test_python_dialect(self):
        """Indentation/colon dialect."""
        assert emit(parse(SUM_PROGRAM), Dialect.PY, indent="|") == EXPECTED_PY

    def test_js_dialect(self):
        """Brace/semicolon dialect."""
        assert emit(parse(SUM_PROGRAM), Dialect.JS, indent="|") == EXPECTED_JS

    @pytest.mark.parametrize("dialect", ["js", "py"])
    def test_emission_is_repeatable(self, dialect):
        """The same tree always gives the same text."""
        program = parse(SUM_PROGRAM)
        assert emit(program, dialect) == emit(program, dialect)

    @pytest.mark.parametrize("emitter_class", [JsEmitter, PyEmitter])
    def test_every_node_kind_is_handled(self, emitter_class):
        """Each emitter renders every kind of node."""
        node_classes = [
            IntegerLiteral, NullLiteral, TextLiteral, SequenceLiteral, Variable,
            FunctionLiteral, Call, Negate, Length,
            Assignment, Append, Increment, Decrement, IfStatement, LoopStatement,
            BreakStatement, ReturnStatement, ExpressionStatement, DocTest, Block, Program,
        ]
        for node_class in node_classes:
            assert hasattr(emitter_class, f"visit_{node_class.__name__}"), node_class.__name__

    def test_emit_from_source(self):
        """Source text is parsed before emitting."""
        assert emit("x = 1", "py") == "x = 1"

    def test_dialect_name_is_case_insensitive(self):
        """Dialect names may be given as strings."""
        assert emit("x = 1", "JS") == "x = 1;"

    def test_unknown_dialect(self):
        """Unknown dialects are rejected."""
        with pytest.raises(ValueError):
            emit("x = 1", "ruby")

    def test_expression_node(self):
        """Single expressions can be emitted."""
        assert emit(parse_expression("|x|"), "py") == "len(x)"
        assert emit(parse_expression("|x|"), "js") == "(x).length"


class TestFunctions:
    """Test function literal translation."""

    def test_single_return_becomes_lambda(self):
        """A body of just e が答え is a lambda in the Python dialect."""
        source = "y = 適用(入力 x に対し { xが答え }, 1)"
        assert emit(source, "py") == "y = 適用(lambda x: x, 1)"

    def test_anonymous_function_in_js(self):
        """Anonymous functions are inline in the JS dialect."""
        source = "y = 適用(入力 x に対し { xが答え }, 1)"
        assert emit(source, "js") == "y = 適用(function (x) {\n    return x;\n}, 1);"

    def test_longer_body_is_hoisted(self):
        """Other anonymous functions become a def before the statement."""
        source = textwrap.dedent("""
            y = 適用(入力 x に対し {
                xを増やす
                xが答え
            }, 1)
        """)
        assert emit(source, "py") == (
            "def _lambda1(x):\n"
            "    x += 1\n"
            "    return x\n"
            "\n"
            "y = 適用(_lambda1, 1)"
        )

    def test_empty_function_body(self):
        """An empty body still has a statement."""
        assert emit("f = 入力 x に対し {\n}", "py") == "def f(x):\n    pass\n"


class TestStatements:
    """Test individual statement translations."""

    @pytest.mark.parametrize("source, py, js", [
        ("xを減らす", "x -= 1", "x -= 1;"),
        ("xの末尾に1を追加する", "x.append(1)", "x.push(1);"),
        ("x", "print(x)", "console.log(x);"),
        ("x = ?", "x = None", "x = null;"),
        ("x[?] = 2", "x.append(2)", "x.push(2);"),
        ("x[null] = 2", "x.append(2)", "x.push(2);"),
        ("y = x[null]", "import random\n\ny = random.choice(x)",
         "y = x[Math.floor(Math.random() * x.length)];"),
        ("x[0][1] = -2", "x[0][1] = -2", "x[0][1] = -2;"),
        (r'x = "a\"b"', r'x = "a\"b"', r'x = "a\"b";'),
    ])
    def test_simple_statements(self, source, py, js):
        """One-line statements in both dialects."""
        assert emit(source, "py") == py
        assert emit(source, "js") == js

    def test_not_equal(self):
        """以外 becomes !=."""
        source = "もしxが1以外ならば、{\n    くり返しを抜ける\n}"
        assert emit(source, "py") == "if x != 1:\n    break"
        assert emit(source, "js") == "if(x != 1) {\n    break;\n}"

    def test_random_read(self):
        """x[?] picks a random element."""
        assert emit("y = x[?]", "py") == "import random\n\ny = random.choice(x)"
        assert emit("y = x[?]", "js") == "y = x[Math.floor(Math.random() * x.length)];"

    def test_empty_loop(self):
        """Empty blocks."""
        assert emit("5回、くり返す {\n}", "py") == "for _ in range(5):\n    pass"
        assert emit("5回、くり返す {\n}", "js") == "for(var i1 = 0; i1 < 5; i1++) {\n}"

    def test_nested_loop_variables(self):
        """Nested counted loops get distinct counters."""
        source = textwrap.dedent("""
            2回くり返す {
                3回くり返す {
                    x = 1
                }
            }
            4回くり返す {
            }
        """)
        assert emit(source, "js") == (
            "for(var i1 = 0; i1 < 2; i1++) {\n"
            "    for(var i2 = 0; i2 < 3; i2++) {\n"
            "        x = 1;\n"
            "    }\n"
            "}\n"
            "for(var i1 = 0; i1 < 4; i1++) {\n"
            "}"
        )
