"""
Source-to-source translation of Nanako programs.

Two dialects are produced from the same AST:

- ``js``: brace/semicolon style (``function f(x) { ... }``, ``console.log``)
- ``py``: indentation/colon style (``def f(x):``, ``print``)

Emission is a pure function of the tree: the same AST always produces
byte-identical text.
"""

import dataclasses
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, List, Union

from .ast import (
    AstNode, AstVisitor,
    Statement, Assignment, Append, Increment, Decrement, IfStatement,
    LoopStatement, BreakStatement, ReturnStatement, ExpressionStatement,
    DocTest, Block, Program,
    IntegerLiteral, NullLiteral, TextLiteral, SequenceLiteral,
    Variable, FunctionLiteral, Call, Negate, Length,
)

logger = logging.getLogger(__name__)


INDENT_UNIT = "    "


class Dialect(Enum):
    """Output dialects."""
    JS = "js"
    PY = "py"


def quote_text(text: str) -> str:
    """Double-quoted literal valid in both dialects."""
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def is_named_function(stmt: Statement) -> bool:
    """``name = 入力 ... に対し {...}`` becomes a function declaration."""
    return (
        isinstance(stmt, Assignment)
        and not stmt.target.indices
        and isinstance(stmt.value, FunctionLiteral)
    )


def is_append_assignment(stmt: Statement) -> bool:
    """``x[?] = e`` appends to ``x``."""
    return (
        isinstance(stmt, Assignment)
        and bool(stmt.target.indices)
        and stmt.target.indices[-1] is None
    )


def without_last_index(target: Variable) -> Variable:
    return dataclasses.replace(target, indices=target.indices[:-1])


class CodeEmitter(AstVisitor):
    """
    Shared rendering for both dialects.

    ``self.indent`` is the prefix of the statement being emitted; nested
    blocks are rendered inside ``_nested()``. Statement visitors return
    their complete (possibly multi-line) text including the indent;
    expression visitors return bare text.
    """

    dialect: Dialect

    def __init__(self, indent: str = ""):
        self.indent = indent
        self._loop_depth = 0

    def emit(self, node: AstNode) -> str:
        return node.accept(self)

    @contextmanager
    def _nested(self) -> Iterator[None]:
        saved = self.indent
        self.indent += INDENT_UNIT
        try:
            yield
        finally:
            self.indent = saved

    def _statement(self, stmt: Statement) -> str:
        return stmt.accept(self)

    def _body(self, block: Block) -> str:
        with self._nested():
            return block.accept(self)

    def _line(self, text: str) -> str:
        return f"{self.indent}{text}"

    # --- Containers ---

    def visit_Program(self, node: Program) -> str:
        return "\n".join(self._statement(s) for s in node.statements)

    def visit_Block(self, node: Block) -> str:
        return "\n".join(self._statement(s) for s in node.statements)

    # --- Expressions ---

    def visit_IntegerLiteral(self, node: IntegerLiteral) -> str:
        return str(node.value)

    def visit_TextLiteral(self, node: TextLiteral) -> str:
        return quote_text(node.text)

    def visit_SequenceLiteral(self, node: SequenceLiteral) -> str:
        return "[" + ", ".join(e.accept(self) for e in node.elements) + "]"

    def visit_Call(self, node: Call) -> str:
        return f"{node.name}(" + ", ".join(a.accept(self) for a in node.arguments) + ")"

    def visit_Negate(self, node: Negate) -> str:
        return f"-{node.operand.accept(self)}"

    def visit_Variable(self, node: Variable) -> str:
        text = node.name
        for index in node.indices:
            if index is None:
                text = self._random_element(text)
            else:
                text = f"{text}[{index.accept(self)}]"
        return text

    def _condition(self, node: IfStatement) -> str:
        return f"{node.left.accept(self)} {node.comparator.symbol} {node.right.accept(self)}"

    def _parameters(self, node: FunctionLiteral) -> str:
        return ", ".join(node.parameters)

    def _random_element(self, sequence: str) -> str:
        raise NotImplementedError


class JsEmitter(CodeEmitter):
    """Brace/semicolon dialect."""

    dialect = Dialect.JS

    def _braced(self, block: Block) -> str:
        body = self._body(block)
        if not body:
            return "{\n" + self._line("}")
        return "{\n" + body + "\n" + self._line("}")

    def _random_element(self, sequence: str) -> str:
        return f"{sequence}[Math.floor(Math.random() * {sequence}.length)]"

    def visit_NullLiteral(self, node: NullLiteral) -> str:
        return "null"

    def visit_Length(self, node: Length) -> str:
        return f"({node.operand.accept(self)}).length"

    def visit_FunctionLiteral(self, node: FunctionLiteral) -> str:
        return f"function ({self._parameters(node)}) " + self._braced(node.body)

    def visit_Assignment(self, node: Assignment) -> str:
        if is_named_function(node):
            function = node.value
            header = self._line(f"function {node.target.name}({self._parameters(function)}) ")
            return header + self._braced(function.body) + "\n"
        if is_append_assignment(node):
            target = without_last_index(node.target).accept(self)
            return self._line(f"{target}.push({node.value.accept(self)});")
        return self._line(f"{node.target.accept(self)} = {node.value.accept(self)};")

    def visit_Append(self, node: Append) -> str:
        return self._line(f"{node.target.accept(self)}.push({node.value.accept(self)});")

    def visit_Increment(self, node: Increment) -> str:
        return self._line(f"{node.target.accept(self)} += 1;")

    def visit_Decrement(self, node: Decrement) -> str:
        return self._line(f"{node.target.accept(self)} -= 1;")

    def visit_IfStatement(self, node: IfStatement) -> str:
        text = self._line(f"if({self._condition(node)}) ") + self._braced(node.then_block)
        if node.else_block is not None:
            text += "\n" + self._line("else ") + self._braced(node.else_block)
        return text

    def visit_LoopStatement(self, node: LoopStatement) -> str:
        if isinstance(node.count, NullLiteral):
            return self._line("while(true) ") + self._braced(node.body)
        self._loop_depth += 1
        try:
            var = f"i{self._loop_depth}"
            header = self._line(f"for(var {var} = 0; {var} < {node.count.accept(self)}; {var}++) ")
            return header + self._braced(node.body)
        finally:
            self._loop_depth -= 1

    def visit_BreakStatement(self, node: BreakStatement) -> str:
        return self._line("break;")

    def visit_ReturnStatement(self, node: ReturnStatement) -> str:
        return self._line(f"return {node.value.accept(self)};")

    def visit_ExpressionStatement(self, node: ExpressionStatement) -> str:
        return self._line(f"console.log({node.expression.accept(self)});")

    def visit_DocTest(self, node: DocTest) -> str:
        return self._line(f"console.assert({node.expression.accept(self)} == {node.expected.accept(self)});")


class PyEmitter(CodeEmitter):
    """
    Indentation/colon dialect.

    Python lambdas hold a single expression, so a function literal whose
    body is more than ``e が答え`` is emitted as a ``def _lambda<n>`` placed
    just before the statement that uses it.
    """

    dialect = Dialect.PY

    def __init__(self, indent: str = ""):
        super().__init__(indent)
        self._hoisted: List[str] = []
        self._lambda_count = 0
        self._needs_random = False

    def visit_Program(self, node: Program) -> str:
        text = super().visit_Program(node)
        if self._needs_random:
            text = self._line("import random") + "\n\n" + text
        return text

    def visit_Block(self, node: Block) -> str:
        if not node.statements:
            return self._line("pass")
        return super().visit_Block(node)

    def _statement(self, stmt: Statement) -> str:
        mark = len(self._hoisted)
        text = stmt.accept(self)
        hoisted = self._hoisted[mark:]
        del self._hoisted[mark:]
        return "\n".join(hoisted + [text])

    def _function(self, name: str, node: FunctionLiteral) -> str:
        header = self._line(f"def {name}({self._parameters(node)}):")
        return header + "\n" + self._body(node.body) + "\n"

    def _random_element(self, sequence: str) -> str:
        self._needs_random = True
        return f"random.choice({sequence})"

    def visit_NullLiteral(self, node: NullLiteral) -> str:
        return "None"

    def visit_Length(self, node: Length) -> str:
        return f"len({node.operand.accept(self)})"

    def visit_FunctionLiteral(self, node: FunctionLiteral) -> str:
        statements = node.body.statements
        if len(statements) == 1 and isinstance(statements[0], ReturnStatement):
            return f"lambda {self._parameters(node)}: {statements[0].value.accept(self)}"
        self._lambda_count += 1
        name = f"_lambda{self._lambda_count}"
        self._hoisted.append(self._function(name, node))
        return name

    def visit_Assignment(self, node: Assignment) -> str:
        if is_named_function(node):
            return self._function(node.target.name, node.value)
        if is_append_assignment(node):
            target = without_last_index(node.target).accept(self)
            return self._line(f"{target}.append({node.value.accept(self)})")
        return self._line(f"{node.target.accept(self)} = {node.value.accept(self)}")

    def visit_Append(self, node: Append) -> str:
        return self._line(f"{node.target.accept(self)}.append({node.value.accept(self)})")

    def visit_Increment(self, node: Increment) -> str:
        return self._line(f"{node.target.accept(self)} += 1")

    def visit_Decrement(self, node: Decrement) -> str:
        return self._line(f"{node.target.accept(self)} -= 1")

    def visit_IfStatement(self, node: IfStatement) -> str:
        text = self._line(f"if {self._condition(node)}:") + "\n" + self._body(node.then_block)
        if node.else_block is not None:
            text += "\n" + self._line("else:") + "\n" + self._body(node.else_block)
        return text

    def visit_LoopStatement(self, node: LoopStatement) -> str:
        if isinstance(node.count, NullLiteral):
            header = self._line("while True:")
        else:
            header = self._line(f"for _ in range({node.count.accept(self)}):")
        return header + "\n" + self._body(node.body)

    def visit_BreakStatement(self, node: BreakStatement) -> str:
        return self._line("break")

    def visit_ReturnStatement(self, node: ReturnStatement) -> str:
        return self._line(f"return {node.value.accept(self)}")

    def visit_ExpressionStatement(self, node: ExpressionStatement) -> str:
        return self._line(f"print({node.expression.accept(self)})")

    def visit_DocTest(self, node: DocTest) -> str:
        return self._line(f"assert ({node.expression.accept(self)} == {node.expected.accept(self)})")


EMITTERS = {
    Dialect.JS: JsEmitter,
    Dialect.PY: PyEmitter,
}


def emit(node: Union[AstNode, str], dialect: Union[Dialect, str] = Dialect.PY,
         indent: str = "") -> str:
    """
    Render a program (or any node) in the given dialect.

    Args:
        node: A Program/Statement/Expression, or Nanako source to parse first
        dialect: ``Dialect.JS``/``"js"`` or ``Dialect.PY``/``"py"``
        indent: Prefix for every top-level line

    Returns:
        The translated source text

    Raises:
        ParserError: If ``node`` is source text that does not parse
        ValueError: If the dialect is unknown
    """
    if isinstance(node, str):
        from .parser import parse
        node = parse(node)
    if not isinstance(dialect, Dialect):
        dialect = Dialect(str(dialect).lower())
    emitter = EMITTERS[dialect](indent)
    text = emitter.emit(node)
    logger.debug("emitted %d line(s) of %s", text.count("\n") + 1, dialect.value)
    return text
