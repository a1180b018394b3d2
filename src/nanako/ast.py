"""
Abstract Syntax Tree (AST) node definitions for Nanako.

Nodes are immutable once the parser has built them; sequences of children
are stored as tuples. Every node carries the span of source text it was
parsed from so that the interpreter can report errors against the
program text.
"""

from abc import ABC
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Optional, Tuple

from .source import SourceSpan


# =============================================================================
# Base Classes
# =============================================================================

@dataclass(frozen=True)
class AstNode(ABC):
    """Base class for all AST nodes."""
    span: SourceSpan  # Source location for error reporting

    def accept(self, visitor: "AstVisitor") -> Any:
        """Accept a visitor for traversal."""
        method_name = f"visit_{self.__class__.__name__}"
        method = getattr(visitor, method_name, visitor.generic_visit)
        return method(self)


class AstVisitor(ABC):
    """Base class for AST visitors."""

    def generic_visit(self, node: AstNode) -> Any:
        """Default visit method."""
        raise NotImplementedError(f"No visitor for {node.__class__.__name__}")


class Comparator(Enum):
    """Comparison selected by the particle before ならば."""
    EQ = "=="
    NE = "!="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="

    @property
    def symbol(self) -> str:
        return self.value

    def compare(self, left: int, right: int) -> bool:
        if self is Comparator.EQ:
            return left == right
        if self is Comparator.NE:
            return left != right
        if self is Comparator.GT:
            return left > right
        if self is Comparator.GE:
            return left >= right
        if self is Comparator.LT:
            return left < right
        return left <= right


# Particles that may follow the right operand of a conditional
COMPARATOR_PARTICLES = {
    "以上": Comparator.GE,
    "以下": Comparator.LE,
    "より大きい": Comparator.GT,
    "より小さい": Comparator.LT,
    "未満": Comparator.LT,
    "以外": Comparator.NE,
}


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass(frozen=True)
class Expression(AstNode):
    """Base class for all expressions."""
    pass


@dataclass(frozen=True)
class IntegerLiteral(Expression):
    """An integer such as ``42``, or the code point of ``"文字"[0]``."""
    value: int


@dataclass(frozen=True)
class NullLiteral(Expression):
    """``?``, ``？`` or ``null``."""
    pass


@dataclass(frozen=True)
class TextLiteral(Expression):
    """A quoted string; evaluates to a text sequence of code points."""
    code_points: Tuple[int, ...]

    @property
    def text(self) -> str:
        return "".join(chr(c) for c in self.code_points)


@dataclass(frozen=True)
class SequenceLiteral(Expression):
    """A bracketed list such as ``[1, 2, 3]``."""
    elements: Tuple[Expression, ...]


@dataclass(frozen=True)
class Variable(Expression):
    """A name, optionally followed by an index chain: ``x[i][?]``.

    A ``None`` entry in ``indices`` stands for a ``?`` index.
    """
    name: str
    indices: Tuple[Optional[Expression], ...] = ()


@dataclass(frozen=True)
class Block(AstNode):
    """A braced list of statements."""
    statements: Tuple["Statement", ...]


@dataclass(frozen=True)
class FunctionLiteral(Expression):
    """``入力 a, b に対し { ... }`` (``λ`` may replace ``入力``)."""
    parameters: Tuple[str, ...]
    body: Block


@dataclass(frozen=True)
class Call(Expression):
    """A call of a named function: ``f(a, b)``."""
    name: str
    arguments: Tuple[Expression, ...]


@dataclass(frozen=True)
class Negate(Expression):
    """Unary minus: ``-x``."""
    operand: Expression


@dataclass(frozen=True)
class Length(Expression):
    """Sequence length: ``|x|``."""
    operand: Expression


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass(frozen=True)
class Statement(AstNode):
    """Base class for all statements."""
    pass


@dataclass(frozen=True)
class Assignment(Statement):
    """``x = e`` or ``x を e とする``."""
    target: Variable
    value: Expression


@dataclass(frozen=True)
class Append(Statement):
    """``x の末尾に e を追加する``."""
    target: Variable
    value: Expression


@dataclass(frozen=True)
class Increment(Statement):
    """``x を増やす``."""
    target: Variable


@dataclass(frozen=True)
class Decrement(Statement):
    """``x を減らす``."""
    target: Variable


@dataclass(frozen=True)
class IfStatement(Statement):
    """Conditional.

    Syntax:
        もし L が R [以上|以下|より大きい|より小さい|未満|以外] ならば、{
            ...
        }
        そうでなければ、{
            ...
        }
    """
    left: Expression
    comparator: Comparator
    right: Expression
    then_block: Block
    else_block: Optional[Block] = None


@dataclass(frozen=True)
class LoopStatement(Statement):
    """``N 回、くり返す { ... }``; a null count repeats until broken."""
    count: Expression
    body: Block


@dataclass(frozen=True)
class BreakStatement(Statement):
    """``くり返しを抜ける``."""
    pass


@dataclass(frozen=True)
class ReturnStatement(Statement):
    """``e が答え``."""
    value: Expression


@dataclass(frozen=True)
class ExpressionStatement(Statement):
    """A bare expression; its value is handed to the runtime observer."""
    expression: Expression


@dataclass(frozen=True)
class DocTest(Statement):
    """``>>> e`` followed by the expected value on the next line."""
    expression: Expression
    expected: Expression


@dataclass(frozen=True)
class Program(AstNode):
    """A complete Nanako program."""
    statements: Tuple[Statement, ...]


# =============================================================================
# Visitor Helpers
# =============================================================================

class PrintVisitor(AstVisitor):
    """Debug visitor that prints the AST structure."""

    def __init__(self, indent: int = 0):
        self.indent = indent

    def _print(self, text: str) -> None:
        print("  " * self.indent + text)

    def generic_visit(self, node: AstNode) -> None:
        self._print(f"{node.__class__.__name__}")
        for f in fields(node):
            if f.name == "span":
                continue
            value = getattr(node, f.name)
            if isinstance(value, AstNode):
                self._print(f"  {f.name}:")
                PrintVisitor(self.indent + 2).generic_visit(value)
            elif isinstance(value, tuple):
                self._print(f"  {f.name}: [")
                for item in value:
                    if isinstance(item, AstNode):
                        PrintVisitor(self.indent + 2).generic_visit(item)
                    else:
                        self._print(f"    {item!r}")
                self._print("  ]")
            else:
                self._print(f"  {f.name}: {value!r}")


def print_ast(node: AstNode) -> None:
    """Print an AST node for debugging."""
    PrintVisitor().generic_visit(node)
