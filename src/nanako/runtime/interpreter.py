"""
Tree-walking interpreter for Nanako programs.

Statements report how they finished through an ``Outcome`` instead of
raising exceptions for control flow: blocks stop at the first outcome that
is not NORMAL, loops absorb BREAK, and calls absorb RETURN. Anything that
escapes those boundaries is a ``ControlFlowError``.
"""

import itertools
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, MutableMapping, Optional, Tuple

from .. import config
from ..ast import (
    Comparator,
    Statement, Assignment, Append, Increment, Decrement, IfStatement,
    LoopStatement, BreakStatement, ReturnStatement, ExpressionStatement,
    DocTest, Program,
    Expression, IntegerLiteral, NullLiteral, TextLiteral, SequenceLiteral,
    Variable, FunctionLiteral, Call, Negate, Length,
)
from ..errors import (
    NanakoError,
    error_arity,
    error_doctest_failed,
    error_index_range,
    error_loop_count,
    error_misplaced_break,
    error_misplaced_return,
    error_type_mismatch,
    error_undefined_function,
    error_undefined_variable,
)
from ..source import SourceSpan
from .context import Runtime
from .values import (
    Closure, SequenceValue,
    format_value, is_integer, kind_name, values_equal, wrap_environment,
)

logger = logging.getLogger(__name__)

Environment = MutableMapping[str, Any]


class OutcomeKind(Enum):
    NORMAL = "normal"
    RETURN = "return"
    BREAK = "break"


@dataclass(frozen=True)
class Outcome:
    """How a statement finished; ``span`` is where a RETURN/BREAK came from."""
    kind: OutcomeKind
    value: Any = None
    span: Optional[SourceSpan] = None


NORMAL = Outcome(OutcomeKind.NORMAL)


class Interpreter:
    """
    Tree-walking interpreter for Nanako.

    Evaluates AST nodes by dispatching on node type. The environment is a
    plain mutable mapping of names to runtime values and is updated in
    place.
    """

    def __init__(self, runtime: Optional[Runtime] = None, rng: Optional[random.Random] = None):
        """
        Initialize the interpreter.

        Args:
            runtime: Counters, budget and observer for this run
            rng: Source of randomness for ``[?]`` reads
        """
        self.runtime = runtime or Runtime()
        self.rng = rng or random.Random()

    def execute(self, program: Program, env: Environment) -> Environment:
        """
        Run every top-level statement of ``program`` against ``env``.

        Returns:
            ``env`` after execution

        Raises:
            NanakoError: On the first runtime error (the run stops there)
        """
        logger.debug("executing %d statement(s)", len(program.statements))
        outcome = self._execute_block(program.statements, env)
        if outcome.kind is OutcomeKind.RETURN:
            raise error_misplaced_return(outcome.span)
        if outcome.kind is OutcomeKind.BREAK:
            raise error_misplaced_break(outcome.span)
        logger.debug("execution finished in %.3fs, counters=%s",
                     self.runtime.elapsed, self.runtime.snapshot())
        return env

    # =========================================================================
    # Statements
    # =========================================================================

    def _execute_block(self, statements: Iterable[Statement], env: Environment) -> Outcome:
        for stmt in statements:
            outcome = self._execute_statement(stmt, env)
            if outcome.kind is not OutcomeKind.NORMAL:
                return outcome
        return NORMAL

    def _execute_statement(self, stmt: Statement, env: Environment) -> Outcome:
        """Execute a single statement."""
        if isinstance(stmt, Assignment):
            self._execute_assignment(stmt, env)
        elif isinstance(stmt, Increment):
            self._add_to_target(stmt.target, 1, env)
            self.runtime.increment_count += 1
        elif isinstance(stmt, Decrement):
            self._add_to_target(stmt.target, -1, env)
            self.runtime.decrement_count += 1
        elif isinstance(stmt, Append):
            container = self._require_sequence(self._evaluate(stmt.target, env), stmt.target.span)
            value = self._evaluate(stmt.value, env)
            self._check_storable(container, value, stmt.value.span)
            container.append(value)
        elif isinstance(stmt, IfStatement):
            return self._execute_if(stmt, env)
        elif isinstance(stmt, LoopStatement):
            return self._execute_loop(stmt, env)
        elif isinstance(stmt, BreakStatement):
            return Outcome(OutcomeKind.BREAK, span=stmt.span)
        elif isinstance(stmt, ReturnStatement):
            return Outcome(OutcomeKind.RETURN, self._evaluate(stmt.value, env), stmt.span)
        elif isinstance(stmt, ExpressionStatement):
            self.runtime.observe(self._evaluate(stmt.expression, env), stmt.span)
        elif isinstance(stmt, DocTest):
            self._execute_doctest(stmt, env)
        else:
            raise NotImplementedError(f"Statement type not implemented: {type(stmt).__name__}")
        return NORMAL

    def _execute_assignment(self, stmt: Assignment, env: Environment) -> None:
        value = self._evaluate(stmt.value, env)
        target = stmt.target
        if not target.indices:
            if isinstance(value, Closure) and not value.name:
                value.name = target.name
            # A bare name that does not exist yet starts out as 0
            env.setdefault(target.name, 0)
            env[target.name] = value
            return

        container, index = self._resolve_slot(target, env)
        self._check_storable(container, value, stmt.value.span)
        if index is None:
            container.append(value)
        else:
            container.elements[index] = value

    def _add_to_target(self, target: Variable, delta: int, env: Environment) -> None:
        """Shared body of increment and decrement."""
        if not target.indices:
            current = self._lookup(target.name, target.span, env)
            env[target.name] = self._require_integer(current, target.span, "増やしたり減らしたり") + delta
            return

        container, index = self._resolve_slot(target, env)
        if index is None:
            raise error_type_mismatch("「?」の添え字は代入と追加にしか使えません", target.span)
        current = self._require_integer(container.elements[index], target.span, "増やしたり減らしたり")
        container.elements[index] = current + delta

    def _execute_if(self, stmt: IfStatement, env: Environment) -> Outcome:
        left = self._evaluate(stmt.left, env)
        right = self._evaluate(stmt.right, env)
        self.runtime.compare_count += 1

        if stmt.comparator is Comparator.EQ:
            matched = values_equal(left, right)
        elif stmt.comparator is Comparator.NE:
            matched = not values_equal(left, right)
        else:
            if not (is_integer(left) and is_integer(right)):
                raise error_type_mismatch(
                    f"大小を比べられるのは整数どうしだけです（{kind_name(left)}と{kind_name(right)}）",
                    stmt.span,
                )
            matched = stmt.comparator.compare(left, right)

        if matched:
            return self._execute_block(stmt.then_block.statements, env)
        if stmt.else_block is not None:
            return self._execute_block(stmt.else_block.statements, env)
        return NORMAL

    def _execute_loop(self, stmt: LoopStatement, env: Environment) -> Outcome:
        count = self._evaluate(stmt.count, env)
        if count is None:
            iterations: Iterable[int] = itertools.count()
        elif isinstance(count, SequenceValue):
            raise error_loop_count(
                "くり返す回数に配列は使えません。長さを使うなら |配列| と書きましょう",
                stmt.count.span,
            )
        elif not is_integer(count):
            raise error_loop_count(f"くり返す回数には整数を使ってください（{kind_name(count)}です）",
                                   stmt.count.span)
        elif count < 0:
            raise error_loop_count(f"くり返す回数が負の数（{count}）です", stmt.count.span)
        else:
            iterations = range(count)

        for _ in iterations:
            self.runtime.check_execution(stmt.span)
            outcome = self._execute_block(stmt.body.statements, env)
            if outcome.kind is OutcomeKind.BREAK:
                break
            if outcome.kind is OutcomeKind.RETURN:
                return outcome
        return NORMAL

    def _execute_doctest(self, stmt: DocTest, env: Environment) -> None:
        actual = self._evaluate(stmt.expression, env)
        expected = self._evaluate(stmt.expected, env)
        if not values_equal(actual, expected):
            raise error_doctest_failed(format_value(actual), format_value(expected), actual, stmt.span)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _evaluate(self, expr: Expression, env: Environment) -> Any:
        """Evaluate an expression to a runtime value."""
        if isinstance(expr, IntegerLiteral):
            return expr.value
        if isinstance(expr, NullLiteral):
            return None
        if isinstance(expr, TextLiteral):
            return SequenceValue(list(expr.code_points), is_text=True)
        if isinstance(expr, SequenceLiteral):
            return SequenceValue([self._evaluate(e, env) for e in expr.elements])
        if isinstance(expr, Variable):
            value = self._lookup(expr.name, expr.span, env)
            for index_expr in expr.indices:
                value = self._read_index(value, index_expr, env, expr.span)
            return value
        if isinstance(expr, FunctionLiteral):
            return Closure(expr.parameters, expr.body)
        if isinstance(expr, Call):
            return self._call(expr, env)
        if isinstance(expr, Negate):
            operand = self._evaluate(expr.operand, env)
            if not is_integer(operand):
                raise error_type_mismatch(
                    f"マイナス記号（-）は数値にのみ使えます（{kind_name(operand)}には使えません）",
                    expr.span,
                )
            return -operand
        if isinstance(expr, Length):
            operand = self._evaluate(expr.operand, env)
            if not isinstance(operand, SequenceValue):
                raise error_type_mismatch(
                    f"|x| で長さを求められるのは配列か文字列だけです（{kind_name(operand)}です）",
                    expr.span,
                )
            return len(operand)
        raise NotImplementedError(f"Expression type not implemented: {type(expr).__name__}")

    def _call(self, expr: Call, env: Environment) -> Any:
        if expr.name not in env:
            raise error_undefined_function(expr.name, expr.span)
        function = env[expr.name]
        if not isinstance(function, Closure):
            raise error_type_mismatch(
                f"'{expr.name}' は関数ではありません（{kind_name(function)}です）", expr.span)

        arguments = tuple(self._evaluate(arg, env) for arg in expr.arguments)
        if len(arguments) != function.arity:
            raise error_arity(expr.name, function.arity, len(arguments), expr.span)

        # The callee sees a copy of the caller's bindings plus its parameters
        call_env: Dict[str, Any] = dict(env)
        call_env.update(zip(function.parameters, arguments))

        with self.runtime.call_frame(function.name or expr.name, arguments, expr.span):
            try:
                outcome = self._execute_block(function.body.statements, call_env)
                if outcome.kind is OutcomeKind.BREAK:
                    raise error_misplaced_break(outcome.span)
            except NanakoError as e:
                if not e.call_stack:
                    e.with_call_stack(self.runtime.call_frames)
                raise

        if outcome.kind is OutcomeKind.RETURN:
            return outcome.value
        return None

    # =========================================================================
    # Variables and Indexing
    # =========================================================================

    def _lookup(self, name: str, span: SourceSpan, env: Environment) -> Any:
        if name not in env:
            raise error_undefined_variable(name, span)
        return env[name]

    def _require_sequence(self, value: Any, span: SourceSpan) -> SequenceValue:
        if not isinstance(value, SequenceValue):
            raise error_type_mismatch(f"配列ではありません（{kind_name(value)}です）", span)
        return value

    def _require_integer(self, value: Any, span: SourceSpan, action: str) -> int:
        if not is_integer(value):
            raise error_type_mismatch(f"{action}できるのは整数だけです（{kind_name(value)}です）", span)
        return value

    def _evaluate_index(self, index_expr: Optional[Expression], env: Environment) -> Optional[int]:
        """The index value; None for a ``?`` index or one that evaluates to null."""
        if index_expr is None:
            return None
        index = self._evaluate(index_expr, env)
        if index is not None and not is_integer(index):
            raise error_type_mismatch(
                f"配列の添え字には整数を使ってください（{kind_name(index)}です）", index_expr.span)
        return index

    def _check_range(self, container: SequenceValue, index: int, span: SourceSpan) -> None:
        if not 0 <= index < len(container):
            raise error_index_range(len(container), span)

    def _read_index(self, value: Any, index_expr: Optional[Expression],
                    env: Environment, span: SourceSpan) -> Any:
        """``value[index]``; a null index picks a random element."""
        container = self._require_sequence(value, span)
        index = self._evaluate_index(index_expr, env)
        if index is None:
            if not container.elements:
                raise error_index_range(0, span)
            return container.elements[self.rng.randrange(len(container))]
        self._check_range(container, index, index_expr.span)
        return container.elements[index]

    def _resolve_slot(self, target: Variable, env: Environment) -> Tuple[SequenceValue, Optional[int]]:
        """
        Find the sequence and position an indexed target refers to.

        Returns ``(container, None)`` for a terminal null index, meaning
        "append to container".
        """
        current = self._lookup(target.name, target.span, env)
        for index_expr in target.indices[:-1]:
            current = self._read_index(current, index_expr, env, target.span)
        container = self._require_sequence(current, target.span)

        last = target.indices[-1]
        index = self._evaluate_index(last, env)
        if index is None:
            return container, None
        self._check_range(container, index, last.span)
        return container, index

    def _check_storable(self, container: SequenceValue, value: Any, span: SourceSpan) -> None:
        if container.is_text and not is_integer(value):
            raise error_type_mismatch(
                f"文字列に入れられるのは文字（整数）だけです（{kind_name(value)}です）", span)


def execute(
    program: Program,
    env: Optional[Environment] = None,
    timeout: Optional[float] = None,
    runtime: Optional[Runtime] = None,
) -> Environment:
    """
    Execute a parsed program.

    This is a convenience wrapper around Interpreter.execute(). Host values
    in ``env`` are converted to runtime values first (in place).

    Args:
        program: Parsed Program
        env: Initial bindings; updated in place and returned
        timeout: Budget in seconds (default from ``NANAKO_TIMEOUT``)
        runtime: Runtime to use, e.g. one with a custom observer

    Returns:
        The final environment
    """
    runtime = runtime or Runtime()
    runtime.start(config.get_default_timeout() if timeout is None else timeout)
    env = wrap_environment(env)
    return Interpreter(runtime).execute(program, env)


def evaluate(
    source: str,
    env: Optional[Environment] = None,
    timeout: Optional[float] = None,
    runtime: Optional[Runtime] = None,
    filename: Optional[str] = None,
) -> Environment:
    """
    High-level API to parse and run Nanako source in one call.

        from nanako import evaluate

        env = evaluate('''
        足し算 = 入力 X, Y に対し {
            Y回、くり返す {
                Xを増やす
            }
            Xが答え
        }
        X = 足し算(10, 5)
        ''')
        assert env["X"] == 15

    Raises:
        ParserError: If the source is malformed
        NanakoError: On the first runtime error
    """
    from ..parser import parse
    program = parse(source, filename)
    return execute(program, env, timeout, runtime)
