"""
Nanako: a small Japanese-flavoured teaching language.

This module provides:
- Parser: Builds an immutable AST from program text
- Interpreter: Evaluates programs over integers, null, sequences and closures
- Emitter: Translates programs to a JS-like or Python-like dialect

Usage:
    from nanako import parse, evaluate, emit

    source = '''
    足し算 = 入力 X, Y に対し {
        Y回、くり返す {
            Xを増やす
        }
        Xが答え
    }
    >>> 足し算(10, 5)
    15
    '''
    env = evaluate(source)
    print(emit(parse(source), "py"))
"""

from .source import (
    SourceLocation,
    SourceSpan,
    ErrorDetail,
    error_details,
    normalize,
)

from .errors import (
    ErrorSeverity,
    Diagnostic,
    DiagnosticCollector,
    NanakoError,
    ParserError,
    UndefinedNameError,
    ArityError,
    TypeMismatchError,
    IndexRangeError,
    LoopCountError,
    ExecutionTimeoutError,
    ManualStopError,
    ControlFlowError,
    DocTestFailure,
)

from .ast import (
    # Base
    AstNode,
    AstVisitor,
    Comparator,
    # Expressions
    Expression,
    IntegerLiteral,
    NullLiteral,
    TextLiteral,
    SequenceLiteral,
    Variable,
    FunctionLiteral,
    Call,
    Negate,
    Length,
    # Statements
    Statement,
    Assignment,
    Append,
    Increment,
    Decrement,
    IfStatement,
    LoopStatement,
    BreakStatement,
    ReturnStatement,
    ExpressionStatement,
    DocTest,
    Block,
    Program,
    # Utilities
    print_ast,
)

from .parser import (
    Parser,
    parse,
    parse_statement,
    parse_expression,
)

from .runtime import (
    SequenceValue,
    Closure,
    CallFrame,
    Runtime,
    Interpreter,
    values_equal,
    format_value,
    wrap_value,
    unwrap_value,
    execute,
    evaluate,
)

from .emitter import (
    Dialect,
    JsEmitter,
    PyEmitter,
    emit,
)

__version__ = "0.1.0"

__all__ = [
    # Source positions
    'SourceLocation',
    'SourceSpan',
    'ErrorDetail',
    'error_details',
    'normalize',

    # Errors
    'ErrorSeverity',
    'Diagnostic',
    'DiagnosticCollector',
    'NanakoError',
    'ParserError',
    'UndefinedNameError',
    'ArityError',
    'TypeMismatchError',
    'IndexRangeError',
    'LoopCountError',
    'ExecutionTimeoutError',
    'ManualStopError',
    'ControlFlowError',
    'DocTestFailure',

    # AST
    'AstNode',
    'AstVisitor',
    'Comparator',
    'Expression',
    'IntegerLiteral',
    'NullLiteral',
    'TextLiteral',
    'SequenceLiteral',
    'Variable',
    'FunctionLiteral',
    'Call',
    'Negate',
    'Length',
    'Statement',
    'Assignment',
    'Append',
    'Increment',
    'Decrement',
    'IfStatement',
    'LoopStatement',
    'BreakStatement',
    'ReturnStatement',
    'ExpressionStatement',
    'DocTest',
    'Block',
    'Program',
    'print_ast',

    # Parser
    'Parser',
    'parse',
    'parse_statement',
    'parse_expression',

    # Runtime
    'SequenceValue',
    'Closure',
    'CallFrame',
    'Runtime',
    'Interpreter',
    'values_equal',
    'format_value',
    'wrap_value',
    'unwrap_value',
    'execute',
    'evaluate',

    # Emitter
    'Dialect',
    'JsEmitter',
    'PyEmitter',
    'emit',
]
