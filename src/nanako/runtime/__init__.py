"""
Nanako runtime: tree-walking interpreter and value model.

This module provides:
- Interpreter: Executes a parsed Program against an environment
- Runtime: Counters, call frames, time budget and cancellation
- SequenceValue / Closure: Runtime values beyond int and None
"""

from .values import (
    SequenceValue,
    Closure,
    is_integer,
    kind_name,
    values_equal,
    format_value,
    wrap_value,
    unwrap_value,
    wrap_environment,
    unwrap_environment,
)

from .context import (
    CallFrame,
    Runtime,
    print_observer,
)

from .interpreter import (
    Interpreter,
    Outcome,
    OutcomeKind,
    execute,
    evaluate,
)

__all__ = [
    # Values
    'SequenceValue',
    'Closure',
    'is_integer',
    'kind_name',
    'values_equal',
    'format_value',
    'wrap_value',
    'unwrap_value',
    'wrap_environment',
    'unwrap_environment',
    # Context
    'CallFrame',
    'Runtime',
    'print_observer',
    # Interpreter
    'Interpreter',
    'Outcome',
    'OutcomeKind',
    'execute',
    'evaluate',
]
