"""
Execution state shared by one evaluation.

The ``Runtime`` owns everything about a run that is not a variable
binding: the operation counters, the stack of active calls, the time
budget and stop flag, and the callback that receives the values of bare
expression statements.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..errors import error_manual_stop, error_timeout
from ..source import SourceSpan
from .values import format_value

logger = logging.getLogger(__name__)


Observer = Callable[[Any, SourceSpan], None]


def print_observer(value: Any, span: SourceSpan) -> None:
    """Default observer: echo the statement and its value."""
    print(f">>> {span.line_text.strip()}")
    print(format_value(value))


@dataclass(frozen=True)
class CallFrame:
    """One active call, kept for diagnostics."""
    name: str
    arguments: Tuple[Any, ...]
    span: SourceSpan


class Runtime:
    """
    Counters, call frames, budget and cancellation for one evaluation.

    Usage:
        runtime = Runtime()
        runtime.start(timeout=5)
        Interpreter(runtime).execute(program, env)
        print(runtime.increment_count)

    ``stop()`` may be called from another thread; the interpreter notices
    at the next loop iteration and raises ``ManualStopError``.
    """

    def __init__(self, observer: Optional[Observer] = None):
        self.observer: Observer = observer or print_observer
        self.increment_count = 0
        self.decrement_count = 0
        self.compare_count = 0
        self.call_frames: List[CallFrame] = []
        self.timeout: float = 0.0
        self.start_time: Optional[float] = None
        self.should_stop = False

    def start(self, timeout: float = 30.0) -> None:
        """Reset the clock and the stop flag; ``timeout <= 0`` means no limit."""
        self.timeout = timeout
        self.start_time = time.monotonic()
        self.should_stop = False

    def stop(self) -> None:
        """Request cancellation of the running evaluation."""
        self.should_stop = True

    @property
    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.monotonic() - self.start_time

    def check_execution(self, span: SourceSpan) -> None:
        """Raise if the run has been stopped or has used up its budget."""
        if self.should_stop:
            raise error_manual_stop(span)
        if self.timeout > 0 and self.start_time is not None and self.elapsed > self.timeout:
            raise error_timeout(self.timeout, span)

    def reset_counters(self) -> None:
        self.increment_count = 0
        self.decrement_count = 0
        self.compare_count = 0

    def snapshot(self) -> Dict[str, int]:
        """Counter values, for reporting."""
        return {
            "increment": self.increment_count,
            "decrement": self.decrement_count,
            "compare": self.compare_count,
        }

    @contextmanager
    def call_frame(self, name: str, arguments: Tuple[Any, ...], span: SourceSpan) -> Iterator[CallFrame]:
        """
        Context manager that keeps a frame on the call stack for a call.

        Usage:
            with runtime.call_frame("f", (1, 2), node.span):
                ...
        """
        frame = CallFrame(name, arguments, span)
        self.call_frames.append(frame)
        try:
            yield frame
        finally:
            self.call_frames.pop()

    def observe(self, value: Any, span: SourceSpan) -> None:
        self.observer(value, span)

    def exec(self, source: str, env: Optional[Dict[str, Any]] = None,
             timeout: Optional[float] = None) -> Dict[str, Any]:
        """Parse and run ``source`` with this runtime; returns the environment."""
        from .interpreter import evaluate
        return evaluate(source, env, timeout=timeout, runtime=self)
