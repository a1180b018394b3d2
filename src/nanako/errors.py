"""
Nanako exceptions and diagnostics.

Error code ranges:
- E1xx: Parser errors
- E2xx: Name and type errors
- E3xx: Range errors (indices, repeat counts)
- E4xx: Execution control (budget, manual stop, stray return/break)
- E5xx: Doctest failures

Messages are written in Japanese for the learners the language targets.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from .source import ErrorDetail, SourceSpan


class ErrorSeverity(Enum):
    """Severity levels for diagnostics."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HINT = "hint"


@dataclass
class Diagnostic:
    """A single diagnostic message (error, warning, etc.)."""
    code: str                       # E101, E201, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity
    span: SourceSpan
    source_line: Optional[str] = None   # The actual line of source code
    hints: List[str] = field(default_factory=list)
    related: List["Diagnostic"] = field(default_factory=list)

    @property
    def detail(self) -> ErrorDetail:
        return self.span.detail

    def format(self, show_source: bool = True) -> str:
        """Format the diagnostic for display."""
        parts = []

        loc = f"{self.span.start}"
        parts.append(f"{loc}: {self.severity.value}[{self.code}]: {self.message}")

        if show_source and self.source_line is not None:
            parts.append("  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            end_col = self.span.end.column if self.span.start.line == self.span.end.line else len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        for hint in self.hints:
            parts.append(f"    = hint: {hint}")

        for related in self.related:
            parts.append(f"    --> {related.span.start}: {related.message}")

        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "range": {
                "start": {
                    "line": self.span.start.line,
                    "column": self.span.start.column,
                    "offset": self.span.start.offset,
                },
                "end": {
                    "line": self.span.end.line,
                    "column": self.span.end.column,
                    "offset": self.span.end.offset,
                },
            },
            "hints": self.hints,
            "related": [r.to_json() for r in self.related],
        }


class NanakoError(Exception):
    """Base exception for Nanako errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        self.call_stack: Tuple[Any, ...] = ()
        super().__init__(diagnostic.message)

    def __str__(self) -> str:
        return self.diagnostic.format()

    @property
    def message(self) -> str:
        return self.diagnostic.message

    @property
    def detail(self) -> ErrorDetail:
        return self.diagnostic.detail

    def with_call_stack(self, frames: Sequence[Any]) -> "NanakoError":
        """Attach a snapshot of the active call frames (innermost last)."""
        self.call_stack = tuple(frames)
        self.diagnostic.related = [
            Diagnostic(
                code=self.diagnostic.code,
                message=f"関数 '{frame.name}' の呼び出し中",
                severity=ErrorSeverity.INFO,
                span=frame.span,
                source_line=frame.span.line_text,
            )
            for frame in reversed(self.call_stack)
        ]
        return self


class ParserError(NanakoError):
    """Malformed program text (E1xx)."""
    pass


class UndefinedNameError(NanakoError):
    """Reference to a variable or function that is not bound (E201)."""
    pass


class ArityError(NanakoError):
    """Call with the wrong number of arguments (E202)."""
    pass


class TypeMismatchError(NanakoError):
    """Operation applied to the wrong kind of value (E203)."""
    pass


class IndexRangeError(NanakoError):
    """Sequence index outside the valid range (E301)."""

    def __init__(self, diagnostic: Diagnostic, valid_range: Optional[Tuple[int, int]] = None):
        super().__init__(diagnostic)
        self.valid_range = valid_range


class LoopCountError(NanakoError):
    """Repeat count that is negative or not a number (E302)."""
    pass


class ExecutionTimeoutError(NanakoError):
    """Execution budget exhausted (E401)."""
    pass


class ManualStopError(NanakoError):
    """Execution cancelled through the runtime stop flag (E402)."""
    pass


class ControlFlowError(NanakoError):
    """Return or break used outside the construct it belongs to (E403)."""
    pass


class DocTestFailure(NanakoError):
    """An inline doctest produced a different value (E501)."""

    def __init__(self, diagnostic: Diagnostic, actual: Any = None):
        super().__init__(diagnostic)
        self.actual = actual


def _diagnostic(code: str, message: str, span: SourceSpan, hints: List[str] = None) -> Diagnostic:
    return Diagnostic(
        code=code,
        message=message,
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=span.line_text,
        hints=hints or [],
    )


# --- Parser error codes ---

def error_unrecognized_statement(span: SourceSpan) -> ParserError:
    """E101: No statement form matches."""
    return ParserError(_diagnostic("E101", "何をしたいのかわかりません", span))


def error_expected(expected: str, span: SourceSpan) -> ParserError:
    """E102: A required keyword or symbol is missing."""
    return ParserError(_diagnostic("E102", f"{expected}が必要です", span))


def error_infix_notation(operator: str, span: SourceSpan) -> ParserError:
    """E103: Arithmetic infix operator."""
    return ParserError(_diagnostic(
        "E103",
        f"中置記法（{operator}）は使えません",
        span,
        hints=["計算は関数を定義して行いましょう"],
    ))


def error_fractional_number(span: SourceSpan) -> ParserError:
    """E104: Number with a fractional part."""
    return ParserError(_diagnostic(
        "E104",
        "小数は使えません。整数だけを使ってください",
        span,
    ))


def error_unclosed(what: str, closer: str, span: SourceSpan) -> ParserError:
    """E105: Literal or bracket that is never closed."""
    return ParserError(_diagnostic("E105", f"閉じていない{what}です（{closer}が必要です）", span))


def error_duplicate_parameter(name: str, span: SourceSpan) -> ParserError:
    """E106: Same parameter name listed twice."""
    return ParserError(_diagnostic("E106", f"引数 '{name}' が重複しています", span))


def error_invalid_text_index(span: SourceSpan) -> ParserError:
    """E107: Character index past the end of a text literal."""
    return ParserError(_diagnostic("E107", "文字列の添え字が範囲外です", span))


def error_trailing_text(span: SourceSpan) -> ParserError:
    """E108: Extra text after a complete statement."""
    return ParserError(_diagnostic("E108", "文の後に余分な文字があります", span))


# --- Name and type error codes ---

def error_undefined_variable(name: str, span: SourceSpan) -> UndefinedNameError:
    """E201: Unbound variable."""
    return UndefinedNameError(_diagnostic(
        "E201",
        f"変数 '{name}' が定義されていません",
        span,
        hints=["変数は使う前に値を代入してください"],
    ))


def error_undefined_function(name: str, span: SourceSpan) -> UndefinedNameError:
    """E201: Unbound function."""
    return UndefinedNameError(_diagnostic(
        "E201",
        f"関数 '{name}' が見つかりません",
        span,
        hints=["関数は呼び出す前に定義してください"],
    ))


def error_arity(name: str, expected: int, given: int, span: SourceSpan) -> ArityError:
    """E202: Argument count mismatch."""
    return ArityError(_diagnostic(
        "E202",
        f"関数 '{name}' には{expected}個の引数が必要ですが、{given}個渡されました",
        span,
    ))


def error_type_mismatch(message: str, span: SourceSpan) -> TypeMismatchError:
    """E203: Wrong kind of value."""
    return TypeMismatchError(_diagnostic("E203", message, span))


# --- Range error codes ---

def error_index_range(length: int, span: SourceSpan) -> IndexRangeError:
    """E301: Index outside [0, length)."""
    if length == 0:
        return IndexRangeError(_diagnostic("E301", "配列が空なので要素を取り出せません", span))
    diag = _diagnostic(
        "E301",
        f"配列の添え字が範囲外です。この配列の要素は0番から{length - 1}番までです",
        span,
    )
    return IndexRangeError(diag, valid_range=(0, length - 1))


def error_loop_count(message: str, span: SourceSpan) -> LoopCountError:
    """E302: Invalid repeat count."""
    return LoopCountError(_diagnostic("E302", message, span))


# --- Execution control codes ---

def error_timeout(seconds: float, span: SourceSpan) -> ExecutionTimeoutError:
    """E401: Budget exhausted."""
    return ExecutionTimeoutError(_diagnostic(
        "E401",
        f"タイムアウト（{seconds:g}秒）になりました",
        span,
        hints=["無限ループになっていないか確認しましょう"],
    ))


def error_manual_stop(span: SourceSpan) -> ManualStopError:
    """E402: Stop flag observed."""
    return ManualStopError(_diagnostic("E402", "プログラムが手動で停止されました", span))


def error_misplaced_return(span: SourceSpan) -> ControlFlowError:
    """E403: Return at program level."""
    return ControlFlowError(_diagnostic("E403", "「が答え」は関数の中でのみ使えます", span))


def error_misplaced_break(span: SourceSpan) -> ControlFlowError:
    """E403: Break outside a loop."""
    return ControlFlowError(_diagnostic("E403", "「くり返しを抜ける」はくり返しの中でのみ使えます", span))


# --- Doctest codes ---

def error_doctest_failed(actual_text: str, expected_text: str, actual: Any,
                         span: SourceSpan) -> DocTestFailure:
    """E501: Doctest mismatch."""
    diag = _diagnostic(
        "E501",
        f"テストに失敗しました: {actual_text}",
        span,
        hints=[f"期待された値: {expected_text}"],
    )
    return DocTestFailure(diag, actual=actual)


class DiagnosticCollector:
    """Collects diagnostics while parsing in recovery mode."""

    def __init__(self, max_errors: int = 20):
        self.diagnostics: List[Diagnostic] = []
        self.max_errors = max_errors
        self._error_count = 0

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic."""
        self.diagnostics.append(diagnostic)
        if diagnostic.severity == ErrorSeverity.ERROR:
            self._error_count += 1

    def add_error(self, error: NanakoError) -> None:
        """Add an error exception as a diagnostic."""
        self.add(error.diagnostic)

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def has_errors(self) -> bool:
        return self._error_count > 0

    @property
    def should_stop(self) -> bool:
        """Check if we've hit the max error limit."""
        return self._error_count >= self.max_errors

    def format_all(self, show_source: bool = True) -> str:
        """Format all diagnostics for display."""
        parts = [d.format(show_source) for d in self.diagnostics]
        if self._error_count > 0:
            parts.append(f"\n{self._error_count} error(s)")
        return "\n\n".join(parts)

    def to_json(self) -> dict:
        """Convert all diagnostics to JSON format."""
        return {
            "diagnostics": [d.to_json() for d in self.diagnostics],
            "error_count": self._error_count,
        }
