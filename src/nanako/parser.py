"""
Recursive descent parser for Nanako.

Nanako has no separate lexer: the parser walks the normalized program text
with a single cursor and backtracks by saving and restoring ``self.pos``.
Each ``_parse_*`` production returns a node on success and ``None`` when
the text at the cursor is not of that form (leaving the cursor where it
was). Productions raise ``ParserError`` only once the input can no longer
be anything else, e.g. after ``もし ... が`` or on an unclosed literal.
"""

import logging
from typing import Callable, List, Optional, Tuple

from .ast import (
    COMPARATOR_PARTICLES, Comparator,
    # Expressions
    Expression, IntegerLiteral, NullLiteral, TextLiteral, SequenceLiteral,
    Variable, FunctionLiteral, Call, Negate, Length,
    # Statements
    Statement, Assignment, Append, Increment, Decrement, IfStatement,
    LoopStatement, BreakStatement, ReturnStatement, ExpressionStatement,
    DocTest, Block, Program,
)
from .errors import (
    DiagnosticCollector,
    ParserError,
    error_duplicate_parameter,
    error_expected,
    error_fractional_number,
    error_infix_notation,
    error_invalid_text_index,
    error_trailing_text,
    error_unclosed,
    error_unrecognized_statement,
)
from .source import LineIndex, SourceSpan, normalize

logger = logging.getLogger(__name__)


WHITESPACE = " \t\r　"
COMMENT_MARKERS = "#＃"
COMMAS = ",、，"
OPEN_BRACES = "{｛"
CLOSE_BRACES = "}｝"
NULL_MARKS = "?？"
INFIX_OPERATORS = "+-*/%＋－×÷％"
ESCAPES = {"n": "\n", "t": "\t"}

FUNCTION_KEYWORDS = ("入力", "λ")
DOCTEST_PROMPTS = (">>>", "＞＞＞")

# Words that end a name in reference position (``xを増やす``, ``xが答え``)
REFERENCE_STOP_WORDS = (
    "くり返す", "を", "回", "とする", "が", "ならば", "に対し", "の末尾に",
    "以上", "以下", "より大きい", "より小さい", "未満", "以外",
)

# Words that end a parameter name (``入力 数の列 に対し``)
BINDING_STOP_WORDS = ("に対し", "を増やす", "を減らす", "の末尾に")
BINDING_STOP_CHARS = WHITESPACE + COMMAS + "\n{}｛｝()[]|\"=#＃"


def is_identifier_start(ch: str) -> bool:
    """ASCII letters, underscore, kanji, hiragana and katakana."""
    return (
        ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ch == "_"
        or "\u4e00" <= ch <= "\u9fff"   # CJK unified ideographs
        or "\u3040" <= ch <= "\u309f"   # hiragana
        or "\u30a0" <= ch <= "\u30ff"   # katakana, including ー
        or ch == "\u3005"               # 々
    )


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


class Parser:
    """
    Recursive descent parser for Nanako programs.

    Usage:
        parser = Parser(text)
        program = parser.parse_program()

    Statement forms are tried in a fixed order and the first that matches
    wins: conditional, loop, doctest, assignment family (assign, append,
    increment, decrement), return, break, bare expression.

    With ``recover=True`` a malformed statement is recorded in
    ``self.diagnostics`` and parsing resumes on the next line.
    """

    def __init__(self, text: str, filename: Optional[str] = None, recover: bool = False):
        self.text = normalize(text)
        self.filename = filename
        self.recover = recover
        self.pos = 0
        self.diagnostics = DiagnosticCollector()
        self._lines = LineIndex(self.text, filename)

    # =========================================================================
    # Cursor Navigation
    # =========================================================================

    def _peek(self, offset: int = 0) -> str:
        """Character at current position + offset, or '' past the end."""
        idx = self.pos + offset
        if idx >= len(self.text):
            return ""
        return self.text[idx]

    def _is_at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _check(self, *words: str) -> Optional[str]:
        """Return the first word the remaining text starts with."""
        for word in words:
            if self.text.startswith(word, self.pos):
                return word
        return None

    def _match(self, *words: str) -> Optional[str]:
        """Consume a word if the remaining text starts with it."""
        word = self._check(*words)
        if word is not None:
            self.pos += len(word)
        return word

    def _match_char(self, chars: str) -> Optional[str]:
        ch = self._peek()
        if ch and ch in chars:
            self.pos += 1
            return ch
        return None

    def _consume(self, word: str, expected: str) -> str:
        """Consume a word, or raise error."""
        if self._match(word) is None:
            raise error_expected(expected, self._span_here())
        return word

    def _skip_whitespace(self) -> None:
        """Skip spaces and comments, stopping at a newline."""
        while not self._is_at_end():
            ch = self._peek()
            if ch in WHITESPACE:
                self.pos += 1
            elif ch in COMMENT_MARKERS:
                end = self.text.find("\n", self.pos)
                self.pos = len(self.text) if end == -1 else end
            else:
                break

    def _skip_blank_lines(self) -> None:
        """Skip whitespace, comments and newlines."""
        while True:
            self._skip_whitespace()
            if self._peek() != "\n":
                return
            self.pos += 1

    def _skip_comma(self) -> None:
        self._skip_whitespace()
        if self._match_char(COMMAS):
            self._skip_whitespace()

    def _skip_to_next_line(self) -> None:
        end = self.text.find("\n", self.pos)
        self.pos = len(self.text) if end == -1 else end + 1

    def _end_of_statement(self) -> bool:
        """Accept a newline, end of input or a closing brace after a statement."""
        self._skip_whitespace()
        if self._is_at_end():
            return True
        if self._peek() == "\n":
            self.pos += 1
            return True
        return self._peek() in CLOSE_BRACES

    def _span_from(self, start: int) -> SourceSpan:
        return self._lines.span(start, self.pos)

    def _span_here(self, length: int = 1) -> SourceSpan:
        return self._lines.span(self.pos, min(self.pos + length, len(self.text)))

    def _line_span(self, start: int) -> SourceSpan:
        end = self.text.find("\n", start)
        return self._lines.span(start, len(self.text) if end == -1 else end)

    # =========================================================================
    # Identifiers
    # =========================================================================

    def _parse_reference_name(self) -> Optional[str]:
        """A name being used: stops at any reference stop word."""
        if not is_identifier_start(self._peek()):
            return None
        start = self.pos
        self.pos += 1
        while is_identifier_start(self._peek()) and self._check(*REFERENCE_STOP_WORDS) is None:
            self.pos += 1
        # Digits only at the end: ``x1`` is a name, ``a1b`` is not
        while _is_digit(self._peek()):
            self.pos += 1
        return self.text[start:self.pos]

    def _parse_binding_name(self) -> Optional[str]:
        """A parameter name: anything up to whitespace, punctuation or a particle."""
        start = self.pos
        while not self._is_at_end():
            if self._peek() in BINDING_STOP_CHARS or self._check(*BINDING_STOP_WORDS):
                break
            self.pos += 1
        name = self.text[start:self.pos].strip()
        if not name:
            self.pos = start
            return None
        return name

    # =========================================================================
    # Expression Parsing
    # =========================================================================

    def _parse_expression(self) -> Optional[Expression]:
        """Parse an expression and reject an infix operator after it."""
        self._skip_whitespace()
        expr = self._parse_primary()
        if expr is None:
            return None

        saved_pos = self.pos
        self._skip_whitespace()
        op = self._peek()
        if op and op in INFIX_OPERATORS:
            raise error_infix_notation(op, self._span_here())
        self.pos = saved_pos
        return expr

    def _parse_primary(self) -> Optional[Expression]:
        productions: Tuple[Callable[[], Optional[Expression]], ...] = (
            self._parse_integer,
            self._parse_text,
            self._parse_length,
            self._parse_negate,
            self._parse_function,
            self._parse_sequence,
            self._parse_null,
            self._parse_call,
            self._parse_variable,
        )
        start = self.pos
        for production in productions:
            self.pos = start
            expr = production()
            if expr is not None:
                return expr
        self.pos = start
        return None

    def _parse_integer(self) -> Optional[IntegerLiteral]:
        start = self.pos
        while _is_digit(self._peek()):
            self.pos += 1
        if self.pos == start:
            return None
        if self._peek() == ".":
            self.pos += 1
            while _is_digit(self._peek()):
                self.pos += 1
            raise error_fractional_number(self._span_from(start))
        return IntegerLiteral(span=self._span_from(start), value=int(self.text[start:self.pos]))

    def _parse_text(self) -> Optional[Expression]:
        """A quoted string, optionally indexed: ``"あいう"[1]``."""
        start = self.pos
        if self._match('"') is None:
            return None
        chars: List[str] = []
        while True:
            ch = self._peek()
            if ch == "":
                raise error_unclosed("文字列", '"', self._span_from(start))
            self.pos += 1
            if ch == '"':
                break
            if ch == "\\" and self._peek() != "":
                escaped = self._peek()
                self.pos += 1
                chars.append(ESCAPES.get(escaped, escaped))
            else:
                chars.append(ch)
        code_points = tuple(ord(c) for c in chars)

        saved_pos = self.pos
        if self._match("["):
            self._skip_whitespace()
            index = self._parse_integer()
            self._skip_whitespace()
            if index is not None and self._match("]"):
                if index.value >= len(code_points):
                    raise error_invalid_text_index(self._span_from(start))
                return IntegerLiteral(span=self._span_from(start), value=code_points[index.value])
            self.pos = saved_pos

        return TextLiteral(span=self._span_from(start), code_points=code_points)

    def _parse_length(self) -> Optional[Length]:
        start = self.pos
        if self._match("|") is None:
            return None
        operand = self._parse_expression()
        if operand is None:
            raise error_expected("長さを求める式", self._span_here())
        self._skip_whitespace()
        if self._match("|") is None:
            raise error_unclosed("絶対値記号", "|", self._span_from(start))
        return Length(span=self._span_from(start), operand=operand)

    def _parse_negate(self) -> Optional[Negate]:
        start = self.pos
        if self._match("-", "－") is None:
            return None
        self._skip_whitespace()
        operand = self._parse_primary()
        if operand is None:
            raise error_expected("マイナス記号の後の式", self._span_here())
        return Negate(span=self._span_from(start), operand=operand)

    def _parse_function(self) -> Optional[FunctionLiteral]:
        """``入力 a, b に対し[て] { ... }``.

        Backtracks when に対し never follows, so that names such as
        ``入力値`` are still usable as variables.
        """
        start = self.pos
        if self._match(*FUNCTION_KEYWORDS) is None:
            return None

        parameters: List[str] = []
        while True:
            self._skip_whitespace()
            name_start = self.pos
            name = self._parse_binding_name()
            if name is None:
                break
            if name in parameters:
                raise error_duplicate_parameter(name, self._span_from(name_start))
            parameters.append(name)
            self._skip_whitespace()
            if self._match_char(COMMAS) is None:
                break

        self._skip_whitespace()
        if not parameters or self._match("に対し") is None:
            self.pos = start
            return None
        self._match("て")
        self._skip_comma()

        body = self._parse_block()
        return FunctionLiteral(span=self._span_from(start), parameters=tuple(parameters), body=body)

    def _parse_arguments(self, closer: str, what: str, start: int) -> List[Expression]:
        """Comma separated expressions up to ``closer``; newlines allowed."""
        items: List[Expression] = []
        self._skip_blank_lines()
        if self._match(closer):
            return items
        while True:
            item = self._parse_expression()
            if item is None:
                if self._is_at_end():
                    raise error_unclosed(what, closer, self._span_from(start))
                raise error_expected("式", self._span_here())
            items.append(item)
            self._skip_blank_lines()
            if self._match_char(COMMAS):
                self._skip_blank_lines()
                if self._match(closer):
                    return items
                continue
            if self._match(closer):
                return items
            raise error_unclosed(what, closer, self._span_from(start))

    def _parse_sequence(self) -> Optional[SequenceLiteral]:
        start = self.pos
        if self._match("[") is None:
            return None
        elements = self._parse_arguments("]", "配列", start)
        return SequenceLiteral(span=self._span_from(start), elements=tuple(elements))

    def _parse_null(self) -> Optional[NullLiteral]:
        start = self.pos
        if self._match_char(NULL_MARKS):
            return NullLiteral(span=self._span_from(start))
        if self._match("null"):
            # ``nullable`` is a name, ``nullならば`` is null followed by a particle
            ch = self._peek()
            if ch.isascii() and (ch.isalnum() or ch == "_"):
                self.pos = start
                return None
            return NullLiteral(span=self._span_from(start))
        return None

    def _parse_call(self) -> Optional[Call]:
        start = self.pos
        name = self._parse_reference_name()
        if name is None:
            return None
        self._skip_whitespace()
        open_pos = self.pos
        if self._match("(") is None:
            self.pos = start
            return None
        arguments = self._parse_arguments(")", "括弧", open_pos)
        return Call(span=self._span_from(start), name=name, arguments=tuple(arguments))

    def _parse_variable(self) -> Optional[Variable]:
        """A name followed by zero or more ``[index]`` or ``[?]``."""
        start = self.pos
        name = self._parse_reference_name()
        if name is None:
            return None
        indices: List[Optional[Expression]] = []
        while True:
            open_pos = self.pos
            if self._match("[") is None:
                break
            index = self._parse_expression()
            if index is None:
                raise error_expected("添え字", self._span_here())
            # ``[?]`` and ``[null]`` both mean "append" or "any element"
            if isinstance(index, NullLiteral):
                index = None
            self._skip_whitespace()
            if self._match("]") is None:
                raise error_unclosed("添え字", "]", self._span_from(open_pos))
            indices.append(index)
        return Variable(span=self._span_from(start), name=name, indices=tuple(indices))

    def _parse_target(self) -> Optional[Variable]:
        """A variable being written to; a call is never a target."""
        start = self.pos
        target = self._parse_variable()
        if target is None:
            return None
        saved_pos = self.pos
        self._skip_whitespace()
        if self._peek() == "(":
            self.pos = start
            return None
        self.pos = saved_pos
        return target

    # =========================================================================
    # Statement Parsing
    # =========================================================================

    def _parse_statement(self) -> Statement:
        """Parse one statement, trying each form in priority order."""
        self._skip_whitespace()
        start = self.pos
        productions: Tuple[Callable[[], Optional[Statement]], ...] = (
            self._parse_if_statement,
            self._parse_loop_statement,
            self._parse_doctest,
            self._parse_assignment_family,
            self._parse_return_statement,
            self._parse_break_statement,
            self._parse_expression_statement,
        )
        for production in productions:
            self.pos = start
            statement = production()
            if statement is not None:
                return statement
        self.pos = start
        raise error_unrecognized_statement(self._line_span(start))

    def _finish(self, statement: Statement) -> Optional[Statement]:
        if self._end_of_statement():
            return statement
        return None

    def _parse_if_statement(self) -> Optional[IfStatement]:
        start = self.pos
        if self._match("もし") is None:
            return None
        self._skip_comma()
        left = self._parse_expression()
        if left is None:
            return None
        self._skip_whitespace()
        if self._match("が") is None:
            return None

        right = self._parse_expression()
        if right is None:
            raise error_expected("比べる値", self._span_here())
        self._skip_whitespace()
        comparator = Comparator.EQ
        particle = self._match(*COMPARATOR_PARTICLES)
        if particle is not None:
            comparator = COMPARATOR_PARTICLES[particle]
        self._skip_whitespace()
        self._consume("ならば", "「ならば」")
        self._skip_comma()
        then_block = self._parse_block()

        else_block = None
        saved_pos = self.pos
        self._skip_blank_lines()
        if self._match("そうでなければ"):
            self._skip_comma()
            else_block = self._parse_block()
        else:
            self.pos = saved_pos

        return self._finish(IfStatement(
            span=self._span_from(start),
            left=left,
            comparator=comparator,
            right=right,
            then_block=then_block,
            else_block=else_block,
        ))

    def _parse_loop_statement(self) -> Optional[LoopStatement]:
        start = self.pos
        count = self._parse_expression()
        if count is None:
            return None
        self._skip_whitespace()
        if self._match("回") is None:
            return None
        self._skip_comma()
        if self._match("くり返す") is None:
            return None
        body = self._parse_block()
        return self._finish(LoopStatement(span=self._span_from(start), count=count, body=body))

    def _parse_doctest(self) -> Optional[DocTest]:
        start = self.pos
        if self._match(*DOCTEST_PROMPTS) is None:
            return None
        expression = self._parse_expression()
        if expression is None:
            raise error_expected("テストする式", self._span_here())
        self._skip_whitespace()
        if self._peek() != "\n":
            if self._is_at_end():
                raise error_expected("次の行の期待する値", self._span_here())
            raise error_trailing_text(self._span_here())
        self.pos += 1
        expected = self._parse_expression()
        if expected is None:
            raise error_expected("期待する値", self._span_here())
        return self._finish(DocTest(span=self._span_from(start), expression=expression, expected=expected))

    def _parse_assignment_family(self) -> Optional[Statement]:
        """``x = e``, ``x を e とする``, ``x を増やす``, ``x を減らす``, append."""
        start = self.pos
        target = self._parse_target()
        if target is None:
            return None
        self._skip_whitespace()

        if self._peek() == "=" and self._peek(1) != "=":
            self.pos += 1
            value = self._parse_expression()
            if value is None:
                raise error_expected("代入する値", self._span_here())
            return self._finish(Assignment(span=self._span_from(start), target=target, value=value))

        if self._match("の末尾に"):
            value = self._parse_expression()
            if value is None:
                raise error_expected("追加する値", self._span_here())
            self._skip_whitespace()
            self._consume("を", "「を追加する」")
            self._skip_whitespace()
            self._consume("追加する", "「追加する」")
            return self._finish(Append(span=self._span_from(start), target=target, value=value))

        if self._match("を"):
            self._skip_whitespace()
            if self._match("増やす"):
                return self._finish(Increment(span=self._span_from(start), target=target))
            if self._match("減らす"):
                return self._finish(Decrement(span=self._span_from(start), target=target))
            value = self._parse_expression()
            if value is None:
                return None
            self._skip_whitespace()
            if self._match("とする") is None:
                return None
            return self._finish(Assignment(span=self._span_from(start), target=target, value=value))

        return None

    def _parse_return_statement(self) -> Optional[ReturnStatement]:
        start = self.pos
        value = self._parse_expression()
        if value is None:
            return None
        self._skip_whitespace()
        if self._match("が答え") is None:
            return None
        return self._finish(ReturnStatement(span=self._span_from(start), value=value))

    def _parse_break_statement(self) -> Optional[BreakStatement]:
        start = self.pos
        if self._match("くり返しを抜ける") is None:
            return None
        return self._finish(BreakStatement(span=self._span_from(start)))

    def _parse_expression_statement(self) -> Optional[ExpressionStatement]:
        start = self.pos
        expression = self._parse_expression()
        if expression is None:
            return None
        return self._finish(ExpressionStatement(span=self._span_from(start), expression=expression))

    def _parse_block(self) -> Block:
        """``{ ... }`` on one line or several; may be empty."""
        self._skip_blank_lines()
        start = self.pos
        if self._match_char(OPEN_BRACES) is None:
            raise error_expected("「{」", self._span_here())
        statements: List[Statement] = []
        while True:
            self._skip_blank_lines()
            if self._is_at_end():
                raise error_unclosed("ブロック", "}", self._span_from(start))
            if self._match_char(CLOSE_BRACES):
                break
            statements.append(self._parse_statement())
        return Block(span=self._span_from(start), statements=tuple(statements))

    # =========================================================================
    # Entry Points
    # =========================================================================

    def parse_program(self) -> Program:
        """Parse the whole text as a program."""
        statements: List[Statement] = []
        self._skip_blank_lines()
        while not self._is_at_end():
            if self.recover:
                line_start = self.pos
                try:
                    statements.append(self._parse_statement())
                except ParserError as e:
                    self.diagnostics.add_error(e)
                    logger.warning("skipping malformed statement at %s: %s",
                                   e.diagnostic.span.start, e.message)
                    self.pos = line_start
                    self._skip_to_next_line()
                    if self.diagnostics.should_stop:
                        break
            else:
                statements.append(self._parse_statement())
            self._skip_blank_lines()

        logger.debug("parsed %d statement(s) from %s", len(statements), self.filename or "<string>")
        return Program(span=self._lines.span(0, len(self.text)), statements=tuple(statements))

    def parse_statement(self) -> Statement:
        """Parse the whole text as exactly one statement."""
        self._skip_blank_lines()
        statement = self._parse_statement()
        self._skip_blank_lines()
        if not self._is_at_end():
            raise error_trailing_text(self._span_here())
        return statement

    def parse_expression(self) -> Expression:
        """Parse the whole text as exactly one expression."""
        self._skip_blank_lines()
        expression = self._parse_expression()
        if expression is None:
            raise error_expected("式", self._span_here())
        self._skip_blank_lines()
        if not self._is_at_end():
            raise error_trailing_text(self._span_here())
        return expression


def parse(text: str, filename: Optional[str] = None, recover: bool = False) -> Program:
    """
    Convenience function to parse program text.

    Args:
        text: Nanako source code
        filename: Optional filename for error messages
        recover: Record malformed statements in the parser's diagnostics
            and keep going instead of raising on the first one

    Returns:
        Parsed Program AST

    Raises:
        ParserError: If parsing fails (only when ``recover`` is False)
    """
    parser = Parser(text, filename, recover)
    return parser.parse_program()


def parse_statement(text: str) -> Statement:
    """Parse a single statement, e.g. ``xを増やす``."""
    return Parser(text).parse_statement()


def parse_expression(text: str) -> Expression:
    """Parse a single expression, e.g. ``足し算(1, 2)``."""
    return Parser(text).parse_expression()
