"""
Runtime values for the Nanako interpreter.

Integers are plain Python ``int`` and null is ``None``. Sequences and
closures get small wrapper classes so that text views and function names
survive evaluation. Host data coming in from a caller-supplied environment
is converted with ``wrap_value`` so that the interpreter never sees raw
``str`` or ``list`` objects.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, MutableMapping, Optional, Tuple

from ..ast import Block


class SequenceValue:
    """
    A mutable, ordered list of values.

    ``is_text`` is fixed at construction; a text sequence holds Unicode
    code points and renders as a string.
    """

    __slots__ = ("elements", "_is_text")

    def __init__(self, elements: Optional[List[Any]] = None, is_text: bool = False):
        self.elements: List[Any] = list(elements) if elements is not None else []
        self._is_text = is_text

    @property
    def is_text(self) -> bool:
        return self._is_text

    @classmethod
    def from_text(cls, text: str) -> "SequenceValue":
        return cls([ord(c) for c in text], is_text=True)

    def to_text(self) -> str:
        """Render the elements as characters (non-integers are skipped)."""
        return "".join(chr(c) for c in self.elements if isinstance(c, int) and 0 <= c <= 0x10FFFF)

    def append(self, value: Any) -> None:
        self.elements.append(value)

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.elements)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SequenceValue):
            return NotImplemented
        return values_equal(self, other)

    __hash__ = None

    def __repr__(self) -> str:
        if self.is_text:
            return f"SequenceValue.from_text({self.to_text()!r})"
        return f"SequenceValue({self.elements!r})"


@dataclass(eq=False)
class Closure:
    """
    A user-defined function value.

    ``name`` is empty until the closure is first bound to a plain name,
    which becomes its display name in call frames and messages.
    """
    parameters: Tuple[str, ...]
    body: Block
    name: str = ""

    @property
    def arity(self) -> int:
        return len(self.parameters)

    @property
    def display_name(self) -> str:
        return self.name or "無名関数"

    def __repr__(self) -> str:
        return f"Closure({self.display_name}/{self.arity})"


def is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def kind_name(value: Any) -> str:
    """Name of a value's kind as shown in error messages."""
    if value is None:
        return "null"
    if is_integer(value):
        return "整数"
    if isinstance(value, SequenceValue):
        return "文字列" if value.is_text else "配列"
    if isinstance(value, Closure):
        return "関数"
    return type(value).__name__


def values_equal(left: Any, right: Any) -> bool:
    """
    Structural equality.

    Integers compare by value, null equals only null, sequences compare
    element by element regardless of the text flag, and closures compare
    by identity.
    """
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, SequenceValue) and isinstance(right, SequenceValue):
        if len(left.elements) != len(right.elements):
            return False
        return all(values_equal(a, b) for a, b in zip(left.elements, right.elements))
    if isinstance(left, Closure) or isinstance(right, Closure):
        return left is right
    if is_integer(left) and is_integer(right):
        return left == right
    return False


def format_value(value: Any) -> str:
    """Render a value the way Nanako displays it."""
    if value is None:
        return "null"
    if isinstance(value, SequenceValue):
        if value.is_text:
            escaped = value.to_text().replace("\\", "\\\\").replace('"', '\\"')
            return f'"{escaped}"'
        return "[" + ", ".join(format_value(v) for v in value.elements) + "]"
    if isinstance(value, Closure):
        return f"<関数 {value.display_name}>"
    return str(value)


def wrap_value(raw: Any) -> Any:
    """
    Convert a host value to a Nanako runtime value.

    Args:
        raw: int, bool, None, str, list/tuple (recursively), an integral
            float, or a value that is already a runtime value

    Returns:
        The runtime value

    Raises:
        ValueError: If the value cannot be represented
    """
    if raw is None or isinstance(raw, (SequenceValue, Closure)):
        return raw
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if raw.is_integer():
            return int(raw)
        raise ValueError(f"Nanako has no fractional numbers: {raw!r}")
    if isinstance(raw, str):
        return SequenceValue.from_text(raw)
    if isinstance(raw, (list, tuple)):
        return SequenceValue([wrap_value(v) for v in raw])
    raise ValueError(f"Cannot convert {type(raw).__name__} to a Nanako value")


def unwrap_value(value: Any) -> Any:
    """Convert a runtime value back to plain Python data."""
    if isinstance(value, SequenceValue):
        if value.is_text:
            return value.to_text()
        return [unwrap_value(v) for v in value.elements]
    return value


def wrap_environment(env: Optional[MutableMapping[str, Any]]) -> MutableMapping[str, Any]:
    """Wrap every binding of a host mapping in place."""
    if env is None:
        return {}
    for name in list(env):
        env[name] = wrap_value(env[name])
    return env


def unwrap_environment(env: Mapping[str, Any], include_functions: bool = False) -> Dict[str, Any]:
    """Unwrap every binding, dropping closures unless asked to keep them."""
    return {
        name: unwrap_value(value)
        for name, value in env.items()
        if include_functions or not isinstance(value, Closure)
    }
