"""Statement and result model for SLIM instruction batches."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from .codec import SlimProtocolError

EXCEPTION_TAG = "__EXCEPTION__:"
EXCEPTION_STOP_TEST_TAG = "__EXCEPTION__:ABORT_SLIM_TEST:"
VOID = "/__VOID__/"
OK = "OK"
BYE = "bye"
SLIM_VERSION = "0.5"

NO_INSTANCE = "NO_INSTANCE"
NO_METHOD_IN_CLASS = "NO_METHOD_IN_CLASS"
COULD_NOT_INVOKE_CONSTRUCTOR = "COULD_NOT_INVOKE_CONSTRUCTOR"
MALFORMED_INSTRUCTION = "MALFORMED_INSTRUCTION"


class Verb(str, Enum):
    IMPORT = "import"
    MAKE = "make"
    CALL = "call"
    CALL_AND_ASSIGN = "callAndAssign"
    ASSIGN = "assign"

    @classmethod
    def from_any(cls, value: Any) -> "Verb":
        if isinstance(value, Verb):
            return value
        for verb in cls:
            if verb.value == value:
                return verb
        raise SlimProtocolError(f"unknown verb: {value!r}")


# Minimum operand count per verb (id and verb excluded).
_MIN_OPERANDS: Dict[Verb, int] = {
    Verb.IMPORT: 1,
    Verb.MAKE: 2,
    Verb.CALL: 2,
    Verb.CALL_AND_ASSIGN: 3,
    Verb.ASSIGN: 2,
}


class SlimError(Exception):
    """Failure reported back to the client as ``message:<<TAG: detail>>``.

    Fixtures may raise this directly to control the text the client sees.
    """

    def __init__(self, tag: str, detail: str = "") -> None:
        self.tag = tag
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.detail:
            return f"message:<<{self.tag}: {self.detail}>>"
        return f"message:<<{self.tag}>>"


class StopTestException(Exception):
    """Raised by a fixture to abandon the rest of the current batch."""


def is_stop_test(exc: BaseException) -> bool:
    if isinstance(exc, StopTestException):
        return True
    return "StopTest" in type(exc).__name__


def encode_exception(exc: BaseException) -> str:
    """Render an exception as the string value of a result entry."""
    if isinstance(exc, SlimError):
        body = exc.message
    else:
        text = str(exc)
        body = f"{type(exc).__name__}: {text}" if text else type(exc).__name__
    prefix = EXCEPTION_STOP_TEST_TAG if is_stop_test(exc) else EXCEPTION_TAG
    return prefix + body


def is_exception(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(EXCEPTION_TAG)


def is_stop_test_exception(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(EXCEPTION_STOP_TEST_TAG)


def exception_message(value: str) -> str:
    """Return the text after the sentinel, or ``""`` for ordinary values."""
    if is_stop_test_exception(value):
        return value[len(EXCEPTION_STOP_TEST_TAG):]
    if is_exception(value):
        return value[len(EXCEPTION_TAG):]
    return ""


def to_wire_value(value: Any) -> Any:
    if value is None:
        return VOID
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return [to_wire_value(item) for item in value]
    return str(value)


@dataclass(frozen=True)
class Statement:
    id: str
    verb: Verb
    operands: Tuple[Any, ...] = field(default_factory=tuple)

    @classmethod
    def from_list(cls, items: Any) -> "Statement":
        if not isinstance(items, (list, tuple)):
            raise SlimProtocolError(f"statement is not a list: {items!r}")
        if len(items) < 2:
            raise SlimProtocolError(f"statement missing id or verb: {list(items)!r}")
        statement_id, verb, *operands = items
        if not isinstance(statement_id, str):
            raise SlimProtocolError(f"statement id must be a string: {statement_id!r}")
        return cls(statement_id, Verb.from_any(verb), tuple(operands))

    def to_list(self) -> List[Any]:
        return [self.id, self.verb.value, *self.operands]

    @property
    def well_formed(self) -> bool:
        return len(self.operands) >= _MIN_OPERANDS[self.verb]

    # Builders ------------------------------------------------------------

    @classmethod
    def import_(cls, statement_id: str, path: str) -> "Statement":
        return cls(statement_id, Verb.IMPORT, (path,))

    @classmethod
    def make(cls, statement_id: str, instance: str, type_name: str, *args: Any) -> "Statement":
        return cls(statement_id, Verb.MAKE, (instance, type_name, *args))

    @classmethod
    def call(cls, statement_id: str, instance: str, method: str, *args: Any) -> "Statement":
        return cls(statement_id, Verb.CALL, (instance, method, *args))

    @classmethod
    def call_and_assign(
        cls, statement_id: str, symbol: str, instance: str, method: str, *args: Any
    ) -> "Statement":
        return cls(statement_id, Verb.CALL_AND_ASSIGN, (symbol, instance, method, *args))

    @classmethod
    def assign(cls, statement_id: str, symbol: str, value: Any) -> "Statement":
        return cls(statement_id, Verb.ASSIGN, (symbol, value))


@dataclass(frozen=True)
class ResultEntry:
    id: str
    value: Any

    @property
    def is_exception(self) -> bool:
        return is_exception(self.value)

    def to_list(self) -> List[Any]:
        return [self.id, self.value]

    @classmethod
    def from_list(cls, items: Any) -> "ResultEntry":
        if not isinstance(items, (list, tuple)) or len(items) != 2:
            raise SlimProtocolError(f"malformed result entry: {items!r}")
        return cls(str(items[0]), items[1])


def parse_statements(items: Iterable[Any]) -> List[Statement]:
    return [Statement.from_list(item) for item in items]


def coerce_statements(statements: Iterable[Any]) -> List[Statement]:
    """Accept ``Statement`` objects or plain lists."""
    coerced: List[Statement] = []
    for statement in statements:
        if isinstance(statement, Statement):
            coerced.append(statement)
        else:
            coerced.append(Statement.from_list(statement))
    return coerced


def results_to_dict(entries: Sequence[ResultEntry]) -> Dict[str, Any]:
    return {entry.id: entry.value for entry in entries}
