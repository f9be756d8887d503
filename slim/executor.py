"""
Statement executor: the server-side interpreter for one SLIM connection.

A batch runs strictly in order.  Every failure is turned into an exception
entry for the statement that raised it; a stop-test exception additionally
ends the batch, so later statements produce no entry at all.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .interaction import FixtureAdapter, FixtureInteraction, FixtureRegistry
from .statements import (
    MALFORMED_INSTRUCTION,
    NO_INSTANCE,
    OK,
    ResultEntry,
    SlimError,
    Statement,
    Verb,
    encode_exception,
    is_stop_test,
    to_wire_value,
)

logger = logging.getLogger(__name__)

LIBRARY_PREFIX = "library"

_SYMBOL = re.compile(r"\$([A-Za-z]\w*)")


class ExecutionState(Enum):
    READY = "ready"
    EXECUTING = "executing"
    DONE = "done"
    HALTED = "halted"


class StatementExecutor:
    """Owns the instance and symbol tables of a single session."""

    def __init__(
        self,
        interaction: Optional[FixtureInteraction] = None,
        *,
        registry: Optional[FixtureRegistry] = None,
    ) -> None:
        self.registry = registry or FixtureRegistry(interaction)
        self.instances: Dict[str, FixtureAdapter] = {}
        self.symbols: Dict[str, Any] = {}
        self.state = ExecutionState.READY
        self.halted_at: Optional[str] = None
        self._handlers: Dict[Verb, Callable[[Sequence[Any]], Any]] = {
            Verb.IMPORT: self._do_import,
            Verb.MAKE: self._do_make,
            Verb.CALL: self._do_call,
            Verb.CALL_AND_ASSIGN: self._do_call_and_assign,
            Verb.ASSIGN: self._do_assign,
        }

    def execute(self, statements: Iterable[Statement]) -> List[ResultEntry]:
        batch = list(statements)
        results: List[ResultEntry] = []
        self.state = ExecutionState.EXECUTING
        self.halted_at = None
        index = 0
        while index < len(batch):
            statement = batch[index]
            value, stop = self._execute_one(statement)
            results.append(ResultEntry(statement.id, value))
            if stop:
                self.state = ExecutionState.HALTED
                self.halted_at = statement.id
                logger.info(
                    "batch halted at %s; %d statement(s) skipped", statement.id, len(batch) - index - 1
                )
                break
            index += 1
        else:
            self.state = ExecutionState.DONE
        return results

    def release(self) -> None:
        self.instances.clear()
        self.symbols.clear()
        self.state = ExecutionState.READY
        self.halted_at = None

    # ------------------------------------------------------------------
    # Per-statement dispatch
    # ------------------------------------------------------------------

    def _execute_one(self, statement: Statement) -> Tuple[Any, bool]:
        try:
            if not statement.well_formed:
                raise SlimError(MALFORMED_INSTRUCTION, repr(statement.to_list()))
            operands = [self.substitute(operand) for operand in statement.operands]
            value = self._handlers[statement.verb](operands)
        except (Exception, SystemExit) as exc:
            encoded = encode_exception(exc)
            logger.debug("%s %s -> %s", statement.id, statement.verb.value, encoded)
            return encoded, is_stop_test(exc)
        logger.debug("%s %s -> %r", statement.id, statement.verb.value, value)
        return value, False

    def substitute(self, operand: Any) -> Any:
        if isinstance(operand, list):
            return [self.substitute(item) for item in operand]
        if not isinstance(operand, str) or "$" not in operand:
            return operand
        whole = _SYMBOL.fullmatch(operand)
        if whole and whole.group(1) in self.symbols:
            return self.symbols[whole.group(1)]

        def replace(match: re.Match) -> str:
            name = match.group(1)
            if name not in self.symbols:
                return match.group(0)
            value = to_wire_value(self.symbols[name])
            return value if isinstance(value, str) else str(value)

        return _SYMBOL.sub(replace, operand)

    def _do_import(self, operands: Sequence[Any]) -> str:
        self.registry.add_import(str(operands[0]))
        return OK

    def _do_make(self, operands: Sequence[Any]) -> str:
        instance_name, type_ref, *args = operands
        if isinstance(type_ref, str):
            adapter = self.registry.make(type_ref, args)
        else:
            # ``$symbol`` holding an object already built by another fixture.
            adapter = self.registry.wrap(type_ref)
        self.instances[str(instance_name)] = adapter
        return OK

    def _do_call(self, operands: Sequence[Any]) -> Any:
        instance_name, method_name, *args = operands
        return to_wire_value(self._invoke(str(instance_name), str(method_name), args))

    def _do_call_and_assign(self, operands: Sequence[Any]) -> Any:
        symbol, instance_name, method_name, *args = operands
        value = self._invoke(str(instance_name), str(method_name), args)
        self.symbols[str(symbol)] = value
        return to_wire_value(value)

    def _do_assign(self, operands: Sequence[Any]) -> str:
        symbol, value = operands[0], operands[1]
        self.symbols[str(symbol)] = value
        return OK

    def _libraries(self) -> List[FixtureAdapter]:
        return [
            adapter for name, adapter in reversed(list(self.instances.items())) if name.startswith(LIBRARY_PREFIX)
        ]

    def _invoke(self, instance_name: str, method_name: str, args: Sequence[Any]) -> Any:
        adapter = self.instances.get(instance_name)
        if adapter is not None and adapter.has_method(method_name, len(args)):
            return adapter.invoke(method_name, args)
        for library in self._libraries():
            if library is not adapter and library.has_method(method_name, len(args)):
                return library.invoke(method_name, args)
        if adapter is None:
            raise SlimError(NO_INSTANCE, f"{instance_name}.{method_name}")
        return adapter.invoke(method_name, args)
