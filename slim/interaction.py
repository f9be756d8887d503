"""
Fixture interaction strategies and the fixture registry.

The executor never reflects on fixture objects itself.  ``FixtureRegistry``
turns a type name into a factory, and every constructed object is wrapped in
a ``FixtureAdapter`` exposing ``invoke(method_name, args)``.  How names map
onto Python callables is decided by the configured ``FixtureInteraction``.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

from .statements import COULD_NOT_INVOKE_CONSTRUCTOR, NO_METHOD_IN_CLASS, SlimError, is_stop_test

logger = logging.getLogger(__name__)

DEFAULT_INTERACTION = "slim.interaction.DefaultInteraction"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def graceful_class_name(name: str) -> str:
    """``"test slim"`` -> ``"TestSlim"``; names without spaces are returned as-is."""
    words = name.split()
    if len(words) <= 1:
        return name.strip()
    return "".join(word[:1].upper() + word[1:] for word in words)


def graceful_method_name(name: str) -> str:
    """``"echo int"`` -> ``"echoInt"``."""
    words = name.split()
    if len(words) <= 1:
        return name.strip()
    first, *rest = words
    return first[:1].lower() + first[1:] + "".join(word[:1].upper() + word[1:] for word in rest)


def _accepts(func: Callable[..., Any], arg_count: int) -> bool:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures.
        return True
    try:
        signature.bind(*([None] * arg_count))
    except TypeError:
        return False
    return True


class FixtureInteraction(ABC):
    """Strategy deciding how constructors and methods are invoked."""

    def create_instance(self, factory: Callable[..., Any], args: Sequence[Any]) -> Any:
        return factory(*args)

    @abstractmethod
    def find_method(self, instance: Any, name: str, arg_count: int) -> Optional[Callable[..., Any]]:
        """Return a bound callable for ``name`` or ``None``."""

    def method_invoke(self, method: Callable[..., Any], instance: Any, args: Sequence[Any]) -> Any:
        return method(*args)


class DefaultInteraction(FixtureInteraction):
    """Resolve ``echoInt`` to ``echoInt`` or ``echo_int`` and match arity."""

    def find_method(self, instance: Any, name: str, arg_count: int) -> Optional[Callable[..., Any]]:
        base = graceful_method_name(name)
        seen = set()
        for candidate in (base, snake_case(base)):
            if candidate in seen or candidate.startswith("_"):
                continue
            seen.add(candidate)
            method = getattr(instance, candidate, None)
            if callable(method) and _accepts(method, arg_count):
                return method
        return None


class SimpleInteraction(FixtureInteraction):
    """Exact attribute lookup, no name conversion and no arity matching."""

    def find_method(self, instance: Any, name: str, arg_count: int) -> Optional[Callable[..., Any]]:
        if name.startswith("_"):
            return None
        method = getattr(instance, name, None)
        return method if callable(method) else None


def load_interaction(path: str) -> type:
    """Import ``package.module.ClassName`` and check it is an interaction."""
    module_name, _, class_name = path.rpartition(".")
    if not module_name:
        raise ValueError(f"interaction must be a dotted path: {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"cannot import interaction module {module_name!r}: {exc}") from exc
    cls = getattr(module, class_name, None)
    if not (inspect.isclass(cls) and issubclass(cls, FixtureInteraction)):
        raise ValueError(f"{path!r} is not a FixtureInteraction class")
    return cls


class FixtureAdapter:
    """Uniform ``invoke`` capability around one fixture object."""

    def __init__(self, instance: Any, interaction: FixtureInteraction) -> None:
        self.instance = instance
        self.interaction = interaction

    @property
    def type_name(self) -> str:
        return type(self.instance).__name__

    def find(self, method_name: str, arg_count: int) -> Optional[Callable[..., Any]]:
        return self.interaction.find_method(self.instance, method_name, arg_count)

    def has_method(self, method_name: str, arg_count: int) -> bool:
        return self.find(method_name, arg_count) is not None

    def invoke(self, method_name: str, args: Sequence[Any]) -> Any:
        method = self.find(method_name, len(args))
        if method is None:
            raise SlimError(NO_METHOD_IN_CLASS, f"{method_name}[{len(args)}] {self.type_name}.")
        return self.interaction.method_invoke(method, self.instance, args)

    def __repr__(self) -> str:
        return f"FixtureAdapter({self.instance!r})"


class FixtureRegistry:
    """Maps type names to factories; owned by one session."""

    def __init__(self, interaction: Optional[FixtureInteraction] = None) -> None:
        self.interaction = interaction or DefaultInteraction()
        self._factories: Dict[str, Callable[..., Any]] = {}
        self._imports: List[str] = []

    @property
    def imports(self) -> List[str]:
        return list(self._imports)

    def register(self, name: str, factory: Callable[..., Any]) -> None:
        self._factories[name] = factory

    def add_import(self, path: str) -> None:
        path = path.strip()
        if path and path not in self._imports:
            self._imports.append(path)

    def _from_module(self, module_name: str, attr: str) -> Optional[Callable[..., Any]]:
        try:
            module = importlib.import_module(module_name)
        except Exception as exc:
            logger.debug("import of %s failed: %s: %s", module_name, type(exc).__name__, exc)
            return None
        factory = getattr(module, attr, None)
        return factory if callable(factory) else None

    def resolve(self, type_name: str) -> Optional[Callable[..., Any]]:
        name = graceful_class_name(type_name)
        factory = self._factories.get(type_name) or self._factories.get(name)
        if factory is not None:
            return factory
        if "." in name:
            module_name, _, attr = name.rpartition(".")
            factory = self._from_module(module_name, attr)
            if factory is not None:
                return factory
        for path in self._imports:
            factory = self._from_module(path, name)
            if factory is not None:
                return factory
        return None

    def make(self, type_name: str, args: Sequence[Any]) -> FixtureAdapter:
        factory = self.resolve(type_name)
        detail = f"{type_name}[{len(args)}]"
        if factory is None:
            raise SlimError(COULD_NOT_INVOKE_CONSTRUCTOR, f"{detail} not found")
        try:
            instance = self.interaction.create_instance(factory, args)
        except Exception as exc:
            if is_stop_test(exc):
                raise
            raise SlimError(COULD_NOT_INVOKE_CONSTRUCTOR, f"{detail} {type(exc).__name__}: {exc}") from exc
        return self.wrap(instance)

    def wrap(self, instance: Any) -> FixtureAdapter:
        if isinstance(instance, FixtureAdapter):
            return instance
        return FixtureAdapter(instance, self.interaction)
