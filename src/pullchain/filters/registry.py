"""Resolution of filter identifiers to callables."""

from __future__ import annotations

import importlib
import importlib.util
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..errors import FilterNotFoundError
from .base import FilterFunc
from .builtin import BUILTIN_FILTERS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredFilter:
    """A resolved filter: its name, callable, and whether it ends the chain."""

    name: str
    func: FilterFunc
    terminal: bool = False


class FilterRegistry:
    """
    Maps identifiers to filters.

    Identifiers are either registered names (builtins plus anything added
    with register()) or custom references:
    - "package.module:function" imports a module from the Python path
    - "path/to/filters.py:function" loads a Python file

    Custom references are imported once and cached.

    Example:
        registry = FilterRegistry()
        registry.register("shout", lambda doc, params: doc.text.upper())
        resolved = registry.resolve("shout")
    """

    def __init__(self, include_builtins: bool = True):
        self._filters: dict[str, RegisteredFilter] = {}
        if include_builtins:
            for name, (func, terminal) in BUILTIN_FILTERS.items():
                self.register(name, func, terminal=terminal)

    def register(self, name: str, func: FilterFunc, terminal: bool = False) -> None:
        """Register a filter under a name, replacing any previous one."""
        if not callable(func):
            raise TypeError(f"Filter '{name}' is not callable")
        if name in self._filters:
            logger.debug(f"Replacing filter '{name}'")
        self._filters[name] = RegisteredFilter(name, func, terminal)

    def names(self) -> list[str]:
        return sorted(self._filters)

    def __contains__(self, name: object) -> bool:
        return name in self._filters

    def resolve(self, identifier: str) -> RegisteredFilter:
        """
        Resolve an identifier to a filter.

        Raises:
            FilterNotFoundError: If the identifier is unknown or cannot be imported
        """
        registered = self._filters.get(identifier)
        if registered is not None:
            return registered

        module_ref, sep, attr = identifier.rpartition(":")
        if not sep or not module_ref or not attr:
            raise FilterNotFoundError(
                f"Unknown filter '{identifier}'. Builtin filters: {', '.join(self.names())}",
                filter_name=identifier,
            )

        func = self._load_reference(identifier, module_ref, attr)
        registered = RegisteredFilter(identifier, func, bool(getattr(func, "terminal", False)))
        self._filters[identifier] = registered
        logger.info(f"Loaded custom filter {identifier}")
        return registered

    def _load_reference(self, identifier: str, module_ref: str, attr: str) -> FilterFunc:
        try:
            if module_ref.endswith(".py"):
                module = self._load_file(Path(module_ref))
            else:
                module = importlib.import_module(module_ref)
        except (ImportError, OSError, SyntaxError) as e:
            raise FilterNotFoundError(f"Cannot load filter '{identifier}': {e}", filter_name=identifier) from e

        func = getattr(module, attr, None)
        if not callable(func):
            raise FilterNotFoundError(f"'{attr}' in {module_ref} is not a filter function", filter_name=identifier)
        return func

    @staticmethod
    def _load_file(file_path: Path):
        if not file_path.exists():
            raise FileNotFoundError(f"Filter file not found: {file_path}")

        spec = importlib.util.spec_from_file_location(f"pullchain_filters_{file_path.stem}", file_path)
        if not spec or not spec.loader:
            raise ImportError(f"Could not load {file_path}")

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module


default_registry = FilterRegistry()


def register_filter(
    name: Optional[str] = None,
    terminal: bool = False,
    registry: Optional[FilterRegistry] = None,
) -> Callable[[FilterFunc], FilterFunc]:
    """
    Decorator registering a function as a filter.

    Example:
        @register_filter("word_count")
        def word_count(document, params):
            return len(document.text.split())
    """

    def decorator(func: FilterFunc) -> FilterFunc:
        (registry or default_registry).register(name or func.__name__, func, terminal=terminal)
        func.terminal = terminal
        return func

    return decorator
