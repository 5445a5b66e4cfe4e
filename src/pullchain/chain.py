"""FilterChain: runs registered filters over a document, in order."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .emitter import EventEmitter
from .errors import FilterError
from .filters.base import Document, FilterFunc, FilterOutcome, OutcomeKind, to_outcome
from .filters.registry import FilterRegistry, default_registry
from .models.config import TerminalPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterEntry:
    """A filter registered on a chain together with its parameters."""

    identifier: str
    func: FilterFunc
    params: Any = None
    terminal: bool = False


class FilterChain:
    """
    Ordered sequence of filters and the driver that executes them.

    Filters run one at a time, in registration order, each awaited before
    the next starts. Each filter gets the working Document and its own
    params and may replace document.content for the filters after it.

    Events:
        PARSED(type, data): a filter produced a result
        DONE(name): every filter ran, or a terminal filter ended the chain
        ERROR(FilterError): a filter failed; no later filter runs

    Exactly one of DONE or ERROR is emitted per apply_filters() call.

    Example:
        chain = FilterChain("example")
        chain.filter("title").filter("links", {"base": "https://example.com"})
        chain.on(FilterChain.PARSED, lambda type, data: print(type, data))
        chain.set_document(html)
        await chain.apply_filters()
    """

    PARSED = "parsed"
    DONE = "done"
    ERROR = "error"

    def __init__(
        self,
        name: str,
        registry: Optional[FilterRegistry] = None,
        terminal_policy: TerminalPolicy = TerminalPolicy.STOP,
    ) -> None:
        """
        Initialize the chain.

        Args:
            name: Chain name reported with DONE
            registry: Registry resolving filter identifiers (default registry if None)
            terminal_policy: Whether a terminal filter ends the chain
        """
        self.name = name
        self.terminal_policy = TerminalPolicy(terminal_policy)
        self._registry = registry or default_registry
        self._emitter = EventEmitter()
        self._entries: list[FilterEntry] = []
        self._document: Optional[Document] = None
        self._started = False

    def on(self, event: str, callback: Callable[..., Any], scope: Optional[object] = None) -> None:
        """Subscribe to PARSED, DONE or ERROR."""
        self._emitter.on(event, callback, scope)

    @property
    def entries(self) -> tuple[FilterEntry, ...]:
        return tuple(self._entries)

    @property
    def document(self) -> Optional[Document]:
        return self._document

    @property
    def started(self) -> bool:
        return self._started

    def _append(self, entry: FilterEntry) -> FilterChain:
        if self._started:
            raise RuntimeError(f"Cannot add filter '{entry.identifier}': chain '{self.name}' already started")
        self._entries.append(entry)
        logger.debug(f"Chain '{self.name}': added filter #{len(self._entries)} '{entry.identifier}'")
        return self

    def filter(self, identifier: str, params: Any = None) -> FilterChain:
        """
        Append a filter resolved from the registry.

        Args:
            identifier: Builtin/registered name or custom 'module:function' reference
            params: Parameters handed to the filter

        Returns:
            Self for chaining

        Raises:
            FilterNotFoundError: If the identifier cannot be resolved
            RuntimeError: If the chain already started
        """
        if self._started:
            raise RuntimeError(f"Cannot add filter '{identifier}': chain '{self.name}' already started")
        resolved = self._registry.resolve(identifier)
        return self._append(FilterEntry(identifier, resolved.func, params, resolved.terminal))

    def add_filter(
        self,
        func: FilterFunc,
        params: Any = None,
        terminal: bool = False,
        name: Optional[str] = None,
    ) -> FilterChain:
        """
        Append a filter function directly.

        Args:
            func: Callable taking (document, params); may be a coroutine function
            params: Parameters handed to the filter
            terminal: If True, the chain completes after this filter succeeds
            name: Identifier used in logs and results (function name if None)

        Returns:
            Self for chaining
        """
        if not callable(func):
            raise TypeError("Filter must be callable")
        identifier = name or getattr(func, "__name__", "filter")
        return self._append(FilterEntry(identifier, func, params, terminal))

    def set_document(self, content: Any, locator: Optional[str] = None) -> None:
        """Store the raw content the filters will work on."""
        self._document = Document(content=content, locator=locator)

    async def _run_filter(self, entry: FilterEntry) -> FilterOutcome:
        value = entry.func(self._document, entry.params)
        if inspect.isawaitable(value):
            value = await value
        return to_outcome(value, entry.identifier)

    def _failure(self, entry: FilterEntry, index: int, cause: Any) -> FilterError:
        if isinstance(cause, FilterError):
            if cause.filter_name is None:
                cause.filter_name = entry.identifier
            if cause.index is None:
                cause.index = index
            return cause

        error = FilterError(f"Filter '{entry.identifier}' failed: {cause}", filter_name=entry.identifier, index=index)
        if isinstance(cause, BaseException):
            error.__cause__ = cause
        return error

    async def apply_filters(self) -> None:
        """
        Run every filter in order and emit PARSED, then DONE or ERROR.

        Raises:
            RuntimeError: If no document was set or the chain already ran
        """
        if self._document is None:
            raise RuntimeError(f"Chain '{self.name}' has no document; call set_document() first")
        if self._started:
            raise RuntimeError(f"Chain '{self.name}' already applied its filters")
        self._started = True

        total = len(self._entries)
        logger.debug(f"Chain '{self.name}': applying {total} filters")

        for index, entry in enumerate(self._entries):
            try:
                outcome = await self._run_filter(entry)
            except Exception as e:
                logger.error(f"Chain '{self.name}': filter '{entry.identifier}' raised: {e}", exc_info=True)
                self._emitter.emit(self.ERROR, self._failure(entry, index, e))
                return

            if outcome.kind == OutcomeKind.FAILURE:
                logger.warning(f"Chain '{self.name}': filter '{entry.identifier}' failed: {outcome.error}")
                self._emitter.emit(self.ERROR, self._failure(entry, index, outcome.error))
                return

            if outcome.result is not None:
                self._emitter.emit(self.PARSED, outcome.result.type, outcome.result.data)
            else:
                logger.debug(f"Chain '{self.name}': filter '{entry.identifier}' produced no result")

            terminal = entry.terminal or outcome.kind == OutcomeKind.TERMINAL
            if terminal and self.terminal_policy == TerminalPolicy.STOP:
                skipped = total - index - 1
                if skipped:
                    logger.debug(f"Chain '{self.name}': '{entry.identifier}' is terminal, skipping {skipped} filters")
                break

        self._emitter.emit(self.DONE, self.name)
