"""Pipeline: one Fetcher and one FilterChain behind a single event surface."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any, Callable, Optional, Union

from .archive import ArchiveExtractor
from .chain import FilterChain
from .core.fetcher import Fetcher
from .emitter import EventEmitter
from .filters.base import FilterFunc
from .filters.registry import FilterRegistry
from .http.protocols import RemoteClient
from .models.config import FetchOptions, PipelineConfig, TerminalPolicy
from .models.events import EventType, ParsedResult, PipelineEvent, PipelineResult, PipelineState

logger = logging.getLogger(__name__)


class Pipeline:
    """
    Fetches one locator and runs a filter chain over the result.

    The Pipeline owns its Fetcher and FilterChain and republishes their
    events on its own surface:

        job:parsed(type, data)  each filter result
        exit(name)              the chain completed (terminal)
        error(error)            the fetch or a filter failed (terminal)

    Exactly one terminal event fires per run; nothing fires after it.

    Example:
        pipeline = Pipeline("https://example.com", "example")
        pipeline.filter("title").filter("links")
        pipeline.on("job:parsed", lambda type, data: print(type, data))
        pipeline.on("exit", lambda name: print(f"{name} done"))
        await pipeline.start()
    """

    def __init__(
        self,
        locator: str,
        name: Optional[str] = None,
        options: Union[FetchOptions, Mapping[str, Any], None] = None,
        *,
        registry: Optional[FilterRegistry] = None,
        http_client: Optional[RemoteClient] = None,
        extractor: Optional[ArchiveExtractor] = None,
        terminal_policy: TerminalPolicy = TerminalPolicy.STOP,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            locator: URI or filesystem path to fetch
            name: Chain name reported by exit (defaults to the locator)
            options: Fetch option overrides merged onto the defaults
            registry: Registry resolving filter identifiers
            http_client: HTTP client shared with other pipelines
            extractor: Archive extraction collaborator
            terminal_policy: Whether a terminal filter ends the chain
        """
        self._locator = locator
        self._name = name or locator
        self._emitter = EventEmitter()
        self._state = PipelineState.IDLE
        self._started = False
        self.parse_triggered = False

        logger.debug(f"New pipeline '{self._name}' for {locator}")

        self._fetcher = Fetcher(locator, options, http_client=http_client, extractor=extractor)
        self._fetcher.on(Fetcher.CONTENT, self._on_content)
        self._fetcher.on(Fetcher.ERROR, self._on_error)

        self._chain = FilterChain(self._name, registry=registry, terminal_policy=terminal_policy)
        self._chain.on(FilterChain.PARSED, self._on_parsed)
        self._chain.on(FilterChain.DONE, self._on_done)
        self._chain.on(FilterChain.ERROR, self._on_error)

        # Chain work is awaited from start(), not from inside the fetcher's emit
        self._content: Optional[Any] = None

    @classmethod
    def from_config(cls, config: PipelineConfig, **kwargs: Any) -> Pipeline:
        """Build a pipeline, filters included, from a PipelineConfig."""
        pipeline = cls(
            config.locator,
            config.chain_name,
            config.options,
            terminal_policy=config.terminal_policy,
            **kwargs,
        )
        for spec in config.filters:
            pipeline.filter(spec.name, spec.params)
        return pipeline

    @property
    def locator(self) -> str:
        return self._locator

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def fetcher(self) -> Fetcher:
        return self._fetcher

    def get_fetcher(self) -> Fetcher:
        """Return the Fetcher owned by this pipeline, for advanced configuration."""
        return self._fetcher

    def on(
        self, event: Union[str, EventType], callback: Callable[..., Any], scope: Optional[object] = None
    ) -> Callable[..., Any]:
        """
        Subscribe to an event on the pipeline's external surface.

        Args:
            event: "job:parsed", "exit" or "error"
            callback: Function called with the event payload
            scope: Optional object the callback is bound to

        Returns:
            The registered listener, for use with off()
        """
        return self._emitter.on(EventType(event).value, callback, scope)

    def off(self, event: Union[str, EventType], listener: Callable[..., Any]) -> None:
        """Unsubscribe a listener returned by on()."""
        self._emitter.off(EventType(event).value, listener)

    def listener_count(self, event: Union[str, EventType]) -> int:
        return self._emitter.listener_count(EventType(event).value)

    def _check_not_started(self) -> None:
        if self._started:
            raise RuntimeError(f"Pipeline '{self._name}' already started; filters can no longer be added")

    def filter(self, identifier: str, params: Any = None) -> Pipeline:
        """Add a filter by identifier. Returns self for chaining."""
        self._check_not_started()
        self._chain.filter(identifier, params)
        return self

    def add_filter(self, func: FilterFunc, params: Any = None, terminal: bool = False) -> Pipeline:
        """Add a filter function directly. Returns self for chaining."""
        self._check_not_started()
        self._chain.add_filter(func, params, terminal=terminal)
        return self

    async def start(self) -> None:
        """
        Run the pipeline: fetch, then apply the filters to the content.

        Returns once the terminal event has been emitted.

        Raises:
            RuntimeError: If the pipeline was already started
        """
        if self._started:
            raise RuntimeError(f"Pipeline '{self._name}' already started")
        self._started = True

        self._state = PipelineState.FETCHING
        await self._fetcher.fetch()

        if self._state != PipelineState.FILTERING:
            return

        self._chain.set_document(self._content, locator=self._locator)
        self._content = None
        await self._chain.apply_filters()

    # The fetch layer calls this run
    run = start

    async def events(self) -> AsyncIterator[PipelineEvent]:
        """
        Start the pipeline and yield its events until the terminal one.

        Example:
            async for event in Pipeline("README.md").filter("uppercase").events():
                print(event.type, event.result or event.name or event.error)
        """
        queue: asyncio.Queue[PipelineEvent] = asyncio.Queue()

        listeners = [
            (EventType.PARSED, self.on(EventType.PARSED, lambda type, data: queue.put_nowait(
                PipelineEvent(EventType.PARSED, name=self._name, result=ParsedResult(type, data))
            ))),
            (EventType.EXIT, self.on(EventType.EXIT, lambda name: queue.put_nowait(
                PipelineEvent(EventType.EXIT, name=name)
            ))),
            (EventType.ERROR, self.on(EventType.ERROR, lambda error: queue.put_nowait(
                PipelineEvent(EventType.ERROR, name=self._name, error=error)
            ))),
        ]

        task = asyncio.create_task(self.start())
        try:
            while True:
                if queue.empty() and task.done():
                    # start() raised, or returned without a terminal event
                    task.result()
                    break

                getter = asyncio.ensure_future(queue.get())
                await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if not getter.done():
                    getter.cancel()
                    continue

                event = getter.result()
                yield event
                if event.is_terminal:
                    break
            await task
        finally:
            if not task.done():
                task.cancel()
            for event_type, listener in listeners:
                self.off(event_type, listener)

    # Event handlers
    # ------------------------------------------

    def _terminate(self, state: PipelineState) -> bool:
        if self._state.is_terminal:
            logger.warning(f"Pipeline '{self._name}' already finished ({self._state.value}), dropping event")
            return False
        self._state = state
        return True

    def _on_content(self, content: Any) -> None:
        if self._state.is_terminal:
            return
        self._content = content
        self._state = PipelineState.FILTERING

    def _on_parsed(self, type: str, data: Any) -> None:
        if self._state.is_terminal:
            return
        self.parse_triggered = True
        self._emitter.emit(EventType.PARSED.value, type, data)

    def _on_done(self, name: str) -> None:
        if self._terminate(PipelineState.DONE):
            logger.info(f"Pipeline '{self._name}' finished")
            self._emitter.emit(EventType.EXIT.value, name)

    def _on_error(self, error: BaseException) -> None:
        if self._terminate(PipelineState.FAILED):
            logger.warning(f"Pipeline '{self._name}' failed: {error}")
            self._emitter.emit(EventType.ERROR.value, error)


def run_blocking(
    locator: str,
    name: Optional[str] = None,
    filters: Optional[list[Union[str, tuple[str, Any]]]] = None,
    options: Union[FetchOptions, Mapping[str, Any], None] = None,
    **kwargs: Any,
) -> PipelineResult:
    """
    Run one pipeline to completion from synchronous code.

    WARNING: Do not call from within an existing event loop. Use
    Pipeline.start() or Pipeline.events() instead.

    Args:
        locator: URI or filesystem path
        name: Chain name (defaults to the locator)
        filters: Filter identifiers, or (identifier, params) pairs
        options: Fetch option overrides
        **kwargs: Additional Pipeline keyword arguments

    Returns:
        PipelineResult with the collected results and final state

    Example:
        result = run_blocking("README.md", filters=["uppercase"])
        if result.succeeded:
            print(result.results[0].data)
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        raise RuntimeError("run_blocking() called from async context. Use 'await Pipeline.start()' instead.")

    pipeline = Pipeline(locator, name, options, **kwargs)
    for spec in filters or []:
        if isinstance(spec, tuple):
            pipeline.filter(*spec)
        else:
            pipeline.filter(spec)

    return asyncio.run(collect(pipeline))


async def collect(pipeline: Pipeline) -> PipelineResult:
    """Start a pipeline and gather everything it emits into a PipelineResult."""
    result = PipelineResult(name=pipeline.name, locator=pipeline.locator)

    pipeline.on(EventType.PARSED, lambda type, data: result.results.append(ParsedResult(type, data)))

    def on_error(error: BaseException) -> None:
        result.error = error

    pipeline.on(EventType.ERROR, on_error)

    await pipeline.start()
    result.state = pipeline.state
    return result
