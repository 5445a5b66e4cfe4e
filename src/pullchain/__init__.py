"""
pullchain - Fetch a resource and run it through an ordered chain of filters.

Usage:
    from pullchain import Pipeline

    pipeline = Pipeline("https://example.com", "example")
    pipeline.filter("title").filter("links")
    pipeline.on("job:parsed", lambda type, data: print(type, data))
    pipeline.on("exit", lambda name: print(f"{name} done"))
    pipeline.on("error", lambda error: print(f"Failed: {error}"))

    await pipeline.start()
"""

__version__ = "1.0.0"

from .archive import ZipExtractor
from .chain import FilterChain, FilterEntry
from .core.fetcher import Fetcher
from .errors import (
    ArchiveError,
    ConfigError,
    FetchError,
    FilterError,
    FilterNotFoundError,
    PullchainError,
)
from .filters import Document, FilterOutcome, FilterRegistry, OutcomeKind, default_registry, register_filter
from .logging_config import setup_logging
from .models.config import FetchOptions, FilterSpec, PipelineConfig, TerminalPolicy
from .models.events import EventType, ParsedResult, PipelineEvent, PipelineResult, PipelineState
from .pipeline import Pipeline, collect, run_blocking

__all__ = [
    "__version__",
    # Core
    "Pipeline",
    "Fetcher",
    "FilterChain",
    "FilterEntry",
    "ZipExtractor",
    "collect",
    "run_blocking",
    # Filters
    "Document",
    "FilterOutcome",
    "FilterRegistry",
    "OutcomeKind",
    "default_registry",
    "register_filter",
    # Config
    "FetchOptions",
    "FilterSpec",
    "PipelineConfig",
    "TerminalPolicy",
    # Events
    "EventType",
    "ParsedResult",
    "PipelineEvent",
    "PipelineResult",
    "PipelineState",
    # Errors
    "PullchainError",
    "ConfigError",
    "FetchError",
    "ArchiveError",
    "FilterError",
    "FilterNotFoundError",
    # Logging
    "setup_logging",
]
