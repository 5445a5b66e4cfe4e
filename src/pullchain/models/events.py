"""Event and result types for pipeline runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class EventType(str, Enum):
    """Events published on a pipeline's external surface."""

    PARSED = "job:parsed"
    EXIT = "exit"
    ERROR = "error"


class PipelineState(str, Enum):
    """Lifecycle of a single pipeline run."""

    IDLE = "idle"
    FETCHING = "fetching"
    FILTERING = "filtering"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED)


@dataclass(frozen=True)
class ParsedResult:
    """Output of a single filter."""

    type: str
    data: Any = None


@dataclass
class PipelineEvent:
    """
    Event yielded by Pipeline.events().

    Example:
        async for event in pipeline.events():
            if event.type == EventType.PARSED:
                print(event.result.type, event.result.data)
            elif event.type == EventType.ERROR:
                print(f"Error: {event.error}")
    """

    type: EventType
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    name: Optional[str] = None
    result: Optional[ParsedResult] = None
    error: Optional[BaseException] = None

    @property
    def is_error(self) -> bool:
        return self.type == EventType.ERROR

    @property
    def is_terminal(self) -> bool:
        return self.type in (EventType.EXIT, EventType.ERROR)


@dataclass
class PipelineResult:
    """Collected outcome of a finished pipeline run."""

    name: str
    locator: str
    state: PipelineState = PipelineState.IDLE
    results: list[ParsedResult] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.DONE

    def to_dict(self) -> dict:
        """Convert the result to a JSON-friendly dictionary."""
        return {
            "name": self.name,
            "locator": self.locator,
            "state": self.state.value,
            "results": [{"type": r.type, "data": r.data} for r in self.results],
            "error": str(self.error) if self.error else None,
        }
