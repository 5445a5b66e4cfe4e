"""Filter contract: the document filters work on and the outcomes they return."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from ..models.events import ParsedResult


@dataclass
class Document:
    """
    Working document threaded through a filter chain.

    Filters may read or replace ``content``; the replacement is what the
    next filter sees. ``metadata`` is shared by every filter of the chain.

    Attributes:
        content: Raw content from the fetcher (text, bytes, or a directory path)
        locator: Locator the content was fetched from
        metadata: Free-form values filters hand to later filters
    """

    content: Union[str, bytes]
    locator: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """Content as text, decoding bytes as UTF-8 with replacement."""
        if isinstance(self.content, bytes):
            return self.content.decode("utf-8", errors="replace")
        return self.content


class OutcomeKind(str, Enum):
    """How a filter finished."""

    RESULT = "result"
    SKIP = "skip"
    TERMINAL = "terminal"
    FAILURE = "failure"


@dataclass(frozen=True)
class FilterOutcome:
    """
    Tagged outcome of one filter invocation.

    Example:
        def first_line(document, params):
            if not document.text:
                return FilterOutcome.skip()
            return FilterOutcome.parsed("first_line", document.text.splitlines()[0])
    """

    kind: OutcomeKind
    result: Optional[ParsedResult] = None
    error: Optional[Union[BaseException, str]] = None

    @staticmethod
    def parsed(type: str, data: Any = None) -> FilterOutcome:
        """A result to publish; the chain continues."""
        return FilterOutcome(OutcomeKind.RESULT, result=ParsedResult(type, data))

    @staticmethod
    def skip() -> FilterOutcome:
        """No result; the chain continues silently."""
        return FilterOutcome(OutcomeKind.SKIP)

    @staticmethod
    def terminal(type: Optional[str] = None, data: Any = None) -> FilterOutcome:
        """Successful completion that ends the chain, with an optional result."""
        result = ParsedResult(type, data) if type is not None else None
        return FilterOutcome(OutcomeKind.TERMINAL, result=result)

    @staticmethod
    def failure(error: Union[BaseException, str]) -> FilterOutcome:
        """Failure; the chain halts and reports the error."""
        return FilterOutcome(OutcomeKind.FAILURE, error=error)


# A filter is called as func(document, params) and may be a coroutine function.
# Its return value is read by to_outcome(): a 2-tuple whose first item is a
# str is always taken as (type, data). Filters whose data is such a tuple
# must wrap it in ParsedResult or FilterOutcome.parsed().
FilterReturn = Union[FilterOutcome, ParsedResult, tuple, Any, None]
FilterFunc = Callable[[Document, Any], Union[FilterReturn, Awaitable[FilterReturn]]]


def to_outcome(value: Any, identifier: str) -> FilterOutcome:
    """
    Normalize whatever a filter returned into a FilterOutcome.

    - FilterOutcome: used as-is
    - None: skip
    - ParsedResult: result
    - (type, data) tuple with a string type: result
    - anything else: result typed with the filter identifier

    The tuple rule is checked before the fallback, so a filter returning
    ("a", "b") as plain data publishes type "a" with data "b". Return
    FilterOutcome.parsed(identifier, ("a", "b")) to publish the tuple itself.
    """
    if isinstance(value, FilterOutcome):
        return value
    if value is None:
        return FilterOutcome.skip()
    if isinstance(value, ParsedResult):
        return FilterOutcome(OutcomeKind.RESULT, result=value)
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], str):
        return FilterOutcome.parsed(value[0], value[1])
    return FilterOutcome.parsed(identifier, value)
