"""Pullchain configuration and event models."""

from .config import DEFAULT_USER_AGENT, FetchOptions, FilterSpec, PipelineConfig, TerminalPolicy
from .events import EventType, ParsedResult, PipelineEvent, PipelineResult, PipelineState

__all__ = [
    # Config
    "DEFAULT_USER_AGENT",
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
]
