"""Filters: the contract, the builtins, and the registry resolving them."""

from .base import Document, FilterFunc, FilterOutcome, OutcomeKind, to_outcome
from .builtin import BUILTIN_FILTERS
from .registry import FilterRegistry, RegisteredFilter, default_registry, register_filter

__all__ = [
    "BUILTIN_FILTERS",
    "Document",
    "FilterFunc",
    "FilterOutcome",
    "FilterRegistry",
    "OutcomeKind",
    "RegisteredFilter",
    "default_registry",
    "register_filter",
    "to_outcome",
]
