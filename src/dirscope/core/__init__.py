"""Core sizing engine: listing, caching, sizing, scheduling and sessions."""

from dirscope.core.aggregation import Aggregate, aggregate, resolved_size, sort_entries
from dirscope.core.cache import SizeCache
from dirscope.core.errors import ConfigurationError, DirscopeError, EnvironmentVariableError, ListError
from dirscope.core.lister import EntryLister, seed_order
from dirscope.core.scheduler import Scheduler
from dirscope.core.session import ScanSession
from dirscope.core.sizing import DirectorySizer, FileSizer, ProgressTable

__all__ = [
    # Aggregation and ordering
    "Aggregate",
    "aggregate",
    "resolved_size",
    "sort_entries",
    "seed_order",
    # Services
    "DirectorySizer",
    "EntryLister",
    "FileSizer",
    "ProgressTable",
    "ScanSession",
    "Scheduler",
    "SizeCache",
    # Errors
    "ConfigurationError",
    "DirscopeError",
    "EnvironmentVariableError",
    "ListError",
]
