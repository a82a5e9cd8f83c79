"""Quote refresh engine for quotewatch.

Public API:
    WatchEntry, Quote, ExtendedSession - Canonical records
    ProviderKind         - Closed set of upstream providers
    QuoteProvider        - Abstract provider contract
    QuoteSink            - Display sink protocol
    QuoteBoard           - Thread-safe in-memory sink
    RefreshCoordinator   - Owns the provider and the refresh schedule
    ScheduleManager      - Named cron-driven job registry
    Settings             - Environment-driven configuration
    create_provider      - Factory for providers
    create_stream_router - FastAPI router factory for the board
"""

from .board import QuoteBoard
from .coordinator import RefreshCoordinator
from .factory import create_provider, select_provider_kind
from .interface import QuoteProvider, QuoteSink
from .models import ExtendedSession, ProviderKind, Quote, WatchEntry
from .scheduler import ScheduleManager
from .settings import Settings
from .stream import create_stream_router

__all__ = [
    "ExtendedSession",
    "ProviderKind",
    "Quote",
    "QuoteBoard",
    "QuoteProvider",
    "QuoteSink",
    "RefreshCoordinator",
    "ScheduleManager",
    "Settings",
    "WatchEntry",
    "create_provider",
    "create_stream_router",
    "select_provider_kind",
]
