"""Abstract interfaces for quote providers and the display sink."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import ClassVar, Protocol, runtime_checkable

from .models import ProviderKind, Quote, WatchEntry


@runtime_checkable
class QuoteSink(Protocol):
    """Display surface the coordinator and providers write to.

    Writes may arrive from overlapping cycles in any order; implementations
    keep the last write per identifier.
    """

    def setup(self, identifiers: Sequence[str]) -> None: ...

    def update(self, quote: Quote) -> None: ...

    def clear(self) -> None: ...

    def set_color_mode_enabled(self, enabled: bool) -> None: ...

    def set_striped_rows_enabled(self, enabled: bool) -> None: ...

    def mark_refreshed(self, source: str) -> None: ...


class QuoteProvider(ABC):
    """Contract for upstream quote providers.

    A provider turns one batch of watch entries into Quote records pushed to
    its sink. Providers are built by ``create_provider`` and owned by a
    RefreshCoordinator, which calls ``handle`` once per cycle.

    Lifecycle:
        provider = create_provider(kind, sink, settings_source, http)
        await provider.handle(entries)   # every tick
        await provider.stop_handle()     # when refreshing stops
    """

    kind: ClassVar[ProviderKind]

    @abstractmethod
    async def handle(self, entries: Sequence[WatchEntry]) -> None:
        """Fetch quotes for ``entries`` and push each parsed one to the sink.

        Never raises. Records that fail to parse are skipped; a failed
        request means zero quotes this cycle.
        """

    @abstractmethod
    async def stop_handle(self) -> None:
        """Release provider-held resources.

        Safe to call multiple times, and safe to call before any ``handle``.
        """
