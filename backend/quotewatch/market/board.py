"""Thread-safe in-memory quote board: the default display sink."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from threading import Lock

from .models import Quote


class QuoteBoard:
    """Latest quote per identifier, in watch-list order.

    Writers: the active provider, from whichever cycle finishes (cycles may
    overlap, so the last write per identifier wins).
    Readers: the HTTP snapshot and SSE endpoints.
    """

    def __init__(self) -> None:
        self._order: list[str] = []
        self._quotes: dict[str, Quote] = {}
        self._lock = Lock()
        self._version: int = 0  # Bumped on every change
        self._colorful = True
        self._striped = False
        self._last_refresh: datetime | None = None
        self._last_source: str | None = None

    # --- QuoteSink ---

    def setup(self, identifiers: Sequence[str]) -> None:
        """Declare the rows to display, in order. Unknown quotes stay empty until updated."""
        with self._lock:
            self._order = list(dict.fromkeys(identifiers))
            self._version += 1

    def update(self, quote: Quote) -> None:
        with self._lock:
            if quote.identifier not in self._quotes and quote.identifier not in self._order:
                self._order.append(quote.identifier)
            self._quotes[quote.identifier] = quote
            self._version += 1

    def clear(self) -> None:
        with self._lock:
            self._order = []
            self._quotes.clear()
            self._version += 1

    def set_color_mode_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._colorful = bool(enabled)

    def set_striped_rows_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._striped = bool(enabled)

    def mark_refreshed(self, source: str) -> None:
        with self._lock:
            self._last_refresh = datetime.now()
            self._last_source = source

    # --- Readers ---

    def get(self, identifier: str) -> Quote | None:
        with self._lock:
            return self._quotes.get(identifier)

    def get_all(self) -> dict[str, Quote]:
        """Snapshot of all current quotes in row order. Returns a shallow copy."""
        with self._lock:
            return {i: self._quotes[i] for i in self._order if i in self._quotes}

    def rows(self) -> list[str]:
        with self._lock:
            return list(self._order)

    @property
    def colorful(self) -> bool:
        return self._colorful

    @property
    def striped(self) -> bool:
        return self._striped

    @property
    def last_refresh(self) -> datetime | None:
        return self._last_refresh

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version

    def to_dict(self) -> dict:
        with self._lock:
            quotes = [self._quotes[i].to_dict() for i in self._order if i in self._quotes]
            return {
                "rows": list(self._order),
                "quotes": quotes,
                "colorful": self._colorful,
                "striped": self._striped,
                "last_refresh": self._last_refresh.strftime("%H:%M:%S") if self._last_refresh else None,
                "source": self._last_source,
                "version": self._version,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._quotes)

    def __contains__(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._quotes
