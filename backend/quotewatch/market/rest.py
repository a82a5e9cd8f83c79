"""Shared polling logic for the plain HTTP quote providers (Tencent, Sina).

Both upstreams answer one GET with one JavaScript-style assignment per
symbol:

    v_sh600519="1~name~600519~1700.00~...";          (Tencent)
    var hq_str_sh600519="name,1701.00,1690.00,...";   (Sina)

Subclasses supply the URL, the line regex and the per-record field layout.
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from typing import ClassVar

from .codes import build_symbol_map, from_provider_symbol
from .http import HttpClient
from .interface import QuoteProvider, QuoteSink
from .models import Quote, WatchEntry

logger = logging.getLogger(__name__)


class RestQuoteProvider(QuoteProvider):
    """QuoteProvider backed by a single batched GET per cycle."""

    base_url: ClassVar[str]
    headers: ClassVar[Mapping[str, str]] = {}
    encoding: ClassVar[str | None] = None
    line_re: ClassVar[re.Pattern[str]]

    def __init__(self, sink: QuoteSink, http: HttpClient) -> None:
        self._sink = sink
        self._http = http

    async def handle(self, entries: Sequence[WatchEntry]) -> None:
        # Cycle-local, so overlapping cycles never share a map.
        symbol_map = build_symbol_map(entries, self.kind)
        if not symbol_map:
            return

        try:
            # requests is synchronous, so run it in a worker thread.
            body = await asyncio.to_thread(self._fetch, list(symbol_map))
        except Exception as e:
            logger.error("%s poll failed: %s", self.kind.value, e)
            return

        processed = 0
        for symbol, value in self._split_records(body):
            entry = symbol_map.get(symbol) or WatchEntry(identifier=from_provider_symbol(symbol, self.kind))
            try:
                quote = self._parse_record(symbol, value, entry)
            except Exception as e:
                logger.warning("Skipping %s record for %s: %s", self.kind.value, symbol, e)
                continue
            if quote is None:
                continue
            self._sink.update(quote)
            processed += 1

        if processed:
            self._sink.mark_refreshed(self.kind.value)
        logger.debug("%s poll: updated %d/%d symbols", self.kind.value, processed, len(symbol_map))

    async def stop_handle(self) -> None:
        # Nothing held between cycles; the shared HttpClient belongs to the coordinator.
        return None

    # --- Internal ---

    def _fetch(self, symbols: list[str]) -> str:
        """Synchronous upstream call. Runs in a thread."""
        url = self.base_url + ",".join(symbols)
        return self._http.get(url, headers=self.headers, encoding=self.encoding)

    def _split_records(self, body: str) -> Iterator[tuple[str, str]]:
        for line in body.splitlines():
            m = self.line_re.match(line.strip())
            if m:
                yield m.group("code"), m.group("value")

    @abstractmethod
    def _parse_record(self, symbol: str, value: str, entry: WatchEntry) -> Quote | None:
        """Turn one upstream payload into a Quote.

        Returns None for an empty payload (unknown symbol). Raises on a
        malformed payload; the caller logs and skips it.
        """
