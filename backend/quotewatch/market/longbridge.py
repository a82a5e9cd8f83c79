"""Longbridge OpenAPI quote provider (``longport`` SDK).

The richest source: Hong Kong, US and A-share quotes with pre-market,
post-market and overnight prices. Needs three credentials; while any one is
missing every cycle is silently skipped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from decimal import Decimal
from typing import Any

from .arithmetic import build_quote, to_decimal
from .codes import build_symbol_map, from_provider_symbol
from .errors import ConfigIncompleteError
from .interface import QuoteProvider, QuoteSink
from .models import (
    NO_DATA,
    OVERNIGHT,
    POST_MARKET,
    PRE_MARKET,
    ExtendedSession,
    ProviderKind,
    Quote,
    WatchEntry,
)
from .settings import LongbridgeCredentials, Settings

logger = logging.getLogger(__name__)

ContextFactory = Callable[[LongbridgeCredentials, Settings], Any]


def create_quote_context(credentials: LongbridgeCredentials, settings: Settings) -> Any:
    """Build a longport QuoteContext. Blocking; connects on construction."""
    # Lazy import: the SDK is only needed when Longbridge is the selected source.
    from longport.openapi import Config, QuoteContext

    config = Config(
        app_key=credentials.app_key,
        app_secret=credentials.app_secret,
        access_token=credentials.access_token,
        http_url=settings.longbridge_http_url,
        enable_overnight=True,
    )
    return QuoteContext(config)


def _session_price(session: Any) -> Decimal | None:
    """Last-done price of a pre/post/overnight quote, or None if absent or zero."""
    if session is None:
        return None
    price = getattr(session, "last_done", None)
    if price is None:
        return None
    price = to_decimal(price, "last_done")
    return price if price != 0 else None


def _price_text(price: Decimal | None) -> str:
    return NO_DATA if price is None else str(price)


def resolve_extended_sessions(quote: Any, overnight_fallback: bool = True) -> tuple[ExtendedSession, str, str, str]:
    """Resolve extended-hours prices for one SDK quote.

    Returns (resolved, pre_market_price, post_market_price, overnight_price).
    The resolved session is the first of pre-market, post-market, overnight
    with a nonzero price. With ``overnight_fallback`` the overnight column
    shows the post-market price when no overnight trade is reported.
    """
    try:
        pre = _session_price(getattr(quote, "pre_market_quote", None))
        post = _session_price(getattr(quote, "post_market_quote", None))
        overnight = _session_price(getattr(quote, "overnight_quote", None))
    except Exception as e:
        logger.warning("Unreadable extended-session data for %s: %s", getattr(quote, "symbol", "???"), e)
        return ExtendedSession(), NO_DATA, NO_DATA, NO_DATA

    resolved = ExtendedSession()
    for label, price in ((PRE_MARKET, pre), (POST_MARKET, post), (OVERNIGHT, overnight)):
        if price is not None:
            resolved = ExtendedSession(label=label, price=str(price))
            break

    overnight_shown = overnight
    if overnight_shown is None and overnight_fallback:
        overnight_shown = post

    return resolved, _price_text(pre), _price_text(post), _price_text(overnight_shown)


class LongbridgeQuoteProvider(QuoteProvider):
    """QuoteProvider backed by the Longbridge OpenAPI SDK.

    The QuoteContext is created lazily on the first cycle that has complete
    credentials and then reused for the life of this provider. Each cycle
    requests live quotes and static info concurrently and joins both.
    """

    kind = ProviderKind.LONGBRIDGE

    def __init__(
        self,
        sink: QuoteSink,
        settings_source: Callable[[], Settings],
        context_factory: ContextFactory | None = None,
    ) -> None:
        self._sink = sink
        self._settings_source = settings_source
        self._context_factory = context_factory or create_quote_context
        self._context: Any = None
        self._context_lock = asyncio.Lock()

    @property
    def has_context(self) -> bool:
        return self._context is not None

    async def handle(self, entries: Sequence[WatchEntry]) -> None:
        # Cycle-local, so overlapping cycles never share a map.
        symbol_map = build_symbol_map(entries, self.kind)
        if not symbol_map:
            return

        settings = self._settings_source()
        try:
            credentials = settings.longbridge_credentials()
        except ConfigIncompleteError as e:
            logger.debug("Longbridge fetch skipped: %s %s", e, e.context.get("missing"))
            return

        symbols = list(symbol_map)
        try:
            context = await self._ensure_context(credentials, settings)
            # The SDK calls block, so both run in worker threads.
            quotes, infos = await asyncio.gather(
                asyncio.to_thread(context.quote, symbols),
                asyncio.to_thread(context.static_info, symbols),
            )
        except Exception as e:
            logger.error("Longbridge poll failed: %s", e)
            return

        names = {info.symbol: info.name_cn for info in infos if info is not None}
        processed = 0
        for sdk_quote in quotes:
            try:
                quote = self._parse_quote(sdk_quote, names, symbol_map, settings.longbridge_overnight_fallback)
            except Exception as e:
                logger.warning("Skipping Longbridge quote for %s: %s", getattr(sdk_quote, "symbol", "???"), e)
                continue
            self._sink.update(quote)
            processed += 1

        if processed:
            self._sink.mark_refreshed(self.kind.value)
        logger.debug("Longbridge poll: updated %d/%d symbols", processed, len(symbols))

    async def stop_handle(self) -> None:
        # The context is kept so a later refresh reuses the same session.
        return None

    # --- Internal ---

    async def _ensure_context(self, credentials: LongbridgeCredentials, settings: Settings) -> Any:
        async with self._context_lock:
            if self._context is None:
                self._context = await asyncio.to_thread(self._context_factory, credentials, settings)
                logger.info("Longbridge quote context created (%s)", settings.longbridge_http_url)
            return self._context

    def _parse_quote(
        self,
        sdk_quote: Any,
        names: dict[str, str],
        symbol_map: dict[str, WatchEntry],
        overnight_fallback: bool,
    ) -> Quote:
        symbol = sdk_quote.symbol
        entry = symbol_map.get(symbol) or WatchEntry(identifier=from_provider_symbol(symbol, self.kind))
        last = sdk_quote.last_done if sdk_quote.last_done is not None else "0"
        previous_close = sdk_quote.prev_close if sdk_quote.prev_close is not None else "0"
        resolved, pre, post, overnight = resolve_extended_sessions(sdk_quote, overnight_fallback)
        return build_quote(
            entry=entry,
            display_name=names.get(symbol) or symbol,
            last=last,
            previous_close=previous_close,
            high=sdk_quote.high,
            low=sdk_quote.low,
            source=self.kind.value,
            extended_session=resolved,
            pre_market_price=pre,
            post_market_price=post,
            overnight_price=overnight,
        )
