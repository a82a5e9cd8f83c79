"""Tests for LongbridgeQuoteProvider with a fake SDK context."""

import asyncio
import threading
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from quotewatch.market.longbridge import LongbridgeQuoteProvider, resolve_extended_sessions
from quotewatch.market.models import WatchEntry
from quotewatch.market.settings import Settings

CREDENTIALS = {
    "QUOTEWATCH_LONGBRIDGE": "true",
    "QUOTEWATCH_LONGBRIDGE_APP_KEY": "key",
    "QUOTEWATCH_LONGBRIDGE_APP_SECRET": "secret",
    "QUOTEWATCH_LONGBRIDGE_ACCESS_TOKEN": "token",
}


def make_sdk_quote(symbol, last_done="380.2", prev_close="375", pre=None, post=None, overnight=None):
    """Shape of a longport SecurityQuote, as far as the provider reads it."""

    def session(price):
        return None if price is None else SimpleNamespace(last_done=Decimal(price))

    return SimpleNamespace(
        symbol=symbol,
        last_done=None if last_done is None else Decimal(last_done),
        prev_close=None if prev_close is None else Decimal(prev_close),
        high=Decimal("381"),
        low=Decimal("374.4"),
        pre_market_quote=session(pre),
        post_market_quote=session(post),
        overnight_quote=session(overnight),
    )


def make_static_info(symbol, name_cn):
    return SimpleNamespace(symbol=symbol, name_cn=name_cn)


def _settings(**overrides):
    values = dict(CREDENTIALS)
    values.update(overrides)
    return Settings.from_mapping(values)


def _fake_factory(quotes=(), infos=()):
    context = MagicMock()
    context.quote.return_value = list(quotes)
    context.static_info.return_value = list(infos)
    factory = MagicMock(return_value=context)
    return factory, context


class TestResolveExtendedSessions:
    def test_no_sessions(self):
        resolved, pre, post, overnight = resolve_extended_sessions(make_sdk_quote("AAPL.US"))
        assert resolved.label is None
        assert (pre, post, overnight) == ("--", "--", "--")

    def test_pre_market_wins(self):
        quote = make_sdk_quote("AAPL.US", pre="229.1", post="231.0", overnight="230.5")
        resolved, pre, post, overnight = resolve_extended_sessions(quote)
        assert (resolved.label, resolved.price) == ("pre-market", "229.1")
        assert (pre, post, overnight) == ("229.1", "231.0", "230.5")

    def test_post_before_overnight(self):
        quote = make_sdk_quote("AAPL.US", post="231.0", overnight="230.5")
        resolved, *_ = resolve_extended_sessions(quote)
        assert resolved.label == "post-market"

    def test_zero_price_counts_as_absent(self):
        quote = make_sdk_quote("AAPL.US", pre="0", overnight="230.5")
        resolved, pre, _, _ = resolve_extended_sessions(quote)
        assert resolved.label == "overnight"
        assert pre == "--"

    def test_overnight_falls_back_to_post(self):
        quote = make_sdk_quote("AAPL.US", post="231.0")
        _, _, _, overnight = resolve_extended_sessions(quote, overnight_fallback=True)
        assert overnight == "231.0"

    def test_overnight_fallback_disabled(self):
        quote = make_sdk_quote("AAPL.US", post="231.0")
        _, _, _, overnight = resolve_extended_sessions(quote, overnight_fallback=False)
        assert overnight == "--"

    def test_unreadable_session_data(self):
        quote = make_sdk_quote("AAPL.US")
        quote.pre_market_quote = SimpleNamespace(last_done="garbage")
        resolved, pre, post, overnight = resolve_extended_sessions(quote)
        assert resolved.label is None
        assert (pre, post, overnight) == ("--", "--", "--")


@pytest.mark.asyncio
class TestLongbridgeQuoteProvider:
    async def test_missing_credentials_skip_cycle(self, board):
        factory, _ = _fake_factory()
        settings = Settings.from_mapping({"QUOTEWATCH_LONGBRIDGE": "true", "QUOTEWATCH_LONGBRIDGE_APP_KEY": "key"})
        provider = LongbridgeQuoteProvider(sink=board, settings_source=lambda: settings, context_factory=factory)

        await provider.handle([WatchEntry("hk00700")])

        factory.assert_not_called()
        assert not provider.has_context
        assert len(board) == 0

    async def test_handle_updates_sink(self, board):
        factory, context = _fake_factory(
            quotes=[make_sdk_quote("700.HK"), make_sdk_quote("AAPL.US", "230.5", "228", post="231.0")],
            infos=[make_static_info("700.HK", "腾讯控股"), make_static_info("AAPL.US", "苹果")],
        )
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.handle([WatchEntry("hk00700", "350", "100"), WatchEntry("usAAPL")])

        context.quote.assert_called_once_with(["700.HK", "AAPL.US"])
        context.static_info.assert_called_once_with(["700.HK", "AAPL.US"])

        tencent = board.get("hk00700")
        assert tencent.display_name == "腾讯控股"
        assert tencent.last == Decimal("380.2")
        assert str(tencent.change_percent) == "1.39"
        assert str(tencent.income_amount) == "3020.00"
        assert tencent.source == "longbridge"

        apple = board.get("usAAPL")
        assert apple.extended_session.label == "post-market"
        assert apple.overnight_price == "231.0"
        assert board.last_refresh is not None

    async def test_context_created_once(self, board):
        factory, context = _fake_factory(quotes=[make_sdk_quote("700.HK")])
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.handle([WatchEntry("hk00700")])
        await provider.stop_handle()
        await provider.handle([WatchEntry("hk00700")])

        factory.assert_called_once()
        assert context.quote.call_count == 2
        assert provider.has_context

    async def test_context_factory_receives_settings(self, board):
        factory, _ = _fake_factory()
        settings = _settings(QUOTEWATCH_LONGBRIDGE_HTTP_URL="https://openapi.longportapp.com")
        provider = LongbridgeQuoteProvider(sink=board, settings_source=lambda: settings, context_factory=factory)

        await provider.handle([WatchEntry("usAAPL")])

        credentials, passed_settings = factory.call_args.args
        assert credentials.app_key == "key"
        assert credentials.access_token == "token"
        assert passed_settings.longbridge_http_url == "https://openapi.longportapp.com"

    async def test_name_falls_back_to_symbol(self, board):
        factory, _ = _fake_factory(quotes=[make_sdk_quote("600519.SH", "1700", "1690")])
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.handle([WatchEntry("sh600519")])

        assert board.get("sh600519").display_name == "600519.SH"

    async def test_missing_prices_default_to_zero(self, board):
        factory, _ = _fake_factory(quotes=[make_sdk_quote("700.HK", last_done=None, prev_close=None)])
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.handle([WatchEntry("hk00700")])

        quote = board.get("hk00700")
        assert quote.last == Decimal("0")
        assert quote.change_percent == Decimal("0")

    async def test_overnight_fallback_setting(self, board):
        factory, _ = _fake_factory(quotes=[make_sdk_quote("AAPL.US", post="231.0")])
        settings = _settings(QUOTEWATCH_LONGBRIDGE_OVERNIGHT_FALLBACK="false")
        provider = LongbridgeQuoteProvider(sink=board, settings_source=lambda: settings, context_factory=factory)

        await provider.handle([WatchEntry("usAAPL")])

        assert board.get("usAAPL").overnight_price == "--"

    async def test_untranslatable_entries_skipped(self, board):
        factory, context = _fake_factory(quotes=[make_sdk_quote("700.HK")])
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.handle([WatchEntry("jp7203"), WatchEntry("hk00700")])

        context.quote.assert_called_once_with(["700.HK"])
        assert "hk00700" in board

    async def test_only_untranslatable_entries_skip_fetch(self, board):
        factory, _ = _fake_factory()
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.handle([WatchEntry("jp7203")])

        factory.assert_not_called()

    async def test_sdk_error_does_not_crash(self, board):
        factory, context = _fake_factory()
        context.quote.side_effect = RuntimeError("connection reset")
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.handle([WatchEntry("hk00700")])  # Should not raise

        assert len(board) == 0

    async def test_context_creation_error_is_retried(self, board):
        context = MagicMock()
        context.quote.return_value = [make_sdk_quote("700.HK")]
        context.static_info.return_value = []
        factory = MagicMock(side_effect=[RuntimeError("auth failed"), context])
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.handle([WatchEntry("hk00700")])
        assert not provider.has_context

        await provider.handle([WatchEntry("hk00700")])
        assert provider.has_context
        assert "hk00700" in board

    async def test_bad_quote_skipped(self, board):
        bad = make_sdk_quote("9988.HK")
        bad.last_done = "n/a"
        factory, _ = _fake_factory(quotes=[bad, make_sdk_quote("700.HK")])
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.handle([WatchEntry("hk09988"), WatchEntry("hk00700")])

        assert "hk09988" not in board
        assert "hk00700" in board

    async def test_stop_handle_is_idempotent(self, board):
        factory, _ = _fake_factory()
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        await provider.stop_handle()
        await provider.stop_handle()  # Should not raise
        factory.assert_not_called()

    async def test_stop_handle_mid_cycle_keeps_cost_basis(self, board):
        """Test that a fetch in flight still re-attaches cost basis after stop_handle."""
        release = threading.Event()
        factory, context = _fake_factory(infos=[make_static_info("700.HK", "腾讯控股")])

        def slow_quote(symbols):
            release.wait(timeout=2)
            return [make_sdk_quote("700.HK")]

        context.quote.side_effect = slow_quote
        provider = LongbridgeQuoteProvider(sink=board, settings_source=_settings, context_factory=factory)

        cycle = asyncio.create_task(provider.handle([WatchEntry("hk00700", "350", "100")]))
        await asyncio.sleep(0.05)
        await provider.stop_handle()
        release.set()
        await cycle

        quote = board.get("hk00700")
        assert quote is not None
        assert str(quote.income_amount) == "3020.00"
