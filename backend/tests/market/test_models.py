"""Tests for watch-list parsing and the Quote record."""

from decimal import Decimal

import pytest

from quotewatch.market.models import (
    ExtendedSession,
    Quote,
    WatchEntry,
    parse_watch_entry,
    parse_watch_list,
)


def _quote(**overrides) -> Quote:
    fields = dict(
        identifier="hk00700",
        display_name="Tencent",
        last=Decimal("380.2"),
        previous_close=Decimal("375"),
        high=Decimal("381"),
        low=Decimal("374.4"),
        change=Decimal("5.200"),
        change_percent=Decimal("1.39"),
        timestamp="20260203100000",
        source="longbridge",
    )
    fields.update(overrides)
    return Quote(**fields)


class TestParseWatchEntry:
    def test_identifier_only(self):
        assert parse_watch_entry("sh600519") == WatchEntry("sh600519")

    def test_cost_and_position(self):
        entry = parse_watch_entry(" hk00700 , 350.5 , 200 ")
        assert entry == WatchEntry("hk00700", "350.5", "200")

    def test_placeholders_become_none(self):
        entry = parse_watch_entry("usAAPL,--,--")
        assert entry.cost_basis is None
        assert entry.position_size is None

    def test_full_width_comma(self):
        assert parse_watch_entry("sz000001，12.3") == WatchEntry("sz000001", "12.3")

    def test_malformed_numbers_are_kept_raw(self):
        assert parse_watch_entry("sz000001,abc").cost_basis == "abc"

    def test_blank_line(self):
        assert parse_watch_entry("   ") is None
        assert parse_watch_entry(",100") is None


class TestParseWatchList:
    def test_semicolon_separated_in_order(self):
        entries = parse_watch_list("sh600519;hk00700,300,100;usAAPL")
        assert [e.identifier for e in entries] == ["sh600519", "hk00700", "usAAPL"]
        assert entries[1].position_size == "100"

    def test_newlines_and_blanks(self):
        entries = parse_watch_list("sh600519;\n;hk00700\n")
        assert [e.identifier for e in entries] == ["sh600519", "hk00700"]

    @pytest.mark.parametrize("raw", ["", None, " ; ;"])
    def test_empty(self, raw):
        assert parse_watch_list(raw) == []


class TestQuote:
    def test_is_immutable(self):
        quote = _quote()
        with pytest.raises(AttributeError):
            quote.last = Decimal("1")  # type: ignore[misc]

    def test_direction(self):
        assert _quote().direction == "up"
        assert _quote(change=Decimal("-1.000")).direction == "down"
        assert _quote(change=Decimal("0.000")).direction == "flat"

    def test_defaults(self):
        quote = _quote()
        assert quote.extended_session == ExtendedSession()
        assert not quote.extended_session.has_data
        assert quote.pre_market_price == "--"
        assert quote.income_percent is None

    def test_to_dict_uses_strings(self):
        quote = _quote(
            income_percent=Decimal("8.629"),
            income_amount=Decimal("6040.00"),
            extended_session=ExtendedSession("post-market", "381.0"),
        )
        d = quote.to_dict()
        assert d["last"] == "380.2"
        assert d["change"] == "5.200"
        assert d["change_percent"] == "1.39"
        assert d["income_amount"] == "6040.00"
        assert d["extended_session"] == {"label": "post-market", "price": "381.0"}
        assert d["direction"] == "up"
        assert d["timestamp"] == "20260203100000"

    def test_to_dict_optional_income(self):
        d = _quote().to_dict()
        assert d["income_percent"] is None
        assert d["income_amount"] is None
