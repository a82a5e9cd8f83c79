"""Data models for the quote refresh engine."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

NO_DATA = "--"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

PRE_MARKET = "pre-market"
POST_MARKET = "post-market"
OVERNIGHT = "overnight"

_ENTRY_SEPARATOR_RE = re.compile(r"[;\n]")


class ProviderKind(str, Enum):
    """Closed set of upstream quote providers."""

    TENCENT = "tencent"
    SINA = "sina"
    LONGBRIDGE = "longbridge"


@dataclass(frozen=True, slots=True)
class WatchEntry:
    """One watch-list line: identifier plus optional cost basis and position size.

    Numeric fields stay as raw text. They are validated when income is
    computed so a typo never drops the quote itself.
    """

    identifier: str
    cost_basis: str | None = None
    position_size: str | None = None


def _optional_field(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value or value == NO_DATA:
        return None
    return value


def parse_watch_entry(line: str) -> WatchEntry | None:
    """Parse ``identifier[,costBasis[,positionSize]]``. Returns None for blank lines."""
    parts = line.replace("，", ",").split(",")
    identifier = parts[0].strip()
    if not identifier:
        return None
    cost_basis = parts[1] if len(parts) > 1 else None
    position_size = parts[2] if len(parts) > 2 else None
    return WatchEntry(
        identifier=identifier,
        cost_basis=_optional_field(cost_basis),
        position_size=_optional_field(position_size),
    )


def parse_watch_list(raw: str | None) -> list[WatchEntry]:
    """Split a ``;``-separated watch-list into entries, keeping order."""
    if not raw:
        return []
    entries = []
    for chunk in _ENTRY_SEPARATOR_RE.split(raw):
        entry = parse_watch_entry(chunk)
        if entry is not None:
            entries.append(entry)
    return entries


@dataclass(frozen=True, slots=True)
class ExtendedSession:
    """Resolved extended-hours price: which session it came from, and the price text."""

    label: str | None = None
    price: str = NO_DATA

    @property
    def has_data(self) -> bool:
        return self.label is not None


@dataclass(frozen=True, slots=True)
class Quote:
    """Canonical quote record produced once per identifier per refresh cycle."""

    identifier: str
    display_name: str
    last: Decimal
    previous_close: Decimal
    high: Decimal
    low: Decimal
    change: Decimal
    change_percent: Decimal
    timestamp: str
    source: str = ""
    extended_session: ExtendedSession = field(default_factory=ExtendedSession)
    pre_market_price: str = NO_DATA
    post_market_price: str = NO_DATA
    overnight_price: str = NO_DATA
    income_percent: Decimal | None = None
    income_amount: Decimal | None = None

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat' relative to the previous close."""
        if self.change > 0:
            return "up"
        elif self.change < 0:
            return "down"
        return "flat"

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission. Decimals are sent as strings."""
        return {
            "identifier": self.identifier,
            "display_name": self.display_name,
            "last": str(self.last),
            "previous_close": str(self.previous_close),
            "high": str(self.high),
            "low": str(self.low),
            "change": str(self.change),
            "change_percent": str(self.change_percent),
            "direction": self.direction,
            "extended_session": {
                "label": self.extended_session.label,
                "price": self.extended_session.price,
            },
            "pre_market_price": self.pre_market_price,
            "post_market_price": self.post_market_price,
            "overnight_price": self.overnight_price,
            "income_percent": None if self.income_percent is None else str(self.income_percent),
            "income_amount": None if self.income_amount is None else str(self.income_amount),
            "timestamp": self.timestamp,
            "source": self.source,
        }
