"""Exact-decimal change and position income calculations.

Rounding rules (all ROUND_HALF_UP):

    change          = last - previous_close                    -> 3 dp
    change_percent  = round((last - prev) / prev, 4) * 100     -> 2 dp
    income_percent  = round((last - cost) / cost, 5) * 100     -> 3 dp
    income_amount   = (last - cost) * position_size            -> 2 dp

change_percent is 0 when previous_close is 0. Income figures are only
produced for a positive cost basis, and income_amount additionally needs a
position size.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .errors import MalformedNumericFieldError
from .models import NO_DATA, TIMESTAMP_FORMAT, ExtendedSession, Quote, WatchEntry

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
ZERO = Decimal("0")

_DP2 = Decimal("0.01")
_DP3 = Decimal("0.001")
_DP4 = Decimal("0.0001")
_DP5 = Decimal("0.00001")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """Parse a str/int/float/Decimal into a Decimal.

    Floats go through ``str()`` so the decimal reflects the printed value,
    not the binary approximation.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        if value is None or isinstance(value, bool):
            raise MalformedNumericFieldError(f"{field} is not a number: {value!r}", {"field": field, "value": value})
        text = str(value).strip()
        try:
            result = Decimal(text)
        except InvalidOperation as e:
            raise MalformedNumericFieldError(
                f"{field} is not a number: {value!r}", {"field": field, "value": value}
            ) from e
    if not result.is_finite():
        raise MalformedNumericFieldError(f"{field} is not finite: {value!r}", {"field": field, "value": value})
    return result


def compute_change(last: Decimal, previous_close: Decimal) -> tuple[Decimal, Decimal]:
    """Return (change, change_percent) for a last price against the previous close."""
    diff = last - previous_close
    change = diff.quantize(_DP3, rounding=ROUND_HALF_UP)
    if previous_close == 0:
        return change, ZERO
    ratio = (diff / previous_close).quantize(_DP4, rounding=ROUND_HALF_UP)
    change_percent = (ratio * HUNDRED).quantize(_DP2, rounding=ROUND_HALF_UP)
    return change, change_percent


def compute_income(
    last: Decimal,
    cost_basis: str | None,
    position_size: str | None,
) -> tuple[Decimal | None, Decimal | None]:
    """Return (income_percent, income_amount); either may be None.

    Missing, placeholder or malformed inputs leave the affected figures out
    instead of failing the whole quote.
    """
    if not cost_basis or cost_basis == NO_DATA:
        return None, None
    try:
        cost = to_decimal(cost_basis, "cost_basis")
    except MalformedNumericFieldError as e:
        logger.warning("Ignoring cost basis: %s", e)
        return None, None
    if cost <= 0:
        return None, None

    diff = last - cost
    ratio = (diff / cost).quantize(_DP5, rounding=ROUND_HALF_UP)
    income_percent = (ratio * HUNDRED).quantize(_DP3, rounding=ROUND_HALF_UP)

    if not position_size or position_size == NO_DATA:
        return income_percent, None
    try:
        size = to_decimal(position_size, "position_size")
    except MalformedNumericFieldError as e:
        logger.warning("Ignoring position size: %s", e)
        return income_percent, None
    income_amount = (diff * size).quantize(_DP2, rounding=ROUND_HALF_UP)
    return income_percent, income_amount


def fetch_timestamp(now: datetime | None = None) -> str:
    """Local fetch time in the fixed ``YYYYmmddHHMMSS`` form."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def build_quote(
    *,
    entry: WatchEntry,
    display_name: str,
    last: Any,
    previous_close: Any,
    high: Any = None,
    low: Any = None,
    source: str = "",
    extended_session: ExtendedSession | None = None,
    pre_market_price: str = NO_DATA,
    post_market_price: str = NO_DATA,
    overnight_price: str = NO_DATA,
    now: datetime | None = None,
) -> Quote:
    """Assemble a Quote from raw upstream fields and the watch entry.

    A malformed last price or previous close raises MalformedNumericFieldError
    (the caller skips that record). Missing high/low fall back to last.
    """
    last_dec = to_decimal(last, "last")
    prev_dec = to_decimal(previous_close, "previous_close")
    high_dec = last_dec if high in (None, "") else to_decimal(high, "high")
    low_dec = last_dec if low in (None, "") else to_decimal(low, "low")

    change, change_percent = compute_change(last_dec, prev_dec)
    income_percent, income_amount = compute_income(last_dec, entry.cost_basis, entry.position_size)

    return Quote(
        identifier=entry.identifier,
        display_name=display_name,
        last=last_dec,
        previous_close=prev_dec,
        high=high_dec,
        low=low_dec,
        change=change,
        change_percent=change_percent,
        timestamp=fetch_timestamp(now),
        source=source,
        extended_session=extended_session or ExtendedSession(),
        pre_market_price=pre_market_price,
        post_market_price=post_market_price,
        overnight_price=overnight_price,
        income_percent=income_percent,
        income_amount=income_amount,
    )
