"""Sina (hq.sinajs.cn) quote provider."""

from __future__ import annotations

import re

from .arithmetic import build_quote
from .codes import SINA_US_PREFIX
from .models import ProviderKind, Quote, WatchEntry
from .rest import RestQuoteProvider

SINA_QUOTE_URL = "http://hq.sinajs.cn/list="

# Comma-separated field positions per market: (name, last, prev_close, high, low)
_CN_LAYOUT = (0, 3, 2, 4, 5)
_HK_LAYOUT = (1, 6, 3, 4, 5)
_US_LAYOUT = (0, 1, 26, 6, 7)


def _layout_for(symbol: str) -> tuple[int, int, int, int, int]:
    if symbol.startswith(SINA_US_PREFIX):
        return _US_LAYOUT
    if symbol[:2].lower() == "hk":
        return _HK_LAYOUT
    return _CN_LAYOUT


class SinaQuoteProvider(RestQuoteProvider):
    """Polls ``hq.sinajs.cn/list=<codes>``.

    Sina rejects requests without a finance.sina.com.cn referer. US symbols
    are requested in the ``gb_<ticker>`` form.
    """

    kind = ProviderKind.SINA
    base_url = SINA_QUOTE_URL
    headers = {"Referer": "https://finance.sina.com.cn/", "Accept": "*/*"}
    encoding = "gb18030"
    line_re = re.compile(r'^var\s+hq_str_(?P<code>[A-Za-z0-9_]+)="(?P<value>.*)";?$')

    def _parse_record(self, symbol: str, value: str, entry: WatchEntry) -> Quote | None:
        if not value:
            return None
        fields = value.split(",")
        name_i, last_i, prev_i, high_i, low_i = _layout_for(symbol)
        if len(fields) <= max(name_i, last_i, prev_i, high_i, low_i):
            raise ValueError(f"expected quote fields, got {len(fields)}")
        return build_quote(
            entry=entry,
            display_name=fields[name_i] or entry.identifier,
            last=fields[last_i],
            previous_close=fields[prev_i],
            high=fields[high_i],
            low=fields[low_i],
            source=self.kind.value,
        )
