"""Tencent (qt.gtimg.cn) quote provider, the default source."""

from __future__ import annotations

import re

from .arithmetic import build_quote
from .models import ProviderKind, Quote, WatchEntry
from .rest import RestQuoteProvider

TENCENT_QUOTE_URL = "http://qt.gtimg.cn/q="

# "~"-separated field positions
_NAME = 1
_LAST = 3
_PREV_CLOSE = 4
_HIGH = 33
_LOW = 34


class TencentQuoteProvider(RestQuoteProvider):
    """Polls ``qt.gtimg.cn/q=<codes>``. Identifiers are used as-is."""

    kind = ProviderKind.TENCENT
    base_url = TENCENT_QUOTE_URL
    headers = {"Referer": "https://gu.qq.com/", "Accept": "*/*"}
    encoding = "gbk"
    line_re = re.compile(r'^v_(?P<code>[A-Za-z0-9_.]+)="(?P<value>.*)";?$')

    def _parse_record(self, symbol: str, value: str, entry: WatchEntry) -> Quote | None:
        if not value:
            return None
        fields = value.split("~")
        if len(fields) <= _PREV_CLOSE:
            raise ValueError(f"expected quote fields, got {len(fields)}")
        high = fields[_HIGH] if len(fields) > _HIGH else None
        low = fields[_LOW] if len(fields) > _LOW else None
        return build_quote(
            entry=entry,
            display_name=fields[_NAME] or entry.identifier,
            last=fields[_LAST],
            previous_close=fields[_PREV_CLOSE],
            high=high,
            low=low,
            source=self.kind.value,
        )
