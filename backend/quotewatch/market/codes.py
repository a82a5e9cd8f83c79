"""Translation between watch-list identifiers and provider symbols.

Identifiers carry a two-letter market prefix: ``hk00700``, ``usAAPL``,
``sh600519``, ``sz000001``.

    Longbridge:  hk00700 <-> 700.HK     usAAPL <-> AAPL.US
                 sh600519 <-> 600519.SH sz000001 <-> 000001.SZ
    Sina:        usAAPL  <-> gb_aapl    (other markets unchanged)
    Tencent:     unchanged
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .errors import UnsupportedCodeFormatError
from .models import ProviderKind, WatchEntry

logger = logging.getLogger(__name__)

_MARKET_SUFFIXES = {"hk": "HK", "us": "US", "sh": "SH", "sz": "SZ"}
_SUFFIX_PREFIXES = {suffix: prefix for prefix, suffix in _MARKET_SUFFIXES.items()}

HK_CODE_WIDTH = 5
SINA_US_PREFIX = "gb_"


def needs_translation(kind: ProviderKind) -> bool:
    """Tencent accepts identifiers natively; the other providers do not."""
    return kind is not ProviderKind.TENCENT


def _split_identifier(identifier: str, kind: ProviderKind) -> tuple[str, str]:
    if identifier is None or len(identifier) < 3:
        raise UnsupportedCodeFormatError(
            f"identifier too short: {identifier!r}",
            {"identifier": identifier, "provider": kind.value},
        )
    prefix = identifier[:2].lower()
    if prefix not in _MARKET_SUFFIXES:
        raise UnsupportedCodeFormatError(
            f"unrecognized market prefix: {identifier!r}",
            {"identifier": identifier, "provider": kind.value},
        )
    return prefix, identifier[2:]


def _to_longbridge(identifier: str) -> str:
    prefix, code = _split_identifier(identifier, ProviderKind.LONGBRIDGE)
    if prefix == "hk":
        code = code.lstrip("0") or "0"
    elif prefix == "us":
        code = code.upper()
    return f"{code}.{_MARKET_SUFFIXES[prefix]}"


def _from_longbridge(symbol: str) -> str:
    if not symbol or "." not in symbol:
        return symbol
    code, _, market = symbol.rpartition(".")
    market = market.upper()
    if not code:
        return symbol
    prefix = _SUFFIX_PREFIXES.get(market)
    if prefix is None:
        return symbol
    if prefix == "hk":
        code = code.zfill(HK_CODE_WIDTH)
    return prefix + code


def _to_sina(identifier: str) -> str:
    if identifier[:2].lower() == "us" and len(identifier) > 2:
        return SINA_US_PREFIX + identifier[2:].lower()
    return identifier


def _from_sina(symbol: str) -> str:
    if symbol.startswith(SINA_US_PREFIX):
        return "us" + symbol[len(SINA_US_PREFIX):].upper()
    return symbol


def to_provider_symbol(identifier: str, kind: ProviderKind) -> str:
    """Translate an identifier into the symbol ``kind`` expects.

    Raises UnsupportedCodeFormatError for Longbridge when the identifier is
    shorter than 3 characters or has an unknown market prefix.
    """
    if kind is ProviderKind.LONGBRIDGE:
        return _to_longbridge(identifier)
    if kind is ProviderKind.SINA:
        return _to_sina(identifier)
    return identifier


def from_provider_symbol(symbol: str, kind: ProviderKind) -> str:
    """Inverse of :func:`to_provider_symbol`. Unknown formats pass through."""
    if kind is ProviderKind.LONGBRIDGE:
        return _from_longbridge(symbol)
    if kind is ProviderKind.SINA:
        return _from_sina(symbol)
    return symbol


def build_symbol_map(entries: Iterable[WatchEntry], kind: ProviderKind) -> dict[str, WatchEntry]:
    """Map provider symbol -> watch entry, skipping identifiers ``kind`` cannot express."""
    symbol_map: dict[str, WatchEntry] = {}
    for entry in entries:
        try:
            symbol = to_provider_symbol(entry.identifier, kind)
        except UnsupportedCodeFormatError as e:
            logger.warning("Skipping %s: %s", entry.identifier, e)
            continue
        symbol_map[symbol] = entry
    return symbol_map
