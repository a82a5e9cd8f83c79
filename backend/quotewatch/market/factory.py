"""Factory for choosing and building quote providers."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .http import HttpClient
from .interface import QuoteProvider, QuoteSink
from .models import ProviderKind
from .settings import Settings

logger = logging.getLogger(__name__)


def select_provider_kind(settings: Settings) -> ProviderKind:
    """Pick the richest enabled provider.

    - QUOTEWATCH_LONGBRIDGE on → Longbridge (even without credentials; it idles)
    - else QUOTEWATCH_SINA on  → Sina
    - otherwise                 → Tencent
    """
    if settings.use_longbridge:
        return ProviderKind.LONGBRIDGE
    if settings.use_sina:
        return ProviderKind.SINA
    return ProviderKind.TENCENT


def create_provider(
    kind: ProviderKind,
    sink: QuoteSink,
    settings_source: Callable[[], Settings],
    http: HttpClient,
) -> QuoteProvider:
    """Build a fresh, idle provider of ``kind`` writing to ``sink``."""
    if kind is ProviderKind.LONGBRIDGE:
        from .longbridge import LongbridgeQuoteProvider

        logger.info("Quote provider: Longbridge OpenAPI")
        return LongbridgeQuoteProvider(sink=sink, settings_source=settings_source)
    if kind is ProviderKind.SINA:
        from .sina import SinaQuoteProvider

        logger.info("Quote provider: Sina")
        return SinaQuoteProvider(sink=sink, http=http)

    from .tencent import TencentQuoteProvider

    logger.info("Quote provider: Tencent")
    return TencentQuoteProvider(sink=sink, http=http)
