"""Refresh coordinator: owns the active provider and its refresh schedule."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from .errors import CronExpressionError
from .factory import create_provider, select_provider_kind
from .http import HttpClient
from .interface import QuoteProvider, QuoteSink
from .models import ProviderKind, WatchEntry
from .scheduler import ScheduleManager
from .settings import DEFAULT_CRON_EXPRESSION, DEFAULT_WINDOW_NAME, Settings

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderKind, QuoteSink, Callable[[], Settings], HttpClient], QuoteProvider]


@dataclass(frozen=True)
class RefreshPayload:
    """What a scheduled tick needs: the provider and the watch-list captured at registration."""

    provider: QuoteProvider
    entries: tuple[WatchEntry, ...]


async def refresh_job(payload: RefreshPayload) -> None:
    """Body of every scheduled tick. Does not re-read configuration."""
    await payload.provider.handle(payload.entries)


@dataclass
class CoordinatorState:
    """Mutable state owned by one coordinator (one display surface)."""

    settings: Settings | None = None
    provider: QuoteProvider | None = None
    entries: list[WatchEntry] = field(default_factory=list)


class RefreshCoordinator:
    """Drives one display surface: picks the provider, runs cycles, keeps the schedule.

    Lifecycle:
        coordinator = RefreshCoordinator(sink=board)
        await coordinator.apply()     # on start-up and after every settings change
        await coordinator.refresh()   # resume polling
        await coordinator.stop()      # pause polling
        await coordinator.aclose()    # shutting down
    """

    def __init__(
        self,
        sink: QuoteSink,
        settings_source: Callable[[], Settings] = Settings.from_env,
        name: str = DEFAULT_WINDOW_NAME,
        http: HttpClient | None = None,
        provider_factory: ProviderFactory = create_provider,
    ) -> None:
        self.name = name
        self.state = CoordinatorState()
        self._sink = sink
        self._settings_source = settings_source
        self._provider_factory = provider_factory
        self._http = http
        self._owns_http = http is None
        self._inflight: set[asyncio.Task] = set()

    @property
    def provider(self) -> QuoteProvider | None:
        return self.state.provider

    @property
    def schedule(self) -> ScheduleManager | None:
        return ScheduleManager.find(self.name)

    async def apply(self) -> None:
        """Re-read settings, pick the provider, reset the sink and start refreshing."""
        settings = self._load_settings()
        await self._select_provider(settings)
        self._sink.set_striped_rows_enabled(settings.table_striped)
        self._sink.clear()
        self._sink.setup([entry.identifier for entry in settings.watch_list])
        await self.refresh()

    async def refresh(self) -> None:
        """Fetch once now and (re)arm the recurring schedule; stop if nothing is watched."""
        settings = self._load_settings()
        provider = self.state.provider
        if provider is None:
            provider = await self._select_provider(settings)
        self._sink.set_color_mode_enabled(settings.colorful)

        entries = tuple(settings.watch_list)
        self.state.entries = list(entries)
        if not entries:
            await self.stop()
            return

        self._spawn(provider, entries)
        payload = RefreshPayload(provider=provider, entries=entries)
        manager = ScheduleManager.get_instance(self.name)
        cron_expression = settings.cron_expression or DEFAULT_CRON_EXPRESSION
        try:
            manager.run_job(refresh_job, cron_expression, payload)
        except CronExpressionError as e:
            logger.error("%s; falling back to %s", e, DEFAULT_CRON_EXPRESSION)
            manager.run_job(refresh_job, DEFAULT_CRON_EXPRESSION, payload)

    async def stop(self) -> None:
        """Cancel the schedule and release provider resources. In-flight fetches still finish."""
        ScheduleManager.get_instance(self.name).stop_job()
        if self.state.provider is not None:
            await self.state.provider.stop_handle()

    async def aclose(self) -> None:
        """Stop, wait for in-flight fetches and close the HTTP pool we created."""
        await self.stop()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        if self._owns_http and self._http is not None:
            self._http.close()
            self._http = None

    # --- Internal ---

    def _load_settings(self) -> Settings:
        settings = self._settings_source()
        self.state.settings = settings
        return settings

    def _http_client(self, settings: Settings) -> HttpClient:
        if self._http is None:
            self._http = HttpClient(proxy=settings.proxy)
        elif self._owns_http and self._http.proxy != settings.proxy:
            self._http.rebuild(settings.proxy)
        return self._http

    async def _select_provider(self, settings: Settings) -> QuoteProvider:
        """Keep the current provider if its kind is still selected, otherwise replace it."""
        kind = select_provider_kind(settings)
        http = self._http_client(settings)
        current = self.state.provider
        if current is not None and current.kind is kind:
            return current

        if current is not None:
            await current.stop_handle()
        provider = self._provider_factory(kind, self._sink, self._settings_source, http)
        self.state.provider = provider
        return provider

    def _spawn(self, provider: QuoteProvider, entries: Sequence[WatchEntry]) -> None:
        task = asyncio.create_task(self._run_handle(provider, entries), name=f"{self.name}-refresh")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_handle(self, provider: QuoteProvider, entries: Sequence[WatchEntry]) -> None:
        try:
            await provider.handle(entries)
        except Exception as e:
            logger.error("Refreshing quotes failed: %s", e)
