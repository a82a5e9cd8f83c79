"""FastAPI application wiring the quote board, coordinator and routes."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .market import QuoteBoard, RefreshCoordinator, Settings, create_stream_router

logger = logging.getLogger(__name__)


def create_app(
    board: QuoteBoard | None = None,
    coordinator: RefreshCoordinator | None = None,
    settings_source: Callable[[], Settings] = Settings.from_env,
) -> FastAPI:
    """Build the app. Start-up runs ``apply()``; shutdown closes the coordinator."""
    board = board if board is not None else QuoteBoard()
    if coordinator is None:
        coordinator = RefreshCoordinator(
            sink=board,
            settings_source=settings_source,
            name=settings_source().window_name,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await coordinator.apply()
        logger.info("quotewatch started")
        yield
        await coordinator.aclose()
        logger.info("quotewatch stopped")

    app = FastAPI(title="quotewatch", lifespan=lifespan)
    app.state.board = board
    app.state.coordinator = coordinator
    app.include_router(create_stream_router(board, coordinator))
    return app


def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(), host="127.0.0.1", port=8000)
