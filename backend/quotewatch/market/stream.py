"""HTTP surface for the quote board: snapshot, SSE stream and refresh controls."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from .board import QuoteBoard
from .coordinator import RefreshCoordinator

logger = logging.getLogger(__name__)


def create_stream_router(board: QuoteBoard, coordinator: RefreshCoordinator) -> APIRouter:
    """Create the quotes router bound to one board and its coordinator.

    Factory so the board and coordinator are injected rather than global.
    """
    router = APIRouter(prefix="/api", tags=["quotes"])

    @router.get("/quotes")
    async def get_quotes() -> dict:
        """Current board snapshot in watch-list order."""
        return board.to_dict()

    @router.post("/quotes/refresh")
    async def refresh_quotes() -> dict:
        """Fetch now and keep refreshing on the configured schedule."""
        await coordinator.refresh()
        return {"running": _is_running(coordinator)}

    @router.post("/quotes/stop")
    async def stop_quotes() -> dict:
        """Stop the refresh schedule. Fetches already in flight still land."""
        await coordinator.stop()
        return {"running": _is_running(coordinator)}

    @router.post("/quotes/apply")
    async def apply_settings() -> dict:
        """Re-read settings, rebuild the board and restart refreshing."""
        await coordinator.apply()
        provider = coordinator.provider
        return {
            "running": _is_running(coordinator),
            "provider": provider.kind.value if provider else None,
            "rows": board.rows(),
        }

    @router.get("/stream/quotes")
    async def stream_quotes(request: Request) -> StreamingResponse:
        """SSE endpoint for live quote updates.

        Emits the whole board whenever its version changes:

            data: {"rows": [...], "quotes": [{...}, ...], ...}
        """
        return StreamingResponse(
            _generate_events(board, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


def _is_running(coordinator: RefreshCoordinator) -> bool:
    schedule = coordinator.schedule
    return schedule is not None and schedule.running


async def _generate_events(
    board: QuoteBoard,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted board events.

    Checks the board every ``interval`` seconds and stops when the client
    disconnects.
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    last_version = -1
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            current_version = board.version
            if current_version != last_version:
                last_version = current_version
                payload = json.dumps(board.to_dict(), ensure_ascii=False)
                yield f"data: {payload}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
