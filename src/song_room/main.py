import asyncio
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from song_room.api.http import router as song_room_router
from song_room.config import Settings, get_settings
from song_room.logging_config import configure_logging
from song_room.services.room_service import RoomService


def create_app(settings: Optional[Settings] = None, service: Optional[RoomService] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    room_service = service or RoomService.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = asyncio.create_task(room_service.cache.run_sweeper(settings.sweep_interval_seconds))
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
            await room_service.aclose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.room_service = room_service

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "rooms": len(room_service.cache.cached_room_ids())}

    app.include_router(song_room_router)
    return app


app = create_app()
