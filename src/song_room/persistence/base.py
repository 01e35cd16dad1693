from __future__ import annotations

from typing import Protocol

from song_room.core.protocol.messages import Song


class SongStore(Protocol):
    """Durable key-value store for room playlists, with per-key TTL in seconds."""

    async def get(self, table: str, key: str) -> list[Song] | None: ...

    async def set(self, table: str, key: str, songs: list[Song], ttl: float) -> None: ...
