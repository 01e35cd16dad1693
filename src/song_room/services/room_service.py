from __future__ import annotations

import logging
from typing import Optional

from song_room.config import Settings
from song_room.core.protocol.messages import (
    DEFAULT_ROOM_ID_PATTERN,
    Song,
    SongListSnapshot,
    SongListUnchanged,
    SongOperationRequest,
    is_valid_room_id,
)
from song_room.core.replay.engine import replay
from song_room.core.replay.fingerprint import fingerprint
from song_room.core.replay.oplog import OpLogEntry, Operation
from song_room.persistence.base import SongStore
from song_room.persistence.memory import InMemorySongStore
from song_room.services.short_link import ShortLinkResolver
from song_room.session.room_cache import RoomSessionCache


logger = logging.getLogger(__name__)


class RoomServiceError(Exception):
    pass


class InvalidRoomIdError(RoomServiceError):
    pass


class InvalidOperationError(RoomServiceError):
    pass


class StaleBaseError(RoomServiceError):
    """The claimed base fingerprint is unknown; the client has to refetch the list."""


class RoomService:
    def __init__(
        self,
        cache: RoomSessionCache,
        resolver: Optional[ShortLinkResolver] = None,
        room_id_pattern: str = DEFAULT_ROOM_ID_PATTERN,
    ) -> None:
        self._cache = cache
        self._resolver = resolver
        self._room_id_pattern = room_id_pattern

    @classmethod
    def from_settings(cls, settings: Settings, store: Optional[SongStore] = None) -> "RoomService":
        cache = RoomSessionCache(
            store=store if store is not None else InMemorySongStore(),
            table=settings.store_table,
            store_ttl=settings.store_ttl_seconds,
            oplog_max_entries=settings.oplog_max_entries,
            oplog_max_age=settings.oplog_max_age_seconds,
            include_url=settings.hash_include_url,
        )
        resolver = ShortLinkResolver(
            domains=settings.short_link_domains,
            timeout=settings.short_link_timeout_seconds,
            user_agent=settings.short_link_user_agent,
        )
        return cls(cache=cache, resolver=resolver, room_id_pattern=settings.room_id_pattern)

    @property
    def cache(self) -> RoomSessionCache:
        return self._cache

    async def aclose(self) -> None:
        if self._resolver is not None:
            await self._resolver.aclose()

    async def get_list_info(
        self, room_id: Optional[str], last_hash: Optional[str] = None
    ) -> SongListUnchanged | SongListSnapshot:
        room_id = self.validate_room_id(room_id)
        async with self._cache.session(room_id) as room:
            current_hash = room.hash
            songs = list(room.songs)

        if last_hash and last_hash == current_hash:
            return SongListUnchanged(hash=current_hash)
        return SongListSnapshot(list=songs, hash=current_hash)

    async def apply_operation(self, room_id: Optional[str], request: SongOperationRequest) -> tuple[str, Song]:
        """Apply one client operation on top of the base it claims to have seen.

        Returns the new fingerprint and the song as stored (after link expansion).
        """
        room_id = self.validate_room_id(room_id)

        payload = request.song
        if self._resolver is not None:
            payload = await self._resolver.expand(payload)
        if not payload.id:
            raise InvalidOperationError("song id is required")
        song = Song(id=payload.id, title=payload.title, url=payload.url)

        async with self._cache.session(room_id) as room:
            base_index = room.oplog.find_base(request.id_array_hash)
            if base_index is None:
                logger.warning(
                    "operation rejected: unknown base",
                    extra={"room_id": room_id, "hash": request.id_array_hash},
                )
                raise StaleBaseError(request.id_array_hash)

            op = Operation(song=song, to_index=request.to_index, timestamp=self._cache.clock())
            try:
                base = room.oplog.entry(base_index)
                ops = room.oplog.operations_after(base_index) + [op]
                final_songs = replay(room.songs, base.id_sequence, ops)
                final_hash = fingerprint(final_songs, include_url=self._cache.include_url)
            except Exception as e:
                logger.exception("operation replay failed", extra={"room_id": room_id})
                raise StaleBaseError(request.id_array_hash) from e

            room.oplog.append(
                OpLogEntry(id_sequence=tuple(s.id for s in final_songs), hash=final_hash, operation=op)
            )
            room.songs = final_songs
            room.hash = final_hash

            try:
                await self._cache.save(room_id, final_songs)
            except Exception:
                # best effort: the in-memory state stays authoritative
                logger.exception("durable write failed", extra={"room_id": room_id, "hash": final_hash})

            logger.info("operation applied", extra={"room_id": room_id, "hash": final_hash})
            return final_hash, song

    def validate_room_id(self, room_id: Optional[str]) -> str:
        if room_id is None or not is_valid_room_id(room_id, self._room_id_pattern):
            raise InvalidRoomIdError(room_id)
        return room_id
