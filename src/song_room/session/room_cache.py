from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, Optional

from song_room.core.protocol.messages import Song
from song_room.core.replay.fingerprint import fingerprint
from song_room.core.replay.oplog import OpLog
from song_room.persistence.base import SongStore


logger = logging.getLogger(__name__)


@dataclass
class RoomSession:
    songs: list[Song]
    hash: str
    oplog: OpLog


@dataclass(eq=False)
class _RoomState:
    lock: asyncio.Lock
    session: Optional[RoomSession] = None
    evicted: bool = False


class RoomSessionCache:
    """In-memory (playlist, op log) per room, loaded lazily from a `SongStore`.

    Every access to a room's session goes through `session()`, which holds
    that room's lock for the duration of the block. Rooms never share a lock.
    """

    def __init__(
        self,
        store: SongStore,
        table: str = "ktv_room",
        store_ttl: float = 24 * 60 * 60,
        oplog_max_entries: int = 50,
        oplog_max_age: float = 5 * 60,
        include_url: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._table = table
        self._store_ttl = store_ttl
        self._oplog_max_entries = oplog_max_entries
        self._oplog_max_age = oplog_max_age
        self._include_url = include_url
        self._clock = clock
        self._rooms: Dict[str, _RoomState] = {}
        self._global_lock = asyncio.Lock()

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    @property
    def include_url(self) -> bool:
        return self._include_url

    def cached_room_ids(self) -> list[str]:
        return list(self._rooms)

    @asynccontextmanager
    async def session(self, room_id: str) -> AsyncIterator[RoomSession]:
        while True:
            state = await self._get_or_create_state(room_id)
            async with state.lock:
                # evicted by the sweeper while we were waiting
                if state.evicted:
                    continue
                if state.session is None:
                    state.session = await self._load(room_id)
                yield state.session
                return

    async def save(self, room_id: str, songs: list[Song]) -> None:
        await self._store.set(self._table, room_id, songs, self._store_ttl)

    async def sweep(self, now: Optional[float] = None) -> list[str]:
        """Drop expired log entries and evict rooms whose log is left empty."""
        cutoff = (self._clock() if now is None else now) - self._oplog_max_age
        async with self._global_lock:
            states = list(self._rooms.items())

        evicted: list[str] = []
        for room_id, state in states:
            async with state.lock:
                if state.evicted:
                    continue
                if state.session is not None and state.session.oplog.prune_older_than(cutoff):
                    continue
                state.evicted = True
                state.session = None
                async with self._global_lock:
                    if self._rooms.get(room_id) is state:
                        del self._rooms[room_id]
            evicted.append(room_id)
            logger.info("room evicted", extra={"room_id": room_id})
        return evicted

    async def run_sweeper(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("room sweep failed")

    async def _get_or_create_state(self, room_id: str) -> _RoomState:
        async with self._global_lock:
            state = self._rooms.get(room_id)
            if state is not None and not state.evicted:
                return state
            state = _RoomState(lock=asyncio.Lock())
            self._rooms[room_id] = state
            return state

    async def _load(self, room_id: str) -> RoomSession:
        songs = await self._store.get(self._table, room_id) or []
        current_hash = fingerprint(songs, include_url=self._include_url)
        oplog = OpLog.bootstrap(
            id_sequence=tuple(s.id for s in songs),
            hash=current_hash,
            timestamp=self._clock(),
            max_entries=self._oplog_max_entries,
        )
        logger.info(
            "room loaded from store (%d songs)",
            len(songs),
            extra={"room_id": room_id, "hash": current_hash},
        )
        return RoomSession(songs=list(songs), hash=current_hash, oplog=oplog)
