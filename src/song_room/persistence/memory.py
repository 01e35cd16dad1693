from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from song_room.core.protocol.messages import Song
from song_room.persistence.base import SongStore


@dataclass
class _Record:
    songs: List[Song]
    expires_at: float


class InMemorySongStore(SongStore):
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._records: Dict[Tuple[str, str], _Record] = {}

    async def get(self, table: str, key: str) -> list[Song] | None:
        with self._lock:
            rec = self._records.get((table, key))
            if rec is None:
                return None
            if rec.expires_at <= self._clock():
                del self._records[(table, key)]
                return None
            return list(rec.songs)

    async def set(self, table: str, key: str, songs: list[Song], ttl: float) -> None:
        with self._lock:
            now = self._clock()
            for expired in [k for k, rec in self._records.items() if rec.expires_at <= now]:
                del self._records[expired]
            self._records[(table, key)] = _Record(songs=list(songs), expires_at=now + ttl)
