from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterator, Optional

from song_room.core.protocol.messages import DELETE_INDEX, Song


@dataclass(frozen=True)
class Operation:
    song: Optional[Song]
    to_index: int
    timestamp: float

    @property
    def is_delete(self) -> bool:
        return self.to_index == DELETE_INDEX


@dataclass(frozen=True)
class OpLogEntry:
    id_sequence: tuple[str, ...]
    hash: str
    operation: Operation


class OpLog:
    """Bounded, append-only history of applied operations for one room.

    Each entry records the id order and fingerprint that resulted from its
    operation, so a client-supplied fingerprint can be resolved back to the
    id order the client was looking at.
    """

    def __init__(self, max_entries: int = 50) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: deque[OpLogEntry] = deque(maxlen=max_entries)

    @classmethod
    def bootstrap(
        cls, id_sequence: tuple[str, ...], hash: str, timestamp: float, max_entries: int = 50
    ) -> "OpLog":
        log = cls(max_entries=max_entries)
        log.append(
            OpLogEntry(
                id_sequence=id_sequence,
                hash=hash,
                operation=Operation(song=None, to_index=DELETE_INDEX, timestamp=timestamp),
            )
        )
        return log

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[OpLogEntry]:
        return iter(self._entries)

    def append(self, entry: OpLogEntry) -> None:
        # deque(maxlen) drops from the front once full
        self._entries.append(entry)

    def find_base(self, hash: str) -> Optional[int]:
        """Index of the most recent entry whose fingerprint equals `hash`."""
        for i in range(len(self._entries) - 1, -1, -1):
            if self._entries[i].hash == hash:
                return i
        return None

    def entry(self, index: int) -> OpLogEntry:
        return self._entries[index]

    def operations_after(self, index: int) -> list[Operation]:
        return [e.operation for i, e in enumerate(self._entries) if i > index]

    def prune_older_than(self, cutoff: float) -> int:
        """Drop entries stamped at or before `cutoff`; return how many remain."""
        kept = [e for e in self._entries if e.operation.timestamp > cutoff]
        self._entries.clear()
        self._entries.extend(kept)
        return len(self._entries)
