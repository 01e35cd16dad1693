from __future__ import annotations

"""Replay of playlist operations onto a position-indexed base sequence.

## Core model

A client submits an operation ("put song X at index K", or "delete X") against
the id order it last observed, the *base sequence*. Other clients may have
changed the live order since then. Instead of applying K to the live order
(where it may point somewhere else entirely), every operation applied after
the base, plus the new one, is replayed against the base sequence.

The replay structure is a doubly linked list that interleaves *anchors* (one
per index 0..N of the base, including one past the end) with *items* (one per
song id in the base):

    HEAD <-> @0 <-> A <-> @1 <-> B <-> @2 <-> C <-> @3

"Move A to index 2" unlinks A and splices it in directly before `@2`:

    HEAD <-> @0 <-> @1 <-> B <-> A <-> @2 <-> C <-> @3

Anchors never move, so index K keeps the meaning it had in the base sequence
no matter how many operations precede it in the replay.

## Representation

Nodes live in an arena of parallel lists and link to each other by integer
index; `NIL` marks a missing neighbour. Index 0 is always the head sentinel.

## Content

Song payloads are resolved separately from positions: the pool is seeded from
the live list, then overlaid with each non-delete operation's song in
timestamp order. Items whose id has no payload are dropped on output.
"""

import logging
from typing import Iterable, Optional, Sequence

from song_room.core.protocol.messages import Song
from song_room.core.replay.oplog import Operation


logger = logging.getLogger(__name__)

NIL = -1
HEAD = 0


class _Arena:
    def __init__(self) -> None:
        self.prev: list[int] = [NIL]
        self.next: list[int] = [NIL]
        self.song_id: list[Optional[str]] = [None]

    def new_node(self, song_id: Optional[str] = None) -> int:
        self.prev.append(NIL)
        self.next.append(NIL)
        self.song_id.append(song_id)
        return len(self.song_id) - 1

    def append_after(self, tail: int, node: int) -> int:
        self.next[tail] = node
        self.prev[node] = tail
        return node

    def unlink(self, node: int) -> None:
        before, after = self.prev[node], self.next[node]
        if before == NIL:
            return
        self.next[before] = after
        if after != NIL:
            self.prev[after] = before
        self.prev[node] = NIL
        self.next[node] = NIL

    def insert_before(self, anchor: int, node: int) -> bool:
        before = self.prev[anchor]
        if before == NIL:
            return False
        self.next[before] = node
        self.prev[node] = before
        self.next[node] = anchor
        self.prev[anchor] = node
        return True

    def walk(self) -> Iterable[str]:
        p = self.next[HEAD]
        while p != NIL:
            sid = self.song_id[p]
            if sid is not None:
                yield sid
            p = self.next[p]


def build_content_pool(current: Sequence[Song], ops: Sequence[Operation]) -> dict[str, Song]:
    pool: dict[str, Song] = {s.id: s for s in current if s is not None and s.id}
    for op in sorted(ops, key=lambda o: o.timestamp):
        if op.song is not None and op.song.id and not op.is_delete:
            pool[op.song.id] = op.song
    return pool


def replay(current: Sequence[Song], base_ids: Sequence[str], ops: Sequence[Operation]) -> list[Song]:
    """Replay `ops` in the given order against `base_ids` and return the new song order.

    `current` is the live song list; it only contributes song content, never
    positions. Operations without a song id are ignored, and an operation whose
    target index has no anchor leaves the structure untouched.
    """
    pool = build_content_pool(current, ops)

    arena = _Arena()
    anchors: dict[int, int] = {}
    items: dict[str, int] = {}

    tail = HEAD
    for i in range(len(base_ids) + 1):
        anchors[i] = tail = arena.append_after(tail, arena.new_node())
        if i < len(base_ids):
            sid = base_ids[i]
            if sid and sid not in items:
                items[sid] = tail = arena.append_after(tail, arena.new_node(sid))

    for op in ops:
        if op.song is None or not op.song.id:
            continue
        sid = op.song.id

        anchor: Optional[int] = None
        if not op.is_delete:
            anchor = anchors.get(op.to_index)
            if anchor is None or arena.prev[anchor] == NIL:
                logger.debug("replay skipped op with unresolvable target index %s", op.to_index)
                continue

        node = items.get(sid)
        if node is not None:
            arena.unlink(node)

        if anchor is None:
            items.pop(sid, None)
            continue

        if node is None:
            node = items[sid] = arena.new_node(sid)
        arena.insert_before(anchor, node)

    return [pool[sid] for sid in arena.walk() if sid in pool]
