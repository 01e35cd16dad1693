from __future__ import annotations

import hashlib
from typing import Sequence

from song_room.core.protocol.messages import Song


EMPTY_LIST_HASH = "EMPTY_LIST_HASH"


def fingerprint(songs: Sequence[Song] | None, include_url: bool = True) -> str:
    """Return the version token for an ordered song list.

    Only `id`, `title` and (optionally) `url` of each song, in list order,
    contribute. The empty list maps to `EMPTY_LIST_HASH`, which is never a
    valid hex digest.
    """
    if not songs:
        return EMPTY_LIST_HASH
    if include_url:
        parts = [f"{s.id}:{s.title}:{s.url or ''}" for s in songs]
    else:
        parts = [f"{s.id}:{s.title}" for s in songs]
    return hashlib.md5("|".join(parts).encode("utf-8")).hexdigest()
