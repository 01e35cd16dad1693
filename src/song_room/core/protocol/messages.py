import json
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


DELETE_INDEX = -1

DEFAULT_ROOM_ID_PATTERN = r"^[a-zA-Z0-9_-]{1,20}$"


class Song(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    url: Optional[str] = None


class SongPayload(BaseModel):
    """Song as submitted by a client; the id may still be filled in by link resolution."""

    id: str = ""
    title: str = ""
    url: Optional[str] = None


class SongOperationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id_array_hash: str = Field(alias="idArrayHash", min_length=1)
    song: SongPayload
    to_index: int = Field(alias="toIndex", ge=DELETE_INDEX)


class SongListUnchanged(BaseModel):
    changed: Literal[False] = False
    hash: str


class SongListSnapshot(BaseModel):
    changed: Literal[True] = True
    list: list[Song]
    hash: str


class OperationApplied(BaseModel):
    success: Literal[True] = True
    hash: str
    song: Song


class OperationRejected(BaseModel):
    success: Literal[False] = False
    code: Optional[str] = None
    msg: Optional[str] = None


def parse_operation_request(raw_body: bytes | str) -> SongOperationRequest:
    data: Any = json.loads(raw_body)
    if not isinstance(data, dict):
        raise ValueError("operation body must be a JSON object")
    return SongOperationRequest.model_validate(data)


def is_valid_room_id(room_id: Optional[str], pattern: str = DEFAULT_ROOM_ID_PATTERN) -> bool:
    if not room_id:
        return False
    return re.fullmatch(pattern, room_id) is not None
