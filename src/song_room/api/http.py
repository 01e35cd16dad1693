import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from song_room.core.protocol.messages import OperationApplied, OperationRejected, parse_operation_request
from song_room.services.room_service import (
    InvalidOperationError,
    InvalidRoomIdError,
    RoomService,
    StaleBaseError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/songRoom/api")

_INVALID_ROOM = OperationRejected(msg="Invalid Room ID")
_INVALID_OPERATION = OperationRejected(code="INVALID", msg="Invalid Operation")
_REJECT = OperationRejected(code="REJECT")
_UNAVAILABLE = OperationRejected(code="UNAVAILABLE")


def get_room_service(request: Request) -> RoomService:
    return request.app.state.room_service


def _body(model: Any) -> dict:
    return model.model_dump(exclude_none=True)


@router.get("/songListInfo")
async def song_list_info(
    room_id: Optional[str] = Query(default=None, alias="roomId"),
    last_hash: Optional[str] = Query(default=None, alias="lastHash"),
    service: RoomService = Depends(get_room_service),
) -> Any:
    try:
        result = await service.get_list_info(room_id, last_hash)
    except InvalidRoomIdError:
        return _body(_INVALID_ROOM)
    except Exception:
        logger.exception("song list load failed", extra={"room_id": room_id or "-"})
        return JSONResponse(status_code=503, content=_body(_UNAVAILABLE))
    return result.model_dump()


@router.post("/songOperation")
async def song_operation(
    request: Request,
    room_id: Optional[str] = Query(default=None, alias="roomId"),
    service: RoomService = Depends(get_room_service),
) -> Any:
    raw = await request.body()
    try:
        service.validate_room_id(room_id)
        op_request = parse_operation_request(raw)
    except InvalidRoomIdError:
        return _body(_INVALID_ROOM)
    except Exception:
        logger.warning("invalid operation body", extra={"room_id": room_id or "-"})
        return _body(_INVALID_OPERATION)

    try:
        new_hash, song = await service.apply_operation(room_id, op_request)
    except InvalidRoomIdError:
        return _body(_INVALID_ROOM)
    except InvalidOperationError:
        return _body(_INVALID_OPERATION)
    except StaleBaseError:
        return _body(_REJECT)
    except Exception:
        logger.exception("song operation failed", extra={"room_id": room_id or "-"})
        return JSONResponse(status_code=503, content=_body(_UNAVAILABLE))

    return OperationApplied(hash=new_hash, song=song).model_dump()
