from fastapi import APIRouter, Depends, HTTPException

from logging_config import get_logger
from registry import RoomRegistry
from routers.dependencies import get_registry
from schemas.rooms import RoomSummary

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("", response_model=list[RoomSummary])
def list_rooms(registry: RoomRegistry = Depends(get_registry)):
    """Same summaries a websocket client gets from `get_rooms`: no passwords, no rosters."""
    return list(registry.list_rooms())


@rooms_router.get("/{room_id}", response_model=RoomSummary)
def get_room_details(room_id: str, registry: RoomRegistry = Depends(get_registry)):
    summary = registry.room_summary(room_id)
    if summary is not None:
        return summary
    logger.info(f"Room details failed: Room {room_id} not found")
    raise HTTPException(status_code=404, detail="Room not found")
