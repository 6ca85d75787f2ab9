from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import RoomDetailsResponse
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/{code}", response_model=RoomDetailsResponse)
async def get_room_details(code: str, request: Request):
    """
    Look up a live room by its code.

    Returns:
    - code: Room code
    - member_count: Connections currently in the room, host included
    - host_name: Host's display name
    - has_video: Whether the host has loaded a video
    - video_url: URL of the loaded video, if any
    """
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room details request for {code} from {client_host}")

    registry = request.app.state.registry
    room = registry.get_room(code)
    if not room:
        logger.warning(f"Room details failed: Room {code} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomDetailsResponse(
        code=room.code,
        member_count=len(room.members),
        host_name=room.host.display_name,
        has_video=bool(room.video and room.video.video_url),
        video_url=room.video.video_url if room.video else None,
    )
