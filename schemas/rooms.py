from pydantic import BaseModel
from typing import Optional


class RoomDetailsResponse(BaseModel):
    code: str
    member_count: int
    host_name: str
    has_video: bool
    video_url: Optional[str] = None
