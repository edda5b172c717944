from pydantic import BaseModel, Field
from typing import Optional


class CheckInRequest(BaseModel):
    """User check-in at a place, with the user's reported location."""
    user_id: int = Field(..., gt=0)
    place_id: int = Field(..., gt=0)
    user_lat: float = Field(..., ge=-90, le=90)
    user_lng: float = Field(..., ge=-180, le=180)


class ChatRoomCreate(BaseModel):
    """Location-anchored chat room."""
    name: str = Field(..., min_length=1, max_length=200)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    radius_meters: Optional[int] = Field(default=None, gt=0, description="Discovery radius in meters")
    description: Optional[str] = None
    place_id: Optional[int] = None
