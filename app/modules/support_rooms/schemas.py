from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class JoinRoomRequest(BaseModel):
    support_group_id: str
    stage: str


class RoomResponse(BaseModel):
    id: str
    group_id: str
    stage: str
    room_number: int
    capacity: int
    member_count: int
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JoinRoomResponse(BaseModel):
    room_id: str
    room: RoomResponse
    newly_joined: bool
    already_member: bool


class LeaveRoomResponse(BaseModel):
    ok: bool = True
    room_id: str


class RoomMembersResponse(BaseModel):
    room_id: str
    count: int
    members: List[str]


class MyRoomResponse(BaseModel):
    group_id: str
    room_id: str
    stage: str
    role_in_room: str
    joined_at: datetime


class StageStats(BaseModel):
    stage: str
    room_count: int
    total_members: int


class GroupStats(BaseModel):
    group_id: str
    active_room_count: int
    total_active_members: int
    average_occupancy: float
    capacity_utilization: float
    rooms_by_stage: List[StageStats] = []
