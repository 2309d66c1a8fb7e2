from fastapi import APIRouter, Depends
from app.modules.support_rooms.schemas import (
    JoinRoomRequest, JoinRoomResponse, LeaveRoomResponse, MyRoomResponse,
    RoomMembersResponse, RoomResponse
)
from app.modules.support_rooms.service import SupportRoomService
from app.core.dependencies import get_current_user_id, get_support_room_service
from typing import Dict, List

router = APIRouter(prefix="/support-rooms", tags=["support-rooms"])


# join/leave are plain `def` so they run in the threadpool and block only on their own room locks
@router.post("/join", response_model=JoinRoomResponse)
def join_room(
    join_data: JoinRoomRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: SupportRoomService = Depends(get_support_room_service)
):
    """Join a room for the given support group and stage"""
    return service.join(join_data.support_group_id, join_data.stage, user_data["id"])


@router.post("/{room_id}/leave", response_model=LeaveRoomResponse)
def leave_room(
    room_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: SupportRoomService = Depends(get_support_room_service)
):
    """Leave a support room"""
    return service.leave(room_id, user_data["id"])


@router.get("/my-rooms", response_model=List[MyRoomResponse])
async def my_rooms(
    user_data: Dict = Depends(get_current_user_id),
    service: SupportRoomService = Depends(get_support_room_service)
):
    """List the current user's active rooms"""
    return service.my_rooms(user_data["id"])


@router.get("/{room_id}/members", response_model=RoomMembersResponse)
async def list_room_members(
    room_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: SupportRoomService = Depends(get_support_room_service)
):
    """List active members of a room"""
    return service.list_members(room_id)


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: SupportRoomService = Depends(get_support_room_service)
):
    """Get room by ID"""
    return service.get_room(room_id)
