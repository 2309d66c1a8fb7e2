from fastapi import APIRouter, Depends, HTTPException
from app.modules.support_groups.catalog import GroupCatalog
from app.modules.support_groups.schemas import SupportGroup
from app.modules.support_groups.service import SupportGroupService
from app.modules.support_rooms.schemas import GroupStats
from app.modules.support_rooms.service import SupportRoomService
from app.core.dependencies import get_current_user_id, get_group_catalog, get_support_room_service, is_super_user
from typing import Dict, List

router = APIRouter(prefix="/support-groups", tags=["support-groups"])


def get_support_group_service(catalog: GroupCatalog = Depends(get_group_catalog)) -> SupportGroupService:
    return SupportGroupService(catalog)


@router.get("", response_model=List[SupportGroup])
async def list_support_groups(
    include_archived: bool = False,
    service: SupportGroupService = Depends(get_support_group_service)
):
    """List support groups"""
    return service.list_groups(include_archived=include_archived)


@router.get("/{group_id}", response_model=SupportGroup)
async def get_support_group(
    group_id: str,
    service: SupportGroupService = Depends(get_support_group_service)
):
    """Get a single support group"""
    return service.get_group(group_id)


@router.post("/{group_id}/archive", response_model=SupportGroup)
async def archive_support_group(
    group_id: str,
    current_user: Dict = Depends(get_current_user_id),
    service: SupportGroupService = Depends(get_support_group_service)
):
    """Archive a support group (super users only)"""
    if not is_super_user(current_user):
        raise HTTPException(status_code=403, detail="Only super users can archive support groups")
    return service.archive_group(group_id)


@router.get("/{group_id}/stats", response_model=GroupStats)
async def get_support_group_stats(
    group_id: str,
    current_user: Dict = Depends(get_current_user_id),
    group_service: SupportGroupService = Depends(get_support_group_service),
    room_service: SupportRoomService = Depends(get_support_room_service)
):
    """Room and member counts for a support group"""
    group_service.get_group(group_id)
    return room_service.group_stats(group_id)
