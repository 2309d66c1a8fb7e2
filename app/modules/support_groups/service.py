import logging
from typing import List
from fastapi import HTTPException
from app.modules.support_groups.catalog import GroupCatalog
from app.modules.support_groups.schemas import SupportGroup
from app.modules.support_rooms.errors import PersistenceError

logger = logging.getLogger(__name__)


class SupportGroupService:
    def __init__(self, catalog: GroupCatalog):
        self.catalog = catalog

    def list_groups(self, include_archived: bool = False) -> List[SupportGroup]:
        """List support groups (archived ones only on request)"""
        try:
            return self.catalog.list_groups(include_archived=include_archived)
        except PersistenceError as e:
            logger.error(f"Error listing support groups: {e}")
            raise HTTPException(status_code=503, detail="Support groups are temporarily unavailable")

    def get_group(self, group_id: str) -> SupportGroup:
        """Get support group by ID"""
        try:
            group = self.catalog.find_group(group_id)
        except PersistenceError as e:
            logger.error(f"Error reading support group {group_id}: {e}")
            raise HTTPException(status_code=503, detail="Support groups are temporarily unavailable")
        if group is None:
            raise HTTPException(status_code=404, detail="Support group not found")
        return group

    def archive_group(self, group_id: str) -> SupportGroup:
        """Archive a group: no new joins, existing members stay until they leave"""
        try:
            group = self.catalog.archive_group(group_id)
        except PersistenceError as e:
            logger.error(f"Error archiving support group {group_id}: {e}")
            raise HTTPException(status_code=503, detail="Failed to archive support group")
        if group is None:
            raise HTTPException(status_code=404, detail="Support group not found")
        return group
