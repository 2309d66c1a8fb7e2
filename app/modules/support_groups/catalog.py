"""Group catalog: which support groups exist, their stages, per-stage capacity and archival."""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from supabase import Client

from app.config import settings
from app.modules.support_groups.schemas import StageConfig, SupportGroup
from app.modules.support_rooms.errors import PersistenceError

logger = logging.getLogger(__name__)


def _with_default_stages(group: SupportGroup) -> SupportGroup:
    if group.stages:
        return group
    stages = [StageConfig(stage=name, position=i) for i, name in enumerate(settings.get_default_stages_list())]
    return group.model_copy(update={"stages": stages})


class GroupCatalog(ABC):
    @abstractmethod
    def find_group(self, group_id: str) -> Optional[SupportGroup]:
        raise NotImplementedError

    @abstractmethod
    def list_groups(self, include_archived: bool = False) -> List[SupportGroup]:
        raise NotImplementedError

    @abstractmethod
    def archive_group(self, group_id: str) -> Optional[SupportGroup]:
        raise NotImplementedError


class SupabaseGroupCatalog(GroupCatalog):
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _stages_for(self, group_ids: List[str]) -> Dict[str, List[StageConfig]]:
        if not group_ids:
            return {}
        result = self.supabase.table("support_group_stages")\
            .select("group_id, stage, position, capacity")\
            .in_("group_id", group_ids)\
            .order("position")\
            .execute()
        stages: Dict[str, List[StageConfig]] = {}
        for row in result.data or []:
            stages.setdefault(row["group_id"], []).append(StageConfig(**row))
        return stages

    def find_group(self, group_id: str) -> Optional[SupportGroup]:
        try:
            result = self.supabase.table("support_groups")\
                .select("*")\
                .eq("id", group_id)\
                .limit(1)\
                .execute()
            if not result.data:
                return None
            stages = self._stages_for([group_id]).get(group_id, [])
        except Exception as e:
            raise PersistenceError(f"Failed to read support group {group_id}: {e}") from e
        return _with_default_stages(SupportGroup(**result.data[0], stages=stages))

    def list_groups(self, include_archived: bool = False) -> List[SupportGroup]:
        try:
            query = self.supabase.table("support_groups").select("*")
            if not include_archived:
                query = query.eq("is_archived", False)
            result = query.order("name").execute()
            rows = result.data or []
            stages = self._stages_for([row["id"] for row in rows])
        except Exception as e:
            raise PersistenceError(f"Failed to list support groups: {e}") from e
        return [_with_default_stages(SupportGroup(**row, stages=stages.get(row["id"], []))) for row in rows]

    def archive_group(self, group_id: str) -> Optional[SupportGroup]:
        try:
            result = self.supabase.table("support_groups")\
                .update({"is_archived": True, "updated_at": datetime.now(timezone.utc).isoformat()})\
                .eq("id", group_id)\
                .execute()
        except Exception as e:
            raise PersistenceError(f"Failed to archive support group {group_id}: {e}") from e
        if not result.data:
            return None
        logger.info(f"Support group {group_id} archived")
        return self.find_group(group_id)


class InMemoryGroupCatalog(GroupCatalog):
    def __init__(self, groups: Optional[List[SupportGroup]] = None):
        self._lock = threading.Lock()
        self._groups: Dict[str, SupportGroup] = {g.id: g for g in groups or []}

    def add_group(self, group: SupportGroup) -> SupportGroup:
        with self._lock:
            self._groups[group.id] = group
        return group

    def find_group(self, group_id: str) -> Optional[SupportGroup]:
        with self._lock:
            group = self._groups.get(group_id)
        return _with_default_stages(group) if group else None

    def list_groups(self, include_archived: bool = False) -> List[SupportGroup]:
        with self._lock:
            groups = [g for g in self._groups.values() if include_archived or not g.is_archived]
        return [_with_default_stages(g) for g in sorted(groups, key=lambda g: g.name)]

    def archive_group(self, group_id: str) -> Optional[SupportGroup]:
        with self._lock:
            group = self._groups.get(group_id)
            if group is None:
                return None
            group = group.model_copy(update={"is_archived": True, "updated_at": datetime.now(timezone.utc)})
            self._groups[group_id] = group
        logger.info(f"Support group {group_id} archived")
        return _with_default_stages(group)
