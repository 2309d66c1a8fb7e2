from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class StageConfig(BaseModel):
    stage: str
    position: int = 0
    capacity: Optional[int] = None


class SupportGroup(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    stages: List[StageConfig] = []
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def stage_names(self) -> List[str]:
        return [s.stage for s in sorted(self.stages, key=lambda s: s.position)]

    def offers_stage(self, stage: str) -> bool:
        return any(s.stage == stage for s in self.stages)

    def capacity_for(self, stage: str, default: int) -> int:
        for s in self.stages:
            if s.stage == stage and s.capacity:
                return s.capacity
        return default
