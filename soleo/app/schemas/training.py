"""API schemas for muscle group, exercise and routine endpoints."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..training import RoutineStatus


class ExerciseUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    series: Optional[int] = Field(default=None, ge=1, le=50)
    repetitions: Optional[int] = Field(default=None, ge=1, le=500)
    video_url: Optional[str] = Field(alias="videoUrl", default=None)
    image_url: Optional[str] = Field(alias="imageUrl", default=None)
    muscle_group_id: Optional[int] = Field(alias="muscleGroupId", default=None)

    model_config = ConfigDict(populate_by_name=True)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RoutineStatusRequest(BaseModel):
    status: RoutineStatus

    model_config = ConfigDict(populate_by_name=True)


class AddMuscleGroupsRequest(BaseModel):
    muscle_groups: List[int] = Field(alias="muscleGroups", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


__all__ = ["AddMuscleGroupsRequest", "ExerciseUpdateRequest", "RoutineStatusRequest"]
