"""Domain models for the exercise catalog and routines."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RoutineStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


def _required_text(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be empty")
    return stripped


class MuscleGroup(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = Field(alias="createdAt", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class MuscleGroupDraft(BaseModel):
    name: str = Field(max_length=80)
    description: Optional[str] = Field(default=None, max_length=500)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return _required_text(value)


class Exercise(BaseModel):
    id: int
    name: str
    description: str
    series: int
    repetitions: int
    video_url: Optional[str] = Field(alias="videoUrl", default=None)
    image_url: Optional[str] = Field(alias="imageUrl", default=None)
    muscle_group_id: int = Field(alias="muscleGroupId")
    muscle_group_name: Optional[str] = Field(alias="muscleGroupName", default=None)
    created_at: Optional[datetime] = Field(alias="createdAt", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ExerciseDraft(BaseModel):
    name: str = Field(max_length=120)
    description: str = Field(max_length=2000)
    series: int = Field(ge=1, le=50)
    repetitions: int = Field(ge=1, le=500)
    video_url: Optional[str] = Field(alias="videoUrl", default=None)
    image_url: Optional[str] = Field(alias="imageUrl", default=None)
    muscle_group_id: int = Field(alias="muscleGroupId")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("name", "description")
    @classmethod
    def _check_text(cls, value: str) -> str:
        return _required_text(value)


class RoutineSummary(BaseModel):
    id: int
    name: str
    status: RoutineStatus = RoutineStatus.ACTIVE
    created_at: Optional[datetime] = Field(alias="createdAt", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class RoutineGroup(BaseModel):
    """A muscle group slot in a routine with its chosen exercises."""

    muscle_group: MuscleGroup = Field(alias="muscleGroup")
    exercises: List[Exercise] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Routine(BaseModel):
    id: int
    name: str
    status: RoutineStatus = RoutineStatus.ACTIVE
    muscle_groups: List[RoutineGroup] = Field(alias="muscleGroups", default_factory=list)
    created_at: Optional[datetime] = Field(alias="createdAt", default=None)
    updated_at: Optional[datetime] = Field(alias="updatedAt", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def exercise_count(self) -> int:
        return sum(len(group.exercises) for group in self.muscle_groups)

    def has_muscle_group(self, muscle_group_id: int) -> bool:
        return any(group.muscle_group.id == muscle_group_id for group in self.muscle_groups)


__all__ = [
    "Exercise",
    "ExerciseDraft",
    "MuscleGroup",
    "MuscleGroupDraft",
    "Routine",
    "RoutineGroup",
    "RoutineStatus",
    "RoutineSummary",
]
