"""Domain models for membership plans and per-user entitlements."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class HistoryStatus(str, Enum):
    """Terminal state recorded when a plan leaves ``currentMembership``."""

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


def _ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class MembershipPlan(BaseModel):
    """A purchasable plan definition from the catalog."""

    id: int
    name: str
    description: Optional[str] = None
    price: float = Field(ge=0)
    duration_days: int = Field(alias="durationDays", ge=1)
    is_trial: bool = Field(alias="isTrial", default=False)
    is_default: bool = Field(alias="isDefault", default=False)
    status: PlanStatus = PlanStatus.ACTIVE
    routine_id: Optional[int] = Field(alias="routineId", default=None)
    created_at: Optional[datetime] = Field(alias="createdAt", default=None)
    updated_at: Optional[datetime] = Field(alias="updatedAt", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_active(self) -> bool:
        return self.status == PlanStatus.ACTIVE


class PlanDraft(BaseModel):
    """Attributes supplied when creating a plan."""

    name: str
    description: Optional[str] = None
    price: float = Field(ge=0)
    duration_days: int = Field(alias="durationDays", ge=1)
    is_trial: bool = Field(alias="isTrial", default=False)
    is_default: bool = Field(alias="isDefault", default=False)
    status: PlanStatus = PlanStatus.ACTIVE
    routine_id: Optional[int] = Field(alias="routineId", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be empty")
        return stripped

    def matches(self, plan: MembershipPlan) -> bool:
        """Whether ``plan`` already describes exactly this draft."""

        return (
            plan.name == self.name
            and float(plan.price) == float(self.price)
            and plan.duration_days == self.duration_days
            and (plan.description or None) == (self.description or None)
            and plan.status == self.status
        )


class HistoryEntry(BaseModel):
    """One archived assignment; never mutated once written."""

    plan_id: Optional[int] = Field(alias="planId", default=None)
    assigned_at: datetime = Field(alias="assignedAt")
    expired_at: Optional[datetime] = Field(alias="expiredAt", default=None)
    status: HistoryStatus = HistoryStatus.EXPIRED
    was_trial: bool = Field(alias="wasTrial", default=False)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("assigned_at", "expired_at")
    @classmethod
    def _normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _ensure_utc(value)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class MembershipHistory(Sequence[HistoryEntry]):
    """Append-only log of archived assignments.

    Instances are immutable: :meth:`append` returns a new log and leaves the
    receiver untouched, so entries can never be edited or removed.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[HistoryEntry] = ()) -> None:
        self._entries: Tuple[HistoryEntry, ...] = tuple(entries)

    @classmethod
    def from_documents(cls, documents: Optional[Iterable[Dict[str, Any]]]) -> "MembershipHistory":
        return cls(HistoryEntry.model_validate(document) for document in documents or ())

    def append(self, entry: HistoryEntry) -> "MembershipHistory":
        return MembershipHistory(self._entries + (entry,))

    def __getitem__(self, index):  # type: ignore[override]
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MembershipHistory):
            return self._entries == other._entries
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"MembershipHistory({list(self._entries)!r})"


@dataclass(frozen=True)
class Entitlement:
    """The membership state embedded in a user record."""

    user_id: int
    role: str
    plan_id: Optional[int] = None
    assigned_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    history: MembershipHistory = field(default_factory=MembershipHistory)


@dataclass(frozen=True)
class AssignmentResult:
    user_id: int
    previous_plan_id: Optional[int]
    previous_plan: Optional[MembershipPlan]
    new_plan: MembershipPlan
    assigned_at: datetime
    expires_at: datetime
    was_replaced: bool
    archived_entry: Optional[HistoryEntry] = None
    entitlement: Optional[Entitlement] = None


@dataclass(frozen=True)
class EntitlementStatus:
    plan: Optional[MembershipPlan]
    assigned_at: Optional[datetime]
    expires_at: Optional[datetime]
    is_active: bool
    days_remaining: int
    is_expired: bool


@dataclass(frozen=True)
class HistoryItem:
    """A history entry with its plan resolved for display."""

    entry: HistoryEntry
    plan: Optional[MembershipPlan]


__all__ = [
    "AssignmentResult",
    "Entitlement",
    "EntitlementStatus",
    "HistoryEntry",
    "HistoryItem",
    "HistoryStatus",
    "MembershipHistory",
    "MembershipPlan",
    "PlanDraft",
    "PlanStatus",
]
